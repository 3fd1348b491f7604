"""Tree induction: configuration, stopping policy, and node assembly."""

from __future__ import annotations

from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from typing import NamedTuple

import polars as pl
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from cartkit.exceptions import ColumnKindError, InputError
from cartkit.impurity import frame_gini
from cartkit.logging import SPLIT_LEVEL
from cartkit.majority import predict_majority_frame
from cartkit.splitting import SplitCandidate, select_best_split
from cartkit.table import classify_column, partition, require_class_codes, require_columns
from cartkit.tree import Decision, Internal, SplitRule, Tree

_ROOT_LEVEL: int = 1  # Level of the root node; a node at level L is a leaf when L > max_depth.


class _PendingNode(NamedTuple):
    """Rows waiting to be turned into a subtree."""

    df: pl.DataFrame
    level: int


class _PendingSplit(NamedTuple):
    """A chosen split whose two children are still being built."""

    df: pl.DataFrame
    level: int
    candidate: SplitCandidate
    higher: pl.DataFrame
    lower: pl.DataFrame


class TreeConfig(BaseModel):
    """Stopping and execution parameters for tree induction.

    Attributes:
        max_depth (int | None): Maximum number of splits on any root-to-leaf
            path. `0` yields a single leaf; `None` leaves depth unconstrained.
        min_node_size (int): Nodes with fewer rows than this become leaves.
        parallel_depth (int): Nodes at levels 1 through `parallel_depth` (the
            root is level 1) build their two subtrees on separate threads.
            `0` builds everything on the calling thread.

    Examples:
        >>> config = TreeConfig(max_depth=3, min_node_size=5)
        >>> config.parallel_depth
        0
    """

    model_config = ConfigDict(frozen=True)

    max_depth: int | None = Field(
        default=None,
        ge=0,
        description="Maximum number of splits on any root-to-leaf path; None for unconstrained depth.",
    )
    min_node_size: int = Field(
        default=2,
        ge=1,
        description="Nodes with fewer rows than this become leaves.",
    )
    parallel_depth: int = Field(
        default=0,
        ge=0,
        description="Levels (from the root) whose subtrees are built concurrently; 0 disables threading.",
    )


class TreeBuilder:
    """Induce a binary decision tree by recursive Gini-minimizing splits.

    Each call to `build` validates its input, then partitions the DataFrame
    node by node. A node becomes a leaf when the depth limit is reached, it has
    fewer than `min_node_size` rows, its labels are pure, no continuous
    feature is available, or no feature has two distinct values. A node whose
    split leaves one side without any labeled row collapses into a single
    leaf over its own rows.

    Examples:
        >>> builder = TreeBuilder(TreeConfig(max_depth=2))  # doctest: +SKIP
        >>> tree = builder.build(iris, {"petal_length", "petal_width"}, "variety")  # doctest: +SKIP
    """

    def __init__(self, config: TreeConfig | None = None) -> None:
        """Initialize the builder.

        Args:
            config (TreeConfig | None): Induction parameters. Defaults to `TreeConfig()`.
        """
        self.config = config if config is not None else TreeConfig()

    def build(self, df: pl.DataFrame, features: Iterable[str], target: str) -> Tree:
        """Train a tree on `df`.

        Args:
            df (pl.DataFrame): Training rows. Not modified, and not referenced
                by the returned tree.
            features (Iterable[str]): Candidate feature columns. Categorical
                columns are accepted but never split on.
            target (str): Column of categorical class codes (unsigned integer,
                `Categorical`, or `Enum`).

        Returns:
            Tree: The trained tree; empty when `df` has no labeled rows.

        Raises:
            ColumnsNotFoundError: If the target or a feature column is absent.
            ColumnKindError: If the target is not categorical-coded or a
                feature has an unsupported dtype.
        """
        try:
            split_features = _validate_inputs(df, features, target)
        except InputError as exc:
            logger.warning("Tree build rejected", target=target, reason=str(exc))
            raise

        training = pl.DataFrame([
            *(df.get_column(feature) for feature in sorted(split_features)),
            require_class_codes(df, target),
        ])
        logger.info("Tree build started", rows=df.height, features=sorted(split_features), target=target)

        node = self._build_subtree(training, _ROOT_LEVEL, split_features, target)
        tree = Tree.new() if node is None else Tree.from_node(node)

        logger.info("Tree build finished", depth=tree.depth, leaves=tree.leaf_count, empty=tree.is_empty)
        return tree

    def _build_subtree(self, df: pl.DataFrame, level: int, features: frozenset[str], target: str) -> Decision | None:
        """Build the subtree for `df` with an explicit work stack.

        Nodes are expanded higher child first and assembled once both children
        are built, so tree depth is bounded by memory rather than the Python
        call stack. Splits at levels up to `parallel_depth` hand their two
        subtrees to `_build_children` instead.

        Args:
            df (pl.DataFrame): Rows reaching the subtree root.
            level (int): Level of the subtree root; the root of the tree is level 1.
            features (frozenset[str]): Continuous features available for splitting.
            target (str): Class code column.

        Returns:
            Decision | None: The subtree root, or `None` if `df` has no labeled row.
        """
        built: list[Decision | None] = []
        work: list[_PendingNode | _PendingSplit] = [_PendingNode(df, level)]
        while work:
            task = work.pop()
            if isinstance(task, _PendingSplit):
                lower_node = built.pop()
                higher_node = built.pop()
                built.append(_assemble(task, higher_node, lower_node, target))
                continue

            outcome = self._expand(task.df, task.level, features, target)
            if not isinstance(outcome, _PendingSplit):
                built.append(outcome)
            elif outcome.level <= self.config.parallel_depth:
                higher_node, lower_node = self._build_children(outcome, features, target)
                built.append(_assemble(outcome, higher_node, lower_node, target))
            else:
                work.append(outcome)
                work.append(_PendingNode(outcome.lower, outcome.level + 1))
                work.append(_PendingNode(outcome.higher, outcome.level + 1))
        return built.pop()

    def _expand(
        self,
        df: pl.DataFrame,
        level: int,
        features: frozenset[str],
        target: str,
    ) -> Decision | _PendingSplit | None:
        """Turn `df` into a leaf, or choose its split and partition it.

        Returns:
            Decision | _PendingSplit | None: A leaf (`None` when `df` has no
                labeled row), or the chosen split awaiting its children.
        """
        stop_reason = self._stop_reason(df, level, features, target)
        best = None
        if stop_reason is None:
            best = select_best_split(df, features, target)
            if best is None:
                stop_reason = "no split candidate"
        if stop_reason is not None or best is None:
            leaf = predict_majority_frame(df, target)
            logger.debug("Leaf created", level=level, rows=df.height, reason=stop_reason, leaf=leaf)
            return leaf

        logger.log(
            SPLIT_LEVEL,
            "Split selected",
            level=level,
            rows=df.height,
            feature=best.feature,
            cutoff=best.split,
            metric=best.metric,
        )
        higher, lower = partition(df, best.feature, best.split)
        return _PendingSplit(df, level, best, higher, lower)

    def _build_children(
        self,
        split: _PendingSplit,
        features: frozenset[str],
        target: str,
    ) -> tuple[Decision | None, Decision | None]:
        """Build both subtrees of `split` on separate threads and join them."""
        child_level = split.level + 1
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="cartkit") as executor:
            higher_future = executor.submit(self._build_subtree, split.higher, child_level, features, target)
            lower_future = executor.submit(self._build_subtree, split.lower, child_level, features, target)
            return higher_future.result(), lower_future.result()

    def _stop_reason(self, df: pl.DataFrame, level: int, features: frozenset[str], target: str) -> str | None:
        """Return why `df` must become a leaf, or `None` if it may be split."""
        max_depth = self.config.max_depth
        if max_depth is not None and level > max_depth:
            return "max depth reached"
        if df.height < self.config.min_node_size:
            return "below min_node_size"
        if frame_gini(df, target) == 0.0:
            return "pure node"
        if not features:
            return "no continuous features"
        return None


def build(
    df: pl.DataFrame,
    features: Iterable[str],
    target: str,
    config: TreeConfig | None = None,
) -> Tree:
    """Train a decision tree classifier.

    Convenience wrapper around `TreeBuilder(config).build(df, features, target)`.

    Args:
        df (pl.DataFrame): Training rows.
        features (Iterable[str]): Candidate feature columns.
        target (str): Column of categorical class codes.
        config (TreeConfig | None): Induction parameters. Defaults to `TreeConfig()`.

    Returns:
        Tree: The trained tree; empty when `df` has no labeled rows.

    Examples:
        >>> df = pl.DataFrame(
        ...     {"petal_length": [1.4, 1.3, 4.7, 4.5], "variety": [0, 0, 1, 1]},
        ...     schema_overrides={"variety": pl.UInt32},
        ... )
        >>> tree = build(df, {"petal_length"}, "variety")
        >>> tree.predict({"petal_length": 5.0})
        (1, 1.0)
    """
    return TreeBuilder(config).build(df, features, target)


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------


def _validate_inputs(df: pl.DataFrame, features: Iterable[str], target: str) -> frozenset[str]:
    """Check the target and feature columns and return the splittable features.

    Args:
        df (pl.DataFrame): The training DataFrame.
        features (Iterable[str]): Requested feature columns.
        target (str): The target column.

    Returns:
        frozenset[str]: Continuous feature columns, excluding the target.

    Raises:
        ColumnsNotFoundError: If any requested column is absent.
        ColumnKindError: If the target is not categorical-coded or a feature
            has an unsupported dtype.
    """
    requested = frozenset(features)
    require_columns(df, [target, *requested])
    require_class_codes(df, target)

    split_features: set[str] = set()
    for feature in sorted(requested - {target}):
        dtype = df.schema[feature]
        kind = classify_column(dtype)
        if kind == "unsupported":
            raise ColumnKindError(column=feature, dtype=str(dtype), expected="a numeric or categorical dtype")
        if kind == "categorical":
            logger.debug("Categorical feature is not split on", feature=feature, dtype=str(dtype))
            continue
        split_features.add(feature)
    if target in requested:
        logger.warning("Target column listed as a feature; ignoring it", target=target)
    return frozenset(split_features)


def _assemble(split: _PendingSplit, higher: Decision | None, lower: Decision | None, target: str) -> Decision | None:
    """Join a split with its built children.

    A side without any labeled row yields no subtree; the node then collapses
    into a majority leaf over its own rows.
    """
    if higher is None or lower is None:
        logger.debug(
            "Split side has no labels, collapsing to leaf",
            level=split.level,
            feature=split.candidate.feature,
        )
        return predict_majority_frame(split.df, target)
    return Internal(
        rule=SplitRule(dimension=split.candidate.feature, cutoff=split.candidate.split),
        higher=higher,
        lower=lower,
        samples=split.df.height,
    )
