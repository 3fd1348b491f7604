"""Binary decision tree data structure: split rules, nodes, prediction, and rule extraction."""

from __future__ import annotations

import math
import operator
from collections.abc import Callable, Iterator, Mapping
from typing import Annotated, Any, Literal

import polars as pl
from pydantic import BaseModel, ConfigDict, Field

from cartkit.table import CLASS_CODE_DTYPE, require_columns

# ---------------------------------------------------------------------------
# Public type aliases
# ---------------------------------------------------------------------------

type PredicateOp = Literal[">=", "<"]

type Decision = Leaf | Internal

# ---------------------------------------------------------------------------
# Public models -- Tree nodes
# ---------------------------------------------------------------------------


class SplitRule(BaseModel):
    """A threshold test on one continuous feature.

    Rows with `value >= cutoff` are routed to the higher child; rows with
    `value < cutoff` are routed to the lower child.

    Attributes:
        dimension (str): Feature column the rule tests, e.g. `"petal_length"`.
        cutoff (float): Split threshold.

    Examples:
        >>> rule = SplitRule(dimension="petal_length", cutoff=2.45)
        >>> rule.routes_higher(3.0)
        True
    """

    model_config = ConfigDict(frozen=True)

    dimension: str = Field(description="Feature column the rule tests.")
    cutoff: float = Field(description="Split threshold; values >= cutoff go to the higher child.")

    def routes_higher(self, value: float) -> bool:
        """Return `True` if `value` belongs to the higher child."""
        return value >= self.cutoff


class Leaf(BaseModel):
    """Terminal node carrying the majority class of its training rows.

    Attributes:
        kind (Literal["leaf"]): Discriminator field; always `"leaf"`.
        prediction (int): Majority class code.
        confidence (float): Share of the leaf's labeled rows in the majority class.
        samples (int): Number of training rows that reached the leaf.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["leaf"] = "leaf"
    prediction: int = Field(ge=0, description="Majority class code.")
    confidence: float = Field(
        ge=0.0,
        le=1.0,
        description="Fraction of labeled rows at this leaf belonging to the predicted class.",
    )
    samples: int = Field(ge=1, description="Number of training rows that reached this leaf.")


class Internal(BaseModel):
    """Decision node routing rows to one of exactly two owned subtrees.

    Attributes:
        kind (Literal["internal"]): Discriminator field; always `"internal"`.
        rule (SplitRule): The threshold test applied at this node.
        higher (Leaf | Internal): Subtree for rows with `value >= rule.cutoff`.
        lower (Leaf | Internal): Subtree for rows with `value < rule.cutoff`.
        samples (int): Number of training rows that reached this node.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["internal"] = "internal"
    rule: SplitRule
    higher: Annotated[Leaf | Internal, Field(discriminator="kind")]
    lower: Annotated[Leaf | Internal, Field(discriminator="kind")]
    samples: int = Field(ge=1, description="Number of training rows that reached this node.")

    def route(self, value: Any) -> Leaf | Internal:
        """Pick the child a feature value is routed to.

        A missing value (`None` or NaN) follows the child that received more
        training rows, preferring `higher` on ties.

        Args:
            value (Any): The row's value for `rule.dimension`.

        Returns:
            Leaf | Internal: The selected child.
        """
        if _is_missing(value):
            return self.higher if self.higher.samples >= self.lower.samples else self.lower
        return self.higher if self.rule.routes_higher(value) else self.lower


# ---------------------------------------------------------------------------
# Public models -- Extracted rules
# ---------------------------------------------------------------------------


class Predicate(BaseModel):
    """A single threshold condition along a root-to-leaf path.

    Attributes:
        variable (str): Feature column the condition applies to.
        operator (PredicateOp): `">="` on the higher branch, `"<"` on the lower one.
        value (float): The split threshold.

    Examples:
        >>> p = Predicate(variable="petal_width", operator="<", value=1.75)
        >>> str(p)
        'petal_width < 1.75'
        >>> p.eval(0.2)
        True
    """

    model_config = ConfigDict(frozen=True)

    variable: str = Field(description="Feature column name the condition applies to.")
    operator: PredicateOp = Field(description="'>=' for the higher branch, '<' for the lower branch.")
    value: float = Field(description="Split threshold.")

    def __str__(self) -> str:
        return f"{self.variable} {self.operator} {self.value}"

    def eval(self, x: float) -> bool:
        """Evaluate this predicate against a feature value.

        Args:
            x (float): The feature value to test.

        Returns:
            bool: `True` if the predicate holds for `x`.
        """
        return _SCALAR_OPS[self.operator](x, self.value)


class ClassificationRule(BaseModel):
    """The path from the root to one leaf, with that leaf's prediction.

    Attributes:
        predicates (list[Predicate]): Conditions from the root down to the leaf.
            Empty when the tree is a single leaf.
        prediction (int): Predicted class code.
        samples (int): Number of training rows that reached the leaf.
        confidence (float): Share of the leaf's labeled rows in the predicted class.
    """

    predicates: list[Predicate] = Field(description="Predicates along the path from root to this leaf.")
    prediction: int = Field(ge=0, description="Predicted class code for rows reaching this leaf.")
    samples: int = Field(ge=1, description="Number of training rows that reached this leaf.")
    confidence: float = Field(ge=0.0, le=1.0, description="Majority class share at this leaf.")

    def __str__(self) -> str:
        conditions = " and ".join(str(predicate) for predicate in self.predicates) or "always"
        return f"if {conditions} then {self.prediction} (confidence={self.confidence:.4f}, samples={self.samples})"


# ---------------------------------------------------------------------------
# Public models -- Tree
# ---------------------------------------------------------------------------


class Tree(BaseModel):
    """A trained binary decision tree owning at most one root node.

    An empty tree (no root) means no model could be trained, e.g. because the
    training data had no rows or no labels.

    Attributes:
        root (Leaf | Internal | None): The root node, or `None` for an empty tree.

    Examples:
        >>> tree = Tree.from_node(Leaf(prediction=1, confidence=1.0, samples=3))
        >>> tree.predict({"petal_length": 1.4})
        (1, 1.0)
        >>> Tree.new().predict({"petal_length": 1.4}) is None
        True
    """

    model_config = ConfigDict(frozen=True)

    root: Annotated[Leaf | Internal, Field(discriminator="kind")] | None = None

    @classmethod
    def new(cls) -> Tree:
        """Return an empty tree."""
        return cls()

    @classmethod
    def from_node(cls, node: Decision) -> Tree:
        """Return a tree owning `node` as its root.

        Args:
            node (Decision): The root node.

        Returns:
            Tree: The new tree.
        """
        return cls(root=node)

    @property
    def is_empty(self) -> bool:
        """`True` when no model could be trained."""
        return self.root is None

    @property
    def depth(self) -> int:
        """Number of edges on the longest root-to-leaf path; 0 for a single leaf or an empty tree."""
        if self.root is None:
            return 0
        return _depth(self.root)

    @property
    def leaf_count(self) -> int:
        """Number of leaves; 0 for an empty tree."""
        return sum(1 for _ in self.leaves())

    @property
    def node_count(self) -> int:
        """Number of leaves and internal nodes; 0 for an empty tree."""
        return sum(1 for _ in _iter_nodes(self.root))

    def leaves(self) -> Iterator[Leaf]:
        """Yield every leaf, higher branches before lower ones."""
        for node in _iter_nodes(self.root):
            if isinstance(node, Leaf):
                yield node

    def dimensions(self) -> set[str]:
        """Return the feature names tested anywhere in the tree."""
        return {node.rule.dimension for node in _iter_nodes(self.root) if isinstance(node, Internal)}

    def predict(self, row: Mapping[str, Any]) -> tuple[int, float] | None:
        """Predict the class of one row by walking from the root to a leaf.

        Values missing from `row` (absent key, `None`, or NaN) follow the
        larger child at each node that tests them.

        Args:
            row (Mapping[str, Any]): Feature values keyed by column name.

        Returns:
            tuple[int, float] | None: `(class_code, confidence)` of the reached
                leaf, or `None` if the tree is empty.
        """
        node = self.root
        if node is None:
            return None
        while isinstance(node, Internal):
            node = node.route(row.get(node.rule.dimension))
        return node.prediction, node.confidence

    def predict_frame(self, df: pl.DataFrame) -> pl.DataFrame:
        """Predict every row of a DataFrame.

        Args:
            df (pl.DataFrame): Rows to classify; must contain every feature
                the tree tests.

        Returns:
            pl.DataFrame: One row per input row with a UInt32 `prediction`
                column and a Float64 `confidence` column. Both are null when
                the tree is empty.

        Raises:
            ColumnsNotFoundError: If a feature tested by the tree is absent.
        """
        dimensions = sorted(self.dimensions())
        require_columns(df, dimensions)
        predictions: list[int | None] = []
        confidences: list[float | None] = []
        rows = df.select(dimensions).iter_rows(named=True) if dimensions else ({} for _ in range(df.height))
        for row in rows:
            outcome = self.predict(row)
            prediction, confidence = outcome if outcome is not None else (None, None)
            predictions.append(prediction)
            confidences.append(confidence)
        return pl.DataFrame(
            {"prediction": predictions, "confidence": confidences},
            schema={"prediction": CLASS_CODE_DTYPE, "confidence": pl.Float64},
        )

    def rules(self) -> list[ClassificationRule]:
        """Extract one human-readable rule per leaf.

        Returns:
            list[ClassificationRule]: Rules ordered higher branch first; empty
                for an empty tree.
        """
        rules: list[ClassificationRule] = []
        if self.root is not None:
            _walk_tree(self.root, rules=rules)
        return rules


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------

_SCALAR_OPS: dict[str, Callable[[Any, Any], bool]] = {
    ">=": operator.ge,
    "<": operator.lt,
}


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, float) and math.isnan(value))


def _iter_nodes(root: Decision | None) -> Iterator[Decision]:
    stack: list[Decision] = [] if root is None else [root]
    while stack:
        node = stack.pop()
        yield node
        if isinstance(node, Internal):
            stack.append(node.lower)
            stack.append(node.higher)


def _depth(root: Decision) -> int:
    deepest = 0
    stack: list[tuple[Decision, int]] = [(root, 0)]
    while stack:
        node, depth = stack.pop()
        if isinstance(node, Internal):
            stack.append((node.lower, depth + 1))
            stack.append((node.higher, depth + 1))
        else:
            deepest = max(deepest, depth)
    return deepest


def _walk_tree(root: Decision, *, rules: list[ClassificationRule]) -> None:
    """Walk the tree from `root` and append one rule per reachable leaf.

    Leaves are visited higher branch first, each with the predicates along its
    path from `root`.

    Args:
        root (Decision): The node to start from.
        rules (list[ClassificationRule]): Accumulator; leaf rules are appended in-place.
    """
    stack: list[tuple[Decision, list[Predicate]]] = [(root, [])]
    while stack:
        node, path_predicates = stack.pop()
        if isinstance(node, Leaf):
            rules.append(
                ClassificationRule(
                    predicates=path_predicates,
                    prediction=node.prediction,
                    samples=node.samples,
                    confidence=node.confidence,
                )
            )
            continue

        higher_predicate = Predicate(variable=node.rule.dimension, operator=">=", value=node.rule.cutoff)
        lower_predicate = Predicate(variable=node.rule.dimension, operator="<", value=node.rule.cutoff)
        stack.append((node.lower, [*path_predicates, lower_predicate]))
        stack.append((node.higher, [*path_predicates, higher_predicate]))
