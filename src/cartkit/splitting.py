"""Split search: candidate thresholds, weighted impurity per threshold, and best-split selection."""

from __future__ import annotations

from collections.abc import Iterable
from typing import NamedTuple

import polars as pl

from cartkit.table import present_values, require_class_codes, require_continuous

# ---------------------------------------------------------------------------
# Module-level constants
# ---------------------------------------------------------------------------

SPLIT_METRICS_SCHEMA: dict[str, pl.DataType] = {
    "feature": pl.String(),
    "split": pl.Float64(),
    "metric": pl.Float64(),
}
_METRIC_TOLERANCE: float = 1e-12  # Metrics closer than this are treated as tied.


class SplitCandidate(NamedTuple):
    """A tentative threshold on one continuous feature.

    Attributes:
        feature (str): The feature column the threshold applies to.
        split (float): The threshold; rows with `value >= split` go to the higher side.
        metric (float): Weighted Gini impurity after splitting at `split`.
    """

    feature: str
    split: float
    metric: float


# ---------------------------------------------------------------------------
# Public interface -- Single-feature search
# ---------------------------------------------------------------------------


def candidate_thresholds(series: pl.Series) -> pl.Series:
    """Compute the midpoints between adjacent distinct values of a feature.

    Args:
        series (pl.Series): A continuous feature column; missing values are ignored.

    Returns:
        pl.Series: Float64 thresholds in ascending order, named `"split"`.
            Empty when the feature has fewer than two distinct values.

    Examples:
        >>> candidate_thresholds(pl.Series("x", [4, 1, 2, 2])).to_list()
        [1.5, 3.0]
    """
    distinct = present_values(series).unique().sort().cast(pl.Float64)
    if distinct.len() < 2:
        return pl.Series("split", [], dtype=pl.Float64)
    return distinct.rolling_mean(window_size=2).drop_nulls().alias("split")


def evaluate_splits(df: pl.DataFrame, feature: str, target: str) -> pl.DataFrame:
    """Score every candidate threshold of one feature by weighted Gini impurity.

    For a threshold `t`, rows split into `higher` (`value >= t`) and `lower`
    (`value < t`); the metric is
    `(|higher| * gini(higher) + |lower| * gini(lower)) / |df|`. An empty
    partition, or one without any labeled row, contributes nothing.

    Args:
        df (pl.DataFrame): The rows to split.
        feature (str): A continuous feature column.
        target (str): The categorical-coded target column.

    Returns:
        pl.DataFrame: Columns `feature`, `split`, `metric` (see
            `SPLIT_METRICS_SCHEMA`), one row per threshold in ascending order.

    Raises:
        ColumnsNotFoundError: If `feature` or `target` is absent.
        ColumnKindError: If `feature` is not numeric or `target` is not categorical-coded.
    """
    values = require_continuous(df, feature)
    labels = require_class_codes(df, target)
    thresholds = candidate_thresholds(values)
    metrics = _weighted_impurities(values, labels, thresholds, df.height)
    return pl.DataFrame(
        {
            "feature": [feature] * thresholds.len(),
            "split": thresholds,
            "metric": metrics,
        },
        schema=SPLIT_METRICS_SCHEMA,
    )


def find_best_split(df: pl.DataFrame, feature: str, target: str) -> list[SplitCandidate]:
    """Return every scored split candidate for one feature.

    The caller picks the best candidate (lowest `metric`); see
    `select_best_split` for the search across several features.

    Args:
        df (pl.DataFrame): The rows to split.
        feature (str): A continuous feature column.
        target (str): The categorical-coded target column.

    Returns:
        list[SplitCandidate]: Candidates ordered by ascending threshold; empty
            if the feature has fewer than two distinct values.
    """
    return [SplitCandidate(*row) for row in evaluate_splits(df, feature, target).iter_rows()]


# ---------------------------------------------------------------------------
# Public interface -- Multi-feature search
# ---------------------------------------------------------------------------


def split_metrics(df: pl.DataFrame, features: Iterable[str], target: str) -> pl.DataFrame:
    """Concatenate the split scores of several features into one table.

    Args:
        df (pl.DataFrame): The rows to split.
        features (Iterable[str]): Continuous feature columns.
        target (str): The categorical-coded target column.

    Returns:
        pl.DataFrame: Rows of every feature's `evaluate_splits` output,
            features in name order.
    """
    frames = [evaluate_splits(df, feature, target) for feature in sorted(set(features))]
    if not frames:
        return pl.DataFrame(schema=SPLIT_METRICS_SCHEMA)
    return pl.concat(frames, how="vertical")


def select_best_split(df: pl.DataFrame, features: Iterable[str], target: str) -> SplitCandidate | None:
    """Find the split with the globally lowest weighted impurity.

    Ties resolve to the lexicographically-first feature name, then to the
    lowest threshold.

    Args:
        df (pl.DataFrame): The rows to split.
        features (Iterable[str]): Continuous feature columns to search.
        target (str): The categorical-coded target column.

    Returns:
        SplitCandidate | None: The best candidate, or `None` if no feature
            has at least two distinct values.
    """
    metrics = split_metrics(df, features, target)
    if metrics.is_empty():
        return None
    best_metric = metrics.get_column("metric").min()
    tied = metrics.filter(pl.col("metric") <= best_metric + _METRIC_TOLERANCE).sort(["feature", "split"])
    return SplitCandidate(*tied.row(0))


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------


def _weighted_impurities(values: pl.Series, labels: pl.Series, thresholds: pl.Series, total: int) -> pl.Series:
    """Score every threshold at once from per-class counts of the values below it.

    Rows without a label count toward the size of their side but not toward
    its class shares. Rows missing the feature count toward `total` only.
    """
    if thresholds.is_empty():
        return pl.Series("metric", [], dtype=pl.Float64)
    present = (
        pl.DataFrame({"value": values.cast(pl.Float64), "label": labels})
        .with_columns(pl.col("value").fill_nan(None))
        .drop_nulls("value")
    )
    labeled = present.drop_nulls("label")
    if labeled.is_empty():
        return pl.Series("metric", [0.0] * thresholds.len(), dtype=pl.Float64)

    below = present.get_column("value").sort().search_sorted(thresholds, side="left")
    counts: dict[str, pl.Series] = {"lower_rows": below, "higher_rows": present.height - below}
    lower_classes: list[pl.Expr] = []
    higher_classes: list[pl.Expr] = []
    for index, group in enumerate(labeled.partition_by("label")):
        class_below = group.get_column("value").sort().search_sorted(thresholds, side="left")
        counts[f"lower_{index}"] = class_below
        counts[f"higher_{index}"] = group.height - class_below
        lower_classes.append(pl.col(f"lower_{index}"))
        higher_classes.append(pl.col(f"higher_{index}"))

    lower = _side_impurity(pl.col("lower_rows"), lower_classes)
    higher = _side_impurity(pl.col("higher_rows"), higher_classes)
    scores = pl.DataFrame(counts).cast(pl.Float64)
    return scores.select(((lower + higher) / total).alias("metric")).get_column("metric")


def _side_impurity(rows: pl.Expr, class_counts: list[pl.Expr]) -> pl.Expr:
    """Row-weighted Gini impurity of one side; 0 when the side has no labeled row."""
    labeled = pl.sum_horizontal(class_counts)
    purity = pl.sum_horizontal([(count / labeled).pow(2) for count in class_counts])
    return pl.when(labeled > 0).then(rows * (1.0 - purity)).otherwise(0.0)
