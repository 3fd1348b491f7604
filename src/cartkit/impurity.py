"""Gini impurity of class-count distributions and of DataFrame partitions."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Sequence

import polars as pl

from cartkit.table import require_class_codes

_COUNT_COLUMN: str = "count"


def gini(counts: Sequence[int]) -> float:
    """Compute the Gini impurity `1 - sum((count_i / total) ** 2)` of a class distribution.

    A pure distribution (one non-zero category) scores 0; `k` equally-sized
    categories score `1 - 1/k`.

    Args:
        counts (Sequence[int]): Occurrences per class. Zero entries are allowed.

    Returns:
        float: The impurity, within `[0, 1)`.

    Raises:
        ValueError: If any count is negative or the counts sum to zero.

    Examples:
        >>> gini([5])
        0.0
        >>> gini([3, 3])
        0.5
    """
    if any(count < 0 for count in counts):
        raise ValueError(f"Class counts must be non-negative, got {list(counts)}")
    total = sum(counts)
    if total <= 0:
        raise ValueError("Gini impurity is undefined for an empty class distribution")
    return 1.0 - sum((count / total) ** 2 for count in counts)


def count_groups(labels: Iterable[int | None]) -> dict[int, int]:
    """Count occurrences of each class code, ignoring missing labels.

    Args:
        labels (Iterable[int | None]): Class codes; `None` marks a missing label.

    Returns:
        dict[int, int]: Mapping of class code to occurrence count.
    """
    return dict(Counter(label for label in labels if label is not None))


def frame_gini(df: pl.DataFrame, target: str) -> float:
    """Compute the Gini impurity of a DataFrame's target column.

    Uses a group-by-count over the class codes followed by a squared-share
    aggregation, so it agrees with `gini` applied to the same counts. Rows
    with a missing label are ignored, and a frame without any labeled row
    scores 0.

    Args:
        df (pl.DataFrame): The rows to score.
        target (str): The categorical-coded target column.

    Returns:
        float: The impurity of the target distribution.
    """
    labels = require_class_codes(df, target).drop_nulls()
    if labels.is_empty():
        return 0.0
    label_counts = labels.value_counts(name=_COUNT_COLUMN)
    share = pl.col(_COUNT_COLUMN).cast(pl.Float64) / pl.col(_COUNT_COLUMN).sum()
    square_sum = label_counts.select(share.pow(2).sum()).item()
    return 1.0 - square_sum
