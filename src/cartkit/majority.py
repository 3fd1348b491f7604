"""Majority-vote leaf prediction with a confidence score."""

from __future__ import annotations

from collections.abc import Iterable

import polars as pl

from cartkit.impurity import count_groups
from cartkit.table import require_class_codes
from cartkit.tree import Leaf

_COUNT_COLUMN: str = "count"


def predict_majority(labels: Iterable[int | None]) -> Leaf | None:
    """Build a leaf predicting the most frequent class code.

    Missing labels are dropped before voting. Ties go to the smallest class
    code, so the outcome never depends on counting order.

    Args:
        labels (Iterable[int | None]): Class codes; `None` marks a missing label.

    Returns:
        Leaf | None: The majority leaf, with `confidence` equal to the winning
            count over the number of non-missing labels and `samples` equal to
            the number of labels seen. `None` when every label is missing.

    Examples:
        >>> leaf = predict_majority([1, 1, 3, 2, None, 1, None, 2, 3, None, 2, 2])
        >>> leaf.prediction, round(leaf.confidence, 4)
        (2, 0.4444)
    """
    labels = list(labels)
    votes = count_groups(labels)
    if not votes:
        return None
    prediction, count = min(votes.items(), key=lambda item: (-item[1], item[0]))
    return Leaf(prediction=prediction, confidence=count / sum(votes.values()), samples=len(labels))


def predict_majority_frame(df: pl.DataFrame, target: str) -> Leaf | None:
    """Build a majority leaf from a DataFrame's target column.

    Same policy as `predict_majority`, computed with a value count over the
    class codes.

    Args:
        df (pl.DataFrame): The rows reaching the leaf.
        target (str): The categorical-coded target column.

    Returns:
        Leaf | None: The majority leaf, or `None` if no row has a label.
    """
    labels = require_class_codes(df, target).drop_nulls()
    if labels.is_empty():
        return None
    label_counts = labels.value_counts(name=_COUNT_COLUMN).sort(
        [_COUNT_COLUMN, labels.name],
        descending=[True, False],
    )
    prediction, count = label_counts.row(0)
    return Leaf(prediction=prediction, confidence=count / labels.len(), samples=df.height)
