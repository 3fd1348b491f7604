"""Evaluation metrics for a trained tree against labeled rows."""

from __future__ import annotations

import polars as pl
from sklearn.metrics import accuracy_score

from cartkit.table import require_class_codes
from cartkit.tree import Tree


def compute_metrics(tree: Tree, df: pl.DataFrame, target: str) -> dict[str, float]:
    """Score a tree's predictions against the labels of `df`.

    Rows without a label are ignored. `coverage` is the share of labeled rows
    for which the tree produced a prediction (0 for an empty tree) and
    `accuracy` is computed over the covered rows only.

    Args:
        tree (Tree): A trained tree.
        df (pl.DataFrame): Labeled rows containing every feature the tree tests.
        target (str): The categorical-coded target column.

    Returns:
        dict[str, float]: `{"accuracy": <float>, "coverage": <float>}`. Both
            are 0.0 when no labeled row received a prediction.

    Raises:
        ColumnsNotFoundError: If the target or a feature tested by the tree is absent.
        ColumnKindError: If the target is not categorical-coded.
    """
    labels = require_class_codes(df, target)
    predictions = tree.predict_frame(df).get_column("prediction")
    scored = pl.DataFrame({"label": labels, "prediction": predictions}).drop_nulls("label")
    covered = scored.drop_nulls("prediction")
    if covered.is_empty():
        return {"accuracy": 0.0, "coverage": 0.0}
    accuracy = accuracy_score(covered.get_column("label").to_numpy(), covered.get_column("prediction").to_numpy())
    return {"accuracy": float(accuracy), "coverage": covered.height / scored.height}
