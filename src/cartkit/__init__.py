"""cartkit: CART-style decision tree classifiers over Polars DataFrames."""

from loguru import logger

from cartkit.builder import TreeBuilder, TreeConfig, build
from cartkit.evaluation import compute_metrics
from cartkit.exceptions import ColumnKindError, ColumnsNotFoundError, InputError
from cartkit.impurity import frame_gini, gini
from cartkit.logging import PACKAGE_NAME, enable_logging
from cartkit.majority import predict_majority
from cartkit.splitting import SplitCandidate, find_best_split, select_best_split
from cartkit.tree import ClassificationRule, Internal, Leaf, Predicate, SplitRule, Tree

logger.disable(PACKAGE_NAME)  # noqa: RUF067 - Disable logging for the cartkit package by default

__all__ = [
    "ClassificationRule",
    "ColumnKindError",
    "ColumnsNotFoundError",
    "InputError",
    "Internal",
    "Leaf",
    "Predicate",
    "SplitCandidate",
    "SplitRule",
    "Tree",
    "TreeBuilder",
    "TreeConfig",
    "build",
    "compute_metrics",
    "enable_logging",
    "find_best_split",
    "frame_gini",
    "gini",
    "predict_majority",
    "select_best_split",
]
