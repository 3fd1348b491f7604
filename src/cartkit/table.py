"""Tabular view helpers: column lookup, column kinds, class codes, and partitioning.

The tree builder reads its training data exclusively through these helpers so
that column validation happens in one place and every partition is produced by
the same Polars filter expressions.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Literal

import polars as pl

from cartkit.exceptions import ColumnKindError, ColumnsNotFoundError

type ColumnKind = Literal["continuous", "categorical", "unsupported"]

CLASS_CODE_DTYPE: pl.DataType = pl.UInt32()

_CATEGORICAL_DTYPES: tuple[type[pl.DataType], ...] = (pl.Boolean, pl.String, pl.Categorical, pl.Enum)


# ---------------------------------------------------------------------------
# Public interface -- Column lookup and classification
# ---------------------------------------------------------------------------


def column(df: pl.DataFrame, name: str) -> pl.Series:
    """Return the named column, raising `ColumnsNotFoundError` if it is absent.

    Args:
        df (pl.DataFrame): The DataFrame to read from.
        name (str): The column name to look up.

    Returns:
        pl.Series: The requested column.

    Raises:
        ColumnsNotFoundError: If `name` is not a column of `df`.
    """
    require_columns(df, [name])
    return df.get_column(name)


def require_columns(df: pl.DataFrame, names: Iterable[str]) -> None:
    """Raise `ColumnsNotFoundError` listing every requested column missing from `df`.

    Args:
        df (pl.DataFrame): The DataFrame to check.
        names (Iterable[str]): Column names that must be present.

    Raises:
        ColumnsNotFoundError: If any name is absent from `df.columns`.
    """
    missing = sorted(set(names) - set(df.columns))
    if missing:
        raise ColumnsNotFoundError(missing_columns=missing, available_columns=list(df.columns))


def classify_column(dtype: pl.DataType) -> ColumnKind:
    """Classify a Polars dtype by the role it can play in a split.

    Integer and float columns are continuous and can be split on a threshold.
    Boolean, string, categorical, and enum columns are categorical features,
    which this learner never splits on. A `Null` column (for instance the
    columns of an empty DataFrame built without a schema) carries no values and
    is treated as continuous with no candidate thresholds.

    Args:
        dtype (pl.DataType): The Polars data type to classify.

    Returns:
        ColumnKind: One of `"continuous"`, `"categorical"`, or `"unsupported"`.
    """
    if dtype.is_integer() or dtype.is_float() or dtype == pl.Null:
        return "continuous"
    if isinstance(dtype, _CATEGORICAL_DTYPES) or dtype in _CATEGORICAL_DTYPES:
        return "categorical"
    return "unsupported"


def is_class_code_dtype(dtype: pl.DataType) -> bool:
    """Return `True` if a column of this dtype holds categorical class codes.

    Args:
        dtype (pl.DataType): The Polars data type to inspect.

    Returns:
        bool: `True` for unsigned integers, `Categorical`, `Enum`, and `Null`.
    """
    if dtype.is_unsigned_integer() or dtype == pl.Null:
        return True
    return isinstance(dtype, (pl.Categorical, pl.Enum)) or dtype in (pl.Categorical, pl.Enum)


def require_continuous(df: pl.DataFrame, name: str) -> pl.Series:
    """Return the named column after checking that it can be split on.

    Args:
        df (pl.DataFrame): The DataFrame to read from.
        name (str): The feature column name.

    Returns:
        pl.Series: The requested feature column.

    Raises:
        ColumnsNotFoundError: If the column does not exist.
        ColumnKindError: If the column is not numeric.
    """
    series = column(df, name)
    if classify_column(series.dtype) != "continuous":
        raise ColumnKindError(column=name, dtype=str(series.dtype), expected="a numeric (continuous) dtype")
    return series


def require_class_codes(df: pl.DataFrame, name: str) -> pl.Series:
    """Return the named target column as UInt32 class codes.

    Args:
        df (pl.DataFrame): The DataFrame to read from.
        name (str): The target column name.

    Returns:
        pl.Series: The class codes, named `name`, with nulls preserved.

    Raises:
        ColumnsNotFoundError: If the column does not exist.
        ColumnKindError: If the column is not categorical-coded.
    """
    return class_codes(column(df, name))


def class_codes(series: pl.Series) -> pl.Series:
    """Convert a categorical-coded series to UInt32 class codes.

    `Categorical` and `Enum` columns contribute their physical codes; unsigned
    integer columns are used as-is.

    Args:
        series (pl.Series): The target series.

    Returns:
        pl.Series: UInt32 series with the same name and nulls preserved.

    Raises:
        ColumnKindError: If the series is not categorical-coded.
    """
    if not is_class_code_dtype(series.dtype):
        raise ColumnKindError(
            column=series.name,
            dtype=str(series.dtype),
            expected="categorical class codes (unsigned integer, Categorical or Enum)",
        )
    if series.dtype == CLASS_CODE_DTYPE:
        return series
    if series.dtype.is_unsigned_integer() or series.dtype == pl.Null:
        return series.cast(CLASS_CODE_DTYPE)
    return series.to_physical().cast(CLASS_CODE_DTYPE)


# ---------------------------------------------------------------------------
# Public interface -- Row access and partitioning
# ---------------------------------------------------------------------------


def row_count(df: pl.DataFrame) -> int:
    """Return the number of rows in `df`."""
    return df.height


def present_values(series: pl.Series) -> pl.Series:
    """Return the non-missing values of a continuous series.

    Both nulls and, for float columns, NaNs count as missing.

    Args:
        series (pl.Series): A continuous feature column.

    Returns:
        pl.Series: The series without missing entries.
    """
    present = series.drop_nulls()
    if present.dtype.is_float():
        present = present.drop_nans()
    return present


def feature_value(df: pl.DataFrame, feature: str) -> pl.Expr:
    """Build an expression for a feature column with NaNs turned into nulls.

    Args:
        df (pl.DataFrame): The DataFrame the expression will run against.
        feature (str): The feature column name.

    Returns:
        pl.Expr: Expression yielding the feature values with NaN as null.
    """
    value = pl.col(feature)
    if df.schema[feature].is_float():
        value = value.fill_nan(None)
    return value


def partition(df: pl.DataFrame, feature: str, cutoff: float) -> tuple[pl.DataFrame, pl.DataFrame]:
    """Split rows on a threshold into `(higher, lower)` frames.

    Rows with `value >= cutoff` go to `higher` and rows with `value < cutoff`
    go to `lower`. Rows with a missing feature value land in neither frame.

    Args:
        df (pl.DataFrame): The rows to partition. Not modified.
        feature (str): The continuous feature column to split on.
        cutoff (float): The split threshold.

    Returns:
        tuple[pl.DataFrame, pl.DataFrame]: The `(higher, lower)` partitions,
            each keeping every column of `df`.
    """
    value = feature_value(df, feature)
    return df.filter(value >= cutoff), df.filter(value < cutoff)
