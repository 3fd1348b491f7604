"""Custom exceptions for tree induction input validation.

All exceptions raised for malformed training or prediction input subclass
`InputError` (itself a `ValueError`), so callers can catch every caller-side
mistake with a single handler:

- ColumnsNotFoundError: Raised when requested columns do not exist in a DataFrame.
- ColumnKindError: Raised when a column's dtype does not fit the role it is
  used in (a non-numeric split feature, a target that is not categorical-coded).

Empty training data is not an error; it produces an empty `Tree`.
"""

from __future__ import annotations


class InputError(ValueError):
    """Base exception for malformed tree induction input.

    Catching this exception catches every validation failure raised before a
    build starts.
    """


class ColumnsNotFoundError(InputError):
    """Raised when requested columns do not exist in a DataFrame.

    Attributes:
        missing_columns (list[str]): Column names that were not found.
        available_columns (list[str]): Column names present in the DataFrame.

    Examples:
        >>> err = ColumnsNotFoundError(
        ...     missing_columns=["petal_width", "sepal_width"],
        ...     available_columns=["petal_length", "variety"],
        ... )
        >>> err.missing_columns
        ['petal_width', 'sepal_width']
    """

    missing_columns: list[str]
    available_columns: list[str]

    def __init__(
        self,
        missing_columns: list[str],
        available_columns: list[str],
    ) -> None:
        """Initialize ColumnsNotFoundError.

        Args:
            missing_columns (list[str]): Column names not found in the DataFrame.
            available_columns (list[str]): Column names present in the DataFrame.
        """
        super().__init__(f"Columns not found in DataFrame: {sorted(missing_columns)}")
        self.missing_columns = missing_columns
        self.available_columns = available_columns


class ColumnKindError(InputError):
    """Raised when a column's dtype is incompatible with its role in the tree.

    Attributes:
        column (str): The offending column name.
        dtype (str): String form of the column's Polars dtype.
        expected (str): Human-readable description of the accepted dtypes.

    Examples:
        >>> err = ColumnKindError(column="variety", dtype="Float64", expected="categorical class codes")
        >>> str(err)
        "Column 'variety' has dtype Float64, expected categorical class codes"
    """

    column: str
    dtype: str
    expected: str

    def __init__(self, column: str, dtype: str, expected: str) -> None:
        """Initialize ColumnKindError.

        Args:
            column (str): The offending column name.
            dtype (str): String form of the column's Polars dtype.
            expected (str): Description of the accepted dtypes.
        """
        super().__init__(f"Column {column!r} has dtype {dtype}, expected {expected}")
        self.column = column
        self.dtype = dtype
        self.expected = expected

    def __repr__(self) -> str:
        """Return detailed representation for debugging.

        Returns:
            str: Representation including column, dtype, and expectation.
        """
        return f"{self.__class__.__name__}(column={self.column!r}, dtype={self.dtype!r}, expected={self.expected!r})"
