"""
Exception classes for sqlagg
"""

__all__ = [
    'SqlAggError',
    'QueryError',
    'InvalidExpressionError',
    'InvalidProjectionError',
    'TypeMismatchError',
    'ColumnNotFoundError',
    'ValidationError',
    'ExecutionError',
    'PipelineStateError',
]


class SqlAggError(Exception):
    """Base exception for all sqlagg errors."""

    pass


class QueryError(SqlAggError):
    """Raised when a query is structurally invalid (detected before any row is read)."""

    pass


class InvalidExpressionError(QueryError):
    """Raised when an expression is used in a clause that does not allow it.

    Example:
        An aggregate inside WHERE, an aggregate nested in another aggregate,
        or a raw row column inside HAVING that is not a grouping column.
    """

    def __init__(self, expression: str, clause: str, reason: str):
        self.expression = expression
        self.clause = clause
        self.reason = reason
        super().__init__(f"Invalid expression {expression} in {clause}: {reason}")


class InvalidProjectionError(QueryError):
    """Raised when a SELECT item is neither grouped nor aggregated.

    Example:
        raise InvalidProjectionError(
            item='"Name"',
            group_columns=['Dept'],
        )
    """

    def __init__(self, item: str, group_columns: list = None, reason: str = None):
        self.item = item
        self.group_columns = list(group_columns or [])

        if reason is None:
            grouped = ", ".join(repr(c) for c in self.group_columns) or "none"
            reason = (
                "column must appear in the GROUP BY list or be used inside an aggregate "
                f"function (grouping columns: {grouped})"
            )
        self.reason = reason
        super().__init__(f"Invalid SELECT item {item}: {reason}")


class TypeMismatchError(SqlAggError, TypeError):
    """Raised when an operation is applied to values of an incompatible type.

    Raised during planning when the schema declares the column type, otherwise
    raised the first time an offending value reaches an accumulator.
    """

    pass


class ColumnNotFoundError(SqlAggError, KeyError):
    """Raised when a referenced column does not exist in the row source.

    The message names up to ten of the columns that do exist.
    """

    _SHOWN = 10

    def __init__(self, column: str, available_columns: list = None):
        self.column = column
        self.available_columns = list(available_columns or [])

        msg = f"Column '{column}' not found"
        shown = self.available_columns[: self._SHOWN]
        if shown:
            listed = ", ".join(map(repr, shown))
            hidden = len(self.available_columns) - len(shown)
            msg += f". Available columns: [{listed}" + (f", ... {hidden} more]" if hidden else "]")
        self.message = msg
        super().__init__(msg)

    def __str__(self):
        # KeyError quotes its argument; keep the plain message
        return self.message


class ValidationError(SqlAggError, ValueError):
    """Raised when an argument or setting has an invalid value."""

    pass


class ExecutionError(SqlAggError):
    """Raised when query execution fails."""

    pass


class PipelineStateError(ExecutionError):
    """Raised when the pipeline is driven out of its fixed stage order."""

    def __init__(self, current, requested):
        self.current = current
        self.requested = requested
        super().__init__(f"Illegal pipeline transition {current.name} -> {requested.name}")
