"""
Query results.
"""

from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

import pandas as pd

from .exceptions import ColumnNotFoundError

__all__ = ['QueryResult']


class QueryResult:
    """
    Output of one query: column names plus ordered row tuples.

    Example:
        >>> result = query.execute(df)
        >>> result.column_names
        ['Dept', 'n']
        >>> result.fetchall()
        [('IT', 2), ('HR', 1)]
        >>> result.to_df()
    """

    def __init__(self, column_names: Sequence[str], rows: Sequence[Tuple] = ()):
        self._column_names = list(column_names)
        self._rows = [tuple(row) for row in rows]

    @property
    def rows(self) -> List[Tuple]:
        return self._rows

    @property
    def column_names(self) -> List[str]:
        return self._column_names

    @property
    def row_count(self) -> int:
        return len(self._rows)

    def fetchone(self) -> Optional[Tuple]:
        """First row, or None for an empty result."""
        return self._rows[0] if self._rows else None

    def fetchall(self) -> List[Tuple]:
        return list(self._rows)

    def fetchmany(self, size: int) -> List[Tuple]:
        return self._rows[:size]

    def column(self, name: str) -> List[Any]:
        """All values of the output column ``name``, in row order."""
        if name not in self._column_names:
            raise ColumnNotFoundError(name, self._column_names)
        i = self._column_names.index(name)
        return [row[i] for row in self._rows]

    def to_dict(self) -> List[Dict[str, Any]]:
        """One ``{column: value}`` dict per row."""
        return [dict(zip(self._column_names, row)) for row in self._rows]

    def to_df(self) -> pd.DataFrame:
        """
        Result as a pandas DataFrame with the output column names.

        pandas stores NULL as None in object columns and NaN in numeric ones.
        """
        return pd.DataFrame(self._rows, columns=self._column_names)

    def __iter__(self) -> Iterator[Tuple]:
        return iter(self._rows)

    def __len__(self) -> int:
        return len(self._rows)

    def __getitem__(self, index):
        return self._rows[index]

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, QueryResult):
            return NotImplemented
        return (self._column_names, self._rows) == (other._column_names, other._rows)

    __hash__ = None

    def __repr__(self) -> str:
        return f"QueryResult(rows={len(self._rows)}, columns={len(self._column_names)})"
