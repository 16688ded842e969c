"""
Row sources: the ordered input rows of a query and their column schema.

Rows reach the engine as immutable ``Row`` mappings. A source may come from
plain Python mappings or from a pandas DataFrame; in both cases missing values
are normalized to ``None`` and numpy scalars to Python scalars.
"""

import datetime
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .config import get_logger
from .exceptions import ColumnNotFoundError, ValidationError
from .logic import is_null

__all__ = [
    'Row',
    'Column',
    'Schema',
    'ColumnKind',
    'RowSource',
    'IterableSource',
    'DataFrameSource',
    'as_source',
]


class ColumnKind:
    """Scalar kinds a column may declare."""

    INTEGER = "integer"
    FLOAT = "float"
    DECIMAL = "decimal"
    TEXT = "text"
    DATE = "date"
    BOOLEAN = "boolean"
    ANY = "any"

    ALL = (INTEGER, FLOAT, DECIMAL, TEXT, DATE, BOOLEAN, ANY)
    NUMERIC = (INTEGER, FLOAT, DECIMAL)


# pandas.api.types.infer_dtype result -> column kind
_INFERRED_KINDS = {
    "string": ColumnKind.TEXT,
    "integer": ColumnKind.INTEGER,
    "floating": ColumnKind.FLOAT,
    "mixed-integer-float": ColumnKind.FLOAT,
    "decimal": ColumnKind.DECIMAL,
    "boolean": ColumnKind.BOOLEAN,
    "date": ColumnKind.DATE,
    "datetime": ColumnKind.DATE,
    "datetime64": ColumnKind.DATE,
}


def to_python_scalar(value: Any) -> Any:
    """
    Normalize one cell value: NULL-likes -> None, numpy/pandas scalars -> Python.
    """
    if is_null(value):
        return None
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    if isinstance(value, np.generic):
        return value.item()
    return value


class Row(Mapping):
    """
    Immutable ordered mapping from column name to scalar value.

    Example:
        >>> row = Row(('Dept', 'Salary'), ('IT', 50000))
        >>> row['Salary']
        50000
    """

    __slots__ = ('_columns', '_values')

    def __init__(self, columns: Sequence[str], values: Sequence[Any]):
        if len(columns) != len(values):
            raise ValidationError(f"Row has {len(values)} values for {len(columns)} columns")
        object.__setattr__(self, '_columns', tuple(columns))
        object.__setattr__(self, '_values', dict(zip(self._columns, values)))

    def __getitem__(self, key: str) -> Any:
        try:
            return self._values[key]
        except KeyError:
            raise ColumnNotFoundError(key, list(self._columns)) from None

    def __iter__(self) -> Iterator[str]:
        return iter(self._columns)

    def __len__(self) -> int:
        return len(self._columns)

    def __setattr__(self, name, value):
        raise AttributeError("Row is immutable")

    @property
    def columns(self) -> Tuple[str, ...]:
        return self._columns

    def as_tuple(self) -> Tuple[Any, ...]:
        return tuple(self._values[c] for c in self._columns)

    def __repr__(self) -> str:
        inner = ", ".join(f"{c}={self._values[c]!r}" for c in self._columns)
        return f"Row({inner})"


@dataclass(frozen=True)
class Column:
    """A named column and its scalar kind."""

    name: str
    kind: str = ColumnKind.ANY

    def __post_init__(self):
        if self.kind not in ColumnKind.ALL:
            raise ValidationError(f"Unknown column kind {self.kind!r}. Use one of {ColumnKind.ALL}")


class Schema:
    """
    Ordered column declarations of a row source.

    Example:
        >>> Schema([Column('Dept', 'text'), Column('Salary', 'integer')])
        >>> Schema.from_names(['Dept', 'Salary'])  # kinds unknown
    """

    def __init__(self, columns: Iterable[Column]):
        self.columns: List[Column] = list(columns)
        self._by_name: Dict[str, Column] = {}
        for column in self.columns:
            if column.name in self._by_name:
                raise ValidationError(f"Duplicate column {column.name!r} in schema")
            self._by_name[column.name] = column

    @classmethod
    def from_names(cls, names: Iterable[str]) -> "Schema":
        return cls(Column(str(name)) for name in names)

    @classmethod
    def infer(cls, columns: Sequence[str], rows: Sequence[Sequence[Any]]) -> "Schema":
        """Infer column kinds from values (NULLs are skipped)."""
        declared = []
        for i, name in enumerate(columns):
            values = [row[i] for row in rows if not is_null(row[i])]
            declared.append(Column(name, _infer_kind(values)))
        return cls(declared)

    @classmethod
    def from_dataframe(cls, df: pd.DataFrame) -> "Schema":
        """Map pandas dtypes to column kinds."""
        declared = []
        for name in df.columns:
            series = df[name]
            dtype = series.dtype
            if pd.api.types.is_bool_dtype(dtype):
                kind = ColumnKind.BOOLEAN
            elif pd.api.types.is_integer_dtype(dtype):
                kind = ColumnKind.INTEGER
            elif pd.api.types.is_float_dtype(dtype):
                kind = ColumnKind.FLOAT
            elif pd.api.types.is_datetime64_any_dtype(dtype):
                kind = ColumnKind.DATE
            else:
                kind = _infer_kind(series)
            declared.append(Column(str(name), kind))
        return cls(declared)

    @property
    def names(self) -> List[str]:
        return [c.name for c in self.columns]

    def __contains__(self, name: str) -> bool:
        return name in self._by_name

    def __len__(self) -> int:
        return len(self.columns)

    def __iter__(self) -> Iterator[Column]:
        return iter(self.columns)

    def column(self, name: str) -> Column:
        try:
            return self._by_name[name]
        except KeyError:
            raise ColumnNotFoundError(name, self.names) from None

    def kind_of(self, name: str) -> str:
        return self.column(name).kind

    def __repr__(self) -> str:
        inner = ", ".join(f"{c.name}:{c.kind}" for c in self.columns)
        return f"Schema({inner})"


def _infer_kind(values) -> str:
    if len(values) == 0:
        return ColumnKind.ANY
    inferred = pd.api.types.infer_dtype(values, skipna=True)
    kind = _INFERRED_KINDS.get(inferred)
    if kind is not None:
        return kind
    # infer_dtype reports 'mixed' for Python date objects mixed with datetimes
    if all(isinstance(v, (datetime.date, datetime.datetime)) for v in values):
        return ColumnKind.DATE
    if all(isinstance(v, Decimal) for v in values):
        return ColumnKind.DECIMAL
    return ColumnKind.ANY


class RowSource:
    """
    Base class for row sources.

    Subclasses provide ``schema`` and iterate ``Row`` objects in a stable
    order; iterating twice yields the same rows.
    """

    schema: Schema

    def __iter__(self) -> Iterator[Row]:
        raise NotImplementedError(f"{type(self).__name__} must implement __iter__()")

    def describe(self) -> str:
        return f"{type(self).__name__}({len(self.schema)} columns)"


class IterableSource(RowSource):
    """
    Rows from Python mappings (or sequences together with ``columns``).

    Columns are the union of mapping keys in first-seen order; a key missing
    from a mapping is NULL. Kinds are inferred unless a schema is given.

    Example:
        >>> IterableSource([{'Dept': 'IT', 'Salary': 50000}])
        >>> IterableSource([('IT', 50000)], columns=['Dept', 'Salary'])
    """

    def __init__(
        self,
        rows: Iterable[Any],
        columns: Optional[Sequence[str]] = None,
        schema: Optional[Schema] = None,
    ):
        rows = list(rows)
        if columns is None and schema is not None:
            columns = schema.names
        if columns is None:
            columns = []
            seen = set()
            for row in rows:
                if not isinstance(row, Mapping):
                    raise ValidationError("Rows without column names must be mappings; pass columns=")
                for key in row:
                    if key not in seen:
                        seen.add(key)
                        columns.append(key)
        # mapping keys keep their type for lookups; names are always str
        keys = list(columns)
        columns = [str(c) for c in keys]
        if len(set(columns)) != len(columns):
            raise ValidationError(f"Column names collide once converted to text: {keys!r}")

        values: List[Tuple[Any, ...]] = []
        for row in rows:
            if isinstance(row, Mapping):
                values.append(tuple(to_python_scalar(row.get(key)) for key in keys))
            else:
                row = tuple(row)
                if len(row) != len(columns):
                    raise ValidationError(f"Row {row!r} has {len(row)} values for {len(columns)} columns")
                values.append(tuple(to_python_scalar(v) for v in row))

        self._columns = tuple(columns)
        self._values = values
        self.schema = schema if schema is not None else Schema.infer(self._columns, values)
        get_logger().debug("IterableSource: %d rows, %s", len(values), self.schema)

    def __iter__(self) -> Iterator[Row]:
        for values in self._values:
            yield Row(self._columns, values)

    def __len__(self) -> int:
        return len(self._values)


class DataFrameSource(RowSource):
    """
    Rows from a pandas DataFrame, in index order.

    Example:
        >>> df = pd.DataFrame({'Dept': ['IT', 'HR'], 'Salary': [50000, 40000]})
        >>> source = DataFrameSource(df)
        >>> source.schema
        Schema(Dept:text, Salary:integer)
    """

    def __init__(self, df: pd.DataFrame):
        if not isinstance(df, pd.DataFrame):
            raise ValidationError(f"DataFrameSource requires a pandas DataFrame, got {type(df).__name__}")
        if df.columns.duplicated().any():
            raise ValidationError("DataFrame has duplicate column names")
        self._df = df
        self._columns = tuple(str(c) for c in df.columns)
        self.schema = Schema.from_dataframe(df)
        get_logger().debug("DataFrameSource: %d rows, %s", len(df), self.schema)

    def __iter__(self) -> Iterator[Row]:
        for values in self._df.itertuples(index=False, name=None):
            yield Row(self._columns, tuple(to_python_scalar(v) for v in values))

    def __len__(self) -> int:
        return len(self._df)


def as_source(data: Any, schema: Optional[Schema] = None) -> RowSource:
    """
    Coerce supported inputs to a RowSource.

    Accepts a RowSource, a pandas DataFrame, or an iterable of mappings.
    ``schema`` declares the columns of iterable input only.
    """
    if isinstance(data, RowSource):
        return data
    if isinstance(data, pd.DataFrame):
        if schema is not None:
            raise ValidationError("schema= applies to iterable input; a DataFrame carries its own dtypes")
        return DataFrameSource(data)
    if isinstance(data, (str, bytes)) or not isinstance(data, Iterable):
        raise ValidationError(f"Cannot use {type(data).__name__} as a row source")
    return IterableSource(data, schema=schema)
