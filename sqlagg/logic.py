"""
NULL handling and three-valued logic.

SQL comparisons involving NULL are neither true nor false. Predicates are
therefore evaluated to a ``Truth`` value and only ``Truth.TRUE`` lets a row or
group through a filter.
"""

from enum import Enum
from typing import Any

import pandas as pd

__all__ = ['Truth', 'NULL', 'is_null']


class _NullType:
    """
    Singleton marker for SQL NULL inside group keys.

    Unlike float NaN it equals itself and hashes consistently, so rows with
    NULL in a grouping column land in the same group.
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __eq__(self, other: Any) -> bool:
        return other is self

    def __hash__(self) -> int:
        return hash("sqlagg.NULL")

    def __repr__(self) -> str:
        return "NULL"

    def __reduce__(self):
        return (_NullType, ())


NULL = _NullType()


def is_null(value: Any) -> bool:
    """
    True for every representation of a missing value.

    None, NaN (Python or numpy), ``pd.NA``, ``pd.NaT`` and the ``NULL`` marker
    are all NULL.

    Example:
        >>> is_null(None), is_null(float('nan')), is_null(0)
        (True, True, False)
    """
    if value is None or value is NULL:
        return True
    if isinstance(value, (str, bytes, list, tuple, dict, set, frozenset)):
        return False
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


class Truth(Enum):
    """Three-valued logic result: TRUE, FALSE or UNKNOWN."""

    TRUE = "TRUE"
    FALSE = "FALSE"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def of(cls, value: Any) -> "Truth":
        """Convert a Python value; NULL becomes UNKNOWN."""
        if isinstance(value, Truth):
            return value
        if is_null(value):
            return cls.UNKNOWN
        return cls.TRUE if value else cls.FALSE

    def __and__(self, other: "Truth") -> "Truth":
        if self is Truth.FALSE or other is Truth.FALSE:
            return Truth.FALSE
        if self is Truth.UNKNOWN or other is Truth.UNKNOWN:
            return Truth.UNKNOWN
        return Truth.TRUE

    def __or__(self, other: "Truth") -> "Truth":
        if self is Truth.TRUE or other is Truth.TRUE:
            return Truth.TRUE
        if self is Truth.UNKNOWN or other is Truth.UNKNOWN:
            return Truth.UNKNOWN
        return Truth.FALSE

    def __xor__(self, other: "Truth") -> "Truth":
        if self is Truth.UNKNOWN or other is Truth.UNKNOWN:
            return Truth.UNKNOWN
        return Truth.TRUE if (self is Truth.TRUE) != (other is Truth.TRUE) else Truth.FALSE

    def __invert__(self) -> "Truth":
        if self is Truth.UNKNOWN:
            return Truth.UNKNOWN
        return Truth.FALSE if self is Truth.TRUE else Truth.TRUE

    def is_satisfied(self) -> bool:
        """Filter boundary: UNKNOWN is excluded just like FALSE."""
        return self is Truth.TRUE

    def to_value(self):
        """Convert to a SQL value: True, False or None."""
        if self is Truth.UNKNOWN:
            return None
        return self is Truth.TRUE
