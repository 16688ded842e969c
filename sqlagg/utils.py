"""
Helpers shared by the query builder and the expression tree: the copy-on-write
builder decorator, SQL quoting and argument checks.
"""

import functools
from collections.abc import Iterable
from typing import TypeVar, Callable, List, Sequence
from copy import copy

import numpy as np

from .exceptions import ValidationError

__all__ = [
    'immutable',
    'format_identifier',
    'format_alias',
    'normalize_ascending',
    'build_orderby_clause',
    'validate_count',
]

T = TypeVar('T')


def immutable(func: Callable[..., T]) -> Callable[..., T]:
    """
    Run a builder method on a shallow copy of ``self`` and return the copy.

    The decorated method mutates the copy and returns None (or a replacement
    object), so a partially built query can be the base of several others:

        >>> by_dept = Query().select('Dept', Count()).groupby('Dept')
        >>> big = by_dept.having(Count() > 10)
        >>> by_dept.having_condition is None
        True
    """

    @functools.wraps(func)
    def wrapper(self, *args, **kwargs):
        target = copy(self)
        returned = func(target, *args, **kwargs)
        return target if returned is None else returned

    return wrapper


def format_identifier(name: str, quote_char: str = '"') -> str:
    """
    Quote a column or table name; an empty ``quote_char`` leaves it bare.

    Example:
        >>> format_identifier("Salary")
        '"Salary"'
    """
    return f"{quote_char}{name}{quote_char}" if quote_char else name


def format_alias(sql: str, alias: str = None, quote_char: str = '"') -> str:
    """
    Append ``AS "alias"`` to rendered SQL when an alias is set.

    Example:
        >>> format_alias('SUM("Salary")', "total")
        'SUM("Salary") AS "total"'
    """
    if not alias:
        return sql
    return f"{sql} AS {format_identifier(alias, quote_char)}"


def normalize_ascending(ascending, field_count: int) -> List[bool]:
    """
    Expand an ``ascending`` argument to one flag per sort key.

    A single bool applies to every key; a sequence must match the key count.
    """
    if isinstance(ascending, (bool, np.bool_)):
        return [bool(ascending)] * field_count
    if not isinstance(ascending, Iterable) or isinstance(ascending, (str, bytes)):
        raise ValidationError(f"ascending must be a bool or a sequence of bools, got {ascending!r}")
    flags = [bool(flag) for flag in ascending]
    if len(flags) != field_count:
        raise ValidationError(f"ascending has {len(flags)} flags for {field_count} sort keys")
    return flags


def build_orderby_clause(sort_keys: Sequence, quote_char: str = '"') -> str:
    """
    Render (expression, ascending, nulls_first) triples as an ORDER BY list.

    nulls_first=None keeps the default placement and renders nothing.

    Example:
        >>> build_orderby_clause([(Field('Dept'), True, None), (Field('Salary'), False, True)])
        '"Dept" ASC, "Salary" DESC NULLS FIRST'
    """
    rendered = []
    for expression, asc, nulls_first in sort_keys:
        item = expression.to_sql(quote_char=quote_char) + (" ASC" if asc else " DESC")
        if nulls_first is not None:
            item += " NULLS FIRST" if nulls_first else " NULLS LAST"
        rendered.append(item)
    return ", ".join(rendered)


def validate_count(name: str, value) -> None:
    """
    Check a LIMIT/OFFSET style argument: None or a non-negative integer.

    Example:
        >>> validate_count('LIMIT', -1)
        Traceback (most recent call last):
        ...
        ValidationError: LIMIT must be non-negative, got -1
    """
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer, got {value!r}")
    if value < 0:
        raise ValidationError(f"{name} must be non-negative, got {value}")
