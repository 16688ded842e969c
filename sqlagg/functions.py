"""
Function system for sqlagg

Scalar functions are evaluated per row (or per group over grouping keys and
aggregate values). Aggregate functions fold a group of rows into one value
through an accumulator.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Callable, Dict, Optional, Type
from copy import copy
import builtins

from .expressions import Expression, Field, Star
from .utils import format_alias
from .exceptions import ValidationError, TypeMismatchError
from .accumulators import (
    Accumulator,
    CountStarAccumulator,
    CountAccumulator,
    SumAccumulator,
    AvgAccumulator,
    MinAccumulator,
    MaxAccumulator,
    DistinctAccumulator,
)

__all__ = [
    'Function',
    'AggregateFunction',
    'F',
    'Sum',
    'Count',
    'Avg',
    'Min',
    'Max',
    'register_function',
    'scalar_function',
]


# ========== Scalar function registry ==========

_SCALAR_FUNCTIONS: Dict[str, Callable[..., Any]] = {}
_NULL_TOLERANT: set = set()


def register_function(name: str, null_propagating: bool = True):
    """
    Register a Python implementation for a scalar SQL function.

    Null-propagating functions return NULL when any argument is NULL without
    calling the implementation.

    Example:
        >>> @register_function('sign')
        ... def _sign(x):
        ...     return (x > 0) - (x < 0)
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        key = name.lower()
        _SCALAR_FUNCTIONS[key] = func
        if not null_propagating:
            _NULL_TOLERANT.add(key)
        return func

    return decorator


def scalar_function(name: str) -> Callable[..., Any]:
    """Look up a registered scalar implementation."""
    try:
        return _SCALAR_FUNCTIONS[name.lower()]
    except KeyError:
        raise ValidationError(
            f"Unknown function: {name}. Registered functions: {sorted(_SCALAR_FUNCTIONS)}"
        ) from None


def is_null_propagating(name: str) -> bool:
    return name.lower() not in _NULL_TOLERANT


def _require_text(name: str, value: Any) -> None:
    if not isinstance(value, str):
        raise TypeMismatchError(f"{name.upper()} requires text input, got {type(value).__name__}")


@register_function('abs')
def _abs(value):
    try:
        return builtins.abs(value)
    except TypeError as e:
        raise TypeMismatchError(f"ABS requires numeric input, got {type(value).__name__}") from e


@register_function('round')
def _round(value, digits=0):
    if isinstance(value, Decimal):
        return value.quantize(Decimal(1).scaleb(-int(digits)), rounding=ROUND_HALF_UP)
    try:
        return builtins.round(value, int(digits))
    except TypeError as e:
        raise TypeMismatchError(f"ROUND requires numeric input, got {type(value).__name__}") from e


@register_function('upper')
def _upper(value):
    _require_text('upper', value)
    return value.upper()


@register_function('lower')
def _lower(value):
    _require_text('lower', value)
    return value.lower()


@register_function('length')
def _length(value):
    _require_text('length', value)
    return len(value)


@register_function('coalesce', null_propagating=False)
def _coalesce(*values):
    from .logic import is_null

    for value in values:
        if not is_null(value):
            return value
    return None


class Function(Expression):
    """
    Scalar SQL function call.

    Example:
        >>> Function('UPPER', Field('name'))
        >>> Function('COALESCE', Field('bonus'), 0)
    """

    is_aggregate = False

    def __init__(self, name: str, *args: Any, alias: Optional[str] = None):
        super().__init__(alias)
        self.name = name.upper()
        self.args = [self.wrap(arg) for arg in args]
        if not self.is_aggregate:
            # Fail at construction, not when the first row arrives
            scalar_function(self.name)

    def children(self):
        return tuple(self.args)

    def get_special_params_sql(self, **kwargs) -> str:
        """
        Prefix rendered before the argument list (e.g. DISTINCT).
        """
        return ""

    def to_sql(self, quote_char: str = '"', **kwargs) -> str:
        inner = {k: v for k, v in kwargs.items() if k != 'with_alias'}
        args_sql = ','.join(arg.to_sql(quote_char=quote_char, **inner) for arg in self.args)

        prefix = self.get_special_params_sql(**kwargs)
        if prefix:
            sql = f"{self.name}({prefix} {args_sql})"
        else:
            sql = f"{self.name}({args_sql})"

        if kwargs.get('with_alias', False) and self.alias:
            return format_alias(sql, self.alias, quote_char)

        return sql

    def __copy__(self):
        return Function(self.name, *[copy(arg) for arg in self.args], alias=self.alias)


class AggregateFunction(Function):
    """
    Base class for aggregate functions (SUM, COUNT, AVG, MIN, MAX).

    Subclasses name their accumulator; ``distinct=True`` feeds each distinct
    non-NULL value to it once. The aggregate's identity is its SQL text, so
    ``Sum('x')`` used in SELECT and in HAVING shares one accumulator.
    """

    is_aggregate = True
    function_name: str = ""
    accumulator_class: Type[Accumulator] = Accumulator

    def __init__(self, argument: Any = None, distinct: bool = False, alias: Optional[str] = None):
        if argument is None:
            raise ValidationError(f"{self.function_name} requires an argument")
        if isinstance(argument, str):
            argument = Star() if argument == '*' else Field(argument)
        super().__init__(self.function_name, argument, alias=alias)
        if isinstance(self.argument, Star) and type(self) is not Count:
            raise ValidationError(f"{self.function_name}(*) is not allowed; only COUNT(*) is")
        if isinstance(self.argument, Star) and distinct:
            raise ValidationError("COUNT(DISTINCT *) is not allowed")
        self.distinct = distinct

    @property
    def argument(self) -> Expression:
        return self.args[0]

    @property
    def is_count_star(self) -> bool:
        return isinstance(self.argument, Star)

    def get_special_params_sql(self, **kwargs) -> str:
        return "DISTINCT" if self.distinct else ""

    def create_accumulator(self, empty_sum: Any = None) -> Accumulator:
        """Fresh accumulator for one group."""
        accumulator = self._new_accumulator(empty_sum)
        if self.distinct:
            return DistinctAccumulator(accumulator)
        return accumulator

    def _new_accumulator(self, empty_sum: Any) -> Accumulator:
        return self.accumulator_class(self.identifier)

    def __copy__(self):
        return type(self)(copy(self.argument), distinct=self.distinct, alias=self.alias)


class Count(AggregateFunction):
    """
    COUNT(*) or COUNT([DISTINCT] x).

    Example:
        >>> Count()          # COUNT(*)
        >>> Count('Salary')  # COUNT("Salary"), NULLs not counted
    """

    function_name = "COUNT"
    accumulator_class = CountAccumulator

    def __init__(self, argument: Any = '*', distinct: bool = False, alias: Optional[str] = None):
        super().__init__(argument, distinct=distinct, alias=alias)

    def _new_accumulator(self, empty_sum: Any) -> Accumulator:
        if self.is_count_star:
            return CountStarAccumulator(self.identifier)
        return CountAccumulator(self.identifier)


class Sum(AggregateFunction):
    """SUM([DISTINCT] x)."""

    function_name = "SUM"
    accumulator_class = SumAccumulator

    def _new_accumulator(self, empty_sum: Any) -> Accumulator:
        return SumAccumulator(self.identifier, empty_value=empty_sum)


class Avg(AggregateFunction):
    """AVG([DISTINCT] x)."""

    function_name = "AVG"
    accumulator_class = AvgAccumulator


class Min(AggregateFunction):
    """MIN(x)."""

    function_name = "MIN"
    accumulator_class = MinAccumulator


class Max(AggregateFunction):
    """MAX(x)."""

    function_name = "MAX"
    accumulator_class = MaxAccumulator


# ========== Function namespace ==========


class F:
    """
    Function namespace for explicit function calls.

    Example:
        >>> from sqlagg import F
        >>> F.count()                  # COUNT(*)
        >>> F.sum('Salary')            # SUM("Salary")
        >>> F.count_distinct('Dept')   # COUNT(DISTINCT "Dept")
        >>> F.upper('name')            # UPPER("name")
    """

    @staticmethod
    def _arg(value: Any) -> Expression:
        return Field(value) if isinstance(value, str) else Expression.wrap(value)

    @staticmethod
    def count(expr: Any = '*', alias: str = None) -> Count:
        return Count(expr, alias=alias)

    @staticmethod
    def count_distinct(expr: Any, alias: str = None) -> Count:
        return Count(expr, distinct=True, alias=alias)

    @staticmethod
    def sum(expr: Any, distinct: bool = False, alias: str = None) -> Sum:
        return Sum(expr, distinct=distinct, alias=alias)

    @staticmethod
    def avg(expr: Any, distinct: bool = False, alias: str = None) -> Avg:
        return Avg(expr, distinct=distinct, alias=alias)

    mean = avg

    @staticmethod
    def min(expr: Any, alias: str = None) -> Min:
        return Min(expr, alias=alias)

    @staticmethod
    def max(expr: Any, alias: str = None) -> Max:
        return Max(expr, alias=alias)

    @staticmethod
    def abs(expr: Any, alias: str = None) -> Function:
        return Function('ABS', F._arg(expr), alias=alias)

    @staticmethod
    def round(expr: Any, digits: int = 0, alias: str = None) -> Function:
        return Function('ROUND', F._arg(expr), digits, alias=alias)

    @staticmethod
    def upper(expr: Any, alias: str = None) -> Function:
        return Function('UPPER', F._arg(expr), alias=alias)

    @staticmethod
    def lower(expr: Any, alias: str = None) -> Function:
        return Function('LOWER', F._arg(expr), alias=alias)

    @staticmethod
    def length(expr: Any, alias: str = None) -> Function:
        return Function('LENGTH', F._arg(expr), alias=alias)

    @staticmethod
    def coalesce(*exprs: Any, alias: str = None) -> Function:
        return Function('COALESCE', *[F._arg(e) for e in exprs], alias=alias)
