"""
Sorter and Limiter (ORDER BY, LIMIT/OFFSET).
"""

from dataclasses import dataclass
from functools import cmp_to_key
from typing import Any, List, Optional, Sequence, Tuple

from .exceptions import TypeMismatchError
from .expression_evaluator import ExpressionEvaluator
from .expressions import Expression
from .logic import is_null
from .projector import Projection
from .utils import build_orderby_clause, validate_count

__all__ = ['SortKey', 'Sorter', 'Limiter']


@dataclass(frozen=True, eq=False)
class SortKey:
    """
    One ORDER BY item.

    Attributes:
        expression: the sort expression
        ascending: sort direction
        nulls_first: NULL placement; None means last when ascending and
            first when descending
        output_index: position in the output row when the key resolved to a
            SELECT item, else None (the expression is evaluated instead)
    """

    expression: Expression
    ascending: bool = True
    nulls_first: Optional[bool] = None
    output_index: Optional[int] = None

    @property
    def places_nulls_first(self) -> bool:
        return (not self.ascending) if self.nulls_first is None else self.nulls_first


class Sorter:
    """
    Stable multi-key sort of projected rows.

    Rows whose keys compare equal keep their incoming order, which is the
    first-seen group order (or input order for a plain row query).

    Example:
        >>> sorter = Sorter([SortKey(Field('total'), ascending=False, output_index=1)])
        >>> [values for values, _ in sorter.sort(projections)]
        [('IT', 120000), ('HR', 40000)]
    """

    def __init__(self, keys: Sequence[SortKey]):
        self.keys: List[SortKey] = list(keys)
        self._evaluator = ExpressionEvaluator()

    def key_values(self, projection: Projection) -> Tuple[Any, ...]:
        values, scope = projection
        result = []
        for key in self.keys:
            if key.output_index is not None:
                result.append(values[key.output_index])
            else:
                result.append(self._evaluator.evaluate(key.expression, scope))
        return tuple(result)

    def _compare(self, left: Tuple[Any, ...], right: Tuple[Any, ...]) -> int:
        for key, a, b in zip(self.keys, left, right):
            a_null = is_null(a)
            b_null = is_null(b)
            if a_null or b_null:
                if a_null and b_null:
                    continue
                nulls_first = key.places_nulls_first
                return (-1 if nulls_first else 1) if a_null else (1 if nulls_first else -1)
            try:
                if a < b:
                    order = -1
                elif b < a:
                    order = 1
                else:
                    continue
            except TypeError as e:
                raise TypeMismatchError(
                    f"ORDER BY {key.expression.to_sql()} cannot compare "
                    f"{type(a).__name__} with {type(b).__name__}"
                ) from e
            return order if key.ascending else -order
        return 0

    def sort(self, projections: Sequence[Projection]) -> List[Projection]:
        if not self.keys:
            return list(projections)
        keyed = [(self.key_values(p), p) for p in projections]
        keyed.sort(key=cmp_to_key(lambda x, y: self._compare(x[0], y[0])))
        return [p for _, p in keyed]

    def describe(self) -> str:
        if not self.keys:
            return "input order"
        return build_orderby_clause([(k.expression, k.ascending, k.nulls_first) for k in self.keys])


class Limiter:
    """LIMIT / OFFSET truncation of the sorted rows."""

    def __init__(self, limit: Optional[int] = None, offset: Optional[int] = None):
        validate_count("LIMIT", limit)
        validate_count("OFFSET", offset)
        self.limit = limit
        self.offset = offset or 0

    def apply(self, rows: Sequence[Any]) -> List[Any]:
        end = None if self.limit is None else self.offset + self.limit
        return list(rows[self.offset:end])

    def describe(self) -> str:
        parts = []
        if self.limit is not None:
            parts.append(f"LIMIT {self.limit}")
        if self.offset:
            parts.append(f"OFFSET {self.offset}")
        return " ".join(parts) or "no limit"
