"""
Row and group filters (WHERE and HAVING).

Both filters validate their predicate when constructed, before any row is
read, and fold the three-valued result at the filter boundary: only TRUE
passes, FALSE and UNKNOWN are excluded.
"""

from typing import Iterable, Iterator, Optional, Sequence

from .analysis import aggregates_in, free_columns, has_star, nested_aggregate
from .conditions import Condition
from .exceptions import ExecutionError, InvalidExpressionError, ValidationError
from .expression_evaluator import ExpressionEvaluator, Scope
from .grouping import Group
from .logic import Truth
from .source import Row

__all__ = ['PredicateFilter', 'GroupPredicateFilter']


def _require_condition(condition, clause: str) -> None:
    if not isinstance(condition, Condition):
        raise ValidationError(
            f"{clause} requires a condition built from expressions (e.g. col('x') > 1), got {condition!r}"
        )


class PredicateFilter:
    """
    WHERE: row-level predicate applied before grouping.

    The predicate may reference row columns only; aggregates are rejected.

    Example:
        >>> where = PredicateFilter(col('Salary') > 45000)
        >>> [r['Salary'] for r in where.apply(rows)]
        [50000, 70000]
    """

    clause = "WHERE"

    def __init__(self, condition: Optional[Condition]):
        if condition is not None:
            _require_condition(condition, self.clause)
            aggregates = aggregates_in(condition)
            if aggregates:
                raise InvalidExpressionError(
                    aggregates[0].identifier,
                    self.clause,
                    "aggregate functions are evaluated after grouping; use HAVING",
                )
            if has_star(condition):
                raise InvalidExpressionError("*", self.clause, "* is only valid as COUNT(*) or SELECT *")
        self.condition = condition
        self._evaluator = ExpressionEvaluator()

    def evaluate(self, row: Row) -> Truth:
        if self.condition is None:
            return Truth.TRUE
        return self._evaluator.evaluate_truth(self.condition, Scope(row))

    def accepts(self, row: Row) -> bool:
        return self.evaluate(row).is_satisfied()

    def apply(self, rows: Iterable[Row]) -> Iterator[Row]:
        for row in rows:
            if self.accepts(row):
                yield row

    def describe(self) -> str:
        return self.condition.to_sql() if self.condition is not None else "TRUE"


class GroupPredicateFilter:
    """
    HAVING: group-level predicate over grouping keys and finalized aggregates.

    Raw columns are allowed only when they are grouping columns (or appear
    inside an aggregate). Groups must be finalized before they are tested.

    Example:
        >>> having = GroupPredicateFilter(Avg('Salary') > 50000, ['Dept'])
        >>> [g.key.values() for g in having.apply(groups)]
        [('IT',)]
    """

    clause = "HAVING"

    def __init__(self, condition: Optional[Condition], group_columns: Sequence[str]):
        self.group_columns = list(group_columns)
        if condition is not None:
            _require_condition(condition, self.clause)
            nested = nested_aggregate(condition)
            if nested is not None:
                raise InvalidExpressionError(nested.identifier, self.clause, "aggregate functions cannot be nested")
            if has_star(condition):
                raise InvalidExpressionError("*", self.clause, "* is only valid as COUNT(*)")
            for name in free_columns(condition):
                if name not in self.group_columns:
                    raise InvalidExpressionError(
                        f'"{name}"',
                        self.clause,
                        "column must appear in the GROUP BY list or be used inside an aggregate function",
                    )
        self.condition = condition
        self._evaluator = ExpressionEvaluator()

    @property
    def aggregates(self):
        return aggregates_in(self.condition) if self.condition is not None else []

    def evaluate(self, group: Group) -> Truth:
        if not group.finalized:
            raise ExecutionError(f"HAVING evaluated before group {group.key!r} was finalized")
        if self.condition is None:
            return Truth.TRUE
        scope = Scope(group.key_fields(self.group_columns), group.values)
        return self._evaluator.evaluate_truth(self.condition, scope)

    def accepts(self, group: Group) -> bool:
        return self.evaluate(group).is_satisfied()

    def apply(self, groups: Iterable[Group]) -> Iterator[Group]:
        for group in groups:
            if self.accepts(group):
                yield group

    def describe(self) -> str:
        return self.condition.to_sql() if self.condition is not None else "TRUE"
