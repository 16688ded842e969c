"""
Projector (SELECT list).

Turns each surviving group (or, for a plain row query, each filtered row) into
one output tuple holding exactly the declared SELECT items. The GROUP BY
projection rule is checked when the projector is built: in an aggregating
query every raw column outside an aggregate must be a grouping column.
"""

from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Sequence, Tuple

from .analysis import free_columns, has_star, nested_aggregate
from .exceptions import ExecutionError, InvalidExpressionError, InvalidProjectionError, ValidationError
from .expression_evaluator import ExpressionEvaluator, Scope
from .expressions import Expression, Star
from .grouping import Group, GroupKey
from .source import Row

__all__ = ['OutputColumn', 'Projection', 'Projector']


@dataclass(frozen=True, eq=False)
class OutputColumn:
    """
    One SELECT item.

    Attributes:
        name: output column name (alias, else the unquoted SQL text)
        expression: the projected expression; ``Star`` expands to every row column
    """

    name: str
    expression: Expression

    @classmethod
    def of(cls, expression: Expression) -> "OutputColumn":
        if isinstance(expression, Star):
            return cls('*', expression)
        return cls(expression.output_name, expression)

    @property
    def is_star(self) -> bool:
        return isinstance(self.expression, Star)


# (output values, scope the values were computed in)
Projection = Tuple[Tuple[Any, ...], Scope]


class Projector:
    """
    Evaluates the SELECT list per group or per row.

    Example:
        >>> projector = Projector([Field('Dept'), Count().as_('n')], ['Dept'], aggregating=True)
        >>> projector.column_names()
        ['Dept', 'n']
    """

    def __init__(
        self,
        items: Sequence[Expression],
        group_columns: Sequence[str] = (),
        aggregating: bool = False,
        distinct: bool = False,
    ):
        self.group_columns = list(group_columns)
        self.aggregating = aggregating
        self.distinct = distinct
        items = list(items) or [Star()]
        for item in items:
            self._validate(item)
        self.columns: List[OutputColumn] = [OutputColumn.of(item) for item in items]
        self._evaluator = ExpressionEvaluator()

    def _validate(self, item: Any) -> None:
        if not isinstance(item, Expression):
            raise ValidationError(f"SELECT items must be column names or expressions, got {item!r}")
        if isinstance(item, Star):
            if self.aggregating:
                raise InvalidProjectionError(
                    "*", self.group_columns, "SELECT * is not allowed in a query with GROUP BY or aggregates"
                )
            return
        if has_star(item):
            raise InvalidExpressionError(item.to_sql(), "SELECT", "* is only valid as COUNT(*) or SELECT *")
        nested = nested_aggregate(item)
        if nested is not None:
            raise InvalidExpressionError(nested.identifier, "SELECT", "aggregate functions cannot be nested")
        if not self.aggregating:
            return
        for name in free_columns(item):
            if name not in self.group_columns:
                raise InvalidProjectionError(f'"{name}"', self.group_columns)

    @property
    def expressions(self) -> List[Expression]:
        return [c.expression for c in self.columns]

    def column_names(self, input_columns: Sequence[str] = ()) -> List[str]:
        """Output names; ``*`` expands to ``input_columns``."""
        names: List[str] = []
        for column in self.columns:
            if column.is_star:
                names.extend(input_columns)
            else:
                names.append(column.name)
        return names

    def project_row(self, row: Row, input_columns: Optional[Sequence[str]] = None) -> Projection:
        scope = Scope(row)
        values: List[Any] = []
        for column in self.columns:
            if column.is_star:
                names = row.columns if input_columns is None else input_columns
                values.extend(row[name] for name in names)
            else:
                values.append(self._evaluator.evaluate(column.expression, scope))
        return tuple(values), scope

    def project_group(self, group: Group) -> Projection:
        if not group.finalized:
            raise ExecutionError(f"Group {group.key!r} projected before it was finalized")
        scope = Scope(group.key_fields(self.group_columns), group.values)
        values = tuple(self._evaluator.evaluate(c.expression, scope) for c in self.columns)
        return values, scope

    def project_rows(self, rows: Iterable[Row], input_columns: Optional[Sequence[str]] = None) -> List[Projection]:
        return self._dedupe(self.project_row(row, input_columns) for row in rows)

    def project_groups(self, groups: Iterable[Group]) -> List[Projection]:
        return self._dedupe(self.project_group(group) for group in groups)

    def _dedupe(self, projections: Iterable[Projection]) -> List[Projection]:
        if not self.distinct:
            return list(projections)
        # NULL equals NULL for DISTINCT, as for grouping keys
        seen = set()
        kept = []
        for values, scope in projections:
            key = GroupKey(values)
            if key in seen:
                continue
            seen.add(key)
            kept.append((values, scope))
        return kept

    def describe(self) -> str:
        prefix = "DISTINCT " if self.distinct else ""
        return prefix + ", ".join(c.name for c in self.columns)
