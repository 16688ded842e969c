"""
Query Planner for sqlagg.

Compiles a ``Query`` into a validated ``QueryPlan`` before any row is read.
Every structural rule is checked here: where aggregates may appear, the
GROUP BY projection rule, column existence against a known schema and the
statically knowable type errors. Execution (``pipeline``) only ever sees
plans that passed validation.

Key Classes:
- QueryPlan: validated, ready-to-run components of one query
- QueryPlanner: builds QueryPlans from Query objects
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, TYPE_CHECKING

from .aggregator import AggregateSpec, Aggregator
from .analysis import aggregates_in, columns_in, free_columns, has_aggregate, has_star, nested_aggregate
from .conditions import Condition
from .config import get_empty_sum, get_logger
from .exceptions import ColumnNotFoundError, InvalidExpressionError, TypeMismatchError
from .expressions import Expression, Field
from .filters import GroupPredicateFilter, PredicateFilter
from .functions import Avg, Sum
from .projector import Projector
from .source import ColumnKind, Schema
from .sorter import Limiter, SortKey, Sorter

if TYPE_CHECKING:
    from .query import Query

__all__ = ['QueryPlan', 'QueryPlanner']

# Kinds SUM and AVG cannot add up
_NON_ADDITIVE_KINDS = (ColumnKind.TEXT, ColumnKind.DATE, ColumnKind.BOOLEAN)


@dataclass(eq=False)
class QueryPlan:
    """
    Validated execution plan of one query.

    Attributes:
        group_columns: GROUP BY column names (empty: one implicit group when aggregating)
        aggregating: True when the query groups rows (GROUP BY, HAVING or any aggregate)
        aggregates: distinct aggregate expressions of SELECT, HAVING and ORDER BY
        where_filter: WHERE component
        having_filter: HAVING component (None for plain row queries)
        projector: SELECT component
        sorter: ORDER BY component
        limiter: LIMIT/OFFSET component
        aggregator: accumulator factory for ``aggregates``
        schema: schema the plan was validated against, if any
    """

    group_columns: List[str] = field(default_factory=list)
    aggregating: bool = False
    aggregates: List[AggregateSpec] = field(default_factory=list)
    where_filter: Optional[PredicateFilter] = None
    having_filter: Optional[GroupPredicateFilter] = None
    projector: Optional[Projector] = None
    sorter: Optional[Sorter] = None
    limiter: Optional[Limiter] = None
    aggregator: Optional[Aggregator] = None
    schema: Optional[Schema] = None

    @property
    def where(self) -> Optional[Condition]:
        return self.where_filter.condition if self.where_filter is not None else None

    @property
    def having(self) -> Optional[Condition]:
        return self.having_filter.condition if self.having_filter is not None else None

    @property
    def order_keys(self) -> List[SortKey]:
        return self.sorter.keys if self.sorter is not None else []

    @property
    def output_columns(self):
        return self.projector.columns

    def describe(self) -> str:
        """Return a human-readable description of the plan."""
        lines = ["QueryPlan:"]
        lines.append(f"  Aggregating: {self.aggregating}")
        lines.append(f"  [1] SCAN: {self.schema if self.schema is not None else 'schema unknown'}")
        lines.append(f"  [2] FILTER_WHERE: {self.where_filter.describe()}")
        if self.aggregating:
            lines.append(f"  [3] GROUP: {', '.join(self.group_columns) or '(single implicit group)'}")
            lines.append(f"  [4] AGGREGATE: {self.aggregator.describe()}")
            lines.append(f"  [5] FILTER_HAVING: {self.having_filter.describe()}")
        else:
            lines.append("  [3] GROUP: skipped (row query)")
            lines.append("  [4] AGGREGATE: skipped (row query)")
            lines.append("  [5] FILTER_HAVING: skipped (row query)")
        lines.append(f"  [6] PROJECT: {self.projector.describe()}")
        lines.append(f"  [7] SORT: {self.sorter.describe()}")
        lines.append(f"  [8] LIMIT: {self.limiter.describe()}")
        return "\n".join(lines)


class QueryPlanner:
    """
    Validates a Query and produces its QueryPlan.

    Example:
        >>> planner = QueryPlanner()
        >>> plan = planner.plan(query, schema=source.schema)
        >>> print(plan.describe())
    """

    def __init__(self, empty_sum: str = None):
        self._logger = get_logger()
        self.empty_sum = empty_sum

    def plan(self, query: "Query", schema: Optional[Schema] = None) -> QueryPlan:
        # A schema without columns (e.g. from an empty iterable) says nothing
        if schema is not None and len(schema) == 0:
            schema = None

        group_columns = list(query._groupby_fields)
        select_items = list(query._select_fields)
        having = query._having_condition

        for clause, items in (("SELECT", select_items), ("HAVING", [having] if having is not None else [])):
            for item in items:
                self._check_nesting(item, clause)
        for expression, _, _ in query._orderby_fields:
            self._check_nesting(expression, "ORDER BY")

        aggregating = bool(group_columns) or having is not None
        aggregating = aggregating or any(isinstance(i, Expression) and has_aggregate(i) for i in select_items)
        aggregating = aggregating or any(has_aggregate(e) for e, _, _ in query._orderby_fields)

        where_filter = PredicateFilter(query._where_condition)
        projector = Projector(select_items, group_columns, aggregating=aggregating, distinct=query._distinct)
        having_filter = GroupPredicateFilter(having, group_columns) if aggregating else None
        order_keys = self._plan_order_keys(query, projector, group_columns, aggregating)

        self._check_columns(
            schema,
            group_columns,
            [where_filter.condition, having]
            + projector.expressions
            + [k.expression for k in order_keys if k.output_index is None],
        )

        aggregates = self._collect_aggregates(
            projector.expressions + ([having] if having is not None else []) + [
                k.expression for k in order_keys if k.output_index is None
            ]
        )
        self._check_aggregate_types(schema, aggregates)

        plan = QueryPlan(
            group_columns=group_columns,
            aggregating=aggregating,
            aggregates=aggregates,
            where_filter=where_filter,
            having_filter=having_filter,
            projector=projector,
            sorter=Sorter(order_keys),
            limiter=Limiter(query._limit_value, query._offset_value),
            aggregator=Aggregator(aggregates, self.empty_sum if self.empty_sum is not None else get_empty_sum()),
            schema=schema,
        )
        self._logger.debug("Planned query: %s", query.to_sql())
        for line in plan.describe().split("\n"):
            self._logger.debug("  %s", line)
        return plan

    # ========== Validation ==========

    @staticmethod
    def _check_nesting(item, clause: str) -> None:
        if not isinstance(item, Expression):
            return
        nested = nested_aggregate(item)
        if nested is not None:
            raise InvalidExpressionError(nested.identifier, clause, "aggregate functions cannot be nested")

    def _plan_order_keys(
        self, query: "Query", projector: Projector, group_columns: List[str], aggregating: bool
    ) -> List[SortKey]:
        """
        Resolve ORDER BY items.

        An item that names a SELECT output (alias or output name) or repeats a
        SELECT expression sorts by that output column. Anything else is
        evaluated per group (grouping columns and aggregates only) or per row.
        """
        by_name: Dict[str, int] = {}
        by_identifier: Dict[str, int] = {}
        for index, column in enumerate(projector.columns):
            if column.is_star:
                continue
            by_name.setdefault(column.name, index)
            by_identifier.setdefault(column.expression.identifier, index)

        keys = []
        for expression, ascending, nulls_first in query._orderby_fields:
            index = None
            if isinstance(expression, Field) and expression.name in by_name:
                index = by_name[expression.name]
            elif expression.identifier in by_identifier:
                index = by_identifier[expression.identifier]

            if index is None:
                self._validate_order_expression(expression, projector, group_columns, aggregating)
            keys.append(SortKey(expression, ascending, nulls_first, index))
        return keys

    @staticmethod
    def _validate_order_expression(
        expression: Expression, projector: Projector, group_columns: List[str], aggregating: bool
    ) -> None:
        if has_star(expression):
            raise InvalidExpressionError(expression.to_sql(), "ORDER BY", "* cannot be sorted on")
        if projector.distinct:
            raise InvalidExpressionError(
                expression.to_sql(), "ORDER BY", "with SELECT DISTINCT, ORDER BY items must appear in the SELECT list"
            )
        if not aggregating:
            return
        for name in free_columns(expression):
            if name not in group_columns:
                raise InvalidExpressionError(
                    f'"{name}"',
                    "ORDER BY",
                    "column must appear in the GROUP BY list, the SELECT list or inside an aggregate function",
                )

    @staticmethod
    def _check_columns(schema: Optional[Schema], group_columns: List[str], expressions: List) -> None:
        if schema is None:
            return
        for name in group_columns:
            if name not in schema:
                raise ColumnNotFoundError(name, schema.names)
        for expression in expressions:
            if expression is None:
                continue
            for name in columns_in(expression):
                if name not in schema:
                    raise ColumnNotFoundError(name, schema.names)

    @staticmethod
    def _collect_aggregates(expressions: List[Expression]) -> List[AggregateSpec]:
        """Distinct aggregates by identifier, in first-use order."""
        specs: Dict[str, AggregateSpec] = {}
        for expression in expressions:
            for aggregate in aggregates_in(expression):
                if aggregate.identifier not in specs:
                    specs[aggregate.identifier] = AggregateSpec.of(aggregate)
        return list(specs.values())

    @staticmethod
    def _check_aggregate_types(schema: Optional[Schema], aggregates: List[AggregateSpec]) -> None:
        if schema is None:
            return
        for spec in aggregates:
            function = spec.function
            if not isinstance(function, (Sum, Avg)) or not isinstance(function.argument, Field):
                continue
            kind = schema.kind_of(function.argument.name)
            if kind in _NON_ADDITIVE_KINDS:
                raise TypeMismatchError(
                    f"{spec.identifier} requires a numeric column, but {function.argument.name!r} is {kind}"
                )
