"""
Query - immutable fluent builder for aggregation queries.

A Query only records clauses. ``compile()`` validates it into a QueryPlan and
``execute()`` runs the plan over a row source. Clauses may be given in any
order; they always execute in the fixed pipeline order
WHERE -> GROUP BY -> aggregates -> HAVING -> SELECT -> ORDER BY -> LIMIT.
"""

from typing import Any, List, Optional, Sequence, Tuple, Union, TYPE_CHECKING

from .conditions import Condition
from .config import get_logger
from .exceptions import ValidationError
from .expressions import Expression, Field, Star
from .utils import (
    immutable,
    format_identifier,
    normalize_ascending,
    build_orderby_clause,
    validate_count,
)

if TYPE_CHECKING:
    from .query_planner import QueryPlan
    from .result import QueryResult
    from .source import Schema

__all__ = ['Query']


def _to_expression(item: Union[str, Expression], clause: str) -> Expression:
    if isinstance(item, str):
        return Star() if item == '*' else Field(item)
    if isinstance(item, Expression):
        return item
    raise ValidationError(f"{clause} items must be column names or expressions, got {item!r}")


def _to_condition(condition: Any, clause: str) -> Condition:
    if isinstance(condition, str):
        raise ValidationError(
            f"{clause} takes a condition built from expressions, e.g. col('Salary') > 45000; "
            "SQL text is not parsed"
        )
    if not isinstance(condition, Condition):
        raise ValidationError(f"{clause} requires a condition, got {condition!r}")
    return condition


class Query:
    """
    Aggregation query builder.

    Every builder method returns a new Query; the original is unchanged.

    Example:
        >>> from sqlagg import Query, col, Avg, Count
        >>> q = (
        ...     Query()
        ...     .select('Dept', Count().as_('n'), Avg('Salary').as_('avg_salary'))
        ...     .where(col('Salary') > 45000)
        ...     .groupby('Dept')
        ...     .having(Avg('Salary') > 50000)
        ...     .orderby('avg_salary', ascending=False)
        ...     .limit(10)
        ... )
        >>> q.to_sql()
        'SELECT "Dept", COUNT(*) AS "n", AVG("Salary") AS "avg_salary" FROM "source" WHERE "Salary" > 45000 GROUP BY "Dept" HAVING AVG("Salary") > 50000 ORDER BY "avg_salary" DESC LIMIT 10'
        >>> result = q.execute(df)
    """

    def __init__(self):
        self._select_fields: List[Expression] = []
        self._where_condition: Optional[Condition] = None
        self._groupby_fields: List[str] = []
        self._having_condition: Optional[Condition] = None
        self._orderby_fields: List[Tuple[Expression, bool, Optional[bool]]] = []
        self._limit_value: Optional[int] = None
        self._offset_value: Optional[int] = None
        self._distinct = False
        self._logger = get_logger()

    # ========== Builder Methods ==========

    @immutable
    def select(self, *fields: Union[str, Expression]) -> 'Query':
        """
        Add items to the SELECT list.

        Args:
            *fields: Column names, ``'*'``, or expressions (aggregates,
                arithmetic, scalar functions), optionally aliased with ``as_``

        Example:
            >>> Query().select('Dept', Sum('Salary').as_('total'))
            >>> Query().select('Dept', (Max('Salary') - Min('Salary')).as_('spread'))
        """
        for field in fields:
            self._select_fields.append(_to_expression(field, "SELECT"))

    @immutable
    def where(self, condition: Condition) -> 'Query':
        """
        Add a row filter, applied before grouping. Repeated calls are ANDed.

        Example:
            >>> Query().where(col('Salary') > 45000)
        """
        condition = _to_condition(condition, "WHERE")
        if self._where_condition is None:
            self._where_condition = condition
        else:
            self._where_condition = self._where_condition & condition

    filter = where

    @immutable
    def groupby(self, *fields: Union[str, Field]) -> 'Query':
        """
        Add grouping columns.

        Example:
            >>> Query().groupby('Dept', 'Region')
        """
        for field in fields:
            if isinstance(field, Field):
                name = field.name
            elif isinstance(field, str) and field and field != '*':
                name = field
            else:
                raise ValidationError(f"GROUP BY takes column names, got {field!r}")
            if name not in self._groupby_fields:
                self._groupby_fields.append(name)

    @immutable
    def having(self, condition: Condition) -> 'Query':
        """
        Add a group filter over grouping columns and aggregates. Repeated calls are ANDed.

        Example:
            >>> Query().groupby('Dept').having(Avg('Salary') > 50000)
        """
        condition = _to_condition(condition, "HAVING")
        if self._having_condition is None:
            self._having_condition = condition
        else:
            self._having_condition = self._having_condition & condition

    @immutable
    def orderby(
        self,
        *fields: Union[str, Expression],
        ascending: Union[bool, Sequence[bool]] = True,
        nulls_first: Optional[bool] = None,
    ) -> 'Query':
        """
        Add ORDER BY keys.

        Names resolve to SELECT aliases and output names before row columns.
        NULLs sort last ascending and first descending unless ``nulls_first``
        is given.

        Example:
            >>> Query().orderby('total', ascending=False)
            >>> Query().orderby('Dept', 'total', ascending=[True, False])
        """
        flags = normalize_ascending(ascending, len(fields))
        for field, asc in zip(fields, flags):
            expression = _to_expression(field, "ORDER BY")
            self._orderby_fields.append((expression, asc, nulls_first))

    sort = orderby

    @immutable
    def limit(self, n: Optional[int]) -> 'Query':
        """Keep at most n output rows (None removes the limit)."""
        validate_count("LIMIT", n)
        self._limit_value = n

    @immutable
    def offset(self, n: Optional[int]) -> 'Query':
        """Skip the first n output rows."""
        validate_count("OFFSET", n)
        self._offset_value = n

    @immutable
    def distinct(self, enabled: bool = True) -> 'Query':
        """Remove duplicate output rows (SELECT DISTINCT)."""
        self._distinct = bool(enabled)

    # ========== Properties ==========

    @property
    def select_fields(self) -> List[Expression]:
        return list(self._select_fields)

    @property
    def groupby_fields(self) -> List[str]:
        return list(self._groupby_fields)

    @property
    def where_condition(self) -> Optional[Condition]:
        return self._where_condition

    @property
    def having_condition(self) -> Optional[Condition]:
        return self._having_condition

    # ========== SQL Generation ==========

    def to_sql(self, table: str = "source", quote_char: str = '"') -> str:
        """
        Render the query as SQL text, clauses in canonical order.

        Args:
            table: Name rendered in the FROM clause
            quote_char: Quote character for identifiers
        """
        parts = ["SELECT"]
        if self._distinct:
            parts.append("DISTINCT")
        if self._select_fields:
            parts.append(", ".join(f.to_sql(quote_char=quote_char, with_alias=True) for f in self._select_fields))
        else:
            parts.append("*")
        parts.append(f"FROM {format_identifier(table, quote_char)}")

        if self._where_condition is not None:
            parts.append(f"WHERE {self._where_condition.to_sql(quote_char=quote_char)}")
        if self._groupby_fields:
            parts.append("GROUP BY " + ", ".join(format_identifier(f, quote_char) for f in self._groupby_fields))
        if self._having_condition is not None:
            parts.append(f"HAVING {self._having_condition.to_sql(quote_char=quote_char)}")
        if self._orderby_fields:
            parts.append(f"ORDER BY {build_orderby_clause(self._orderby_fields, quote_char)}")
        if self._limit_value is not None:
            parts.append(f"LIMIT {self._limit_value}")
        if self._offset_value:
            parts.append(f"OFFSET {self._offset_value}")

        return " ".join(parts)

    # ========== Planning and Execution ==========

    def compile(self, schema: 'Schema' = None) -> 'QueryPlan':
        """
        Validate the query and build its plan without reading any rows.

        Raises:
            InvalidExpressionError, InvalidProjectionError, ColumnNotFoundError,
            TypeMismatchError: when the query is structurally invalid
        """
        from .query_planner import QueryPlanner

        return QueryPlanner().plan(self, schema)

    def execute(self, data: Any, schema: 'Schema' = None, workers: int = None) -> 'QueryResult':
        """
        Run the query over ``data``.

        Args:
            data: pandas DataFrame, RowSource, or iterable of mappings
            schema: Column declarations for iterable input (inferred otherwise).
                Passing one with a DataFrame raises ValidationError.
            workers: Partition-parallel grouping workers (default: config.workers)

        Returns:
            QueryResult
        """
        from .pipeline import Pipeline
        from .source import as_source

        source = as_source(data, schema)
        plan = self.compile(source.schema)
        return Pipeline(plan, workers=workers).run(source)

    def explain(self, schema: 'Schema' = None) -> str:
        """SQL text and plan description."""
        plan = self.compile(schema)
        return f"{self.to_sql()}\n{plan.describe()}"

    # ========== Built-in Methods ==========

    def __copy__(self) -> 'Query':
        new_query = type(self).__new__(type(self))
        new_query.__dict__.update(self.__dict__)

        # Copy mutable collections
        new_query._select_fields = self._select_fields.copy()
        new_query._groupby_fields = self._groupby_fields.copy()
        new_query._orderby_fields = self._orderby_fields.copy()

        return new_query

    def __str__(self) -> str:
        return self.to_sql()

    def __repr__(self) -> str:
        return f"Query({self.to_sql()!r})"
