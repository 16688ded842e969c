"""
Test static query validation: every structural error is raised by compile(),
before any row is read.
"""

import unittest

import pytest

from sqlagg import (
    Avg,
    Column,
    ColumnNotFoundError,
    Count,
    InvalidExpressionError,
    InvalidProjectionError,
    Max,
    Query,
    Schema,
    Sum,
    TypeMismatchError,
    ValidationError,
    col,
)
from sqlagg.source import RowSource

SCHEMA = Schema(
    [
        Column('Name', 'text'),
        Column('Dept', 'text'),
        Column('Salary', 'integer'),
        Column('Hired', 'date'),
        Column('Active', 'boolean'),
    ]
)


class ExplodingSource(RowSource):
    """A source that fails if any row is read."""

    def __init__(self, schema):
        self.schema = schema

    def __iter__(self):
        raise AssertionError("rows were read before validation finished")


class TestValidationErrors(unittest.TestCase):
    def test_aggregate_in_where(self):
        query = Query().select(Count()).where(Sum('Salary') > 100)
        with self.assertRaises(InvalidExpressionError) as ctx:
            query.compile()
        self.assertEqual('WHERE', ctx.exception.clause)

    def test_nested_aggregate(self):
        with self.assertRaises(InvalidExpressionError):
            Query().select(Max(Sum('Salary'))).compile()

    def test_non_grouped_select_column(self):
        with self.assertRaises(InvalidProjectionError):
            Query().select('Dept', 'Name').groupby('Dept').compile()

    def test_bare_column_with_whole_table_aggregate(self):
        with self.assertRaises(InvalidProjectionError):
            Query().select('Name', Count()).compile()

    def test_select_star_with_group_by(self):
        with self.assertRaises(InvalidProjectionError):
            Query().groupby('Dept').compile()

    def test_having_raw_column(self):
        query = Query().select('Dept').groupby('Dept').having(col('Salary') > 1)
        with self.assertRaises(InvalidExpressionError) as ctx:
            query.compile()
        self.assertEqual('HAVING', ctx.exception.clause)

    def test_order_by_non_grouped_column(self):
        query = Query().select('Dept', Count()).groupby('Dept').orderby('Salary')
        with self.assertRaises(InvalidExpressionError) as ctx:
            query.compile()
        self.assertEqual('ORDER BY', ctx.exception.clause)

    def test_order_by_distinct_needs_selected_item(self):
        with self.assertRaises(InvalidExpressionError):
            Query().select('Dept').distinct().orderby('Salary').compile()

    def test_unknown_column_with_schema(self):
        with self.assertRaises(ColumnNotFoundError) as ctx:
            Query().select('Dept', Sum('Wage')).groupby('Dept').compile(SCHEMA)
        self.assertEqual('Wage', ctx.exception.column)
        self.assertIn("'Salary'", str(ctx.exception))

    def test_unknown_group_column_with_schema(self):
        with self.assertRaises(ColumnNotFoundError):
            Query().select(Count()).groupby('Team').compile(SCHEMA)

    def test_unknown_column_without_schema_is_deferred(self):
        Query().select('Dept', Sum('Wage')).groupby('Dept').compile()

    def test_sum_over_text_column(self):
        with self.assertRaises(TypeMismatchError):
            Query().select(Sum('Name')).compile(SCHEMA)

    def test_avg_over_date_and_boolean(self):
        with self.assertRaises(TypeMismatchError):
            Query().select(Avg('Hired')).compile(SCHEMA)
        with self.assertRaises(TypeMismatchError):
            Query().select(Sum('Active')).compile(SCHEMA)

    def test_min_max_over_text_allowed(self):
        Query().select(Max('Name')).compile(SCHEMA)

    def test_negative_limit(self):
        with self.assertRaises(ValidationError):
            Query().limit(-1)
        with self.assertRaises(ValidationError):
            Query().offset(-5)

    def test_sql_text_condition_rejected(self):
        with self.assertRaises(ValidationError):
            Query().where("Salary > 1")

    def test_errors_raised_before_rows_are_read(self):
        query = Query().select('Name').groupby('Dept')
        with self.assertRaises(InvalidProjectionError):
            query.execute(ExplodingSource(SCHEMA))


class TestPlan:
    def test_aggregating_detection(self):
        assert not Query().select('Name').compile().aggregating
        assert Query().select(Count()).compile().aggregating
        assert Query().select('Dept').groupby('Dept').compile().aggregating
        assert Query().select(Count()).having(Count() > 1).compile().aggregating
        assert Query().select('Dept').groupby('Dept').orderby(Sum('Salary')).compile().aggregating

    def test_aggregates_deduplicated_across_clauses(self):
        plan = (
            Query()
            .select('Dept', Avg('Salary').as_('avg'), Count())
            .groupby('Dept')
            .having(Avg('Salary') > 50000)
            .orderby(Sum('Salary'))
            .compile()
        )
        assert [spec.identifier for spec in plan.aggregates] == ['AVG("Salary")', 'COUNT(*)', 'SUM("Salary")']

    def test_order_by_resolves_aliases(self):
        plan = (
            Query()
            .select('Dept', Sum('Salary').as_('total'))
            .groupby('Dept')
            .orderby('total', Sum('Salary'), 'Dept')
            .compile()
        )
        assert [key.output_index for key in plan.order_keys] == [1, 1, 0]

    def test_order_by_output_name(self):
        plan = Query().select('Dept', Count()).groupby('Dept').orderby('COUNT(*)').compile()
        assert plan.order_keys[0].output_index == 1

    def test_plain_query_orders_by_any_column(self):
        plan = Query().select('Name').orderby('Salary').compile(SCHEMA)
        assert plan.order_keys[0].output_index is None

    def test_describe(self):
        plan = Query().select('Dept', Count()).where(col('Salary') > 1).groupby('Dept').limit(3).compile()
        text = plan.describe()
        assert 'FILTER_WHERE: "Salary" > 1' in text
        assert 'GROUP: Dept' in text
        assert 'AGGREGATE: COUNT(*)' in text
        assert 'LIMIT: LIMIT 3' in text

    def test_explain(self):
        text = Query().select('Name').explain()
        assert text.startswith('SELECT "Name" FROM "source"')
        assert 'GROUP: skipped (row query)' in text

    def test_empty_schema_treated_as_unknown(self):
        Query().select(Sum('Salary')).compile(Schema([]))

    @pytest.mark.parametrize(
        'order_item',
        ['Dept', Count(), Sum('Salary')],
    )
    def test_valid_group_order_keys(self, order_item):
        Query().select('Dept', Count()).groupby('Dept').orderby(order_item).compile(SCHEMA)
