"""
Test rows, schemas and row sources.
"""

import datetime
import unittest
from decimal import Decimal

import numpy as np
import pandas as pd
import pytest

from sqlagg import (
    Column,
    ColumnKind,
    ColumnNotFoundError,
    Count,
    DataFrameSource,
    IterableSource,
    Query,
    Row,
    RowSource,
    Schema,
    Sum,
    ValidationError,
    as_source,
)


class TestRow(unittest.TestCase):
    def setUp(self):
        self.row = Row(('Dept', 'Salary'), ('IT', 50000))

    def test_mapping_access(self):
        self.assertEqual('IT', self.row['Dept'])
        self.assertEqual(['Dept', 'Salary'], list(self.row))
        self.assertEqual(('IT', 50000), self.row.as_tuple())
        self.assertEqual(2, len(self.row))

    def test_missing_column(self):
        with self.assertRaises(ColumnNotFoundError):
            self.row['Name']

    def test_immutable(self):
        with self.assertRaises(AttributeError):
            self.row.extra = 1
        with self.assertRaises(TypeError):
            self.row['Dept'] = 'HR'

    def test_length_mismatch(self):
        with self.assertRaises(ValidationError):
            Row(('a', 'b'), (1,))

    def test_repr(self):
        self.assertEqual("Row(Dept='IT', Salary=50000)", repr(self.row))


class TestSchema(unittest.TestCase):
    def test_duplicate_column(self):
        with self.assertRaises(ValidationError):
            Schema([Column('a'), Column('a')])

    def test_unknown_kind(self):
        with self.assertRaises(ValidationError):
            Column('a', 'varchar')

    def test_lookup(self):
        schema = Schema([Column('Dept', 'text'), Column('Salary', 'integer')])
        self.assertIn('Dept', schema)
        self.assertEqual('integer', schema.kind_of('Salary'))
        self.assertEqual(['Dept', 'Salary'], schema.names)
        with self.assertRaises(ColumnNotFoundError):
            schema.column('Name')

    def test_from_names(self):
        schema = Schema.from_names(['a', 'b'])
        self.assertEqual([ColumnKind.ANY, ColumnKind.ANY], [c.kind for c in schema])

    def test_infer_skips_nulls(self):
        rows = [
            ('IT', 1, 1.5, Decimal('1'), datetime.date(2024, 1, 1), True, None),
            (None, None, None, None, None, None, None),
        ]
        schema = Schema.infer(['t', 'i', 'f', 'd', 'dt', 'b', 'n'], rows)
        self.assertEqual(
            ['text', 'integer', 'float', 'decimal', 'date', 'boolean', 'any'],
            [c.kind for c in schema],
        )

    def test_infer_mixed_values_is_any(self):
        self.assertEqual('any', Schema.infer(['v'], [(1,), ('two',)]).kind_of('v'))

    def test_from_dataframe(self):
        df = pd.DataFrame(
            {
                'name': ['a', 'b'],
                'n': [1, 2],
                'x': [1.0, np.nan],
                'flag': [True, False],
                'when': pd.to_datetime(['2024-01-01', '2024-02-01']),
            }
        )
        schema = Schema.from_dataframe(df)
        self.assertEqual(
            {'name': 'text', 'n': 'integer', 'x': 'float', 'flag': 'boolean', 'when': 'date'},
            {c.name: c.kind for c in schema},
        )


class TestIterableSource:
    def test_columns_are_union_of_keys(self):
        source = IterableSource([{'a': 1}, {'b': 2, 'a': 3}])
        assert source.schema.names == ['a', 'b']
        assert [r.as_tuple() for r in source] == [(1, None), (3, 2)]

    def test_sequences_with_columns(self):
        source = IterableSource([('IT', 50000), ('HR', 40000)], columns=['Dept', 'Salary'])
        assert [r['Salary'] for r in source] == [50000, 40000]
        assert len(source) == 2

    def test_sequences_without_columns(self):
        with pytest.raises(ValidationError):
            IterableSource([('IT', 50000)])

    def test_wrong_width(self):
        with pytest.raises(ValidationError):
            IterableSource([('IT',)], columns=['Dept', 'Salary'])

    def test_given_schema(self):
        schema = Schema([Column('Dept', 'text'), Column('Salary', 'float')])
        source = IterableSource([{'Dept': 'IT', 'Salary': 1, 'Extra': 'x'}], schema=schema)
        assert source.schema is schema
        assert list(next(iter(source))) == ['Dept', 'Salary']

    def test_iterates_twice(self):
        source = IterableSource(iter([{'a': 1}, {'a': 2}]))
        assert [r['a'] for r in source] == [r['a'] for r in source] == [1, 2]

    def test_nan_normalized(self):
        source = IterableSource([{'a': float('nan')}, {'a': np.int64(3)}])
        values = [r['a'] for r in source]
        assert values[0] is None
        assert values[1] == 3 and type(values[1]) is int

    def test_non_text_keys(self):
        source = IterableSource([{1: 'IT', 2: 10}, {1: 'IT', 2: 20}])
        assert source.schema.names == ['1', '2']
        assert [r.as_tuple() for r in source] == [('IT', 10), ('IT', 20)]

    def test_non_text_keys_in_query(self):
        rows = [{1: 'IT', 2: 10}, {1: 'IT', 2: 20}, {1: 'HR', 2: 5}]
        result = Query().select('1', Sum('2')).groupby('1').execute(rows)
        assert result.fetchall() == [('IT', 30), ('HR', 5)]

    def test_keys_colliding_as_text(self):
        with pytest.raises(ValidationError):
            IterableSource([{1: 'a', '1': 'b'}])


class TestDataFrameSource:
    def test_missing_values_become_none(self):
        df = pd.DataFrame({'Dept': ['IT', None], 'Salary': [50000.0, np.nan]})
        rows = [r.as_tuple() for r in DataFrameSource(df)]
        assert rows == [('IT', 50000.0), (None, None)]

    def test_python_scalars(self):
        df = pd.DataFrame({'n': [1, 2], 'when': pd.to_datetime(['2024-01-01', None])})
        first, second = list(DataFrameSource(df))
        assert type(first['n']) is int
        assert isinstance(first['when'], datetime.datetime)
        assert second['when'] is None

    def test_requires_dataframe(self):
        with pytest.raises(ValidationError):
            DataFrameSource([{'a': 1}])

    def test_duplicate_columns(self):
        df = pd.DataFrame([[1, 2]], columns=['a', 'a'])
        with pytest.raises(ValidationError):
            DataFrameSource(df)


class TestAsSource:
    def test_passthrough(self, dept_rows):
        source = IterableSource(dept_rows)
        assert as_source(source) is source

    def test_dataframe(self, employees_df):
        source = as_source(employees_df)
        assert isinstance(source, DataFrameSource)
        assert len(source) == 7

    def test_mappings(self, employees):
        source = as_source(employees)
        assert isinstance(source, RowSource)
        assert source.schema.kind_of('Salary') == 'integer'

    def test_schema_with_dataframe_rejected(self, employees_df):
        schema = Schema.from_names(employees_df.columns)
        with pytest.raises(ValidationError):
            as_source(employees_df, schema)
        with pytest.raises(ValidationError):
            Query().select(Count()).execute(employees_df, schema=schema)

    def test_schema_with_mappings(self, dept_rows):
        schema = Schema([Column('Dept', 'text'), Column('Salary', 'float')])
        assert as_source(dept_rows, schema).schema is schema

    @pytest.mark.parametrize('data', ['a,b', b'raw', 42, None])
    def test_rejected(self, data):
        with pytest.raises(ValidationError):
            as_source(data)
