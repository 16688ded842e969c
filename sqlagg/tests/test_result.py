"""
Test QueryResult accessors and conversions.
"""

import pandas as pd
import pytest

from sqlagg import ColumnNotFoundError, QueryResult


@pytest.fixture
def result():
    return QueryResult(['Dept', 'n'], [('IT', 2), ('HR', 1), (None, 3)])


def test_fetch(result):
    assert result.fetchone() == ('IT', 2)
    assert result.fetchmany(2) == [('IT', 2), ('HR', 1)]
    assert result.fetchall() == [('IT', 2), ('HR', 1), (None, 3)]
    assert result.row_count == len(result) == 3


def test_fetchone_empty():
    assert QueryResult(['a']).fetchone() is None


def test_fetchall_returns_copy(result):
    result.fetchall().clear()
    assert len(result) == 3


def test_column(result):
    assert result.column('n') == [2, 1, 3]
    with pytest.raises(ColumnNotFoundError):
        result.column('missing')


def test_to_dict(result):
    assert result.to_dict()[2] == {'Dept': None, 'n': 3}


def test_to_df(result):
    df = result.to_df()
    assert list(df.columns) == ['Dept', 'n']
    assert df['n'].tolist() == [2, 1, 3]
    assert pd.isna(df.loc[2, 'Dept'])


def test_to_df_empty():
    df = QueryResult(['a', 'b']).to_df()
    assert list(df.columns) == ['a', 'b']
    assert len(df) == 0


def test_sequence_protocol(result):
    assert list(result) == result.rows
    assert result[1] == ('HR', 1)
    assert result[-1][0] is None


def test_equality(result):
    assert result == QueryResult(['Dept', 'n'], [['IT', 2], ['HR', 1], [None, 3]])
    assert result != QueryResult(['Dept', 'count'], result.rows)
    assert result != result.rows


def test_repr(result):
    assert repr(result) == 'QueryResult(rows=3, columns=2)'
