"""
Test ORDER BY sorting (NULL placement, stability, type errors) and LIMIT/OFFSET.
"""

import unittest

import numpy as np
import pytest

from sqlagg import Field, Query, TypeMismatchError, ValidationError, col
from sqlagg.expression_evaluator import Scope
from sqlagg.sorter import Limiter, SortKey, Sorter
from sqlagg.utils import normalize_ascending


def projections(*rows):
    """(values, scope) pairs whose scope exposes columns a and b."""
    return [((a, b), Scope({'a': a, 'b': b})) for a, b in rows]


def values(result):
    return [v for v, _ in result]


class TestSorter(unittest.TestCase):
    def test_ascending_nulls_last(self):
        sorter = Sorter([SortKey(Field('a'), output_index=0)])
        result = sorter.sort(projections((3, 'x'), (None, 'y'), (1, 'z')))
        self.assertEqual([(1, 'z'), (3, 'x'), (None, 'y')], values(result))

    def test_descending_nulls_first(self):
        sorter = Sorter([SortKey(Field('a'), ascending=False, output_index=0)])
        result = sorter.sort(projections((3, 'x'), (None, 'y'), (1, 'z')))
        self.assertEqual([(None, 'y'), (3, 'x'), (1, 'z')], values(result))

    def test_explicit_nulls_first(self):
        sorter = Sorter([SortKey(Field('a'), ascending=True, nulls_first=True, output_index=0)])
        result = sorter.sort(projections((3, 'x'), (None, 'y')))
        self.assertEqual([(None, 'y'), (3, 'x')], values(result))

    def test_stable_for_ties(self):
        sorter = Sorter([SortKey(Field('a'), output_index=0)])
        result = sorter.sort(projections((1, 'first'), (0, 'zero'), (1, 'second'), (1, 'third')))
        self.assertEqual(['zero', 'first', 'second', 'third'], [b for _, b in values(result)])

    def test_multiple_keys(self):
        sorter = Sorter([SortKey(Field('a'), output_index=0), SortKey(Field('b'), ascending=False, output_index=1)])
        result = sorter.sort(projections((1, 'a'), (0, 'z'), (1, 'c')))
        self.assertEqual([(0, 'z'), (1, 'c'), (1, 'a')], values(result))

    def test_key_evaluated_from_scope(self):
        sorter = Sorter([SortKey(col('a') * -1)])
        result = sorter.sort(projections((1, 'x'), (2, 'y')))
        self.assertEqual([(2, 'y'), (1, 'x')], values(result))

    def test_incomparable_keys(self):
        sorter = Sorter([SortKey(Field('a'), output_index=0)])
        with self.assertRaises(TypeMismatchError):
            sorter.sort(projections((1, 'x'), ('one', 'y')))

    def test_no_keys_keeps_order(self):
        rows = projections((2, 'x'), (1, 'y'))
        self.assertEqual(values(rows), values(Sorter([]).sort(rows)))


class TestLimiter:
    @pytest.mark.parametrize(
        'limit,offset,expected',
        [
            (None, None, [0, 1, 2, 3, 4]),
            (2, None, [0, 1]),
            (2, 1, [1, 2]),
            (None, 3, [3, 4]),
            (0, None, []),
            (10, 4, [4]),
        ],
    )
    def test_apply(self, limit, offset, expected):
        assert Limiter(limit, offset).apply(list(range(5))) == expected

    @pytest.mark.parametrize('limit,offset', [(-1, None), (None, -2), (1.5, None), (True, None)])
    def test_invalid(self, limit, offset):
        with pytest.raises(ValidationError):
            Limiter(limit, offset)


class TestAscendingFlags:
    @pytest.mark.parametrize('ascending', [False, np.bool_(False)])
    def test_single_flag_applies_to_every_key(self, ascending):
        flags = normalize_ascending(ascending, 3)
        assert flags == [False, False, False]
        assert all(type(f) is bool for f in flags)

    def test_numpy_flags(self):
        assert normalize_ascending(np.array([True, False]), 2) == [True, False]

    def test_wrong_length(self):
        with pytest.raises(ValidationError):
            normalize_ascending([True], 2)

    @pytest.mark.parametrize('ascending', [1, 'desc', None])
    def test_not_a_flag(self, ascending):
        with pytest.raises(ValidationError):
            normalize_ascending(ascending, 1)

    def test_orderby_accepts_numpy_bool(self, dept_rows):
        result = Query().select('Salary').orderby('Salary', ascending=np.bool_(False)).execute(dept_rows)
        assert result.column('Salary') == sorted(result.column('Salary'), reverse=True)
