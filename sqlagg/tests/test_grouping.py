"""
Test the grouping engine: keys, partitioning invariants and merging.
"""

import unittest

import pytest

from sqlagg import Count, ExecutionError, Row, Sum, TypeMismatchError
from sqlagg.aggregator import AggregateSpec, Aggregator
from sqlagg.grouping import GroupKey, GroupingEngine, merge_group_maps, partition_rows


def make_rows(columns, *tuples):
    return [Row(columns, values) for values in tuples]


def count_sum_aggregator():
    return Aggregator([AggregateSpec.of(Count()), AggregateSpec.of(Sum('Salary'))])


class TestGroupKey(unittest.TestCase):
    def test_null_equals_null(self):
        self.assertEqual(GroupKey([None, 'IT']), GroupKey([float('nan'), 'IT']))
        self.assertEqual(hash(GroupKey([None])), hash(GroupKey([None])))

    def test_values_restore_none(self):
        self.assertEqual((None, 'IT'), GroupKey([float('nan'), 'IT']).values())

    def test_distinct_values_differ(self):
        self.assertNotEqual(GroupKey(['IT', 'East']), GroupKey(['IT', 'West']))


class TestGroupingEngine:
    @pytest.fixture
    def rows(self):
        return make_rows(
            ('Dept', 'Region', 'Salary'),
            ('IT', 'East', 50000),
            ('HR', 'East', 40000),
            ('IT', 'West', 70000),
            (None, 'West', 30000),
            ('IT', 'East', 10000),
            (None, None, None),
        )

    def test_first_seen_order(self, rows):
        engine = GroupingEngine(['Dept'], count_sum_aggregator()).consume(rows)
        assert [g.key.values() for g in engine.groups()] == [('IT',), ('HR',), (None,)]

    def test_partition_is_total_and_disjoint(self, rows):
        engine = GroupingEngine(['Dept', 'Region'], count_sum_aggregator()).consume(rows)
        assert sum(g.row_count for g in engine.groups()) == len(rows)
        keys = [g.key for g in engine.groups()]
        assert len(keys) == len(set(keys))

    def test_multi_column_grouping(self, rows):
        engine = GroupingEngine(['Dept', 'Region'], count_sum_aggregator()).consume(rows)
        counts = {g.key.values(): g.row_count for g in engine.groups()}
        assert counts == {
            ('IT', 'East'): 2,
            ('HR', 'East'): 1,
            ('IT', 'West'): 1,
            (None, 'West'): 1,
            (None, None): 1,
        }

    def test_null_keys_group_together(self, rows):
        engine = GroupingEngine(['Dept'], count_sum_aggregator()).consume(rows)
        null_group = [g for g in engine.groups() if g.key.values() == (None,)][0]
        assert null_group.row_count == 2

    def test_aggregates_updated_while_grouping(self, rows):
        aggregator = count_sum_aggregator()
        engine = GroupingEngine(['Dept'], aggregator).consume(rows)
        it = engine.groups()[0]
        assert not it.finalized
        assert aggregator.finalize(it) == {'COUNT(*)': 3, 'SUM("Salary")': 130000}
        assert it.finalized

    def test_implicit_group_exists_for_empty_input(self):
        engine = GroupingEngine([], count_sum_aggregator()).consume([])
        assert len(engine) == 1
        group = engine.groups()[0]
        assert group.key == GroupKey()
        assert count_sum_aggregator().finalize(group) == {'COUNT(*)': 0, 'SUM("Salary")': None}

    def test_keyed_groups_are_lazy(self):
        engine = GroupingEngine(['Dept'], count_sum_aggregator()).consume([])
        assert engine.groups() == []

    def test_unhashable_key(self):
        engine = GroupingEngine(['Dept'], count_sum_aggregator())
        with pytest.raises(TypeMismatchError):
            engine.add(Row(('Dept', 'Salary'), (['IT'], 1)))


class TestPartitioning:
    def test_equal_keys_share_partition(self):
        rows = make_rows(('k',), *[(i % 5,) for i in range(50)])
        buckets = partition_rows(rows, ['k'], 4)
        assert sum(len(b) for b in buckets) == 50
        for key in range(5):
            holders = [i for i, b in enumerate(buckets) if any(r['k'] == key for _, r in b)]
            assert len(holders) == 1

    def test_positions_are_kept(self):
        rows = make_rows(('k',), ('a',), ('b',), ('a',))
        positions = sorted(p for b in partition_rows(rows, ['k'], 2) for p, _ in b)
        assert positions == [0, 1, 2]

    def test_merge_restores_first_seen_order(self):
        columns = ('Dept', 'Salary')
        rows = make_rows(columns, ('IT', 1), ('HR', 2), ('Sales', 3), ('IT', 4), ('HR', 5))
        aggregator = count_sum_aggregator()
        engines = [
            GroupingEngine(['Dept'], aggregator).consume_positioned(bucket)
            for bucket in partition_rows(rows, ['Dept'], 3)
        ]
        merged = merge_group_maps(engines)
        assert [g.key.values() for g in merged.groups()] == [('IT',), ('HR',), ('Sales',)]
        totals = {g.key.values()[0]: aggregator.finalize(g)['SUM("Salary")'] for g in merged.groups()}
        assert totals == {'IT': 5, 'HR': 7, 'Sales': 3}
        assert merged.rows_seen == 5

    def test_merge_implicit_groups(self):
        aggregator = count_sum_aggregator()
        left = GroupingEngine([], aggregator).consume(make_rows(('Salary',), (1,), (2,)))
        right = GroupingEngine([], aggregator).consume(make_rows(('Salary',), (3,)))
        merged = merge_group_maps([left, right])
        assert aggregator.finalize(merged.groups()[0]) == {'COUNT(*)': 3, 'SUM("Salary")': 6}

    def test_merge_nothing(self):
        with pytest.raises(ExecutionError):
            merge_group_maps([])
