"""
Grouping engine.

Partitions the filtered rows into groups keyed by the grouping columns. Keys
compare with NULL equal to NULL, so rows with a missing grouping value form
one group. Groups keep first-seen order, which is the output order when no
ORDER BY is given.

With no grouping columns every row belongs to one implicit group, which exists
even for empty input (whole-table aggregation always yields one row).
"""

from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from .aggregator import Aggregator
from .accumulators import Accumulator
from .exceptions import ExecutionError, TypeMismatchError
from .logic import NULL, is_null
from .source import Row

__all__ = ['GroupKey', 'Group', 'GroupingEngine', 'partition_rows', 'merge_group_maps']


class GroupKey(tuple):
    """
    Tuple of grouping values with NULL-equals-NULL semantics.

    Every NULL representation (None, NaN, pd.NA) is normalized to the ``NULL``
    marker, which equals and hashes like itself.

    Example:
        >>> GroupKey([None, 'IT']) == GroupKey([float('nan'), 'IT'])
        True
    """

    __slots__ = ()

    def __new__(cls, values: Iterable[Any] = ()):
        return super().__new__(cls, tuple(NULL if is_null(v) else v for v in values))

    def values(self) -> Tuple[Any, ...]:
        """Grouping values with NULL as None."""
        return tuple(None if part is NULL else part for part in self)

    def __repr__(self) -> str:
        return f"GroupKey{tuple.__repr__(self)}"


class Group:
    """
    Rows sharing one group key.

    Attributes:
        key: the group key
        state: aggregate identifier -> accumulator
        row_count: number of rows routed to this group
        first_seen: input position of the group's first row
        values: finalized aggregate values, None until finalized
    """

    __slots__ = ('key', 'state', 'row_count', 'first_seen', 'values')

    def __init__(self, key: GroupKey, state: Dict[str, Accumulator], first_seen: int = 0):
        self.key = key
        self.state = state
        self.row_count = 0
        self.first_seen = first_seen
        self.values: Optional[Dict[str, Any]] = None

    @property
    def finalized(self) -> bool:
        return self.values is not None

    def merge(self, other: "Group") -> None:
        """Fold another partition's state for the same key into this group."""
        if self.finalized or other.finalized:
            raise ExecutionError(f"Cannot merge finalized group {self.key!r}")
        for identifier, accumulator in self.state.items():
            accumulator.merge(other.state[identifier])
        self.row_count += other.row_count
        self.first_seen = min(self.first_seen, other.first_seen)

    def key_fields(self, group_columns: Sequence[str]) -> Dict[str, Any]:
        return dict(zip(group_columns, self.key.values()))

    def __repr__(self) -> str:
        return f"Group({self.key!r}, rows={self.row_count}, values={self.values!r})"


class GroupingEngine:
    """
    Routes rows to groups and feeds the aggregator, in one pass.

    Example:
        >>> engine = GroupingEngine(['Dept'], aggregator)
        >>> engine.consume(rows)
        >>> [g.key.values() for g in engine.groups()]
        [('IT',), ('HR',)]
    """

    def __init__(self, group_columns: Sequence[str], aggregator: Aggregator):
        self.group_columns: List[str] = list(group_columns)
        self.aggregator = aggregator
        self._groups: Dict[GroupKey, Group] = {}
        self._rows_seen = 0
        if not self.group_columns:
            implicit = GroupKey()
            self._groups[implicit] = Group(implicit, aggregator.new_state(), first_seen=0)

    @property
    def is_implicit(self) -> bool:
        return not self.group_columns

    def key_for(self, row: Row) -> GroupKey:
        key = GroupKey(row[c] for c in self.group_columns)
        try:
            hash(key)
        except TypeError as e:
            raise TypeMismatchError(f"Grouping values must be hashable scalars, got {key!r}") from e
        return key

    def add(self, row: Row, position: Optional[int] = None) -> Group:
        """Route one row to its group (creating it on first sight) and update aggregates."""
        if position is None:
            position = self._rows_seen
        key = self.key_for(row)
        group = self._groups.get(key)
        if group is None:
            group = Group(key, self.aggregator.new_state(), first_seen=position)
            self._groups[key] = group
        group.row_count += 1
        self.aggregator.update(group, row)
        self._rows_seen += 1
        return group

    def consume(self, rows: Iterable[Row]) -> "GroupingEngine":
        for position, row in enumerate(rows):
            self.add(row, position)
        return self

    def consume_positioned(self, rows: Iterable[Tuple[int, Row]]) -> "GroupingEngine":
        """Consume (input position, row) pairs, as produced by ``partition_rows``."""
        for position, row in rows:
            self.add(row, position)
        return self

    def merge(self, other: "GroupingEngine") -> "GroupingEngine":
        """
        Merge another engine's groups into this one.

        Partitions built by ``partition_rows`` never share a key except the
        implicit group, whose accumulator states are merged.
        """
        if other.group_columns != self.group_columns:
            raise ExecutionError("Cannot merge grouping engines with different grouping columns")
        for key, group in other._groups.items():
            mine = self._groups.get(key)
            if mine is None:
                self._groups[key] = group
            else:
                mine.merge(group)
        self._rows_seen += other._rows_seen
        return self

    def groups(self) -> List[Group]:
        """Groups in first-seen order."""
        return sorted(self._groups.values(), key=lambda g: g.first_seen)

    def __len__(self) -> int:
        return len(self._groups)

    def __iter__(self) -> Iterator[Group]:
        return iter(self.groups())

    @property
    def rows_seen(self) -> int:
        return self._rows_seen


def partition_rows(
    rows: Iterable[Row], group_columns: Sequence[str], partitions: int
) -> List[List[Tuple[int, Row]]]:
    """
    Hash-partition rows by group key.

    Rows with equal keys always land in the same partition, so partitions can
    be grouped independently and their groups never overlap. Each row keeps
    its input position for first-seen ordering after the merge.
    """
    buckets: List[List[Tuple[int, Row]]] = [[] for _ in range(partitions)]
    for position, row in enumerate(rows):
        key = GroupKey(row[c] for c in group_columns)
        try:
            bucket = hash(key) % partitions
        except TypeError as e:
            raise TypeMismatchError(f"Grouping values must be hashable scalars, got {key!r}") from e
        buckets[bucket].append((position, row))
    return buckets


def merge_group_maps(engines: Sequence[GroupingEngine]) -> GroupingEngine:
    """
    Merge the per-partition engines of one query into a single engine.

    The merged groups keep first-seen order by global input position.
    """
    if not engines:
        raise ExecutionError("No partitions to merge")
    merged = engines[0]
    for engine in engines[1:]:
        merged.merge(engine)
    return merged
