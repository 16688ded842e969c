"""
Aggregate accumulators.

An accumulator holds the running state of one aggregate expression for one
group. ``update`` is called once per row of the group (O(1) per call),
``merge`` combines the states of two disjoint partitions of the same group and
``finalize`` converts the state into the aggregate's value.

NULL rules:
- COUNT(*) counts every row, COUNT(x) only rows where x is not NULL.
- SUM/AVG/MIN/MAX ignore NULLs; with no non-NULL input they are NULL
  (SUM may be configured to return 0 instead).
- AVG of zero values is NULL, never a division error.
"""

import numbers
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, Optional, Set

from .exceptions import TypeMismatchError
from .logic import is_null

__all__ = [
    'Accumulator',
    'CountStarAccumulator',
    'CountAccumulator',
    'SumAccumulator',
    'AvgAccumulator',
    'MinAccumulator',
    'MaxAccumulator',
    'DistinctAccumulator',
]


def _check_numeric(name: str, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, numbers.Number):
        raise TypeMismatchError(f"{name} requires numeric input, got {type(value).__name__} value {value!r}")


def _add(name: str, total: Any, value: Any) -> Any:
    if total is None:
        return value
    try:
        return total + value
    except TypeError as e:
        raise TypeMismatchError(
            f"{name} cannot add {type(value).__name__} to running {type(total).__name__} total"
        ) from e


class Accumulator(ABC):
    """Running state of one aggregate for one group."""

    def __init__(self, name: str):
        self.name = name

    @abstractmethod
    def update(self, value: Any) -> None:
        """Fold one input value into the state."""

    @abstractmethod
    def merge(self, other: "Accumulator") -> None:
        """Fold the state of another partition of the same group into this one."""

    @abstractmethod
    def finalize(self) -> Any:
        """Final aggregate value."""

    def _check_same_kind(self, other: "Accumulator") -> None:
        if type(other) is not type(self):
            raise TypeMismatchError(f"Cannot merge {type(other).__name__} into {type(self).__name__}")

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name}={self.finalize()!r})"


class CountStarAccumulator(Accumulator):
    """COUNT(*): every row, NULLs included."""

    def __init__(self, name: str = "COUNT(*)"):
        super().__init__(name)
        self.count = 0

    def update(self, value: Any = None) -> None:
        self.count += 1

    def merge(self, other: "CountStarAccumulator") -> None:
        self._check_same_kind(other)
        self.count += other.count

    def finalize(self) -> int:
        return self.count


class CountAccumulator(Accumulator):
    """COUNT(x): rows where x is not NULL."""

    def __init__(self, name: str):
        super().__init__(name)
        self.count = 0

    def update(self, value: Any) -> None:
        if not is_null(value):
            self.count += 1

    def merge(self, other: "CountAccumulator") -> None:
        self._check_same_kind(other)
        self.count += other.count

    def finalize(self) -> int:
        return self.count


class SumAccumulator(Accumulator):
    """SUM(x) over non-NULL numeric values."""

    def __init__(self, name: str, empty_value: Any = None):
        super().__init__(name)
        self.total: Any = None
        self.empty_value = empty_value

    def update(self, value: Any) -> None:
        if is_null(value):
            return
        _check_numeric(self.name, value)
        self.total = _add(self.name, self.total, value)

    def merge(self, other: "SumAccumulator") -> None:
        self._check_same_kind(other)
        if other.total is not None:
            self.total = _add(self.name, self.total, other.total)

    def finalize(self) -> Any:
        return self.empty_value if self.total is None else self.total


class AvgAccumulator(Accumulator):
    """
    AVG(x) = SUM(x) / COUNT(x) over non-NULL values.

    Integer and float input average to a float, Decimal input to a Decimal.
    """

    def __init__(self, name: str):
        super().__init__(name)
        self.total: Any = None
        self.count = 0

    def update(self, value: Any) -> None:
        if is_null(value):
            return
        _check_numeric(self.name, value)
        self.total = _add(self.name, self.total, value)
        self.count += 1

    def merge(self, other: "AvgAccumulator") -> None:
        self._check_same_kind(other)
        if other.count:
            self.total = _add(self.name, self.total, other.total)
            self.count += other.count

    def finalize(self) -> Any:
        if self.count == 0:
            return None
        if isinstance(self.total, Decimal):
            return self.total / Decimal(self.count)
        return self.total / self.count


class _ExtremumAccumulator(Accumulator):
    """Shared logic of MIN and MAX."""

    def __init__(self, name: str):
        super().__init__(name)
        self.value: Any = None

    @abstractmethod
    def _better(self, candidate: Any, current: Any) -> bool:
        """True when candidate should replace current."""

    def update(self, value: Any) -> None:
        if is_null(value):
            return
        if self.value is None:
            self.value = value
            return
        try:
            if self._better(value, self.value):
                self.value = value
        except TypeError as e:
            raise TypeMismatchError(
                f"{self.name} cannot compare {type(value).__name__} with {type(self.value).__name__}"
            ) from e

    def merge(self, other: "_ExtremumAccumulator") -> None:
        self._check_same_kind(other)
        if other.value is not None:
            self.update(other.value)

    def finalize(self) -> Any:
        return self.value


class MinAccumulator(_ExtremumAccumulator):
    """MIN(x) over non-NULL values."""

    def _better(self, candidate: Any, current: Any) -> bool:
        return candidate < current


class MaxAccumulator(_ExtremumAccumulator):
    """MAX(x) over non-NULL values."""

    def _better(self, candidate: Any, current: Any) -> bool:
        return candidate > current


class DistinctAccumulator(Accumulator):
    """
    Wraps another accumulator so each distinct non-NULL value is fed once.

    Used for COUNT(DISTINCT x), SUM(DISTINCT x) and AVG(DISTINCT x).
    """

    def __init__(self, inner: Accumulator):
        super().__init__(inner.name)
        self.inner = inner
        self.seen: Set[Any] = set()

    def update(self, value: Any) -> None:
        if is_null(value):
            return
        try:
            if value in self.seen:
                return
            self.seen.add(value)
        except TypeError as e:
            raise TypeMismatchError(f"{self.name} cannot hash {type(value).__name__} value") from e
        self.inner.update(value)

    def merge(self, other: "DistinctAccumulator") -> None:
        self._check_same_kind(other)
        for value in other.seen:
            self.update(value)

    def finalize(self) -> Any:
        return self.inner.finalize()


def empty_sum_value(mode: str) -> Optional[int]:
    """Value SUM returns for all-NULL input under the given config mode."""
    from .config import EmptySum
    from .exceptions import ValidationError

    if mode == EmptySum.ZERO:
        return 0
    if mode == EmptySum.NULL:
        return None
    raise ValidationError(f"Unknown empty_sum mode: {mode!r}. Use 'null' or 'zero'")

