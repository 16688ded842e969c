"""
Aggregator - per-group accumulator management.

For every group the aggregator keeps one accumulator per distinct aggregate
expression appearing in SELECT, HAVING or ORDER BY. Rows are folded in as the
grouping engine routes them (one update per row per aggregate), and
finalization turns the accumulators into values once the input is exhausted.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Sequence, TYPE_CHECKING

from .accumulators import Accumulator, empty_sum_value
from .config import get_empty_sum
from .expression_evaluator import ExpressionEvaluator, Scope
from .functions import AggregateFunction

if TYPE_CHECKING:
    from .grouping import Group
    from .source import Row

__all__ = ['AggregateSpec', 'Aggregator']


@dataclass(frozen=True, eq=False)
class AggregateSpec:
    """
    One distinct aggregate expression of a query.

    Attributes:
        identifier: SQL text of the aggregate, shared by every occurrence
        function: the aggregate expression (its argument is evaluated per row)
    """

    identifier: str
    function: AggregateFunction

    @classmethod
    def of(cls, function: AggregateFunction) -> "AggregateSpec":
        return cls(function.identifier, function)


class Aggregator:
    """
    Creates, updates and finalizes the accumulators of each group.

    Example:
        >>> aggregator = Aggregator([AggregateSpec.of(Count()), AggregateSpec.of(Sum('Salary'))])
        >>> state = aggregator.new_state()
        >>> aggregator.update_state(state, Row(('Salary',), (50000,)))
        >>> aggregator.finalize_state(state)
        {'COUNT(*)': 1, 'SUM("Salary")': 50000}
    """

    def __init__(self, specs: Sequence[AggregateSpec], empty_sum: str = None):
        self.specs: List[AggregateSpec] = list(specs)
        mode = empty_sum if empty_sum is not None else get_empty_sum()
        self.empty_sum = empty_sum_value(mode)
        self._evaluator = ExpressionEvaluator()

    @property
    def identifiers(self) -> List[str]:
        return [spec.identifier for spec in self.specs]

    def new_state(self) -> Dict[str, Accumulator]:
        """Fresh accumulators for a new group."""
        return {spec.identifier: spec.function.create_accumulator(self.empty_sum) for spec in self.specs}

    def update_state(self, state: Dict[str, Accumulator], row: "Row") -> None:
        """Fold one row into a group's accumulators."""
        scope = None
        for spec in self.specs:
            function = spec.function
            if function.is_count_star:
                state[spec.identifier].update(None)
                continue
            if scope is None:
                scope = Scope(row)
            state[spec.identifier].update(self._evaluator.evaluate(function.argument, scope))

    def update(self, group: "Group", row: "Row") -> None:
        self.update_state(group.state, row)

    def finalize_state(self, state: Dict[str, Accumulator]) -> Dict[str, Any]:
        return {identifier: accumulator.finalize() for identifier, accumulator in state.items()}

    def finalize(self, group: "Group") -> Dict[str, Any]:
        """Compute the group's final aggregate values and store them on the group."""
        values = self.finalize_state(group.state)
        group.values = values
        return values

    def describe(self) -> str:
        if not self.specs:
            return "no aggregates"
        return ", ".join(self.identifiers)
