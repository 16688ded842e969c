"""
Pipeline orchestrator - the execution-order state machine.

A plan always runs through the same stages, strictly in this order and never
skipping one, whatever order the query's clauses were written in:

    SCAN -> FILTER_WHERE -> GROUP -> AGGREGATE -> FILTER_HAVING -> PROJECT -> SORT -> LIMIT -> DONE

Each stage fully materializes its output before the next stage starts, so
HAVING only ever sees groups whose aggregates are final. For a plain row query
(no GROUP BY, HAVING or aggregates) GROUP, AGGREGATE and FILTER_HAVING pass
their input through unchanged.

Partition-parallel grouping: with more than one worker, rows are
hash-partitioned by group key, each partition is grouped on its own thread,
and the disjoint per-partition group maps are merged before finalization.
"""

from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import Any, List, Optional

from .config import get_logger, get_workers, new_profiler
from .exceptions import PipelineStateError, ValidationError
from .grouping import GroupingEngine, merge_group_maps, partition_rows
from .query_planner import QueryPlan
from .result import QueryResult
from .source import RowSource

__all__ = ['Stage', 'Pipeline']


class Stage(Enum):
    """Pipeline states; ``READY`` is the state before the first stage runs."""

    READY = 0
    SCAN = 1
    FILTER_WHERE = 2
    GROUP = 3
    AGGREGATE = 4
    FILTER_HAVING = 5
    PROJECT = 6
    SORT = 7
    LIMIT = 8
    DONE = 9

    @property
    def next(self) -> Optional["Stage"]:
        if self is Stage.DONE:
            return None
        return Stage(self.value + 1)


# Number of working stages, for "[i/8]" log prefixes
_STAGE_COUNT = Stage.LIMIT.value


class Pipeline:
    """
    Runs one QueryPlan over one row source.

    Example:
        >>> plan = query.compile(source.schema)
        >>> pipeline = Pipeline(plan)
        >>> result = pipeline.run(source)
        >>> [s.name for s in pipeline.history]
        ['SCAN', 'FILTER_WHERE', 'GROUP', 'AGGREGATE', 'FILTER_HAVING', 'PROJECT', 'SORT', 'LIMIT', 'DONE']
    """

    def __init__(self, plan: QueryPlan, workers: int = None):
        if workers is None:
            workers = get_workers()
        if isinstance(workers, bool) or not isinstance(workers, int) or workers < 1:
            raise ValidationError(f"workers must be a positive integer, got {workers!r}")
        self.plan = plan
        self.workers = workers
        self.stage = Stage.READY
        self.history: List[Stage] = []
        self._logger = get_logger()

    # ========== State machine ==========

    def advance(self, requested: Stage) -> None:
        """Move to ``requested``, which must be the stage right after the current one."""
        if requested is not self.stage.next:
            raise PipelineStateError(self.stage, requested)
        self.stage = requested
        self.history.append(requested)

    def reset(self) -> None:
        """Return to READY so the pipeline can run again."""
        self.stage = Stage.READY
        self.history = []

    def _log(self, stage: Stage, detail: str, *args: Any) -> None:
        self._logger.debug(f"[{stage.value}/{_STAGE_COUNT}] {stage.name}: {detail}", *args)

    # ========== Execution ==========

    def run(self, source: RowSource) -> QueryResult:
        """
        Execute the plan over ``source``.

        Either returns the complete result or raises exactly one error; no
        partial result is produced.
        """
        if self.stage is not Stage.READY:
            raise PipelineStateError(self.stage, Stage.SCAN)

        plan = self.plan
        profiler = new_profiler()

        self.advance(Stage.SCAN)
        with profiler.step(Stage.SCAN.name):
            rows = list(source)
            input_columns = list(source.schema.names) if len(source.schema) else []
            if not input_columns and rows:
                input_columns = list(rows[0].columns)
        self._log(Stage.SCAN, "%d rows from %s", len(rows), source.describe())

        self.advance(Stage.FILTER_WHERE)
        with profiler.step(Stage.FILTER_WHERE.name):
            rows = list(plan.where_filter.apply(rows))
        self._log(Stage.FILTER_WHERE, "%d rows pass %s", len(rows), plan.where_filter.describe())

        self.advance(Stage.GROUP)
        groups = None
        if plan.aggregating:
            with profiler.step(Stage.GROUP.name, workers=self.workers):
                engine = self._group(rows)
            self._log(Stage.GROUP, "%d groups by %s", len(engine), plan.group_columns or "(implicit)")
        else:
            self._log(Stage.GROUP, "skipped (row query)")

        self.advance(Stage.AGGREGATE)
        if plan.aggregating:
            with profiler.step(Stage.AGGREGATE.name):
                groups = engine.groups()
                for group in groups:
                    plan.aggregator.finalize(group)
            self._log(Stage.AGGREGATE, "finalized %s for %d groups", plan.aggregator.describe(), len(groups))
        else:
            self._log(Stage.AGGREGATE, "skipped (row query)")

        self.advance(Stage.FILTER_HAVING)
        if plan.aggregating:
            with profiler.step(Stage.FILTER_HAVING.name):
                groups = list(plan.having_filter.apply(groups))
            self._log(Stage.FILTER_HAVING, "%d groups pass %s", len(groups), plan.having_filter.describe())
        else:
            self._log(Stage.FILTER_HAVING, "skipped (row query)")

        self.advance(Stage.PROJECT)
        with profiler.step(Stage.PROJECT.name):
            if plan.aggregating:
                projected = plan.projector.project_groups(groups)
            else:
                projected = plan.projector.project_rows(rows, input_columns or None)
            column_names = plan.projector.column_names(input_columns)
        self._log(Stage.PROJECT, "%d rows of %s", len(projected), column_names)

        self.advance(Stage.SORT)
        with profiler.step(Stage.SORT.name):
            projected = plan.sorter.sort(projected)
        self._log(Stage.SORT, "%s", plan.sorter.describe())

        self.advance(Stage.LIMIT)
        with profiler.step(Stage.LIMIT.name):
            projected = plan.limiter.apply(projected)
        self._log(Stage.LIMIT, "%d rows after %s", len(projected), plan.limiter.describe())

        self.advance(Stage.DONE)
        profiler.log_report()
        return QueryResult(column_names, [values for values, _ in projected])

    def _group(self, rows) -> GroupingEngine:
        plan = self.plan
        if self.workers == 1 or not plan.group_columns or len(rows) < 2:
            return GroupingEngine(plan.group_columns, plan.aggregator).consume(rows)

        partitions = partition_rows(rows, plan.group_columns, self.workers)

        def group_partition(partition):
            return GroupingEngine(plan.group_columns, plan.aggregator).consume_positioned(partition)

        with ThreadPoolExecutor(max_workers=self.workers) as pool:
            engines = list(pool.map(group_partition, partitions))
        self._logger.debug(
            "GROUP: merged %d partitions of sizes %s", len(engines), [len(p) for p in partitions]
        )
        return merge_group_maps(engines)
