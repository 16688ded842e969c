"""
sqlagg - SQL aggregation and grouping over in-memory rows
==========================================================

sqlagg evaluates aggregation queries (WHERE, GROUP BY, aggregate functions,
HAVING, ORDER BY, LIMIT) over rows from Python mappings or pandas DataFrames,
with standard SQL semantics: three-valued NULL logic, NULL-equals-NULL
grouping and the fixed clause execution order.

Key Features:
- Fluent, immutable query builder with operator-overloaded expressions
- Compile-then-execute: invalid queries fail before any row is read
- COUNT/SUM/AVG/MIN/MAX with DISTINCT, derived expressions over aggregates
- Optional partition-parallel grouping

Example:
    >>> import pandas as pd
    >>> from sqlagg import Query, col, Count, Sum, Avg
    >>>
    >>> df = pd.DataFrame({'Dept': ['IT', 'IT', 'HR'], 'Salary': [50000, 70000, 40000]})
    >>> result = (
    ...     Query()
    ...     .select('Dept', Count().as_('n'), Sum('Salary').as_('total'), Avg('Salary').as_('avg'))
    ...     .groupby('Dept')
    ...     .having(Avg('Salary') > 50000)
    ...     .execute(df)
    ... )
    >>> result.fetchall()
    [('IT', 2, 120000, 60000.0)]

Core Classes:
- Query: query builder and entry point
- Expression / Field / Literal: expression tree nodes
- AggregateFunction: COUNT, SUM, AVG, MIN, MAX
- Pipeline: the execution-order state machine
- QueryResult: query output
"""

from .expressions import Expression, Field, Star, Literal, ArithmeticExpression, col, lit
from .conditions import (
    Condition,
    BinaryCondition,
    CompoundCondition,
    NotCondition,
    UnaryCondition,
    InCondition,
    BetweenCondition,
    LikeCondition,
)
from .functions import (
    Function,
    AggregateFunction,
    F,  # Function namespace for explicit function calls
    Sum,
    Count,
    Avg,
    Min,
    Max,
    register_function,
)
from .logic import NULL, Truth, is_null
from .source import Row, Column, ColumnKind, Schema, RowSource, IterableSource, DataFrameSource, as_source
from .query import Query
from .query_planner import QueryPlanner, QueryPlan
from .pipeline import Pipeline, Stage
from .result import QueryResult
from .exceptions import (
    SqlAggError,
    QueryError,
    InvalidExpressionError,
    InvalidProjectionError,
    TypeMismatchError,
    ColumnNotFoundError,
    ValidationError,
    ExecutionError,
    PipelineStateError,
)
from .config import (
    config,
    reset_config,
    set_log_level,
    set_log_format,
    enable_debug,
    disable_debug,
    get_logger,
    set_empty_sum,
    set_workers,
    # Profiling
    enable_profiling,
    disable_profiling,
    is_profiling_enabled,
    get_profiler,
    Profiler,
    ProfileStep,
)

__version__ = "0.1.0"
__author__ = "sqlagg Contributors"

__all__ = [
    # Core
    'Query',
    'QueryResult',
    # Expressions
    'Expression',
    'Field',
    'Star',
    'Literal',
    'ArithmeticExpression',
    'col',
    'lit',
    # Conditions
    'Condition',
    'BinaryCondition',
    'CompoundCondition',
    'NotCondition',
    'UnaryCondition',
    'InCondition',
    'BetweenCondition',
    'LikeCondition',
    # Functions
    'Function',
    'AggregateFunction',
    'F',
    'Sum',
    'Count',
    'Avg',
    'Min',
    'Max',
    'register_function',
    # NULL logic
    'NULL',
    'Truth',
    'is_null',
    # Row sources
    'Row',
    'Column',
    'ColumnKind',
    'Schema',
    'RowSource',
    'IterableSource',
    'DataFrameSource',
    'as_source',
    # Planning and execution
    'QueryPlanner',
    'QueryPlan',
    'Pipeline',
    'Stage',
    # Exceptions
    'SqlAggError',
    'QueryError',
    'InvalidExpressionError',
    'InvalidProjectionError',
    'TypeMismatchError',
    'ColumnNotFoundError',
    'ValidationError',
    'ExecutionError',
    'PipelineStateError',
    # Configuration
    'config',
    'reset_config',
    'set_log_level',
    'set_log_format',
    'enable_debug',
    'disable_debug',
    'get_logger',
    'set_empty_sum',
    'set_workers',
    # Profiling
    'enable_profiling',
    'disable_profiling',
    'is_profiling_enabled',
    'get_profiler',
    'Profiler',
    'ProfileStep',
]
