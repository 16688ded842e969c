"""
Expression evaluation for sqlagg.

Evaluates expression trees against a ``Scope``: the values visible at one
point of the pipeline. Before grouping the scope is a single input row; after
aggregation it is a finalized group, where column references resolve to the
grouping-key values and aggregate functions to their finalized results.

Predicates evaluate to ``Truth`` (three-valued logic); the caller decides
how UNKNOWN is folded.
"""

import operator
import re
from functools import lru_cache
from typing import Any, Dict, Mapping, Optional

from .expressions import Expression, Field, Literal, Star, ArithmeticExpression
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
from .functions import Function, scalar_function, is_null_propagating
from .exceptions import ColumnNotFoundError, InvalidExpressionError, TypeMismatchError
from .logic import Truth, is_null

__all__ = ['Scope', 'ExpressionEvaluator', 'evaluate', 'evaluate_truth']


class Scope:
    """
    Values visible to an expression.

    Attributes:
        fields: column name -> value (a Row, or the grouping-key values)
        aggregates: aggregate identifier -> finalized value, or None before
            aggregation (aggregate references are then an error)
    """

    __slots__ = ('fields', 'aggregates')

    def __init__(self, fields: Mapping[str, Any], aggregates: Optional[Mapping[str, Any]] = None):
        self.fields = fields
        self.aggregates = aggregates

    def __repr__(self) -> str:
        return f"Scope(fields={dict(self.fields)!r}, aggregates={self.aggregates!r})"


_COMPARATORS = {
    '=': operator.eq,
    '!=': operator.ne,
    '<': operator.lt,
    '<=': operator.le,
    '>': operator.gt,
    '>=': operator.ge,
}

_ARITHMETIC = {
    '+': operator.add,
    '-': operator.sub,
    '*': operator.mul,
    '/': operator.truediv,
    '//': operator.floordiv,
    '%': operator.mod,
    '**': operator.pow,
}


@lru_cache(maxsize=256)
def _like_regex(pattern: str, case_sensitive: bool) -> "re.Pattern":
    parts = []
    for ch in pattern:
        if ch == '%':
            parts.append('.*')
        elif ch == '_':
            parts.append('.')
        else:
            parts.append(re.escape(ch))
    flags = re.DOTALL if case_sensitive else re.DOTALL | re.IGNORECASE
    return re.compile(''.join(parts), flags)


class ExpressionEvaluator:
    """
    Evaluates value expressions and predicates over one scope at a time.

    Example:
        >>> evaluator = ExpressionEvaluator()
        >>> row = Row(('a', 'b'), (2, 3))
        >>> evaluator.evaluate(Field('a') * Field('b'), Scope(row))
        6
        >>> evaluator.evaluate_truth(Field('a') > None, Scope(row))
        <Truth.UNKNOWN: 'UNKNOWN'>
    """

    def evaluate(self, expr: Expression, scope: Scope) -> Any:
        """Evaluate a value expression. Conditions yield True, False or None."""
        if isinstance(expr, Condition):
            return self.evaluate_truth(expr, scope).to_value()

        if getattr(expr, 'is_aggregate', False):
            return self._aggregate_value(expr, scope)

        if isinstance(expr, Field):
            try:
                return scope.fields[expr.name]
            except KeyError:
                raise ColumnNotFoundError(expr.name, list(scope.fields)) from None

        if isinstance(expr, Literal):
            return expr.value

        if isinstance(expr, ArithmeticExpression):
            left = self.evaluate(expr.left, scope)
            right = self.evaluate(expr.right, scope)
            return self._apply_operator(left, expr.operator, right)

        if isinstance(expr, Function):
            args = [self.evaluate(arg, scope) for arg in expr.args]
            if is_null_propagating(expr.name) and any(is_null(a) for a in args):
                return None
            return scalar_function(expr.name)(*args)

        if isinstance(expr, Star):
            raise InvalidExpressionError("*", "expression", "* is only valid as COUNT(*) or SELECT *")

        raise InvalidExpressionError(repr(expr), "expression", f"cannot evaluate {type(expr).__name__}")

    def evaluate_truth(self, cond: Condition, scope: Scope) -> Truth:
        """Evaluate a predicate with three-valued logic."""
        if isinstance(cond, CompoundCondition):
            left = self.evaluate_truth(cond.left, scope)
            # Short-circuit: FALSE AND x, TRUE OR x are decided by the left side
            if cond.operator == 'AND' and left is Truth.FALSE:
                return Truth.FALSE
            if cond.operator == 'OR' and left is Truth.TRUE:
                return Truth.TRUE
            right = self.evaluate_truth(cond.right, scope)
            if cond.operator == 'AND':
                return left & right
            if cond.operator == 'OR':
                return left | right
            return left ^ right

        if isinstance(cond, NotCondition):
            return ~self.evaluate_truth(cond.condition, scope)

        if isinstance(cond, BinaryCondition):
            left = self.evaluate(cond.left, scope)
            right = self.evaluate(cond.right, scope)
            return self._compare(cond.operator, left, right)

        if isinstance(cond, UnaryCondition):
            value = self.evaluate(cond.expression, scope)
            null = is_null(value)
            return Truth.of(null if cond.operator == 'IS NULL' else not null)

        if isinstance(cond, InCondition):
            return self._in(cond, scope)

        if isinstance(cond, BetweenCondition):
            value = self.evaluate(cond.expression, scope)
            lower = self.evaluate(cond.lower, scope)
            upper = self.evaluate(cond.upper, scope)
            return self._compare('>=', value, lower) & self._compare('<=', value, upper)

        if isinstance(cond, LikeCondition):
            value = self.evaluate(cond.expression, scope)
            if is_null(value):
                return Truth.UNKNOWN
            if not isinstance(value, str):
                raise TypeMismatchError(f"LIKE requires text input, got {type(value).__name__}")
            matched = _like_regex(cond.pattern, cond.case_sensitive).fullmatch(value) is not None
            return Truth.of(matched != cond.negate)

        raise InvalidExpressionError(repr(cond), "predicate", f"cannot evaluate {type(cond).__name__}")

    def _aggregate_value(self, expr: Expression, scope: Scope) -> Any:
        if scope.aggregates is None:
            raise InvalidExpressionError(expr.identifier, "row expression", "aggregates are not available before grouping")
        try:
            return scope.aggregates[expr.identifier]
        except KeyError:
            raise InvalidExpressionError(expr.identifier, "group expression", "aggregate was not planned") from None

    def _in(self, cond: InCondition, scope: Scope) -> Truth:
        value = self.evaluate(cond.expression, scope)
        if is_null(value):
            return Truth.UNKNOWN
        result = Truth.FALSE
        for candidate_expr in cond.values:
            result = result | self._compare('=', value, self.evaluate(candidate_expr, scope))
            if result is Truth.TRUE:
                break
        return ~result if cond.negate else result

    @staticmethod
    def _compare(op: str, left: Any, right: Any) -> Truth:
        if is_null(left) or is_null(right):
            return Truth.UNKNOWN
        try:
            return Truth.of(_COMPARATORS[op](left, right))
        except TypeError as e:
            raise TypeMismatchError(
                f"Cannot compare {type(left).__name__} {op} {type(right).__name__}"
            ) from e

    @staticmethod
    def _apply_operator(left: Any, op: str, right: Any) -> Any:
        """Apply an arithmetic operator; NULL operands and division by zero give NULL."""
        if is_null(left) or is_null(right):
            return None
        left_text = isinstance(left, str)
        right_text = isinstance(right, str)
        if (left_text or right_text) and not (op == '+' and left_text and right_text):
            raise TypeMismatchError(
                f"Operator {op} is not defined for {type(left).__name__} and {type(right).__name__}"
            )
        try:
            return _ARITHMETIC[op](left, right)
        except ZeroDivisionError:
            return None
        except TypeError as e:
            raise TypeMismatchError(
                f"Operator {op} is not defined for {type(left).__name__} and {type(right).__name__}"
            ) from e


_default_evaluator = ExpressionEvaluator()


def evaluate(expr: Expression, fields: Mapping[str, Any], aggregates: Optional[Dict[str, Any]] = None) -> Any:
    """Convenience wrapper: evaluate ``expr`` over the given values."""
    return _default_evaluator.evaluate(expr, Scope(fields, aggregates))


def evaluate_truth(cond: Condition, fields: Mapping[str, Any], aggregates: Optional[Dict[str, Any]] = None) -> Truth:
    """Convenience wrapper: evaluate predicate ``cond`` over the given values."""
    return _default_evaluator.evaluate_truth(cond, Scope(fields, aggregates))
