"""
Conditions: boolean-valued expressions for WHERE and HAVING.

A condition evaluates to TRUE, FALSE or UNKNOWN (see ``logic``); filters keep
only rows or groups for which it is TRUE.
"""

from copy import copy
from functools import reduce
from typing import Optional, List, Tuple

from .expressions import Expression, Node, Literal
from .utils import format_alias
from .exceptions import ValidationError

__all__ = [
    'Condition',
    'BinaryCondition',
    'CompoundCondition',
    'NotCondition',
    'UnaryCondition',
    'InCondition',
    'BetweenCondition',
    'LikeCondition',
]


class Condition(Expression):
    """
    Predicate node. Combine with ``&`` (AND), ``|`` (OR), ``^`` (XOR) and ``~`` (NOT).

    Example:
        >>> (col('Salary') > 45000) & ~(col('Dept') == 'HR')
    """

    def __and__(self, other: 'Condition') -> 'CompoundCondition':
        return CompoundCondition('AND', self, other)

    def __or__(self, other: 'Condition') -> 'CompoundCondition':
        return CompoundCondition('OR', self, other)

    def __xor__(self, other: 'Condition') -> 'CompoundCondition':
        return CompoundCondition('XOR', self, other)

    def __invert__(self) -> 'NotCondition':
        return NotCondition(self)

    def __bool__(self):
        # (a > 1) and (b < 2) would silently drop the left side
        raise TypeError("Conditions cannot be used as Python booleans; combine them with &, | and ~")

    @staticmethod
    def all(conditions: List['Condition']) -> Optional['Condition']:
        """AND of every condition, left to right; None for an empty list."""
        return reduce(lambda acc, c: acc & c, conditions) if conditions else None

    @staticmethod
    def any(conditions: List['Condition']) -> Optional['Condition']:
        """OR of every condition, left to right; None for an empty list."""
        return reduce(lambda acc, c: acc | c, conditions) if conditions else None

    def _finish_sql(self, sql: str, quote_char: str, kwargs) -> str:
        if kwargs.get('with_alias', False) and self.alias:
            return format_alias(sql, self.alias, quote_char)
        return sql


def _inner(kwargs) -> dict:
    return {k: v for k, v in kwargs.items() if k != 'with_alias'}


class BinaryCondition(Condition):
    """
    Comparison of two expressions. UNKNOWN when either side is NULL.

    ``<>`` is accepted and normalized to ``!=``.

    Example:
        >>> col('Salary') > 45000    # BinaryCondition('>', Field('Salary'), Literal(45000))
    """

    OPERATORS = {'=', '!=', '<>', '>', '>=', '<', '<='}

    def __init__(self, operator: str, left: Expression, right: Expression, alias: Optional[str] = None):
        super().__init__(alias)

        if operator not in self.OPERATORS:
            raise ValidationError(f"Unsupported comparison operator {operator!r}")

        self.operator = '!=' if operator == '<>' else operator
        self.left = left
        self.right = right

    def children(self) -> Tuple[Node, ...]:
        return (self.left, self.right)

    def to_sql(self, quote_char: str = '"', **kwargs) -> str:
        left_sql = self.left.to_sql(quote_char=quote_char, **_inner(kwargs))
        right_sql = self.right.to_sql(quote_char=quote_char, **_inner(kwargs))
        return self._finish_sql(f"{left_sql} {self.operator} {right_sql}", quote_char, kwargs)

    def __copy__(self):
        return BinaryCondition(self.operator, copy(self.left), copy(self.right), self.alias)


class CompoundCondition(Condition):
    """
    Two conditions joined by AND, OR or XOR, with SQL three-valued semantics:
    FALSE AND UNKNOWN is FALSE, TRUE OR UNKNOWN is TRUE.
    """

    OPERATORS = ('AND', 'OR', 'XOR')

    def __init__(self, operator: str, left: Condition, right: Condition, alias: Optional[str] = None):
        super().__init__(alias)

        if operator.upper() not in self.OPERATORS:
            raise ValidationError(f"Unsupported logical operator {operator!r}")
        for side in (left, right):
            if not isinstance(side, Condition):
                raise ValidationError(f"{operator.upper()} operands must be conditions, got {side!r}")

        self.operator = operator.upper()
        self.left = left
        self.right = right

    def children(self) -> Tuple[Node, ...]:
        return (self.left, self.right)

    def to_sql(self, quote_char: str = '"', **kwargs) -> str:
        left_sql = self.left.to_sql(quote_char=quote_char, **_inner(kwargs))
        right_sql = self.right.to_sql(quote_char=quote_char, **_inner(kwargs))
        return self._finish_sql(f"({left_sql} {self.operator} {right_sql})", quote_char, kwargs)

    def __copy__(self):
        return CompoundCondition(self.operator, copy(self.left), copy(self.right), self.alias)


class NotCondition(Condition):
    """Logical negation; NOT UNKNOWN stays UNKNOWN."""

    def __init__(self, condition: Condition, alias: Optional[str] = None):
        super().__init__(alias)
        if not isinstance(condition, Condition):
            raise ValidationError(f"NOT operand must be a condition, got {condition!r}")
        self.condition = condition

    def children(self) -> Tuple[Node, ...]:
        return (self.condition,)

    def to_sql(self, quote_char: str = '"', **kwargs) -> str:
        cond_sql = self.condition.to_sql(quote_char=quote_char, **_inner(kwargs))
        return self._finish_sql(f"NOT ({cond_sql})", quote_char, kwargs)

    def __copy__(self):
        return NotCondition(copy(self.condition), self.alias)


class UnaryCondition(Condition):
    """IS NULL / IS NOT NULL; always TRUE or FALSE, never UNKNOWN."""

    OPERATORS = ('IS NULL', 'IS NOT NULL')

    def __init__(self, operator: str, expression: Expression, alias: Optional[str] = None):
        super().__init__(alias)

        if operator.upper() not in self.OPERATORS:
            raise ValidationError(f"Unsupported null test {operator!r}")

        self.operator = operator.upper()
        self.expression = expression

    def children(self) -> Tuple[Node, ...]:
        return (self.expression,)

    def to_sql(self, quote_char: str = '"', **kwargs) -> str:
        expr_sql = self.expression.to_sql(quote_char=quote_char, **_inner(kwargs))
        return self._finish_sql(f"{expr_sql} {self.operator}", quote_char, kwargs)

    def __copy__(self):
        return UnaryCondition(self.operator, copy(self.expression), self.alias)


class InCondition(Condition):
    """
    Membership in a list of values. A NULL operand, or no match when the list
    holds a NULL, gives UNKNOWN.

    Example:
        >>> col('Dept').isin(['IT', 'HR'])
    """

    def __init__(self, expression: Expression, values, negate: bool = False, alias: Optional[str] = None):
        super().__init__(alias)
        self.expression = expression
        if not isinstance(values, (list, tuple, set, frozenset)):
            values = [values]
        self.values = [Expression.wrap(v) for v in values]
        self.negate = negate

    def children(self) -> Tuple[Node, ...]:
        return (self.expression, *self.values)

    def to_sql(self, quote_char: str = '"', **kwargs) -> str:
        expr_sql = self.expression.to_sql(quote_char=quote_char, **_inner(kwargs))
        values_sql = ','.join(v.to_sql(quote_char=quote_char, **_inner(kwargs)) for v in self.values)
        operator = 'NOT IN' if self.negate else 'IN'
        return self._finish_sql(f"{expr_sql} {operator} ({values_sql})", quote_char, kwargs)

    def __copy__(self):
        return InCondition(copy(self.expression), [copy(v) for v in self.values], self.negate, self.alias)


class BetweenCondition(Condition):
    """``lower <= expression <= upper``; both bounds inclusive."""

    def __init__(self, expression: Expression, lower: Expression, upper: Expression, alias: Optional[str] = None):
        super().__init__(alias)
        self.expression = expression
        self.lower = lower
        self.upper = upper

    def children(self) -> Tuple[Node, ...]:
        return (self.expression, self.lower, self.upper)

    def to_sql(self, quote_char: str = '"', **kwargs) -> str:
        expr_sql = self.expression.to_sql(quote_char=quote_char, **_inner(kwargs))
        lower_sql = self.lower.to_sql(quote_char=quote_char, **_inner(kwargs))
        upper_sql = self.upper.to_sql(quote_char=quote_char, **_inner(kwargs))
        return self._finish_sql(f"{expr_sql} BETWEEN {lower_sql} AND {upper_sql}", quote_char, kwargs)

    def __copy__(self):
        return BetweenCondition(copy(self.expression), copy(self.lower), copy(self.upper), self.alias)


class LikeCondition(Condition):
    """
    LIKE / ILIKE pattern match over text. Non-text input is a type error.

    Example:
        >>> col('Name').like('A%')    # "Name" LIKE 'A%'
    """

    def __init__(
        self,
        expression: Expression,
        pattern: str,
        negate: bool = False,
        case_sensitive: bool = True,
        alias: Optional[str] = None,
    ):
        super().__init__(alias)
        if not isinstance(pattern, str):
            raise ValidationError(f"LIKE pattern must be a string, got {pattern!r}")
        self.expression = expression
        self.pattern = pattern
        self.negate = negate
        self.case_sensitive = case_sensitive

    def children(self) -> Tuple[Node, ...]:
        return (self.expression,)

    def to_sql(self, quote_char: str = '"', **kwargs) -> str:
        expr_sql = self.expression.to_sql(quote_char=quote_char, **_inner(kwargs))
        pattern_sql = Literal(self.pattern).to_sql(quote_char=quote_char)

        if self.case_sensitive:
            operator = 'NOT LIKE' if self.negate else 'LIKE'
        else:
            operator = 'NOT ILIKE' if self.negate else 'ILIKE'

        return self._finish_sql(f"{expr_sql} {operator} {pattern_sql}", quote_char, kwargs)

    def __copy__(self):
        return LikeCondition(copy(self.expression), self.pattern, self.negate, self.case_sensitive, self.alias)
