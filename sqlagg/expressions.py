"""
Expression system for sqlagg - column references, literals and arithmetic.

Expressions form an immutable tree. Comparison operators build conditions
(see ``conditions``), aggregate shortcuts build aggregate functions (see
``functions``), and every node renders itself back to SQL with ``to_sql()``.
"""

import datetime
from copy import copy
from decimal import Decimal
from typing import Any, Iterator, List, Optional, Tuple, Type, TYPE_CHECKING

from .utils import immutable, format_identifier, format_alias
from .exceptions import ValidationError

if TYPE_CHECKING:
    from .conditions import BinaryCondition, Condition
    from .functions import AggregateFunction

__all__ = [
    "Node",
    "Expression",
    "Field",
    "Star",
    "Literal",
    "ArithmeticExpression",
    "col",
    "lit",
]


class Node:
    """Tree node; subclasses list their operands in ``children()``."""

    def children(self) -> Tuple["Node", ...]:
        return ()

    def nodes(self) -> Iterator["Node"]:
        """This node, then every descendant (pre-order)."""
        yield self
        for child in self.children():
            yield from child.nodes()

    def find(self, node_type: Type["Node"]) -> List["Node"]:
        """
        Every node of ``node_type`` in this subtree, in pre-order.

        Example:
            >>> (col('a') + col('b') * 2).find(Field)
            [Field('"a"'), Field('"b"')]
        """
        return [node for node in self.nodes() if isinstance(node, node_type)]


class Expression(Node):
    """
    A value computed per row (or per group, once aggregates are involved).

    Columns, constants, arithmetic, scalar and aggregate function calls and
    conditions are all expressions, so they compose freely:

        >>> (Max('Salary') - Min('Salary')).as_('spread')
        >>> col('Salary') * 1.1 > 50000
    """

    is_aggregate = False

    def __init__(self, alias: Optional[str] = None):
        self.alias = alias

    @immutable
    def as_(self, alias: str) -> "Expression":
        """Return a copy named ``alias`` in the output."""
        self.alias = alias

    @staticmethod
    def wrap(value: Any) -> "Expression":
        """Expressions pass through; any other value (None included) becomes a Literal."""
        return value if isinstance(value, Expression) else Literal(value)

    def to_sql(self, quote_char: str = '"', **kwargs) -> str:
        raise NotImplementedError(f"{type(self).__name__} must implement to_sql()")

    @property
    def identifier(self) -> str:
        """Alias-free SQL text; expressions with equal identifiers compute the same value."""
        return self.to_sql()

    @property
    def output_name(self) -> str:
        """Column name used when this expression is projected."""
        return self.alias or self.to_sql(quote_char='')

    # ========== Comparisons ==========
    # Comparing with NULL yields UNKNOWN, so col == None is never satisfied.
    # Use isnull() to test for NULL.

    def _compare(self, op: str, other: Any) -> "BinaryCondition":
        from .conditions import BinaryCondition

        return BinaryCondition(op, self, self.wrap(other))

    def __eq__(self, other: Any) -> "Condition":
        return self._compare("=", other)

    def __ne__(self, other: Any) -> "Condition":
        return self._compare("!=", other)

    def __gt__(self, other: Any) -> "BinaryCondition":
        return self._compare(">", other)

    def __ge__(self, other: Any) -> "BinaryCondition":
        return self._compare(">=", other)

    def __lt__(self, other: Any) -> "BinaryCondition":
        return self._compare("<", other)

    def __le__(self, other: Any) -> "BinaryCondition":
        return self._compare("<=", other)

    # __eq__ builds conditions, so keep identity hashing
    __hash__ = object.__hash__

    # ========== Predicates ==========

    def isnull(self) -> "Condition":
        """
        IS NULL test, the only comparison that is TRUE for NULL.

        Example:
            >>> col('Bonus').isnull()    # "Bonus" IS NULL
        """
        from .conditions import UnaryCondition

        return UnaryCondition("IS NULL", self)

    def notnull(self) -> "Condition":
        from .conditions import UnaryCondition

        return UnaryCondition("IS NOT NULL", self)

    def isin(self, values) -> "Condition":
        """
        Membership test against a list of constants.

        Example:
            >>> col('Dept').isin(['IT', 'HR'])    # "Dept" IN ('IT','HR')
        """
        from .conditions import InCondition

        return InCondition(self, values)

    def notin(self, values) -> "Condition":
        from .conditions import InCondition

        return InCondition(self, values, negate=True)

    def between(self, lower, upper) -> "Condition":
        """
        Inclusive range test.

        Example:
            >>> col('Salary').between(40000, 60000)
        """
        from .conditions import BetweenCondition

        return BetweenCondition(self, self.wrap(lower), self.wrap(upper))

    def like(self, pattern: str) -> "Condition":
        """
        SQL pattern match: % matches any run of characters, _ exactly one.

        Example:
            >>> col('Name').like('A%')
        """
        from .conditions import LikeCondition

        return LikeCondition(self, pattern)

    def notlike(self, pattern: str) -> "Condition":
        from .conditions import LikeCondition

        return LikeCondition(self, pattern, negate=True)

    def ilike(self, pattern: str) -> "Condition":
        """Case-insensitive ``like``."""
        from .conditions import LikeCondition

        return LikeCondition(self, pattern, case_sensitive=False)

    # ========== Aggregate Shortcuts ==========

    def sum(self, distinct: bool = False, alias: str = None) -> "AggregateFunction":
        """
        SUM over this expression.

        Example:
            >>> col('Salary').sum().as_('total')
        """
        from .functions import Sum

        return Sum(self, distinct=distinct, alias=alias)

    def avg(self, distinct: bool = False, alias: str = None) -> "AggregateFunction":
        from .functions import Avg

        return Avg(self, distinct=distinct, alias=alias)

    mean = avg

    def min(self, alias: str = None) -> "AggregateFunction":
        from .functions import Min

        return Min(self, alias=alias)

    def max(self, alias: str = None) -> "AggregateFunction":
        from .functions import Max

        return Max(self, alias=alias)

    def count(self, distinct: bool = False, alias: str = None) -> "AggregateFunction":
        """COUNT of the non-NULL values of this expression."""
        from .functions import Count

        return Count(self, distinct=distinct, alias=alias)

    # ========== Arithmetic ==========

    def _arith(self, op: str, other: Any, reflected: bool = False) -> "ArithmeticExpression":
        other = self.wrap(other)
        if reflected:
            return ArithmeticExpression(op, other, self)
        return ArithmeticExpression(op, self, other)

    def __add__(self, other: Any) -> "ArithmeticExpression":
        return self._arith("+", other)

    def __radd__(self, other: Any) -> "ArithmeticExpression":
        return self._arith("+", other, reflected=True)

    def __sub__(self, other: Any) -> "ArithmeticExpression":
        return self._arith("-", other)

    def __rsub__(self, other: Any) -> "ArithmeticExpression":
        return self._arith("-", other, reflected=True)

    def __mul__(self, other: Any) -> "ArithmeticExpression":
        return self._arith("*", other)

    def __rmul__(self, other: Any) -> "ArithmeticExpression":
        return self._arith("*", other, reflected=True)

    def __truediv__(self, other: Any) -> "ArithmeticExpression":
        return self._arith("/", other)

    def __rtruediv__(self, other: Any) -> "ArithmeticExpression":
        return self._arith("/", other, reflected=True)

    def __floordiv__(self, other: Any) -> "ArithmeticExpression":
        return self._arith("//", other)

    def __rfloordiv__(self, other: Any) -> "ArithmeticExpression":
        return self._arith("//", other, reflected=True)

    def __mod__(self, other: Any) -> "ArithmeticExpression":
        return self._arith("%", other)

    def __pow__(self, other: Any) -> "ArithmeticExpression":
        return self._arith("**", other)

    def __rpow__(self, other: Any) -> "ArithmeticExpression":
        return self._arith("**", other, reflected=True)

    def __neg__(self) -> "ArithmeticExpression":
        return self._arith("-", 0, reflected=True)

    def __str__(self) -> str:
        return self.to_sql()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.to_sql()!r})"


class Field(Expression):
    """
    A column of the input rows, referenced by name.

    Example:
        >>> Field('Salary')
    """

    def __init__(self, name: str, alias: Optional[str] = None):
        super().__init__(alias)
        if not isinstance(name, str) or not name:
            raise ValidationError(f"Column name must be a non-empty string, got {name!r}")
        self.name = name

    def to_sql(self, quote_char: str = '"', **kwargs) -> str:
        sql = format_identifier(self.name, quote_char)
        if self.alias and kwargs.get("with_alias"):
            sql = format_alias(sql, self.alias, quote_char)
        return sql

    def __copy__(self):
        return Field(self.name, self.alias)


class Star(Expression):
    """``*``: every input column in SELECT, every row in COUNT(*)."""

    def __init__(self, alias: Optional[str] = None):
        super().__init__(alias)

    def to_sql(self, quote_char: str = '"', **kwargs) -> str:
        return "*"

    def __copy__(self):
        return Star(self.alias)

    def __repr__(self):
        return "Star()"


def _literal_sql(value: Any) -> str:
    if value is None:
        return "NULL"
    # bool before int: True is an int
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (int, float, Decimal)):
        return str(value)
    if isinstance(value, str):
        return "'" + value.replace("'", "''") + "'"
    if isinstance(value, datetime.datetime):
        fmt = '%Y-%m-%d %H:%M:%S.%f' if value.microsecond else '%Y-%m-%d %H:%M:%S'
        return f"'{value.strftime(fmt)}'"
    if isinstance(value, datetime.date):
        return f"'{value.isoformat()}'"
    return f"'{value!r}'"


class Literal(Expression):
    """
    A constant. ``Literal(None)`` is SQL NULL.

    Example:
        >>> Literal(42)
        >>> Literal("IT")
    """

    def __init__(self, value: Any, alias: Optional[str] = None):
        super().__init__(alias)
        self.value = value

    def to_sql(self, quote_char: str = '"', **kwargs) -> str:
        sql = _literal_sql(self.value)
        if self.alias and kwargs.get("with_alias"):
            sql = format_alias(sql, self.alias, quote_char)
        return sql

    def __copy__(self):
        return Literal(self.value, self.alias)


class ArithmeticExpression(Expression):
    """
    Binary arithmetic over two expressions. Any NULL operand makes the result
    NULL, and so does division by zero.

    Example:
        >>> col('Salary') * 1.1
        >>> Max('Salary') - Min('Salary')
    """

    OPERATORS = ("+", "-", "*", "/", "//", "%", "**")

    def __init__(self, operator: str, left: Expression, right: Expression, alias: Optional[str] = None):
        super().__init__(alias)
        if operator not in self.OPERATORS:
            raise ValidationError(f"Unsupported arithmetic operator {operator!r}")
        self.operator = operator
        self.left = left
        self.right = right

    def children(self) -> Tuple[Node, ...]:
        return (self.left, self.right)

    def to_sql(self, quote_char: str = '"', **kwargs) -> str:
        operand_kwargs = {k: v for k, v in kwargs.items() if k != "with_alias"}
        lhs = self.left.to_sql(quote_char=quote_char, **operand_kwargs)
        rhs = self.right.to_sql(quote_char=quote_char, **operand_kwargs)

        if self.operator == "**":
            sql = f"POWER({lhs},{rhs})"
        elif self.operator == "//":
            sql = f"FLOOR({lhs}/{rhs})"
        else:
            sql = f"({lhs}{self.operator}{rhs})"

        if self.alias and kwargs.get("with_alias"):
            sql = format_alias(sql, self.alias, quote_char)
        return sql

    def __copy__(self):
        return ArithmeticExpression(self.operator, copy(self.left), copy(self.right), self.alias)


def col(name: str) -> Field:
    """
    Column reference, the usual starting point for building expressions.

    Example:
        >>> Query().select("Dept", col("Salary").avg().as_("avg_salary")).groupby("Dept")
    """
    return Field(name)


def lit(value: Any) -> Literal:
    return Literal(value)
