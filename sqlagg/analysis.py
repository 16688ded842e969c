"""
Static analysis of expression trees.

These helpers answer the structural questions query validation asks before any
row is read: which aggregates does an expression use, which raw columns does
it reference outside of aggregates, and is any aggregate nested in another.
"""

from typing import Iterator, List

from .expressions import Expression, Field, Node, Star

__all__ = [
    'aggregates_in',
    'columns_in',
    'free_columns',
    'has_aggregate',
    'has_star',
    'nested_aggregate',
]


def _walk_outside_aggregates(node: Node) -> Iterator[Node]:
    """Pre-order walk that yields aggregates but does not descend into them."""
    yield node
    if getattr(node, 'is_aggregate', False):
        return
    for child in node.children():
        yield from _walk_outside_aggregates(child)


def aggregates_in(expr: Expression) -> List[Expression]:
    """Outermost aggregate function nodes of ``expr``, in tree order."""
    return [n for n in _walk_outside_aggregates(expr) if getattr(n, 'is_aggregate', False)]


def has_aggregate(expr: Expression) -> bool:
    return any(getattr(n, 'is_aggregate', False) for n in expr.nodes())


def free_columns(expr: Expression) -> List[str]:
    """
    Column names referenced outside any aggregate.

    Example:
        >>> free_columns(Field('Dept') + Sum('Salary'))
        ['Dept']
    """
    names = []
    for node in _walk_outside_aggregates(expr):
        if isinstance(node, Field) and node.name not in names:
            names.append(node.name)
    return names


def columns_in(expr: Expression) -> List[str]:
    """Every column name referenced anywhere in ``expr``."""
    names = []
    for field in expr.find(Field):
        if field.name not in names:
            names.append(field.name)
    return names


def has_star(expr: Expression) -> bool:
    """True when ``*`` appears outside COUNT(*)."""
    return any(isinstance(n, Star) for n in _walk_outside_aggregates(expr))


def nested_aggregate(expr: Expression):
    """Return the first aggregate found inside another aggregate, or None."""
    for outer in aggregates_in(expr):
        for child in outer.children():
            for node in child.nodes():
                if getattr(node, 'is_aggregate', False):
                    return node
    return None
