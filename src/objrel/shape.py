"""
Logical shape of searches and compiled WHERE fragments.

A shape keeps only the AND/OR nesting: leaves become ``"leaf"`` and groups
become ``("AND" | "OR", [members...])``. Single-member groups collapse into
their member and nested groups of the same combinator are flattened, because
neither survives a trip through SQL text.
"""

from typing import Any, List, Union

import sqlglot
from sqlglot import exp

from .backends import Backend
from .models import IRNode, Leaf

Shape = Union[str, tuple]

LEAF = "leaf"


def _normalize(combinator: str, members: List[Shape]) -> Shape:
    flattened: List[Shape] = []
    for member in members:
        if isinstance(member, tuple) and member[0] == combinator:
            flattened.extend(member[1])
        else:
            flattened.append(member)
    if len(flattened) == 1:
        return flattened[0]
    return (combinator, flattened)


def ir_shape(node: IRNode) -> Any:
    """Shape of an IR tree. Empty groups have no shape (None)"""
    if isinstance(node, Leaf):
        return LEAF
    members = [shape for shape in (ir_shape(m) for m in node.members) if shape is not None]
    if not members:
        return None
    return _normalize(node.combinator.value, members)


def where_shape(where: str, backend=Backend.POSTGRES) -> Any:
    """
    Shape of a compiled WHERE fragment, read back with sqlglot.

    Args:
        where: WHERE fragment without the keyword
        backend: Backend (or backend name) whose dialect the fragment is in

    Returns:
        The fragment's shape, or None for an empty fragment
    """
    if not where:
        return None
    dialect = Backend.from_name(backend).sqlglot_dialect
    tree = sqlglot.parse_one(f"SELECT 1 WHERE {where}", read=dialect)
    return _expression_shape(tree.args["where"].this)


def _expression_shape(node: exp.Expression) -> Shape:
    while isinstance(node, exp.Paren):
        node = node.this
    if isinstance(node, exp.And):
        return _normalize("AND", [_expression_shape(node.left), _expression_shape(node.right)])
    if isinstance(node, exp.Or):
        return _normalize("OR", [_expression_shape(node.left), _expression_shape(node.right)])
    return LEAF


__all__ = ["LEAF", "ir_shape", "where_shape"]
