"""
Pure visualization functions for class graphs.

These functions translate class descriptors into Graphviz DOT format.
No business logic - just presentation layer.
"""

from typing import Iterable

import graphviz

from .models import ClassDescriptor, Relationship
from .registry import dependency_order


def _node_id(cls: ClassDescriptor) -> str:
    """Graphviz reads colons as node:port syntax, so keep them out of ids"""
    return f"class__{cls.key}".replace(":", "__").replace(".", "_")


def visualize_classes(classes: Iterable[ClassDescriptor]) -> graphviz.Digraph:
    """
    Create Graphviz visualization of classes and how they relate.

    Pure function: Takes class descriptors, returns Graphviz Digraph. Classes
    reachable from ``classes`` (parents, extended and referenced classes) are
    drawn too.

    Args:
        classes: Class descriptors to draw

    Returns:
        graphviz.Digraph object ready to render
    """
    dot = graphviz.Digraph(comment="Class Relationships")
    dot.attr(rankdir="BT")
    dot.attr("node", shape="record", style="rounded,filled", fontname="Arial", fontsize="12")
    dot.attr("edge", fontsize="10", color="#555555")

    # Edge styles for each relationship
    styles = {
        "parent": {"label": "is a", "color": "#4CAF50", "arrowhead": "empty", "penwidth": "2.0"},
        Relationship.EXTENDS: {"label": "extends", "color": "#2196F3", "style": "bold"},
        Relationship.MEDIATES: {"label": "mediates", "color": "#9C27B0", "style": "bold"},
        Relationship.TYPE_OF: {"label": "type of", "color": "#FF9800", "style": "dashed"},
        Relationship.HAS: {"label": "has", "color": "#607D8B"},
        Relationship.HAS_MANY: {"label": "has many", "color": "#E91E63", "arrowhead": "crow"},
    }

    ordered = dependency_order(classes)
    for cls in ordered:
        columns = "\\l".join(
            f"{attr.name} : {attr.type}" + (" *" if attr.required else "") for attr in cls.own_attributes
        )
        dot.node(
            _node_id(cls),
            label=f"{{{cls.name}|{columns}\\l}}" if columns else cls.name,
            fillcolor="#E3F2FD" if cls.parent is None else "#FFF8E1",
            tooltip=f"table {cls.table}, view {cls.view}",
        )

    for cls in ordered:
        if cls.parent is not None:
            dot.edge(_node_id(cls), _node_id(cls.parent), **styles["parent"])
        for attr in cls.own_attributes:
            if attr.references is None or attr.delegates_to is not None:
                continue
            style = dict(styles[attr.relationship or Relationship.HAS])
            if attr.relationship in (None, Relationship.HAS, Relationship.HAS_MANY):
                style["label"] = f"{style['label']} ({attr.name})"
            dot.edge(_node_id(cls), _node_id(attr.references), **style)

    return dot


__all__ = ["visualize_classes"]
