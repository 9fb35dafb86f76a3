"""
Pure visualization functions for view lineage.

These functions translate a schema map into Graphviz DOT format.
No business logic - just presentation layer.
"""

from typing import Dict

import graphviz

from .models import ObjectKind, Schema


def _sanitize_graphviz_id(node_id: str) -> str:
    """
    Sanitize a node ID for use in Graphviz.

    Graphviz interprets colons as node:port syntax, so we need to replace
    them with safe characters.
    """
    return node_id.replace(":", "__").replace(".", "_")


_KIND_COLORS = {
    ObjectKind.TABLE: "#90CAF9",
    ObjectKind.VIEW: "#A5D6A7",
    ObjectKind.MATERIALIZED_VIEW: "#B39DDB",
}
_UNKNOWN_COLOR = "#BDBDBD"


def visualize_view_lineage(schemas: Dict[str, Schema]) -> graphviz.Digraph:
    """
    Create Graphviz visualization of view column lineage.

    One node per column that takes part in lineage (a view column with a
    source, or the column it points at), one edge per immediate source
    pointer, drawn from the source column to the view column.

    Args:
        schemas: The extracted schema map

    Returns:
        graphviz.Digraph object ready to render
    """
    dot = graphviz.Digraph(comment="View Lineage")
    dot.attr(rankdir="LR")
    dot.attr("node", fontname="Arial", fontsize="10", shape="box", style="filled")

    # Kind of every relation, for colouring
    kinds = {}
    for schema in schemas.values():
        for relation in schema.tables + schema.views + schema.materialized_views:
            kinds[(schema.name, relation.name)] = relation.kind

    added = set()

    def add_node(schema_name: str, relation_name: str, column_name: str) -> str:
        full_name = f"{schema_name}.{relation_name}.{column_name}"
        node_id = _sanitize_graphviz_id(full_name)
        if full_name not in added:
            added.add(full_name)
            color = _KIND_COLORS.get(kinds.get((schema_name, relation_name)), _UNKNOWN_COLOR)
            dot.node(
                node_id,
                label=f"{relation_name}.{column_name}",
                fillcolor=color,
                tooltip=full_name,
            )
        return node_id

    for schema in schemas.values():
        for view in schema.views + schema.materialized_views:
            for column in view.columns:
                if column.source is None:
                    continue
                target = add_node(schema.name, view.name, column.name)
                source = add_node(column.source.schema, column.source.table, column.source.column)
                dot.edge(source, target)

    return dot


__all__ = ["visualize_view_lineage"]
