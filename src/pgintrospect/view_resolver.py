"""
Cross-schema view lineage resolution.

Follows each view and materialized view column's ``source`` pointer through
any number of intermediate views until it reaches a terminal column (a table
column, or a view column with no known source), then copies the terminal
column's nullability, primary key flag and foreign key references onto the
view column.
"""

import logging
from dataclasses import replace
from typing import Dict, List, Optional, Set, Tuple, Union

from .errors import LineageCycleError, LineageResolutionError
from .models import (
    ColumnSource,
    MaterializedViewDetails,
    Schema,
    TableColumn,
    ViewColumn,
    ViewDetails,
)

logger = logging.getLogger(__name__)

AnyColumn = Union[TableColumn, ViewColumn]
ColumnKey = Tuple[str, str, str]


class ViewColumnResolver:
    """
    Resolves view column lineage across a whole schema map.

    The input map is not modified; ``resolve()`` returns a new map in which
    views and materialized views are copies with resolved columns, and
    everything else (tables in particular) is shared with the input.

    Raises (from resolve):
        LineageResolutionError: A source pointer names a schema, relation or
            column that is not in the map.
        LineageCycleError: Following source pointers revisits a column.
    """

    def __init__(self, schemas: Dict[str, Schema]):
        self.schemas = schemas

    def resolve(self) -> Dict[str, Schema]:
        resolved = {}
        for name, schema in self.schemas.items():
            resolved[name] = replace(
                schema,
                views=[self._resolve_view(view) for view in schema.views],
                materialized_views=[self._resolve_view(view) for view in schema.materialized_views],
            )
        return resolved

    def _resolve_view(self, view: Union[ViewDetails, MaterializedViewDetails]):
        columns = []
        for column in view.columns:
            start = (view.schema_name, view.name, column.name)
            columns.append(self.resolve_column(column, start))
        return replace(view, columns=columns)

    def resolve_column(self, column: ViewColumn, start: Optional[ColumnKey] = None) -> ViewColumn:
        """Return a copy of ``column`` carrying its terminal column's key metadata."""
        if column.source is None:
            return column

        terminal = self.find_terminal(column.source, start)
        return replace(
            column,
            is_nullable=terminal.is_nullable,
            is_primary_key=terminal.is_primary_key,
            references=list(terminal.references) if terminal.references is not None else None,
        )

    def find_terminal(self, source: ColumnSource, start: Optional[ColumnKey] = None) -> AnyColumn:
        """Walk source pointers from ``source`` to the first column that has none."""
        path: List[ColumnKey] = [start] if start is not None else []
        visited: Set[ColumnKey] = set(path)

        current: Optional[ColumnSource] = source
        while True:
            key = current.as_tuple()
            if key in visited:
                raise LineageCycleError(path + [key])
            visited.add(key)
            path.append(key)

            found = self.find_column(current)
            next_source = getattr(found, "source", None)
            if next_source is None:
                logger.debug("Resolved %s in %d hop(s)", " -> ".join(".".join(step) for step in path), len(path) - 1)
                return found
            current = next_source

    def find_column(self, source: ColumnSource) -> AnyColumn:
        """
        Locate the column a source points at.

        Relations are searched as tables, then views, then materialized
        views (see Schema.find_relation).
        """
        schema = self.schemas.get(source.schema)
        relation = schema.find_relation(source.table) if schema is not None else None
        if relation is not None:
            for column in relation.columns:
                if column.name == source.column:
                    return column

        raise LineageResolutionError(source.schema, source.table, source.column)


def resolve_view_columns(schemas: Dict[str, Schema], resolve: bool = True) -> Dict[str, Schema]:
    """
    Resolve lineage for every view and materialized view column in ``schemas``.

    With ``resolve=False`` the map is returned unchanged.
    """
    if not resolve:
        return schemas

    logger.info("Resolving view column lineage across %d schema(s)", len(schemas))
    return ViewColumnResolver(schemas).resolve()


__all__ = ["ViewColumnResolver", "resolve_view_columns"]
