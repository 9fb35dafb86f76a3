"""
View and materialized view extraction.

Both kinds carry each column's immediate ``source``, worked out by parsing
the stored definition. A definition that cannot be parsed is not fatal: the
columns are returned without sources and the error is kept on the view.
"""

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from ..adapter import QueryExecutor
from ..errors import ViewParseError
from ..models import ColumnSource, MaterializedViewDetails, PgType, ViewColumn, ViewDetails, ViewOptions
from ..view_parser import match_view_columns, parse_view_definition
from .columns import column_fields, fetch_relation_columns

logger = logging.getLogger(__name__)

VIEW_QUERY = """
SELECT
    pg_get_viewdef(c.oid) AS definition,
    (
        SELECT option_value FROM pg_options_to_table(c.reloptions)
        WHERE option_name = 'check_option'
    ) AS check_option,
    COALESCE((
        SELECT option_value::boolean FROM pg_options_to_table(c.reloptions)
        WHERE option_name = 'security_barrier'
    ), false) AS security_barrier,
    COALESCE((
        SELECT option_value::boolean FROM pg_options_to_table(c.reloptions)
        WHERE option_name = 'security_invoker'
    ), false) AS security_invoker
FROM pg_class c
JOIN pg_namespace n ON n.oid = c.relnamespace
WHERE n.nspname = %(schema_name)s AND c.relname = %(name)s
"""

VIEW_INFORMATION_SCHEMA_QUERY = """
SELECT *
FROM information_schema.views
WHERE table_schema = %(schema_name)s AND table_name = %(name)s
"""

MATERIALIZED_VIEW_QUERY = """
SELECT definition
FROM pg_matviews
WHERE schemaname = %(schema_name)s AND matviewname = %(name)s
"""


def column_sources(
    definition: str, schema_name: str, view_name: str, column_names: Sequence[str]
) -> Tuple[Dict[str, Optional[ColumnSource]], Optional[str]]:
    """
    Immediate source of each named column of a view.

    Returns the sources and, when the definition could not be parsed, the
    parse error message (every source is then None).
    """
    try:
        references = parse_view_definition(definition, schema_name)
    except ViewParseError as e:
        logger.warning(
            'Error parsing view definition for "%s.%s". Falling back to raw data: %s',
            schema_name,
            view_name,
            e,
        )
        return {name: None for name in column_names}, str(e)
    return match_view_columns(column_names, references), None


def _view_columns(
    db: QueryExecutor, pg_type: PgType, definition: str, keep_nullability: bool
) -> Tuple[List[ViewColumn], Optional[str]]:
    rows = fetch_relation_columns(db, pg_type.schema_name, pg_type.name)
    sources, parse_error = column_sources(
        definition, pg_type.schema_name, pg_type.name, [row["name"] for row in rows]
    )
    columns = [
        ViewColumn(
            **column_fields(row),
            source=sources.get(row["name"]),
            is_nullable=bool(row["is_nullable"]) if keep_nullability else None,
        )
        for row in rows
    ]
    return columns, parse_error


def extract_view(db: QueryExecutor, pg_type: PgType) -> ViewDetails:
    params = {"schema_name": pg_type.schema_name, "name": pg_type.name}

    view_rows = db.query(VIEW_QUERY, params)
    view_row = view_rows[0] if view_rows else {}
    definition = view_row.get("definition") or ""

    # Nullability of a plain view column is not tracked by the catalog
    columns, parse_error = _view_columns(db, pg_type, definition, keep_nullability=False)

    information_schema_rows = db.query(VIEW_INFORMATION_SCHEMA_QUERY, params)

    logger.debug("Extracted view %s.%s (%d columns)", pg_type.schema_name, pg_type.name, len(columns))
    return ViewDetails(
        name=pg_type.name,
        schema_name=pg_type.schema_name,
        comment=pg_type.comment,
        definition=definition,
        columns=columns,
        options=ViewOptions(
            check_option=view_row.get("check_option"),
            security_barrier=bool(view_row.get("security_barrier")),
            security_invoker=bool(view_row.get("security_invoker")),
        ),
        information_schema_value=information_schema_rows[0] if information_schema_rows else {},
        parse_error=parse_error,
    )


def extract_materialized_view(db: QueryExecutor, pg_type: PgType) -> MaterializedViewDetails:
    rows = db.query(MATERIALIZED_VIEW_QUERY, {"schema_name": pg_type.schema_name, "name": pg_type.name})
    definition = (rows[0].get("definition") if rows else None) or ""

    columns, parse_error = _view_columns(db, pg_type, definition, keep_nullability=True)

    logger.debug(
        "Extracted materialized view %s.%s (%d columns)", pg_type.schema_name, pg_type.name, len(columns)
    )
    return MaterializedViewDetails(
        name=pg_type.name,
        schema_name=pg_type.schema_name,
        comment=pg_type.comment,
        definition=definition,
        columns=columns,
        parse_error=parse_error,
    )
