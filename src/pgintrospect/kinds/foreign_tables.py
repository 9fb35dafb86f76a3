"""
Foreign table extraction.
"""

import logging
from typing import Dict, Optional, Sequence

from ..adapter import QueryExecutor
from ..models import ForeignTableDetails, PgType, TableColumn
from .columns import column_fields, fetch_relation_columns

logger = logging.getLogger(__name__)

FOREIGN_TABLE_QUERY = """
SELECT s.srvname AS server, ft.ftoptions AS options
FROM pg_foreign_table ft
JOIN pg_class c ON c.oid = ft.ftrelid
JOIN pg_namespace n ON n.oid = c.relnamespace
JOIN pg_foreign_server s ON s.oid = ft.ftserver
WHERE n.nspname = %(schema_name)s AND c.relname = %(name)s
"""


def parse_options(options: Optional[Sequence[str]]) -> Dict[str, str]:
    """Turn a reloptions-style list ("key=value", ...) into a dict"""
    parsed = {}
    for option in options or []:
        key, _, value = option.partition("=")
        parsed[key] = value
    return parsed


def extract_foreign_table(db: QueryExecutor, pg_type: PgType) -> ForeignTableDetails:
    rows = db.query(FOREIGN_TABLE_QUERY, {"schema_name": pg_type.schema_name, "name": pg_type.name})
    row = rows[0] if rows else {}

    columns = [
        TableColumn(**column_fields(column), is_nullable=bool(column["is_nullable"]))
        for column in fetch_relation_columns(db, pg_type.schema_name, pg_type.name)
    ]

    logger.debug("Extracted foreign table %s.%s", pg_type.schema_name, pg_type.name)
    return ForeignTableDetails(
        name=pg_type.name,
        schema_name=pg_type.schema_name,
        comment=pg_type.comment,
        columns=columns,
        server=row.get("server"),
        options=parse_options(row.get("options")),
    )
