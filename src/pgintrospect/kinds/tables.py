"""
Table extraction.
"""

import logging
from collections import defaultdict
from typing import Dict, List

from ..adapter import QueryExecutor
from ..models import (
    UPDATE_ACTION_CODES,
    ColumnReference,
    PgType,
    TableCheck,
    TableColumn,
    TableDetails,
    TableIndex,
    TableIndexColumn,
    TableSecurityPolicy,
)
from .columns import column_fields, fetch_relation_columns, strip_check_clause

logger = logging.getLogger(__name__)

TABLE_INFORMATION_SCHEMA_QUERY = """
SELECT *
FROM information_schema.tables
WHERE table_schema = %(schema_name)s AND table_name = %(name)s
"""

# One row per (constraint, column pair) of every foreign key on the table
REFERENCES_QUERY = """
SELECT
    src.attname AS column_name,
    tn.nspname AS schema_name,
    tc.relname AS table_name,
    tgt.attname AS referenced_column,
    k.conname AS name,
    k.confupdtype AS on_update,
    k.confdeltype AS on_delete
FROM (
    SELECT
        con.conname,
        con.conrelid,
        con.confrelid,
        con.confupdtype,
        con.confdeltype,
        unnest(con.conkey) AS source_attnum,
        unnest(con.confkey) AS target_attnum
    FROM pg_constraint con
    JOIN pg_class c ON c.oid = con.conrelid
    JOIN pg_namespace n ON n.oid = c.relnamespace
    WHERE con.contype = 'f'
      AND n.nspname = %(schema_name)s
      AND c.relname = %(name)s
) k
JOIN pg_attribute src ON src.attrelid = k.conrelid AND src.attnum = k.source_attnum
JOIN pg_attribute tgt ON tgt.attrelid = k.confrelid AND tgt.attnum = k.target_attnum
JOIN pg_class tc ON tc.oid = k.confrelid
JOIN pg_namespace tn ON tn.oid = tc.relnamespace
WHERE NOT tc.relispartition
ORDER BY k.conname, k.source_attnum
"""

INDICES_QUERY = """
SELECT
    i.relname AS name,
    ix.indisprimary AS is_primary,
    ix.indisunique AS is_unique,
    (
        SELECT json_agg(
            json_build_object(
                'name', a.attname,
                'definition', pg_get_indexdef(ix.indexrelid, keys.key_order::integer, true)
            )
            ORDER BY keys.key_order
        )
        FROM unnest(ix.indkey) WITH ORDINALITY AS keys(attnum, key_order)
        LEFT JOIN pg_attribute a ON a.attrelid = ix.indrelid AND a.attnum = keys.attnum
    ) AS columns
FROM pg_index ix
JOIN pg_class i ON i.oid = ix.indexrelid
JOIN pg_class t ON t.oid = ix.indrelid
JOIN pg_namespace n ON n.oid = t.relnamespace
WHERE n.nspname = %(schema_name)s AND t.relname = %(name)s
ORDER BY i.relname
"""

CHECKS_QUERY = """
SELECT con.conname AS name, pg_get_constraintdef(con.oid) AS definition
FROM pg_constraint con
JOIN pg_class c ON c.oid = con.conrelid
JOIN pg_namespace n ON n.oid = c.relnamespace
WHERE con.contype = 'c' AND n.nspname = %(schema_name)s AND c.relname = %(name)s
ORDER BY con.conname
"""

ROW_LEVEL_SECURITY_QUERY = """
SELECT
    c.relrowsecurity AS is_row_level_security_enabled,
    c.relforcerowsecurity AS is_row_level_security_enforced
FROM pg_class c
JOIN pg_namespace n ON n.oid = c.relnamespace
WHERE n.nspname = %(schema_name)s AND c.relname = %(name)s
"""

SECURITY_POLICIES_QUERY = """
SELECT
    policyname AS name,
    permissive = 'PERMISSIVE' AS is_permissive,
    roles::text[] AS roles_applied_to,
    cmd AS command_type,
    qual AS visibility_expression,
    with_check AS modifiability_expression
FROM pg_policies
WHERE schemaname = %(schema_name)s AND tablename = %(name)s
ORDER BY policyname
"""


def fetch_column_references(db: QueryExecutor, schema_name: str, name: str) -> Dict[str, List[ColumnReference]]:
    """Foreign key references of a table, keyed by referencing column name"""
    references = defaultdict(list)
    for row in db.query(REFERENCES_QUERY, {"schema_name": schema_name, "name": name}):
        references[row["column_name"]].append(
            ColumnReference(
                schema_name=row["schema_name"],
                table_name=row["table_name"],
                column_name=row["referenced_column"],
                on_update=UPDATE_ACTION_CODES[row["on_update"]],
                on_delete=UPDATE_ACTION_CODES[row["on_delete"]],
                name=row["name"],
            )
        )
    return references


def extract_table(db: QueryExecutor, pg_type: PgType) -> TableDetails:
    params = {"schema_name": pg_type.schema_name, "name": pg_type.name}

    references = fetch_column_references(db, pg_type.schema_name, pg_type.name)
    columns = [
        TableColumn(
            **column_fields(row),
            is_nullable=bool(row["is_nullable"]),
            is_primary_key=bool(row["is_primary_key"]),
            references=references.get(row["name"], []),
        )
        for row in fetch_relation_columns(db, pg_type.schema_name, pg_type.name)
    ]

    indices = [
        TableIndex(
            name=row["name"],
            is_primary=row["is_primary"],
            is_unique=row["is_unique"],
            columns=[
                TableIndexColumn(name=column["name"], definition=column["definition"])
                for column in row.get("columns") or []
            ],
        )
        for row in db.query(INDICES_QUERY, params)
    ]

    checks = [
        TableCheck(name=row["name"], clause=strip_check_clause(row["definition"]))
        for row in db.query(CHECKS_QUERY, params)
    ]

    rls_rows = db.query(ROW_LEVEL_SECURITY_QUERY, params)
    rls = rls_rows[0] if rls_rows else {}
    policies = [
        TableSecurityPolicy(
            name=row["name"],
            is_permissive=row["is_permissive"],
            roles_applied_to=list(row.get("roles_applied_to") or []),
            command_type=row["command_type"],
            visibility_expression=row.get("visibility_expression"),
            modifiability_expression=row.get("modifiability_expression"),
        )
        for row in db.query(SECURITY_POLICIES_QUERY, params)
    ]

    information_schema_rows = db.query(TABLE_INFORMATION_SCHEMA_QUERY, params)

    logger.debug("Extracted table %s.%s (%d columns)", pg_type.schema_name, pg_type.name, len(columns))
    return TableDetails(
        name=pg_type.name,
        schema_name=pg_type.schema_name,
        comment=pg_type.comment,
        columns=columns,
        indices=indices,
        checks=checks,
        is_row_level_security_enabled=bool(rls.get("is_row_level_security_enabled")),
        is_row_level_security_enforced=bool(rls.get("is_row_level_security_enforced")),
        security_policies=policies,
        information_schema_value=information_schema_rows[0] if information_schema_rows else {},
    )
