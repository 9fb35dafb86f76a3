"""
Catalogue listing: which schemas exist and which objects they contain.
"""

import logging
from typing import Any, Dict, List, Sequence

from .adapter import QueryExecutor
from .models import ObjectKind, PgType

logger = logging.getLogger(__name__)


SCHEMA_NAMES_QUERY = """
SELECT nspname
FROM pg_catalog.pg_namespace
WHERE nspname <> 'information_schema'
  AND left(nspname, 3) <> 'pg_'
ORDER BY nspname
"""

# Types and relations. Relations are listed through their row type; sequences,
# partitions and anything owned by an extension are left out.
TYPES_QUERY = """
SELECT
    t.typname AS name,
    n.nspname AS schema_name,
    CASE t.typtype
        WHEN 'c' THEN CASE c.relkind
            WHEN 'r' THEN 'table'
            WHEN 'p' THEN 'table'
            WHEN 'v' THEN 'view'
            WHEN 'm' THEN 'materialized_view'
            WHEN 'f' THEN 'foreign_table'
            WHEN 'c' THEN 'composite'
        END
        WHEN 'd' THEN 'domain'
        WHEN 'e' THEN 'enum'
        WHEN 'r' THEN 'range'
    END AS kind,
    COALESCE(obj_description(c.oid, 'pg_class'), obj_description(t.oid, 'pg_type')) AS comment
FROM pg_catalog.pg_type t
JOIN pg_catalog.pg_namespace n ON n.oid = t.typnamespace
LEFT JOIN pg_catalog.pg_class c ON c.oid = t.typrelid
WHERE t.typtype IN ('c', 'd', 'e', 'r')
  AND n.nspname = ANY(%(schema_names)s)
  AND (c.oid IS NULL OR (NOT c.relispartition AND c.relkind <> 'S'))
  AND NOT EXISTS (
      SELECT 1 FROM pg_catalog.pg_depend d
      WHERE d.deptype = 'e'
        AND (
            (d.classid = 'pg_catalog.pg_type'::regclass AND d.objid = t.oid)
            OR (d.classid = 'pg_catalog.pg_class'::regclass AND d.objid = c.oid)
        )
  )
ORDER BY n.nspname, t.typname
"""

# Plain functions and procedures. Aggregates and window functions are not
# extracted; neither are C-internal builtins.
ROUTINES_QUERY = """
SELECT
    p.proname AS name,
    n.nspname AS schema_name,
    CASE p.prokind WHEN 'f' THEN 'function' WHEN 'p' THEN 'procedure' END AS kind,
    obj_description(p.oid, 'pg_proc') AS comment
FROM pg_catalog.pg_proc p
JOIN pg_catalog.pg_namespace n ON n.oid = p.pronamespace
JOIN pg_catalog.pg_language l ON l.oid = p.prolang
WHERE p.prokind IN ('f', 'p')
  AND l.lanname <> 'internal'
  AND n.nspname = ANY(%(schema_names)s)
  AND NOT EXISTS (
      SELECT 1 FROM pg_catalog.pg_depend d
      WHERE d.deptype = 'e'
        AND d.classid = 'pg_catalog.pg_proc'::regclass
        AND d.objid = p.oid
  )
ORDER BY n.nspname, p.proname
"""

BUILTIN_TYPES_QUERY = """
SELECT
    t.typname AS name,
    pg_catalog.format_type(t.oid, NULL) AS format,
    CASE t.typtype
        WHEN 'b' THEN 'base'
        WHEN 'c' THEN 'composite'
        WHEN 'd' THEN 'domain'
        WHEN 'e' THEN 'enum'
        WHEN 'p' THEN 'pseudo'
        WHEN 'r' THEN 'range'
        ELSE 'unknown'
    END AS kind
FROM pg_catalog.pg_type t
JOIN pg_catalog.pg_namespace n ON n.oid = t.typnamespace
WHERE n.nspname = 'pg_catalog'
ORDER BY t.typname
"""


def fetch_schema_names(db: QueryExecutor) -> List[str]:
    """All user schemas, i.e. everything except information_schema and pg_*."""
    return [row["nspname"] for row in db.query(SCHEMA_NAMES_QUERY)]


def fetch_types(db: QueryExecutor, schema_names: Sequence[str]) -> List[PgType]:
    """
    List every extractable object in the given schemas.

    Functions and procedures are listed once per name; overloads are
    expanded by the function extractor.
    """
    if not schema_names:
        return []

    params = {"schema_names": list(schema_names)}
    rows = db.query(TYPES_QUERY, params) + db.query(ROUTINES_QUERY, params)

    pg_types = []
    seen = set()
    for row in rows:
        if row["kind"] is None:
            continue
        key = (row["schema_name"], row["name"], row["kind"])
        # Overloaded routines come back once per signature
        if key in seen:
            continue
        seen.add(key)
        pg_types.append(
            PgType(
                name=row["name"],
                schema_name=row["schema_name"],
                kind=ObjectKind(row["kind"]),
                comment=row.get("comment"),
            )
        )

    logger.debug("Found %d object(s) in %d schema(s)", len(pg_types), len(schema_names))
    return pg_types


def fetch_builtin_types(db: QueryExecutor) -> List[Dict[str, Any]]:
    """pg_catalog types as dicts with ``name``, ``format`` and ``kind``."""
    return db.query(BUILTIN_TYPES_QUERY)


__all__ = ["fetch_schema_names", "fetch_types", "fetch_builtin_types"]
