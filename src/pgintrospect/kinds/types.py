"""
Extraction of user-defined types: domains, enums, ranges and composites.
"""

import logging

from ..adapter import QueryExecutor
from ..models import CompositeTypeDetails, DomainDetails, EnumDetails, PgType, RangeDetails
from .columns import strip_check_clause

logger = logging.getLogger(__name__)

DOMAIN_QUERY = """
SELECT
    bn.nspname || '.' || b.typname AS inner_type,
    ARRAY(
        SELECT pg_get_constraintdef(con.oid)
        FROM pg_constraint con
        WHERE con.contypid = t.oid AND con.contype = 'c'
        ORDER BY con.conname
    ) AS checks
FROM pg_type t
JOIN pg_namespace n ON n.oid = t.typnamespace
JOIN pg_type b ON b.oid = t.typbasetype
JOIN pg_namespace bn ON bn.oid = b.typnamespace
WHERE t.typtype = 'd' AND n.nspname = %(schema_name)s AND t.typname = %(name)s
"""

DOMAIN_INFORMATION_SCHEMA_QUERY = """
SELECT *
FROM information_schema.domains
WHERE domain_schema = %(schema_name)s AND domain_name = %(name)s
"""

ENUM_QUERY = """
SELECT e.enumlabel AS value
FROM pg_enum e
JOIN pg_type t ON t.oid = e.enumtypid
JOIN pg_namespace n ON n.oid = t.typnamespace
WHERE n.nspname = %(schema_name)s AND t.typname = %(name)s
ORDER BY e.enumsortorder
"""

RANGE_QUERY = """
SELECT sn.nspname || '.' || s.typname AS inner_type
FROM pg_range r
JOIN pg_type t ON t.oid = r.rngtypid
JOIN pg_namespace n ON n.oid = t.typnamespace
JOIN pg_type s ON s.oid = r.rngsubtype
JOIN pg_namespace sn ON sn.oid = s.typnamespace
WHERE n.nspname = %(schema_name)s AND t.typname = %(name)s
"""


def extract_domain(db: QueryExecutor, pg_type: PgType) -> DomainDetails:
    params = {"schema_name": pg_type.schema_name, "name": pg_type.name}
    rows = db.query(DOMAIN_QUERY, params)
    row = rows[0] if rows else {}
    information_schema_rows = db.query(DOMAIN_INFORMATION_SCHEMA_QUERY, params)

    return DomainDetails(
        name=pg_type.name,
        schema_name=pg_type.schema_name,
        comment=pg_type.comment,
        inner_type=row.get("inner_type") or "",
        checks=[strip_check_clause(check) for check in row.get("checks") or []],
        information_schema_value=information_schema_rows[0] if information_schema_rows else {},
    )


def extract_enum(db: QueryExecutor, pg_type: PgType) -> EnumDetails:
    rows = db.query(ENUM_QUERY, {"schema_name": pg_type.schema_name, "name": pg_type.name})
    return EnumDetails(
        name=pg_type.name,
        schema_name=pg_type.schema_name,
        comment=pg_type.comment,
        values=[row["value"] for row in rows],
    )


def extract_range(db: QueryExecutor, pg_type: PgType) -> RangeDetails:
    rows = db.query(RANGE_QUERY, {"schema_name": pg_type.schema_name, "name": pg_type.name})
    return RangeDetails(
        name=pg_type.name,
        schema_name=pg_type.schema_name,
        comment=pg_type.comment,
        inner_type=rows[0]["inner_type"] if rows else "",
    )


def extract_composite_type(db: QueryExecutor, pg_type: PgType) -> CompositeTypeDetails:
    # The canonical description and attribute types are filled in by the
    # extractor's batched canonicalization passes.
    logger.debug("Queued composite %s.%s for canonicalization", pg_type.schema_name, pg_type.name)
    return CompositeTypeDetails(
        name=pg_type.name,
        schema_name=pg_type.schema_name,
        comment=pg_type.comment,
    )
