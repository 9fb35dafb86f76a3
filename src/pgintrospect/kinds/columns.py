"""
Column listing shared by tables, views, materialized views and foreign tables.
"""

from typing import Any, Dict, List

from ..adapter import QueryExecutor

RELATION_COLUMNS_QUERY = """
SELECT
    a.attname AS name,
    format_type(a.atttypid, a.atttypmod) AS expanded_type,
    col_description(c.oid, a.attnum) AS comment,
    pg_get_expr(ad.adbin, ad.adrelid) AS default_value,
    NOT a.attnotnull AS is_nullable,
    a.attnum AS ordinal_position,
    a.attidentity <> '' AS is_identity,
    CASE
        WHEN a.attidentity = 'a' THEN 'ALWAYS'
        WHEN a.attidentity = 'd' THEN 'BY DEFAULT'
        WHEN a.attgenerated = 's' THEN 'ALWAYS'
        ELSE 'NEVER'
    END AS generated,
    CASE
        WHEN a.atttypid IN ('bpchar'::regtype::oid, 'varchar'::regtype::oid) AND a.atttypmod > 0
        THEN a.atttypmod - 4
    END AS max_length,
    pg_column_is_updatable(c.oid, a.attnum, false) AS is_updatable,
    EXISTS (
        SELECT 1 FROM pg_index i
        WHERE i.indrelid = c.oid AND i.indisprimary AND a.attnum = ANY(i.indkey)
    ) AS is_primary_key
FROM pg_attribute a
JOIN pg_class c ON c.oid = a.attrelid
JOIN pg_namespace n ON n.oid = c.relnamespace
LEFT JOIN pg_attrdef ad ON ad.adrelid = a.attrelid AND ad.adnum = a.attnum
WHERE n.nspname = %(schema_name)s
  AND c.relname = %(name)s
  AND a.attnum > 0
  AND NOT a.attisdropped
ORDER BY a.attnum
"""


def fetch_relation_columns(db: QueryExecutor, schema_name: str, name: str) -> List[Dict[str, Any]]:
    """Column rows of a relation, in attribute order"""
    return db.query(RELATION_COLUMNS_QUERY, {"schema_name": schema_name, "name": name})


def column_fields(row: Dict[str, Any]) -> Dict[str, Any]:
    """Constructor arguments common to every Column subclass"""
    return {
        "name": row["name"],
        "expanded_type": row["expanded_type"],
        "comment": row.get("comment"),
        "default_value": row.get("default_value"),
        "ordinal_position": row["ordinal_position"],
        "max_length": row.get("max_length"),
        "generated": row.get("generated") or "NEVER",
        "is_identity": bool(row.get("is_identity")),
        "is_updatable": bool(row.get("is_updatable")),
    }


def strip_check_clause(definition: str) -> str:
    """
    Reduce a check constraint definition to its bare expression.

    "CHECK ((price > 0))" -> "price > 0"
    """
    clause = definition.strip()
    if clause.upper().startswith("CHECK"):
        clause = clause[len("CHECK") :].strip()
    # NOT VALID / NO INHERIT suffixes are not part of the expression
    for suffix in (" NOT VALID", " NO INHERIT"):
        if clause.endswith(suffix):
            clause = clause[: -len(suffix)].rstrip()
    while clause.startswith("(") and clause.endswith(")") and _outer_parens_match(clause):
        clause = clause[1:-1].strip()
    return clause


def _outer_parens_match(clause: str) -> bool:
    depth = 0
    for i, char in enumerate(clause):
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth == 0 and i != len(clause) - 1:
                return False
    return depth == 0
