"""
Type canonicalization.

Turns raw type references as they appear in the catalog ("integer",
"character varying(20)[]", "public.my_domain") into CanonicalType values.

Resolution is batched: every reference in a call is resolved with a single
catalogue round trip. Composite attributes are returned as unresolved type
references; expand them with a second call (TypeCanonicalizer.expand_attributes)
rather than recursively, so the number of round trips stays bounded.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .adapter import QueryExecutor
from .errors import TypeResolutionError
from .models import (
    BaseType,
    CanonicalType,
    CompositeAttribute,
    CompositeType,
    DomainBaseType,
    DomainType,
    EnumType,
    PseudoType,
    RangeType,
    TypeKind,
    UnknownType,
)

logger = logging.getLogger(__name__)

_QUOTED_IDENTIFIER_PATTERN = re.compile(r'("(?:[^"]|"")*")')
_ARRAY_SUFFIX_PATTERN = re.compile(r"\[\d*\]\s*$")


@dataclass(frozen=True)
class TypeReference:
    """A type reference split into its element name, array depth and modifiers"""

    original: str
    element_name: str
    dimensions: int
    modifiers: Optional[str]


def parse_type_reference(type_reference: str) -> TypeReference:
    """
    Split a type reference into element type name, dimensions and modifiers.

    Examples:
        "numeric(10,2)"            -> ("numeric", 0, "10,2")
        "character varying(20)[]"  -> ("character varying", 1, "20")
        "integer[][]"              -> ("integer", 2, None)
        "timestamp(3) with time zone" -> ("timestamp with time zone", 0, "3")
        'public."a(b)"'            -> ('public."a(b)"', 0, None)
    """
    name, modifiers = _split_modifiers(type_reference)
    name = name.strip()

    # Sized dimensions ("int[3]") are accepted; the size itself is ignored
    dimensions = 0
    while True:
        stripped = _ARRAY_SUFFIX_PATTERN.sub("", name, count=1)
        if stripped == name:
            break
        name = stripped.rstrip()
        dimensions += 1

    name = _normalise_whitespace(name)
    if not name:
        raise TypeResolutionError(type_reference)

    return TypeReference(
        original=type_reference,
        element_name=name,
        dimensions=dimensions,
        modifiers=modifiers,
    )


def _split_modifiers(type_reference: str) -> Tuple[str, Optional[str]]:
    """Remove the last parenthesised group outside double quotes, returning it separately."""
    in_quotes = False
    depth = 0
    start = None
    group = None
    for position, char in enumerate(type_reference):
        if char == '"':
            # A doubled quote inside a quoted identifier toggles twice
            in_quotes = not in_quotes
        elif in_quotes:
            continue
        elif char == "(":
            if depth == 0:
                start = position
            depth += 1
        elif char == ")" and depth > 0:
            depth -= 1
            if depth == 0:
                group = (start, position)

    if group is None:
        return type_reference, None
    start, end = group
    return type_reference[:start] + type_reference[end + 1 :], type_reference[start + 1 : end]


def _normalise_whitespace(name: str) -> str:
    # Quoted segments are kept verbatim
    parts = _QUOTED_IDENTIFIER_PATTERN.split(name)
    for index in range(0, len(parts), 2):
        parts[index] = re.sub(r"\s+", " ", parts[index])
    return "".join(parts).strip()


CANONICALISE_TYPES_QUERY = """
WITH RECURSIVE
input AS (
    SELECT i.idx, i.type_name, to_regtype(i.type_name) AS type_oid
    FROM unnest(%(type_names)s::text[]) WITH ORDINALITY AS i(type_name, idx)
),
resolved AS (
    SELECT input.idx, t.oid, t.typname, n.nspname, t.typtype, t.typbasetype, t.typrelid
    FROM input
    JOIN pg_type t ON t.oid = input.type_oid
    JOIN pg_namespace n ON n.oid = t.typnamespace
),
enum_values AS (
    SELECT r.idx, json_agg(e.enumlabel ORDER BY e.enumsortorder) AS enum_values
    FROM resolved r
    JOIN pg_enum e ON e.enumtypid = r.oid
    WHERE r.typtype = 'e'
    GROUP BY r.idx
),
composite_attributes AS (
    SELECT
        r.idx,
        json_agg(
            json_build_object(
                'name', a.attname,
                'ordinal', a.attnum,
                'type_reference', format_type(a.atttypid, a.atttypmod)
            )
            ORDER BY a.attnum
        ) AS attributes
    FROM resolved r
    JOIN pg_attribute a ON a.attrelid = r.typrelid
    WHERE r.typtype = 'c' AND a.attnum > 0 AND NOT a.attisdropped
    GROUP BY r.idx
),
domain_chain AS (
    SELECT r.idx, r.typbasetype AS base_oid, 1 AS depth
    FROM resolved r
    WHERE r.typtype = 'd'

    UNION ALL

    SELECT d.idx, t.typbasetype AS base_oid, d.depth + 1 AS depth
    FROM domain_chain d
    JOIN pg_type t ON t.oid = d.base_oid
    WHERE t.typtype = 'd'
),
domain_base_types AS (
    SELECT DISTINCT ON (d.idx)
        d.idx,
        n.nspname AS base_schema,
        t.typname AS base_name
    FROM domain_chain d
    JOIN pg_type t ON t.oid = d.base_oid
    JOIN pg_namespace n ON n.oid = t.typnamespace
    ORDER BY d.idx, d.depth DESC
),
range_subtypes AS (
    SELECT r.idx, n.nspname || '.' || t.typname AS range_subtype
    FROM resolved r
    JOIN pg_range rg ON rg.rngtypid = r.oid
    JOIN pg_type t ON t.oid = rg.rngsubtype
    JOIN pg_namespace n ON n.oid = t.typnamespace
    WHERE r.typtype = 'r'
)
SELECT
    input.idx,
    input.type_name,
    r.nspname AS schema,
    r.typname AS name,
    r.typtype AS kind_code,
    e.enum_values,
    c.attributes,
    d.base_schema,
    d.base_name,
    rs.range_subtype
FROM input
LEFT JOIN resolved r ON r.idx = input.idx
LEFT JOIN enum_values e ON e.idx = input.idx
LEFT JOIN composite_attributes c ON c.idx = input.idx
LEFT JOIN domain_base_types d ON d.idx = input.idx
LEFT JOIN range_subtypes rs ON rs.idx = input.idx
ORDER BY input.idx
"""


class TypeCanonicalizer:
    """
    Resolves batches of type references against the catalog.

    Performs no caching across calls: callers collect every reference they
    need resolved and pass them in one list.

    Example:
        canonicalizer = TypeCanonicalizer(db)
        column_types = canonicalizer.canonicalise(["integer[]", "public.mood"])
        composites = [t for t in column_types if isinstance(t, CompositeType)]
        attribute_types = canonicalizer.expand_attributes(composites)
    """

    def __init__(self, db: QueryExecutor):
        self.db = db

    def canonicalise(self, type_references: Sequence[str]) -> List[CanonicalType]:
        """
        Resolve each reference to a CanonicalType, preserving input order.

        Raises:
            TypeResolutionError: If any element type is unknown to the catalog.
                No partial result is returned.
        """
        if not type_references:
            return []

        parsed = [parse_type_reference(reference) for reference in type_references]
        logger.debug("Canonicalising %d type reference(s)", len(parsed))

        rows = self.db.query(
            CANONICALISE_TYPES_QUERY,
            {"type_names": [reference.element_name for reference in parsed]},
        )
        rows_by_index = {int(row["idx"]): row for row in rows}

        result = []
        for index, reference in enumerate(parsed, start=1):
            row = rows_by_index.get(index)
            if row is None or row.get("name") is None:
                raise TypeResolutionError(reference.original)
            result.append(_build_canonical_type(reference, row))
        return result

    def expand_attributes(self, composites: Sequence[CompositeType]) -> List[List[CanonicalType]]:
        """
        Resolve the attribute types of several composites in one batch.

        Returns one list per composite, parallel to its ``attributes``.
        Attributes that are composites themselves come back unexpanded; call
        again with those to go one level deeper.
        """
        references = [
            attribute.type_reference
            for composite in composites
            for attribute in composite.attributes
        ]
        resolved = self.canonicalise(references)

        expanded = []
        offset = 0
        for composite in composites:
            count = len(composite.attributes)
            expanded.append(resolved[offset : offset + count])
            offset += count
        return expanded


def canonicalise_types(db: QueryExecutor, type_references: Sequence[str]) -> List[CanonicalType]:
    """Convenience wrapper for a single TypeCanonicalizer batch."""
    return TypeCanonicalizer(db).canonicalise(type_references)


def _build_canonical_type(reference: TypeReference, row: Dict[str, Any]) -> CanonicalType:
    schema = row["schema"]
    name = row["name"]
    common = {
        "canonical_name": f"{schema}.{name}",
        "schema": schema,
        "name": name,
        "dimensions": reference.dimensions,
        "original_type": reference.original,
        "modifiers": reference.modifiers,
    }

    kind = TypeKind.from_code(row.get("kind_code"))
    if kind is TypeKind.BASE:
        return BaseType(**common)
    if kind is TypeKind.PSEUDO:
        return PseudoType(**common)
    if kind is TypeKind.ENUM:
        return EnumType(**common, enum_values=tuple(row.get("enum_values") or ()))
    if kind is TypeKind.COMPOSITE:
        attributes = tuple(
            CompositeAttribute(
                name=attribute["name"],
                ordinal=int(attribute["ordinal"]),
                type_reference=attribute["type_reference"],
            )
            for attribute in row.get("attributes") or ()
        )
        return CompositeType(**common, attributes=attributes)
    if kind is TypeKind.DOMAIN:
        base_type = None
        if row.get("base_name") is not None:
            base_type = DomainBaseType(
                canonical_name=f"{row['base_schema']}.{row['base_name']}",
                schema=row["base_schema"],
                name=row["base_name"],
            )
        return DomainType(**common, domain_base_type=base_type)
    if kind is TypeKind.RANGE:
        return RangeType(**common, range_subtype=row.get("range_subtype"))
    return UnknownType(**common)


__all__ = [
    "TypeReference",
    "parse_type_reference",
    "TypeCanonicalizer",
    "canonicalise_types",
    "CANONICALISE_TYPES_QUERY",
]
