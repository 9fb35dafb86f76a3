"""
Per-kind object extractors.

Each extractor is a plain function ``(db, pg_type) -> details`` (or a list of
details, for overloadable routines). Column types are left as raw
``expanded_type`` strings; the Extractor canonicalises them in one batch.
"""

from typing import Callable, Dict, List, Union

from ..adapter import QueryExecutor
from ..models import ObjectKind, PgType, SchemaObject
from .foreign_tables import extract_foreign_table
from .routines import extract_function, extract_procedure
from .tables import extract_table
from .types import extract_composite_type, extract_domain, extract_enum, extract_range
from .views import extract_materialized_view, extract_view

Populator = Callable[[QueryExecutor, PgType], Union[SchemaObject, List[SchemaObject]]]

POPULATORS: Dict[ObjectKind, Populator] = {
    ObjectKind.TABLE: extract_table,
    ObjectKind.VIEW: extract_view,
    ObjectKind.MATERIALIZED_VIEW: extract_materialized_view,
    ObjectKind.FOREIGN_TABLE: extract_foreign_table,
    ObjectKind.COMPOSITE: extract_composite_type,
    ObjectKind.DOMAIN: extract_domain,
    ObjectKind.ENUM: extract_enum,
    ObjectKind.RANGE: extract_range,
    ObjectKind.FUNCTION: extract_function,
    ObjectKind.PROCEDURE: extract_procedure,
}

__all__ = [
    "POPULATORS",
    "Populator",
    "extract_table",
    "extract_view",
    "extract_materialized_view",
    "extract_foreign_table",
    "extract_composite_type",
    "extract_domain",
    "extract_enum",
    "extract_range",
    "extract_function",
    "extract_procedure",
]
