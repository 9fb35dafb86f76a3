"""
pgintrospect - Postgres catalog introspection with canonical types and view lineage

Extracts a typed description of every object in a Postgres database's
schemas and traces view columns back to the table columns they read.
"""

from importlib.metadata import version

__version__ = version("pgintrospect")

from .adapter import DbAdapter, QueryExecutor
from .errors import (
    LineageCycleError,
    LineageResolutionError,
    PgIntrospectError,
    SchemaNotFoundError,
    TypeResolutionError,
    ViewParseError,
)

# Import export functionality
from .export import CSVExporter, JSONExporter
from .extractor import ExtractSchemaOptions, Extractor
from .models import (
    BaseType,
    CanonicalType,
    ColumnReference,
    ColumnSource,
    CompositeAttribute,
    CompositeType,
    CompositeTypeDetails,
    DomainBaseType,
    DomainDetails,
    DomainType,
    EnumDetails,
    EnumType,
    ForeignTableDetails,
    FunctionDetails,
    FunctionParameter,
    MaterializedViewDetails,
    ObjectKind,
    PgType,
    ProcedureDetails,
    PseudoType,
    RangeDetails,
    RangeType,
    Schema,
    TableColumn,
    TableDetails,
    TypeKind,
    UnknownType,
    ViewColumn,
    ViewDetails,
    ViewReference,
)
from .type_canonicalizer import TypeCanonicalizer, canonicalise_types
from .view_parser import ViewLineageExtractor, match_view_columns, parse_view_definition
from .view_resolver import ViewColumnResolver, resolve_view_columns

# Import visualization functions
from .visualizations import visualize_view_lineage

__all__ = [
    # Version
    "__version__",
    # Main entry points
    "Extractor",
    "ExtractSchemaOptions",
    "DbAdapter",
    "QueryExecutor",
    # Type canonicalization
    "TypeCanonicalizer",
    "canonicalise_types",
    "TypeKind",
    "CanonicalType",
    "BaseType",
    "PseudoType",
    "UnknownType",
    "EnumType",
    "CompositeType",
    "CompositeAttribute",
    "DomainType",
    "DomainBaseType",
    "RangeType",
    # View lineage
    "ViewReference",
    "ColumnSource",
    "ViewLineageExtractor",
    "parse_view_definition",
    "match_view_columns",
    "ViewColumnResolver",
    "resolve_view_columns",
    # Schema map
    "Schema",
    "ObjectKind",
    "PgType",
    "TableDetails",
    "TableColumn",
    "ColumnReference",
    "ViewDetails",
    "ViewColumn",
    "MaterializedViewDetails",
    "ForeignTableDetails",
    "CompositeTypeDetails",
    "DomainDetails",
    "EnumDetails",
    "RangeDetails",
    "FunctionDetails",
    "FunctionParameter",
    "ProcedureDetails",
    # Errors
    "PgIntrospectError",
    "TypeResolutionError",
    "ViewParseError",
    "LineageResolutionError",
    "LineageCycleError",
    "SchemaNotFoundError",
    # Export
    "JSONExporter",
    "CSVExporter",
    # Visualization
    "visualize_view_lineage",
]
