"""
Core data models for catalog introspection.

Contains all dataclass definitions for:
- Canonical type descriptors (one class per type kind)
- View column lineage references
- Per-kind object details (relations, types, routines)
- The per-schema container that makes up the schema map
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, Iterator, List, Optional, Tuple, Union

# ============================================================================
# Canonical Type Models
# ============================================================================


class TypeKind(Enum):
    """Kind of a resolved type, as recorded in pg_type.typtype"""

    BASE = "base"
    COMPOSITE = "composite"
    DOMAIN = "domain"
    ENUM = "enum"
    RANGE = "range"
    PSEUDO = "pseudo"
    UNKNOWN = "unknown"

    @classmethod
    def from_code(cls, code: Optional[str]) -> "TypeKind":
        """Map a pg_type.typtype code to a kind (multiranges map to UNKNOWN)"""
        return TYPE_KIND_CODES.get(code or "", cls.UNKNOWN)


TYPE_KIND_CODES: Dict[str, TypeKind] = {
    "b": TypeKind.BASE,
    "c": TypeKind.COMPOSITE,
    "d": TypeKind.DOMAIN,
    "e": TypeKind.ENUM,
    "p": TypeKind.PSEUDO,
    "r": TypeKind.RANGE,
}


@dataclass(frozen=True)
class CompositeAttribute:
    """
    One attribute of a composite type.

    ``type_reference`` is the attribute's type as the catalog formats it
    (e.g. "character varying(20)[]"). It is deliberately not canonicalised;
    pass it back through the canonicalizer to expand one more level.
    """

    name: str
    ordinal: int
    type_reference: str


@dataclass(frozen=True)
class DomainBaseType:
    """The final non-domain type at the end of a domain's base-type chain"""

    canonical_name: str
    schema: str
    name: str


@dataclass(frozen=True)
class CanonicalType:
    """
    Resolved description of a single type reference.

    Never instantiated directly: every resolved type is exactly one of the
    kind-specific subclasses below, and only that subclass carries the
    fields meaningful to its kind.
    """

    canonical_name: str  # "schema.name" of the element type (the domain itself for domains)
    schema: str
    name: str
    dimensions: int  # Number of array levels, 0 for non-arrays
    original_type: str  # The reference exactly as it was passed in
    modifiers: Optional[str]  # "10,2" for "numeric(10,2)"; display only

    kind: ClassVar[TypeKind] = TypeKind.UNKNOWN

    @property
    def is_array(self) -> bool:
        return self.dimensions > 0


@dataclass(frozen=True)
class BaseType(CanonicalType):
    kind: ClassVar[TypeKind] = TypeKind.BASE


@dataclass(frozen=True)
class PseudoType(CanonicalType):
    kind: ClassVar[TypeKind] = TypeKind.PSEUDO


@dataclass(frozen=True)
class UnknownType(CanonicalType):
    kind: ClassVar[TypeKind] = TypeKind.UNKNOWN


@dataclass(frozen=True)
class EnumType(CanonicalType):
    enum_values: Tuple[str, ...] = ()  # In enumsortorder

    kind: ClassVar[TypeKind] = TypeKind.ENUM


@dataclass(frozen=True)
class CompositeType(CanonicalType):
    attributes: Tuple[CompositeAttribute, ...] = ()  # Ordered by ordinal, dropped excluded

    kind: ClassVar[TypeKind] = TypeKind.COMPOSITE


@dataclass(frozen=True)
class DomainType(CanonicalType):
    domain_base_type: Optional[DomainBaseType] = None

    kind: ClassVar[TypeKind] = TypeKind.DOMAIN


@dataclass(frozen=True)
class RangeType(CanonicalType):
    range_subtype: Optional[str] = None  # Canonical name of the subtype

    kind: ClassVar[TypeKind] = TypeKind.RANGE


# ============================================================================
# View Lineage Models
# ============================================================================

STAR = "*"


@dataclass(frozen=True)
class ColumnSource:
    """A (schema, table, column) triple naming the column a view column reads"""

    schema: str
    table: str
    column: str

    def as_tuple(self) -> Tuple[str, str, str]:
        return (self.schema, self.table, self.column)

    def __str__(self) -> str:
        return f"{self.schema}.{self.table}.{self.column}"


@dataclass(frozen=True)
class ViewReference:
    """
    Immediate lineage of one output column of a view.

    ``source`` is None when the projection is not a plain column reference
    (function call, literal, aggregate, arithmetic). A ``*`` projection over
    a base relation is kept as a single reference whose source column is
    ``STAR``; it is matched to concrete columns by name later.
    """

    output_column_name: str
    source: Optional[ColumnSource] = None

    @property
    def is_star(self) -> bool:
        return self.source is not None and self.source.column == STAR


# ============================================================================
# Object Models
# ============================================================================


class ObjectKind(Enum):
    """Kind of an extractable schema object"""

    TABLE = "table"
    VIEW = "view"
    MATERIALIZED_VIEW = "materialized_view"
    FOREIGN_TABLE = "foreign_table"
    COMPOSITE = "composite"
    DOMAIN = "domain"
    ENUM = "enum"
    RANGE = "range"
    FUNCTION = "function"
    PROCEDURE = "procedure"

    @property
    def collection(self) -> str:
        """Name of the Schema attribute holding objects of this kind"""
        return f"{self.value}s"


@dataclass
class PgType:
    """An object found in the catalog, before its details are extracted"""

    name: str
    schema_name: str
    kind: ObjectKind
    comment: Optional[str] = None


class UpdateAction(Enum):
    NO_ACTION = "NO ACTION"
    RESTRICT = "RESTRICT"
    CASCADE = "CASCADE"
    SET_NULL = "SET NULL"
    SET_DEFAULT = "SET DEFAULT"


# pg_constraint.confupdtype / confdeltype codes
UPDATE_ACTION_CODES: Dict[str, UpdateAction] = {
    "a": UpdateAction.NO_ACTION,
    "r": UpdateAction.RESTRICT,
    "c": UpdateAction.CASCADE,
    "n": UpdateAction.SET_NULL,
    "d": UpdateAction.SET_DEFAULT,
}


@dataclass
class ColumnReference:
    """A foreign key reference from a column to another table's column"""

    schema_name: str
    table_name: str
    column_name: str
    on_update: UpdateAction
    on_delete: UpdateAction
    name: str  # Constraint name


@dataclass
class Column:
    """Fields shared by table, view and materialized view columns"""

    name: str
    expanded_type: str  # Type reference as formatted by the catalog
    type: Optional[CanonicalType] = None  # Filled in by the batched canonicalization pass
    comment: Optional[str] = None
    default_value: Optional[str] = None
    ordinal_position: int = 0
    max_length: Optional[int] = None
    generated: str = "NEVER"  # "ALWAYS", "NEVER" or "BY DEFAULT"
    is_identity: bool = False
    is_updatable: bool = False

    @property
    def is_array(self) -> bool:
        if self.type is not None:
            return self.type.is_array
        return self.expanded_type.endswith("]")


@dataclass
class TableColumn(Column):
    is_nullable: bool = True
    is_primary_key: bool = False
    references: List[ColumnReference] = field(default_factory=list)


@dataclass
class ViewColumn(Column):
    """
    Column of a view or materialized view.

    ``source`` links to the column this one reads from, if it could be
    determined. The key and nullability fields stay None on views until
    the lineage resolver copies them down from the terminal column.
    """

    source: Optional[ColumnSource] = None
    is_nullable: Optional[bool] = None
    is_primary_key: Optional[bool] = None
    references: Optional[List[ColumnReference]] = None


@dataclass
class ObjectDetails:
    """Identity shared by every extracted object"""

    name: str
    schema_name: str
    comment: Optional[str] = None

    kind: ClassVar[ObjectKind]

    @property
    def qualified_name(self) -> str:
        return f"{self.schema_name}.{self.name}"


@dataclass
class TableIndexColumn:
    name: Optional[str]  # None for expression indexes
    definition: str


@dataclass
class TableIndex:
    name: str
    is_primary: bool
    is_unique: bool
    columns: List[TableIndexColumn] = field(default_factory=list)


@dataclass
class TableCheck:
    name: str
    clause: str


@dataclass
class TableSecurityPolicy:
    name: str
    is_permissive: bool
    roles_applied_to: List[str]
    command_type: str  # "ALL", "SELECT", "INSERT", "UPDATE" or "DELETE"
    visibility_expression: Optional[str] = None  # USING clause
    modifiability_expression: Optional[str] = None  # WITH CHECK clause


@dataclass
class TableDetails(ObjectDetails):
    columns: List[TableColumn] = field(default_factory=list)
    indices: List[TableIndex] = field(default_factory=list)
    checks: List[TableCheck] = field(default_factory=list)
    is_row_level_security_enabled: bool = False
    is_row_level_security_enforced: bool = False
    security_policies: List[TableSecurityPolicy] = field(default_factory=list)
    information_schema_value: Dict[str, Any] = field(default_factory=dict)

    kind: ClassVar[ObjectKind] = ObjectKind.TABLE


@dataclass
class ViewOptions:
    check_option: Optional[str] = None  # "local", "cascaded" or None
    security_barrier: bool = False
    security_invoker: bool = False


@dataclass
class ViewDetails(ObjectDetails):
    definition: str = ""
    columns: List[ViewColumn] = field(default_factory=list)
    options: ViewOptions = field(default_factory=ViewOptions)
    information_schema_value: Dict[str, Any] = field(default_factory=dict)
    parse_error: Optional[str] = None  # Set when lineage could not be extracted

    kind: ClassVar[ObjectKind] = ObjectKind.VIEW


@dataclass
class MaterializedViewDetails(ObjectDetails):
    definition: str = ""
    columns: List[ViewColumn] = field(default_factory=list)
    parse_error: Optional[str] = None

    kind: ClassVar[ObjectKind] = ObjectKind.MATERIALIZED_VIEW


@dataclass
class ForeignTableDetails(ObjectDetails):
    columns: List[TableColumn] = field(default_factory=list)
    server: Optional[str] = None
    options: Dict[str, str] = field(default_factory=dict)

    kind: ClassVar[ObjectKind] = ObjectKind.FOREIGN_TABLE


@dataclass
class CompositeTypeDetails(ObjectDetails):
    canonical: Optional[CompositeType] = None
    attribute_types: List[CanonicalType] = field(default_factory=list)  # Parallel to canonical.attributes

    kind: ClassVar[ObjectKind] = ObjectKind.COMPOSITE


@dataclass
class DomainDetails(ObjectDetails):
    inner_type: str = ""  # Immediate base, "schema.name"
    checks: List[str] = field(default_factory=list)
    information_schema_value: Dict[str, Any] = field(default_factory=dict)

    kind: ClassVar[ObjectKind] = ObjectKind.DOMAIN


@dataclass
class EnumDetails(ObjectDetails):
    values: List[str] = field(default_factory=list)

    kind: ClassVar[ObjectKind] = ObjectKind.ENUM


@dataclass
class RangeDetails(ObjectDetails):
    inner_type: str = ""

    kind: ClassVar[ObjectKind] = ObjectKind.RANGE


class ParameterMode(Enum):
    IN = "IN"
    OUT = "OUT"
    INOUT = "INOUT"
    VARIADIC = "VARIADIC"
    TABLE = "TABLE"


# pg_proc.proargmodes codes
PARAMETER_MODE_CODES: Dict[str, ParameterMode] = {
    "i": ParameterMode.IN,
    "o": ParameterMode.OUT,
    "b": ParameterMode.INOUT,
    "v": ParameterMode.VARIADIC,
    "t": ParameterMode.TABLE,
}


class Volatility(Enum):
    IMMUTABLE = "IMMUTABLE"
    STABLE = "STABLE"
    VOLATILE = "VOLATILE"


VOLATILITY_CODES: Dict[str, Volatility] = {
    "i": Volatility.IMMUTABLE,
    "s": Volatility.STABLE,
    "v": Volatility.VOLATILE,
}


class ParallelSafety(Enum):
    SAFE = "SAFE"
    RESTRICTED = "RESTRICTED"
    UNSAFE = "UNSAFE"


PARALLEL_SAFETY_CODES: Dict[str, ParallelSafety] = {
    "s": ParallelSafety.SAFE,
    "r": ParallelSafety.RESTRICTED,
    "u": ParallelSafety.UNSAFE,
}


@dataclass
class FunctionParameter:
    name: str
    type: str
    mode: ParameterMode
    has_default: bool
    ordinal_position: int


@dataclass
class FunctionDetails(ObjectDetails):
    parameters: List[FunctionParameter] = field(default_factory=list)
    return_type: str = ""
    returns_set: bool = False
    return_columns: List[FunctionParameter] = field(default_factory=list)  # RETURNS TABLE(...)
    language: str = ""
    definition: str = ""
    is_strict: bool = False
    is_security_definer: bool = False
    is_leak_proof: bool = False
    volatility: Volatility = Volatility.VOLATILE
    parallel_safety: ParallelSafety = ParallelSafety.UNSAFE
    estimated_cost: float = 0.0
    estimated_rows: Optional[float] = None

    kind: ClassVar[ObjectKind] = ObjectKind.FUNCTION


@dataclass
class ProcedureDetails(ObjectDetails):
    parameters: List[FunctionParameter] = field(default_factory=list)
    language: str = ""
    definition: str = ""
    is_security_definer: bool = False
    is_leak_proof: bool = False
    parallel_safety: ParallelSafety = ParallelSafety.UNSAFE
    estimated_cost: float = 0.0

    kind: ClassVar[ObjectKind] = ObjectKind.PROCEDURE


Relation = Union[TableDetails, ViewDetails, MaterializedViewDetails]

SchemaObject = Union[
    TableDetails,
    ViewDetails,
    MaterializedViewDetails,
    ForeignTableDetails,
    CompositeTypeDetails,
    DomainDetails,
    EnumDetails,
    RangeDetails,
    FunctionDetails,
    ProcedureDetails,
]


# ============================================================================
# Schema Map Models
# ============================================================================


@dataclass
class Schema:
    """
    All extracted objects of one database schema.

    The schema map produced by an extraction is a Dict[str, Schema] keyed
    by schema name.
    """

    name: str
    tables: List[TableDetails] = field(default_factory=list)
    views: List[ViewDetails] = field(default_factory=list)
    materialized_views: List[MaterializedViewDetails] = field(default_factory=list)
    foreign_tables: List[ForeignTableDetails] = field(default_factory=list)
    composites: List[CompositeTypeDetails] = field(default_factory=list)
    domains: List[DomainDetails] = field(default_factory=list)
    enums: List[EnumDetails] = field(default_factory=list)
    ranges: List[RangeDetails] = field(default_factory=list)
    functions: List[FunctionDetails] = field(default_factory=list)
    procedures: List[ProcedureDetails] = field(default_factory=list)

    def add(self, details: SchemaObject):
        """Append an object to the collection matching its kind"""
        getattr(self, details.kind.collection).append(details)

    def find_relation(self, name: str) -> Optional[Relation]:
        """Find a table, view or materialized view by name, in that priority order"""
        for collection in (self.tables, self.views, self.materialized_views):
            for relation in collection:
                if relation.name == name:
                    return relation
        return None

    def objects(self) -> Iterator[SchemaObject]:
        """Iterate over every object in the schema, grouped by kind"""
        for kind in ObjectKind:
            yield from getattr(self, kind.collection)


__all__ = [
    # Canonical types
    "TypeKind",
    "TYPE_KIND_CODES",
    "CompositeAttribute",
    "DomainBaseType",
    "CanonicalType",
    "BaseType",
    "PseudoType",
    "UnknownType",
    "EnumType",
    "CompositeType",
    "DomainType",
    "RangeType",
    # View lineage
    "STAR",
    "ColumnSource",
    "ViewReference",
    # Objects
    "ObjectKind",
    "PgType",
    "UpdateAction",
    "UPDATE_ACTION_CODES",
    "ColumnReference",
    "Column",
    "TableColumn",
    "ViewColumn",
    "ObjectDetails",
    "TableIndexColumn",
    "TableIndex",
    "TableCheck",
    "TableSecurityPolicy",
    "TableDetails",
    "ViewOptions",
    "ViewDetails",
    "MaterializedViewDetails",
    "ForeignTableDetails",
    "CompositeTypeDetails",
    "DomainDetails",
    "EnumDetails",
    "RangeDetails",
    "ParameterMode",
    "PARAMETER_MODE_CODES",
    "Volatility",
    "VOLATILITY_CODES",
    "ParallelSafety",
    "PARALLEL_SAFETY_CODES",
    "FunctionParameter",
    "FunctionDetails",
    "ProcedureDetails",
    "Relation",
    "SchemaObject",
    # Schema map
    "Schema",
]
