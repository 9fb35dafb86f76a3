"""
Exception types raised by pgintrospect.

Each error derives from the built-in exception callers would otherwise
expect (ValueError for bad input, RuntimeError for an inconsistent
snapshot), so existing ``except ValueError`` handlers keep working.
"""

from typing import List, Optional, Sequence, Tuple


class PgIntrospectError(Exception):
    """Base class for all pgintrospect errors."""


class TypeResolutionError(PgIntrospectError, ValueError):
    """A type reference does not resolve to any type known to the catalog."""

    def __init__(self, type_reference: str, message: Optional[str] = None):
        self.type_reference = type_reference
        super().__init__(message or f"Could not resolve type '{type_reference}'")


class ViewParseError(PgIntrospectError, ValueError):
    """A view definition does not parse as a SELECT statement."""

    def __init__(self, definition: str, message: Optional[str] = None):
        self.definition = definition
        super().__init__(
            message or f"The string '{definition}' doesn't parse as a select statement."
        )


class LineageResolutionError(PgIntrospectError, RuntimeError):
    """A view column's source points at a column missing from the snapshot."""

    def __init__(self, schema: str, table: str, column: str, message: Optional[str] = None):
        self.schema = schema
        self.table = table
        self.column = column
        super().__init__(message or f"Column {schema}.{table}.{column} was not found")


class LineageCycleError(LineageResolutionError):
    """Following source pointers led back to a column already on the path."""

    def __init__(self, path: Sequence[Tuple[str, str, str]]):
        self.path: List[Tuple[str, str, str]] = list(path)
        schema, table, column = self.path[-1]
        chain = " -> ".join(".".join(step) for step in self.path)
        super().__init__(schema, table, column, message=f"Lineage cycle detected: {chain}")


class SchemaNotFoundError(PgIntrospectError, ValueError):
    """Requested schemas do not exist in the database."""

    def __init__(self, missing: Sequence[str]):
        self.missing = list(missing)
        super().__init__(f"No schemas found for {', '.join(self.missing)}")


__all__ = [
    "PgIntrospectError",
    "TypeResolutionError",
    "ViewParseError",
    "LineageResolutionError",
    "LineageCycleError",
    "SchemaNotFoundError",
]
