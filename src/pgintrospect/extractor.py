"""
Schema extraction.

Lists the objects of the requested schemas, extracts each one concurrently,
canonicalises every collected column type in two batched passes, and
assembles the schema map.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

from .adapter import ConnectionConfig, DbAdapter, QueryExecutor
from .catalog import fetch_builtin_types, fetch_schema_names, fetch_types
from .errors import SchemaNotFoundError, TypeResolutionError
from .kinds import POPULATORS
from .models import (
    CanonicalType,
    Column,
    CompositeType,
    CompositeTypeDetails,
    ForeignTableDetails,
    MaterializedViewDetails,
    PgType,
    Schema,
    SchemaObject,
    TableDetails,
    ViewDetails,
)
from .type_canonicalizer import TypeCanonicalizer
from .view_resolver import resolve_view_columns

logger = logging.getLogger(__name__)

_RELATION_TYPES = (TableDetails, ViewDetails, MaterializedViewDetails, ForeignTableDetails)


@dataclass
class ExtractSchemaOptions:
    """
    Options for Extractor.extract_schemas.

    Attributes:
        schemas: Schema names to extract. Defaults to every non-system schema.
        type_filter: Only objects for which this returns True are extracted.
        resolve_views: Follow view column sources to their terminal columns
            and copy nullability, primary key and references from there.
        max_concurrency: Upper bound on per-object extractions in flight.
        on_progress_start: Called with the number of objects to extract.
        on_progress: Called once per extracted object.
        on_progress_end: Called when extraction has finished.
    """

    schemas: Optional[List[str]] = None
    type_filter: Optional[Callable[[PgType], bool]] = None
    resolve_views: bool = False
    max_concurrency: int = 4
    on_progress_start: Optional[Callable[[int], None]] = None
    on_progress: Optional[Callable[[], None]] = None
    on_progress_end: Optional[Callable[[], None]] = None


def quote_ident(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


class Extractor:
    """
    Extracts schema maps from a Postgres database.

    Example:
        with Extractor("postgresql://localhost/app") as extractor:
            schemas = extractor.extract_schemas(ExtractSchemaOptions(schemas=["public"]))
            for table in schemas["public"].tables:
                print(table.name, [column.type.canonical_name for column in table.columns])

    Args:
        connection_config: DSN/URI string or dict of psycopg2.connect
            arguments; None uses the PG* environment variables.
        db: An existing query executor to use instead of opening a connection.
    """

    def __init__(self, connection_config: ConnectionConfig = None, db: Optional[QueryExecutor] = None):
        self.db: QueryExecutor = db if db is not None else DbAdapter(connection_config)
        self.warnings: List[str] = []

    def canonicalise_types(self, type_references: Sequence[str]) -> List[CanonicalType]:
        """Resolve a batch of type references; see TypeCanonicalizer.canonicalise."""
        return TypeCanonicalizer(self.db).canonicalise(type_references)

    def get_builtin_types(self) -> List[Dict[str, Any]]:
        return fetch_builtin_types(self.db)

    def extract_schemas(self, options: Optional[ExtractSchemaOptions] = None) -> Dict[str, Schema]:
        """
        Extract the schema map synchronously.

        Returns:
            Dict of schema name to Schema.

        Raises:
            SchemaNotFoundError: If a requested schema does not exist.
            TypeResolutionError: If a column type cannot be resolved.
            LineageResolutionError: If ``resolve_views`` is set and a view
                column's source is missing from the extracted schemas.
        """
        return asyncio.run(self.async_extract_schemas(options))

    async def async_extract_schemas(self, options: Optional[ExtractSchemaOptions] = None) -> Dict[str, Schema]:
        """Async version of extract_schemas; blocking queries run in worker threads."""
        options = options or ExtractSchemaOptions()
        start_time = time.time()
        self.warnings = []

        schema_names = await asyncio.to_thread(self._schema_names, options.schemas)
        logger.info("Starting extraction of %d schema(s): %s", len(schema_names), ", ".join(schema_names))

        pg_types = await asyncio.to_thread(fetch_types, self.db, schema_names)
        if options.type_filter is not None:
            pg_types = [pg_type for pg_type in pg_types if options.type_filter(pg_type)]

        if options.on_progress_start:
            options.on_progress_start(len(pg_types))

        # Create semaphore to limit concurrency
        semaphore = asyncio.Semaphore(options.max_concurrency)

        async def populate(pg_type: PgType):
            async with semaphore:
                logger.debug("Extracting %s %s.%s", pg_type.kind.value, pg_type.schema_name, pg_type.name)
                result = await asyncio.to_thread(POPULATORS[pg_type.kind], self.db, pg_type)
            if options.on_progress:
                options.on_progress()
            return result

        populated = await asyncio.gather(*(populate(pg_type) for pg_type in pg_types))

        details: List[SchemaObject] = []
        for result in populated:
            if isinstance(result, list):
                details.extend(result)
            else:
                details.append(result)

        await asyncio.to_thread(self._canonicalise, details)

        schemas = {name: Schema(name=name) for name in schema_names}
        for item in details:
            schemas[item.schema_name].add(item)
            parse_error = getattr(item, "parse_error", None)
            if parse_error:
                self.warnings.append(f"{item.qualified_name}: {parse_error}")

        if options.resolve_views:
            schemas = resolve_view_columns(schemas)

        if options.on_progress_end:
            options.on_progress_end()

        elapsed = time.time() - start_time
        for schema in schemas.values():
            logger.info(
                "Schema %s: %d tables, %d views, %d materialized views, %d functions",
                schema.name,
                len(schema.tables),
                len(schema.views),
                len(schema.materialized_views),
                len(schema.functions),
            )
        logger.info("Extracted %d objects in %.2fs", len(details), elapsed)
        if self.warnings:
            logger.info("%d view definition(s) could not be parsed", len(self.warnings))

        return schemas

    def _schema_names(self, requested: Optional[Sequence[str]]) -> List[str]:
        all_schema_names = fetch_schema_names(self.db)
        if requested is None:
            return all_schema_names

        missing = [name for name in requested if name not in all_schema_names]
        if missing:
            raise SchemaNotFoundError(missing)
        return list(requested)

    def _canonicalise(self, details: Sequence[SchemaObject]) -> None:
        """
        Fill in column types and composite descriptions.

        Pass 1 resolves every relation column type and every composite type
        in one batch. Pass 2 resolves all composite attribute types in a
        second batch.
        """
        canonicalizer = TypeCanonicalizer(self.db)

        columns: List[Column] = [
            column for item in details if isinstance(item, _RELATION_TYPES) for column in item.columns
        ]
        composites = [item for item in details if isinstance(item, CompositeTypeDetails)]

        references = [column.expanded_type for column in columns]
        references += [f"{quote_ident(item.schema_name)}.{quote_ident(item.name)}" for item in composites]
        logger.debug(
            "Canonicalising %d column type(s) and %d composite(s)", len(columns), len(composites)
        )
        resolved = canonicalizer.canonicalise(references)

        for column, canonical in zip(columns, resolved):
            column.type = canonical

        composite_types: List[CompositeType] = []
        for item, canonical in zip(composites, resolved[len(columns) :]):
            if not isinstance(canonical, CompositeType):
                raise TypeResolutionError(
                    canonical.original_type,
                    f"{item.qualified_name} resolved to a {canonical.kind.value} type, expected composite",
                )
            item.canonical = canonical
            composite_types.append(canonical)

        for item, attribute_types in zip(composites, canonicalizer.expand_attributes(composite_types)):
            item.attribute_types = attribute_types

    def close(self) -> None:
        self.db.close()

    def __enter__(self) -> "Extractor":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


__all__ = ["ExtractSchemaOptions", "Extractor", "quote_ident"]
