"""
Example: extract a live database and export the result.

Requires a reachable Postgres server. The connection is taken from the
PGINTROSPECT_DSN environment variable (or the standard PG* variables when it
is unset).

Usage:
    PGINTROSPECT_DSN=postgresql://localhost/app python examples/extract_schema.py [schema ...]
"""

import logging
import os
import sys

from pgintrospect import CSVExporter, ExtractSchemaOptions, Extractor, JSONExporter


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    schema_names = sys.argv[1:] or None
    options = ExtractSchemaOptions(
        schemas=schema_names,
        resolve_views=True,
        on_progress_start=lambda total: print(f"Extracting {total} objects"),
    )

    with Extractor(os.environ.get("PGINTROSPECT_DSN")) as extractor:
        schemas = extractor.extract_schemas(options)

    for schema in schemas.values():
        print(f"Schema {schema.name}:")
        for table in schema.tables:
            types = ", ".join(
                f"{column.name} {column.type.canonical_name if column.type else column.expanded_type}"
                for column in table.columns
            )
            print(f"  • {table.name}({types})")
        for view in schema.views:
            traced = sum(1 for column in view.columns if column.source is not None)
            print(f"  • view {view.name}: {traced}/{len(view.columns)} columns traced")

    for warning in extractor.warnings:
        print(f"Warning: {warning}")

    JSONExporter.export_to_file(schemas, "output/schemas.json")
    CSVExporter.export_columns_to_file(schemas, "output/columns.csv")
    print("Wrote output/schemas.json and output/columns.csv")


if __name__ == "__main__":
    main()
