"""
Export functionality for extracted schema maps.

Supports exporting to:
- JSON: the full schema map, machine-readable
- CSV: one row per relation column, for spreadsheets
"""

import csv
import dataclasses
import json
from enum import Enum
from pathlib import Path
from typing import Any, Dict

from .models import CanonicalType, ObjectDetails, Schema


def _to_json_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        data = {field.name: _to_json_value(getattr(value, field.name)) for field in dataclasses.fields(value)}
        # Class-level tags are not dataclass fields
        if isinstance(value, (CanonicalType, ObjectDetails)):
            data["kind"] = value.kind.value
        return data
    if isinstance(value, dict):
        return {str(key): _to_json_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_json_value(item) for item in value]
    return value


class JSONExporter:
    """
    Export a schema map to JSON.

    Every object and canonical type is tagged with its ``kind``; enum members
    are exported as their values.
    """

    @staticmethod
    def export(schemas: Dict[str, Schema]) -> Dict[str, Any]:
        """
        Export a schema map to a JSON-serializable dictionary.

        Example:
            data = JSONExporter.export(schemas)
            data["public"]["tables"][0]["columns"][0]["type"]["kind"]  # "base"
        """
        return {name: _to_json_value(schema) for name, schema in schemas.items()}

    @staticmethod
    def export_to_file(schemas: Dict[str, Schema], file_path: str, indent: int = 2):
        """
        Export a schema map to a JSON file.

        Args:
            schemas: The schema map to export
            file_path: Path to output JSON file
            indent: JSON indentation (default: 2)
        """
        data = JSONExporter.export(schemas)

        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w") as f:
            # information_schema rows may hold dates and Decimals
            json.dump(data, f, indent=indent, default=str)


class CSVExporter:
    """
    Export relation columns to CSV (one-way export only).

    One row per column of every table, view, materialized view and foreign
    table. Use JSONExporter for the full picture.
    """

    HEADER = [
        "schema",
        "relation",
        "kind",
        "column",
        "type",
        "nullable",
        "primary_key",
        "source",
    ]

    @staticmethod
    def export_columns_to_file(schemas: Dict[str, Schema], file_path: str):
        """
        Export column metadata to CSV file.

        Args:
            schemas: The schema map to export
            file_path: Path to output CSV file
        """
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w", newline="") as f:
            writer = csv.writer(f)
            writer.writerow(CSVExporter.HEADER)

            for schema in sorted(schemas.values(), key=lambda s: s.name):
                relations = schema.tables + schema.views + schema.materialized_views + schema.foreign_tables
                for relation in relations:
                    for column in relation.columns:
                        source = getattr(column, "source", None)
                        writer.writerow(
                            [
                                schema.name,
                                relation.name,
                                relation.kind.value,
                                column.name,
                                _type_label(column),
                                _flag(getattr(column, "is_nullable", None)),
                                _flag(getattr(column, "is_primary_key", None)),
                                str(source) if source else "",
                            ]
                        )


def _type_label(column) -> str:
    if column.type is None:
        return column.expanded_type
    return column.type.canonical_name + "[]" * column.type.dimensions


def _flag(value) -> str:
    if value is None:
        return ""
    return "Yes" if value else "No"


__all__ = ["JSONExporter", "CSVExporter"]
