"""
Shared fixtures: an in-memory query executor and small schema maps.

FakeAdapter answers catalogue queries by exact query text, so tests run
without a database. Handlers are either a list of rows or a callable taking
the query params.
"""

from typing import Any, Callable, Dict, List, Union

import pytest

from pgintrospect.models import (
    ColumnReference,
    ColumnSource,
    MaterializedViewDetails,
    Schema,
    TableColumn,
    TableDetails,
    UpdateAction,
    ViewColumn,
    ViewDetails,
)
from pgintrospect.type_canonicalizer import CANONICALISE_TYPES_QUERY

Rows = List[Dict[str, Any]]
Handler = Union[Rows, Callable[[Any], Rows]]


class FakeAdapter:
    """QueryExecutor double that records every query it receives"""

    def __init__(self):
        self.handlers: Dict[str, Handler] = {}
        self.queries: List[tuple] = []
        self.connected = False
        self.closed = False

    def on(self, query: str, handler: Handler) -> "FakeAdapter":
        self.handlers[query] = handler
        return self

    def connect(self) -> None:
        self.connected = True

    def query(self, text: str, params=None) -> Rows:
        self.queries.append((text, params))
        handler = self.handlers.get(text)
        if handler is None:
            return []
        if callable(handler):
            return handler(params)
        return [dict(row) for row in handler]

    def close(self) -> None:
        self.closed = True

    def count(self, query: str) -> int:
        return sum(1 for text, _ in self.queries if text == query)


def _base(schema: str, name: str) -> Dict[str, Any]:
    return {"schema": schema, "name": name, "kind_code": "b"}


# What the type registry knows, keyed by bare element name as sent to to_regtype
TYPE_REGISTRY: Dict[str, Dict[str, Any]] = {
    "integer": _base("pg_catalog", "int4"),
    "int4": _base("pg_catalog", "int4"),
    "pg_catalog.int4": _base("pg_catalog", "int4"),
    "text": _base("pg_catalog", "text"),
    "character varying": _base("pg_catalog", "varchar"),
    "numeric": _base("pg_catalog", "numeric"),
    "boolean": _base("pg_catalog", "bool"),
    "timestamp with time zone": _base("pg_catalog", "timestamptz"),
    "anyelement": {"schema": "pg_catalog", "name": "anyelement", "kind_code": "p"},
    "int4multirange": {"schema": "pg_catalog", "name": "int4multirange", "kind_code": "m"},
    "int4range": {
        "schema": "pg_catalog",
        "name": "int4range",
        "kind_code": "r",
        "range_subtype": "pg_catalog.int4",
    },
    "mood": {
        "schema": "public",
        "name": "mood",
        "kind_code": "e",
        "enum_values": ["sad", "ok", "happy"],
    },
    "public.mood": {
        "schema": "public",
        "name": "mood",
        "kind_code": "e",
        "enum_values": ["sad", "ok", "happy"],
    },
    # positive_int is a domain over int4; small_positive is a domain over positive_int
    "public.positive_int": {
        "schema": "public",
        "name": "positive_int",
        "kind_code": "d",
        "base_schema": "pg_catalog",
        "base_name": "int4",
    },
    "public.small_positive": {
        "schema": "public",
        "name": "small_positive",
        "kind_code": "d",
        "base_schema": "pg_catalog",
        "base_name": "int4",
    },
    '"public"."address"': {
        "schema": "public",
        "name": "address",
        "kind_code": "c",
        "attributes": [
            {"name": "street", "ordinal": 1, "type_reference": "text"},
            {"name": "zip", "ordinal": 2, "type_reference": "character varying(10)"},
            {"name": "tags", "ordinal": 4, "type_reference": "text[]"},
        ],
    },
    "public.address": {
        "schema": "public",
        "name": "address",
        "kind_code": "c",
        "attributes": [
            {"name": "street", "ordinal": 1, "type_reference": "text"},
            {"name": "zip", "ordinal": 2, "type_reference": "character varying(10)"},
            {"name": "tags", "ordinal": 4, "type_reference": "text[]"},
        ],
    },
}


def canonicalise_handler(params) -> Rows:
    """Answer CANONICALISE_TYPES_QUERY the way the catalog would, from TYPE_REGISTRY"""
    rows = []
    for idx, type_name in enumerate(params["type_names"], start=1):
        row = {
            "idx": idx,
            "type_name": type_name,
            "schema": None,
            "name": None,
            "kind_code": None,
            "enum_values": None,
            "attributes": None,
            "base_schema": None,
            "base_name": None,
            "range_subtype": None,
        }
        row.update(TYPE_REGISTRY.get(type_name, {}))
        rows.append(row)
    return rows


@pytest.fixture
def fake_db() -> FakeAdapter:
    """FakeAdapter that already knows how to canonicalise types"""
    return FakeAdapter().on(CANONICALISE_TYPES_QUERY, canonicalise_handler)


# ============================================================================
# Schema map builders
# ============================================================================


def table_column(name: str, is_nullable=True, is_primary_key=False, references=None) -> TableColumn:
    return TableColumn(
        name=name,
        expanded_type="integer",
        is_nullable=is_nullable,
        is_primary_key=is_primary_key,
        references=references or [],
    )


def view_column(name: str, source=None) -> ViewColumn:
    if isinstance(source, tuple):
        source = ColumnSource(*source)
    return ViewColumn(name=name, expanded_type="integer", source=source)


def make_table(schema_name: str, name: str, columns) -> TableDetails:
    return TableDetails(name=name, schema_name=schema_name, columns=list(columns))


def make_view(schema_name: str, name: str, columns, materialized=False):
    details_class = MaterializedViewDetails if materialized else ViewDetails
    return details_class(name=name, schema_name=schema_name, columns=list(columns))


def make_schemas(*objects) -> Dict[str, Schema]:
    schemas: Dict[str, Schema] = {}
    for item in objects:
        schemas.setdefault(item.schema_name, Schema(name=item.schema_name)).add(item)
    return schemas


@pytest.fixture
def customer_reference() -> ColumnReference:
    return ColumnReference(
        schema_name="public",
        table_name="customers",
        column_name="id",
        on_update=UpdateAction.NO_ACTION,
        on_delete=UpdateAction.CASCADE,
        name="orders_customer_id_fkey",
    )


@pytest.fixture
def shop_schemas(customer_reference) -> Dict[str, Schema]:
    """
    public.customers(id pk, name nullable)
    public.orders(id pk, customer_id -> customers.id, note nullable)
    reporting.order_summary: view over public.orders
    reporting.customer_orders: view over reporting.order_summary
    """
    customers = make_table(
        "public",
        "customers",
        [table_column("id", is_nullable=False, is_primary_key=True), table_column("name")],
    )
    orders = make_table(
        "public",
        "orders",
        [
            table_column("id", is_nullable=False, is_primary_key=True),
            table_column("customer_id", is_nullable=False, references=[customer_reference]),
            table_column("note"),
        ],
    )
    order_summary = make_view(
        "reporting",
        "order_summary",
        [
            view_column("order_id", ("public", "orders", "id")),
            view_column("customer_id", ("public", "orders", "customer_id")),
            view_column("total"),
        ],
    )
    customer_orders = make_view(
        "reporting",
        "customer_orders",
        [
            view_column("customer_id", ("reporting", "order_summary", "customer_id")),
            view_column("total", ("reporting", "order_summary", "total")),
        ],
    )
    return make_schemas(customers, orders, order_summary, customer_orders)
