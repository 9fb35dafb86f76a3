"""
Tests for view lineage extraction.

Each test parses a view definition and checks the immediate source reported
for every output column.
"""

import logging

import pytest

from pgintrospect.errors import ViewParseError
from pgintrospect.models import STAR, ColumnSource, ViewReference
from pgintrospect.view_parser import (
    ANONYMOUS_COLUMN_NAME,
    RangeVariable,
    SelectStatement,
    SetOperation,
    ViewLineageExtractor,
    match_view_columns,
    parse_statement,
    parse_view_definition,
)


def sources(sql, default_schema="public"):
    """Map output column name -> source tuple (or None)"""
    return {
        ref.output_column_name: ref.source.as_tuple() if ref.source else None
        for ref in parse_view_definition(sql, default_schema)
    }


class TestParseStatement:
    """Conversion of sqlglot output into the statement model"""

    def test_select_model(self):
        statement = parse_statement("select o.id, o.note as memo from sales.orders o")

        assert isinstance(statement, SelectStatement)
        assert statement.range_variables == (RangeVariable(alias="o", schema="sales", relation="orders"),)
        assert [item.output_name for item in statement.projection] == ["id", "memo"]
        assert statement.projection[1].column.qualifier == "o"

    def test_set_operation_model(self):
        statement = parse_statement("select id from a union all select id from b")

        assert isinstance(statement, SetOperation)
        assert statement.operator == "UNION"
        assert statement.left.range_variables[0].relation == "a"
        assert statement.right.range_variables[0].relation == "b"

    def test_subquery_range_variable_has_no_relation(self):
        statement = parse_statement("select s.x from (select x from t) s")

        assert statement.range_variables == (RangeVariable(alias="s", schema=None, relation=None),)

    def test_trailing_semicolon(self):
        statement = parse_statement(" SELECT t.id\n   FROM t;")
        assert isinstance(statement, SelectStatement)

    def test_not_a_select(self):
        with pytest.raises(ViewParseError) as exc_info:
            parse_statement("insert into t values (1)")

        assert exc_info.value.definition == "insert into t values (1)"
        assert "doesn't parse as a select statement" in str(exc_info.value)

    def test_syntax_error(self):
        with pytest.raises(ViewParseError):
            parse_statement("SELECT (1")


class TestColumnLineage:
    """Sources of plain column projections"""

    def test_unqualified_single_table(self):
        assert sources("select id, name from customers") == {
            "id": ("public", "customers", "id"),
            "name": ("public", "customers", "name"),
        }

    def test_default_schema_is_applied(self):
        assert sources("select id from customers", "sales") == {"id": ("sales", "customers", "id")}

    def test_schema_qualified_table(self):
        assert sources("select id from billing.invoices") == {"id": ("billing", "invoices", "id")}

    def test_alias_resolution(self):
        sql = (
            "select o.id as order_id, c.name "
            "from public.orders o join public.customers c on c.id = o.customer_id"
        )
        assert sources(sql) == {
            "order_id": ("public", "orders", "id"),
            "name": ("public", "customers", "name"),
        }

    def test_table_name_as_qualifier(self):
        sql = "select orders.id from orders join customers on customers.id = orders.customer_id"
        assert sources(sql) == {"id": ("public", "orders", "id")}

    def test_unqualified_with_join_is_unknown(self):
        sql = "select note from orders o join customers c on c.id = o.customer_id"
        assert sources(sql) == {"note": None}

    def test_comma_join(self):
        sql = "select o.id, c.name from orders o, customers c where c.id = o.customer_id"
        assert sources(sql) == {
            "id": ("public", "orders", "id"),
            "name": ("public", "customers", "name"),
        }

    def test_pg_get_viewdef_formatting(self):
        sql = " SELECT orders.id,\n    orders.customer_id\n   FROM orders\n  WHERE orders.id > 10;"
        assert sources(sql) == {
            "id": ("public", "orders", "id"),
            "customer_id": ("public", "orders", "customer_id"),
        }


class TestNonColumnProjections:
    """Projections that are not a bare column have no source"""

    def test_aggregate(self):
        """select count(*) as n from T gives n with no source"""
        refs = parse_view_definition("select count(*) as n from orders", "public")
        assert refs == [ViewReference("n")]

    def test_cast(self):
        assert sources("select (o.id)::text as id_text from orders o") == {"id_text": None}

    def test_unaliased_expression(self):
        refs = parse_view_definition("select a + b from t", "public")
        assert refs == [ViewReference(ANONYMOUS_COLUMN_NAME)]

    def test_unaliased_aggregate_leaves_catalog_column_unsourced(self):
        """Postgres names this column "count"; the placeholder never matches it"""
        refs = parse_view_definition("select count(*) from orders", "public")
        assert refs == [ViewReference(ANONYMOUS_COLUMN_NAME)]
        assert match_view_columns(["count"], refs) == {"count": None}

    def test_unaliased_literal_has_no_source(self):
        (ref,) = parse_view_definition("select 1", "public")
        assert ref.source is None

    def test_subquery_source_is_unknown(self):
        assert sources("select s.x from (select x from t) s") == {"x": None}


class TestCommonTableExpressions:
    """One level of substitution through WITH members"""

    def test_star_over_cte_traces_to_table(self):
        """with c as (select id from T) select * from c traces id to T.id"""
        refs = parse_view_definition("with c as (select id from orders) select * from c", "public")
        assert refs == [ViewReference("id", ColumnSource("public", "orders", "id"))]

    def test_named_cte_column(self):
        sql = "with recent as (select o.id as order_id from sales.orders o) select r.order_id from recent r"
        assert sources(sql) == {"order_id": ("sales", "orders", "id")}

    def test_cte_column_without_source(self):
        sql = "with totals as (select count(*) as n from orders) select n from totals"
        assert sources(sql) == {"n": None}

    def test_star_inside_cte_is_retargeted(self):
        sql = "with c as (select * from orders) select c.note from c"
        assert sources(sql) == {"note": ("public", "orders", "note")}

    def test_nested_cte_stops_with_warning(self, caplog):
        sql = (
            "with a as (select id from orders), "
            "b as (select id from a) "
            "select id from b"
        )
        with caplog.at_level(logging.WARNING, logger="pgintrospect.view_parser"):
            result = sources(sql)

        assert result == {"id": None}
        assert "nested CTE a" in caplog.text

    def test_schema_qualified_name_is_not_a_cte(self):
        sql = "with orders as (select 1 as id) select id from public.orders"
        assert sources(sql) == {"id": ("public", "orders", "id")}


class TestSetOperations:
    """The left branch decides lineage"""

    def test_union_uses_left_branch(self):
        """select id from T1 union select id from T2 gives exactly one reference, to T1.id"""
        refs = parse_view_definition("select id from t1 union select id from t2", "public")
        assert refs == [ViewReference("id", ColumnSource("public", "t1", "id"))]

    def test_intersect(self):
        assert sources("select id from t1 intersect select id from t2") == {"id": ("public", "t1", "id")}

    def test_except(self):
        assert sources("select id from t1 except select id from t2") == {"id": ("public", "t1", "id")}

    def test_right_branch_must_parse(self):
        with pytest.raises(ViewParseError):
            parse_view_definition("select id from t1 union insert into t2 values (1)", "public")


class TestStarExpansion:
    """Stars over tables and views are matched by name later"""

    def test_star_over_table(self):
        refs = parse_view_definition("select * from sales.orders", "public")
        assert refs == [ViewReference(STAR, ColumnSource("sales", "orders", STAR))]
        assert refs[0].is_star

    def test_qualified_star_with_join(self):
        refs = parse_view_definition(
            "select o.*, c.name from orders o join customers c on c.id = o.customer_id",
            "public",
        )
        assert refs == [
            ViewReference(STAR, ColumnSource("public", "orders", STAR)),
            ViewReference("name", ColumnSource("public", "customers", "name")),
        ]

    def test_star_over_subquery_is_skipped(self):
        assert parse_view_definition("select * from (select 1 as x) s", "public") == []


class TestMatchViewColumns:
    """Assigning references to the catalog's column list"""

    def test_named_match(self):
        refs = [
            ViewReference("id", ColumnSource("public", "orders", "id")),
            ViewReference("n"),
        ]
        assert match_view_columns(["id", "n"], refs) == {
            "id": ColumnSource("public", "orders", "id"),
            "n": None,
        }

    def test_first_reference_wins(self):
        refs = [
            ViewReference("id", ColumnSource("public", "a", "id")),
            ViewReference("id", ColumnSource("public", "b", "id")),
        ]
        assert match_view_columns(["id"], refs)["id"] == ColumnSource("public", "a", "id")

    def test_single_star_is_retargeted(self):
        refs = [ViewReference(STAR, ColumnSource("public", "orders", STAR))]
        assert match_view_columns(["id", "note"], refs) == {
            "id": ColumnSource("public", "orders", "id"),
            "note": ColumnSource("public", "orders", "note"),
        }

    def test_ambiguous_stars(self):
        refs = [
            ViewReference(STAR, ColumnSource("public", "a", STAR)),
            ViewReference(STAR, ColumnSource("public", "b", STAR)),
        ]
        assert match_view_columns(["id"], refs) == {"id": None}

    def test_unmatched_column(self):
        assert match_view_columns(["missing"], []) == {"missing": None}


class TestExtractorReuse:
    """An extractor instance can be used for several definitions"""

    def test_independent_calls(self):
        extractor = ViewLineageExtractor("public")

        first = extractor.extract("with c as (select id from a) select id from c")
        second = extractor.extract("select id from c")

        assert first[0].source == ColumnSource("public", "a", "id")
        assert second[0].source == ColumnSource("public", "c", "id")
