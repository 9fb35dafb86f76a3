"""
Example demonstrating view column lineage without a database.

Parses a few view definitions the way pg_get_viewdef prints them, builds a
small schema map by hand, and resolves every view column to the table
column it ultimately reads.
"""

from pgintrospect import (
    ColumnSource,
    Schema,
    TableColumn,
    TableDetails,
    ViewColumn,
    ViewDetails,
    match_view_columns,
    parse_view_definition,
    resolve_view_columns,
    visualize_view_lineage,
)

VIEWS = {
    "active_customers": (
        ["id", "email", "signup_count"],
        """
 SELECT c.id,
    c.email,
    count(*) AS signup_count
   FROM public.customers c
  WHERE c.active
  GROUP BY c.id, c.email;
""",
    ),
    "customer_emails": (
        ["id", "email"],
        """
 WITH recent AS (
         SELECT active_customers.id,
            active_customers.email
           FROM active_customers
        )
 SELECT recent.id,
    recent.email
   FROM recent
UNION
 SELECT archived_customers.id,
    archived_customers.email
   FROM archived_customers;
""",
    ),
}


def parse_example():
    """Example: immediate lineage of each view"""
    print("=" * 80)
    print("Example 1: Immediate lineage from view definitions")
    print("=" * 80)
    print()

    for view_name, (_, definition) in VIEWS.items():
        print(f"View public.{view_name}:")
        for reference in parse_view_definition(definition, "public"):
            source = reference.source or "(no source)"
            print(f"  • {reference.output_column_name:<14} <- {source}")
        print()


def build_schemas():
    customers = TableDetails(
        name="customers",
        schema_name="public",
        columns=[
            TableColumn(name="id", expanded_type="integer", is_nullable=False, is_primary_key=True),
            TableColumn(name="email", expanded_type="text", is_nullable=False),
            TableColumn(name="active", expanded_type="boolean"),
        ],
    )
    archived = TableDetails(
        name="archived_customers",
        schema_name="public",
        columns=[
            TableColumn(name="id", expanded_type="integer", is_nullable=False),
            TableColumn(name="email", expanded_type="text"),
        ],
    )

    public = Schema(name="public")
    public.add(customers)
    public.add(archived)

    for view_name, (column_names, definition) in VIEWS.items():
        sources = match_view_columns(column_names, parse_view_definition(definition, "public"))
        public.add(
            ViewDetails(
                name=view_name,
                schema_name="public",
                definition=definition,
                columns=[
                    ViewColumn(name=name, expanded_type="integer", source=sources[name])
                    for name in column_names
                ],
            )
        )

    return {"public": public}


def resolve_example():
    """Example: resolved nullability and keys across views"""
    print("=" * 80)
    print("Example 2: Resolving lineage across views")
    print("=" * 80)
    print()

    schemas = resolve_view_columns(build_schemas())

    for view in schemas["public"].views:
        print(f"View public.{view.name}:")
        for column in view.columns:
            print(
                f"  • {column.name:<14} nullable={column.is_nullable!s:<5} "
                f"primary_key={column.is_primary_key!s:<5} source={column.source}"
            )
        print()

    # customer_emails.id reads active_customers.id, which reads customers.id
    email_id = schemas["public"].views[1].columns[0]
    assert email_id.source == ColumnSource("public", "active_customers", "id")
    assert email_id.is_primary_key is True

    print("Graphviz DOT:")
    print(visualize_view_lineage(schemas).source)


if __name__ == "__main__":
    parse_example()
    resolve_example()
