"""
View lineage extraction.

Parses a view's defining SELECT with sqlglot and works out, for every output
column, which (schema, table, column) it reads directly, if any.

The sqlglot tree is first converted into a small explicit model
(SelectStatement / SetOperation / RangeVariable / ProjectionItem) so the
lineage rules below only deal with the handful of shapes they understand.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple, Union

import sqlglot
from sqlglot import exp
from sqlglot.errors import SqlglotError

from .errors import ViewParseError
from .models import STAR, ColumnSource, ViewReference

logger = logging.getLogger(__name__)

DIALECT = "postgres"

# Placeholder for projections sqlglot derives no output name for ("a + b",
# "count(*)"). It does not follow Postgres naming, which calls the latter
# "count"; such projections carry no source, so catalog matching is unaffected
ANONYMOUS_COLUMN_NAME = "?column?"

# ============================================================================
# Syntax Tree Model
# ============================================================================


@dataclass(frozen=True)
class RangeVariable:
    """
    One entry of a FROM clause (including joined entries).

    ``relation`` is None for anything that is not a plain table or view
    name: subqueries, table functions, VALUES lists.
    """

    alias: Optional[str]
    schema: Optional[str]
    relation: Optional[str]

    @property
    def visible_name(self) -> Optional[str]:
        """Name columns are qualified with: the alias if present, else the relation"""
        return self.alias or self.relation


@dataclass(frozen=True)
class ColumnRef:
    """A possibly qualified column reference; ``name`` is STAR for ``*`` / ``t.*``"""

    qualifier: Optional[str]
    schema: Optional[str]
    name: str

    @property
    def is_star(self) -> bool:
        return self.name == STAR


@dataclass(frozen=True)
class ProjectionItem:
    """One target-list entry. ``column`` is None unless it is a bare column reference."""

    output_name: str
    column: Optional[ColumnRef]


@dataclass(frozen=True)
class CommonTableExpr:
    name: str
    query: "Statement"


@dataclass(frozen=True)
class SelectStatement:
    ctes: Tuple[CommonTableExpr, ...]
    range_variables: Tuple[RangeVariable, ...]
    projection: Tuple[ProjectionItem, ...]


@dataclass(frozen=True)
class SetOperation:
    """UNION / INTERSECT / EXCEPT of two statements"""

    operator: str
    ctes: Tuple[CommonTableExpr, ...]
    left: "Statement"
    right: "Statement"


Statement = Union[SelectStatement, SetOperation]

# Intersect/Except first: older sqlglot versions subclass them from Union
_SET_OPERATORS = {
    exp.Intersect: "INTERSECT",
    exp.Except: "EXCEPT",
    exp.Union: "UNION",
}

# ============================================================================
# sqlglot -> model accessors
# ============================================================================


def parse_statement(sql: str) -> Statement:
    """
    Parse SQL text into the statement model.

    Raises:
        ViewParseError: If the text does not parse, or is not a SELECT
            (or a set operation over SELECTs).
    """
    text = sql.strip().rstrip(";").strip()
    try:
        parsed = sqlglot.parse_one(text, read=DIALECT)
    except SqlglotError as e:
        raise ViewParseError(sql, f"The string '{sql}' doesn't parse as a select statement: {e}") from e

    return _to_statement(_unwrap(parsed), sql)


def _unwrap(node: exp.Expression) -> exp.Expression:
    # "(SELECT ...)" at statement level or as a set-operation branch
    while isinstance(node, (exp.Subquery, exp.Paren)):
        node = node.this
    return node


def _to_statement(node: exp.Expression, sql: str) -> Statement:
    ctes = _cte_members(node, sql)

    branches = _set_operation_branches(node)
    if branches is not None:
        operator, left, right = branches
        return SetOperation(
            operator=operator,
            ctes=ctes,
            left=_to_statement(left, sql),
            right=_to_statement(right, sql),
        )

    if not isinstance(node, exp.Select):
        raise ViewParseError(sql)

    return SelectStatement(
        ctes=ctes,
        range_variables=tuple(_range_variables(node)),
        projection=tuple(_projection_items(node)),
    )


def _set_operation_branches(
    node: exp.Expression,
) -> Optional[Tuple[str, exp.Expression, exp.Expression]]:
    # Set operation: left = this, right = expression
    for node_class, operator in _SET_OPERATORS.items():
        if isinstance(node, node_class):
            return operator, _unwrap(node.this), _unwrap(node.expression)
    return None


def _cte_members(node: exp.Expression, sql: str) -> Tuple[CommonTableExpr, ...]:
    members = []
    for cte in getattr(node, "ctes", None) or []:
        if isinstance(cte, exp.CTE):
            members.append(CommonTableExpr(name=cte.alias_or_name, query=_to_statement(_unwrap(cte.this), sql)))
    return tuple(members)


def _range_variables(select: exp.Select) -> List[RangeVariable]:
    sources = []

    # Note: sqlglot >=28.0.0 uses "from_" instead of "from" (Python keyword)
    from_clause = select.args.get("from_") or select.args.get("from")
    if from_clause is not None:
        if from_clause.this is not None:
            sources.append(from_clause.this)
        # Comma-separated FROM lists on older sqlglot versions
        sources.extend(from_clause.expressions or [])

    for join in select.args.get("joins") or []:
        sources.append(join.this)

    range_variables = []
    for source in sources:
        range_variables.append(_range_variable(source))
        # Parenthesized join trees keep their joins on the first table
        for nested in source.args.get("joins") or []:
            range_variables.append(_range_variable(nested.this))
    return range_variables


def _range_variable(source: exp.Expression) -> RangeVariable:
    alias = source.alias or None
    if isinstance(source, exp.Table) and isinstance(source.this, exp.Identifier):
        return RangeVariable(alias=alias, schema=source.db or None, relation=source.name)
    return RangeVariable(alias=alias, schema=None, relation=None)


def _projection_items(select: exp.Select) -> List[ProjectionItem]:
    items = []
    for expression in select.expressions:
        if isinstance(expression, exp.Alias):
            output_name = expression.alias
            target = expression.this
        else:
            output_name = expression.output_name
            target = expression

        column = _column_ref(target)
        if column is not None and column.is_star:
            output_name = STAR
        items.append(ProjectionItem(output_name=output_name or ANONYMOUS_COLUMN_NAME, column=column))
    return items


def _column_ref(node: exp.Expression) -> Optional[ColumnRef]:
    if isinstance(node, exp.Star):
        return ColumnRef(qualifier=None, schema=None, name=STAR)
    if isinstance(node, exp.Column):
        name = STAR if isinstance(node.this, exp.Star) else node.name
        return ColumnRef(qualifier=node.table or None, schema=node.db or None, name=name)
    return None


# ============================================================================
# Lineage extraction
# ============================================================================

CteTable = Dict[str, List[ViewReference]]


class ViewLineageExtractor:
    """
    Computes immediate lineage for the output columns of one view.

    Rules:
    - Set operations take their lineage from the left branch only; the right
      branch must still be a valid query but its sources are not consulted.
    - A column read from a CTE is substituted with the CTE's own source for
      that column, one level deep. If that source is itself another CTE's
      column, lineage stops there (logged as a warning) and is left unknown.
    - ``*`` over a CTE expands to the CTE's columns; ``*`` over a table or
      view yields a single STAR reference to be matched by column name.

    Example:
        extractor = ViewLineageExtractor("public")
        refs = extractor.extract("select u.id, count(*) as n from users u group by u.id")
        # [ViewReference("id", ColumnSource("public", "users", "id")), ViewReference("n")]
    """

    def __init__(self, default_schema: str):
        self.default_schema = default_schema

    def extract(self, sql: str) -> List[ViewReference]:
        return self.extract_statement(parse_statement(sql))

    def extract_statement(self, statement: Statement, ctes: Optional[CteTable] = None) -> List[ViewReference]:
        in_scope = dict(ctes or {})
        for member in statement.ctes:
            # Each member is resolved on its own, without its siblings
            in_scope[member.name] = self.extract_statement(member.query)

        if isinstance(statement, SetOperation):
            return self.extract_statement(statement.left, in_scope)
        return self._extract_select(statement, in_scope)

    def _extract_select(self, select: SelectStatement, ctes: CteTable) -> List[ViewReference]:
        by_name = {}
        for range_variable in select.range_variables:
            if range_variable.visible_name:
                by_name[range_variable.visible_name] = range_variable

        references = []
        for item in select.projection:
            if item.column is None:
                references.append(ViewReference(item.output_name))
            elif item.column.is_star:
                references.extend(self._expand_star(item.column, select.range_variables, by_name, ctes))
            else:
                source = self._column_source(item.column, select.range_variables, by_name, ctes)
                references.append(ViewReference(item.output_name, source))
        return references

    def _column_source(
        self,
        column: ColumnRef,
        range_variables: Sequence[RangeVariable],
        by_name: Dict[str, RangeVariable],
        ctes: CteTable,
    ) -> Optional[ColumnSource]:
        if column.qualifier is None:
            # Unqualified names are only attributed when there is one candidate
            if len(range_variables) != 1:
                return None
            range_variable = range_variables[0]
        else:
            range_variable = by_name.get(column.qualifier)
            if range_variable is None:
                return ColumnSource(column.schema or self.default_schema, column.qualifier, column.name)

        if range_variable.relation is None:
            return None

        if range_variable.schema is None and range_variable.relation in ctes:
            return self._substitute_cte(range_variable.relation, column.name, ctes)

        return ColumnSource(range_variable.schema or self.default_schema, range_variable.relation, column.name)

    def _substitute_cte(self, cte_name: str, column_name: str, ctes: CteTable) -> Optional[ColumnSource]:
        stars = [reference.source for reference in ctes[cte_name] if reference.is_star]
        for reference in ctes[cte_name]:
            if reference.is_star or reference.output_column_name != column_name:
                continue
            source = reference.source
            if source is not None and source.schema == self.default_schema and source.table in ctes:
                logger.warning(
                    "Lineage of %s.%s goes through nested CTE %s; leaving it unresolved",
                    cte_name,
                    column_name,
                    source.table,
                )
                return None
            return source

        # "with c as (select * from t) select c.x from c"
        if len(stars) == 1:
            return ColumnSource(stars[0].schema, stars[0].table, column_name)
        return None

    def _expand_star(
        self,
        column: ColumnRef,
        range_variables: Sequence[RangeVariable],
        by_name: Dict[str, RangeVariable],
        ctes: CteTable,
    ) -> List[ViewReference]:
        if column.qualifier is None:
            targets = list(range_variables)
        elif column.qualifier in by_name:
            targets = [by_name[column.qualifier]]
        else:
            targets = [RangeVariable(alias=None, schema=column.schema, relation=column.qualifier)]

        references = []
        for target in targets:
            if target.relation is None:
                continue
            if target.schema is None and target.relation in ctes:
                references.extend(ctes[target.relation])
            else:
                source = ColumnSource(target.schema or self.default_schema, target.relation, STAR)
                references.append(ViewReference(STAR, source))
        return references


def parse_view_definition(sql: str, default_schema: str) -> List[ViewReference]:
    """
    Immediate lineage of every output column of a view, in projection order.

    Args:
        sql: The view's defining SELECT (as returned by pg_get_viewdef)
        default_schema: Schema used for unqualified relation names

    Raises:
        ViewParseError: If ``sql`` is not a SELECT statement.
    """
    return ViewLineageExtractor(default_schema).extract(sql)


def match_view_columns(
    column_names: Sequence[str], references: Sequence[ViewReference]
) -> Dict[str, Optional[ColumnSource]]:
    """
    Assign a source to each catalog column of a view.

    Columns are matched to references by output name (first match wins).
    Columns with no named match fall back to the view's STAR reference when
    there is exactly one, retargeted to the column of the same name.
    """
    named: Dict[str, Optional[ColumnSource]] = {}
    stars = []
    for reference in references:
        if reference.is_star:
            stars.append(reference.source)
        elif reference.output_column_name not in named:
            named[reference.output_column_name] = reference.source

    matched = {}
    for name in column_names:
        if name in named:
            matched[name] = named[name]
        elif len(stars) == 1:
            star = stars[0]
            matched[name] = ColumnSource(star.schema, star.table, name)
        else:
            matched[name] = None
    return matched


__all__ = [
    "RangeVariable",
    "ColumnRef",
    "ProjectionItem",
    "CommonTableExpr",
    "SelectStatement",
    "SetOperation",
    "Statement",
    "parse_statement",
    "ViewLineageExtractor",
    "parse_view_definition",
    "match_view_columns",
]
