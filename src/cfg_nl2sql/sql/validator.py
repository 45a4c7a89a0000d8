"""Check SQL against the live schema without calling any external service."""

from __future__ import annotations

from dataclasses import dataclass, field

from sqlglot import exp

from cfg_nl2sql.schema.model import Schema
from cfg_nl2sql.sql.parser import SQLParseError, parse_clickhouse_sql


@dataclass(frozen=True)
class SQLValidationResult:
    """Structured SQL validation result."""

    is_valid: bool
    sql: str
    tables_used: list[str] = field(default_factory=list)
    columns_used: list[str] = field(default_factory=list)
    aggregates_used: list[str] = field(default_factory=list)
    violations: list[str] = field(default_factory=list)


def _select_aliases(expression: exp.Expression) -> set[str]:
    return {
        alias.alias
        for alias in expression.find_all(exp.Alias)
        if alias.alias
    }


def validate_sql(sql: str, schema: Schema) -> SQLValidationResult:
    """Report which tables, columns and aggregates `sql` uses, and any violations."""
    try:
        expression = parse_clickhouse_sql(sql)
    except SQLParseError as exc:
        return SQLValidationResult(is_valid=False, sql=sql, violations=[str(exc)])

    violations: list[str] = []
    # The grammar only admits a single SELECT; set operations are rejected too.
    if not isinstance(expression, exp.Select):
        violations.append("Only a single SELECT statement is allowed.")

    tables_used: list[str] = []
    for table in expression.find_all(exp.Table):
        if schema.get_table(table.name) is None:
            violations.append(f"Table '{table.name}' is not present in the schema.")
        elif table.name not in tables_used:
            tables_used.append(table.name)

    known_columns = {
        column
        for table_name in tables_used
        for column in schema.get_table(table_name).column_names  # type: ignore[union-attr]
    }
    aliases = _select_aliases(expression)
    columns_used: list[str] = []
    for column in expression.find_all(exp.Column):
        name = column.name
        if not name or name in aliases:
            continue
        if name not in known_columns:
            violations.append(
                f"Column '{name}' is not present in the selected table(s)."
            )
        else:
            columns_used.append(name)

    aggregates_used = sorted(
        {agg.key.upper() for agg in expression.find_all(exp.AggFunc)}
    )

    return SQLValidationResult(
        is_valid=not violations,
        sql=sql,
        tables_used=sorted(tables_used),
        columns_used=sorted(set(columns_used)),
        aggregates_used=aggregates_used,
        violations=violations,
    )
