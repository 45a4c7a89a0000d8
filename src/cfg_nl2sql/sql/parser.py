"""SQL parsing helpers backed by SQLGlot."""

from __future__ import annotations

from sqlglot import exp, parse_one
from sqlglot.errors import ParseError

DIALECT = "clickhouse"


class SQLParseError(RuntimeError):
    """Raised when SQL cannot be parsed safely."""


def parse_clickhouse_sql(sql: str) -> exp.Expression:
    """Parse a single SQL statement using ClickHouse dialect semantics."""
    normalized = sql.strip().rstrip(";").strip()
    if not normalized:
        raise SQLParseError("SQL cannot be empty.")

    try:
        return parse_one(normalized, read=DIALECT)
    except ParseError as exc:
        raise SQLParseError(f"Invalid SQL: {exc}") from exc


def has_order_by(sql: str) -> bool:
    """True when the statement fixes its row order with ORDER BY."""
    try:
        expression = parse_clickhouse_sql(sql)
    except SQLParseError:
        return "ORDER BY" in sql.upper()
    return expression.args.get("order") is not None
