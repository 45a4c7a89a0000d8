"""SQL parsing and local validation utilities."""

from cfg_nl2sql.sql.parser import SQLParseError, has_order_by, parse_clickhouse_sql
from cfg_nl2sql.sql.validator import SQLValidationResult, validate_sql

__all__ = [
    "SQLParseError",
    "SQLValidationResult",
    "has_order_by",
    "parse_clickhouse_sql",
    "validate_sql",
]
