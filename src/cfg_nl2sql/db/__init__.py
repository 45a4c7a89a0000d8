"""Tinybird transport and query execution."""

from cfg_nl2sql.db.connection import ExecutionError, TinybirdClient, TinybirdError
from cfg_nl2sql.db.executor import (
    QueryExecutor,
    QueryResult,
    strip_terminator,
    with_output_format,
)

__all__ = [
    "ExecutionError",
    "QueryExecutor",
    "QueryResult",
    "TinybirdClient",
    "TinybirdError",
    "strip_terminator",
    "with_output_format",
]
