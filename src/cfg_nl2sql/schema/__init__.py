"""Schema model and catalog access."""

from cfg_nl2sql.schema.catalog import SchemaFetchError, fetch_schema, parse_catalog
from cfg_nl2sql.schema.model import Column, Schema, Table

__all__ = [
    "Column",
    "Schema",
    "SchemaFetchError",
    "Table",
    "fetch_schema",
    "parse_catalog",
]
