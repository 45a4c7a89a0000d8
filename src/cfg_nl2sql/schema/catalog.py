"""Fetch and parse the datasource catalog into a Schema."""

from __future__ import annotations

import logging
from typing import Any

from cfg_nl2sql.db.connection import TinybirdClient, TinybirdError
from cfg_nl2sql.schema.model import Column, Schema, Table

logger = logging.getLogger(__name__)

DATASOURCES_ENDPOINT = "/v0/datasources"


class SchemaFetchError(RuntimeError):
    """Raised when the catalog is unreachable or returns a malformed payload."""


def parse_catalog(payload: Any) -> Schema:
    """Validate a `/v0/datasources` payload and build a Schema from it."""
    if not isinstance(payload, dict):
        raise SchemaFetchError("Catalog payload root must be a JSON object.")

    datasources = payload.get("datasources")
    if not isinstance(datasources, list):
        raise SchemaFetchError("Catalog payload is missing a 'datasources' list.")

    tables: list[Table] = []
    for index, datasource in enumerate(datasources):
        if not isinstance(datasource, dict):
            raise SchemaFetchError(f"Datasource #{index} has invalid structure.")
        name = datasource.get("name")
        if not isinstance(name, str) or not name.strip():
            raise SchemaFetchError(f"Datasource #{index} is missing a valid name.")

        columns_payload = datasource.get("columns", [])
        if not isinstance(columns_payload, list):
            raise SchemaFetchError(f"Datasource '{name}' has invalid 'columns'.")

        columns: list[Column] = []
        for column in columns_payload:
            if not isinstance(column, dict):
                raise SchemaFetchError(f"Datasource '{name}' has an invalid column entry.")
            column_name = column.get("name")
            column_type = column.get("type")
            if not isinstance(column_name, str) or not column_name:
                raise SchemaFetchError(f"Datasource '{name}' has a column without a name.")
            if not isinstance(column_type, str):
                raise SchemaFetchError(
                    f"Column '{name}.{column_name}' is missing its type."
                )
            columns.append(Column(name=column_name, type=column_type))

        tables.append(Table(name=name, columns=tuple(columns)))

    return Schema(tables=tuple(tables))


def fetch_schema(client: TinybirdClient) -> Schema:
    """Fetch the live schema; built fresh on every call."""
    try:
        payload = client.get_json(DATASOURCES_ENDPOINT)
    except TinybirdError as exc:
        raise SchemaFetchError(f"Failed to fetch datasources: {exc}") from exc

    schema = parse_catalog(payload)
    logger.debug("Schema fetched", extra={"tables": len(schema.tables)})
    return schema
