"""SQL execution against the Tinybird query endpoint."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from cfg_nl2sql.db.connection import TinybirdClient, TinybirdError

logger = logging.getLogger(__name__)

SQL_ENDPOINT = "/v0/sql"
OUTPUT_FORMAT = "FORMAT JSON"
STATEMENT_TERMINATOR = ";"


@dataclass(frozen=True)
class QueryResult:
    """Rows as returned by the engine, with the engine's own row count."""

    rows: list[dict[str, Any]] = field(default_factory=list)
    row_count: int = 0

    def to_dict(self) -> dict[str, object]:
        return {"data": self.rows, "rows": self.row_count}


class _SQLResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    data: list[dict[str, Any]] = Field(default_factory=list)
    rows: int = Field(ge=0)


def strip_terminator(sql: str) -> str:
    """Drop one trailing statement terminator and the whitespace around it."""
    normalized = sql.strip()
    if normalized.endswith(STATEMENT_TERMINATOR):
        normalized = normalized[: -len(STATEMENT_TERMINATOR)].rstrip()
    return normalized


def with_output_format(sql: str) -> str:
    """Return dispatchable SQL: terminator removed, JSON output directive appended."""
    return f"{strip_terminator(sql)} {OUTPUT_FORMAT}"


class QueryExecutor:
    """Run finalized SQL and normalize the tabular JSON response."""

    def __init__(self, client: TinybirdClient) -> None:
        self.client = client

    def execute(self, sql: str) -> QueryResult:
        query = with_output_format(sql)
        logger.debug("Dispatching query", extra={"sql": query})
        payload = self.client.get_json(SQL_ENDPOINT, {"q": query})

        try:
            response = _SQLResponse.model_validate(payload)
        except ValidationError as exc:
            raise TinybirdError(
                f"Tinybird SQL response violated output contract: {exc}"
            ) from exc
        return QueryResult(rows=response.data, row_count=response.rows)
