"""OpenAI Responses API implementation of the SQL generator interface."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from urllib import error, request

from pydantic import ValidationError

from cfg_nl2sql.llm.base import GenerationServiceError, SQLGenerator
from cfg_nl2sql.models.generation import (
    DEFAULT_UNSUPPORTED_REASON,
    CannotAnswerInput,
    GenerationOutcome,
    SQLOutcome,
    UnsupportedOutcome,
)

logger = logging.getLogger(__name__)

SQL_TOOL_NAME = "sql_generator"
REFUSAL_TOOL_NAME = "cannot_answer"
REFERENCE_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"

_REFUSAL_TOOL = {
    "type": "function",
    "name": REFUSAL_TOOL_NAME,
    "description": (
        "Call this when the query cannot be answered with the available "
        "database schema. Use this for questions about data that doesn't "
        "exist in the tables, or for completely unrelated questions."
    ),
    "parameters": {
        "type": "object",
        "properties": {
            "reason": {
                "type": "string",
                "description": "Brief explanation of why this query cannot be answered",
            },
        },
        "required": ["reason"],
    },
}

_INSTRUCTIONS = """\
Convert this natural language query to a valid ClickHouse SQL query.

If the query CAN be answered with the available schema, call the {sql_tool} tool.
If the query CANNOT be answered (asks for data not in the schema, or is unrelated to the database), call the {refusal_tool} tool with a brief explanation.

Current UTC time: {now}
Use this timestamp for any relative time calculations (e.g., 'last 30 hours' means since {now} minus 30 hours).

Query: {question}"""


def format_reference_time(reference_time: datetime) -> str:
    """Render an instant as UTC wall time, the format the grammar's DATETIME accepts."""
    if reference_time.tzinfo is not None:
        reference_time = reference_time.astimezone(timezone.utc)
    return reference_time.strftime(REFERENCE_TIME_FORMAT)


@dataclass(frozen=True)
class OpenAIAdapter(SQLGenerator):
    """Generate SQL through a grammar-constrained custom tool call."""

    api_key: str
    model: str
    base_url: str = "https://api.openai.com/v1"
    timeout_seconds: int = 60

    def build_request(
        self,
        natural_language: str,
        grammar_text: str,
        capability_text: str,
        reference_time: datetime,
    ) -> dict[str, object]:
        now = format_reference_time(reference_time)
        return {
            "model": self.model,
            "input": _INSTRUCTIONS.format(
                sql_tool=SQL_TOOL_NAME,
                refusal_tool=REFUSAL_TOOL_NAME,
                now=now,
                question=natural_language,
            ),
            "tools": [
                {
                    "type": "custom",
                    "name": SQL_TOOL_NAME,
                    "description": capability_text,
                    "format": {
                        "type": "grammar",
                        "syntax": "lark",
                        "definition": grammar_text,
                    },
                },
                _REFUSAL_TOOL,
            ],
            "parallel_tool_calls": False,
        }

    def generate(
        self,
        natural_language: str,
        grammar_text: str,
        capability_text: str,
        reference_time: datetime,
    ) -> GenerationOutcome:
        body = self.build_request(
            natural_language, grammar_text, capability_text, reference_time
        )

        endpoint = self.base_url.rstrip("/") + "/responses"
        req = request.Request(
            endpoint,
            method="POST",
            data=json.dumps(body).encode("utf-8"),
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
        )

        try:
            with request.urlopen(req, timeout=self.timeout_seconds) as response:
                payload = json.loads(response.read().decode("utf-8"))
        except error.HTTPError as exc:
            details = exc.read().decode("utf-8", errors="replace")
            raise GenerationServiceError(
                f"OpenAI request failed with HTTP {exc.code}: {details}"
            ) from exc
        except error.URLError as exc:
            raise GenerationServiceError(f"OpenAI request failed: {exc.reason}") from exc
        except TimeoutError as exc:
            raise GenerationServiceError("OpenAI request timed out.") from exc
        except json.JSONDecodeError as exc:
            raise GenerationServiceError("OpenAI response was not valid JSON.") from exc

        return self.parse_outcome(payload)

    @staticmethod
    def parse_outcome(payload: object) -> GenerationOutcome:
        """Pick the outcome from whichever tool channel the model used."""
        if not isinstance(payload, dict):
            raise GenerationServiceError("OpenAI response root must be a JSON object.")
        output = payload.get("output")
        if not isinstance(output, list):
            raise GenerationServiceError("OpenAI response is missing output items.")

        for item in output:
            if not isinstance(item, dict):
                continue
            item_type = item.get("type")
            name = item.get("name")

            if item_type == "custom_tool_call" and name == SQL_TOOL_NAME:
                sql = item.get("input")
                if not isinstance(sql, str) or not sql.strip():
                    raise GenerationServiceError("SQL tool call carried no SQL.")
                return SQLOutcome(sql=sql.strip())

            if item_type == "function_call" and name == REFUSAL_TOOL_NAME:
                return UnsupportedOutcome(reason=_refusal_reason(item))

        raise GenerationServiceError("no output produced: neither tool was called")


def _refusal_reason(item: dict[str, object]) -> str:
    raw = item.get("arguments", item.get("input"))
    try:
        if not isinstance(raw, str):
            raise ValueError("refusal arguments are not a JSON string")
        return CannotAnswerInput.model_validate(json.loads(raw)).reason
    except (ValueError, ValidationError):
        logger.warning("Unparseable refusal payload; using generic reason")
        return DEFAULT_UNSUPPORTED_REASON
