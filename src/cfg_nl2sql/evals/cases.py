"""Eval cases: natural-language questions paired with reference SQL."""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, model_validator


class EvalCaseFileError(RuntimeError):
    """Raised when an eval case file cannot be loaded."""


@dataclass(frozen=True)
class EvalCase:
    """One question with either reference SQL or an expected refusal.

    `reference_time` replaces "now" for questions with relative time phrases so
    the expected SQL stays fixed across runs.
    """

    name: str
    natural_language_query: str
    reference_sql: str | None = None
    reference_time: datetime | None = None
    expect_unsupported: bool = False


# Fixed reference time for time-based cases: 2024-06-15 12:00:00 UTC.
FIXED_REFERENCE_TIME = datetime(2024, 6, 15, 12, 0, 0, tzinfo=timezone.utc)


def default_eval_cases() -> list[EvalCase]:
    return [
        EvalCase(
            name="count_all",
            natural_language_query="Count all items",
            reference_sql="SELECT COUNT(*) FROM order_items;",
        ),
        EvalCase(
            name="total_revenue",
            natural_language_query="What is the total revenue?",
            reference_sql="SELECT SUM(price) FROM order_items;",
        ),
        EvalCase(
            name="avg_shipping",
            natural_language_query="What is the average shipping cost?",
            reference_sql="SELECT AVG(freight_value) FROM order_items;",
        ),
        EvalCase(
            name="count_expensive",
            natural_language_query="How many items cost more than 100?",
            reference_sql="SELECT COUNT(*) FROM order_items WHERE price > 100;",
        ),
        EvalCase(
            name="revenue_last_7_days",
            natural_language_query=(
                "What is the total revenue from items with shipping limit date "
                "in the last 7 days?"
            ),
            reference_sql=(
                "SELECT SUM(price) FROM order_items "
                "WHERE shipping_limit_date > '2024-06-08 12:00:00';"
            ),
            reference_time=FIXED_REFERENCE_TIME,
        ),
        EvalCase(
            name="unsupported_weather",
            natural_language_query="What's the weather like in Tokyo?",
            expect_unsupported=True,
        ),
        EvalCase(
            name="unsupported_nonexistent_table",
            natural_language_query="How many customers are from California?",
            expect_unsupported=True,
        ),
    ]


class _EvalCaseEntry(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1)
    query: str = Field(min_length=1)
    reference_sql: str | None = None
    reference_time: datetime | None = None
    expect_unsupported: bool = False

    @model_validator(mode="after")
    def check_expectation(self) -> "_EvalCaseEntry":
        if self.expect_unsupported and self.reference_sql:
            raise ValueError("a case cannot have reference_sql and expect_unsupported")
        if not self.expect_unsupported and not self.reference_sql:
            raise ValueError("reference_sql is required unless expect_unsupported")
        return self

    def to_case(self) -> EvalCase:
        reference_time = self.reference_time
        if reference_time is not None and reference_time.tzinfo is None:
            reference_time = reference_time.replace(tzinfo=timezone.utc)
        return EvalCase(
            name=self.name,
            natural_language_query=self.query,
            reference_sql=self.reference_sql,
            reference_time=reference_time,
            expect_unsupported=self.expect_unsupported,
        )


_ENTRIES = TypeAdapter(list[_EvalCaseEntry])


def load_eval_cases(path: Path) -> list[EvalCase]:
    """Load a JSON list of case objects (`name`, `query`, `reference_sql`, ...)."""
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise EvalCaseFileError(f"Eval case file is not valid JSON: {exc}") from exc
    except OSError as exc:
        raise EvalCaseFileError(f"Failed to read eval case file: {exc}") from exc

    try:
        entries = _ENTRIES.validate_python(payload)
    except ValidationError as exc:
        raise EvalCaseFileError(f"Invalid eval case file: {exc}") from exc

    names = [entry.name for entry in entries]
    duplicates = sorted({name for name in names if names.count(name) > 1})
    if duplicates:
        raise EvalCaseFileError(f"Duplicate eval case names: {', '.join(duplicates)}")
    return [entry.to_case() for entry in entries]
