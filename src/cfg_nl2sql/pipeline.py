"""Request-level orchestration: schema, grammar, generation, execution."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Sequence

from cfg_nl2sql.config import Settings
from cfg_nl2sql.db.connection import TinybirdClient, TinybirdError
from cfg_nl2sql.db.executor import QueryExecutor, QueryResult
from cfg_nl2sql.evals.cases import EvalCase, default_eval_cases
from cfg_nl2sql.evals.harness import EvalRun, log_eval_results, run_evals
from cfg_nl2sql.grammar.synthesizer import GrammarBundle, synthesize
from cfg_nl2sql.llm import create_sql_generator
from cfg_nl2sql.llm.base import SQLGenerator
from cfg_nl2sql.models.generation import GenerationOutcome, UnsupportedOutcome
from cfg_nl2sql.schema.catalog import fetch_schema
from cfg_nl2sql.schema.model import Schema

logger = logging.getLogger(__name__)


class QueryFailed(RuntimeError):
    """Execution of generated SQL failed; carries the SQL that was sent."""

    def __init__(self, message: str, sql: str) -> None:
        super().__init__(message)
        self.sql = sql


@dataclass(frozen=True)
class QueryAnswer:
    """Either executed rows for generated SQL, or a refusal with a hint."""

    sql: str | None = None
    rows: list[dict[str, Any]] = field(default_factory=list)
    row_count: int = 0
    unsupported: UnsupportedOutcome | None = None

    def to_dict(self) -> dict[str, object]:
        if self.unsupported is not None:
            payload: dict[str, object] = {"error": self.unsupported.reason}
            if self.unsupported.hint:
                payload["hint"] = self.unsupported.hint
            return payload
        return {"sql": self.sql, "data": self.rows, "rows": self.row_count}


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 1)


class NL2SQLPipeline:
    """Sequential pipeline; the schema is fetched fresh for every request."""

    def __init__(
        self,
        client: TinybirdClient,
        generator: SQLGenerator,
        *,
        eval_max_workers: int = 8,
    ) -> None:
        self.client = client
        self.generator = generator
        self.executor = QueryExecutor(client)
        self.eval_max_workers = eval_max_workers

    @classmethod
    def from_settings(cls, settings: Settings) -> "NL2SQLPipeline":
        client = TinybirdClient(
            host=settings.tinybird_host,
            token=settings.tinybird_token,
            timeout_seconds=settings.request_timeout_seconds,
        )
        return cls(
            client,
            create_sql_generator(settings),
            eval_max_workers=settings.eval_max_workers,
        )

    def load_grammar(self) -> tuple[Schema, GrammarBundle]:
        start = time.perf_counter()
        schema = fetch_schema(self.client)
        grammar = synthesize(schema)
        logger.debug(
            "Schema loaded",
            extra={"tables": len(schema.tables), "duration_ms": _elapsed_ms(start)},
        )
        return schema, grammar

    def generate(
        self, question: str, reference_time: datetime | None = None
    ) -> tuple[Schema, GenerationOutcome]:
        schema, grammar = self.load_grammar()
        start = time.perf_counter()
        outcome = self.generator.generate(
            question,
            grammar.grammar_text,
            grammar.capability_text,
            reference_time or datetime.now(tz=timezone.utc),
        )
        if isinstance(outcome, UnsupportedOutcome):
            logger.info(
                "Unsupported query",
                extra={"reason": outcome.reason, "duration_ms": _elapsed_ms(start)},
            )
            outcome = outcome.model_copy(update={"hint": schema.user_hint()})
        else:
            logger.info(
                "SQL generated",
                extra={"sql": outcome.sql, "duration_ms": _elapsed_ms(start)},
            )
        return schema, outcome

    def execute(self, sql: str) -> QueryResult:
        start = time.perf_counter()
        try:
            result = self.executor.execute(sql)
        except TinybirdError as exc:
            logger.error("Query execution failed: %s", exc, extra={"sql": sql})
            raise QueryFailed(str(exc), sql) from exc
        logger.info(
            "Query executed",
            extra={"rows": result.row_count, "db_duration_ms": _elapsed_ms(start)},
        )
        return result

    def answer(
        self, question: str, reference_time: datetime | None = None
    ) -> QueryAnswer:
        """Translate and run `question`; refusals come back as a QueryAnswer."""
        _, outcome = self.generate(question, reference_time)
        if isinstance(outcome, UnsupportedOutcome):
            return QueryAnswer(unsupported=outcome)

        result = self.execute(outcome.sql)
        return QueryAnswer(sql=outcome.sql, rows=result.rows, row_count=result.row_count)

    def run_evals(self, cases: Sequence[EvalCase] | None = None) -> EvalRun:
        _, grammar = self.load_grammar()
        start = time.perf_counter()
        run = run_evals(
            default_eval_cases() if cases is None else cases,
            generator=self.generator,
            grammar=grammar,
            executor=self.executor,
            max_workers=self.eval_max_workers,
        )
        log_eval_results(run.results)
        logger.info("Evals finished", extra={"eval_duration_ms": _elapsed_ms(start)})
        return run
