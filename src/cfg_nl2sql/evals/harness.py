"""Concurrent verification of generated SQL against reference SQL."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass, replace
from datetime import datetime, timezone
from typing import Callable, Protocol, Sequence

from cfg_nl2sql.db.connection import TinybirdError
from cfg_nl2sql.db.executor import QueryResult
from cfg_nl2sql.evals.cases import EvalCase
from cfg_nl2sql.evals.compare import data_equal
from cfg_nl2sql.grammar.synthesizer import GrammarBundle
from cfg_nl2sql.llm.base import GenerationServiceError, SQLGenerator
from cfg_nl2sql.models.generation import GenerationOutcome, SQLOutcome, UnsupportedOutcome
from cfg_nl2sql.sql.parser import has_order_by

logger = logging.getLogger(__name__)

EXPECTED_UNSUPPORTED_SQL = "(expected to be unsupported)"


class EvalCaseError(RuntimeError):
    """A single case failed; recorded on its result and never re-raised."""


class Executor(Protocol):
    def execute(self, sql: str) -> QueryResult: ...


@dataclass(frozen=True)
class EvalResult:
    name: str
    passed: bool
    query: str
    reference_sql: str
    generated_sql: str = ""
    error: str | None = None

    def to_dict(self) -> dict[str, object]:
        payload = asdict(self)
        if self.error is None:
            payload.pop("error")
        return payload


@dataclass(frozen=True)
class EvalSummary:
    total: int
    passed: int
    failed: int
    pass_rate: float

    def to_dict(self) -> dict[str, object]:
        return asdict(self)


@dataclass(frozen=True)
class EvalRun:
    """All case results plus the first failure message, if any."""

    results: list[EvalResult]
    error: str | None = None

    @property
    def passed(self) -> bool:
        return self.error is None


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class _CaseRunner:
    def __init__(
        self,
        generator: SQLGenerator,
        grammar: GrammarBundle,
        executor: Executor,
        now: Callable[[], datetime],
    ) -> None:
        self.generator = generator
        self.grammar = grammar
        self.executor = executor
        self.now = now

    def _generate(self, case: EvalCase) -> GenerationOutcome:
        return self.generator.generate(
            case.natural_language_query,
            self.grammar.grammar_text,
            self.grammar.capability_text,
            case.reference_time or self.now(),
        )

    def run(self, case: EvalCase) -> EvalResult:
        if case.expect_unsupported:
            return self._run_unsupported(case)

        reference_sql = case.reference_sql or ""
        generated_sql = ""
        try:
            try:
                expected = self.executor.execute(reference_sql)
            except TinybirdError as exc:
                raise EvalCaseError(f"reference SQL failed: {exc}") from exc

            try:
                outcome = self._generate(case)
            except GenerationServiceError as exc:
                raise EvalCaseError(f"generation failed: {exc}") from exc
            if isinstance(outcome, UnsupportedOutcome):
                raise EvalCaseError(f"generation refused: {outcome.reason}")
            generated_sql = outcome.sql

            try:
                actual = self.executor.execute(generated_sql)
            except TinybirdError as exc:
                raise EvalCaseError(f"generated SQL failed: {exc}") from exc

            if expected.row_count != actual.row_count:
                raise EvalCaseError(
                    f"row count: expected {expected.row_count}, got {actual.row_count}"
                )
            if not data_equal(
                expected.rows, actual.rows, ordered=has_order_by(reference_sql)
            ):
                raise EvalCaseError("data mismatch")
        except EvalCaseError as exc:
            return EvalResult(
                name=case.name,
                passed=False,
                query=case.natural_language_query,
                reference_sql=reference_sql,
                generated_sql=generated_sql,
                error=str(exc),
            )

        return EvalResult(
            name=case.name,
            passed=True,
            query=case.natural_language_query,
            reference_sql=reference_sql,
            generated_sql=generated_sql,
        )

    def _run_unsupported(self, case: EvalCase) -> EvalResult:
        result = EvalResult(
            name=case.name,
            passed=False,
            query=case.natural_language_query,
            reference_sql=EXPECTED_UNSUPPORTED_SQL,
        )
        try:
            outcome = self._generate(case)
        except GenerationServiceError as exc:
            return replace(
                result, error=f"expected unsupported outcome but got: {exc}"
            )

        if isinstance(outcome, SQLOutcome):
            return replace(
                result,
                generated_sql=outcome.sql,
                error="expected unsupported outcome but got valid SQL",
            )
        return replace(
            result, passed=True, generated_sql=f"(refused: {outcome.reason})"
        )


def run_evals(
    cases: Sequence[EvalCase],
    *,
    generator: SQLGenerator,
    grammar: GrammarBundle,
    executor: Executor,
    max_workers: int = 8,
    now: Callable[[], datetime] = _utcnow,
) -> EvalRun:
    """Run every case concurrently; results keep the order of `cases`.

    Each case is one task on a pool of at most `max_workers` threads, so with
    more cases than workers the remainder wait for a free thread. Every task
    writes only its own slot of the pre-sized result list.
    """
    runner = _CaseRunner(generator, grammar, executor, now)
    results: list[EvalResult | None] = [None] * len(cases)

    def work(index: int, case: EvalCase) -> None:
        try:
            results[index] = runner.run(case)
        except Exception as exc:  # recorded in this case's slot only
            logger.exception("Eval case crashed", extra={"case": case.name})
            results[index] = EvalResult(
                name=case.name,
                passed=False,
                query=case.natural_language_query,
                reference_sql=case.reference_sql or EXPECTED_UNSUPPORTED_SQL,
                error=f"unexpected error: {exc}",
            )

    if cases:
        with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(cases)))) as pool:
            futures = [pool.submit(work, index, case) for index, case in enumerate(cases)]
            for future in futures:
                future.result()

    finished = [result for result in results if result is not None]
    first_failure = next((result for result in finished if not result.passed), None)
    error = (
        f"eval {first_failure.name} failed: {first_failure.error}"
        if first_failure
        else None
    )
    return EvalRun(results=finished, error=error)


def summarize(results: Sequence[EvalResult]) -> EvalSummary:
    total = len(results)
    passed = sum(1 for result in results if result.passed)
    return EvalSummary(
        total=total,
        passed=passed,
        failed=total - passed,
        pass_rate=(passed / total * 100) if total else 0.0,
    )


def log_eval_results(results: Sequence[EvalResult]) -> None:
    for result in results:
        if result.passed:
            logger.info("PASS %s", result.name, extra={"sql": result.generated_sql})
        else:
            logger.warning(
                "FAIL %s: %s",
                result.name,
                result.error,
                extra={
                    "expected": result.reference_sql,
                    "got": result.generated_sql,
                },
            )
    summary = summarize(results)
    logger.info(
        "Eval summary: %d/%d passed",
        summary.passed,
        summary.total,
        extra={"failed": summary.failed, "pass_rate": summary.pass_rate},
    )
