"""Command-line entrypoint for cfg-nl2sql."""

from __future__ import annotations

import argparse
import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

from cfg_nl2sql import __version__

if TYPE_CHECKING:
    from cfg_nl2sql.config import Settings
    from cfg_nl2sql.models.generation import UnsupportedOutcome
    from cfg_nl2sql.pipeline import NL2SQLPipeline

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG = 2
EXIT_UNSUPPORTED = 3


def _reference_time(value: str) -> datetime:
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(
            f"invalid reference time {value!r}; use ISO 8601, e.g. 2024-06-15T12:00:00"
        ) from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cfg-nl2sql",
        description=(
            "Translate natural language into grammar-constrained ClickHouse SQL "
            "and run it against Tinybird."
        ),
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        help="Emit logs as JSON lines.",
    )

    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser(
        "config-check",
        help="Validate environment configuration for cfg-nl2sql.",
    )
    subparsers.add_parser(
        "show-schema",
        help="Fetch and print the live datasource schema.",
    )
    grammar_parser = subparsers.add_parser(
        "build-grammar",
        help="Print the Lark grammar synthesized from the live schema.",
    )
    grammar_parser.add_argument(
        "--capability",
        action="store_true",
        help="Print the capability description instead of the grammar.",
    )
    for name, help_text in (
        ("generate-sql", "Generate SQL for a question without running it."),
        ("ask", "Generate SQL for a question and run it."),
    ):
        command_parser = subparsers.add_parser(name, help=help_text)
        command_parser.add_argument("question", help="Natural language question.")
        command_parser.add_argument(
            "--reference-time",
            type=_reference_time,
            default=None,
            help="Instant used as 'now' for relative time phrases (default: current UTC time).",
        )
    evals_parser = subparsers.add_parser(
        "run-evals",
        help="Run the verification harness against reference SQL.",
    )
    evals_parser.add_argument(
        "--cases",
        type=Path,
        default=None,
        help="JSON file of eval cases (default: built-in battery).",
    )
    evals_parser.add_argument(
        "--json",
        action="store_true",
        help="Print results and summary as JSON.",
    )
    validate_parser = subparsers.add_parser(
        "validate-sql",
        help="Check a SQL statement against the live schema.",
    )
    validate_parser.add_argument("sql", help="SQL statement to validate.")
    serve_parser = subparsers.add_parser(
        "serve",
        help="Serve the HTTP API.",
    )
    serve_parser.add_argument("--host", default="0.0.0.0")
    serve_parser.add_argument("--port", type=int, default=None)
    serve_parser.add_argument(
        "--startup-evals",
        action="store_true",
        help="Run the eval battery first and refuse to start if any case fails.",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return EXIT_OK

    try:
        from dotenv import load_dotenv

        from cfg_nl2sql.config import ConfigError, load_settings
        from cfg_nl2sql.grammar.synthesizer import EmptySchemaError, GrammarCollision
        from cfg_nl2sql.llm.base import GenerationServiceError
        from cfg_nl2sql.log import configure_logging
        from cfg_nl2sql.pipeline import NL2SQLPipeline, QueryFailed
        from cfg_nl2sql.schema.catalog import SchemaFetchError
    except ModuleNotFoundError:
        print(
            "Runtime dependencies are missing. "
            "Install project dependencies first (pip install -e .).",
            file=sys.stderr,
        )
        return EXIT_CONFIG

    load_dotenv()
    try:
        settings = load_settings()
        if args.command in {"generate-sql", "ask", "run-evals", "serve"}:
            settings.validate_llm_requirements()
    except ConfigError as exc:
        print(f"Configuration error:\n{exc}", file=sys.stderr)
        return EXIT_CONFIG

    configure_logging(settings.log_level, json_format=args.log_json)

    if args.command == "config-check":
        redacted = "***" if settings.openai_api_key else "(not set)"
        print("Configuration loaded successfully:")
        print(f"- TINYBIRD_HOST: {settings.tinybird_host}")
        print("- TINYBIRD_TOKEN: ***")
        print(f"- OPENAI_API_KEY: {redacted}")
        print(f"- OPENAI_MODEL: {settings.openai_model}")
        print(f"- OPENAI_BASE_URL: {settings.openai_base_url}")
        print(f"- REQUEST_TIMEOUT_SECONDS: {settings.request_timeout_seconds}")
        print(f"- EVAL_MAX_WORKERS: {settings.eval_max_workers}")
        print(f"- PORT: {settings.port}")
        print(f"- LOG_LEVEL: {settings.log_level}")
        return EXIT_OK

    pipeline = NL2SQLPipeline.from_settings(settings)

    try:
        return _dispatch(args, pipeline, settings)
    except SchemaFetchError as exc:
        print(f"Schema fetch failed:\n{exc}", file=sys.stderr)
    except (GrammarCollision, EmptySchemaError) as exc:
        print(f"Grammar synthesis failed:\n{exc}", file=sys.stderr)
    except GenerationServiceError as exc:
        print(f"SQL generation failed:\n{exc}", file=sys.stderr)
    except QueryFailed as exc:
        print(f"Query execution failed:\n{exc}\nSQL: {exc.sql}", file=sys.stderr)
    return EXIT_FAILURE


def _dispatch(
    args: argparse.Namespace, pipeline: NL2SQLPipeline, settings: Settings
) -> int:
    from cfg_nl2sql.models.generation import UnsupportedOutcome

    if args.command == "show-schema":
        schema, _ = pipeline.load_grammar()
        print("Schema loaded:")
        for table in schema.tables:
            print(f"- {table.name}")
            for column in table.columns:
                print(f"  - {column.name} ({column.type})")
        print(f"\n{schema.user_hint()}")
        return EXIT_OK

    if args.command == "build-grammar":
        _, grammar = pipeline.load_grammar()
        print(grammar.capability_text if args.capability else grammar.grammar_text)
        return EXIT_OK

    if args.command == "generate-sql":
        _, outcome = pipeline.generate(args.question, args.reference_time)
        if isinstance(outcome, UnsupportedOutcome):
            _print_unsupported(outcome)
            return EXIT_UNSUPPORTED
        print(outcome.sql)
        return EXIT_OK

    if args.command == "ask":
        answer = pipeline.answer(args.question, args.reference_time)
        if answer.unsupported is not None:
            _print_unsupported(answer.unsupported)
            return EXIT_UNSUPPORTED
        print(f"SQL: {answer.sql}")
        print(f"Rows: {answer.row_count}")
        print(json.dumps(answer.rows, indent=2, sort_keys=True, default=str))
        return EXIT_OK

    if args.command == "run-evals":
        return _run_evals(args, pipeline)

    if args.command == "validate-sql":
        from cfg_nl2sql.sql.validator import validate_sql

        schema, _ = pipeline.load_grammar()
        validation = validate_sql(args.sql, schema)
        if not validation.is_valid:
            print("SQL validation failed:")
            for violation in validation.violations:
                print(f"- {violation}")
            return EXIT_FAILURE

        print("SQL validation succeeded:")
        print(f"- tables_used: {', '.join(validation.tables_used) or '(none)'}")
        print(f"- columns_used: {', '.join(validation.columns_used) or '(none)'}")
        print(f"- aggregates_used: {', '.join(validation.aggregates_used) or '(none)'}")
        return EXIT_OK

    if args.command == "serve":
        if args.startup_evals:
            run = pipeline.run_evals()
            if not run.passed:
                print(f"Startup evals failed:\n{run.error}", file=sys.stderr)
                return EXIT_FAILURE

        import uvicorn

        uvicorn.run("cfg_nl2sql.api:app", host=args.host, port=args.port or settings.port)
        return EXIT_OK

    print(f"Command '{args.command}' is not implemented.", file=sys.stderr)
    return EXIT_CONFIG


def _print_unsupported(outcome: UnsupportedOutcome) -> None:
    print(f"Cannot answer: {outcome.reason}")
    if outcome.hint:
        print(outcome.hint)


def _run_evals(args: argparse.Namespace, pipeline: NL2SQLPipeline) -> int:
    from cfg_nl2sql.evals.cases import EvalCaseFileError, load_eval_cases
    from cfg_nl2sql.evals.harness import summarize

    cases = None
    if args.cases is not None:
        try:
            cases = load_eval_cases(args.cases)
        except EvalCaseFileError as exc:
            print(f"Eval case file error:\n{exc}", file=sys.stderr)
            return EXIT_CONFIG

    run = pipeline.run_evals(cases)
    summary = summarize(run.results)

    if args.json:
        payload: dict[str, object] = {
            "results": [result.to_dict() for result in run.results],
            "summary": summary.to_dict(),
            "passed": run.passed,
        }
        if run.error:
            payload["error"] = run.error
        print(json.dumps(payload, indent=2))
    else:
        for result in run.results:
            status = "PASS" if result.passed else "FAIL"
            print(f"[{status}] {result.name}: {result.query}")
            if result.generated_sql:
                print(f"    generated: {result.generated_sql}")
            if result.error:
                print(f"    error: {result.error}")
        print(
            f"\nResults: {summary.passed}/{summary.total} passed "
            f"({summary.pass_rate:.1f}%)"
        )

    return EXIT_OK if run.passed else EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
