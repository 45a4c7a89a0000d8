import json

import pytest

from cfg_nl2sql import cli
from cfg_nl2sql.db.connection import ExecutionError
from cfg_nl2sql.models.generation import SQLOutcome, UnsupportedOutcome
from cfg_nl2sql.pipeline import NL2SQLPipeline
from conftest import ORDER_ITEMS_CATALOG, FakeGenerator, StubClient


@pytest.fixture
def env(monkeypatch):
    monkeypatch.setenv("TINYBIRD_HOST", "https://api.tinybird.co")
    monkeypatch.setenv("TINYBIRD_TOKEN", "tb")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setattr("dotenv.load_dotenv", lambda *args, **kwargs: False)
    monkeypatch.setattr("cfg_nl2sql.log.configure_logging", lambda *args, **kwargs: None)


@pytest.fixture
def fake_pipeline(monkeypatch):
    def install(generator, sql_response=None):
        stub = StubClient({"/v0/datasources": ORDER_ITEMS_CATALOG, "/v0/sql": sql_response})
        monkeypatch.setattr(
            NL2SQLPipeline,
            "from_settings",
            classmethod(lambda cls, settings: cls(stub, generator)),
        )

    return install


def test_reference_time_parsing():
    parsed = cli._reference_time("2024-06-15T12:00:00")

    assert parsed.isoformat() == "2024-06-15T12:00:00+00:00"


def test_no_command_prints_help(capsys):
    assert cli.main([]) == cli.EXIT_OK
    assert "cfg-nl2sql" in capsys.readouterr().out


def test_missing_config_exit_code(monkeypatch, capsys):
    monkeypatch.delenv("TINYBIRD_HOST", raising=False)
    monkeypatch.delenv("TINYBIRD_TOKEN", raising=False)
    monkeypatch.setattr("dotenv.load_dotenv", lambda *args, **kwargs: False)

    assert cli.main(["config-check"]) == cli.EXIT_CONFIG
    assert "TINYBIRD_HOST" in capsys.readouterr().err


def test_build_grammar(env, fake_pipeline, capsys):
    fake_pipeline(FakeGenerator({}))

    assert cli.main(["build-grammar"]) == cli.EXIT_OK
    assert 'table: "order_items"' in capsys.readouterr().out


def test_ask_prints_rows(env, fake_pipeline, capsys):
    fake_pipeline(
        FakeGenerator({"Count all items": SQLOutcome(sql="SELECT COUNT(*) FROM order_items;")}),
        {"data": [{"count()": "112650"}], "rows": 1},
    )

    assert cli.main(["ask", "Count all items"]) == cli.EXIT_OK
    out = capsys.readouterr().out
    assert "SQL: SELECT COUNT(*) FROM order_items;" in out
    assert "112650" in out


def test_ask_execution_failure_reports_sql(env, fake_pipeline, capsys):
    fake_pipeline(
        FakeGenerator({"q": SQLOutcome(sql="SELECT price FROM order_items;")}),
        ExecutionError(400, "engine limit"),
    )

    assert cli.main(["ask", "q"]) == cli.EXIT_FAILURE
    err = capsys.readouterr().err
    assert "engine limit" in err
    assert "SQL: SELECT price FROM order_items;" in err

def test_generate_sql_unsupported_exit_code(env, fake_pipeline, capsys):
    fake_pipeline(FakeGenerator({"Weather?": UnsupportedOutcome(reason="No weather data.")}))

    assert cli.main(["generate-sql", "Weather?"]) == cli.EXIT_UNSUPPORTED
    out = capsys.readouterr().out
    assert "Cannot answer: No weather data." in out
    assert "Available data:" in out


def test_run_evals_json(env, fake_pipeline, capsys, tmp_path):
    path = tmp_path / "cases.json"
    path.write_text(
        json.dumps([{"name": "weather", "query": "Weather?", "expect_unsupported": True}]),
        encoding="utf-8",
    )
    fake_pipeline(FakeGenerator({"Weather?": UnsupportedOutcome(reason="no")}))

    assert cli.main(["run-evals", "--cases", str(path), "--json"]) == cli.EXIT_OK
    payload = json.loads(capsys.readouterr().out)
    assert payload["passed"] is True
    assert payload["summary"]["total"] == 1


def test_validate_sql_reports_violations(env, fake_pipeline, capsys):
    fake_pipeline(FakeGenerator({}))

    assert cli.main(["validate-sql", "SELECT name FROM customers"]) == cli.EXIT_FAILURE
    assert "customers" in capsys.readouterr().out
