import pytest

from cfg_nl2sql.config import ConfigError, load_settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "TINYBIRD_HOST",
        "TINYBIRD_TOKEN",
        "OPENAI_API_KEY",
        "OPENAI_MODEL",
        "OPENAI_BASE_URL",
        "REQUEST_TIMEOUT_SECONDS",
        "EVAL_MAX_WORKERS",
        "PORT",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)


def test_defaults(monkeypatch):
    monkeypatch.setenv("TINYBIRD_HOST", "https://api.tinybird.co/")
    monkeypatch.setenv("TINYBIRD_TOKEN", " tb ")

    settings = load_settings()

    assert settings.tinybird_host == "https://api.tinybird.co"
    assert settings.tinybird_token == "tb"
    assert settings.openai_model == "gpt-5"
    assert settings.eval_max_workers == 8
    assert settings.port == 8080
    assert settings.log_level == "INFO"


def test_missing_variables_reported_together():
    with pytest.raises(ConfigError) as excinfo:
        load_settings()

    assert "TINYBIRD_HOST, TINYBIRD_TOKEN" in str(excinfo.value)


def test_invalid_values(monkeypatch):
    monkeypatch.setenv("TINYBIRD_HOST", "api.tinybird.co")
    monkeypatch.setenv("TINYBIRD_TOKEN", "tb")
    monkeypatch.setenv("EVAL_MAX_WORKERS", "0")
    monkeypatch.setenv("LOG_LEVEL", "chatty")

    with pytest.raises(ConfigError) as excinfo:
        load_settings()

    message = str(excinfo.value)
    assert "- tinybird_host:" in message
    assert "- eval_max_workers:" in message
    assert "- log_level:" in message


def test_llm_requirements(monkeypatch):
    monkeypatch.setenv("TINYBIRD_HOST", "https://api.tinybird.co")
    monkeypatch.setenv("TINYBIRD_TOKEN", "tb")

    with pytest.raises(ConfigError, match="OPENAI_API_KEY"):
        load_settings().validate_llm_requirements()
