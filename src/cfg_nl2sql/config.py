"""Application configuration loading and validation."""

from __future__ import annotations

import logging

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

DEFAULT_OPENAI_MODEL = "gpt-5"
DEFAULT_OPENAI_BASE_URL = "https://api.openai.com/v1"


class ConfigError(ValueError):
    """Raised when configuration cannot be loaded safely."""


class Settings(BaseModel):
    """Runtime settings loaded from environment variables."""

    model_config = ConfigDict(frozen=True)

    tinybird_host: str = Field(min_length=1)
    tinybird_token: str = Field(min_length=1)
    openai_api_key: str = ""
    openai_model: str = DEFAULT_OPENAI_MODEL
    openai_base_url: str = DEFAULT_OPENAI_BASE_URL
    request_timeout_seconds: int = Field(default=60, gt=0)
    eval_max_workers: int = Field(default=8, ge=1)
    port: int = Field(default=8080, ge=1, le=65535)
    log_level: str = "INFO"

    @field_validator("tinybird_host", "openai_base_url")
    @classmethod
    def validate_http_url(cls, value: str) -> str:
        normalized = value.strip().rstrip("/")
        if not normalized.startswith(("http://", "https://")):
            raise ValueError("must start with 'http://' or 'https://'.")
        return normalized

    @field_validator("tinybird_token", "openai_model")
    @classmethod
    def validate_non_empty(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("value cannot be empty.")
        return normalized

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in logging.getLevelNamesMapping():
            raise ValueError(f"unknown log level {value!r}.")
        return normalized

    def validate_llm_requirements(self) -> None:
        """Fail with a friendly message when LLM credentials are required."""
        if not self.openai_api_key.strip():
            raise ConfigError(
                "OPENAI_API_KEY is required for SQL generation commands."
            )


_REQUIRED_VARIABLES = ("TINYBIRD_HOST", "TINYBIRD_TOKEN")


def _env_value(name: str, default: str | None = None) -> str | None:
    import os

    value = os.getenv(name, default)
    if value is None:
        return None
    return value.strip()


def load_settings() -> Settings:
    """Load settings from environment variables."""
    missing = [name for name in _REQUIRED_VARIABLES if not _env_value(name)]
    if missing:
        raise ConfigError(
            "Missing required environment variables: "
            + ", ".join(missing)
            + ".\nExample: TINYBIRD_HOST=https://api.tinybird.co"
        )

    payload = {
        "tinybird_host": _env_value("TINYBIRD_HOST"),
        "tinybird_token": _env_value("TINYBIRD_TOKEN"),
        "openai_api_key": _env_value("OPENAI_API_KEY", ""),
        "openai_model": _env_value("OPENAI_MODEL", DEFAULT_OPENAI_MODEL),
        "openai_base_url": _env_value("OPENAI_BASE_URL", DEFAULT_OPENAI_BASE_URL),
        "request_timeout_seconds": _env_value("REQUEST_TIMEOUT_SECONDS", "60"),
        "eval_max_workers": _env_value("EVAL_MAX_WORKERS", "8"),
        "port": _env_value("PORT", "8080"),
        "log_level": _env_value("LOG_LEVEL", "INFO"),
    }

    try:
        return Settings.model_validate(payload)
    except ValidationError as exc:
        messages = []
        for err in exc.errors():
            field = ".".join(str(item) for item in err["loc"])
            messages.append(f"- {field}: {err['msg']}")
        raise ConfigError(
            "Invalid configuration values:\n" + "\n".join(messages)
        ) from exc
