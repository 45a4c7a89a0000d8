"""Generation adapters and factory helpers."""

from cfg_nl2sql.config import Settings
from cfg_nl2sql.llm.base import GenerationServiceError, SQLGenerator
from cfg_nl2sql.llm.openai_adapter import OpenAIAdapter


def create_sql_generator(settings: Settings) -> SQLGenerator:
    """Create default SQL generator for current settings."""
    return OpenAIAdapter(
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        base_url=settings.openai_base_url,
        timeout_seconds=settings.request_timeout_seconds,
    )


__all__ = [
    "GenerationServiceError",
    "OpenAIAdapter",
    "SQLGenerator",
    "create_sql_generator",
]
