"""Data contracts shared across generation and evaluation."""

from cfg_nl2sql.models.generation import (
    DEFAULT_UNSUPPORTED_REASON,
    CannotAnswerInput,
    GenerationOutcome,
    SQLOutcome,
    UnsupportedOutcome,
)

__all__ = [
    "DEFAULT_UNSUPPORTED_REASON",
    "CannotAnswerInput",
    "GenerationOutcome",
    "SQLOutcome",
    "UnsupportedOutcome",
]
