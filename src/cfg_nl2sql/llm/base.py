"""Provider-independent interface for grammar-constrained SQL generation."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from cfg_nl2sql.models.generation import GenerationOutcome


class GenerationServiceError(RuntimeError):
    """Raised when the generation call itself fails; never for a refusal."""


class SQLGenerator(ABC):
    """Abstract generation adapter interface."""

    @abstractmethod
    def generate(
        self,
        natural_language: str,
        grammar_text: str,
        capability_text: str,
        reference_time: datetime,
    ) -> GenerationOutcome:
        """Translate a question into SQL, or report why it cannot be answered.

        `reference_time` stands in for "now" when the question uses relative
        time phrases.
        """
