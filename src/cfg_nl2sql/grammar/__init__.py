"""Grammar synthesis for constrained SQL generation."""

from cfg_nl2sql.grammar.synthesizer import (
    EmptySchemaError,
    GrammarBundle,
    GrammarCollision,
    synthesize,
    terminal_name,
)

__all__ = [
    "EmptySchemaError",
    "GrammarBundle",
    "GrammarCollision",
    "synthesize",
    "terminal_name",
]
