"""Grammar-constrained natural language to SQL over a Tinybird workspace."""

__version__ = "0.1.0"
