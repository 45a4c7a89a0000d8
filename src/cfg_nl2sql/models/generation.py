"""Typed generation outcomes returned by SQL generators."""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_UNSUPPORTED_REASON = "Query cannot be answered with available data"


class SQLOutcome(BaseModel):
    """The service produced grammar-constrained SQL."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["sql"] = "sql"
    sql: str = Field(min_length=1)


class UnsupportedOutcome(BaseModel):
    """The service declined: the question is outside what the schema can answer."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["unsupported"] = "unsupported"
    reason: str = Field(min_length=1)
    hint: str | None = None


GenerationOutcome = Annotated[
    Union[SQLOutcome, UnsupportedOutcome],
    Field(discriminator="kind"),
]


class CannotAnswerInput(BaseModel):
    """Arguments of the refusal channel."""

    model_config = ConfigDict(extra="ignore")

    reason: str = Field(min_length=1)
