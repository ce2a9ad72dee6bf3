"""
Value types exchanged between the chat endpoint, the generator and the
generation providers.
"""
from __future__ import annotations

from typing import Literal, Union

from pydantic import BaseModel, Field

Scalar = Union[str, int, float, bool, None]


class ConversationTurn(BaseModel):
    """One prior message of the client-held dialogue."""

    role: Literal["user", "assistant"]
    content: str


class GeneratedQuery(BaseModel):
    """Structured result parsed from a provider's free-text answer.

    An empty ``sql`` means the model answered conversationally and nothing
    should be executed.
    """

    sql: str = Field("", description="Candidate SELECT statement (may be empty)")
    explanation: str = Field("", description="Model's natural-language explanation")
    params: list[Scalar] = Field(default_factory=list, description="Positional $n parameters")

    @property
    def has_sql(self) -> bool:
        return bool(self.sql.strip())
