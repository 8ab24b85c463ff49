"""Schemas for conversation transcripts."""

from typing import Literal

from pydantic import BaseModel

Role = Literal["system", "user", "assistant"]


class ConversationTurn(BaseModel):
    """A single role-tagged message in a session transcript."""

    role: Role
    content: str


def visible_turns(transcript: list[ConversationTurn]) -> list[ConversationTurn]:
    """Drop system turns, leaving the user/assistant exchange for display."""
    return [t for t in transcript if t.role != "system"]
