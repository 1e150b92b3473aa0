"""
Conversation turns, routing labels and the history window.
"""
from __future__ import annotations

from enum import Enum
from typing import Literal, Sequence

from pydantic import BaseModel, Field


class ConversationTurn(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str = Field(..., max_length=20_000)


class Classification(str, Enum):
    FRESH = "NEW_QUERY"
    CONTEXT_SWITCH = "CONTEXT_SWITCH"
    FOLLOWUP = "FOLLOWUP"

    @property
    def needs_data(self) -> bool:
        return self is not Classification.FOLLOWUP


def window_history(history: Sequence[ConversationTurn] | None, max_turns: int) -> list[ConversationTurn]:
    """Keep only the most recent *max_turns* turns (0 or less keeps none)."""
    if not history or max_turns <= 0:
        return []
    return list(history)[-max_turns:]


def to_messages(history: Sequence[ConversationTurn]) -> list[dict[str, str]]:
    return [{"role": t.role, "content": t.content} for t in history]
