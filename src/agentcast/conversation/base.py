"""Conversation step contract shared by the generator strategies."""

from __future__ import annotations

from typing import Any, Protocol

from pydantic import BaseModel


class ConversationStep(BaseModel):
    """One agent utterance before it is written to the store."""

    agent: str
    message: str
    message_type: str
    metadata: dict[str, Any] | None = None


class ConversationGenerator(Protocol):
    """Produces the ordered steps that resolve a prompt.

    `expected_steps` and `progress_scale` tune the progress estimate while a run
    is in flight, since the true step count is not always known up front.
    """

    name: str
    expected_steps: int
    progress_scale: float

    async def generate(self, prompt: str) -> list[ConversationStep]: ...
