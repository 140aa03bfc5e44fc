"""Pick the conversation strategy from settings."""

from __future__ import annotations

import random

from agentcast.config.settings import Settings
from agentcast.conversation.base import ConversationGenerator
from agentcast.conversation.external import ExternalConversationGenerator
from agentcast.conversation.heuristic import HeuristicConversationGenerator


def build_conversation_generator(
    settings: Settings,
    *,
    rng: random.Random | None = None,
) -> ConversationGenerator:
    if settings.conversation_mode == "external":
        return ExternalConversationGenerator(
            url=settings.oracle_url,
            task_id=settings.oracle_task_id,
            timeout_s=settings.oracle_timeout_s,
            max_retries=settings.oracle_max_retries,
            backoff_s=settings.oracle_backoff_s,
        )
    return HeuristicConversationGenerator(rng=rng)
