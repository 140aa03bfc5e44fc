"""Conversation generator strategies."""

from agentcast.conversation.base import ConversationGenerator, ConversationStep
from agentcast.conversation.external import ExternalConversationGenerator
from agentcast.conversation.factory import build_conversation_generator
from agentcast.conversation.heuristic import HeuristicConversationGenerator

__all__ = [
    "ConversationGenerator",
    "ConversationStep",
    "ExternalConversationGenerator",
    "HeuristicConversationGenerator",
    "build_conversation_generator",
]
