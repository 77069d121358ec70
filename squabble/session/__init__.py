"""Conversation state management."""

from squabble.session.manager import SessionManager
from squabble.session.state import BotMessageRef, ConversationPhase, ConversationState
from squabble.session.store import InMemoryStateStore, StateStore

__all__ = [
    "SessionManager",
    "ConversationState",
    "ConversationPhase",
    "BotMessageRef",
    "StateStore",
    "InMemoryStateStore",
]
