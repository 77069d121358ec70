"""Conversation state lifecycle: lazy creation, passive expiry, turn tracking."""

from __future__ import annotations

import time
from typing import Callable

from loguru import logger

from squabble.session.state import (
    RECENT_BOT_MESSAGES,
    ConversationState,
    new_state,
    on_bot_send,
    on_message,
    on_timeout,
)
from squabble.session.store import InMemoryStateStore, StateStore

DEFAULT_STATE_TIMEOUT = 60.0
DEFAULT_MAX_CONTEXT_MESSAGES = 5


class SessionManager:
    """
    Owns the ConversationState of every conversation.

    Expiry is checked on read: ``get_state`` resets a record whose last update
    is older than ``state_timeout`` or whose turn counter reached
    ``max_context_messages`` before handing it out. There is no background timer.
    """

    def __init__(
        self,
        store: StateStore[ConversationState] | None = None,
        state_timeout: float = DEFAULT_STATE_TIMEOUT,
        max_context_messages: int = DEFAULT_MAX_CONTEXT_MESSAGES,
        recent_bot_messages: int = RECENT_BOT_MESSAGES,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store: StateStore[ConversationState] = store if store is not None else InMemoryStateStore()
        self.state_timeout = state_timeout
        self.max_context_messages = max_context_messages
        self.recent_bot_messages = recent_bot_messages
        self.clock = clock

    def now(self) -> float:
        return self.clock()

    def get_state(self, conversation_id: str) -> ConversationState:
        """Get the state for a conversation, creating or expiring it first."""
        now = self.now()
        state = self.store.get(conversation_id)
        if state is None:
            state = new_state(now)
            self.store.set(conversation_id, state)
            return state

        expired = now - state.last_update > self.state_timeout
        exhausted = state.turn_count >= self.max_context_messages
        if expired or exhausted:
            if state.awaiting_follow_up or state.turn_count:
                logger.debug(
                    f"Resetting state for {conversation_id} "
                    f"({'timeout' if expired else 'turn limit'}, turns={state.turn_count})"
                )
            state = on_timeout(state, now)
            self.store.set(conversation_id, state)
        return state

    def set_state(self, conversation_id: str, awaiting: bool, command: str | None = None) -> ConversationState:
        """Overwrite the follow-up flag (and command if given) and count the turn."""
        state = self.store.get(conversation_id) or new_state(self.now())
        state = on_message(state, awaiting, command, self.now())
        self.store.set(conversation_id, state)
        return state

    def reset(self, conversation_id: str) -> ConversationState:
        """Force the conversation back to IDLE, e.g. when a fresh trigger arrives."""
        state = self.store.get(conversation_id) or new_state(self.now())
        state = on_timeout(state, self.now())
        self.store.set(conversation_id, state)
        logger.debug(f"State reset for {conversation_id}")
        return state

    def record_bot_message(
        self,
        conversation_id: str,
        message_id: str,
        opens_window: bool = True,
    ) -> ConversationState:
        """
        Note that the bot just posted message_id into the conversation.

        Replies to it are recognised as replies to the bot. With ``opens_window``
        it also becomes the message the context window is measured from. The
        state timeout is not refreshed: only handled turns count as activity.
        """
        state = self.store.get(conversation_id) or new_state(self.now())
        state = on_bot_send(state, message_id, self.now(), opens_window, self.recent_bot_messages)
        self.store.set(conversation_id, state)
        return state
