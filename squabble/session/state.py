"""Per-conversation follow-up state and its transitions."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum


# How many of the bot's own message ids a conversation remembers for reply detection
RECENT_BOT_MESSAGES = 50


class ConversationPhase(str, Enum):
    IDLE = "idle"
    AWAITING_FOLLOW_UP = "awaiting_follow_up"


@dataclass(frozen=True)
class BotMessageRef:
    """The bot's most recent send into a conversation."""

    timestamp: float
    message_id: str


@dataclass(frozen=True)
class ConversationState:
    """
    Follow-up state of one conversation.

    Instances are immutable; the transition functions below return new ones.
    ``last_bot_message`` survives resets, it only ages out of the context window.
    ``recent_bot_messages`` holds the ids of the bot's latest sends, newest last,
    including ones that never open the context window (welcome, help hint).
    """

    phase: ConversationPhase = ConversationPhase.IDLE
    last_command: str = ""
    turn_count: int = 0
    last_update: float = 0.0
    last_bot_message: BotMessageRef | None = None
    recent_bot_messages: tuple[str, ...] = ()

    @property
    def awaiting_follow_up(self) -> bool:
        return self.phase is ConversationPhase.AWAITING_FOLLOW_UP


def new_state(now: float) -> ConversationState:
    return ConversationState(last_update=now)


def on_message(
    state: ConversationState,
    awaiting: bool,
    command: str | None,
    now: float,
) -> ConversationState:
    """Record a handled turn: set the phase, optionally the command, bump the counter."""
    return replace(
        state,
        phase=ConversationPhase.AWAITING_FOLLOW_UP if awaiting else ConversationPhase.IDLE,
        last_command=state.last_command if command is None else command,
        turn_count=state.turn_count + 1,
        last_update=max(state.last_update, now),
    )


def on_timeout(state: ConversationState, now: float) -> ConversationState:
    """Back to IDLE with a fresh counter."""
    return replace(
        state,
        phase=ConversationPhase.IDLE,
        last_command="",
        turn_count=0,
        last_update=max(state.last_update, now),
    )


def on_bot_send(
    state: ConversationState,
    message_id: str,
    now: float,
    opens_window: bool = True,
    limit: int = RECENT_BOT_MESSAGES,
) -> ConversationState:
    """
    Remember a message the bot posted. Does not touch the follow-up phase.

    Every send is remembered for reply detection; only sends with
    ``opens_window`` become ``last_bot_message`` and restart the context window.
    ``last_update`` is left alone: bot sends do not count as activity for the
    state timeout.
    """
    recent = tuple(m for m in state.recent_bot_messages if m != message_id) + (message_id,)
    state = replace(state, recent_bot_messages=recent[-limit:] if limit > 0 else ())
    if opens_window:
        state = replace(state, last_bot_message=BotMessageRef(timestamp=now, message_id=message_id))
    return state
