"""Decide whether an inbound message is addressed to the bot."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from loguru import logger

from squabble.session.state import ConversationState
from squabble.transport.base import MessageEnvelope
from squabble.triggers.extract import extract

DEFAULT_TRIGGERS = ("@squabble", "@squabble.base.eth")
DEFAULT_HELP_MENTIONS = ("/bot", "/agent", "/ai", "/help")
DEFAULT_CONTEXT_WINDOW = 300.0


class TriggerReason(str, Enum):
    EMPTY = "empty"
    REPLY_TO_BOT = "reply_to_bot"
    FOLLOW_UP = "follow_up"
    CONTEXT_WINDOW = "context_window"
    KEYWORD = "keyword"
    NONE = "none"


@dataclass(frozen=True)
class TriggerDecision:
    """
    Verdict for one message.

    ``text`` is the extracted message text, unmodified. ``fresh_trigger`` is set
    when the text carries a trigger keyword while the conversation was awaiting
    a follow-up; the caller resets the state before acting on it.
    """

    respond: bool
    text: str
    reason: TriggerReason
    fresh_trigger: bool = False
    help_hint: bool = False


class TriggerEvaluator:
    """
    Combines trigger keywords, reply-to-bot, follow-up state and the
    post-send context window into a single respond/ignore verdict.

    First match wins:
      1. empty non-reply text -> ignore
      2. reply to one of the bot's messages -> respond
      3. awaiting a follow-up, no fresh keyword -> respond
      4. bot spoke within the context window, no fresh keyword -> respond
      5. trigger keyword -> respond
      6. ignore (with a help hint if a bot mention was used)

    A reply to the bot that also carries a keyword while the conversation
    was awaiting a follow-up still responds through step 2, and is flagged
    ``fresh_trigger`` so the caller resets the stale state first.
    """

    def __init__(
        self,
        identity: str,
        triggers: Iterable[str] = DEFAULT_TRIGGERS,
        help_mentions: Iterable[str] = DEFAULT_HELP_MENTIONS,
        context_window: float = DEFAULT_CONTEXT_WINDOW,
        replies_always_trigger: bool = False,
        start_word: str = "start",
        bet_word: str = "bet",
    ):
        self.identity = identity.lower()
        self.triggers = [t.strip().lower() for t in triggers if t and t.strip()]
        self.help_mentions = [m.strip().lower() for m in help_mentions if m and m.strip()]
        self.context_window = context_window
        self.replies_always_trigger = replies_always_trigger
        self.start_word = start_word.lower()
        self.bet_word = bet_word.lower()

    def has_trigger(self, text: str) -> bool:
        lowered = text.lower().strip()
        return any(trigger in lowered for trigger in self.triggers)

    def wants_help(self, text: str) -> bool:
        """A bot mention like '/help' without any real trigger keyword."""
        lowered = text.lower().strip()
        return any(m in lowered for m in self.help_mentions) and not self.has_trigger(lowered)

    def is_start_command(self, envelope: MessageEnvelope, text: str) -> bool:
        """'<trigger> start' in a non-reply message that does not mention a bet yet."""
        if envelope.is_reply:
            return False
        lowered = text.lower()
        if self.bet_word and self.bet_word in lowered:
            return False
        return any(f"{trigger} {self.start_word}" in lowered for trigger in self.triggers)

    def is_reply_to_bot(self, envelope: MessageEnvelope, state: ConversationState) -> bool:
        """Replies naming the bot as author, or referencing any message it remembers sending."""
        if not envelope.is_reply:
            return False
        if self.replies_always_trigger:
            return True
        ref_sender = envelope.reply_reference_sender
        if isinstance(ref_sender, str) and ref_sender.lower() == self.identity:
            return True
        reference = envelope.reply_reference
        if not reference:
            return False
        if reference in state.recent_bot_messages:
            return True
        last = state.last_bot_message
        return last is not None and reference == last.message_id

    def within_context_window(self, state: ConversationState, now: float) -> bool:
        """True if the bot spoke in this conversation less than ``context_window`` ago."""
        last = state.last_bot_message
        if last is None:
            return False
        return now - last.timestamp <= self.context_window

    def evaluate(self, envelope: MessageEnvelope, state: ConversationState, now: float) -> TriggerDecision:
        text = extract(envelope)
        if not text.strip() and not envelope.is_reply:
            return TriggerDecision(respond=False, text="", reason=TriggerReason.EMPTY)

        keyword = self.has_trigger(text)
        fresh = keyword and state.awaiting_follow_up

        if self.is_reply_to_bot(envelope, state):
            logger.debug(f"Reply to bot in {envelope.conversation_id}: {text!r}")
            return TriggerDecision(True, text, TriggerReason.REPLY_TO_BOT, fresh_trigger=fresh)

        if state.awaiting_follow_up and not keyword:
            logger.debug(f"Follow-up in {envelope.conversation_id}: {text!r}")
            return TriggerDecision(True, text, TriggerReason.FOLLOW_UP)

        if not keyword and self.within_context_window(state, now):
            logger.debug(f"Within context window in {envelope.conversation_id}: {text!r}")
            return TriggerDecision(True, text, TriggerReason.CONTEXT_WINDOW)

        if keyword:
            logger.debug(f"Trigger keyword in {envelope.conversation_id}: {text!r}")
            return TriggerDecision(True, text, TriggerReason.KEYWORD, fresh_trigger=fresh)

        return TriggerDecision(False, text, TriggerReason.NONE, help_hint=self.wants_help(text))

    def should_respond(self, envelope: MessageEnvelope, state: ConversationState, now: float) -> tuple[bool, str]:
        decision = self.evaluate(envelope, state, now)
        return decision.respond, decision.text
