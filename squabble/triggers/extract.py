"""Normalize inbound message envelopes into plain text."""

from __future__ import annotations

import json
import re
from typing import Any, Callable

from loguru import logger

from squabble.transport.base import MessageEnvelope

# Some clients only send a human-readable fallback for replies
_FALLBACK_PATTERN = re.compile(r'Replied with "(.*)" to an earlier message', re.DOTALL)

ReplyStrategy = Callable[[Any], "str | None"]


def _field(payload: Any, key: str) -> Any:
    if isinstance(payload, dict):
        return payload.get(key)
    return getattr(payload, key, None)


def _payload_field(key: str) -> ReplyStrategy:
    """Strategy reading a scalar ``key`` of the reply payload."""

    def strategy(payload: Any) -> str | None:
        value = _field(payload, key)
        if value is None or isinstance(value, (dict, list)):
            return None
        if not isinstance(value, (str, int, float)):
            return None
        return str(value) or None

    strategy.__name__ = f"from_{key}"
    return strategy


def from_fallback_pattern(payload: Any) -> str | None:
    fallback = _field(payload, "fallback")
    if not isinstance(fallback, str):
        return None
    match = _FALLBACK_PATTERN.search(fallback)
    return match.group(1) if match else None


def from_fallback(payload: Any) -> str | None:
    fallback = _field(payload, "fallback")
    if not isinstance(fallback, str) or not fallback:
        return None
    return fallback


def from_json(payload: Any) -> str | None:
    if payload is None:
        return None
    if isinstance(payload, str):
        return payload
    if not isinstance(payload, (dict, list)) and hasattr(payload, "__dict__"):
        payload = vars(payload)
    return json.dumps(payload, default=str)


from_content = _payload_field("content")
from_text = _payload_field("text")
from_message = _payload_field("message")

REPLY_STRATEGIES: tuple[ReplyStrategy, ...] = (
    from_content,
    from_text,
    from_message,
    from_fallback_pattern,
    from_fallback,
    from_json,
)


def extract_reply(payload: Any, strategies: tuple[ReplyStrategy, ...] = REPLY_STRATEGIES) -> str:
    """Try each strategy in order and return the first non-empty result."""
    for strategy in strategies:
        try:
            text = strategy(payload)
        except Exception as e:
            logger.debug(f"Reply strategy {strategy.__name__} failed: {e}")
            continue
        if text:
            return text
    return ""


def extract(envelope: MessageEnvelope) -> str:
    """
    Return the text of a message envelope.

    Plain messages yield their content as text; replies go through
    ``REPLY_STRATEGIES``. Never raises, worst case is an empty string.
    """
    try:
        if envelope.is_reply:
            return extract_reply(envelope.content)
        if envelope.content is None:
            return ""
        return str(envelope.content)
    except Exception as e:
        logger.debug(f"Could not extract content from message {getattr(envelope, 'id', '?')}: {e}")
        return ""
