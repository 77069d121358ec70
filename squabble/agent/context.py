"""Per-call context handed to the agent runtime."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from squabble.transport.base import ConversationHandle

# Returned by the runtime when its tools already posted the answer into the conversation
OUT_OF_BAND_SENTINEL = "RESET_CONVERSATION_STATE"


@dataclass
class AgentContext:
    """Who is asking, and where answers can be posted directly."""

    conversation: ConversationHandle | None = None
    sender_id: str = ""
    wallet_address: str | None = None
    delivered: bool = False


def build_system_prompt(base_prompt: str, context: AgentContext | None) -> str:
    """Append what the agent should know about the current caller."""
    parts = [base_prompt.strip()]
    if context is not None:
        details: list[str] = []
        if context.sender_id:
            details.append(f"Sender id: {context.sender_id}")
        if context.wallet_address:
            details.append(f"Sender wallet address: {context.wallet_address}")
        if context.conversation is not None:
            details.append(f"Conversation id: {context.conversation.id}")
            details.append(
                "If you post something with the send_message tool, do not repeat it in your final answer."
            )
        if details:
            parts.append("## Current message\n" + "\n".join(details))
    return "\n\n".join(parts)


def trim_history(messages: list[dict[str, Any]], window: int) -> list[dict[str, Any]]:
    """Keep the last ``window`` messages, never starting on an orphaned tool result."""
    if window <= 0:
        return []
    trimmed = messages[-window:]
    while trimmed and trimmed[0].get("role") != "user":
        trimmed = trimmed[1:]
    return trimmed
