"""Tool for posting directly into the current conversation."""

from __future__ import annotations

from typing import Any, Callable

from squabble.agent.context import AgentContext
from squabble.agent.tools.base import Tool


class SendMessageTool(Tool):
    """Let the agent post a message before it finishes its answer."""

    def __init__(self, context_getter: Callable[[], AgentContext | None]):
        self._context_getter = context_getter

    @property
    def name(self) -> str:
        return "send_message"

    @property
    def description(self) -> str:
        return (
            "Post a message directly into the current group conversation. "
            "Use it for announcements such as a newly created game link. "
            "Anything sent this way is already visible to everyone."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "content": {
                    "type": "string",
                    "description": "The message text to post",
                },
            },
            "required": ["content"],
        }

    async def execute(self, content: str, **kwargs: Any) -> str:
        context = self._context_getter()
        if context is None or context.conversation is None:
            return "Error: No active conversation to send to"
        if not content.strip():
            return "Error: content is empty"
        message_id = await context.conversation.send(content)
        context.delivered = True
        return f"Message sent (id {message_id})"
