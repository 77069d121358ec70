"""Agent runtime: the LLM tool loop behind every admitted message."""

from __future__ import annotations

import json
import re
from abc import ABC, abstractmethod
from contextvars import ContextVar
from typing import Any

from loguru import logger

from squabble.agent.context import (
    OUT_OF_BAND_SENTINEL,
    AgentContext,
    build_system_prompt,
    trim_history,
)
from squabble.agent.tools.message import SendMessageTool
from squabble.agent.tools.registry import ToolRegistry
from squabble.agent.tools.squabble import CreateGameTool, LeaderboardTool
from squabble.config.schema import SYSTEM_PROMPT, SquabbleServiceConfig
from squabble.errors import AgentError
from squabble.providers.base import LLMProvider
from squabble.session.store import InMemoryStateStore, StateStore


class AgentRuntime(ABC):
    """Anything that turns a message into a reply, remembering prior turns per thread key."""

    @abstractmethod
    async def run(self, thread_key: str, text: str, context: AgentContext | None = None) -> str:
        """
        Answer ``text`` within the memory thread ``thread_key``.

        Returns the reply text. A reply containing ``OUT_OF_BAND_SENTINEL``
        means the answer was already posted through a tool.
        """


class ToolAgentRuntime(AgentRuntime):
    """
    Runtime driving an LLMProvider through tool calls.

    It:
    1. Builds the prompt from the system prompt, thread history and the new message
    2. Calls the LLM
    3. Executes tool calls until the model answers in text
    4. Stores the turn in the thread's history
    """

    def __init__(
        self,
        provider: LLMProvider,
        model: str | None = None,
        system_prompt: str = SYSTEM_PROMPT,
        temperature: float = 0.7,
        max_tokens: int = 4096,
        max_iterations: int = 10,
        history_window: int = 40,
        memory: StateStore[list[dict[str, Any]]] | None = None,
        service: SquabbleServiceConfig | None = None,
    ):
        self.provider = provider
        self.model = model or provider.get_default_model()
        self.system_prompt = system_prompt
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.max_iterations = max_iterations
        self.history_window = history_window
        self.memory: StateStore[list[dict[str, Any]]] = memory if memory is not None else InMemoryStateStore()
        self.service = service
        self.tools = ToolRegistry()
        self._active_context: ContextVar[AgentContext | None] = ContextVar("active_context", default=None)
        self._register_default_tools()

    def _register_default_tools(self) -> None:
        self.tools.register(SendMessageTool(context_getter=self._active_context.get))
        if self.service and self.service.url:
            self.tools.register(CreateGameTool(self._active_context.get, self.service))
            self.tools.register(LeaderboardTool(self._active_context.get, self.service))

    @staticmethod
    def _strip_think(text: str | None) -> str | None:
        """Remove <think>…</think> blocks that some models embed in content."""
        if not text:
            return None
        return re.sub(r"<think>[\s\S]*?</think>", "", text).strip() or None

    async def _run_agent_loop(self, messages: list[dict[str, Any]]) -> tuple[str | None, list[str]]:
        """
        Run the agent iteration loop.

        Returns:
            Tuple of (final_content, list_of_tools_used).
        """
        iteration = 0
        final_content = None
        tools_used: list[str] = []

        while iteration < self.max_iterations:
            iteration += 1
            response = await self.provider.chat(
                messages=messages,
                tools=self.tools.get_definitions(),
                model=self.model,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
            if response.finish_reason == "error":
                raise AgentError(response.content or "LLM call failed")

            if response.has_tool_calls:
                messages.append({
                    "role": "assistant",
                    "content": response.content or "",
                    "tool_calls": [
                        {
                            "id": tc.id,
                            "type": "function",
                            "function": {"name": tc.name, "arguments": json.dumps(tc.arguments)},
                        }
                        for tc in response.tool_calls
                    ],
                })
                for tool_call in response.tool_calls:
                    tools_used.append(tool_call.name)
                    args_str = json.dumps(tool_call.arguments, ensure_ascii=False)
                    logger.info(f"Tool call: {tool_call.name}({args_str[:200]})")
                    result = await self.tools.execute(tool_call.name, tool_call.arguments)
                    messages.append({
                        "role": "tool",
                        "tool_call_id": tool_call.id,
                        "name": tool_call.name,
                        "content": result,
                    })
            else:
                final_content = self._strip_think(response.content)
                break

        if final_content is None and iteration >= self.max_iterations:
            logger.warning(f"Max iterations ({self.max_iterations}) reached")
        return final_content, tools_used

    async def run(self, thread_key: str, text: str, context: AgentContext | None = None) -> str:
        history = list(self.memory.get(thread_key) or [])
        messages: list[dict[str, Any]] = [
            {"role": "system", "content": build_system_prompt(self.system_prompt, context)},
            *history,
            {"role": "user", "content": text},
        ]
        logger.info(f"Processing message with agent for thread {thread_key}")

        token = self._active_context.set(context)
        try:
            final_content, tools_used = await self._run_agent_loop(messages)
        finally:
            self._active_context.reset(token)

        if final_content is None and not (context and context.delivered):
            final_content = "I've completed processing but have no response to give."

        history.append({"role": "user", "content": text})
        history.append({"role": "assistant", "content": final_content or ""})
        self.memory.set(thread_key, trim_history(history, self.history_window))

        if context is not None and context.delivered:
            logger.info(f"Agent delivered its answer directly (tools: {', '.join(tools_used)})")
            return f"{OUT_OF_BAND_SENTINEL}\n{final_content or ''}".strip()

        logger.info(f"Agent response generated ({len(final_content or '')} chars)")
        return (final_content or "").strip()
