"""Agent core module."""

from squabble.agent.context import OUT_OF_BAND_SENTINEL, AgentContext
from squabble.agent.dispatch import Dispatcher
from squabble.agent.runtime import AgentRuntime, ToolAgentRuntime

__all__ = ["Dispatcher", "AgentRuntime", "ToolAgentRuntime", "AgentContext", "OUT_OF_BAND_SENTINEL"]
