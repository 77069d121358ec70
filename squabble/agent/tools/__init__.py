"""Agent tools."""

from squabble.agent.tools.base import Tool
from squabble.agent.tools.message import SendMessageTool
from squabble.agent.tools.registry import ToolRegistry
from squabble.agent.tools.squabble import CreateGameTool, LeaderboardTool

__all__ = ["Tool", "ToolRegistry", "SendMessageTool", "CreateGameTool", "LeaderboardTool"]
