"""LLM provider abstraction module."""

from squabble.providers.base import LLMProvider, LLMResponse, ToolCallRequest
from squabble.providers.factory import create_provider
from squabble.providers.litellm_provider import LiteLLMProvider

__all__ = ["LLMProvider", "LLMResponse", "ToolCallRequest", "LiteLLMProvider", "create_provider"]
