"""Provider factory to keep provider selection isolated from CLI logic."""

from __future__ import annotations

from loguru import logger

from squabble.config.schema import Config
from squabble.providers.litellm_provider import LiteLLMProvider


def create_provider(config: Config) -> LiteLLMProvider:
    """Create an LLM provider from config."""
    agent = config.agent
    if not agent.api_key and not agent.api_base:
        raise RuntimeError(
            "No API key configured. Set agent.apiKey in ~/.squabble/config.json "
            "or SQUABBLE_AGENT__API_KEY"
        )
    logger.debug(f"Using LiteLLM provider with model {agent.model}")
    return LiteLLMProvider(
        api_key=agent.api_key or None,
        api_base=agent.api_base,
        default_model=agent.model,
    )
