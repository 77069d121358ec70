"""Tools that talk to the Squabble game service."""

from __future__ import annotations

import json
from typing import Any, Callable

import httpx
from loguru import logger

from squabble.agent.context import OUT_OF_BAND_SENTINEL, AgentContext
from squabble.agent.tools.base import Tool
from squabble.config.schema import SquabbleServiceConfig

_NO_BET = {"", "0", "none", "no", "no bet"}


class _ServiceTool(Tool):
    """Shared plumbing: the active context and authenticated service calls."""

    def __init__(self, context_getter: Callable[[], AgentContext | None], service: SquabbleServiceConfig):
        self._context_getter = context_getter
        self.base_url = service.url.rstrip("/")
        self.agent_secret = service.agent_secret
        self.timeout = service.timeout

    def _headers(self) -> dict[str, str]:
        return {"x-agent-secret": self.agent_secret, "Content-Type": "application/json"}


class CreateGameTool(_ServiceTool):
    """Create a game for the current group and post its link there."""

    @property
    def name(self) -> str:
        return "create_game"

    @property
    def description(self) -> str:
        return (
            "Create a new Squabble game for this group chat and post the join link "
            "to the group. Ask for the bet amount first if the user has not given one."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "bet_amount": {
                    "type": "string",
                    "description": "Bet per player with its token, e.g. '5 USDC'. Use 'no bet' for a free game.",
                },
            },
        }

    async def execute(self, bet_amount: str = "", **kwargs: Any) -> str:
        context = self._context_getter()
        if context is None or context.conversation is None:
            return "Error: No active conversation to create a game in"

        bet = bet_amount.strip()
        has_bet = bet.lower() not in _NO_BET
        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    f"{self.base_url}/api/agent/create-game",
                    headers=self._headers(),
                    json={
                        "conversationId": context.conversation.id,
                        "creatorInboxId": context.sender_id,
                        "creatorAddress": context.wallet_address,
                        "betAmount": bet if has_bet else "0",
                    },
                    timeout=self.timeout,
                )
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Squabble create-game failed for {context.conversation.id}: {e}")
            return f"Error: could not create the game ({e})"

        game_id = data.get("gameId") if isinstance(data, dict) else None
        if not game_id:
            logger.error(f"Squabble create-game returned no game id: {data!r}")
            return "Error: the game service did not return a game id"
        game_url = data.get("gameUrl") or f"{self.base_url}/games/{game_id}"

        stake = f"Bet: {bet}" if has_bet else "No bet, just glory"
        await context.conversation.send(f"🎮 New Squabble game created! {stake}.\n\nJoin here: {game_url}")
        context.delivered = True
        logger.info(f"Game {game_id} created in {context.conversation.id}")
        return (
            f"Game {game_id} created and its link was posted to the group. "
            f"Do not repeat the link; answer with {OUT_OF_BAND_SENTINEL}."
        )


class LeaderboardTool(_ServiceTool):
    """Fetch the group's leaderboard for the model to summarise."""

    max_chars = 4000

    @property
    def name(self) -> str:
        return "get_leaderboard"

    @property
    def description(self) -> str:
        return "Get the Squabble leaderboard of this group chat, across all of its matches."

    @property
    def parameters(self) -> dict[str, Any]:
        return {"type": "object", "properties": {}}

    async def execute(self, **kwargs: Any) -> str:
        context = self._context_getter()
        if context is None or context.conversation is None:
            return "Error: No active conversation to look up"

        try:
            async with httpx.AsyncClient() as client:
                response = await client.get(
                    f"{self.base_url}/api/agent/leaderboard",
                    headers=self._headers(),
                    params={"conversationId": context.conversation.id},
                    timeout=self.timeout,
                )
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Squabble leaderboard failed for {context.conversation.id}: {e}")
            return f"Error: could not fetch the leaderboard ({e})"

        text = json.dumps(data, ensure_ascii=False)
        if len(text) > self.max_chars:
            text = text[: self.max_chars] + "... (truncated)"
        return text
