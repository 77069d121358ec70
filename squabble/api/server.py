"""HTTP control endpoint for pushing messages into conversations."""

from __future__ import annotations

import hmac

from fastapi import FastAPI, Header
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from squabble.transport.base import Transport


# --- Pydantic models for request and response payloads ---


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SendMessageIn(_CamelModel):
    conversation_id: str | None = None
    message: str | None = None


class SendMessageOut(_CamelModel):
    success: bool
    message: str
    conversation_id: str
    sent_message: str


class HealthOut(BaseModel):
    status: str


def _error(status: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status, content={"error": message})


def _secret_matches(given: str | None, expected: str) -> bool:
    if not given:
        return False
    return hmac.compare_digest(given.encode("utf-8"), expected.encode("utf-8"))


def create_app(transport: Transport, secret: str) -> FastAPI:
    """
    Build the control API.

    Args:
        transport: Transport used to resolve conversations and send.
        secret: Expected value of the ``x-agent-secret`` header.

    Returns:
        FastAPI: The application.
    """
    app = FastAPI(title="Squabble Agent")

    @app.get("/health", response_model=HealthOut)
    async def health() -> HealthOut:
        return HealthOut(status="ok")

    @app.post("/api/send-message", response_model=SendMessageOut, response_model_by_alias=True)
    async def send_message(
        payload: SendMessageIn | None = None,
        x_agent_secret: str | None = Header(default=None),
    ) -> SendMessageOut | JSONResponse:
        """
        Send ``message`` into ``conversationId`` as the bot.

        Returns:
            SendMessageOut: Confirmation echoing the conversation and text.
            Errors come back as ``{"error": ...}`` with 400, 401, 404 or 500.
        """
        if not secret:
            return _error(500, "Server configuration error: api secret not set")
        if not _secret_matches(x_agent_secret, secret):
            return _error(401, "Unauthorized: Invalid or missing x-agent-secret header")

        payload = payload or SendMessageIn()
        if not payload.conversation_id or not payload.message:
            return _error(400, "conversationId and message are required")

        try:
            conversation = await transport.get_conversation(payload.conversation_id)
            if conversation is None:
                return _error(404, "Conversation not found")
            await conversation.send(payload.message)
        except Exception as e:
            logger.error(f"API error sending to {payload.conversation_id}: {e}")
            return _error(500, "Failed to send message")

        logger.info(f"API message sent to {payload.conversation_id}")
        return SendMessageOut(
            success=True,
            message="Message sent successfully",
            conversation_id=payload.conversation_id,
            sent_message=payload.message,
        )

    return app
