"""In-memory transport for local sessions and tests."""

from __future__ import annotations

import asyncio
import uuid
from typing import TYPE_CHECKING, Any, AsyncIterator

from loguru import logger

from squabble.transport.base import (
    TEXT_CONTENT_TYPE,
    ConversationHandle,
    MessageEnvelope,
    Transport,
)

if TYPE_CHECKING:
    from squabble.config.schema import Config

LOCAL_BOT_IDENTITY = "squabble-local-bot"


class LocalConversation(ConversationHandle):
    """Conversation whose sends are recorded instead of delivered."""

    def __init__(self, conversation_id: str, is_group: bool = True):
        self._id = conversation_id
        self._is_group = is_group
        self.sent: list[tuple[str, str]] = []  # (message_id, text)

    @property
    def id(self) -> str:
        return self._id

    @property
    def is_group(self) -> bool:
        return self._is_group

    async def send(self, text: str) -> str:
        message_id = uuid.uuid4().hex[:12]
        self.sent.append((message_id, text))
        return message_id

    @property
    def texts(self) -> list[str]:
        return [text for _, text in self.sent]


class LocalTransport(Transport):
    """
    Queue-backed transport.

    Messages pushed with ``inject`` come out of ``stream_messages`` in order;
    ``close`` ends both streams.
    """

    _CLOSED = object()

    def __init__(
        self,
        identity: str = LOCAL_BOT_IDENTITY,
        wallets: dict[str, str] | None = None,
    ):
        self._identity = identity
        self.conversations: dict[str, LocalConversation] = {}
        self.wallets: dict[str, str] = dict(wallets or {})
        self._messages: asyncio.Queue[Any] = asyncio.Queue()
        self._memberships: asyncio.Queue[Any] = asyncio.Queue()

    @property
    def identity(self) -> str:
        return self._identity

    def add_conversation(self, conversation_id: str, is_group: bool = True) -> LocalConversation:
        conversation = self.conversations.get(conversation_id)
        if conversation is None:
            conversation = LocalConversation(conversation_id, is_group=is_group)
            self.conversations[conversation_id] = conversation
        return conversation

    def inject(
        self,
        conversation_id: str,
        sender_id: str,
        content: Any,
        content_type: str = TEXT_CONTENT_TYPE,
        message_id: str | None = None,
    ) -> MessageEnvelope:
        """Queue an inbound message; the conversation is created if needed."""
        self.add_conversation(conversation_id)
        envelope = MessageEnvelope(
            id=message_id or uuid.uuid4().hex[:12],
            conversation_id=conversation_id,
            sender_id=sender_id,
            content=content,
            content_type=content_type,
        )
        self._messages.put_nowait(envelope)
        return envelope

    def add_member_event(self, conversation_id: str, is_group: bool = True) -> LocalConversation:
        """Simulate the bot being added to a conversation."""
        conversation = self.add_conversation(conversation_id, is_group=is_group)
        self._memberships.put_nowait(conversation)
        return conversation

    async def stream_messages(self) -> AsyncIterator[MessageEnvelope]:
        while True:
            item = await self._messages.get()
            if item is self._CLOSED:
                return
            yield item

    async def stream_membership_changes(self) -> AsyncIterator[ConversationHandle]:
        while True:
            item = await self._memberships.get()
            if item is self._CLOSED:
                return
            yield item

    async def get_conversation(self, conversation_id: str) -> ConversationHandle | None:
        return self.conversations.get(conversation_id)

    async def resolve_wallet_address(self, sender_id: str) -> str | None:
        return self.wallets.get(sender_id)

    async def close(self) -> None:
        logger.debug("Closing local transport")
        self._messages.put_nowait(self._CLOSED)
        self._memberships.put_nowait(self._CLOSED)


def create_transport(config: "Config") -> LocalTransport:
    """Transport factory used when no network transport is configured."""
    return LocalTransport(identity=config.transport.identity or LOCAL_BOT_IDENTITY)
