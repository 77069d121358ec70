"""Transport interface: message envelopes, conversation handles and the client."""

from __future__ import annotations

import importlib
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, AsyncIterator

if TYPE_CHECKING:
    from squabble.config.schema import Config

REPLY_CONTENT_TYPE = "reply"
TEXT_CONTENT_TYPE = "text"


@dataclass
class MessageEnvelope:
    """One inbound message as delivered by the transport's combined stream."""

    id: str
    conversation_id: str
    sender_id: str
    content: Any = None
    content_type: str = TEXT_CONTENT_TYPE
    sent_at: datetime = field(default_factory=datetime.now)

    @property
    def is_reply(self) -> bool:
        return self.content_type == REPLY_CONTENT_TYPE

    @property
    def reply_reference(self) -> str | None:
        """Id of the message this reply points at, if the payload carries one."""
        return _read(self.content, "reference") if self.is_reply else None

    @property
    def reply_reference_sender(self) -> str | None:
        """Sender of the referenced message, when the transport resolved it."""
        if not self.is_reply:
            return None
        return _read(self.content, "reference_inbox_id") or _read(self.content, "referenceInboxId")


def _read(payload: Any, key: str) -> Any:
    """Read key from a dict or attribute object, None when absent."""
    if payload is None:
        return None
    if isinstance(payload, dict):
        return payload.get(key)
    return getattr(payload, key, None)


class ConversationHandle(ABC):
    """A resolved conversation the bot can post into."""

    @property
    @abstractmethod
    def id(self) -> str:
        """Conversation identifier."""

    @property
    def is_group(self) -> bool:
        return False

    @abstractmethod
    async def send(self, text: str) -> str:
        """
        Send a text message into the conversation.

        Returns:
            The transport-assigned id of the sent message.
        """


class Transport(ABC):
    """
    Messaging network client as seen by the bot.

    Implementations own connection, sync and reconnect; the bot only consumes
    the two streams and sends through conversation handles.
    """

    @property
    @abstractmethod
    def identity(self) -> str:
        """The bot's own sender identifier on this network."""

    @abstractmethod
    def stream_messages(self) -> AsyncIterator[MessageEnvelope]:
        """Combined stream of messages across every conversation."""

    @abstractmethod
    def stream_membership_changes(self) -> AsyncIterator[ConversationHandle]:
        """Conversations the bot has just been added to."""

    @abstractmethod
    async def get_conversation(self, conversation_id: str) -> ConversationHandle | None:
        """Resolve a conversation id, None when unknown."""

    async def resolve_wallet_address(self, sender_id: str) -> str | None:
        """Map a sender identifier to its wallet address, if the network knows one."""
        return None

    async def close(self) -> None:
        """Release transport resources."""


def load_transport(factory_path: str, config: "Config") -> Transport:
    """
    Build a transport from a ``module:callable`` factory path.

    The callable receives the root config and returns a Transport.
    """
    module_name, _, attr = factory_path.partition(":")
    if not module_name or not attr:
        raise ValueError(f"Transport factory must look like 'module:callable', got {factory_path!r}")
    module = importlib.import_module(module_name)
    factory = getattr(module, attr)
    transport = factory(config)
    if not isinstance(transport, Transport):
        raise TypeError(f"{factory_path} returned {type(transport).__name__}, expected a Transport")
    return transport
