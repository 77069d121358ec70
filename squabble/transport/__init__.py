"""Messaging transport abstraction."""

from squabble.transport.base import ConversationHandle, MessageEnvelope, Transport, load_transport
from squabble.transport.local import LocalTransport

__all__ = ["ConversationHandle", "MessageEnvelope", "Transport", "LocalTransport", "load_transport"]
