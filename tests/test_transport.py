import pytest

from squabble.config.schema import Config
from squabble.transport.base import MessageEnvelope, load_transport
from squabble.transport.local import LOCAL_BOT_IDENTITY, LocalTransport


def test_envelope_reply_helpers():
    reply = MessageEnvelope(
        id="m1",
        conversation_id="c1",
        sender_id="alice",
        content={"content": "hi", "reference": "bot-1", "referenceInboxId": "BOT"},
        content_type="reply",
    )
    plain = MessageEnvelope(id="m2", conversation_id="c1", sender_id="alice", content="hi")

    assert reply.is_reply is True
    assert reply.reply_reference == "bot-1"
    assert reply.reply_reference_sender == "BOT"
    assert plain.reply_reference is None
    assert plain.reply_reference_sender is None


@pytest.mark.asyncio
async def test_local_transport_streams_in_order_and_closes():
    transport = LocalTransport()
    transport.inject("c1", "alice", "one")
    transport.inject("c2", "bob", "two")
    await transport.close()

    received = [(m.conversation_id, m.content) async for m in transport.stream_messages()]

    assert received == [("c1", "one"), ("c2", "two")]
    assert await transport.get_conversation("c2") is transport.conversations["c2"]
    assert await transport.get_conversation("c3") is None


@pytest.mark.asyncio
async def test_local_conversation_records_sends():
    transport = LocalTransport(wallets={"alice": "0x1"})
    conversation = transport.add_conversation("c1")

    message_id = await conversation.send("hello")

    assert conversation.sent == [(message_id, "hello")]
    assert await transport.resolve_wallet_address("alice") == "0x1"
    assert await transport.resolve_wallet_address("bob") is None


def test_load_transport_uses_factory_path():
    cfg = Config()
    transport = load_transport("squabble.transport.local:create_transport", cfg)
    assert isinstance(transport, LocalTransport)
    assert transport.identity == LOCAL_BOT_IDENTITY

    cfg.transport.identity = "custom-bot"
    assert load_transport(cfg.transport.factory, cfg).identity == "custom-bot"


@pytest.mark.parametrize("path", ["squabble.transport.local", "squabble.errors:AgentError"])
def test_load_transport_rejects_bad_factories(path):
    with pytest.raises((ValueError, TypeError)):
        load_transport(path, Config())
