import asyncio
import json

import pytest

from squabble.agent.context import OUT_OF_BAND_SENTINEL
from squabble.agent.dispatch import Dispatcher, TrackedConversation
from squabble.agent.runtime import AgentRuntime
from squabble.config.schema import MessagesConfig
from squabble.session.manager import SessionManager
from squabble.transport.base import MessageEnvelope
from squabble.transport.local import LocalConversation, LocalTransport
from squabble.triggers.evaluator import TriggerEvaluator
from squabble.wallet.store import InMemoryWalletStore

BOT = "bot-inbox"


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeAgent(AgentRuntime):
    def __init__(self, reply="agent reply", error: Exception | None = None):
        self.reply = reply
        self.error = error
        self.calls = []

    async def run(self, thread_key, text, context=None):
        self.calls.append((thread_key, text, context))
        if self.error:
            raise self.error
        if callable(self.reply):
            return await self.reply(thread_key, text, context)
        return self.reply


class FailingConversation(LocalConversation):
    async def send(self, text: str) -> str:
        raise RuntimeError("network down")


def _setup(agent=None, clock=None, **kwargs):
    clock = clock or FakeClock()
    transport = LocalTransport(identity=BOT, wallets={"alice": "0xA11CE"})
    conversation = transport.add_conversation("c1")
    sessions = SessionManager(clock=clock)
    dispatcher = Dispatcher(
        transport=transport,
        agent=agent or FakeAgent(),
        sessions=sessions,
        evaluator=TriggerEvaluator(identity=BOT),
        wallets=kwargs.pop("wallets", InMemoryWalletStore()),
        welcome_enabled=kwargs.pop("welcome_enabled", False),
        welcome_delay=kwargs.pop("welcome_delay", 0),
        **kwargs,
    )
    return dispatcher, transport, conversation, clock


def _msg(text, sender="alice", conversation_id="c1"):
    return MessageEnvelope(id="m", conversation_id=conversation_id, sender_id=sender, content=text)


@pytest.mark.asyncio
async def test_start_command_asks_for_bet_then_follow_up_reaches_agent():
    agent = FakeAgent(reply="Game created with no bet")
    dispatcher, _, conversation, clock = _setup(agent)

    await dispatcher.handle_message(_msg("@squabble start"))

    assert conversation.texts == [MessagesConfig().bet_prompt]
    assert agent.calls == []
    state = dispatcher.sessions.get_state("c1")
    assert state.awaiting_follow_up is True
    assert state.last_command == "@squabble start"

    clock.advance(30)
    await dispatcher.handle_message(_msg("no bet", sender="bob"))

    assert [text for _, text, _ in agent.calls] == ["no bet"]
    assert conversation.texts[-1] == "Game created with no bet"


@pytest.mark.asyncio
async def test_context_window_admits_plain_message_after_bot_send():
    agent = FakeAgent()
    dispatcher, _, conversation, clock = _setup(agent)
    dispatcher.sessions.record_bot_message("c1", "bot-msg-1")

    clock.advance(60)
    await dispatcher.handle_message(_msg("what are the rules?"))

    assert [text for _, text, _ in agent.calls] == ["what are the rules?"]
    assert conversation.texts == ["agent reply"]


@pytest.mark.asyncio
async def test_plain_message_outside_context_window_is_ignored():
    agent = FakeAgent()
    dispatcher, _, conversation, clock = _setup(agent)
    dispatcher.sessions.record_bot_message("c1", "bot-msg-1")

    clock.advance(400)
    await dispatcher.handle_message(_msg("what are the rules?"))

    assert agent.calls == []
    assert conversation.texts == []


@pytest.mark.asyncio
async def test_self_authored_message_is_skipped_without_state():
    agent = FakeAgent()
    dispatcher, _, conversation, _ = _setup(agent)

    await dispatcher.handle_message(_msg("@squabble start", sender=BOT.upper()))

    assert agent.calls == []
    assert conversation.texts == []
    assert dispatcher.sessions.store.get("c1") is None


@pytest.mark.asyncio
async def test_agent_response_enters_awaiting_and_opens_context_window():
    dispatcher, _, conversation, clock = _setup()

    await dispatcher.handle_message(_msg("@squabble leaderboard"))

    state = dispatcher.sessions.get_state("c1")
    assert conversation.texts == ["agent reply"]
    assert state.awaiting_follow_up is True
    assert state.last_command == "@squabble leaderboard"
    assert state.last_bot_message is not None
    assert state.last_bot_message.message_id == conversation.sent[-1][0]
    assert state.last_bot_message.timestamp == clock.now


@pytest.mark.asyncio
async def test_help_hint_is_sent_without_opening_context_window():
    agent = FakeAgent()
    dispatcher, _, conversation, _ = _setup(agent)

    await dispatcher.handle_message(_msg("/help"))

    assert agent.calls == []
    assert conversation.texts == [MessagesConfig().help_hint]
    assert dispatcher.sessions.get_state("c1").last_bot_message is None


@pytest.mark.asyncio
async def test_out_of_band_response_is_suppressed_and_resets_state():
    async def reply(thread_key, text, context):
        await context.conversation.send("Game link: https://example.test/g/1")
        return f"{OUT_OF_BAND_SENTINEL}\nGame created"

    dispatcher, _, conversation, _ = _setup(FakeAgent(reply=reply))
    dispatcher.sessions.set_state("c1", awaiting=True, command="@squabble start")

    await dispatcher.handle_message(_msg("5 usdc"))

    assert conversation.texts == ["Game link: https://example.test/g/1"]
    state = dispatcher.sessions.get_state("c1")
    assert state.awaiting_follow_up is False
    assert state.turn_count == 0
    # Sends made by tools still count as bot messages
    assert state.last_bot_message is not None


@pytest.mark.asyncio
async def test_agent_failure_sends_generic_apology():
    agent = FakeAgent(error=RuntimeError("secret internal detail"))
    dispatcher, _, conversation, _ = _setup(agent)

    await dispatcher.handle_message(_msg("@squabble leaderboard"))

    assert conversation.texts == [MessagesConfig().apology]
    assert "secret internal detail" not in conversation.texts[0]


@pytest.mark.asyncio
async def test_unknown_conversation_is_reported_and_skipped():
    agent = FakeAgent()
    dispatcher, transport, conversation, _ = _setup(agent)

    await dispatcher.handle_message(_msg("@squabble hi", conversation_id="missing"))

    assert agent.calls == []
    assert conversation.texts == []
    assert "missing" not in transport.conversations


@pytest.mark.asyncio
async def test_failing_apology_does_not_raise():
    dispatcher, transport, _, _ = _setup(FakeAgent(error=RuntimeError("boom")))
    transport.conversations["c1"] = FailingConversation("c1")

    await dispatcher.handle_message(_msg("@squabble hi"))


@pytest.mark.asyncio
async def test_fresh_trigger_resets_pending_follow_up():
    agent = FakeAgent()
    dispatcher, _, conversation, _ = _setup(agent)
    for _ in range(3):
        dispatcher.sessions.set_state("c1", awaiting=True, command="old")

    await dispatcher.handle_message(_msg("@squabble start"))

    state = dispatcher.sessions.get_state("c1")
    assert conversation.texts == [MessagesConfig().bet_prompt]
    assert state.turn_count == 1
    assert state.last_command == "@squabble start"


@pytest.mark.asyncio
async def test_wallet_address_is_resolved_persisted_and_passed_to_agent():
    wallets = InMemoryWalletStore()
    agent = FakeAgent()
    dispatcher, _, _, _ = _setup(agent, wallets=wallets)

    await dispatcher.handle_message(_msg("@squabble my wallet?"))

    thread_key, _, context = agent.calls[0]
    assert thread_key == "alice"
    assert context.wallet_address == "0xA11CE"
    assert context.sender_id == "alice"
    assert json.loads(wallets.load("alice"))["address"] == "0xA11CE"


@pytest.mark.asyncio
async def test_stored_wallet_is_used_when_transport_cannot_resolve():
    wallets = InMemoryWalletStore()
    wallets.save("dave", json.dumps({"senderId": "dave", "address": "0xDA7E"}))
    agent = FakeAgent()
    dispatcher, _, _, _ = _setup(agent, wallets=wallets)

    await dispatcher.handle_message(_msg("@squabble hi", sender="dave"))

    assert agent.calls[0][2].wallet_address == "0xDA7E"


@pytest.mark.asyncio
async def test_conversation_thread_scope_uses_conversation_id():
    agent = FakeAgent()
    dispatcher, _, _, _ = _setup(agent, thread_scope="conversation")

    await dispatcher.handle_message(_msg("@squabble hi"))

    assert agent.calls[0][0] == "c1"


@pytest.mark.asyncio
async def test_tracked_conversation_records_bot_message():
    clock = FakeClock()
    sessions = SessionManager(clock=clock)
    inner = LocalConversation("c9")
    tracked = TrackedConversation(inner, sessions)

    message_id = await tracked.send("hello")

    assert inner.texts == ["hello"]
    assert sessions.get_state("c9").last_bot_message.message_id == message_id


@pytest.mark.asyncio
async def test_run_processes_stream_in_order_until_closed():
    seen = []

    async def reply(thread_key, text, context):
        seen.append(text)
        return f"re: {text}"

    dispatcher, transport, conversation, _ = _setup(FakeAgent(reply=reply), welcome_enabled=True)
    transport.inject("c1", "alice", "@squabble one")
    transport.inject("c1", BOT, "ignored self message")
    transport.inject("c1", "bob", "two")
    await transport.close()

    await asyncio.wait_for(dispatcher.run(), timeout=2)

    assert seen == ["@squabble one", "two"]
    assert conversation.texts == ["re: @squabble one", "re: two"]


@pytest.mark.asyncio
async def test_welcome_is_sent_once_per_new_group():
    dispatcher, transport, _, _ = _setup(welcome_enabled=True)
    group = transport.add_member_event("g1")
    transport.add_member_event("g1")
    direct = transport.add_member_event("dm1", is_group=False)
    await transport.close()

    await dispatcher._watch_memberships()
    await asyncio.gather(*list(dispatcher._welcome_tasks))

    assert group.texts == [MessagesConfig().welcome]
    assert direct.texts == []
    # Welcome messages do not open the context window, but replies to them reach the bot
    state = dispatcher.sessions.get_state("g1")
    assert state.last_bot_message is None
    assert state.recent_bot_messages == (group.sent[0][0],)


@pytest.mark.asyncio
async def test_failed_welcome_is_logged_not_raised():
    dispatcher, transport, _, _ = _setup(welcome_enabled=True)
    failing = FailingConversation("g2", is_group=True)
    transport.conversations["g2"] = failing
    transport._memberships.put_nowait(failing)
    await transport.close()

    await dispatcher._watch_memberships()
    results = await asyncio.gather(*list(dispatcher._welcome_tasks), return_exceptions=True)

    assert all(r is None for r in results)


@pytest.mark.asyncio
async def test_reply_to_help_hint_reaches_agent_after_window():
    agent = FakeAgent()
    dispatcher, _, conversation, clock = _setup(agent)
    await dispatcher.handle_message(_msg("/help"))
    hint_id = conversation.sent[0][0]

    clock.advance(400)
    reply = MessageEnvelope(
        id="r1",
        conversation_id="c1",
        sender_id="alice",
        content={"content": "how do I start a game?", "reference": hint_id},
        content_type="reply",
    )
    await dispatcher.handle_message(reply)

    assert [text for _, text, _ in agent.calls] == ["how do I start a game?"]
    assert conversation.texts[-1] == "agent reply"
