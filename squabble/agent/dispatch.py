"""Dispatch loop: the bridge between the transport streams and the agent."""

from __future__ import annotations

import asyncio
import json

from loguru import logger

from squabble.agent.context import OUT_OF_BAND_SENTINEL, AgentContext
from squabble.agent.runtime import AgentRuntime
from squabble.config.schema import MessagesConfig
from squabble.errors import ConversationNotFoundError
from squabble.session.manager import SessionManager
from squabble.transport.base import ConversationHandle, MessageEnvelope, Transport
from squabble.triggers.evaluator import TriggerEvaluator
from squabble.wallet.store import WalletStore


class TrackedConversation(ConversationHandle):
    """Conversation handle that records every send as the bot's latest message."""

    def __init__(self, inner: ConversationHandle, sessions: SessionManager):
        self._inner = inner
        self._sessions = sessions

    @property
    def id(self) -> str:
        return self._inner.id

    @property
    def is_group(self) -> bool:
        return self._inner.is_group

    async def send(self, text: str) -> str:
        message_id = await self._inner.send(text)
        self._sessions.record_bot_message(self._inner.id, str(message_id))
        return message_id


class Dispatcher:
    """
    Consumes the transport's message stream and answers admitted messages.

    Messages are handled one at a time in arrival order. A membership watcher
    runs beside the message loop and welcomes the bot into new groups.
    Help hints, apologies and welcomes are remembered for reply detection
    but do not open the context window.
    """

    def __init__(
        self,
        transport: Transport,
        agent: AgentRuntime,
        sessions: SessionManager | None = None,
        evaluator: TriggerEvaluator | None = None,
        wallets: WalletStore | None = None,
        messages: MessagesConfig | None = None,
        thread_scope: str = "sender",
        identity: str | None = None,
        welcome_enabled: bool = True,
        welcome_delay: float = 6.0,
    ):
        self.transport = transport
        self.agent = agent
        self.sessions = sessions or SessionManager()
        self.identity = (identity or transport.identity).lower()
        self.evaluator = evaluator or TriggerEvaluator(identity=self.identity)
        self.wallets = wallets
        self.messages = messages or MessagesConfig()
        self.thread_scope = thread_scope
        self.welcome_enabled = welcome_enabled
        self.welcome_delay = welcome_delay

        self._running = False
        self._watcher_task: asyncio.Task[None] | None = None
        self._welcome_tasks: set[asyncio.Task[None]] = set()
        # Grows by one id per group joined for the life of the process
        self._welcomed: set[str] = set()

    async def run(self) -> None:
        """Process the message stream until it ends or the task is cancelled."""
        self._running = True
        if self.welcome_enabled:
            self._watcher_task = asyncio.create_task(self._watch_memberships())
        logger.info("Dispatcher started")

        try:
            async for envelope in self.transport.stream_messages():
                if envelope is None:
                    continue
                await self.handle_message(envelope)
        finally:
            await self.stop()

    async def stop(self) -> None:
        """Stop the membership watcher and any pending welcome sends."""
        if not self._running:
            return
        self._running = False
        tasks = list(self._welcome_tasks)
        if self._watcher_task:
            tasks.append(self._watcher_task)
            self._watcher_task = None
        self._welcome_tasks.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Dispatcher stopped")

    def _thread_key(self, envelope: MessageEnvelope) -> str:
        if self.thread_scope == "conversation":
            return envelope.conversation_id
        return envelope.sender_id

    async def handle_message(self, envelope: MessageEnvelope) -> None:
        """Handle one inbound message. Never raises."""
        conversation: ConversationHandle | None = None
        try:
            sender = envelope.sender_id
            if sender.lower() == self.identity:
                return

            conversation = await self.transport.get_conversation(envelope.conversation_id)
            if conversation is None:
                raise ConversationNotFoundError(envelope.conversation_id)
            conversation_id = envelope.conversation_id

            state = self.sessions.get_state(conversation_id)
            decision = self.evaluator.evaluate(envelope, state, self.sessions.now())
            preview = decision.text[:80] + "..." if len(decision.text) > 80 else decision.text
            logger.debug(f"Message from {sender} in {conversation_id}: {preview!r} -> {decision.reason.value}")

            if not decision.respond:
                if decision.help_hint:
                    await self._send_fixed(conversation, self.messages.help_hint)
                    logger.info(f"Help hint sent to {conversation_id}")
                return

            if decision.fresh_trigger:
                logger.info(f"Fresh trigger in {conversation_id}, discarding pending follow-up")
                self.sessions.reset(conversation_id)

            tracked = TrackedConversation(conversation, self.sessions)
            text = decision.text

            if self.evaluator.is_start_command(envelope, text):
                await tracked.send(self.messages.bet_prompt)
                self.sessions.set_state(conversation_id, awaiting=True, command=text)
                logger.info(f"Asked {conversation_id} for a bet amount")
                return

            context = AgentContext(
                conversation=tracked,
                sender_id=sender,
                wallet_address=await self._resolve_wallet(sender),
            )
            response = await self.agent.run(self._thread_key(envelope), text, context)

            if OUT_OF_BAND_SENTINEL in response:
                logger.info(f"Response for {conversation_id} already delivered, resetting state")
                self.sessions.reset(conversation_id)
                return
            if not response.strip():
                logger.info(f"Agent returned nothing for {conversation_id}")
                return

            await tracked.send(response)
            self.sessions.set_state(conversation_id, awaiting=True, command=text)
            logger.info(f"Response sent to {sender} in {conversation_id}")
        except Exception as e:
            logger.error(f"Error handling message {envelope.id}: {e}")
            if conversation is not None:
                try:
                    await self._send_fixed(conversation, self.messages.apology)
                except Exception as send_error:
                    logger.error(f"Failed to send apology to {conversation.id}: {send_error}")

    async def _send_fixed(self, conversation: ConversationHandle, text: str) -> str:
        """Send a fixed text; replies to it reach the bot, but the context window stays shut."""
        message_id = await conversation.send(text)
        self.sessions.record_bot_message(conversation.id, str(message_id), opens_window=False)
        return message_id

    async def _resolve_wallet(self, sender_id: str) -> str | None:
        """Look up the sender's wallet address, persisting the first one seen."""
        address = await self.transport.resolve_wallet_address(sender_id)
        if self.wallets is None:
            return address

        stored = self.wallets.load(sender_id)
        if address:
            if stored is None:
                self.wallets.save(sender_id, json.dumps({"senderId": sender_id, "address": address}))
            return address
        if stored:
            try:
                return json.loads(stored).get("address")
            except (json.JSONDecodeError, AttributeError):
                logger.warning(f"Unreadable wallet record for {sender_id}")
        return None

    async def _watch_memberships(self) -> None:
        """Welcome the bot into every new group, once per conversation."""
        logger.info("Membership watcher started")
        try:
            async for conversation in self.transport.stream_membership_changes():
                if conversation is None or not conversation.is_group:
                    continue
                if conversation.id in self._welcomed:
                    continue
                self._welcomed.add(conversation.id)
                task = asyncio.create_task(self._send_welcome(conversation))
                self._welcome_tasks.add(task)
                task.add_done_callback(self._welcome_tasks.discard)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Membership watcher stopped: {e}")

    async def _send_welcome(self, conversation: ConversationHandle) -> None:
        await asyncio.sleep(self.welcome_delay)
        try:
            await self._send_fixed(conversation, self.messages.welcome)
            logger.info(f"Welcome message sent to new group {conversation.id}")
        except Exception as e:
            logger.error(f"Failed to send welcome message to {conversation.id}: {e}")
