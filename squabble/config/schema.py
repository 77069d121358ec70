"""Configuration schema using Pydantic."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from pydantic_settings import BaseSettings, SettingsConfigDict

from squabble.errors import ConfigError


WELCOME_TEXT = """Squabble is a fast-paced, social word game designed for friend group chats on XMTP.

In each match, 2 to 6 players compete on the same randomized letter grid in real-time, racing against the clock to place or create as many words as possible on the grid.

The twist? Everyone plays simultaneously on the same board, making every round a shared, high-stakes vocabulary duel.

The group chat has a leaderboard considering all the matches made on Squabble on that group chat. Use @squabble.base.eth or just @squabble to invoke the squabble agent!"""

SYSTEM_PROMPT = (
    "You are a helpful game assistant for Squabble. Keep responses concise and engaging.\n"
    "Squabble is a fast-paced, social word game designed for private friend groups on XMTP "
    "like the Coinbase Wallet.\n"
    "In each match of 2 to 5 minutes, 2 to 6 players compete on the same randomized letter "
    "grid in real-time, racing against the clock to place or create as many words as possible "
    "on the grid.\n"
    "The twist? Everyone plays simultaneously on the same board, making every round a shared, "
    "high-stakes vocabulary duel.\n"
    "The group chat has a leaderboard considering all the matches made on Squabble on that "
    "group chat."
)


class Base(BaseModel):
    """Base model that accepts both camelCase and snake_case keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TriggersConfig(Base):
    """When the bot treats a message as addressed to it."""

    keywords: list[str] = Field(default_factory=lambda: ["@squabble", "@squabble.base.eth"])
    help_mentions: list[str] = Field(default_factory=lambda: ["/bot", "/agent", "/ai", "/help"])
    start_word: str = "start"
    bet_word: str = "bet"
    replies_always_trigger: bool = False  # Treat every threaded reply as a reply to the bot


class SessionConfig(Base):
    """Per-conversation follow-up state."""

    state_timeout: float = Field(default=60.0, gt=0)  # seconds
    max_context_messages: int = Field(default=5, ge=1)
    context_window: float = Field(default=300.0, ge=0)  # seconds after the bot's last send
    recent_bot_messages: int = Field(default=50, ge=1)  # own message ids kept for reply detection


class AgentConfig(Base):
    """LLM agent settings."""

    model: str = "openai/gpt-4o-mini"
    api_key: str = ""
    api_base: str | None = None
    temperature: float = 0.7
    max_tokens: int = 4096
    max_iterations: int = 10
    history_window: int = 40
    thread_scope: Literal["sender", "conversation"] = "sender"
    system_prompt: str = SYSTEM_PROMPT


class TransportConfig(Base):
    """Messaging transport settings."""

    factory: str = "squabble.transport.local:create_transport"
    env: str = "dev"
    identity: str = ""  # Overrides the identity reported by the transport
    welcome_enabled: bool = True
    welcome_delay: float = Field(default=6.0, ge=0)


class WalletConfig(Base):
    """Wallet record persistence."""

    storage_dir: str = "~/.squabble/wallet"


class ApiConfig(Base):
    """HTTP control endpoint."""

    enabled: bool = True
    host: str = "0.0.0.0"
    port: int = 8080
    secret: str = ""


class SquabbleServiceConfig(Base):
    """Squabble game service the agent's game tools talk to."""

    url: str = ""  # e.g. https://squabble.lol
    agent_secret: str = ""  # Sent as x-agent-secret on every service call
    timeout: float = Field(default=15.0, gt=0)  # seconds


class MessagesConfig(Base):
    """Fixed texts the bot sends without consulting the agent."""

    welcome: str = WELCOME_TEXT
    help_hint: str = (
        "👋 Hi! I'm the Squabble game agent. You asked for help! "
        "Try to invoke the agent with @squabble.base.eth or just @squabble\n"
    )
    bet_prompt: str = (
        "🎮 How much would you like to bet for this game? "
        "You can enter an amount or say 'no bet' if you prefer."
    )
    apology: str = "I encountered an error while processing your request. Please try again later."


class Config(BaseSettings):
    """Root configuration for squabble."""

    triggers: TriggersConfig = Field(default_factory=TriggersConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
    agent: AgentConfig = Field(default_factory=AgentConfig)
    transport: TransportConfig = Field(default_factory=TransportConfig)
    wallet: WalletConfig = Field(default_factory=WalletConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)
    squabble: SquabbleServiceConfig = Field(default_factory=SquabbleServiceConfig)
    messages: MessagesConfig = Field(default_factory=MessagesConfig)

    model_config = SettingsConfigDict(
        env_prefix="SQUABBLE_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    def missing_required(self) -> list[str]:
        """Return the dotted names of required values that are unset."""
        missing: list[str] = []
        if not self.agent.api_key:
            missing.append("agent.apiKey")
        if self.api.enabled and not self.api.secret:
            missing.append("api.secret")
        if not self.squabble.url:
            missing.append("squabble.url")
        if not self.squabble.agent_secret:
            missing.append("squabble.agentSecret")
        return missing

    def validate_required(self) -> None:
        """Raise ConfigError when a value needed to start the bot is missing."""
        missing = self.missing_required()
        if missing:
            raise ConfigError(missing)
