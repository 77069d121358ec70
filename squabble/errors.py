"""Exception types shared across the bot."""


class SquabbleError(Exception):
    """Base class for errors raised by squabble."""


class ConfigError(SquabbleError):
    """A required configuration value is missing or invalid."""

    def __init__(self, missing: list[str]):
        self.missing = list(missing)
        super().__init__(f"Missing required configuration: {', '.join(self.missing)}")


class ConversationNotFoundError(SquabbleError):
    """The transport could not resolve a conversation id."""

    def __init__(self, conversation_id: str):
        self.conversation_id = conversation_id
        super().__init__(f"Could not find conversation for ID: {conversation_id}")


class AgentError(SquabbleError):
    """The agent runtime failed to produce a response."""
