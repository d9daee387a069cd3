class AgentError(Exception):
    """Base class for errors raised by the agent core."""


class BotNotFound(AgentError, LookupError):
    def __init__(self, bot_id: str):
        super().__init__(f"Bot {bot_id} not found")
        self.bot_id = bot_id


class GenerationFailure(AgentError):
    """The text generator failed, tripped its breaker, or timed out."""


class DuplicateSideEffect(AgentError):
    """A write collided with an existing unique row (e.g. a second like)."""


class MissingTarget(AgentError):
    """A write referenced a row that no longer exists (e.g. a deleted post)."""
