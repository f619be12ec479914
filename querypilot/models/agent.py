"""
Agent Metadata and Errors

AgentMetadata records one agent call: model round trips, tokens, timing.
The error classes split along how callers react to them. A
ConfigurationError ends the operation; a ModelOutputError is something the
self-correcting planner may retry with feedback.
"""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def _now() -> datetime:
    return datetime.now(UTC)


class AgentMetadata(BaseModel):
    """Counters for a single agent invocation."""

    model_config = ConfigDict(frozen=False)

    agent_name: str
    started_at: datetime = Field(default_factory=_now)
    completed_at: datetime | None = None
    duration_ms: float | None = None
    llm_calls: int = 0
    tokens_used: int | None = None
    error: str | None = None

    def mark_complete(self) -> None:
        """Stamp completed_at and derive duration_ms from it."""
        self.completed_at = _now()
        self.duration_ms = (self.completed_at - self.started_at).total_seconds() * 1000


class AgentError(Exception):
    """
    Failure raised by an agent.

    ``recoverable`` tells the pipeline whether trying again can help.
    ``context`` carries whatever the raising agent knew (prompt name,
    target database, raw model content) and is only used for logging.
    """

    recoverable_default = True

    def __init__(
        self,
        agent: str,
        message: str,
        recoverable: bool | None = None,
        context: dict[str, Any] | None = None,
    ):
        self.agent = agent
        self.message = message
        self.recoverable = self.recoverable_default if recoverable is None else recoverable
        self.context = dict(context or {})
        super().__init__(f"[{agent}] {message}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": type(self).__name__,
            "agent": self.agent,
            "message": self.message,
            "recoverable": self.recoverable,
            "context": self.context,
        }


class ConfigurationError(AgentError):
    """Missing credentials or files."""

    recoverable_default = False

    def __init__(self, agent: str, message: str, context: dict[str, Any] | None = None):
        super().__init__(agent, message, context=context)


class AIServiceNotConfigured(ConfigurationError):
    """Generation was requested but no model credentials are set."""

    def __init__(self, agent: str, context: dict[str, Any] | None = None):
        super().__init__(
            agent,
            "AI not configured: set AZURE_OPENAI_KEY, AZURE_OPENAI_ENDPOINT, "
            "AZURE_OPENAI_DEPLOYMENT (or LLM_PROVIDER=openai with LLM_OPENAI_API_KEY)",
            context=context,
        )


class LLMError(AgentError):
    """The provider call itself failed (network, auth, rate limit)."""

    def __init__(self, agent: str, message: str, context: dict[str, Any] | None = None):
        super().__init__(agent, message, context=context)


class ModelOutputError(AgentError):
    """The model answered with something unusable."""

    def __init__(self, agent: str, message: str, context: dict[str, Any] | None = None):
        super().__init__(agent, message, context=context)


class EmptyAIResponse(ModelOutputError):
    def __init__(self, agent: str, context: dict[str, Any] | None = None):
        super().__init__(agent, "Empty AI response", context=context)


class InvalidAIJson(ModelOutputError):
    def __init__(self, agent: str, context: dict[str, Any] | None = None):
        super().__init__(agent, "AI returned invalid JSON", context=context)


class MissingResponseFields(ModelOutputError):
    """Required keys are absent from the model's JSON or have the wrong type."""

    def __init__(self, agent: str, fields: list[str], context: dict[str, Any] | None = None):
        self.fields = fields
        super().__init__(
            agent,
            f"Missing fields in AI response: {', '.join(fields)}",
            context=context,
        )
