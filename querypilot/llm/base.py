"""
Base LLM Provider

Every agent talks to the model through BaseLLMProvider.generate(). Agents
always ask for JSON objects, so providers only need one entry point; the
base class resolves per-call overrides against the provider's defaults and
logs each exchange once, after the response arrives.
"""

import logging
from abc import ABC, abstractmethod

from querypilot.llm.models import LLMRequest, LLMResponse

logger = logging.getLogger(__name__)


class BaseLLMProvider(ABC):
    """
    Chat-completion provider shared by the SQL, validator, planner and analyst agents.

    Attributes:
        provider_name: "openai", "azure", or a test double's name
        temperature: Used when a request leaves temperature unset
        max_tokens: Used when a request leaves max_tokens unset
        timeout: Per-call timeout in seconds, enforced by the SDK client
    """

    def __init__(
        self,
        provider_name: str,
        temperature: float = 0.2,
        max_tokens: int = 700,
        timeout: int = 30,
    ):
        self.provider_name = provider_name
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout

    @abstractmethod
    async def generate(self, request: LLMRequest) -> LLMResponse:
        """
        Send request to the model and return its first choice.

        Raises:
            Exception: SDK errors propagate; BaseAgent wraps them in LLMError
        """

    def resolve(self, request: LLMRequest) -> LLMRequest:
        """Copy of request with unset sampling options filled from defaults."""
        updates = {}
        if request.temperature is None:
            updates["temperature"] = self.temperature
        if request.max_tokens is None:
            updates["max_tokens"] = self.max_tokens
        return request.model_copy(update=updates) if updates else request

    def _log_exchange(self, request: LLMRequest, response: LLMResponse, elapsed_ms: float) -> None:
        logger.debug(
            f"{self.provider_name} completion in {elapsed_ms:.0f}ms",
            extra={
                "provider": self.provider_name,
                "model": response.model,
                "messages": len(request.messages),
                "response_format": request.response_format,
                "total_tokens": response.usage.total_tokens,
                "finish_reason": response.finish_reason,
                "elapsed_ms": round(elapsed_ms, 1),
            },
        )
