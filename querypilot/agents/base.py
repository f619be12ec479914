"""
Base Agent Framework

Shared plumbing for the agents in the QueryPilot pipeline: execution
metadata, timed model calls and strict decoding of JSON model output.

Usage:
    class MyAgent(BaseAgent):
        def __init__(self, llm_provider=None):
            super().__init__(name="MyAgent", llm_provider=llm_provider)

        async def run(self, question: str) -> MyPayload:
            response = await self._call_llm(messages, max_tokens=300)
            return self._decode_json(response.content, MyPayload)
"""

import json
import logging
import time
from typing import TypeVar

from pydantic import BaseModel, ValidationError

from querypilot.llm.base import BaseLLMProvider
from querypilot.llm.models import LLMMessage, LLMRequest, LLMResponse
from querypilot.models.agent import (
    AgentMetadata,
    AIServiceNotConfigured,
    EmptyAIResponse,
    InvalidAIJson,
    LLMError,
    MissingResponseFields,
)
from querypilot.prompts.loader import PromptLoader

logger = logging.getLogger(__name__)

PayloadT = TypeVar("PayloadT", bound=BaseModel)


class BaseAgent:
    """
    Base class for all agents in the QueryPilot pipeline.

    Responsibilities:
        - Hold the (optional) LLM provider and prompt loader
        - Time and count model calls in AgentMetadata
        - Turn raw model content into typed payloads or named errors

    Attributes:
        name: Unique identifier for this agent
        llm: Chat-completion provider, or None when credentials are absent
        prompts: Loader for the packaged prompt templates
    """

    def __init__(
        self,
        name: str,
        llm_provider: BaseLLMProvider | None = None,
        prompt_loader: PromptLoader | None = None,
    ):
        self.name = name
        self.llm = llm_provider
        self.prompts = prompt_loader or PromptLoader()
        self._metadata = self._create_metadata()

        logger.info(
            f"Initialized {self.name}",
            extra={"agent": self.name, "llm_configured": llm_provider is not None},
        )

    @property
    def is_configured(self) -> bool:
        """Whether model calls can be made."""
        return self.llm is not None

    @property
    def metadata(self) -> AgentMetadata:
        return self._metadata

    def _create_metadata(self) -> AgentMetadata:
        return AgentMetadata(agent_name=self.name)

    def _reset_metadata(self) -> None:
        self._metadata = self._create_metadata()

    def _track_llm_call(self, tokens: int | None = None) -> None:
        """
        Track an LLM API call in metadata.

        Args:
            tokens: Optional token count for this call
        """
        self._metadata.llm_calls += 1
        if tokens:
            current_tokens = self._metadata.tokens_used or 0
            self._metadata.tokens_used = current_tokens + tokens

        logger.debug(
            f"LLM call tracked for {self.name}",
            extra={
                "agent": self.name,
                "total_llm_calls": self._metadata.llm_calls,
                "tokens_this_call": tokens,
                "total_tokens": self._metadata.tokens_used,
            },
        )

    def _require_llm(self) -> BaseLLMProvider:
        if self.llm is None:
            raise AIServiceNotConfigured(agent=self.name)
        return self.llm

    async def _call_llm(
        self,
        messages: list[LLMMessage],
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
        response_format: str = "json_object",
    ) -> LLMResponse:
        """
        Send one chat-completion request.

        Raises:
            AIServiceNotConfigured: If no provider is configured
            LLMError: If the provider call fails
        """
        llm = self._require_llm()
        request = LLMRequest(
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
            response_format=response_format,
        )

        start_time = time.perf_counter()
        try:
            response = await llm.generate(request)
        except Exception as e:
            logger.error(
                f"LLM call failed in {self.name}: {e}",
                extra={"agent": self.name, "error_type": type(e).__name__},
            )
            raise LLMError(
                agent=self.name,
                message=f"LLM call failed: {e}",
                context={"error_type": type(e).__name__},
            ) from e

        duration_ms = (time.perf_counter() - start_time) * 1000
        self._track_llm_call(response.usage.total_tokens)
        logger.info(
            f"{self.name} LLM call completed",
            extra={
                "agent": self.name,
                "duration_ms": duration_ms,
                "total_tokens": response.usage.total_tokens,
                "finish_reason": response.finish_reason,
            },
        )
        return response

    def _decode_json(self, content: str | None, payload_model: type[PayloadT]) -> PayloadT:
        """
        Decode model content into payload_model.

        Raises:
            EmptyAIResponse: If content is empty
            InvalidAIJson: If content is not a JSON object
            MissingResponseFields: If required fields are absent or wrong-typed
        """
        if not content or not content.strip():
            raise EmptyAIResponse(agent=self.name)

        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise InvalidAIJson(agent=self.name, context={"content": content[:200]}) from e
        if not isinstance(data, dict):
            raise InvalidAIJson(agent=self.name, context={"content": content[:200]})

        try:
            return payload_model.model_validate(data)
        except ValidationError as e:
            fields = sorted({str(error["loc"][0]) for error in e.errors() if error["loc"]})
            raise MissingResponseFields(agent=self.name, fields=fields) from e
