"""
OpenAI LLM Providers

Chat-completion providers backed by the official openai SDK: the public
OpenAI API and Azure OpenAI deployments. Both speak the same wire format,
so Azure only swaps the client and uses the deployment as the model name.
"""

import logging
import time

import openai
from openai import AsyncAzureOpenAI, AsyncOpenAI

from querypilot.llm.base import BaseLLMProvider
from querypilot.llm.models import LLMRequest, LLMResponse, LLMUsage

logger = logging.getLogger(__name__)


class OpenAIProvider(BaseLLMProvider):
    """OpenAI chat-completion provider using AsyncOpenAI."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        temperature: float = 0.2,
        max_tokens: int = 700,
        timeout: int = 30,
        provider_name: str = "openai",
    ):
        super().__init__(
            provider_name=provider_name,
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=timeout,
        )
        self.model = model
        self.client = self._create_client(api_key)

        logger.info(
            f"{provider_name} provider initialized with model: {model}", extra={"model": model}
        )

    def _create_client(self, api_key: str) -> AsyncOpenAI:
        return AsyncOpenAI(api_key=api_key, timeout=float(self.timeout))

    async def generate(self, request: LLMRequest) -> LLMResponse:
        """
        Generate completion using the chat completions API.

        Raises:
            openai.APIError: On API errors
            openai.APITimeoutError: On timeout
        """
        request = self.resolve(request)
        started = time.perf_counter()

        params = dict(request.metadata)
        if request.response_format == "json_object":
            params["response_format"] = {"type": "json_object"}

        try:
            messages = [{"role": msg.role, "content": msg.content} for msg in request.messages]

            response = await self.client.chat.completions.create(
                model=request.model or self.model,
                messages=messages,
                temperature=request.temperature,
                max_tokens=request.max_tokens,
                **params,
            )
        except openai.APITimeoutError as e:
            logger.error(f"{self.provider_name} API timeout: {e}")
            raise
        except openai.APIError as e:
            logger.error(f"{self.provider_name} API error: {e}")
            raise

        choice = response.choices[0] if response.choices else None
        usage = response.usage
        llm_response = LLMResponse(
            content=(choice.message.content if choice else None) or "",
            model=response.model or (request.model or self.model),
            usage=LLMUsage(
                prompt_tokens=usage.prompt_tokens,
                completion_tokens=usage.completion_tokens,
                total_tokens=usage.total_tokens,
            )
            if usage
            else LLMUsage(),
            finish_reason=self._map_finish_reason(choice.finish_reason if choice else None),
            provider=self.provider_name,
            metadata={"id": response.id},
        )

        self._log_exchange(request, llm_response, (time.perf_counter() - started) * 1000)
        return llm_response

    def _map_finish_reason(self, reason: str | None) -> str:
        """Map SDK finish reason to our standard format."""
        if reason in ("stop", "length", "content_filter"):
            return reason
        return "stop"


class AzureOpenAIProvider(OpenAIProvider):
    """Azure OpenAI provider; the deployment name doubles as the model."""

    def __init__(
        self,
        api_key: str,
        endpoint: str,
        deployment: str,
        api_version: str = "2024-08-01-preview",
        temperature: float = 0.2,
        max_tokens: int = 700,
        timeout: int = 30,
    ):
        self.endpoint = endpoint
        self.api_version = api_version
        self.deployment = deployment
        super().__init__(
            api_key=api_key,
            model=deployment,
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=timeout,
            provider_name="azure",
        )

    def _create_client(self, api_key: str) -> AsyncAzureOpenAI:
        return AsyncAzureOpenAI(
            api_key=api_key,
            azure_endpoint=self.endpoint,
            azure_deployment=self.deployment,
            api_version=self.api_version,
            timeout=float(self.timeout),
        )
