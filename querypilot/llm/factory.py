"""
LLM Provider Factory

Creates the configured chat-completion provider. Missing credentials are a
legal state for the service as a whole, so callers that can degrade use
create_optional_provider and the rest get AIServiceNotConfigured.
"""

import logging

from querypilot.config import LLMSettings
from querypilot.llm.base import BaseLLMProvider
from querypilot.llm.openai import AzureOpenAIProvider, OpenAIProvider
from querypilot.models.agent import AIServiceNotConfigured

logger = logging.getLogger(__name__)


class LLMProviderFactory:
    """Factory for creating LLM provider instances from LLMSettings."""

    PROVIDERS = {
        "azure": AzureOpenAIProvider,
        "openai": OpenAIProvider,
    }

    @staticmethod
    def create_provider(config: LLMSettings) -> BaseLLMProvider:
        """
        Create the provider selected by config.provider.

        Raises:
            AIServiceNotConfigured: If the selected provider lacks credentials
        """
        if not config.is_configured:
            raise AIServiceNotConfigured(
                agent="LLMProviderFactory", context={"provider": config.provider}
            )

        logger.info(
            f"Creating {config.provider} provider",
            extra={"provider": config.provider, "model": config.model_name},
        )

        if config.provider == "azure":
            return LLMProviderFactory._create_azure(config)
        return LLMProviderFactory._create_openai(config)

    @staticmethod
    def create_optional_provider(config: LLMSettings) -> BaseLLMProvider | None:
        """Create the provider, or return None when credentials are absent."""
        if not config.is_configured:
            logger.warning(
                "LLM credentials not configured; generation is unavailable",
                extra={"provider": config.provider},
            )
            return None
        return LLMProviderFactory.create_provider(config)

    @staticmethod
    def _create_azure(config: LLMSettings) -> AzureOpenAIProvider:
        return AzureOpenAIProvider(
            api_key=config.azure_api_key,
            endpoint=config.azure_endpoint,
            deployment=config.azure_deployment,
            api_version=config.azure_api_version,
            temperature=config.temperature,
            max_tokens=config.sql_max_tokens,
            timeout=config.timeout,
        )

    @staticmethod
    def _create_openai(config: LLMSettings) -> OpenAIProvider:
        return OpenAIProvider(
            api_key=config.openai_api_key,
            model=config.openai_model,
            temperature=config.temperature,
            max_tokens=config.sql_max_tokens,
            timeout=config.timeout,
        )
