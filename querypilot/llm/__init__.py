"""
LLM Provider Module

Chat-completion abstraction over OpenAI and Azure OpenAI.

Usage:
    from querypilot.llm import LLMProviderFactory, LLMRequest, LLMMessage
    from querypilot.config import get_settings

    provider = LLMProviderFactory.create_provider(get_settings().llm)
    response = await provider.generate(
        LLMRequest(messages=[LLMMessage(role="user", content="Hello!")])
    )
"""

from querypilot.llm.base import BaseLLMProvider
from querypilot.llm.factory import LLMProviderFactory
from querypilot.llm.models import LLMMessage, LLMRequest, LLMResponse, LLMUsage
from querypilot.llm.openai import AzureOpenAIProvider, OpenAIProvider

__all__ = [
    "AzureOpenAIProvider",
    "BaseLLMProvider",
    "LLMMessage",
    "LLMProviderFactory",
    "LLMRequest",
    "LLMResponse",
    "LLMUsage",
    "OpenAIProvider",
]
