"""
Tests for OpenAI and Azure OpenAI providers.

Tests provider implementations with mocked API calls.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from querypilot.llm.models import LLMMessage, LLMRequest
from querypilot.llm.openai import AzureOpenAIProvider, OpenAIProvider


def make_completion(content="SELECT 1", finish_reason="stop", model="gpt-4o-mini"):
    """Build a mocked chat completion response."""
    mock_response = MagicMock()
    mock_response.choices = [MagicMock()]
    mock_response.choices[0].message.content = content
    mock_response.choices[0].finish_reason = finish_reason
    mock_response.model = model
    mock_response.usage.prompt_tokens = 10
    mock_response.usage.completion_tokens = 5
    mock_response.usage.total_tokens = 15
    mock_response.id = "chatcmpl-123"
    return mock_response


@pytest.fixture
def provider():
    """Create OpenAI provider instance."""
    return OpenAIProvider(
        api_key="sk-test-key-1234567890abcdefghij",
        model="gpt-4o-mini",
        temperature=0.2,
        max_tokens=700,
        timeout=30,
    )


@pytest.fixture
def azure_provider():
    """Create Azure OpenAI provider instance."""
    return AzureOpenAIProvider(
        api_key="azure-key",
        endpoint="https://example.openai.azure.com",
        deployment="sql-gpt4o",
        api_version="2024-08-01-preview",
    )


class TestOpenAIProviderInit:
    """Test OpenAI provider initialization."""

    def test_initialization(self, provider):
        """Test provider initializes correctly."""
        assert provider.model == "gpt-4o-mini"
        assert provider.temperature == 0.2
        assert provider.max_tokens == 700
        assert provider.timeout == 30
        assert provider.provider_name == "openai"
        assert provider.client is not None

    def test_azure_uses_deployment_as_model(self, azure_provider):
        assert azure_provider.provider_name == "azure"
        assert azure_provider.model == "sql-gpt4o"
        assert azure_provider.deployment == "sql-gpt4o"


class TestGenerate:
    """Test generate method."""

    @pytest.mark.asyncio
    async def test_successful_generation(self, provider):
        """Test successful completion generation."""
        with patch.object(
            provider.client.chat.completions,
            "create",
            new_callable=AsyncMock,
            return_value=make_completion('{"sql": "SELECT 1"}'),
        ):
            request = LLMRequest(messages=[LLMMessage(role="user", content="Hello!")])
            response = await provider.generate(request)

        assert response.content == '{"sql": "SELECT 1"}'
        assert response.model == "gpt-4o-mini"
        assert response.usage.total_tokens == 15
        assert response.finish_reason == "stop"
        assert response.provider == "openai"
        assert response.metadata == {"id": "chatcmpl-123"}

    @pytest.mark.asyncio
    async def test_applies_defaults(self, provider):
        """Test request defaults are applied."""
        mock_create = AsyncMock(return_value=make_completion())

        with patch.object(provider.client.chat.completions, "create", mock_create):
            await provider.generate(
                LLMRequest(messages=[LLMMessage(role="user", content="Hi")])
            )

        kwargs = mock_create.call_args.kwargs
        assert kwargs["temperature"] == 0.2
        assert kwargs["max_tokens"] == 700
        assert kwargs["model"] == "gpt-4o-mini"
        assert "response_format" not in kwargs

    @pytest.mark.asyncio
    async def test_json_response_format(self, provider):
        """json_object requests ask the API for a JSON object."""
        mock_create = AsyncMock(return_value=make_completion())

        with patch.object(provider.client.chat.completions, "create", mock_create):
            await provider.generate(
                LLMRequest(
                    messages=[
                        LLMMessage(role="system", content="You are a MySQL expert."),
                        LLMMessage(role="user", content="count users"),
                    ],
                    temperature=0.0,
                    max_tokens=300,
                    response_format="json_object",
                )
            )

        kwargs = mock_create.call_args.kwargs
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["temperature"] == 0.0
        assert kwargs["max_tokens"] == 300
        assert kwargs["messages"][0] == {"role": "system", "content": "You are a MySQL expert."}

    @pytest.mark.asyncio
    async def test_empty_content_becomes_empty_string(self, provider):
        with patch.object(
            provider.client.chat.completions,
            "create",
            new_callable=AsyncMock,
            return_value=make_completion(content=None),
        ):
            response = await provider.generate(
                LLMRequest(messages=[LLMMessage(role="user", content="Hi")])
            )

        assert response.content == ""

    @pytest.mark.asyncio
    async def test_unknown_finish_reason_maps_to_stop(self, provider):
        with patch.object(
            provider.client.chat.completions,
            "create",
            new_callable=AsyncMock,
            return_value=make_completion(finish_reason="tool_calls"),
        ):
            response = await provider.generate(
                LLMRequest(messages=[LLMMessage(role="user", content="Hi")])
            )

        assert response.finish_reason == "stop"

    @pytest.mark.asyncio
    async def test_errors_propagate(self, provider):
        """Provider errors are re-raised for the agent to wrap."""
        with patch.object(
            provider.client.chat.completions,
            "create",
            new_callable=AsyncMock,
            side_effect=RuntimeError("connection reset"),
        ):
            with pytest.raises(RuntimeError, match="connection reset"):
                await provider.generate(
                    LLMRequest(messages=[LLMMessage(role="user", content="Hi")])
                )

    @pytest.mark.asyncio
    async def test_azure_sends_deployment(self, azure_provider):
        mock_create = AsyncMock(return_value=make_completion(model="sql-gpt4o"))

        with patch.object(azure_provider.client.chat.completions, "create", mock_create):
            response = await azure_provider.generate(
                LLMRequest(messages=[LLMMessage(role="user", content="Hi")])
            )

        assert mock_create.call_args.kwargs["model"] == "sql-gpt4o"
        assert response.provider == "azure"
