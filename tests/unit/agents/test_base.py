"""
Unit tests for BaseAgent.

Tests metadata tracking, model call wrapping and strict JSON decoding.
"""

import pytest
from pydantic import BaseModel, StrictStr

from querypilot.agents.base import BaseAgent
from querypilot.llm.models import LLMMessage
from querypilot.models.agent import (
    AIServiceNotConfigured,
    EmptyAIResponse,
    InvalidAIJson,
    LLMError,
    MissingResponseFields,
)


class Payload(BaseModel):
    sql: StrictStr
    explanation: StrictStr


class TestBaseAgent:
    """Test suite for BaseAgent."""

    @pytest.fixture
    def agent(self, llm):
        return BaseAgent(name="TestAgent", llm_provider=llm)

    def test_initial_metadata(self, agent):
        assert agent.metadata.agent_name == "TestAgent"
        assert agent.metadata.llm_calls == 0
        assert agent.is_configured is True

    @pytest.mark.asyncio
    async def test_call_tracks_tokens(self, agent, llm):
        llm.queue("{}", "{}")

        await agent._call_llm([LLMMessage(role="user", content="hi")], max_tokens=50)
        await agent._call_llm([LLMMessage(role="user", content="again")])

        assert agent.metadata.llm_calls == 2
        assert agent.metadata.tokens_used == 24
        assert llm.requests[0].max_tokens == 50
        assert llm.requests[0].response_format == "json_object"

    @pytest.mark.asyncio
    async def test_call_wraps_provider_errors(self, agent, llm):
        llm.queue(TimeoutError("read timeout"))

        with pytest.raises(LLMError) as exc_info:
            await agent._call_llm([LLMMessage(role="user", content="hi")])

        assert exc_info.value.recoverable is True
        assert exc_info.value.context == {"error_type": "TimeoutError"}

    @pytest.mark.asyncio
    async def test_call_without_provider(self):
        agent = BaseAgent(name="Offline")

        with pytest.raises(AIServiceNotConfigured) as exc_info:
            await agent._call_llm([LLMMessage(role="user", content="hi")])

        assert exc_info.value.recoverable is False
        assert exc_info.value.agent == "Offline"

    # ============================================================================
    # JSON Decoding
    # ============================================================================

    def test_decode_valid(self, agent):
        payload = agent._decode_json('{"sql": "SELECT 1", "explanation": "one", "extra": 1}', Payload)

        assert payload.sql == "SELECT 1"

    @pytest.mark.parametrize("content", [None, "", "   \n"])
    def test_decode_empty(self, agent, content):
        with pytest.raises(EmptyAIResponse, match="Empty AI response"):
            agent._decode_json(content, Payload)

    @pytest.mark.parametrize("content", ["not json", '"a string"', "[]", "{broken"])
    def test_decode_invalid(self, agent, content):
        with pytest.raises(InvalidAIJson, match="invalid JSON"):
            agent._decode_json(content, Payload)

    def test_decode_missing_fields_sorted(self, agent):
        with pytest.raises(MissingResponseFields) as exc_info:
            agent._decode_json("{}", Payload)

        assert exc_info.value.fields == ["explanation", "sql"]
        assert "Missing fields in AI response: explanation, sql" in str(exc_info.value)
