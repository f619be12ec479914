"""
AnalystAgent: Decide which database answers a question and outline the answer.

Reads either both schema summaries (embeddings disabled) or the retrieved
schema chunks, and returns a lenient, normalised AnalysisResult: an unknown
db_name becomes entities and missing text fields become empty strings.
"""

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from querypilot.agents.base import BaseAgent
from querypilot.llm.base import BaseLLMProvider
from querypilot.llm.models import LLMMessage
from querypilot.models.query import (
    AnalysisPlan,
    AnalysisResult,
    AnalystPayload,
    SchemaChunk,
    TargetDatabase,
)
from querypilot.prompts.loader import PromptLoader

logger = logging.getLogger(__name__)


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value]


class AnalystAgent(BaseAgent):
    """Answer-outline agent backing the /ai/answer endpoint."""

    def __init__(
        self,
        llm_provider: BaseLLMProvider | None = None,
        prompt_loader: PromptLoader | None = None,
        temperature: float = 0.2,
        max_tokens: int = 600,
    ):
        super().__init__(name="AnalystAgent", llm_provider=llm_provider, prompt_loader=prompt_loader)
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def analyze(
        self,
        question: str,
        summaries: Mapping[TargetDatabase, str] | None = None,
        chunks: Sequence[SchemaChunk] | None = None,
    ) -> AnalysisResult:
        """
        Analyze question against schema summaries or retrieved chunks.

        Chunks take precedence when both are given.

        Raises:
            AIServiceNotConfigured: If no model credentials are configured
            EmptyAIResponse / InvalidAIJson: Bad model output
        """
        self._reset_metadata()
        self._require_llm()

        chunk_list = list(chunks or [])
        system_prompt = self.prompts.render(
            "agents/analyst.md", grounded_in_chunks=bool(chunk_list)
        )
        user_prompt = self.prompts.render(
            "agents/analyst_user.md",
            question=question,
            summaries={
                target.value.upper(): summary for target, summary in (summaries or {}).items()
            },
            chunks=chunk_list,
        )

        response = await self._call_llm(
            [
                LLMMessage(role="system", content=system_prompt),
                LLMMessage(role="user", content=user_prompt),
            ],
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        payload = self._decode_json(response.content, AnalystPayload)
        self._metadata.mark_complete()
        return self._normalise(payload)

    @staticmethod
    def _normalise(payload: AnalystPayload) -> AnalysisResult:
        db_name = TargetDatabase.DMS if payload.db_name == "dms" else TargetDatabase.ENTITIES
        plan = payload.plan if isinstance(payload.plan, dict) else {}
        return AnalysisResult(
            db_name=db_name,
            answer=str(payload.answer or ""),
            rationale=str(payload.rationale or ""),
            plan=AnalysisPlan(
                target=db_name,
                tables=_string_list(plan.get("tables")),
                filters=_string_list(plan.get("filters")),
            ),
        )
