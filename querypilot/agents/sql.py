"""
SQLAgent: Single-shot SQL generation for one target database.

The system prompt carries the bounded schema summary, the universal rules
and the target's domain guidance. When retrieved schema chunks are given,
the user turn asks the model to stay inside that context.

Model output is never trusted: every statement passes the forbidden
keyword check and the known-issue rewriters before it is returned.
"""

import logging
from collections.abc import Iterable, Sequence

from querypilot.agents.base import BaseAgent
from querypilot.database.domains import foreign_profiles, get_profile
from querypilot.database.policy import allows_limit, ensure_select, sanitize_sql
from querypilot.database.rewriters import (
    KNOWN_ISSUE_REWRITERS,
    KnownIssueRewriter,
    apply_known_issue_rewriters,
)
from querypilot.llm.base import BaseLLMProvider
from querypilot.llm.models import LLMMessage
from querypilot.models.query import (
    GeneratedSQLPayload,
    QueryPlan,
    SchemaChunk,
    TargetDatabase,
)
from querypilot.prompts.loader import PromptLoader

logger = logging.getLogger(__name__)


class SQLAgent(BaseAgent):
    """
    Generate a SELECT statement and its explanation.

    Usage:
        agent = SQLAgent(llm_provider=provider)
        plan = await agent.generate(question, TargetDatabase.DMS, dms_summary)
    """

    def __init__(
        self,
        llm_provider: BaseLLMProvider | None = None,
        prompt_loader: PromptLoader | None = None,
        temperature: float = 0.2,
        max_tokens: int = 700,
        max_result_limit: int = 100,
        rewriters: Iterable[KnownIssueRewriter] = KNOWN_ISSUE_REWRITERS,
    ):
        super().__init__(name="SQLAgent", llm_provider=llm_provider, prompt_loader=prompt_loader)
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.max_result_limit = max_result_limit
        self.rewriters = tuple(rewriters)

    def build_system_prompt(self, target: TargetDatabase, schema_summary: str) -> str:
        return self.prompts.render(
            "agents/sql_generator.md",
            profile=get_profile(target),
            schema_summary=schema_summary,
            foreign_profiles=foreign_profiles(target),
            max_limit=self.max_result_limit,
        )

    def build_user_prompt(
        self, question: str, retrieved_chunks: Sequence[SchemaChunk] | None = None
    ) -> str:
        return self.prompts.render(
            "agents/sql_generator_user.md",
            question=question,
            chunks=list(retrieved_chunks or []),
        )

    async def generate(
        self,
        question: str,
        target: TargetDatabase,
        schema_summary: str,
        retrieved_chunks: Sequence[SchemaChunk] | None = None,
    ) -> QueryPlan:
        """
        Generate SQL for question against target.

        Args:
            question: Natural-language question
            target: Database the SQL must run against
            schema_summary: Bounded table/column listing for target
            retrieved_chunks: Optional schema chunks to ground the answer in

        Returns:
            QueryPlan with sanitized sql (empty when the model gave none),
            explanation and allows_limit

        Raises:
            AIServiceNotConfigured: If no model credentials are configured
            EmptyAIResponse / InvalidAIJson / MissingResponseFields: Bad model output
            ForbiddenSqlKeyword: If the model produced a write or DDL statement
            NonSelectStatement / MultipleStatements / UnsafeSqlConstruct: If the
                model produced anything but a single safe SELECT
        """
        self._reset_metadata()
        self._require_llm()

        logger.info(
            f"[{self.name}] Generating SQL for {target.value}",
            extra={
                "agent": self.name,
                "target": target.value,
                "retrieved_chunks": len(retrieved_chunks or []),
            },
        )

        messages = [
            LLMMessage(role="system", content=self.build_system_prompt(target, schema_summary)),
            LLMMessage(role="user", content=self.build_user_prompt(question, retrieved_chunks)),
        ]
        response = await self._call_llm(
            messages,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        payload = self._decode_json(response.content, GeneratedSQLPayload)

        sql = sanitize_sql(payload.sql)
        if sql:
            sql = ensure_select(sql)
            sql = apply_known_issue_rewriters(sql, target, self.rewriters)

        self._metadata.mark_complete()
        return QueryPlan(
            sql=sql,
            explanation=payload.explanation,
            allows_limit=allows_limit(sql),
        )
