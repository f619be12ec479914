"""
Self-Correcting Query Planner

Turns a question into a QueryPlan through a bounded generate/validate
loop. Each rejected attempt is explained back to the model as a new user
turn, so the next attempt sees what went wrong.

State machine:

    GENERATING -> VALIDATING -> SUCCEEDED
                             -> TERMINAL_FAILURE  (model refused the request)
                             -> RETRYABLE_FAILURE -> GENERATING
                                                  -> TERMINAL_FAILURE  (budget spent)

At most max_retries + 1 model calls are made per plan() call.
"""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum

from querypilot.agents.base import BaseAgent
from querypilot.database.domains import DomainProfile, foreign_profiles, get_profile
from querypilot.database.policy import SQLPolicyError, apply_limit_cap, enforce_read_only
from querypilot.database.rewriters import (
    KNOWN_ISSUE_REWRITERS,
    KnownIssueRewriter,
    apply_known_issue_rewriters,
)
from querypilot.llm.base import BaseLLMProvider
from querypilot.llm.models import LLMMessage
from querypilot.models.agent import LLMError, MissingResponseFields, ModelOutputError
from querypilot.models.query import (
    CorrectionFeedback,
    PlannerPayload,
    QueryPlan,
    TargetDatabase,
)
from querypilot.prompts.loader import PromptLoader

logger = logging.getLogger(__name__)

REFUSAL_SQL = "SELECT 'No valid query could be generated.' AS message"


class PlannerState(str, Enum):
    """States of one planning session."""

    GENERATING = "generating"
    VALIDATING = "validating"
    SUCCEEDED = "succeeded"
    RETRYABLE_FAILURE = "retryable_failure"
    TERMINAL_FAILURE = "terminal_failure"


FINAL_STATES = frozenset({PlannerState.SUCCEEDED, PlannerState.TERMINAL_FAILURE})


@dataclass
class PlannerSession:
    """Explicit state carried across attempts of one plan() call."""

    question: str
    target: TargetDatabase
    corrections: list[CorrectionFeedback]
    conversation: list[LLMMessage] = field(default_factory=list)
    state: PlannerState = PlannerState.GENERATING
    attempts: int = 0
    last_content: str | None = None
    last_error: str | None = None
    echo_previous_response: bool = False
    plan: QueryPlan | None = None


class SelfCorrectingPlanner(BaseAgent):
    """
    Bounded-retry SQL planner.

    Usage:
        planner = SelfCorrectingPlanner(llm_provider=provider)
        plan = await planner.plan(question, TargetDatabase.ENTITIES, summary)
        if not plan.success_status:
            print(plan.explanation)
    """

    def __init__(
        self,
        llm_provider: BaseLLMProvider | None = None,
        prompt_loader: PromptLoader | None = None,
        max_retries: int = 3,
        max_result_limit: int = 100,
        temperature: float = 0.2,
        max_tokens: int = 600,
        rewriters: Iterable[KnownIssueRewriter] = KNOWN_ISSUE_REWRITERS,
    ):
        super().__init__(
            name="SelfCorrectingPlanner", llm_provider=llm_provider, prompt_loader=prompt_loader
        )
        self.max_retries = max_retries
        self.max_result_limit = max_result_limit
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.rewriters = tuple(rewriters)

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    async def plan(
        self,
        question: str,
        target: TargetDatabase,
        schema_summary: str,
        corrections: Sequence[CorrectionFeedback] = (),
    ) -> QueryPlan:
        """
        Produce a plan for question, replaying earlier execution failures.

        Always returns a QueryPlan: either success_status=True with a
        policy-checked SELECT, or a terminal plan explaining why not.

        Raises:
            AIServiceNotConfigured: If no model credentials are configured
        """
        self._reset_metadata()
        self._require_llm()

        profile = get_profile(target)
        session = PlannerSession(
            question=question,
            target=target,
            corrections=list(corrections),
        )
        session.conversation = [
            LLMMessage(role="system", content=self._system_prompt(profile, schema_summary)),
            LLMMessage(
                role="user",
                content=self.prompts.render(
                    "agents/query_planner_user.md",
                    question=question,
                    corrections=session.corrections,
                ),
            ),
        ]

        while session.state not in FINAL_STATES:
            if session.state is PlannerState.GENERATING:
                session.state = await self._generate(session)
            elif session.state is PlannerState.VALIDATING:
                session.state = self._validate(session)
            else:
                session.state = self._prepare_retry(session)

        self._metadata.mark_complete()
        logger.info(
            f"[{self.name}] Finished in state {session.state.value}",
            extra={
                "agent": self.name,
                "target": target.value,
                "attempts": session.attempts,
                "success": session.plan.success_status,
            },
        )
        return session.plan

    # ========================================================================
    # States
    # ========================================================================

    async def _generate(self, session: PlannerSession) -> PlannerState:
        session.attempts += 1
        session.last_content = None
        try:
            response = await self._call_llm(
                session.conversation,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except LLMError as e:
            return self._reject(session, e.message, echo_previous_response=False)

        session.last_content = response.content.strip()
        return PlannerState.VALIDATING

    def _validate(self, session: PlannerSession) -> PlannerState:
        try:
            payload = self._decode_json(session.last_content, PlannerPayload)
        except ModelOutputError as e:
            return self._reject(
                session,
                e.message,
                echo_previous_response=isinstance(e, MissingResponseFields),
            )

        if not payload.success_status:
            if payload.should_retry:
                return self._reject(session, payload.explanation, echo_previous_response=True)
            session.plan = QueryPlan(
                sql=REFUSAL_SQL,
                explanation=payload.explanation,
                allows_limit=False,
                success_status=False,
                should_retry=False,
            )
            return PlannerState.TERMINAL_FAILURE

        try:
            sql = enforce_read_only(payload.sql)
        except SQLPolicyError as e:
            return self._reject(session, str(e), echo_previous_response=True)

        sql = apply_known_issue_rewriters(sql, session.target, self.rewriters)
        sql, limit = apply_limit_cap(sql, self.max_result_limit)
        session.plan = QueryPlan(
            sql=sql,
            explanation=payload.explanation.strip(),
            allows_limit=payload.allows_limit,
            limit=limit or 0,
            success_status=True,
            should_retry=False,
        )
        return PlannerState.SUCCEEDED

    def _prepare_retry(self, session: PlannerSession) -> PlannerState:
        if session.attempts >= self.max_attempts:
            session.plan = self.fallback_plan(
                session.target,
                f"Failed after {self.max_attempts} attempts: {session.last_error}. "
                "Please rephrase your question.",
            )
            return PlannerState.TERMINAL_FAILURE

        if session.last_content:
            session.conversation.append(LLMMessage(role="assistant", content=session.last_content))
        session.conversation.append(
            LLMMessage(
                role="user",
                content=self.prompts.render(
                    "agents/query_planner_feedback.md",
                    reason=session.last_error,
                    previous_response=(
                        session.last_content if session.echo_previous_response else None
                    ),
                    corrections=session.corrections,
                ),
            )
        )
        return PlannerState.GENERATING

    # ========================================================================
    # Helpers
    # ========================================================================

    def _reject(
        self, session: PlannerSession, reason: str, echo_previous_response: bool
    ) -> PlannerState:
        session.last_error = reason
        session.echo_previous_response = echo_previous_response
        logger.warning(
            f"[{self.name}] Attempt {session.attempts} rejected: {reason}",
            extra={
                "agent": self.name,
                "attempt": session.attempts,
                "max_attempts": self.max_attempts,
            },
        )
        return PlannerState.RETRYABLE_FAILURE

    def _system_prompt(self, profile: DomainProfile, schema_summary: str) -> str:
        return self.prompts.render(
            "agents/query_planner.md",
            profile=profile,
            schema_summary=schema_summary,
            foreign_profiles=foreign_profiles(profile.target),
            max_limit=self.max_result_limit,
            refusal_sql=REFUSAL_SQL,
        )

    @staticmethod
    def fallback_plan(target: TargetDatabase, reason: str) -> QueryPlan:
        """Terminal plan returned when no acceptable SQL was produced."""
        profile = get_profile(target)
        return QueryPlan(
            sql=REFUSAL_SQL,
            explanation=f"I cannot perform that action. {reason} Please ask about {profile.topics}.",
            allows_limit=False,
            success_status=False,
            should_retry=False,
        )
