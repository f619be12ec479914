"""
ValidatorAgent: Read-only policy plus a semantic second opinion.

Two layers:
1. enforce_policy(): deterministic read-only checks (no model involved)
2. validate(): a second model call that judges whether the SQL answers
   the question and may propose a corrected statement

The semantic layer is governed by a named mode:
- advisory (default): an unavailable or unparseable validator is treated
  as a pass, and a corrected SQL replaces the original when flagged invalid
- strict: an unavailable validator counts as a failed validation, and SQL
  only runs when it passed or a corrected SQL passes the read-only policy
"""

import json
import logging
from collections.abc import Sequence
from typing import Any, Literal

from querypilot.agents.base import BaseAgent
from querypilot.database.policy import SQLPolicyError, enforce_read_only
from querypilot.llm.base import BaseLLMProvider
from querypilot.llm.models import LLMMessage
from querypilot.models.agent import EmptyAIResponse, InvalidAIJson, MissingResponseFields
from querypilot.models.query import SchemaSnippet, ValidationResult, ValidatorPayload
from querypilot.prompts.loader import PromptLoader

logger = logging.getLogger(__name__)

ValidationMode = Literal["advisory", "strict"]

NOT_CONFIGURED_NOTE = "Validator not configured; skipping validation."
EMPTY_RESPONSE_NOTE = "Empty validator response; assuming valid."
NON_JSON_NOTE = "Validator returned non-JSON; assuming valid."


class ValidatorAgent(BaseAgent):
    """
    Validate generated SQL before it is executed.

    Usage:
        validator = ValidatorAgent(llm_provider=provider, mode="advisory")
        result = await validator.validate(question, snippets, sql, params)
        chosen = validator.choose_sql(sql, params, result)
    """

    def __init__(
        self,
        llm_provider: BaseLLMProvider | None = None,
        prompt_loader: PromptLoader | None = None,
        mode: ValidationMode = "advisory",
        max_tokens: int = 800,
        max_chunks: int = 5,
    ):
        super().__init__(
            name="ValidatorAgent", llm_provider=llm_provider, prompt_loader=prompt_loader
        )
        self.mode = mode
        self.max_tokens = max_tokens
        self.max_chunks = max_chunks

    @property
    def strict(self) -> bool:
        return self.mode == "strict"

    def enforce_policy(self, sql: str) -> str:
        """
        Run the read-only policy on sql.

        Raises:
            SQLPolicyError: If the statement is not a single safe SELECT
        """
        return enforce_read_only(sql)

    def build_prompt(
        self,
        question: str,
        schema_chunks: Sequence[SchemaSnippet],
        sql: str,
        params: list[Any] | None = None,
    ) -> str:
        generated_json = json.dumps({"sql": sql, "params": params or []}, indent=2)
        return self.prompts.render(
            "agents/sql_validator.md",
            question=question,
            chunks=list(schema_chunks)[: self.max_chunks],
            generated_json=generated_json,
        )

    async def validate(
        self,
        question: str,
        schema_chunks: Sequence[SchemaSnippet],
        sql: str,
        params: list[Any] | None = None,
    ) -> ValidationResult:
        """
        Ask the model whether sql answers question.

        Never raises for bad model output: empty, non-JSON or malformed
        answers become a pass in advisory mode and a failure in strict mode.

        Raises:
            LLMError: If the model call itself fails
        """
        self._reset_metadata()
        if not self.is_configured:
            return self._unavailable(NOT_CONFIGURED_NOTE)

        prompt = self.build_prompt(question, schema_chunks, sql, params)
        response = await self._call_llm(
            [LLMMessage(role="user", content=prompt)],
            temperature=0.0,
            max_tokens=self.max_tokens,
        )

        try:
            payload = self._decode_json(response.content, ValidatorPayload)
        except EmptyAIResponse:
            return self._unavailable(EMPTY_RESPONSE_NOTE)
        except InvalidAIJson:
            return self._unavailable(NON_JSON_NOTE)
        except MissingResponseFields as e:
            return self._unavailable(
                f"Validator response missing fields ({', '.join(e.fields)}); assuming valid."
            )

        self._metadata.mark_complete()
        result = ValidationResult(**payload.model_dump())
        logger.info(
            f"[{self.name}] Validation {'passed' if result.is_valid else 'failed'}",
            extra={
                "agent": self.name,
                "is_valid": result.is_valid,
                "has_correction": bool(result.corrected_sql),
            },
        )
        return result

    def _unavailable(self, note: str) -> ValidationResult:
        if self.strict:
            note = note.replace("skipping validation.", "strict mode blocks execution.")
            note = note.replace("assuming valid.", "strict mode treats this as invalid.")
            logger.warning(f"[{self.name}] {note}", extra={"agent": self.name})
            return ValidationResult(is_valid=False, reason="Validator unavailable", notes=note)
        return ValidationResult(is_valid=True, notes=note)

    def choose_sql(
        self,
        sql: str,
        params: list[Any] | None,
        validation: ValidationResult,
    ) -> tuple[str, list[Any]] | None:
        """
        Decide which statement to execute, if any.

        Returns:
            (sql, params) to run, or None when strict mode forbids execution
        """
        params = list(params or [])
        if validation.is_valid:
            return sql, params

        if validation.corrected_sql:
            try:
                corrected = self.enforce_policy(validation.corrected_sql)
            except SQLPolicyError as e:
                logger.warning(
                    f"[{self.name}] Corrected SQL rejected by policy: {e}",
                    extra={"agent": self.name, "rule": e.rule},
                )
            else:
                return corrected, list(validation.corrected_params or [])

        if self.strict:
            return None
        return sql, params
