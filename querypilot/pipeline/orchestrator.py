"""
QueryPilot Pipeline Orchestrator

Long-lived service object composing every agent:
- classify: keyword/table router, no model call
- generate_sql: retrieval-grounded SQL, degrading to the keyword router
  plus schema summary when embeddings are off or failing
- generate_validate_execute: generation, semantic validation and optional
  execution behind the execute-automatically flag
- plan_query: self-correcting planner with caller-supplied corrections
- vector_query / vector_stats / rebuild_index: retrieval inspection
- analyze: which database answers a question
- database_health: per-target reachability

Every model-backed operation is bounded by request_timeout_seconds; a
timeout cancels the whole operation.
"""

import asyncio
import logging
from collections.abc import Awaitable, Sequence
from typing import Any, TypeVar

from querypilot.agents.analyst import AnalystAgent
from querypilot.agents.classifier import ClassifierAgent
from querypilot.agents.executor import ExecutorAgent
from querypilot.agents.sql import SQLAgent
from querypilot.agents.validator import ValidatorAgent
from querypilot.config import Settings
from querypilot.connectors.base import BaseConnector
from querypilot.database.catalog import load_schemas, summarize
from querypilot.database.policy import SQLPolicyError
from querypilot.knowledge.embeddings import BaseEmbedder, EmbeddingError, create_embedder
from querypilot.knowledge.vectors import IndexNotBuilt, SchemaVectorIndex
from querypilot.llm.base import BaseLLMProvider
from querypilot.llm.factory import LLMProviderFactory
from querypilot.models.agent import AgentError
from querypilot.models.api import GeneratedPayload, QueryResponse, VectorHit
from querypilot.models.query import (
    AnalysisResult,
    ClassificationResult,
    CorrectionFeedback,
    GeneratedSQL,
    QueryPlan,
    SchemaCatalog,
    SchemaSnippet,
    ScoredChunk,
    TargetDatabase,
    ValidationResult,
)
from querypilot.pipeline.correction import SelfCorrectingPlanner
from querypilot.prompts.loader import PromptLoader

logger = logging.getLogger(__name__)

T = TypeVar("T")

VECTOR_CONTENT_PREVIEW = 500


class NoSQLProduced(AgentError):
    """The generator answered without any SQL."""

    def __init__(self, question: str):
        self.question = question
        super().__init__(
            agent="QueryPipeline",
            message="No SQL produced from context",
            recoverable=True,
            context={"question": question},
        )


class PipelineTimeout(AgentError):
    """The request exceeded request_timeout_seconds and was cancelled."""

    def __init__(self, seconds: float):
        super().__init__(
            agent="QueryPipeline",
            message=f"Request timed out after {seconds:g}s",
            recoverable=True,
            context={"timeout_seconds": seconds},
        )


class QueryPipeline:
    """
    Compose catalogs, retrieval and agents behind one request-level API.

    Constructed once per process (see build_pipeline) and shared by every
    request; only the vector index is mutable, and it guards its own rebuilds.
    """

    def __init__(
        self,
        settings: Settings,
        catalogs: dict[TargetDatabase, SchemaCatalog],
        vector_index: SchemaVectorIndex,
        classifier: ClassifierAgent,
        sql_agent: SQLAgent,
        validator: ValidatorAgent,
        planner: SelfCorrectingPlanner,
        executor: ExecutorAgent,
        analyst: AnalystAgent,
    ):
        self.settings = settings
        self.catalogs = catalogs
        self.vector_index = vector_index
        self.classifier = classifier
        self.sql_agent = sql_agent
        self.validator = validator
        self.planner = planner
        self.executor = executor
        self.analyst = analyst
        self.summaries = {
            target: summarize(
                catalog,
                max_tables=settings.schemas.max_tables,
                max_columns_per_table=settings.schemas.max_columns_per_table,
            )
            for target, catalog in catalogs.items()
        }

    @property
    def embeddings_disabled(self) -> bool:
        return self.settings.embeddings.disabled

    @property
    def request_timeout(self) -> float:
        return self.settings.pipeline.request_timeout_seconds

    async def _bounded(self, operation: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(operation, timeout=self.request_timeout)
        except TimeoutError as e:
            logger.error(f"Pipeline request timed out after {self.request_timeout}s")
            raise PipelineTimeout(self.request_timeout) from e

    # ========================================================================
    # Lifecycle
    # ========================================================================

    async def start(self) -> None:
        """Build the vector index when retrieval is enabled; failures degrade."""
        if self.embeddings_disabled:
            logger.info("Embeddings disabled; using keyword routing and schema summaries")
            return
        try:
            await self.rebuild_index()
        except EmbeddingError as e:
            logger.warning(f"Vector index build failed; continuing without retrieval: {e}")

    async def close(self) -> None:
        await self.executor.close()

    # ========================================================================
    # Routing and retrieval
    # ========================================================================

    def classify(self, question: str) -> ClassificationResult:
        return self.classifier.classify(question, self.catalogs)

    async def rebuild_index(self) -> int:
        """Rebuild the vector index from the configured schema files."""
        schemas = self.settings.schemas
        return await self.vector_index.build(schemas.entities_path, schemas.dms_path)

    async def _ensure_index(self) -> None:
        if not self.vector_index.is_built:
            await self.rebuild_index()

    async def retrieve(self, question: str) -> list[ScoredChunk] | None:
        """
        Top-k chunks for question, or None when retrieval is unavailable.

        Embedding failures are logged and reported as None so callers fall
        back to the keyword router.
        """
        if self.embeddings_disabled:
            return None
        try:
            await self._ensure_index()
            return await self.vector_index.search_with_scores(
                question, k=self.settings.embeddings.top_k
            )
        except (EmbeddingError, IndexNotBuilt) as e:
            logger.warning(
                f"Retrieval unavailable, falling back to keyword routing: {e}",
                extra={"error_type": type(e).__name__},
            )
            return None

    def vector_stats(self) -> dict[str, Any]:
        return self.vector_index.stats()

    async def vector_query(self, text: str) -> list[VectorHit]:
        """Inspect retrieval; empty when embeddings are disabled."""
        if self.embeddings_disabled:
            return []
        await self._ensure_index()
        hits = await self.vector_index.search_with_scores(text, k=self.settings.embeddings.top_k)
        return [
            VectorHit(
                score=hit.score,
                filename=hit.chunk.filename,
                content=hit.chunk.text[:VECTOR_CONTENT_PREVIEW] + "...",
                db=hit.chunk.source_database,
            )
            for hit in hits
        ]

    # ========================================================================
    # Generation
    # ========================================================================

    async def generate_sql(
        self, question: str, target: TargetDatabase | None = None
    ) -> GeneratedSQL:
        """
        Route and generate SQL for question.

        Raises:
            NoSQLProduced: If the model returned an empty statement
            PipelineTimeout: If the request exceeded its time budget
        """
        return await self._bounded(self._generate_sql(question, target))

    async def _generate_sql(
        self, question: str, target: TargetDatabase | None
    ) -> GeneratedSQL:
        hits = None if target else await self.retrieve(question)

        if hits:
            chunks = [hit.chunk for hit in hits]
            target = self.classifier.classify_from_chunks(chunks)
            confidence = sum(1 for c in chunks if c.source_database == target) / len(chunks)
            plan = await self.sql_agent.generate(
                question, target, self.summaries[target], retrieved_chunks=chunks
            )
        else:
            if target is None:
                classification = self.classify(question)
                target, confidence = classification.target, classification.confidence
            else:
                confidence = 1.0
            plan = await self.sql_agent.generate(question, target, self.summaries[target])

        if not plan.sql:
            raise NoSQLProduced(question)

        return GeneratedSQL(
            question=question,
            db_name=target,
            sql=plan.sql,
            params=[],
            notes=plan.explanation,
            confidence=confidence,
        )

    async def generate_validate_execute(
        self, query: str, schema_chunks: Sequence[SchemaSnippet] = ()
    ) -> QueryResponse:
        """Generate SQL, validate it and, when enabled, execute it."""
        return await self._bounded(self._generate_validate_execute(query, schema_chunks))

    async def _generate_validate_execute(
        self, query: str, schema_chunks: Sequence[SchemaSnippet]
    ) -> QueryResponse:
        generated = await self._generate_sql(query, None)
        snippets = list(schema_chunks) or [self._summary_snippet(generated.db_name)]
        validation = await self.validator.validate(
            query, snippets, generated.sql, generated.params
        )

        executed = None
        if self.settings.database.execute_automatically:
            executed = await self._execute_validated(generated, validation)

        return QueryResponse(
            generated=GeneratedPayload(
                db_name=generated.db_name,
                sql=generated.sql,
                params=generated.params,
                notes=generated.notes,
                confidence=generated.confidence,
            ),
            validation=validation,
            executed=executed,
        )

    async def _execute_validated(
        self, generated: GeneratedSQL, validation: ValidationResult
    ) -> dict[str, Any]:
        choice = self.validator.choose_sql(generated.sql, generated.params, validation)
        if choice is None:
            return {"error": "Validation failed; query not executed (strict validation mode)"}

        sql, params = choice
        try:
            sql = self.validator.enforce_policy(sql)
        except SQLPolicyError as e:
            return {"error": str(e)}

        result = await self.executor.execute(generated.db_name, sql, params)
        if not result.succeeded:
            return {"error": result.error}
        executed: dict[str, Any] = {"rows": result.rows, "rowCount": result.row_count}
        if result.diagnostics:
            executed["diagnostics"] = result.diagnostics
        return executed

    def _summary_snippet(self, target: TargetDatabase) -> SchemaSnippet:
        path = (
            self.settings.schemas.entities_path
            if target == TargetDatabase.ENTITIES
            else self.settings.schemas.dms_path
        )
        return SchemaSnippet(filename=path.name, content=self.summaries[target])

    async def plan_query(
        self,
        question: str,
        corrections: Sequence[CorrectionFeedback] = (),
        target: TargetDatabase | None = None,
    ) -> QueryPlan:
        """Self-correcting plan for question; always returns a plan."""
        resolved = target or self.classify(question).target
        return await self._bounded(
            self.planner.plan(question, resolved, self.summaries[resolved], corrections)
        )

    async def analyze(self, question: str) -> AnalysisResult:
        """Which database answers question, with an answer outline."""
        return await self._bounded(self._analyze(question))

    async def _analyze(self, question: str) -> AnalysisResult:
        hits = await self.retrieve(question)
        if hits:
            return await self.analyst.analyze(question, chunks=[hit.chunk for hit in hits])
        return await self.analyst.analyze(question, summaries=self.summaries)

    async def database_health(self) -> dict[str, bool]:
        return await self.executor.health_check()


def build_pipeline(
    settings: Settings,
    llm_provider: BaseLLMProvider | None = None,
    embedder: BaseEmbedder | None = None,
    connectors: dict[TargetDatabase, BaseConnector] | None = None,
) -> QueryPipeline:
    """
    Construct every long-lived service once.

    Missing model credentials are allowed; model-backed operations then
    raise AIServiceNotConfigured per request.

    Raises:
        SchemaFileNotFound: If either schema file (and its fallback) is missing
    """
    schemas = settings.schemas
    catalogs = load_schemas(schemas.entities_path, schemas.dms_path, schemas.fallback_extension)

    llm = llm_provider or LLMProviderFactory.create_optional_provider(settings.llm)
    prompts = PromptLoader()
    llm_settings = settings.llm
    pipeline_settings = settings.pipeline

    vector_index = SchemaVectorIndex(
        embedder=embedder or create_embedder(settings),
        disabled=settings.embeddings.disabled,
        chunk_size=settings.embeddings.chunk_size,
        fallback_extension=schemas.fallback_extension,
    )

    if connectors is None:
        executor = ExecutorAgent.from_settings(
            settings.database, max_result_limit=pipeline_settings.max_result_limit
        )
    else:
        executor = ExecutorAgent(
            connectors=connectors,
            max_result_limit=pipeline_settings.max_result_limit,
            timeout=settings.database.query_timeout,
        )

    pipeline = QueryPipeline(
        settings=settings,
        catalogs=catalogs,
        vector_index=vector_index,
        classifier=ClassifierAgent(),
        sql_agent=SQLAgent(
            llm_provider=llm,
            prompt_loader=prompts,
            temperature=llm_settings.temperature,
            max_tokens=llm_settings.sql_max_tokens,
            max_result_limit=pipeline_settings.max_result_limit,
        ),
        validator=ValidatorAgent(
            llm_provider=llm,
            prompt_loader=prompts,
            mode=pipeline_settings.validation_mode,
            max_tokens=llm_settings.validator_max_tokens,
            max_chunks=pipeline_settings.validator_max_chunks,
        ),
        planner=SelfCorrectingPlanner(
            llm_provider=llm,
            prompt_loader=prompts,
            max_retries=pipeline_settings.max_retries,
            max_result_limit=pipeline_settings.max_result_limit,
            temperature=llm_settings.temperature,
            max_tokens=llm_settings.planner_max_tokens,
        ),
        executor=executor,
        analyst=AnalystAgent(
            llm_provider=llm,
            prompt_loader=prompts,
            temperature=llm_settings.temperature,
            max_tokens=llm_settings.analysis_max_tokens,
        ),
    )
    logger.info(
        "Query pipeline built",
        extra={
            "llm_configured": llm is not None,
            "embeddings_disabled": settings.embeddings.disabled,
            "execute_automatically": settings.database.execute_automatically,
            "validation_mode": pipeline_settings.validation_mode,
        },
    )
    return pipeline
