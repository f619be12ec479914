"""
Query Routes

Classification, SQL generation, validation/execution, self-correcting
planning and answer analysis. Every endpoint rejects an empty question
with 400 before any service is touched.
"""

import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from querypilot.api.dependencies import get_pipeline
from querypilot.models.api import (
    ClassifyResponse,
    GenerateSQLResponse,
    NaturalQueryRequest,
    QueryRequest,
    QueryResponse,
    QuestionRequest,
)
from querypilot.models.query import AnalysisResult, QueryPlan
from querypilot.pipeline.orchestrator import QueryPipeline

logger = logging.getLogger(__name__)

router = APIRouter()


def _missing(field: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": f"{field} required"},
    )


@router.post("/classify", response_model=ClassifyResponse)
async def classify(
    request: QuestionRequest,
    pipeline: QueryPipeline = Depends(get_pipeline),
) -> ClassifyResponse | JSONResponse:
    """Route a question to entities or DMS without calling the model."""
    question = request.question.strip()
    if not question:
        return _missing("question")

    result = pipeline.classify(question)
    return ClassifyResponse(
        question=question,
        target=result.target.value,
        confidence=result.confidence,
        reason=result.reason,
        candidate_tables=result.candidate_tables,
    )


async def _generate(request: QuestionRequest, pipeline: QueryPipeline):
    question = request.question.strip()
    if not question:
        return _missing("question")

    generated = await pipeline.generate_sql(question, target=request.target)
    return GenerateSQLResponse(
        question=question,
        db_name=generated.db_name,
        sql=generated.sql,
        params=generated.params,
        notes=generated.notes,
    )


@router.post("/sql", response_model=GenerateSQLResponse)
async def generate_sql(
    request: QuestionRequest,
    pipeline: QueryPipeline = Depends(get_pipeline),
) -> GenerateSQLResponse | JSONResponse:
    """
    Generate SQL for a question.

    Uses retrieved schema chunks when embeddings are enabled, otherwise the
    keyword router and the target's schema summary.
    """
    return await _generate(request, pipeline)


@router.post("/sql-embed", response_model=GenerateSQLResponse)
async def generate_sql_embed(
    request: QuestionRequest,
    pipeline: QueryPipeline = Depends(get_pipeline),
) -> GenerateSQLResponse | JSONResponse:
    """Same contract as /sql; kept for existing clients."""
    return await _generate(request, pipeline)


@router.post("/ai/query", response_model=QueryResponse)
async def generate_validate_execute(
    request: QueryRequest,
    pipeline: QueryPipeline = Depends(get_pipeline),
) -> QueryResponse | JSONResponse:
    """Generate, validate and (when enabled) execute SQL."""
    query = request.query.strip()
    if not query:
        return _missing("query")
    return await pipeline.generate_validate_execute(query, request.schema_chunks)


@router.post("/natural-query", response_model=QueryPlan)
async def natural_query(
    request: NaturalQueryRequest,
    pipeline: QueryPipeline = Depends(get_pipeline),
) -> QueryPlan | JSONResponse:
    """
    Self-correcting query plan.

    corrections carries earlier {sql, error} pairs from failed executions;
    they are replayed verbatim to the model.
    """
    question = request.question.strip()
    if not question:
        return _missing("question")

    plan = await pipeline.plan_query(question, request.corrections, target=request.target)
    if not plan.success_status:
        logger.info(f"Planner returned a terminal plan: {plan.explanation}")
    return plan


@router.post("/ai/answer", response_model=AnalysisResult)
async def answer(
    request: QuestionRequest,
    pipeline: QueryPipeline = Depends(get_pipeline),
) -> AnalysisResult | JSONResponse:
    """Which database answers the question, with an answer outline."""
    question = request.question.strip()
    if not question:
        return _missing("question")
    return await pipeline.analyze(question)
