"""
Vector Routes

Inspection endpoints for the schema retrieval index.
"""

import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from querypilot.api.dependencies import get_pipeline
from querypilot.models.api import VectorHealthResponse, VectorHit
from querypilot.pipeline.orchestrator import QueryPipeline

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/vector/query", response_model=list[VectorHit])
async def vector_query(
    text: str | None = None,
    pipeline: QueryPipeline = Depends(get_pipeline),
) -> list[VectorHit] | JSONResponse:
    """Top-k schema chunks for text; empty when embeddings are disabled."""
    query = (text or "").strip()
    if not query:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Missing query parameter"},
        )
    return await pipeline.vector_query(query)


@router.get("/vector-health", response_model=VectorHealthResponse)
async def vector_health(pipeline: QueryPipeline = Depends(get_pipeline)) -> VectorHealthResponse:
    """Index size and embedder readiness."""
    return VectorHealthResponse(status="healthy", **pipeline.vector_stats())


@router.post("/vector/rebuild")
async def rebuild_vectors(pipeline: QueryPipeline = Depends(get_pipeline)) -> dict[str, object]:
    """Re-chunk and re-embed both schema files."""
    count = await pipeline.rebuild_index()
    logger.info(f"Vector index rebuilt via API: {count} chunks")
    return {"status": "rebuilt", "docs_loaded": count}
