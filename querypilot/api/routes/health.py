"""
Health Check Routes

Liveness of the service and reachability of the target databases.
"""

import logging
from datetime import UTC, datetime

from fastapi import APIRouter, Depends, status

from querypilot import __version__
from querypilot.api.dependencies import get_pipeline
from querypilot.models.api import HealthResponse
from querypilot.pipeline.orchestrator import QueryPipeline

logger = logging.getLogger(__name__)

router = APIRouter()
api_router = APIRouter()


@router.get("/health", response_model=HealthResponse, status_code=status.HTTP_200_OK)
async def health() -> HealthResponse:
    """
    Basic liveness check.

    Returns 200 OK whenever the application is running.
    """
    return HealthResponse(
        status="healthy",
        version=__version__,
        timestamp=datetime.now(UTC).isoformat(),
    )


@api_router.get("/db-health")
async def database_health(pipeline: QueryPipeline = Depends(get_pipeline)) -> dict[str, bool]:
    """``SELECT 1`` against each configured database."""
    checks = await pipeline.database_health()
    if not all(checks.values()):
        logger.warning(f"Database health degraded: {checks}")
    return checks
