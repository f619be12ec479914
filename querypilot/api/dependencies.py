"""FastAPI dependencies for request handlers."""

from fastapi import HTTPException, Request, status

from querypilot.pipeline.orchestrator import QueryPipeline


def get_pipeline(request: Request) -> QueryPipeline:
    """The pipeline built by the application lifespan."""
    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Pipeline not initialized",
        )
    return pipeline
