"""
FastAPI Application

Main FastAPI application for QueryPilot with:
- Lifespan management building the query pipeline once per process
- CORS configured from CORS_ORIGINS for the dashboard
- Exception handlers mapping the error taxonomy to HTTP statuses
- Query, vector and health routers

Usage:
    uvicorn querypilot.api.main:app --port 5050
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from querypilot import __version__
from querypilot.api.routes import health, query, vector
from querypilot.config import Settings, get_settings
from querypilot.connectors.base import ConnectionError as ConnectorConnectionError
from querypilot.connectors.base import QueryError
from querypilot.database.catalog import SchemaFileNotFound
from querypilot.database.policy import SQLPolicyError
from querypilot.knowledge.embeddings import EmbeddingError
from querypilot.models.agent import AgentError, ConfigurationError
from querypilot.pipeline.orchestrator import NoSQLProduced, PipelineTimeout, build_pipeline

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Build the pipeline on startup and release it on shutdown.

    A pipeline already placed on app.state (tests, embedding) is used as-is
    and left for its owner to close.
    """
    owns_pipeline = getattr(app.state, "pipeline", None) is None
    logger.info("Starting QueryPilot API server...")

    if owns_pipeline:
        settings: Settings = app.state.settings
        logger.info("Initializing query pipeline...")
        pipeline = build_pipeline(settings)
        await pipeline.start()
        app.state.pipeline = pipeline

    logger.info("QueryPilot API server started successfully")
    try:
        yield
    finally:
        logger.info("Shutting down QueryPilot API server...")
        if owns_pipeline and app.state.pipeline is not None:
            await app.state.pipeline.close()
            app.state.pipeline = None
            logger.info("Query pipeline closed")


# ============================================================================
# Exception handlers
# ============================================================================


async def agent_error_handler(request: Request, exc: AgentError) -> JSONResponse:
    """Unhandled agent failure; the recoverable flag tells the client whether to retry."""
    logger.error(
        f"Agent error: {exc}",
        extra={"agent_error": exc.to_dict()},
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "agent_error",
            "message": exc.message,
            "agent": exc.agent,
            "recoverable": exc.recoverable,
        },
    )


async def configuration_error_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
    """Missing credentials: surface the root cause."""
    logger.error(f"Configuration error: {exc.message}", extra={"agent": exc.agent})
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": exc.message, "agent": exc.agent, "recoverable": False},
    )


async def no_sql_handler(request: Request, exc: NoSQLProduced) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"error": exc.message, "question": exc.question},
    )


async def timeout_handler(request: Request, exc: PipelineTimeout) -> JSONResponse:
    logger.error(f"Request cancelled: {exc.message}")
    return JSONResponse(
        status_code=status.HTTP_504_GATEWAY_TIMEOUT,
        content={"error": "timeout", "message": exc.message},
    )


async def schema_not_found_handler(request: Request, exc: SchemaFileNotFound) -> JSONResponse:
    logger.error(f"Schema file missing: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "schema_not_found", "message": str(exc)},
    )


async def policy_error_handler(request: Request, exc: SQLPolicyError) -> JSONResponse:
    """Generated SQL violated the read-only policy; never repaired."""
    logger.warning(f"SQL policy violation ({exc.rule}): {exc}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"error": "sql_policy_violation", "message": str(exc), "rule": exc.rule},
    )


async def embedding_error_handler(request: Request, exc: EmbeddingError) -> JSONResponse:
    logger.error(f"Embedding error: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"error": "embedding_error", "message": str(exc)},
    )


async def connection_error_handler(request: Request, exc: ConnectorConnectionError) -> JSONResponse:
    """A target database refused the connection (503, details only in the log)."""
    logger.error(f"Target database unreachable: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "error": "connection_error",
            "message": "Target database is unavailable.",
        },
    )


async def query_error_handler(request: Request, exc: QueryError) -> JSONResponse:
    """The database rejected a statement that passed the SQL policy."""
    logger.error(f"Statement failed on the target database: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "query_error", "message": str(exc)},
    )


EXCEPTION_HANDLERS = {
    AgentError: agent_error_handler,
    ConfigurationError: configuration_error_handler,
    NoSQLProduced: no_sql_handler,
    PipelineTimeout: timeout_handler,
    SchemaFileNotFound: schema_not_found_handler,
    SQLPolicyError: policy_error_handler,
    EmbeddingError: embedding_error_handler,
    ConnectorConnectionError: connection_error_handler,
    QueryError: query_error_handler,
}


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the FastAPI application."""
    settings = settings or get_settings()

    app = FastAPI(
        title=f"{settings.app_name} API",
        description="Natural-language to SQL over the entities and DMS databases",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.pipeline = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    for exc_class, handler in EXCEPTION_HANDLERS.items():
        app.add_exception_handler(exc_class, handler)

    app.include_router(health.router, tags=["health"])
    app.include_router(health.api_router, prefix="/api", tags=["health"])
    app.include_router(query.router, prefix="/api", tags=["query"])
    app.include_router(vector.router, prefix="/api", tags=["vector"])

    @app.get("/")
    async def root() -> dict[str, str]:
        """Service name, version and docs location."""
        return {
            "name": f"{settings.app_name} API",
            "version": __version__,
            "docs": "/docs",
        }

    return app


app = create_app()
