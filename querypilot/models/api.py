"""
API Request/Response Models

Pydantic models for FastAPI endpoints.
"""

from typing import Any, Literal

from pydantic import BaseModel, Field

from querypilot.models.query import (
    CorrectionFeedback,
    SchemaSnippet,
    TargetDatabase,
    ValidationResult,
)


class QuestionRequest(BaseModel):
    """Body shared by the classify, answer and SQL endpoints."""

    question: str = Field(default="", description="User's natural language question")
    target: TargetDatabase | None = Field(
        None, description="Optional pre-resolved target database"
    )

    model_config = {
        "json_schema_extra": {
            "example": {"question": "list tickets assigned to John with TK188089"}
        }
    }


class ClassifyResponse(BaseModel):
    """Response for the classify endpoint."""

    question: str
    target: Literal["entities", "dms", "unknown"]
    confidence: float
    reason: str
    candidate_tables: list[str] = Field(
        default_factory=list, serialization_alias="candidateTables"
    )


class GenerateSQLResponse(BaseModel):
    """Response for the SQL endpoints."""

    question: str
    db_name: TargetDatabase
    sql: str
    params: list[Any] = Field(default_factory=list)
    notes: str = ""


class QueryRequest(BaseModel):
    """Body for the generate + validate + execute endpoint."""

    query: str = Field(default="", description="User's natural language question")
    schema_chunks: list[SchemaSnippet] = Field(default_factory=list)


class GeneratedPayload(BaseModel):
    """The generated part of a query response."""

    db_name: TargetDatabase
    sql: str
    params: list[Any] = Field(default_factory=list)
    notes: str = ""
    confidence: float = 0.0


class QueryResponse(BaseModel):
    """Response for the generate + validate + execute endpoint."""

    generated: GeneratedPayload
    validation: ValidationResult
    executed: dict[str, Any] | None = None


class NaturalQueryRequest(BaseModel):
    """Body for the self-correcting planner endpoint."""

    question: str = Field(default="", description="User's natural language question")
    corrections: list[CorrectionFeedback] = Field(
        default_factory=list,
        description="Earlier SQL attempts and the errors they produced",
    )
    target: TargetDatabase | None = None


class VectorHit(BaseModel):
    """One vector search hit for inspection."""

    score: float
    filename: str
    content: str
    db: TargetDatabase


class VectorHealthResponse(BaseModel):
    """Vector index statistics."""

    status: str
    vector_service: str = "integrated"
    docs_loaded: int
    embedder_ready: bool
    embeddings_disabled: bool
    method: str


class HealthResponse(BaseModel):
    """Liveness check response."""

    status: str
    version: str
    timestamp: str


class ErrorResponse(BaseModel):
    """Error body returned by the API."""

    error: str
    message: str | None = None
