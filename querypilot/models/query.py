"""
Query Pipeline Models

Typed values that flow between the catalog, retriever, agents and the
self-correcting planner. Model output is decoded into the *Payload models
with strict types so a wrong shape is rejected instead of coerced.
"""

from enum import Enum
from typing import Any

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictStr,
)


class TargetDatabase(str, Enum):
    """The two schemas a question can be routed to."""

    ENTITIES = "entities"
    DMS = "dms"


class SchemaCatalog(BaseModel):
    """Tables and columns parsed from one model definition file."""

    database: TargetDatabase
    tables: tuple[str, ...] = ()
    columns_by_table: dict[str, tuple[str, ...]] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    def has_table(self, name: str) -> bool:
        return name.lower() in {table.lower() for table in self.tables}


class SchemaChunk(BaseModel):
    """Line-aligned slice of a raw schema definition file."""

    source_database: TargetDatabase
    text: str
    filename: str
    chunk_index: int = Field(..., ge=0)

    model_config = ConfigDict(frozen=True)

    @property
    def chunk_id(self) -> str:
        return f"{self.source_database.value}-{self.chunk_index}"


class SchemaSnippet(BaseModel):
    """Named piece of schema text shown to the semantic validator."""

    filename: str
    content: str


class EmbeddedChunk(SchemaChunk):
    """Schema chunk with its embedding vector."""

    embedding: tuple[float, ...]


class ScoredChunk(BaseModel):
    """Search hit: an embedded chunk and its cosine similarity to the query."""

    chunk: EmbeddedChunk
    score: float

    model_config = ConfigDict(frozen=True)


class ClassificationResult(BaseModel):
    """Which database a question targets and why."""

    target: TargetDatabase
    confidence: float = Field(..., ge=0.0, le=1.0)
    reason: str
    candidate_tables: list[str] = Field(
        default_factory=list, serialization_alias="candidateTables"
    )

    model_config = ConfigDict(frozen=True)


class CorrectionFeedback(BaseModel):
    """One failed attempt, replayed verbatim into later prompts."""

    sql: str
    error: str

    model_config = ConfigDict(frozen=True)


class QueryPlan(BaseModel):
    """
    Generated SQL with its safety metadata.

    The generator fills sql, explanation and allows_limit. The
    self-correcting planner also sets limit (the effective outermost
    LIMIT, 0 when the statement has none), success_status and should_retry.
    """

    sql: str
    explanation: str
    allows_limit: bool = Field(
        False,
        validation_alias=AliasChoices("allows_limit", "allowsLimit"),
        serialization_alias="allowsLimit",
    )
    limit: int = 0
    success_status: bool = Field(
        True,
        validation_alias=AliasChoices("success_status", "successStatus"),
        serialization_alias="successStatus",
    )
    should_retry: bool = Field(
        False,
        validation_alias=AliasChoices("should_retry", "shouldRetry"),
        serialization_alias="shouldRetry",
    )

    model_config = ConfigDict(populate_by_name=True)


class ValidationResult(BaseModel):
    """Verdict of the semantic validator."""

    is_valid: bool
    reason: str | None = None
    corrected_sql: str | None = None
    corrected_params: list[Any] | None = None
    notes: str | None = None

    model_config = ConfigDict(extra="ignore")


class GeneratedSQL(BaseModel):
    """Routed and generated SQL for one question."""

    question: str
    db_name: TargetDatabase
    sql: str
    params: list[Any] = Field(default_factory=list)
    notes: str = ""
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)


class ExecutionResult(BaseModel):
    """Outcome of running a statement; exactly one of rows or error is set."""

    rows: list[dict[str, Any]] | None = None
    row_count: int | None = Field(None, serialization_alias="rowCount")
    error: str | None = None
    diagnostics: list[str] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.error is None


class AnalysisPlan(BaseModel):
    """Minimal plan proposed by the analyst."""

    target: TargetDatabase
    tables: list[str] = Field(default_factory=list)
    filters: list[str] = Field(default_factory=list)


class AnalysisResult(BaseModel):
    """Which database answers a question, with an outline of the answer."""

    db_name: TargetDatabase
    answer: str
    rationale: str
    plan: AnalysisPlan


# ============================================================================
# Strict decode targets for model output
# ============================================================================


class GeneratedSQLPayload(BaseModel):
    """JSON object the SQL generator must return."""

    sql: StrictStr
    explanation: StrictStr

    model_config = ConfigDict(extra="ignore")


class PlannerPayload(BaseModel):
    """JSON object the self-correcting planner must return."""

    sql: StrictStr
    explanation: StrictStr
    allows_limit: StrictBool = Field(..., alias="allowsLimit")
    success_status: StrictBool = Field(..., alias="successStatus")
    should_retry: StrictBool | None = Field(None, alias="shouldRetry")

    model_config = ConfigDict(extra="ignore")


class ValidatorPayload(BaseModel):
    """JSON object the semantic validator returns; only is_valid is required."""

    is_valid: StrictBool
    reason: str | None = None
    corrected_sql: str | None = None
    corrected_params: list[Any] | None = None
    notes: str | None = None

    model_config = ConfigDict(extra="ignore")


class AnalystPayload(BaseModel):
    """JSON object the analyst returns; every field is normalised after decoding."""

    db_name: Any = None
    answer: Any = None
    rationale: Any = None
    plan: Any = None

    model_config = ConfigDict(extra="ignore")
