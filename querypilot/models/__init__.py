"""
QueryPilot Models

Pydantic models shared by agents, the pipeline and the API.
"""

from querypilot.models.agent import (
    AgentError,
    AgentMetadata,
    AIServiceNotConfigured,
    ConfigurationError,
    EmptyAIResponse,
    InvalidAIJson,
    LLMError,
    MissingResponseFields,
    ModelOutputError,
)
from querypilot.models.query import (
    AnalysisPlan,
    AnalysisResult,
    ClassificationResult,
    CorrectionFeedback,
    EmbeddedChunk,
    ExecutionResult,
    GeneratedSQL,
    QueryPlan,
    SchemaCatalog,
    SchemaChunk,
    SchemaSnippet,
    ScoredChunk,
    TargetDatabase,
    ValidationResult,
)

__all__ = [
    "AgentError",
    "AgentMetadata",
    "AIServiceNotConfigured",
    "ConfigurationError",
    "EmptyAIResponse",
    "InvalidAIJson",
    "LLMError",
    "MissingResponseFields",
    "ModelOutputError",
    "AnalysisPlan",
    "AnalysisResult",
    "ClassificationResult",
    "CorrectionFeedback",
    "EmbeddedChunk",
    "ExecutionResult",
    "GeneratedSQL",
    "QueryPlan",
    "SchemaCatalog",
    "SchemaChunk",
    "SchemaSnippet",
    "ScoredChunk",
    "TargetDatabase",
    "ValidationResult",
]
