"""
Knowledge Module

Schema chunking, embeddings and the in-memory vector index used for
retrieval-based routing and prompting.
"""

from querypilot.knowledge.chunking import chunk_schema_file, chunk_text
from querypilot.knowledge.embeddings import (
    AzureEmbedder,
    BaseEmbedder,
    EmbedderNotReady,
    EmbeddingError,
    EmbeddingProviderError,
    EmbeddingsDisabled,
    LocalEmbedder,
    create_embedder,
)
from querypilot.knowledge.vectors import (
    IndexNotBuilt,
    SchemaVectorIndex,
    cosine_scores,
    cosine_similarity,
)

__all__ = [
    "AzureEmbedder",
    "BaseEmbedder",
    "EmbedderNotReady",
    "EmbeddingError",
    "EmbeddingProviderError",
    "EmbeddingsDisabled",
    "IndexNotBuilt",
    "LocalEmbedder",
    "SchemaVectorIndex",
    "chunk_schema_file",
    "chunk_text",
    "cosine_scores",
    "cosine_similarity",
    "create_embedder",
]
