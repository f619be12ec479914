"""
Schema Vector Index

In-memory similarity search over schema chunks from both databases.

The index is rebuilt wholesale by build(); there is no incremental update.
Builds are serialised with a lock and the finished index is swapped in with
a single assignment, so search() only ever sees a complete index.
"""

import asyncio
import logging
from collections.abc import Sequence
from pathlib import Path

import numpy as np

from querypilot.database.catalog import resolve_schema_path
from querypilot.knowledge.chunking import chunk_schema_file
from querypilot.knowledge.embeddings import BaseEmbedder, EmbeddingsDisabled
from querypilot.models.query import EmbeddedChunk, ScoredChunk, TargetDatabase

logger = logging.getLogger(__name__)

COSINE_EPSILON = 1e-9


class VectorIndexError(Exception):
    """Raised when vector index operations fail."""

    pass


class IndexNotBuilt(VectorIndexError):
    """search() was called before build()."""

    def __init__(self):
        super().__init__("Vector index not built. Call build() first.")


def cosine_scores(query: Sequence[float], matrix: np.ndarray) -> np.ndarray:
    """Cosine similarity of query against every row of matrix, stabilised by a small epsilon."""
    query_vector = np.asarray(query, dtype=np.float32)
    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query_vector)
    return (matrix @ query_vector) / (norms + COSINE_EPSILON)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Dot product over the product of L2 norms."""
    return float(cosine_scores(a, np.asarray([b], dtype=np.float32))[0])


class SchemaVectorIndex:
    """
    Embedded schema chunks with cosine search.

    Usage:
        index = SchemaVectorIndex(embedder=LocalEmbedder())
        await index.build("entities_prod_definition.txt", "dms_prod_definition.txt")
        chunks = await index.search("tickets assigned to John", k=5)
    """

    def __init__(
        self,
        embedder: BaseEmbedder,
        disabled: bool = False,
        chunk_size: int = 4000,
        fallback_extension: str = ".ttxt",
    ):
        self.embedder = embedder
        self.disabled = disabled
        self.chunk_size = chunk_size
        self.fallback_extension = fallback_extension
        # (chunks, embedding matrix) replaced as one tuple by build()
        self._snapshot: tuple[list[EmbeddedChunk], np.ndarray] | None = None
        self._build_lock = asyncio.Lock()

    @property
    def is_built(self) -> bool:
        return self._snapshot is not None

    @property
    def size(self) -> int:
        return len(self._snapshot[0]) if self._snapshot else 0

    async def build(self, entities_file: str | Path, dms_file: str | Path) -> int:
        """
        Chunk and embed both schema files, replacing any previous index.

        Returns:
            Number of chunks indexed

        Raises:
            SchemaFileNotFound: If either file (and its fallback) is missing
            EmbedderNotReady / EmbeddingProviderError: If embedding fails
        """
        async with self._build_lock:
            entities_path = resolve_schema_path(entities_file, self.fallback_extension)
            dms_path = resolve_schema_path(dms_file, self.fallback_extension)

            if self.disabled:
                logger.info("Embeddings disabled; vector index left empty")
                self._snapshot = ([], np.empty((0, 0), dtype=np.float32))
                return 0

            chunks = chunk_schema_file(
                entities_path, TargetDatabase.ENTITIES, self.chunk_size
            ) + chunk_schema_file(dms_path, TargetDatabase.DMS, self.chunk_size)

            vectors = await self.embedder.embed([chunk.text for chunk in chunks])
            embedded = [
                EmbeddedChunk(**chunk.model_dump(), embedding=tuple(vector))
                for chunk, vector in zip(chunks, vectors, strict=True)
            ]

            if embedded:
                matrix = np.asarray(vectors, dtype=np.float32)
            else:
                matrix = np.empty((0, 0), dtype=np.float32)
            self._snapshot = (embedded, matrix)
            logger.info(
                f"Vector index built with {len(embedded)} chunks",
                extra={"chunks": len(embedded), "method": self.embedder.method},
            )
            return len(embedded)

    async def search_with_scores(self, query: str, k: int = 5) -> list[ScoredChunk]:
        """
        Return the k chunks most similar to query, highest score first.

        No score threshold is applied: a non-empty index always yields
        min(k, size) results.

        Raises:
            EmbeddingsDisabled: If retrieval is switched off
            IndexNotBuilt: If build() has not completed
        """
        if self.disabled:
            raise EmbeddingsDisabled()
        snapshot = self._snapshot
        if snapshot is None:
            raise IndexNotBuilt()
        chunks, matrix = snapshot
        if not chunks:
            return []

        query_vector = (await self.embedder.embed([query]))[0]
        scores = cosine_scores(query_vector, matrix)
        order = np.argsort(-scores, kind="stable")[:k]
        return [ScoredChunk(chunk=chunks[i], score=float(scores[i])) for i in order]

    async def search(self, query: str, k: int = 5) -> list[EmbeddedChunk]:
        """Like search_with_scores, without the scores."""
        return [hit.chunk for hit in await self.search_with_scores(query, k)]

    def stats(self) -> dict[str, object]:
        """Counts and readiness for health endpoints."""
        return {
            "docs_loaded": self.size,
            "embedder_ready": self.embedder.ready,
            "embeddings_disabled": self.disabled,
            "method": self.embedder.method,
        }
