"""
Embedding Providers

One contract, two interchangeable strategies chosen once per process:

- LocalEmbedder: Chroma's bundled all-MiniLM-L6-v2 ONNX model, one text
  per call, run off the event loop.
- AzureEmbedder: Azure OpenAI embeddings deployment, one batched call.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from typing import Any

from openai import AsyncAzureOpenAI

from querypilot.config import Settings

logger = logging.getLogger(__name__)


class EmbeddingError(Exception):
    """Raised when text cannot be embedded."""

    pass


class EmbeddingsDisabled(EmbeddingError):
    """Retrieval is switched off for this process."""

    def __init__(self, message: str = "Embeddings disabled"):
        super().__init__(message)


class EmbedderNotReady(EmbeddingError):
    """The embedding model could not be initialised."""

    pass


class EmbeddingProviderError(EmbeddingError):
    """The embedding call failed; wraps the provider's message."""

    pass


class BaseEmbedder(ABC):
    """Turns texts into vectors."""

    method: str = "base"

    @property
    @abstractmethod
    def ready(self) -> bool:
        """Whether the embedder can serve requests right now."""

    @abstractmethod
    async def embed(self, texts: Sequence[str]) -> list[list[float]]:
        """
        Embed texts, preserving order.

        Raises:
            EmbedderNotReady: If the model could not be initialised
            EmbeddingProviderError: If the embedding call failed
        """


class LocalEmbedder(BaseEmbedder):
    """
    Local sentence embeddings through chromadb's DefaultEmbeddingFunction.

    The model is created lazily on first use. Each text is embedded in its
    own call so one oversized input cannot fail a whole batch.
    """

    method = "local"

    def __init__(self, embedding_function: Callable[[list[str]], Any] | None = None):
        self._embedding_function = embedding_function
        self._warmed = False
        self._init_lock = asyncio.Lock()

    @property
    def ready(self) -> bool:
        return self._embedding_function is not None and self._warmed

    async def _ensure_function(self) -> Callable[[list[str]], Any]:
        if self._embedding_function is not None:
            return self._embedding_function

        async with self._init_lock:
            if self._embedding_function is None:
                try:
                    self._embedding_function = await asyncio.to_thread(self._create_function)
                except Exception as e:
                    logger.error(f"Failed to initialize local embedder: {e}")
                    raise EmbedderNotReady(f"Local embedder not initialized: {e}") from e
                logger.info("Local embedder initialized")
        return self._embedding_function

    @staticmethod
    def _create_function() -> Callable[[list[str]], Any]:
        from chromadb.utils.embedding_functions import DefaultEmbeddingFunction

        return DefaultEmbeddingFunction()

    async def embed(self, texts: Sequence[str]) -> list[list[float]]:
        function = await self._ensure_function()
        vectors: list[list[float]] = []
        for text in texts:
            try:
                result = await asyncio.to_thread(function, [text])
            except Exception as e:
                if not self._warmed:
                    raise EmbedderNotReady(f"Local embedder not initialized: {e}") from e
                raise EmbeddingProviderError(f"Local embedding failed: {e}") from e
            self._warmed = True
            vectors.append([float(value) for value in result[0]])
        return vectors


class AzureEmbedder(BaseEmbedder):
    """Azure OpenAI embeddings, all texts in one request."""

    method = "azure"

    def __init__(self, client: AsyncAzureOpenAI | None, deployment: str):
        self.client = client
        self.deployment = deployment

    @classmethod
    def from_settings(cls, settings: Settings) -> "AzureEmbedder":
        llm = settings.llm
        client = None
        if llm.azure_api_key and llm.azure_endpoint:
            client = AsyncAzureOpenAI(
                api_key=llm.azure_api_key,
                azure_endpoint=llm.azure_endpoint,
                api_version=llm.azure_api_version,
                timeout=float(llm.timeout),
            )
        return cls(client=client, deployment=settings.embeddings.azure_deployment)

    @property
    def ready(self) -> bool:
        return self.client is not None

    async def embed(self, texts: Sequence[str]) -> list[list[float]]:
        if self.client is None:
            raise EmbedderNotReady("Azure OpenAI not configured")
        if not texts:
            return []

        try:
            response = await self.client.embeddings.create(
                model=self.deployment,
                input=list(texts),
            )
        except Exception as e:
            logger.error(f"Azure embedding error: {e}")
            raise EmbeddingProviderError(f"Azure embedding failed: {e}") from e

        ordered = sorted(response.data, key=lambda item: item.index)
        return [list(item.embedding) for item in ordered]


def create_embedder(settings: Settings) -> BaseEmbedder:
    """Build the embedder selected by EMBEDDINGS_METHOD."""
    if settings.embeddings.method == "azure":
        return AzureEmbedder.from_settings(settings)
    return LocalEmbedder()
