"""
AI Service

Embedding providers behind one async interface:

    - OpenAIEmbeddingProvider: OpenAI embeddings API (production default).
    - LocalEmbeddingProvider: sentence-transformers model, run in a thread.
    - MockEmbeddingProvider: deterministic vectors for dev/test (no API
      costs, no network dependency).

Every provider truncates input to ``EMBEDDING_MAX_CHARS`` before submission
and classifies failures as ``TransientProviderError`` (retryable) or
``ProviderError`` (not retryable).
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import random
from abc import ABC, abstractmethod
from functools import lru_cache
from typing import Any, ClassVar

import openai
from openai import AsyncOpenAI

from noteweave.core.config import settings
from noteweave.core.errors import ConfigurationError, ProviderError, TransientProviderError

logger = logging.getLogger(__name__)

# Output size of the sentence-transformers models the local provider knows
LOCAL_MODEL_DIMENSIONS: dict[str, int] = {
    "all-MiniLM-L6-v2": 384,
    "all-MiniLM-L12-v2": 384,
    "all-mpnet-base-v2": 768,
}


class EmbeddingProvider(ABC):
    """
    Text embedding provider.

    Subclasses implement ``_embed_many``; truncation and batching are
    handled here so every provider behaves the same at the edges.
    """

    name: ClassVar[str] = "base"

    def __init__(
        self,
        dimension: int | None = None,
        max_chars: int | None = None,
        batch_size: int | None = None,
    ) -> None:
        self.dimension = dimension or settings.EMBEDDING_DIMENSION
        self.max_chars = max_chars or settings.EMBEDDING_MAX_CHARS
        self.batch_size = batch_size or settings.EMBEDDING_BATCH_SIZE

    def prepare(self, text: str) -> str:
        """Deterministic truncation to the provider's input budget."""
        return text[: self.max_chars]

    async def embed(self, text: str) -> list[float]:
        """Embed a single text."""
        vectors = await self._embed_many([self.prepare(text)])
        if not vectors:
            raise ProviderError(f"{self.name}: no embedding returned")
        return vectors[0]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed many texts, split into provider-sized batches."""
        prepared = [self.prepare(t) for t in texts]
        vectors: list[list[float]] = []
        for start in range(0, len(prepared), self.batch_size):
            vectors.extend(await self._embed_many(prepared[start : start + self.batch_size]))
        return vectors

    @abstractmethod
    async def _embed_many(self, texts: list[str]) -> list[list[float]]:
        """Embed one provider-sized batch of already-truncated texts."""


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """
    OpenAI embeddings (``text-embedding-3-small`` by default).

    Error classification:
        - RateLimitError, APIConnectionError (incl. timeouts), 5xx
          -> TransientProviderError
        - any other API error (e.g. 400 bad request) -> ProviderError
    """

    name = "openai"

    def __init__(
        self,
        api_key: str,
        model: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.model = model or settings.EMBEDDING_MODEL
        self._client = AsyncOpenAI(api_key=api_key)

    async def _embed_many(self, texts: list[str]) -> list[list[float]]:
        # OpenAI recommends single-line input
        inputs = [t.replace("\n", " ") for t in texts]
        request: dict[str, Any] = {"input": inputs, "model": self.model}
        if self.model.startswith("text-embedding-3"):
            request["dimensions"] = self.dimension

        try:
            response = await self._client.embeddings.create(**request)
        except (openai.RateLimitError, openai.APIConnectionError) as e:
            logger.warning("OpenAI transient error: %s", e)
            raise TransientProviderError(f"OpenAI unavailable: {e}") from e
        except openai.APIStatusError as e:
            if e.status_code >= 500:
                logger.warning("OpenAI server error %d: %s", e.status_code, e)
                raise TransientProviderError(f"OpenAI server error: {e}") from e
            logger.error("OpenAI rejected embedding request (%d): %s", e.status_code, e)
            raise ProviderError(f"OpenAI request rejected: {e}") from e

        ordered = sorted(response.data, key=lambda item: item.index)
        return [list(item.embedding) for item in ordered]


class LocalEmbeddingProvider(EmbeddingProvider):
    """
    Local sentence-transformers model (``all-MiniLM-L6-v2``, 384 dims).

    The model is loaded lazily on first use and cached as a class-level
    singleton. Inference is CPU-bound and runs via ``asyncio.to_thread``.
    The dimension is the model's own, not ``EMBEDDING_DIMENSION``; models
    missing from ``LOCAL_MODEL_DIMENSIONS`` fall back to the setting and are
    checked once loaded.
    """

    name = "local"
    _model: ClassVar[Any] = None

    def __init__(self, model_name: str | None = None, **kwargs: Any) -> None:
        model_name = model_name or settings.LOCAL_EMBEDDING_MODEL
        kwargs.setdefault("dimension", LOCAL_MODEL_DIMENSIONS.get(model_name))
        super().__init__(**kwargs)
        self.model_name = model_name

    def _get_model(self) -> Any:
        """
        Get or lazily initialize the sentence-transformers model.

        The import is deferred so that ``sentence_transformers`` is not
        required at module-import time (keeps test collection fast).
        """
        cls = type(self)
        if cls._model is None:
            from sentence_transformers import SentenceTransformer

            logger.info("Loading embedding model: %s ...", self.model_name)
            model = SentenceTransformer(self.model_name)
            native = model.get_sentence_embedding_dimension()
            if native != self.dimension:
                raise ProviderError(
                    f"Model {self.model_name} emits {native}-dim vectors, "
                    f"expected {self.dimension}"
                )
            cls._model = model
            logger.info("Model loaded (dim=%d)", native)
        return cls._model

    def _encode_sync(self, texts: list[str]) -> list[list[float]]:
        """Synchronous batch encoding. Always call via ``asyncio.to_thread``."""
        model = self._get_model()
        embeddings = model.encode(texts, normalize_embeddings=True)
        # numpy ndarray -> native Python lists for pgvector compatibility
        result: list[list[float]] = embeddings.tolist()
        return result

    async def _embed_many(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        try:
            return await asyncio.to_thread(self._encode_sync, texts)
        except Exception as e:
            raise ProviderError(f"Local embedding failed: {e}") from e

    @classmethod
    def reset(cls) -> None:
        """Release the model from memory."""
        cls._model = None
        logger.info("Local embedding model released")


class MockEmbeddingProvider(EmbeddingProvider):
    """
    Deterministic pseudo-random vectors seeded from the text.

    Identical text always maps to the identical vector, which keeps
    re-embedding idempotent in dev and test environments.
    """

    name = "mock"

    async def _embed_many(self, texts: list[str]) -> list[list[float]]:
        return [self._vector_for(t) for t in texts]

    def _vector_for(self, text: str) -> list[float]:
        seed = int.from_bytes(hashlib.sha256(text.encode("utf-8")).digest()[:8], "big")
        rng = random.Random(seed)
        return [rng.random() for _ in range(self.dimension)]


@lru_cache(maxsize=1)
def get_embedding_provider() -> EmbeddingProvider:
    """
    Provider selected by configuration.

    Falls back to mock mode when the OpenAI provider is selected but
    ``OPENAI_API_KEY`` is missing or set to 'mock'.
    """
    if settings.EMBEDDING_PROVIDER == "local":
        return LocalEmbeddingProvider()

    api_key = settings.OPENAI_API_KEY
    if settings.EMBEDDING_PROVIDER == "mock" or not api_key or api_key.lower() == "mock":
        logger.info("Using mock embedding provider")
        return MockEmbeddingProvider()

    return OpenAIEmbeddingProvider(api_key=api_key)


def check_embedding_dimension(
    provider: EmbeddingProvider, expected: int | None = None
) -> None:
    """
    Fail fast when the provider's vectors cannot fit the vector column.

    The ``note_embeddings.embedding`` column is created with
    ``EMBEDDING_DIMENSION``; a provider emitting anything else would fail
    every upsert and leave every note ``failed``.

    Raises:
        ConfigurationError: On a dimension mismatch.
    """
    expected = expected or settings.EMBEDDING_DIMENSION
    if provider.dimension != expected:
        raise ConfigurationError(
            f"{provider.name} embedding provider emits {provider.dimension}-dim vectors "
            f"but EMBEDDING_DIMENSION is {expected}",
            details={"provider": provider.name, "dimension": provider.dimension},
        )
