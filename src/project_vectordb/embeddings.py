"""Embedding functions used to vectorize chunks and queries."""

from __future__ import annotations

import hashlib
import logging
from typing import List, Protocol, runtime_checkable

import numpy as np
import openai
from langchain_openai import OpenAIEmbeddings as _LangChainOpenAIEmbeddings

from .config import Settings, get_settings
from .errors import ConfigurationError, EmbeddingGenerationError
from .metrics import timed

LOGGER = logging.getLogger(__name__)


@runtime_checkable
class EmbeddingFunction(Protocol):
    async def generate(self, text: str) -> List[float]:
        ...


class OpenAIEmbeddingFunction:
    """OpenAI embedding client backed by LangChain's implementation."""

    def __init__(
        self,
        model: str = "text-embedding-3-small",
        api_key: str | None = None,
        *,
        settings: Settings | None = None,
    ) -> None:
        settings = settings or get_settings()
        self.model = model
        self.api_key = api_key or settings.openai_api_key

        if not self.api_key:
            raise ConfigurationError(
                "OPENAI_API_KEY environment variable must be set to use OpenAI embeddings."
            )

        self._client = _LangChainOpenAIEmbeddings(model=model, api_key=self.api_key)

    # ------------------------------------------------------------------
    async def generate(self, text: str) -> List[float]:
        try:
            with timed("embed"):
                return await self._client.aembed_query(text)
        except openai.AuthenticationError as exc:
            raise ConfigurationError(f"OpenAI rejected the configured API key: {exc}") from exc
        except Exception as exc:
            LOGGER.error("Error generating embedding with %s: %s", self.model, exc)
            raise EmbeddingGenerationError(f"Failed to generate embedding: {exc}") from exc


class OfflineEmbeddingFunction:
    """Deterministic hash-seeded unit vectors for tests and offline smoke runs."""

    def __init__(self, dimensions: int = 1536) -> None:
        if dimensions <= 0:
            raise ConfigurationError(f"Embedding dimension must be positive (got {dimensions})")
        self.dimensions = dimensions

    async def generate(self, text: str) -> List[float]:
        return self._hash_embedding(text)

    def _hash_embedding(self, text: str) -> List[float]:
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        seed = int.from_bytes(digest[:4], byteorder="little", signed=False)

        rng = np.random.default_rng(seed)
        vector = rng.standard_normal(self.dimensions)
        norm = np.linalg.norm(vector)
        if norm == 0:
            return vector.tolist()
        return (vector / norm).tolist()


def create_default_embedding_function(settings: Settings | None = None) -> EmbeddingFunction:
    """Build the embedding function selected by ``EMBEDDING_BACKEND``."""

    settings = settings or get_settings()
    backend = settings.embedding_backend.lower()
    if backend == "openai":
        return OpenAIEmbeddingFunction(
            model=settings.embedding_model, api_key=settings.openai_api_key, settings=settings
        )
    if backend == "offline":
        LOGGER.warning("Using offline hash-based embeddings (test mode).")
        return OfflineEmbeddingFunction(settings.embedding_dim)
    raise ConfigurationError(f"Unsupported embedding backend: {settings.embedding_backend}")


__all__ = [
    "EmbeddingFunction",
    "OfflineEmbeddingFunction",
    "OpenAIEmbeddingFunction",
    "create_default_embedding_function",
]
