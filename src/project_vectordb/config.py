"""Simple configuration loader for the vector database client and scripts."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path


class Settings:
    """Runtime configuration derived from environment variables."""

    def __init__(self) -> None:
        self.env: str = os.getenv("ENV", "local")

        # Project layout (docs tree and pinned files are resolved against this)
        self.project_root: Path = Path(os.getenv("PROJECT_ROOT", os.getcwd()))
        self.docs_root: Path = self.project_root / os.getenv("DOCS_ROOT", "docs")

        # Vector store (Chroma server)
        self.chroma_url: str = os.getenv("CHROMA_URL", "http://localhost:8000")
        self.collection_name: str = os.getenv("CHROMA_COLLECTION", "project-docs")

        # Embedding model (aligned with OpenAI backend default)
        self.embedding_backend: str = os.getenv("EMBEDDING_BACKEND", "openai")
        self.embedding_model: str = os.getenv("EMBEDDING_MODEL", "text-embedding-3-small")
        self.embedding_dim: int = int(os.getenv("EMBEDDING_DIM", "1536"))
        self.openai_api_key: str | None = os.getenv("OPENAI_API_KEY")

        # Chunking
        self.chunk_size: int = int(os.getenv("CHUNK_SIZE", "800"))
        self.chunk_overlap: int = int(os.getenv("CHUNK_OVERLAP", "200"))

        # Batching
        self.ingest_batch_size: int = max(1, int(os.getenv("INGEST_BATCH_SIZE", "50")))
        self.import_batch_size: int = max(1, int(os.getenv("IMPORT_BATCH_SIZE", "100")))

        # Retrieval defaults
        self.query_limit: int = int(os.getenv("QUERY_LIMIT", "5"))
        self.query_threshold: float = float(os.getenv("QUERY_THRESHOLD", "0.7"))
        self.query_overfetch: int = max(1, int(os.getenv("QUERY_OVERFETCH", "4")))
        self.stats_sample_size: int = max(1, int(os.getenv("STATS_SAMPLE_SIZE", "1000")))

    def dict(self) -> dict[str, object]:
        payload = self.__dict__.copy()
        if payload.get("openai_api_key"):
            payload["openai_api_key"] = "***"
        return payload


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()


__all__ = ["Settings", "get_settings"]
