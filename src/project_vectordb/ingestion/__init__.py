"""Ingestion utilities for preparing documentation chunks."""

from .chunking import ChunkingConfig, TextChunker, create_chunks, sanitize_content
from .identity import generate_chunk_id
from .metadata import extract_title, flatten_metadata, infer_category, infer_priority
from .models import (
    BatchFailure,
    BatchResult,
    CollectionStats,
    DateRange,
    QueryOptions,
    QueryResult,
    VectorDocument,
)
from .pipeline import DocumentLoader, IngestionPipeline, IngestionResult, PinnedSource

__all__ = [
    "BatchFailure",
    "BatchResult",
    "ChunkingConfig",
    "CollectionStats",
    "DateRange",
    "DocumentLoader",
    "IngestionPipeline",
    "IngestionResult",
    "PinnedSource",
    "QueryOptions",
    "QueryResult",
    "TextChunker",
    "VectorDocument",
    "create_chunks",
    "extract_title",
    "flatten_metadata",
    "generate_chunk_id",
    "infer_category",
    "infer_priority",
    "sanitize_content",
]
