"""Dataclasses and helpers shared across ingestion and retrieval layers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Sequence, Union

# Closed set of metadata value kinds accepted before flattening.
ScalarValue = Union[str, int, float, bool]
MetadataValue = Union[ScalarValue, datetime, date, Sequence[ScalarValue], None]
Metadata = Dict[str, MetadataValue]
FlatMetadata = Dict[str, ScalarValue]


@dataclass(slots=True)
class VectorDocument:
    """A single chunk of content addressed by a stable id."""

    id: str
    content: str
    metadata: Metadata = field(default_factory=dict)
    embedding: List[float] | None = field(default=None)

    def as_record(self, *, include_embedding: bool = False) -> Dict[str, object]:
        """Serialize document into a JSON-friendly payload."""

        record: Dict[str, object] = {
            "id": self.id,
            "content": self.content,
            "metadata": dict(self.metadata),
        }
        if include_embedding and self.embedding is not None:
            record["embedding"] = [float(value) for value in self.embedding]
        return record

    @classmethod
    def from_record(cls, payload: Mapping[str, Any]) -> "VectorDocument":
        embedding = payload.get("embedding")
        return cls(
            id=str(payload["id"]),
            content=payload.get("content") or "",
            metadata=dict(payload.get("metadata") or {}),
            embedding=[float(value) for value in embedding] if embedding is not None else None,
        )


@dataclass(slots=True)
class QueryResult:
    """A retrieved chunk with its similarity score (0..1, higher is closer)."""

    id: str
    content: str
    metadata: FlatMetadata
    score: float

    def as_record(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "content": self.content,
            "metadata": dict(self.metadata),
            "score": self.score,
        }


@dataclass(slots=True)
class DateRange:
    """Inclusive bounds on the ``lastModified`` metadata field."""

    start: datetime | None = None
    end: datetime | None = None


@dataclass(slots=True)
class QueryOptions:
    limit: int = 5
    threshold: float = 0.7
    category: str | None = None
    source: str | None = None
    tags: List[str] | None = None
    date_range: DateRange | None = None


@dataclass(slots=True)
class CollectionStats:
    """Aggregates computed from a bounded sample of the collection."""

    total_documents: int = 0
    categories: Dict[str, int] = field(default_factory=dict)
    sources: Dict[str, int] = field(default_factory=dict)
    last_updated: str = ""
    average_chunk_size: int = 0

    def as_record(self) -> Dict[str, object]:
        return {
            "totalDocuments": self.total_documents,
            "categories": dict(self.categories),
            "sources": dict(self.sources),
            "lastUpdated": self.last_updated,
            "averageChunkSize": self.average_chunk_size,
        }

    @classmethod
    def from_record(cls, payload: Mapping[str, Any]) -> "CollectionStats":
        return cls(
            total_documents=int(payload.get("totalDocuments", 0)),
            categories=dict(payload.get("categories") or {}),
            sources=dict(payload.get("sources") or {}),
            last_updated=str(payload.get("lastUpdated", "")),
            average_chunk_size=int(payload.get("averageChunkSize", 0)),
        )


@dataclass(slots=True)
class BatchFailure:
    """A document that could not be written even after the per-item fallback."""

    document_id: str
    file_path: str | None
    preview: str
    error: str


@dataclass(slots=True)
class BatchResult:
    """Outcome of a batched write: partial failure is data, not an exception."""

    success_count: int = 0
    failures: List[BatchFailure] = field(default_factory=list)
    failed_batches: List[int] = field(default_factory=list)

    @property
    def failure_count(self) -> int:
        return len(self.failures)

    @property
    def ok(self) -> bool:
        return not self.failures


__all__ = [
    "BatchFailure",
    "BatchResult",
    "CollectionStats",
    "DateRange",
    "FlatMetadata",
    "Metadata",
    "MetadataValue",
    "QueryOptions",
    "QueryResult",
    "ScalarValue",
    "VectorDocument",
]
