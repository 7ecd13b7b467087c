"""Project documentation vector database client."""

from .client import ProjectVectorDB
from .embeddings import (
    EmbeddingFunction,
    OfflineEmbeddingFunction,
    OpenAIEmbeddingFunction,
    create_default_embedding_function,
)
from .errors import (
    BackendUnavailableError,
    ConfigurationError,
    EmbeddingGenerationError,
    MalformedInputError,
    NotInitializedError,
    VectorDBError,
)
from .ingestion.models import (
    BatchFailure,
    BatchResult,
    CollectionStats,
    DateRange,
    QueryOptions,
    QueryResult,
    VectorDocument,
)
from .logging_utils import configure_logging

__all__ = [
    "BackendUnavailableError",
    "BatchFailure",
    "BatchResult",
    "CollectionStats",
    "ConfigurationError",
    "DateRange",
    "EmbeddingFunction",
    "EmbeddingGenerationError",
    "MalformedInputError",
    "NotInitializedError",
    "OfflineEmbeddingFunction",
    "OpenAIEmbeddingFunction",
    "ProjectVectorDB",
    "QueryOptions",
    "QueryResult",
    "VectorDBError",
    "VectorDocument",
    "configure_logging",
    "create_default_embedding_function",
]
