"""Error taxonomy shared by the client, ingestion, and backup layers."""

from __future__ import annotations


class VectorDBError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(VectorDBError, ValueError):
    """Missing credentials, missing embedding function, or invalid settings."""


class NotInitializedError(VectorDBError, RuntimeError):
    """An operation was invoked before ``ProjectVectorDB.initialize`` completed."""


class BackendUnavailableError(VectorDBError, ConnectionError):
    """The Chroma server could not be reached or failed at the transport level."""


class MalformedInputError(VectorDBError, ValueError):
    """Invalid backup content, mismatched array lengths, or invalid chunking parameters."""

    def __init__(self, message: str, *, line_number: int | None = None) -> None:
        if line_number is not None:
            message = f"line {line_number}: {message}"
        super().__init__(message)
        self.line_number = line_number


class EmbeddingGenerationError(VectorDBError, RuntimeError):
    """The embedding backend failed to produce a vector."""


__all__ = [
    "BackendUnavailableError",
    "ConfigurationError",
    "EmbeddingGenerationError",
    "MalformedInputError",
    "NotInitializedError",
    "VectorDBError",
]
