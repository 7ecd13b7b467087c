"""Fixed-size character window chunking with overlap."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import List

from ..errors import MalformedInputError

LOGGER = logging.getLogger(__name__)

# Tab, newline and carriage return are kept so markdown structure survives.
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F-\x9F]")
_INCOMPLETE_HEX_ESCAPE = re.compile(r"\\x[0-9a-fA-F]{0,1}(?![0-9a-fA-F])")
_INCOMPLETE_UNICODE_ESCAPE = re.compile(r"\\u[0-9a-fA-F]{0,3}(?![0-9a-fA-F])")
_REPLACEMENT_CHARS = re.compile(r"[\ufffd\ufffe\uffff]")


def validate_window(chunk_size: int, overlap: int) -> None:
    """Reject window parameters that would not advance."""
    if chunk_size <= 0:
        raise MalformedInputError(f"chunk_size must be positive (got {chunk_size})")
    if overlap < 0:
        raise MalformedInputError(f"overlap must not be negative (got {overlap})")
    if overlap >= chunk_size:
        raise MalformedInputError(
            f"overlap ({overlap}) must be smaller than chunk_size ({chunk_size})"
        )


@dataclass(slots=True)
class ChunkingConfig:
    """Configuration for chunking."""

    chunk_size: int = 800
    chunk_overlap: int = 200

    def __post_init__(self) -> None:
        validate_window(self.chunk_size, self.chunk_overlap)

    @property
    def step(self) -> int:
        return self.chunk_size - self.chunk_overlap


def create_chunks(text: str, chunk_size: int, overlap: int) -> List[str]:
    """Split ``text`` into windows of ``chunk_size`` characters overlapping by ``overlap``.

    Text that fits in one window comes back as a single chunk, including the
    empty string. The final window may be shorter than ``chunk_size``.
    """

    validate_window(chunk_size, overlap)
    if len(text) <= chunk_size:
        return [text]

    step = chunk_size - overlap
    chunks: List[str] = []
    start = 0
    while start < len(text):
        end = min(start + chunk_size, len(text))
        chunks.append(text[start:end])
        if end >= len(text):
            break
        start += step

    return chunks


def sanitize_content(text: str | None) -> str:
    """Strip control characters and broken escape sequences, then trim."""
    if not text:
        return ""

    cleaned = _CONTROL_CHARS.sub("", text)
    cleaned = _INCOMPLETE_HEX_ESCAPE.sub("", cleaned)
    cleaned = _INCOMPLETE_UNICODE_ESCAPE.sub("", cleaned)
    cleaned = _REPLACEMENT_CHARS.sub("", cleaned)
    return cleaned.strip()


class TextChunker:
    """Sanitize and window raw document bodies."""

    def __init__(self, config: ChunkingConfig | None = None) -> None:
        self._config = config or ChunkingConfig()

    @property
    def config(self) -> ChunkingConfig:
        return self._config

    def chunk(self, text: str) -> List[str]:
        sanitized = sanitize_content(text)
        chunks = create_chunks(sanitized, self._config.chunk_size, self._config.chunk_overlap)
        LOGGER.debug("Split %d characters into %d chunks", len(sanitized), len(chunks))
        return chunks


__all__ = ["ChunkingConfig", "TextChunker", "create_chunks", "sanitize_content", "validate_window"]
