"""Documentation ingestion pipeline: markdown tree -> chunks -> Chroma."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, List, Sequence, Tuple

from ..config import get_settings
from ..logging_utils import log_event
from .chunking import ChunkingConfig, TextChunker
from .identity import generate_chunk_id
from .metadata import (
    extract_title,
    file_modified_at,
    infer_category,
    infer_priority,
    parse_front_matter,
    scalar_front_matter,
    split_tags,
)
from .models import BatchResult, Metadata, VectorDocument

if TYPE_CHECKING:  # pragma: no cover
    from ..client import ProjectVectorDB

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class PinnedSource:
    """A single file outside the docs tree ingested with fixed metadata."""

    relative_path: str
    source: str
    category: str
    title: str
    priority: int = 100


DEFAULT_PINNED_SOURCES: Tuple[PinnedSource, ...] = (
    PinnedSource("memory-bank/CURRENT.md", "memory-bank", "current-status", "Current Development Status"),
    PinnedSource("CLAUDE.md", "claude-md", "project-instructions", "Project Instructions"),
)


@dataclass(slots=True)
class LoadStats:
    files_processed: int = 0
    files_skipped: int = 0
    total_chunks: int = 0

    @property
    def average_chunks_per_file(self) -> float:
        return self.total_chunks / self.files_processed if self.files_processed else 0.0


@dataclass(slots=True)
class IngestionResult:
    """Summary of pipeline execution."""

    files_processed: int
    files_skipped: int
    total_chunks: int
    batch: BatchResult = field(default_factory=BatchResult)

    @property
    def success_count(self) -> int:
        return self.batch.success_count

    @property
    def failure_count(self) -> int:
        return self.batch.failure_count


class DocumentLoader:
    """Read markdown files and turn them into chunked, identified documents."""

    def __init__(self, project_root: Path, chunker: TextChunker | None = None) -> None:
        self.project_root = project_root
        self.chunker = chunker or TextChunker()

    # ------------------------------------------------------------------
    def _relative(self, path: Path) -> str:
        try:
            return path.relative_to(self.project_root).as_posix()
        except ValueError:
            return path.as_posix()

    def _build_documents(self, relative_path: str, chunks: Sequence[str], base: Metadata) -> List[VectorDocument]:
        documents: List[VectorDocument] = []
        for index, chunk in enumerate(chunks):
            metadata: Metadata = dict(base)
            metadata["chunkIndex"] = index
            metadata["totalChunks"] = len(chunks)
            documents.append(
                VectorDocument(
                    id=generate_chunk_id(relative_path, index),
                    content=chunk,
                    metadata=metadata,
                )
            )
        return documents

    def load_file(self, path: Path, docs_root: Path) -> List[VectorDocument]:
        """Chunk one markdown file; an empty body yields no documents."""

        front_matter, body = parse_front_matter(path.read_text(encoding="utf-8"))
        if not body or not body.strip():
            return []

        relative_path = self._relative(path)
        chunks = self.chunker.chunk(body)
        base: Metadata = {
            "source": "docs",
            "category": infer_category(path, docs_root),
            "filePath": relative_path,
            "title": front_matter.get("title") or extract_title(body, path),
            "lastModified": file_modified_at(path),
            "priority": infer_priority(path, docs_root),
            "tags": split_tags(front_matter.get("tags")),
        }
        base.update(scalar_front_matter(front_matter))
        return self._build_documents(relative_path, chunks, base)

    def load_tree(self, docs_root: Path) -> Tuple[List[VectorDocument], LoadStats]:
        files = sorted(
            path for path in docs_root.rglob("*.md") if "node_modules" not in path.parts
        )
        LOGGER.info("Found %d markdown files under %s", len(files), docs_root)

        documents: List[VectorDocument] = []
        stats = LoadStats()
        for path in files:
            try:
                file_documents = self.load_file(path, docs_root)
            except Exception as exc:
                LOGGER.error("Error processing %s: %s", path, exc)
                stats.files_skipped += 1
                continue

            if not file_documents:
                stats.files_skipped += 1
                continue

            documents.extend(file_documents)
            stats.files_processed += 1
            stats.total_chunks += len(file_documents)

        LOGGER.info(
            "Processed %d files (%d skipped) into %d chunks, %.1f chunks/file",
            stats.files_processed,
            stats.files_skipped,
            stats.total_chunks,
            stats.average_chunks_per_file,
        )
        return documents, stats

    def load_pinned(self, pinned: PinnedSource) -> List[VectorDocument]:
        path = self.project_root / pinned.relative_path
        if not path.is_file():
            return []

        chunks = self.chunker.chunk(path.read_text(encoding="utf-8"))
        base: Metadata = {
            "source": pinned.source,
            "category": pinned.category,
            "filePath": pinned.relative_path,
            "title": pinned.title,
            "lastModified": file_modified_at(path),
            "priority": pinned.priority,
        }
        LOGGER.info("Added %d chunks from %s", len(chunks), pinned.relative_path)
        return self._build_documents(pinned.relative_path, chunks, base)


class IngestionPipeline:
    """Load the docs tree plus pinned files and write them in batches."""

    def __init__(
        self,
        vector_db: "ProjectVectorDB",
        *,
        docs_root: Path | None = None,
        project_root: Path | None = None,
        chunk_config: ChunkingConfig | None = None,
        pinned_sources: Sequence[PinnedSource] = DEFAULT_PINNED_SOURCES,
        batch_size: int | None = None,
    ) -> None:
        settings = get_settings()
        self.vector_db = vector_db
        self.project_root = project_root or settings.project_root
        self.docs_root = docs_root or settings.docs_root
        self.pinned_sources = tuple(pinned_sources)
        self.batch_size = batch_size or settings.ingest_batch_size
        config = chunk_config or ChunkingConfig(settings.chunk_size, settings.chunk_overlap)
        self.loader = DocumentLoader(self.project_root, TextChunker(config))

    # ------------------------------------------------------------------
    def load_documents(self) -> Tuple[List[VectorDocument], LoadStats]:
        if self.docs_root.is_dir():
            documents, stats = self.loader.load_tree(self.docs_root)
        else:
            LOGGER.warning("Docs directory %s does not exist", self.docs_root)
            documents, stats = [], LoadStats()

        for pinned in self.pinned_sources:
            try:
                pinned_documents = self.loader.load_pinned(pinned)
            except OSError as exc:
                LOGGER.error("Error reading %s: %s", pinned.relative_path, exc)
                stats.files_skipped += 1
                continue
            if pinned_documents:
                documents.extend(pinned_documents)
                stats.files_processed += 1
                stats.total_chunks += len(pinned_documents)

        return documents, stats

    async def run(self, *, clear: bool = False) -> IngestionResult:
        """Execute the ingestion pipeline."""

        loop = asyncio.get_running_loop()
        documents, stats = await loop.run_in_executor(None, self.load_documents)
        if not documents:
            LOGGER.error("No documents found to ingest under %s", self.docs_root)
            return IngestionResult(stats.files_processed, stats.files_skipped, 0)

        if clear:
            LOGGER.info("Clearing collection %s before ingestion", self.vector_db.collection_name)
            await self.vector_db.clear_collection(confirm=True)

        LOGGER.info("Generating embeddings and storing %d documents", len(documents))
        batch = await self.vector_db.add_documents_in_batches(documents, self.batch_size)

        result = IngestionResult(
            files_processed=stats.files_processed,
            files_skipped=stats.files_skipped,
            total_chunks=stats.total_chunks,
            batch=batch,
        )
        log_event(
            "ingestion.complete",
            {
                "collection": self.vector_db.collection_name,
                "files": result.files_processed,
                "skipped": result.files_skipped,
                "chunks": result.total_chunks,
                "stored": result.success_count,
                "failed": result.failure_count,
                "failed_batches": list(batch.failed_batches),
            },
            level=logging.WARNING if batch.failures else logging.INFO,
        )
        return result


__all__ = [
    "DEFAULT_PINNED_SOURCES",
    "DocumentLoader",
    "IngestionPipeline",
    "IngestionResult",
    "LoadStats",
    "PinnedSource",
]
