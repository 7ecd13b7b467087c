"""Async client for the project documentation collection in Chroma.

The same client serves build scripts, the command line, and agent tooling.
Storage, indexing and distance computation stay on the Chroma server; this
module owns chunk identity, metadata flattening and the score/threshold
contract layered over raw nearest-neighbour results.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Sequence
from urllib.parse import urlparse

import chromadb
import httpx

from .backup import encode_backup, read_backup_file, write_backup_file
from .config import Settings, get_settings
from .embeddings import EmbeddingFunction
from .errors import (
    BackendUnavailableError,
    ConfigurationError,
    MalformedInputError,
    NotInitializedError,
)
from .ingestion.metadata import flatten_metadata, format_timestamp, parse_timestamp
from .ingestion.models import (
    BatchFailure,
    BatchResult,
    CollectionStats,
    QueryOptions,
    QueryResult,
    VectorDocument,
)
from .metrics import timed
from .retrievers.vector import (
    build_where_clause,
    first_query_batch,
    has_client_filters,
    rank_results,
)

LOGGER = logging.getLogger(__name__)

_UNAVAILABLE_ERRORS = (httpx.HTTPError, ConnectionError, TimeoutError, OSError)
_COLLECTION_DESCRIPTION = "Project documentation for coding agents"


class ProjectVectorDB:
    """Main vector database client for project documentation."""

    def __init__(
        self,
        chroma_url: str | None = None,
        collection_name: str | None = None,
        embedding_function: EmbeddingFunction | None = None,
        *,
        client: Any | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._chroma_url = chroma_url or self._settings.chroma_url
        self._collection_name = collection_name or self._settings.collection_name
        self._embedding_function = embedding_function
        self._client = client
        self._collection: Any | None = None
        self._initialized = False
        self._init_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    @property
    def collection_name(self) -> str:
        return self._collection_name

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def embedding_function(self) -> EmbeddingFunction | None:
        return self._embedding_function

    async def __aenter__(self) -> "ProjectVectorDB":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        return None

    # ------------------------------------------------------------------
    async def initialize(self) -> None:
        """Connect and get-or-create the collection; safe to await repeatedly.

        Get-then-create is not atomic on the server: two processes creating
        the same collection at once can race, and the loser sees an error.
        """

        if self._initialized:
            return

        async with self._init_lock:
            if self._initialized:
                return
            if self._client is None:
                self._client = await self._connect()
            self._collection = await self._get_or_create_collection()
            self._initialized = True

    async def _connect(self) -> Any:
        parsed = urlparse(self._chroma_url)
        if not parsed.hostname:
            raise ConfigurationError(f"Invalid CHROMA_URL: {self._chroma_url!r}")
        ssl = parsed.scheme == "https"
        port = parsed.port or (443 if ssl else 8000)
        try:
            return await chromadb.AsyncHttpClient(host=parsed.hostname, port=port, ssl=ssl)
        except Exception as exc:
            raise BackendUnavailableError(
                f"Could not connect to Chroma at {self._chroma_url}: {exc}"
            ) from exc

    async def _get_or_create_collection(self) -> Any:
        try:
            collection = await self._client.get_collection(name=self._collection_name)
            LOGGER.info("Connected to existing collection: %s", self._collection_name)
            return collection
        except _UNAVAILABLE_ERRORS as exc:
            raise BackendUnavailableError(
                f"Chroma unreachable while opening {self._collection_name}: {exc}"
            ) from exc
        except Exception as exc:
            LOGGER.debug("Collection %s not found (%s); creating it", self._collection_name, exc)

        collection = await self._create_collection()
        LOGGER.info("Created new collection: %s", self._collection_name)
        return collection

    async def _create_collection(self) -> Any:
        async with self._backend("create_collection"):
            return await self._client.create_collection(
                name=self._collection_name,
                metadata={
                    "description": _COLLECTION_DESCRIPTION,
                    "created": format_timestamp(datetime.now(timezone.utc)),
                    # similarity = 1 - distance assumes cosine distance
                    "hnsw:space": "cosine",
                },
            )

    async def _recreate_collection(self) -> None:
        async with self._backend("delete_collection"):
            await self._client.delete_collection(name=self._collection_name)
        self._collection = await self._create_collection()

    def _require_collection(self) -> Any:
        if not self._initialized or self._collection is None:
            raise NotInitializedError(
                "ProjectVectorDB is not initialized; await initialize() before using it."
            )
        return self._collection

    @asynccontextmanager
    async def _backend(self, operation: str) -> AsyncIterator[None]:
        try:
            yield
        except _UNAVAILABLE_ERRORS as exc:
            raise BackendUnavailableError(
                f"Chroma {operation} failed against {self._chroma_url}: {exc}"
            ) from exc

    # ------------------------------------------------------------------
    def default_query_options(self, **overrides: Any) -> QueryOptions:
        options = QueryOptions(
            limit=self._settings.query_limit, threshold=self._settings.query_threshold
        )
        for key, value in overrides.items():
            setattr(options, key, value)
        return options

    async def query(self, text: str, options: QueryOptions | None = None) -> List[QueryResult]:
        """Semantic search across the collection.

        Category and source filters run inside Chroma. Tag and date filters run
        locally on an over-fetched candidate set, since tags are stored as a
        comma-joined string and timestamps as ISO strings.
        """

        collection = self._require_collection()
        options = options or self.default_query_options()

        if self._embedding_function is None:
            raise ConfigurationError(
                "Embedding function not configured. Pass one to ProjectVectorDB()."
            )
        if options.limit <= 0:
            return []

        embedding = await self._embedding_function.generate(text)
        n_results = options.limit
        if has_client_filters(options):
            n_results *= self._settings.query_overfetch

        with timed("query"):
            async with self._backend("query"):
                raw = await collection.query(
                    query_embeddings=[embedding],
                    n_results=n_results,
                    where=build_where_clause(options),
                    include=["documents", "metadatas", "distances"],
                )

        ids, documents, metadatas, distances = first_query_batch(raw)
        return rank_results(
            ids,
            documents,
            metadatas,
            distances,
            threshold=options.threshold,
            limit=options.limit,
            tags=options.tags,
            date_range=options.date_range,
        )

    async def search_by_category(
        self, category: str, text: str, options: QueryOptions | None = None
    ) -> List[QueryResult]:
        options = replace(options or self.default_query_options(), category=category)
        return await self.query(text, options)

    async def get_recent_docs(self, days: int) -> List[VectorDocument]:
        """Documents whose ``lastModified`` falls within the last ``days`` days."""
        cutoff = datetime.now(timezone.utc) - timedelta(days=days)
        recent: List[VectorDocument] = []
        for document in await self.get_all_documents():
            modified = parse_timestamp(str(document.metadata.get("lastModified") or ""))
            if modified is not None and modified >= cutoff:
                recent.append(document)
        return recent

    # ------------------------------------------------------------------
    async def _ensure_embeddings(self, documents: Sequence[VectorDocument]) -> None:
        missing = [document for document in documents if document.embedding is None]
        if not missing:
            return
        if self._embedding_function is None:
            raise ConfigurationError("Embeddings required but no embedding function provided")
        for document in missing:
            document.embedding = await self._embedding_function.generate(document.content)

    @staticmethod
    def _columns(documents: Sequence[VectorDocument]) -> Dict[str, Any]:
        metadatas = [flatten_metadata(document.metadata) for document in documents]
        return {
            "ids": [document.id for document in documents],
            "documents": [document.content for document in documents],
            "embeddings": [document.embedding for document in documents],
            "metadatas": metadatas if any(metadatas) else None,
        }

    async def add_documents(self, documents: Sequence[VectorDocument]) -> None:
        """Embed documents lacking vectors and upsert them by id."""
        collection = self._require_collection()
        if not documents:
            return

        ids = [document.id for document in documents]
        if len(set(ids)) != len(ids):
            raise MalformedInputError("Duplicate ids in a single write")

        await self._ensure_embeddings(documents)
        async with self._backend("upsert"):
            await collection.upsert(**self._columns(documents))

    async def update_documents(self, documents: Sequence[VectorDocument]) -> None:
        """Update existing documents; ids must already exist in the collection."""
        collection = self._require_collection()
        if not documents:
            return

        await self._ensure_embeddings(documents)
        async with self._backend("update"):
            await collection.update(**self._columns(documents))

    async def delete_documents(self, ids: Sequence[str]) -> None:
        collection = self._require_collection()
        if not ids:
            return
        async with self._backend("delete"):
            await collection.delete(ids=list(ids))

    async def get_all_documents(
        self, limit: int | None = None, *, include_embeddings: bool = False
    ) -> List[VectorDocument]:
        """Bulk scan; without ``limit`` this reads the whole collection."""
        collection = self._require_collection()
        include = ["documents", "metadatas"]
        if include_embeddings:
            include.append("embeddings")

        async with self._backend("get"):
            results = await collection.get(limit=limit, include=include)

        ids = results.get("ids") or []
        contents = results.get("documents")
        metadatas = results.get("metadatas")
        embeddings = results.get("embeddings")

        documents: List[VectorDocument] = []
        for index, doc_id in enumerate(ids):
            embedding = None
            if embeddings is not None and embeddings[index] is not None:
                embedding = [float(value) for value in embeddings[index]]
            documents.append(
                VectorDocument(
                    id=doc_id,
                    content=(contents[index] if contents is not None else None) or "",
                    metadata=dict((metadatas[index] if metadatas is not None else None) or {}),
                    embedding=embedding,
                )
            )
        return documents

    async def add_documents_in_batches(
        self, documents: Sequence[VectorDocument], batch_size: int | None = None
    ) -> BatchResult:
        """Write sequential batches; a failed batch degrades to one-by-one writes.

        Per-document failures are logged and collected on the result instead of
        raised. Configuration and initialization errors still propagate.
        """

        self._require_collection()
        batch_size = batch_size or self._settings.ingest_batch_size
        result = BatchResult()
        total = len(documents)

        for start in range(0, total, batch_size):
            batch = list(documents[start : start + batch_size])
            batch_number = start // batch_size + 1
            try:
                with timed("write_batch"):
                    await self.add_documents(batch)
                result.success_count += len(batch)
            except (ConfigurationError, NotInitializedError):
                raise
            except Exception as exc:
                LOGGER.warning(
                    "Batch %d (docs %d-%d) failed: %s; adding documents individually",
                    batch_number,
                    start,
                    start + len(batch) - 1,
                    exc,
                )
                result.failed_batches.append(batch_number)
                await self._add_individually(batch, result)

            LOGGER.info(
                "Progress: %d/%d (%.1f%%), failed batches: %d",
                result.success_count,
                total,
                min(start + batch_size, total) / total * 100,
                len(result.failed_batches),
            )

        return result

    async def _add_individually(self, batch: Sequence[VectorDocument], result: BatchResult) -> None:
        for document in batch:
            try:
                await self.add_documents([document])
                result.success_count += 1
            except (ConfigurationError, NotInitializedError):
                raise
            except Exception as exc:
                file_path = document.metadata.get("filePath")
                LOGGER.error(
                    "Failed document %s (source %s): %s", document.id, file_path, exc
                )
                result.failures.append(
                    BatchFailure(
                        document_id=document.id,
                        file_path=str(file_path) if file_path is not None else None,
                        preview=document.content[:50],
                        error=str(exc),
                    )
                )

    # ------------------------------------------------------------------
    async def get_stats(self) -> CollectionStats:
        """Counts per category/source and mean chunk length over a bounded sample."""
        collection = self._require_collection()

        async with self._backend("count"):
            count = await collection.count()
        async with self._backend("get"):
            sample = await collection.get(
                limit=self._settings.stats_sample_size, include=["documents", "metadatas"]
            )

        categories: Dict[str, int] = {}
        sources: Dict[str, int] = {}
        total_chunk_size = 0
        ids = sample.get("ids") or []
        contents = sample.get("documents") or []
        metadatas = sample.get("metadatas") or []

        for index in range(len(ids)):
            metadata = (metadatas[index] if index < len(metadatas) else None) or {}
            content = contents[index] if index < len(contents) else None
            category = metadata.get("category")
            if category:
                categories[category] = categories.get(category, 0) + 1
            source = metadata.get("source")
            if source:
                sources[source] = sources.get(source, 0) + 1
            if content:
                total_chunk_size += len(content)

        average = int(total_chunk_size / len(ids) + 0.5) if ids else 0
        return CollectionStats(
            total_documents=count,
            categories=categories,
            sources=sources,
            last_updated=format_timestamp(datetime.now(timezone.utc)),
            average_chunk_size=average,
        )

    async def export_backup(self, output_path: str | Path, *, include_embeddings: bool = False) -> int:
        """Write the collection to a JSONL backup; returns the document count."""
        documents = await self.get_all_documents(include_embeddings=include_embeddings)
        stats = await self.get_stats()
        lines = list(
            encode_backup(documents, stats=stats, include_embeddings=include_embeddings)
        )

        loop = asyncio.get_running_loop()
        written = await loop.run_in_executor(None, write_backup_file, Path(output_path), lines)
        LOGGER.info("Backup exported to %s (%d documents)", output_path, written)
        return written

    async def import_backup(
        self,
        input_path: str | Path,
        clear_existing: bool = False,
        *,
        batch_size: int | None = None,
    ) -> BatchResult:
        """Load a JSONL backup, optionally replacing the collection first."""
        self._require_collection()

        loop = asyncio.get_running_loop()
        header, documents = await loop.run_in_executor(None, read_backup_file, Path(input_path))
        LOGGER.info(
            "Importing backup from %s (version %s, %d documents)",
            header.export_date,
            header.version,
            len(documents),
        )

        if self._embedding_function is None and any(doc.embedding is None for doc in documents):
            raise ConfigurationError(
                "Backup has no embeddings and no embedding function is configured"
            )

        if clear_existing:
            await self._recreate_collection()

        result = await self.add_documents_in_batches(
            documents, batch_size or self._settings.import_batch_size
        )
        LOGGER.info(
            "Import complete: %d documents, %d failed", result.success_count, result.failure_count
        )
        return result

    async def clear_collection(self, confirm: bool = False) -> None:
        """Delete and recreate the collection; requires ``confirm=True``."""
        if not confirm:
            raise ValueError("Must confirm deletion by passing confirm=True")
        self._require_collection()
        await self._recreate_collection()
        LOGGER.info("Collection %s cleared", self._collection_name)

    async def health_check(self) -> bool:
        """True when the Chroma server answers a heartbeat."""
        try:
            async with self._init_lock:
                if self._client is None:
                    self._client = await self._connect()
            await self._client.heartbeat()
            return True
        except Exception as exc:
            LOGGER.warning("Chroma heartbeat failed at %s: %s", self._chroma_url, exc)
            return False


__all__ = ["ProjectVectorDB"]
