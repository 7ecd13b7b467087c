"""Tests covering markdown ingestion into the documentation collection."""

from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from project_vectordb.client import ProjectVectorDB
from project_vectordb.config import Settings
from project_vectordb.embeddings import OfflineEmbeddingFunction
from project_vectordb.ingestion.chunking import ChunkingConfig
from project_vectordb.ingestion.identity import generate_chunk_id
from project_vectordb.ingestion.models import VectorDocument
from project_vectordb.ingestion.pipeline import (
    DEFAULT_PINNED_SOURCES,
    DocumentLoader,
    IngestionPipeline,
)

from test_client import _FakeChromaClient


class _ProjectTreeMixin:
    def _make_tree(self) -> None:
        self._tmpdir = tempfile.TemporaryDirectory()
        self.project_root = Path(self._tmpdir.name)
        self.docs_root = self.project_root / "docs"

        (self.docs_root / "architecture").mkdir(parents=True)
        (self.docs_root / "guides").mkdir()
        (self.docs_root / "node_modules" / "pkg").mkdir(parents=True)
        (self.project_root / "memory-bank").mkdir()

        (self.docs_root / "architecture" / "overview.md").write_text(
            "# System Overview\n\n" + "Layered services. " * 80, encoding="utf-8"
        )
        (self.docs_root / "guides" / "setup.md").write_text(
            "---\ntitle: Local Setup\ntags: [onboarding, dev]\nowner: platform\n---\nInstall the tools.\n",
            encoding="utf-8",
        )
        (self.docs_root / "empty.md").write_text("---\ntitle: Nothing\n---\n\n", encoding="utf-8")
        (self.docs_root / "node_modules" / "pkg" / "README.md").write_text("# vendored", encoding="utf-8")
        (self.docs_root / "notes.txt").write_text("not markdown", encoding="utf-8")
        (self.project_root / "memory-bank" / "CURRENT.md").write_text(
            "# Sprint 12\nShipping search.", encoding="utf-8"
        )
        (self.project_root / "CLAUDE.md").write_text("Follow the style guide.", encoding="utf-8")

    def _cleanup_tree(self) -> None:
        self._tmpdir.cleanup()


class DocumentLoaderTests(_ProjectTreeMixin, unittest.TestCase):
    def setUp(self) -> None:
        self._make_tree()
        self.loader = DocumentLoader(self.project_root)

    def tearDown(self) -> None:
        self._cleanup_tree()

    def test_load_tree_skips_empty_and_vendored_files(self) -> None:
        documents, stats = self.loader.load_tree(self.docs_root)

        paths = {document.metadata["filePath"] for document in documents}
        self.assertEqual(paths, {"docs/architecture/overview.md", "docs/guides/setup.md"})
        self.assertEqual(stats.files_processed, 2)
        self.assertEqual(stats.files_skipped, 1)
        self.assertEqual(stats.total_chunks, len(documents))

    def test_chunk_metadata_and_ids(self) -> None:
        documents = self.loader.load_file(self.docs_root / "architecture" / "overview.md", self.docs_root)

        self.assertGreater(len(documents), 1)
        for index, document in enumerate(documents):
            self.assertEqual(document.id, generate_chunk_id("docs/architecture/overview.md", index))
            self.assertEqual(document.metadata["chunkIndex"], index)
            self.assertEqual(document.metadata["totalChunks"], len(documents))
            self.assertEqual(document.metadata["category"], "architecture")
            self.assertEqual(document.metadata["priority"], 80)
            self.assertEqual(document.metadata["title"], "System Overview")
            self.assertEqual(document.metadata["source"], "docs")
            self.assertTrue(document.metadata["lastModified"].endswith("Z"))

    def test_front_matter_feeds_metadata(self) -> None:
        [document] = self.loader.load_file(self.docs_root / "guides" / "setup.md", self.docs_root)

        self.assertEqual(document.content, "Install the tools.")
        self.assertEqual(document.metadata["title"], "Local Setup")
        self.assertEqual(document.metadata["tags"], ["onboarding", "dev"])
        self.assertEqual(document.metadata["owner"], "platform")
        self.assertEqual(document.metadata["category"], "guides")

    def test_pinned_sources(self) -> None:
        current, claude = DEFAULT_PINNED_SOURCES
        [document] = self.loader.load_pinned(current)
        self.assertEqual(document.metadata["source"], "memory-bank")
        self.assertEqual(document.metadata["category"], "current-status")
        self.assertEqual(document.metadata["priority"], 100)
        self.assertEqual(document.id, generate_chunk_id("memory-bank/CURRENT.md", 0))

        [document] = self.loader.load_pinned(claude)
        self.assertEqual(document.metadata["title"], "Project Instructions")

    def test_missing_pinned_file_yields_nothing(self) -> None:
        (self.project_root / "CLAUDE.md").unlink()
        self.assertEqual(self.loader.load_pinned(DEFAULT_PINNED_SOURCES[1]), [])


class IngestionPipelineTests(_ProjectTreeMixin, unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self._make_tree()
        self.chroma = _FakeChromaClient()
        self.db = ProjectVectorDB(
            collection_name="docs-test",
            embedding_function=OfflineEmbeddingFunction(16),
            client=self.chroma,
            settings=Settings(),
        )
        await self.db.initialize()

    async def asyncTearDown(self) -> None:
        self._cleanup_tree()

    def _pipeline(self, **kwargs) -> IngestionPipeline:  # noqa: ANN003
        return IngestionPipeline(
            self.db,
            docs_root=self.docs_root,
            project_root=self.project_root,
            chunk_config=ChunkingConfig(chunk_size=200, chunk_overlap=50),
            batch_size=3,
            **kwargs,
        )

    async def test_run_stores_docs_and_pinned_files(self) -> None:
        result = await self._pipeline().run()

        self.assertEqual(result.files_processed, 4)
        self.assertEqual(result.failure_count, 0)
        self.assertEqual(result.success_count, result.total_chunks)

        stats = await self.db.get_stats()
        self.assertEqual(stats.total_documents, result.total_chunks)
        self.assertEqual(stats.sources["memory-bank"], 1)
        self.assertEqual(stats.sources["claude-md"], 1)

        stored = {document.metadata["filePath"]: document for document in await self.db.get_all_documents()}
        self.assertEqual(stored["docs/guides/setup.md"].metadata["tags"], "onboarding,dev")

    async def test_rerun_is_idempotent(self) -> None:
        first = await self._pipeline().run()
        second = await self._pipeline().run()
        self.assertEqual(first.total_chunks, second.total_chunks)
        self.assertEqual(await self.db._collection.count(), first.total_chunks)

    async def test_clear_removes_stale_chunks(self) -> None:
        await self.db.add_documents(
            [VectorDocument(id="stale", content="removed file", metadata={"source": "docs"})]
        )
        await self._pipeline().run(clear=True)
        ids = {document.id for document in await self.db.get_all_documents()}
        self.assertNotIn("stale", ids)

    async def test_nothing_to_ingest(self) -> None:
        pipeline = IngestionPipeline(
            self.db,
            docs_root=self.project_root / "missing",
            project_root=self.project_root,
            pinned_sources=(),
        )
        result = await pipeline.run()
        self.assertEqual(result.total_chunks, 0)
        self.assertEqual(result.success_count, 0)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
