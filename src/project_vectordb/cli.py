"""Command line for ingesting, querying and backing up the documentation collection.

Usage:
    project-vectordb ingest [--clear] [--docs-dir docs]
    project-vectordb stats
    project-vectordb query "How is styling organised?" [--limit 5] [--threshold 0.7]
    project-vectordb export backups/project-docs.jsonl [--with-embeddings]
    project-vectordb import backups/project-docs.jsonl [--clear]
    project-vectordb health
    project-vectordb diagnose [--query "design system css"] [--samples 5]

Exit codes:
    0 - success
    1 - the command failed (see log output)
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Dict, Sequence

from dotenv import load_dotenv

from .client import ProjectVectorDB
from .config import get_settings
from .embeddings import create_default_embedding_function
from .errors import VectorDBError
from .ingestion.models import QueryOptions, QueryResult
from .ingestion.pipeline import IngestionPipeline
from .logging_utils import configure_logging
from .metrics import latency_summary

LOGGER = logging.getLogger(__name__)

DIAGNOSTIC_THRESHOLDS = (0.0, 0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="project-vectordb",
        description="Ingest and query project documentation in a Chroma collection.",
    )
    parser.add_argument("--chroma-url", help="Chroma server URL (default: CHROMA_URL)")
    parser.add_argument("--collection", help="Collection name (default: CHROMA_COLLECTION)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    ingest = subparsers.add_parser("ingest", help="Chunk and store the docs tree")
    ingest.add_argument("--clear", action="store_true", help="Clear the collection first")
    ingest.add_argument("--docs-dir", type=Path, help="Docs directory (default: DOCS_ROOT)")
    ingest.add_argument("--sample-query", help="Run this query once ingestion finishes")

    subparsers.add_parser("stats", help="Show collection statistics")

    query = subparsers.add_parser("query", help="Semantic search")
    query.add_argument("text")
    query.add_argument("--limit", type=int)
    query.add_argument("--threshold", type=float)
    query.add_argument("--category")
    query.add_argument("--source")
    query.add_argument("--tag", action="append", dest="tags")

    export = subparsers.add_parser("export", help="Write a JSONL backup")
    export.add_argument("path", type=Path)
    export.add_argument("--with-embeddings", action="store_true")

    restore = subparsers.add_parser("import", help="Load a JSONL backup")
    restore.add_argument("path", type=Path)
    restore.add_argument("--clear", action="store_true", help="Replace the collection")

    subparsers.add_parser("health", help="Check that the Chroma server is reachable")

    diagnose = subparsers.add_parser("diagnose", help="Inspect stored chunks and score distribution")
    diagnose.add_argument("--query", default="design system css styling tailwind")
    diagnose.add_argument("--broad-query", default="css", help="Query run with threshold 0")
    diagnose.add_argument("--samples", type=int, default=5, help="Documents to preview")
    return parser


def _print_counts(title: str, counts: Dict[str, int], top: int | None = None) -> None:
    print(f"\n   {title}:")
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    for name, count in ranked[:top] if top else ranked:
        print(f"     {name}: {count} chunks")


async def _show_stats(db: ProjectVectorDB, top: int | None = None) -> None:
    stats = await db.get_stats()
    print("📊 Collection Stats:")
    print(f"   Total documents: {stats.total_documents}")
    print(f"   Average chunk size: {stats.average_chunk_size} chars")
    _print_counts("Categories", stats.categories, top)
    _print_counts("Sources", stats.sources, top)


def _print_results(results: Sequence[QueryResult]) -> None:
    for index, result in enumerate(results, start=1):
        title = result.metadata.get("title", result.id)
        print(f"  {index}. Score: {result.score:.3f} | {title}")
        print(f"     {result.content[:100]}...")


async def _run_ingest(db: ProjectVectorDB, args: argparse.Namespace) -> int:
    settings = get_settings()
    docs_root = (args.docs_dir or settings.docs_root).resolve()
    pipeline = IngestionPipeline(db, docs_root=docs_root, project_root=settings.project_root.resolve())
    result = await pipeline.run(clear=args.clear)

    if result.total_chunks == 0:
        print("❌ No documents found to ingest!")
        return 1

    print(f"\n✅ Stored {result.success_count}/{result.total_chunks} chunks "
          f"from {result.files_processed} files ({result.files_skipped} skipped)")
    for failure in result.batch.failures:
        print(f"   ❌ {failure.document_id} ({failure.file_path}): {failure.error}")
    await _show_stats(db, top=10)

    if args.sample_query:
        results = await db.query(args.sample_query, db.default_query_options(limit=3))
        print(f'\n🔍 Sample query: "{args.sample_query}" -> {len(results)} results')
        _print_results(results)
    return 0 if result.batch.ok else 1


async def _run_query(db: ProjectVectorDB, args: argparse.Namespace) -> int:
    overrides = {
        key: value
        for key, value in {
            "limit": args.limit,
            "threshold": args.threshold,
            "category": args.category,
            "source": args.source,
            "tags": args.tags,
        }.items()
        if value is not None
    }
    options: QueryOptions = db.default_query_options(**overrides)
    results = await db.query(args.text, options)
    print(f'🔍 Query: "{args.text}" -> {len(results)} results')
    _print_results(results)
    return 0


async def _run_diagnose(db: ProjectVectorDB, args: argparse.Namespace) -> int:
    stats = await db.get_stats()
    print("📊 Database Stats:")
    print(f"   Total documents: {stats.total_documents}")
    print(f"   Categories: {len(stats.categories)}")

    print("\n📄 Sample Documents:")
    for index, document in enumerate(await db.get_all_documents(limit=args.samples), start=1):
        print(f"  {index}. ID: {document.id}")
        print(f"     Category: {document.metadata.get('category')}")
        print(f"     Source: {document.metadata.get('filePath')}")
        print(f'     Content preview: "{document.content[:100]}..."')

    print(f'\n🧪 Threshold sweep for "{args.query}":')
    for threshold in DIAGNOSTIC_THRESHOLDS:
        results = await db.query(args.query, QueryOptions(limit=3, threshold=threshold))
        print(f"   Threshold {threshold:.1f}: {len(results)} results")
        if results:
            print(f"      Best score: {results[0].score:.3f} from {results[0].metadata.get('filePath')}")

    broad = await db.query(args.broad_query, QueryOptions(limit=5, threshold=0.0))
    print(f'\n🔍 Broad search "{args.broad_query}" (threshold 0): {len(broad)} results')
    for index, result in enumerate(broad, start=1):
        print(
            f"  {index}. Score: {result.score:.3f} | {result.metadata.get('category')} "
            f"| {result.metadata.get('filePath')}"
        )
    return 0


async def _run(args: argparse.Namespace) -> int:
    settings = get_settings()

    if args.command == "health":
        db = ProjectVectorDB(args.chroma_url, args.collection)
        healthy = await db.health_check()
        print("✅ Chroma is reachable" if healthy else "❌ Chroma is not reachable")
        return 0 if healthy else 1

    needs_embeddings = args.command in {"ingest", "query", "import", "diagnose"}
    embedding_function = create_default_embedding_function(settings) if needs_embeddings else None
    db = ProjectVectorDB(args.chroma_url, args.collection, embedding_function)
    await db.initialize()

    if args.command == "ingest":
        return await _run_ingest(db, args)
    if args.command == "stats":
        await _show_stats(db)
        return 0
    if args.command == "query":
        return await _run_query(db, args)
    if args.command == "diagnose":
        return await _run_diagnose(db, args)
    if args.command == "export":
        written = await db.export_backup(args.path, include_embeddings=args.with_embeddings)
        print(f"✅ Backup exported to {args.path} ({written} documents)")
        return 0
    if args.command == "import":
        result = await db.import_backup(args.path, clear_existing=args.clear)
        print(f"✅ Import complete: {result.success_count} documents, {result.failure_count} failed")
        return 0 if result.ok else 1

    raise ValueError(f"Unknown command: {args.command}")


def main(argv: Sequence[str] | None = None) -> int:
    load_dotenv(".env.local")
    load_dotenv()

    args = build_parser().parse_args(argv)
    configure_logging(logging.DEBUG if args.verbose else logging.INFO)

    try:
        code = asyncio.run(_run(args))
    except VectorDBError as exc:
        LOGGER.error("%s", exc)
        print(f"\n❌ {exc}")
        print("\nTroubleshooting:")
        print("  1. Ensure the Chroma server is running (chroma run --path .chroma)")
        print("  2. Check OPENAI_API_KEY is set in .env.local")
        print("  3. Verify the docs directory exists and contains markdown files")
        return 1
    except FileNotFoundError as exc:
        print(f"\n❌ {exc}")
        return 1

    LOGGER.debug("Latency summary: %s", latency_summary())
    return code


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
