#!/usr/bin/env python
"""Ingest news articles into the vector index.

Usage:
    python scripts/reindex.py              # Fetch the configured feeds
    python scripts/reindex.py --sample     # Index the bundled sample articles
    python scripts/reindex.py --rebuild    # Clear the collection first
    python scripts/reindex.py --verbose    # Show detailed progress
"""
import argparse
import asyncio
import sys
from datetime import datetime
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import structlog

from newsbot import config
from newsbot.rag.chunker import Chunker
from newsbot.rag.embeddings import EmbeddingProvider
from newsbot.rag.ingest import IngestionPipeline, IngestReport
from newsbot.rag.store_faiss import FAISSVectorIndex
from newsbot.sources.feeds import FeedFetcher
from newsbot.sources.models import Document
from newsbot.sources.sample_data import sample_records

logger = structlog.get_logger()


class ProgressReporter:
    """Simple progress reporter for CLI."""

    def __init__(self, verbose: bool = False):
        self.verbose = verbose
        self.start_time = None

    def start(self, message: str):
        """Start progress reporting."""
        self.start_time = datetime.now()
        print(f"\n{'=' * 60}")
        print(f"  {message}")
        print(f"{'=' * 60}\n")

    def update(self, current: int, total: int, document: Document):
        """Update progress."""
        percentage = (current / total) * 100 if total > 0 else 0
        bar_length = 40
        filled = int(bar_length * current / total) if total > 0 else 0
        bar = "█" * filled + "░" * (bar_length - filled)

        print(
            f"\r  [{bar}] {percentage:5.1f}% ({current}/{total}) {document.title[:30]:<30}",
            end="",
            flush=True,
        )

        if self.verbose:
            print()

    def finish(self, report: IngestReport):
        """Finish progress reporting."""
        print("\n")
        elapsed_seconds = (datetime.now() - self.start_time).total_seconds()

        print(f"{'=' * 60}")
        print("  Ingestion Complete!")
        print(f"{'=' * 60}\n")
        print(f"  📰 Documents processed:  {report.document_count}")
        print(f"  📝 Chunks indexed:       {report.chunk_count}")
        print(f"  ❌ Chunks failed:        {report.failed_chunks}")
        print(f"  🧮 Entries in index:     {report.index_stats.get('entry_count', 0)}")
        print(f"  ⏱️  Time elapsed:         {elapsed_seconds:.1f}s")

        if report.chunk_count > 0 and elapsed_seconds > 0:
            rate = report.chunk_count / elapsed_seconds
            print(f"  ⚡ Indexing rate:        {rate:.1f} chunks/sec")

        print(f"\n{'=' * 60}\n")

        if report.failed_chunks > 0:
            print(f"⚠️  Warning: {report.failed_chunks} chunk(s) failed to embed.")
            print("   Check logs for details.\n")

        if report.chunk_count > 0:
            print(f"✅ Index ready at: {config.DATA_DIR}/{config.COLLECTION_NAME}.index")
            print(f"✅ Catalogue at: {config.DB_PATH}\n")


async def main():
    """Main entry point for reindex script."""
    parser = argparse.ArgumentParser(
        description="Ingest news articles into the vector index",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/reindex.py              # Fetch the configured feeds
  python scripts/reindex.py --sample     # Index the bundled sample articles
  python scripts/reindex.py --rebuild    # Clear the collection first
        """,
    )

    parser.add_argument(
        "--rebuild",
        action="store_true",
        help="Clear the collection before ingesting",
    )

    parser.add_argument(
        "--sample",
        action="store_true",
        help="Index the bundled sample articles instead of fetching feeds",
    )

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Show verbose progress output",
    )

    args = parser.parse_args()

    progress = ProgressReporter(verbose=args.verbose)

    try:
        print("\n📋 Configuration:")
        print(f"   Data directory:   {config.DATA_DIR}")
        print(f"   Collection:       {config.COLLECTION_NAME}")
        print(f"   Embedding model:  {config.JINA_MODEL}")
        print(f"   Remote embedder:  {'yes' if config.JINA_API_KEY else 'no (fallback)'}")
        print(f"   Chunk size:       {config.CHUNK_SIZE} chars")
        print(f"   Chunk overlap:    {config.CHUNK_OVERLAP} chars")
        print(f"   Source:           {'sample' if args.sample else 'feeds'}")

        if args.rebuild:
            print("\n⚠️  Rebuild mode: Will clear the existing collection!")
            print("   Press Ctrl+C within 3 seconds to cancel...")
            await asyncio.sleep(3)

        pipeline = IngestionPipeline(
            Chunker(), EmbeddingProvider(), FAISSVectorIndex()
        )

        def on_progress(current, total, document):
            progress.update(current, total, document)

        action = "Rebuilding" if args.rebuild else "Ingesting"

        if args.sample:
            progress.start(f"{action} Sample Articles")
            report = await pipeline.ingest_records(
                sample_records(), rebuild=args.rebuild, progress_callback=on_progress
            )
        else:
            print("\n📡 Fetching feeds...")
            documents = await FeedFetcher().fetch_documents()
            if not documents:
                print("\n❌ Error: no articles could be fetched from the configured feeds.\n")
                sys.exit(1)

            progress.start(f"{action} {len(documents)} Articles")
            report = await pipeline.ingest(
                documents, rebuild=args.rebuild, progress_callback=on_progress
            )

        progress.finish(report)

        if report.failed_chunks > 0:
            sys.exit(1)

    except KeyboardInterrupt:
        print("\n\n⚠️  Ingestion cancelled by user.\n")
        sys.exit(1)

    except Exception as e:
        print(f"\n❌ Error: {e}\n")
        logger.error("reindex_script_failed", error=str(e), error_type=type(e).__name__)
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
