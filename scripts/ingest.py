#!/usr/bin/env python
"""Ingest documents from a directory into the vector index.

Usage:
    python scripts/ingest.py docs/                  # Append to the index
    python scripts/ingest.py docs/ --rebuild        # Start from an empty index
    python scripts/ingest.py docs/ --pattern "*.pdf"

Warning:
    The index writer lock only serialises writers inside one process. Stop
    the API server (or pause uploads) before running this script against
    the same VECTOR_INDEX_PATH, otherwise the last save wins and one side's
    chunks are lost.
"""
import argparse
import asyncio
import sys
from datetime import datetime
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import structlog

from docchat import config
from docchat.errors import RagError
from docchat.logging_setup import configure_logging
from docchat.rag.extract import is_supported
from docchat.rag.pipeline import get_pipeline

logger = structlog.get_logger()


def discover_files(directory: Path, pattern: str) -> list:
    """Find supported documents under a directory, sorted by path."""
    if not directory.is_dir():
        raise FileNotFoundError(f"Directory not found: {directory}")
    return sorted(p for p in directory.rglob(pattern) if p.is_file() and is_supported(p))


async def run(directory: Path, pattern: str, rebuild: bool, verbose: bool) -> dict:
    pipeline = get_pipeline()

    if rebuild:
        await pipeline.reset_index()

    files = discover_files(directory, pattern)
    stats = {"files_processed": 0, "files_failed": 0, "chunks_created": 0}

    for idx, file_path in enumerate(files, 1):
        try:
            result = await pipeline.ingest_file(file_path)
        except (RagError, OSError, ValueError) as e:
            logger.error("file_ingestion_failed", path=str(file_path), error=str(e))
            stats["files_failed"] += 1
            print(f"  [{idx}/{len(files)}] FAILED {file_path.name}: {e}")
            continue

        stats["files_processed"] += 1
        stats["chunks_created"] += result.chunks_created
        if verbose:
            print(f"  [{idx}/{len(files)}] {file_path.name}: {result.chunks_created} chunks")

    return stats


def main():
    """Main entry point for the ingest script."""
    parser = argparse.ArgumentParser(
        description="Ingest documents into the RAG vector index",
    )
    parser.add_argument("directory", type=Path, help="Directory with documents")
    parser.add_argument(
        "--pattern",
        default="*",
        help="Glob pattern for files to ingest (default: all supported files)",
    )
    parser.add_argument(
        "--rebuild",
        action="store_true",
        help="Delete the existing index before ingesting",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Show per-file progress")

    args = parser.parse_args()
    configure_logging("DEBUG" if args.verbose else "WARNING")

    print(f"\nIndex:       {config.VECTOR_INDEX_PATH}")
    print(f"Chunk size:  {config.CHUNK_SIZE} chars (overlap {config.CHUNK_OVERLAP})")
    print(f"Embeddings:  {config.EMBEDDING_MODEL}\n")
    print("Make sure the API server is not ingesting into this index meanwhile.\n")

    started = datetime.now()
    try:
        stats = asyncio.run(run(args.directory, args.pattern, args.rebuild, args.verbose))
    except KeyboardInterrupt:
        print("\nIngestion cancelled by user.\n")
        sys.exit(1)
    except (FileNotFoundError, RagError) as e:
        print(f"\nError: {e}\n")
        sys.exit(1)

    elapsed = (datetime.now() - started).total_seconds()
    print(f"\nFiles processed: {stats['files_processed']}")
    print(f"Files failed:    {stats['files_failed']}")
    print(f"Chunks created:  {stats['chunks_created']}")
    print(f"Time elapsed:    {elapsed:.1f}s\n")

    if stats["files_failed"] > 0:
        sys.exit(1)


if __name__ == "__main__":
    main()
