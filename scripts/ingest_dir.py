"""
Bulk-ingest plain-text and markdown files from a directory into a bucket.

Files are processed one at a time; a file that fails (binary media, bad
encoding) is reported and the batch continues. Files already in the bucket
are skipped.
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from librarian.core.buckets import BucketManager
from librarian.ingest.pipeline import IngestionService
from librarian.ingest.sources import iter_source_files
from librarian.rag.chunker import ChunkConfig
from librarian.rag.dense import SentenceTransformerEmbedder


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Ingest text/markdown files from a directory into a bucket.",
    )
    parser.add_argument("directory", type=Path, help="Directory to scan")
    parser.add_argument(
        "--bucket",
        default=None,
        help="Bucket name (default: the current bucket, or the default store)",
    )
    parser.add_argument("--create", action="store_true", help="Create the bucket if it does not exist")
    parser.add_argument("--recursive", action="store_true", help="Descend into subdirectories")
    parser.add_argument("--tags", default=None, help="Comma-separated tags for every document")
    parser.add_argument("--chunk-size", type=int, default=1000)
    parser.add_argument("--overlap", type=int, default=200)
    parser.add_argument(
        "--no-embeddings",
        action="store_true",
        help="Store chunks without vectors (keyword search only until re-embedded)",
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not args.directory.is_dir():
        print(f"Error: not a directory: {args.directory}")
        return

    manager = BucketManager()
    if args.bucket and args.create and not manager.exists(args.bucket):
        manager.create(args.bucket)

    store = manager.store_for(args.bucket)
    embedder = None if args.no_embeddings else SentenceTransformerEmbedder()
    service = IngestionService(
        store=store,
        embedder=embedder,
        chunk_config=ChunkConfig(chunk_size=args.chunk_size, overlap=args.overlap),
    )

    files = list(iter_source_files(args.directory, recursive=args.recursive))
    print(f"Ingesting {len(files)} files from {args.directory} into {store.path}...")

    report = service.ingest_many(files, tags=args.tags)
    store.close()

    print("\nIngestion complete.")
    print(f"  Added:    {len(report.added)}")
    print(f"  Skipped:  {len(report.skipped)}")
    print(f"  Failed:   {len(report.failures)}")
    for failure in report.failures:
        print(f"    {failure.source}: {failure.error}")


if __name__ == "__main__":
    main()
