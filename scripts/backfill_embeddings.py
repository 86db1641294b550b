#!/usr/bin/env python3
"""
Embedding Backfill Script

Embeds decision records that have no embedding yet and upserts them into the
vector index. Safe to re-run; records that already have an embedding are
skipped.

Usage:
    python scripts/backfill_embeddings.py [--workspace T123] [--create-index] [--dry-run] [--batch-size 100]
"""

import sys
import argparse
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


def main():
    parser = argparse.ArgumentParser(description="Embed and index records that are missing embeddings")
    parser.add_argument("--workspace", type=str, default=None, help="Only backfill this workspace")
    parser.add_argument("--create-index", action="store_true", help="Create the vector index if it is missing")
    parser.add_argument("--dry-run", action="store_true", help="Print what would be done without executing")
    parser.add_argument("--batch-size", type=int, default=None, help="Records per embedding request")
    args = parser.parse_args()

    from dotenv import load_dotenv
    from corteza.common.config import load_config, ensure_directories
    from corteza.common.embedding_service import create_embedding_service
    from corteza.common.errors import CortezaError
    from corteza.common.record_store import RecordStore
    from corteza.common.vector_index import VectorIndexClient
    from corteza.retriever.indexer import EmbeddingIndexer

    load_dotenv()
    config = load_config()
    ensure_directories(config)

    records = RecordStore(config.storage.records_path)
    missing = records.missing_embeddings(args.workspace)
    print(f"[Backfill] {len(missing)} record(s) without embeddings")

    if args.dry_run:
        print("[Backfill] DRY RUN - no changes will be made")
        for record in missing[:20]:
            print(f"[Backfill]   {record.workspace_id} #{record.id}: {record.text[:60]}")
        return

    embedding = create_embedding_service(config.embedding)
    if embedding is None:
        print("[Backfill] ERROR: Embeddings are disabled or OPENAI_API_KEY is not set")
        sys.exit(1)

    index = VectorIndexClient.from_config(config.vector_index, config.storage)
    indexer = EmbeddingIndexer(
        embedding,
        index,
        records,
        batch_size=args.batch_size or config.embedding.batch_size,
    )

    try:
        if args.create_index and indexer.ensure_index():
            print(f"[Backfill] Created index '{index.index_name}'")
        report = indexer.backfill(args.workspace)
    except CortezaError as e:
        print(f"[Backfill] ERROR: {e}")
        sys.exit(1)

    print(f"[Backfill] Embedded {report.embedded}/{report.requested}, indexed {report.indexed}")
    if report.failed_ids:
        print(f"[Backfill] {len(report.failed_ids)} record(s) failed; re-run to retry")


if __name__ == "__main__":
    main()
