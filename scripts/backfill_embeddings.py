#!/usr/bin/env python3
"""
Embedding Backfill Script

Computes local embeddings for stored papers that have none, so they become
reachable by semantic search. Run after importing papers without embeddings.

Usage:
    python scripts/backfill_embeddings.py [--dry-run] [--batch-size 10]
"""

import argparse
import asyncio
import sys

from paperkb.common.config import load_config
from paperkb.graph import create_graph_store


async def backfill(dry_run: bool, batch_size: int) -> int:
    config = load_config()
    if config.graph.backend != "neo4j":
        print("[Backfill] ERROR: the memory backend holds no persisted papers; set PAPERKB_GRAPH_BACKEND=neo4j")
        return 1

    store = create_graph_store(config.graph)
    print(f"[Backfill] Connecting to Neo4j at {config.graph.uri}...")
    await store.connect()
    if not store.is_connected:
        print("[Backfill] ERROR: Could not connect to Neo4j")
        return 1

    try:
        stats = await store.get_stats()
        missing = stats.get("papers", 0) - stats.get("papers_with_embeddings", 0)
        print(f"[Backfill] {stats.get('papers', 0)} papers, {missing} without embeddings")

        if dry_run:
            print("[Backfill] DRY RUN - no changes will be made")
            print(f"[Backfill] Batch size: {batch_size}")
            return 0

        if missing <= 0:
            print("[Backfill] Nothing to do")
            return 0

        updated = await store.add_embeddings_to_existing_papers(batch_size=batch_size)
        print(f"[Backfill] Added embeddings to {updated} papers")
        return 0
    finally:
        await store.close()


def main():
    parser = argparse.ArgumentParser(description="Compute embeddings for stored papers that lack one")
    parser.add_argument("--dry-run", action="store_true", help="Report what would be done without writing")
    parser.add_argument("--batch-size", type=int, default=10, help="Number of papers updated per batch")
    args = parser.parse_args()

    sys.exit(asyncio.run(backfill(args.dry_run, args.batch_size)))


if __name__ == "__main__":
    main()
