"""Rebuild the vector index from the entities table."""

import argparse
import asyncio
import logging

from config import Settings
from knowledge_graph.manager import KnowledgeGraphManager, build_manager


async def backfill(manager: KnowledgeGraphManager, reset: bool = False) -> dict:
    if manager.enrichment is None:
        raise SystemExit("SEARCH_MODE is lexical; there is no vector index to backfill")

    await manager.start()
    try:
        if reset and manager.vector_store is not None:
            manager.vector_store.reset()
            print("Cleared existing embeddings")

        queued = await manager.reindex()
        print(f"Backfilling embeddings for {queued} entities...")
        await manager.wait_for_enrichment()

        stats = manager.enrichment.stats.to_dict()
        print(
            f"Done. Embedded {stats['completed']} entities "
            f"({stats['failed']} failed, {stats['skipped']} skipped, {stats['dropped']} dropped)."
        )
        return stats
    finally:
        await manager.close()


def main():
    parser = argparse.ArgumentParser(description="Backfill knowledge graph embeddings for all entities")
    parser.add_argument("--db", default=None, help="Graph database file (defaults to DB_FILE_PATH)")
    parser.add_argument("--model", default=None, help="Embedding model (defaults to EMBEDDING_MODEL)")
    parser.add_argument("--reset", action="store_true", help="Delete all existing embeddings first")
    args = parser.parse_args()

    overrides = {"SEARCH_MODE": "vector"}
    if args.db:
        overrides["DB_FILE_PATH"] = args.db
    if args.model:
        overrides["EMBEDDING_MODEL"] = args.model
    settings = Settings(**overrides)

    logging.basicConfig(level=settings.LOG_LEVEL)
    # Queue must hold every entity
    manager = build_manager(settings)
    manager.enrichment.max_queue = max(manager.enrichment.max_queue, manager.store.count_entities() + 1)
    asyncio.run(backfill(manager, reset=args.reset))


if __name__ == "__main__":
    main()
