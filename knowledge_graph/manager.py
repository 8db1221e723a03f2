"""
Knowledge Graph Manager

Orchestrates the graph store, the embedding worker pool and the search
strategy. This is the entry point the tool surface and the HTTP API call.

Consistency contract:
1. Primary rows are written synchronously; every read sees them immediately
2. Embeddings are produced in the background (vector mode only) and may lag
3. Deleting an entity removes its row, its relations and its embedding
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.engine import Engine

from config import Settings
from database import create_engine_for, create_session_factory, create_tables
from knowledge_graph.embedding_service import EmbeddingService, create_embedding_service
from knowledge_graph.enrichment import EmbeddingWorkerPool
from knowledge_graph.exceptions import EntityNotFound
from knowledge_graph.models import (
    Entity,
    KnowledgeGraph,
    ObservationAddition,
    ObservationDeletion,
    ObservationResult,
    Relation,
)
from knowledge_graph.search import LexicalSearch, SearchStrategy, VectorSearch
from knowledge_graph.store import GraphStore
from knowledge_graph.vector_store import VectorStore

logger = logging.getLogger(__name__)

SEARCH_MODE_ALIASES = {
    "vector": "vector",
    "enhanced": "vector",
    "lexical": "lexical",
    "basic": "lexical",
}


class KnowledgeGraphManager:
    """
    CRUD and search over the knowledge graph.

    Built once at startup (see build_manager) and handed to whichever surface
    serves requests.
    """

    def __init__(
        self,
        store: GraphStore,
        search_strategy: SearchStrategy,
        enrichment: Optional[EmbeddingWorkerPool] = None,
        vector_store: Optional[VectorStore] = None,
        engine: Optional[Engine] = None,
    ):
        self.store = store
        self.search_strategy = search_strategy
        self.enrichment = enrichment
        self.vector_store = vector_store
        self._engine = engine

    @property
    def search_mode(self) -> str:
        return self.search_strategy.name

    async def start(self) -> None:
        if self.enrichment is not None:
            await self.enrichment.start()
        logger.info(f"✅ Knowledge graph manager ready (search mode: {self.search_mode})")

    async def close(self) -> None:
        if self.enrichment is not None:
            await self.enrichment.close()
        if self._engine is not None:
            self._engine.dispose()

    def _schedule_embedding(self, entity_name: str) -> None:
        if self.enrichment is not None:
            self.enrichment.submit(entity_name)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create_entities(self, entities: Sequence[Entity]) -> List[Entity]:
        """
        Create entities whose names do not exist yet.

        Returns:
            The newly created entities, in input order. Existing names are ignored.
        """
        created = []
        for entity in entities:
            if self.store.upsert_entity_if_absent(entity):
                created.append(entity)
                self._schedule_embedding(entity.name)
        logger.debug(f"Created {len(created)} of {len(entities)} entities")
        return created

    async def create_relations(self, relations: Sequence[Relation]) -> List[Relation]:
        """Create relations; identical triples that already exist are ignored."""
        created = []
        for relation in relations:
            if self.store.upsert_relation_if_absent(relation):
                created.append(relation)
        return created

    async def add_observations(self, additions: Sequence[ObservationAddition]) -> List[ObservationResult]:
        """
        Append observations to existing entities.

        Every target is checked before anything is written, so a missing
        entity aborts the whole call without a partial write.

        Raises:
            EntityNotFound: a target entity does not exist
        """
        current: Dict[str, List[str]] = {}
        for addition in additions:
            if addition.entity_name in current:
                continue
            observations = self.store.get_observations(addition.entity_name)
            if observations is None:
                raise EntityNotFound(addition.entity_name)
            current[addition.entity_name] = observations

        results = []
        for addition in additions:
            existing = current[addition.entity_name]
            seen = set(existing)
            added = []
            for content in addition.contents:
                if content not in seen:
                    seen.add(content)
                    added.append(content)

            if added:
                merged = existing + added
                self.store.replace_observations(addition.entity_name, merged)
                current[addition.entity_name] = merged
                self._schedule_embedding(addition.entity_name)

            results.append(ObservationResult(entity_name=addition.entity_name, added_observations=added))
        return results

    async def delete_entities(self, entity_names: Sequence[str]) -> None:
        """
        Delete entities with their embeddings and every relation naming them.

        Relations are removed even when the entity row is already gone.
        """
        for name in entity_names:
            entity_id = self.store.get_entity_id(name)
            if entity_id is not None:
                if self.vector_store is not None:
                    try:
                        self.vector_store.delete(entity_id)
                    except Exception as exc:
                        # Orphaned vectors are dropped at hydration time
                        logger.warning(f"⚠️ Could not delete embedding for entity {name!r}: {exc}")
                self.store.delete_entity(name)
            self.store.delete_relations_touching(name)

    async def delete_observations(self, deletions: Sequence[ObservationDeletion]) -> None:
        """
        Remove specific observations. Unknown entities and observations are skipped.

        Embeddings are not regenerated here; add_observations is the only
        observation change that re-embeds.
        """
        for deletion in deletions:
            existing = self.store.get_observations(deletion.entity_name)
            if existing is None:
                continue
            to_remove = set(deletion.observations)
            remaining = [o for o in existing if o not in to_remove]
            if len(remaining) != len(existing):
                self.store.replace_observations(deletion.entity_name, remaining)

    async def delete_relations(self, relations: Sequence[Relation]) -> None:
        for relation in relations:
            self.store.delete_relation(relation)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def read_graph(self) -> KnowledgeGraph:
        return self.store.scan_all()

    async def search_nodes(self, query: str, top_k: int = 5) -> KnowledgeGraph:
        return await self.search_strategy.search(query, top_k)

    async def open_nodes(self, names: Sequence[str]) -> KnowledgeGraph:
        return self.store.filter_by_names(names)

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def reindex(self) -> int:
        """Queue an embedding job for every entity. Returns the number queued."""
        if self.enrichment is None:
            return 0
        queued = 0
        for name in self.store.list_entity_names():
            if self.enrichment.submit(name):
                queued += 1
        logger.info(f"Queued {queued} entities for re-embedding")
        return queued

    async def wait_for_enrichment(self) -> None:
        """Block until queued embedding jobs are done. No CRUD or search call waits on this."""
        if self.enrichment is not None:
            await self.enrichment.drain()

    def stats(self) -> Dict[str, Any]:
        stats: Dict[str, Any] = {
            "search_mode": self.search_mode,
            "entities": self.store.count_entities(),
            "relations": self.store.count_relations(),
        }
        if self.enrichment is not None:
            stats["embedding_model"] = self.enrichment.embedding_service.model
            stats["embeddings"] = self.enrichment.stats.to_dict()
            stats["embeddings"]["pending"] = self.enrichment.pending
        if self.vector_store is not None:
            stats["total_embeddings"] = self.vector_store.count()
            stats["collection"] = self.vector_store.collection_name
        return stats


def build_manager(
    settings: Settings,
    embedding_service: Optional[EmbeddingService] = None,
    vector_store: Optional[VectorStore] = None,
) -> KnowledgeGraphManager:
    """
    Wire up a manager from settings.

    Args:
        settings: Resolved configuration
        embedding_service: Use this provider instead of the EMBEDDING_MODEL one
        vector_store: Use this index instead of opening CHROMA_DB_PATH
    """
    mode = SEARCH_MODE_ALIASES.get(str(settings.SEARCH_MODE).lower())
    if mode is None:
        raise ValueError(f"Unknown SEARCH_MODE '{settings.SEARCH_MODE}', expected 'vector' or 'lexical'")

    engine = create_engine_for(settings.DB_FILE_PATH)
    create_tables(engine)
    store = GraphStore(create_session_factory(engine))
    logger.info(f"📊 Graph database: {settings.DB_FILE_PATH}")

    if mode == "lexical":
        return KnowledgeGraphManager(store, LexicalSearch(store), engine=engine)

    if embedding_service is None:
        embedding_service = create_embedding_service(
            settings.EMBEDDING_MODEL,
            cache_dir=settings.cache_dir,
            openai_api_key=settings.OPENAI_API_KEY,
        )
    if vector_store is None:
        vector_store = VectorStore(
            settings.chroma_path,
            dimensions=embedding_service.dimensions,
            distance=settings.VECTOR_DISTANCE,
        )
        logger.info(f"📊 Vector index: {settings.chroma_path} ({vector_store.count()} embeddings)")

    enrichment = EmbeddingWorkerPool(
        store,
        embedding_service,
        vector_store,
        workers=settings.EMBEDDING_WORKERS,
        max_queue=settings.EMBEDDING_QUEUE_SIZE,
    )
    return KnowledgeGraphManager(
        store,
        VectorSearch(store, embedding_service, vector_store),
        enrichment=enrichment,
        vector_store=vector_store,
        engine=engine,
    )
