"""
Search Strategies

search_nodes is answered by exactly one strategy, chosen when the manager is
built:

- LexicalSearch: case-insensitive substring match over primary rows
- VectorSearch: nearest neighbours of the query embedding, hydrated from the store
"""

import logging

from knowledge_graph.embedding_service import EmbeddingService
from knowledge_graph.models import Entity, KnowledgeGraph
from knowledge_graph.store import GraphStore
from knowledge_graph.vector_store import VectorStore

logger = logging.getLogger(__name__)


class SearchStrategy:
    """Interface for search_nodes implementations"""

    name = "abstract"

    async def search(self, query: str, top_k: int = 5) -> KnowledgeGraph:
        raise NotImplementedError


def _matches(entity: Entity, needle: str) -> bool:
    if needle in entity.name.lower() or needle in entity.entity_type.lower():
        return True
    return any(needle in observation.lower() for observation in entity.observations)


class LexicalSearch(SearchStrategy):
    """
    Substring match against entity name, type, or any observation.

    Returns every match (top_k does not apply) plus the relations whose
    endpoints are both matched.
    """

    name = "lexical"

    def __init__(self, store: GraphStore):
        self.store = store

    async def search(self, query: str, top_k: int = 5) -> KnowledgeGraph:
        graph = self.store.scan_all()
        needle = query.lower()
        entities = [e for e in graph.entities if _matches(e, needle)]
        names = {e.name for e in entities}
        relations = [
            r for r in graph.relations
            if r.from_entity in names and r.to_entity in names
        ]
        return KnowledgeGraph(entities=entities, relations=relations)


class VectorSearch(SearchStrategy):
    """
    Semantic search over entity embeddings.

    Entities come back ordered by distance from the query. Ids the store no
    longer knows are dropped. An empty index yields an empty graph; there is
    no fallback to lexical matching.
    """

    name = "vector"

    def __init__(self, store: GraphStore, embedding_service: EmbeddingService, vector_store: VectorStore):
        self.store = store
        self.embedding_service = embedding_service
        self.vector_store = vector_store

    async def search(self, query: str, top_k: int = 5) -> KnowledgeGraph:
        if not query or not query.strip():
            return KnowledgeGraph.empty()
        if self.vector_store.count() == 0:
            return KnowledgeGraph.empty()

        query_vector = await self.embedding_service.embed(query)
        hits = self.vector_store.nearest(query_vector, top_k)
        if not hits:
            return KnowledgeGraph.empty()

        logger.debug(f"🔍 Vector search for {query!r}: {len(hits)} candidates")
        entities = self.store.get_entities_by_ids([entity_id for entity_id, _ in hits])
        names = [e.name for e in entities]
        return KnowledgeGraph(entities=entities, relations=self.store.relations_between(names))
