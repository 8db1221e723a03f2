"""
Knowledge Graph Module

Persistent entity/relation graph with lexical and semantic search.

Architecture:
- models: Domain models (Entity, Relation, KnowledgeGraph, EmbeddingVector)
- store: SQLAlchemy persistence for entities and relations
- embedding_service: Embedding providers (local sentence-transformers, OpenAI)
- vector_store: ChromaDB integration for embeddings
- enrichment: Background embedding workers
- search: Lexical and vector search strategies
- manager: High-level CRUD and search
- tools / routes: MCP tool dispatch and API endpoints
"""

from knowledge_graph.exceptions import (
    EmbeddingUnavailable,
    EntityNotFound,
    KnowledgeGraphError,
    StorageReadFailure,
    StorageWriteFailure,
)
from knowledge_graph.models import (
    Entity,
    KnowledgeGraph,
    ObservationAddition,
    ObservationDeletion,
    ObservationResult,
    Relation,
)

__all__ = [
    "EmbeddingUnavailable",
    "Entity",
    "EntityNotFound",
    "KnowledgeGraph",
    "KnowledgeGraphError",
    "ObservationAddition",
    "ObservationDeletion",
    "ObservationResult",
    "Relation",
    "StorageReadFailure",
    "StorageWriteFailure",
]
