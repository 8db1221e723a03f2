"""
Vector Store

ChromaDB integration for storing and querying entity embeddings.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import chromadb
from chromadb.config import Settings

from knowledge_graph.models import EmbeddingVector

logger = logging.getLogger(__name__)

DISTANCE_SPACES = ("cosine", "l2", "ip")


class VectorStore:
    """
    ChromaDB-based nearest-neighbour index over entity embeddings.

    Records are keyed by the entity's integer id (stored as a string id in
    Chroma). The index is derived data and never decides whether an entity
    exists.
    """

    collection_name = "knowledge_graph_entities"

    def __init__(
        self,
        persist_directory: str,
        dimensions: int,
        distance: str = "cosine",
        client: Optional[Any] = None,
    ):
        """
        Initialize ChromaDB client.

        Args:
            persist_directory: Directory to persist ChromaDB data.
            dimensions: Length every stored and queried vector must have.
            distance: hnsw space, one of cosine / l2 / ip.
            client: Pre-built Chroma client (skips creating a PersistentClient).
        """
        if distance not in DISTANCE_SPACES:
            raise ValueError(f"Unsupported distance '{distance}', expected one of {DISTANCE_SPACES}")

        self.dimensions = dimensions
        self.distance = distance

        if client is None:
            persist_path = Path(persist_directory)
            persist_path.mkdir(parents=True, exist_ok=True)
            client = chromadb.PersistentClient(
                path=str(persist_path),
                settings=Settings(
                    anonymized_telemetry=False,
                    allow_reset=True
                )
            )
        self.client = client
        self.collection = self._open_collection()

    def _open_collection(self):
        return self.client.get_or_create_collection(
            name=self.collection_name,
            metadata={
                "description": "Knowledge graph entity embeddings",
                "hnsw:space": self.distance,
            }
        )

    def _check_dimensions(self, vector: Sequence[float]) -> None:
        if len(vector) != self.dimensions:
            raise ValueError(
                f"Vector has {len(vector)} dimensions, index expects {self.dimensions}"
            )

    def upsert(
        self,
        entity_id: int,
        vector: Sequence[float],
        document: str = "",
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Store or replace the embedding of an entity.

        Args:
            entity_id: Internal entity id
            vector: Embedding, must match the index dimension
            document: Text that was embedded
            metadata: Extra scalar metadata
        """
        self._check_dimensions(vector)
        meta = {"entity_id": int(entity_id)}
        if metadata:
            meta.update({k: v for k, v in metadata.items() if v is not None})

        self.collection.upsert(
            ids=[str(entity_id)],
            embeddings=[list(vector)],
            metadatas=[meta],
            documents=[document or ""]
        )

    def upsert_embedding(self, embedding: EmbeddingVector) -> None:
        """Store or replace an EmbeddingVector."""
        _, vector, metadata, document = embedding.to_chroma_document()
        self.upsert(embedding.entity_id, vector, document=document, metadata=metadata)

    def delete(self, entity_id: int) -> None:
        """Remove the embedding of an entity; no-op when it has none."""
        self.collection.delete(ids=[str(entity_id)])

    def nearest(self, query_vector: Sequence[float], k: int) -> List[Tuple[int, float]]:
        """
        Find the k nearest entity embeddings.

        Returns:
            [(entity_id, distance), ...] ascending by distance; equal distances
            are ordered by entity id. Empty when the index is empty.
        """
        self._check_dimensions(query_vector)
        total = self.collection.count()
        if k <= 0 or total == 0:
            return []

        similar = self.collection.query(
            query_embeddings=[list(query_vector)],
            n_results=min(k, total),
            include=["distances"]
        )

        results = []
        for chroma_id, distance in zip(similar["ids"][0], similar["distances"][0]):
            try:
                results.append((int(chroma_id), float(distance)))
            except (TypeError, ValueError):
                logger.warning(f"Skipping vector with non-numeric id {chroma_id!r}")

        results.sort(key=lambda item: (item[1], item[0]))
        return results[:k]

    def get_document(self, entity_id: int) -> Optional[str]:
        """Text that was embedded for an entity, if it has an embedding."""
        result = self.collection.get(ids=[str(entity_id)], include=["documents"])
        if len(result["ids"]) == 0:
            return None
        return result["documents"][0]

    def count(self) -> int:
        """Get total number of embeddings in the collection"""
        return self.collection.count()

    def reset(self) -> None:
        """Delete all embeddings (use with caution!)"""
        self.client.delete_collection(self.collection_name)
        self.collection = self._open_collection()
