"""
Knowledge Graph Domain Models

Defines the core entities and relationships in the knowledge graph.
"""

from typing import List, Dict, Any, Optional, Iterable
from datetime import datetime
from dataclasses import dataclass, field


def entity_embedding_text(name: str, observations: Iterable[str]) -> str:
    """Text that represents an entity in the vector index: name plus observations."""
    return f"{name} {' '.join(observations)}"


@dataclass
class Entity:
    """
    A named node in the knowledge graph.

    Observations are an ordered list with set semantics: the same string
    never appears twice on one entity.
    """
    name: str
    entity_type: str
    observations: List[str] = field(default_factory=list)

    @property
    def embedding_text(self) -> str:
        return entity_embedding_text(self.name, self.observations)

    def to_dict(self) -> Dict[str, Any]:
        """Convert entity to its wire representation"""
        return {
            "name": self.name,
            "entityType": self.entity_type,
            "observations": list(self.observations),
        }


@dataclass(frozen=True)
class Relation:
    """
    A directed, typed edge between two entity names.

    The (from, to, type) triple is the identity of a relation.
    """
    from_entity: str
    to_entity: str
    relation_type: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert relation to its wire representation"""
        return {
            "from": self.from_entity,
            "to": self.to_entity,
            "relationType": self.relation_type,
        }


@dataclass
class KnowledgeGraph:
    """Entities and relations returned by every read operation"""
    entities: List[Entity] = field(default_factory=list)
    relations: List[Relation] = field(default_factory=list)

    @classmethod
    def empty(cls) -> "KnowledgeGraph":
        return cls(entities=[], relations=[])

    @property
    def entity_names(self) -> List[str]:
        return [e.name for e in self.entities]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entities": [e.to_dict() for e in self.entities],
            "relations": [r.to_dict() for r in self.relations],
        }


@dataclass
class ObservationAddition:
    entity_name: str
    contents: List[str]


@dataclass
class ObservationDeletion:
    entity_name: str
    observations: List[str]


@dataclass
class ObservationResult:
    """Outcome of add_observations for one entity"""
    entity_name: str
    added_observations: List[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entityName": self.entity_name,
            "addedObservations": list(self.added_observations),
        }


@dataclass
class EmbeddingVector:
    """
    Represents a semantic vector embedding for an entity.

    Embeddings enable semantic similarity search. They are derived data:
    the entities table stays authoritative for existence.
    """
    entity_id: int  # EntityRecord.id
    entity_name: str
    vector: List[float]
    embedding_text: str  # The text that was embedded
    model: str
    created_at: Optional[datetime] = None

    def __post_init__(self):
        if self.created_at is None:
            self.created_at = datetime.utcnow()

    @property
    def chroma_id(self) -> str:
        """Generate ChromaDB-compatible ID"""
        return str(self.entity_id)

    def to_chroma_document(self) -> tuple:
        """
        Convert to ChromaDB document format.

        Returns:
            tuple: (id, embedding, metadata, document)
        """
        metadata = {
            "entity_id": self.entity_id,
            "name": self.entity_name,
            "model": self.model,
            "created_at": self.created_at.isoformat(),
        }
        return (
            self.chroma_id,
            self.vector,
            metadata,
            self.embedding_text
        )
