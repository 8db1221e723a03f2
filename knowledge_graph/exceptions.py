"""
Knowledge Graph Exceptions

Only EntityNotFound reaches callers of the CRUD surface on a missing entity;
every other operation treats missing targets as a silent no-op.
"""

from typing import Optional


class KnowledgeGraphError(Exception):
    """Base class for knowledge graph errors"""


class EntityNotFound(KnowledgeGraphError):
    """add_observations targeted an entity that does not exist"""

    def __init__(self, entity_name: str):
        self.entity_name = entity_name
        super().__init__(f"Entity with name {entity_name} not found")


class EmbeddingUnavailable(KnowledgeGraphError):
    """The embedding model could not produce a vector"""

    def __init__(self, message: str, model: Optional[str] = None):
        self.model = model
        super().__init__(message)


class StorageReadFailure(KnowledgeGraphError):
    """Reading primary rows failed"""


class StorageWriteFailure(KnowledgeGraphError):
    """Writing primary rows failed"""
