from sqlalchemy import Column, Integer, String, Text, DateTime, JSON, Index, UniqueConstraint
from sqlalchemy.orm import declarative_base
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List

Base = declarative_base()

# SQLAlchemy Models
class EntityRecord(Base):
    __tablename__ = "entities"
    # AUTOINCREMENT: ids are never reused, vectors are keyed by them
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True)
    name = Column(Text, unique=True, nullable=False, index=True)
    entity_type = Column(Text, nullable=False)
    observations = Column(JSON, nullable=False, default=list)  # Ordered list of strings

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class RelationRecord(Base):
    __tablename__ = "relations"
    __table_args__ = (
        UniqueConstraint("from_entity", "to_entity", "relation_type", name="uq_relation_triple"),
        Index("idx_relations_from", "from_entity"),
        Index("idx_relations_to", "to_entity"),
        {"sqlite_autoincrement": True},
    )

    id = Column(Integer, primary_key=True)
    from_entity = Column(Text, nullable=False)
    to_entity = Column(Text, nullable=False)
    relation_type = Column(String, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)


# Pydantic Models for the tool surface and API
class EntityModel(BaseModel):
    name: str = Field(description="The name of the entity")
    entityType: str = Field(description="The type of the entity")
    observations: List[str] = Field(
        default_factory=list,
        description="An array of observation contents associated with the entity",
    )


class RelationModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_: str = Field(alias="from", description="The name of the entity where the relation starts")
    to: str = Field(description="The name of the entity where the relation ends")
    relationType: str = Field(description="The type of the relation")


class ObservationAdditionModel(BaseModel):
    entityName: str = Field(description="The name of the entity to add the observations to")
    contents: List[str] = Field(description="An array of observation contents to add")


class ObservationDeletionModel(BaseModel):
    entityName: str = Field(description="The name of the entity containing the observations")
    observations: List[str] = Field(description="An array of observations to delete")


class ObservationResultModel(BaseModel):
    entityName: str
    addedObservations: List[str]


class KnowledgeGraphModel(BaseModel):
    entities: List[EntityModel]
    relations: List[RelationModel]


class CreateEntitiesRequest(BaseModel):
    entities: List[EntityModel]


class CreateRelationsRequest(BaseModel):
    relations: List[RelationModel]


class AddObservationsRequest(BaseModel):
    observations: List[ObservationAdditionModel]


class DeleteEntitiesRequest(BaseModel):
    entityNames: List[str]


class DeleteObservationsRequest(BaseModel):
    deletions: List[ObservationDeletionModel]


class DeleteRelationsRequest(BaseModel):
    relations: List[RelationModel]


class SearchNodesRequest(BaseModel):
    query: str = Field(description="The search query to match against entity names, types, and observation content")
    topK: int = Field(default=5, ge=1, le=100, description="Maximum number of entities returned by vector search")


class OpenNodesRequest(BaseModel):
    names: List[str]


class StatusResponse(BaseModel):
    message: str
    stats: Optional[dict] = None
