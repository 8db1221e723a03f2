"""
Graph Store

SQLAlchemy-backed persistence for entities and relations. This is the single
source of truth; the vector store only ever holds derived data.
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Iterable, Iterator, List, Optional, Sequence

from sqlalchemy import or_
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from models import EntityRecord, RelationRecord
from knowledge_graph.exceptions import StorageReadFailure, StorageWriteFailure
from knowledge_graph.models import Entity, KnowledgeGraph, Relation

logger = logging.getLogger(__name__)


def _to_entity(row: EntityRecord) -> Entity:
    return Entity(
        name=row.name,
        entity_type=row.entity_type,
        observations=list(row.observations or []),
    )


def _to_relation(row: RelationRecord) -> Relation:
    return Relation(
        from_entity=row.from_entity,
        to_entity=row.to_entity,
        relation_type=row.relation_type,
    )


class GraphStore:
    """
    Durable storage over entities (keyed by name) and relations (keyed by
    the from/to/type triple).

    Each operation runs in its own session and commits before returning, so
    callers always read their own writes. Write errors surface as
    StorageWriteFailure; read errors as StorageReadFailure, except for
    scan_all which falls back to an empty graph.
    """

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
        finally:
            session.close()

    @contextmanager
    def _writing(self, action: str) -> Iterator[Session]:
        with self._session() as db:
            try:
                yield db
                db.commit()
            except SQLAlchemyError as exc:
                db.rollback()
                logger.error(f"❌ Store: {action} failed: {exc}")
                raise StorageWriteFailure(f"{action} failed: {exc}") from exc

    @contextmanager
    def _reading(self, action: str) -> Iterator[Session]:
        with self._session() as db:
            try:
                yield db
            except SQLAlchemyError as exc:
                logger.error(f"❌ Store: {action} failed: {exc}")
                raise StorageReadFailure(f"{action} failed: {exc}") from exc

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def upsert_entity_if_absent(self, entity: Entity) -> bool:
        """Insert the entity unless its name already exists. Returns True if created."""
        now = datetime.utcnow()
        stmt = (
            sqlite_insert(EntityRecord)
            .values(
                name=entity.name,
                entity_type=entity.entity_type,
                observations=list(entity.observations),
                created_at=now,
                updated_at=now,
            )
            .on_conflict_do_nothing(index_elements=["name"])
        )
        with self._writing(f"insert entity {entity.name!r}") as db:
            result = db.execute(stmt)
        return result.rowcount > 0

    def upsert_relation_if_absent(self, relation: Relation) -> bool:
        """Insert the relation unless the identical triple exists. Returns True if created."""
        stmt = (
            sqlite_insert(RelationRecord)
            .values(
                from_entity=relation.from_entity,
                to_entity=relation.to_entity,
                relation_type=relation.relation_type,
                created_at=datetime.utcnow(),
            )
            .on_conflict_do_nothing(
                index_elements=["from_entity", "to_entity", "relation_type"]
            )
        )
        with self._writing(f"insert relation {relation.to_dict()}") as db:
            result = db.execute(stmt)
        return result.rowcount > 0

    def replace_observations(self, name: str, observations: Sequence[str]) -> None:
        """Overwrite the observation list of an entity (no-op if it does not exist)."""
        with self._writing(f"update observations of {name!r}") as db:
            db.query(EntityRecord).filter(EntityRecord.name == name).update(
                {"observations": list(observations), "updated_at": datetime.utcnow()},
                synchronize_session=False,
            )

    def delete_entity(self, name: str) -> None:
        with self._writing(f"delete entity {name!r}") as db:
            db.query(EntityRecord).filter(EntityRecord.name == name).delete(
                synchronize_session=False
            )

    def delete_relations_touching(self, name: str) -> None:
        with self._writing(f"delete relations of {name!r}") as db:
            db.query(RelationRecord).filter(
                or_(RelationRecord.from_entity == name, RelationRecord.to_entity == name)
            ).delete(synchronize_session=False)

    def delete_relation(self, relation: Relation) -> None:
        with self._writing(f"delete relation {relation.to_dict()}") as db:
            db.query(RelationRecord).filter(
                RelationRecord.from_entity == relation.from_entity,
                RelationRecord.to_entity == relation.to_entity,
                RelationRecord.relation_type == relation.relation_type,
            ).delete(synchronize_session=False)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_observations(self, name: str) -> Optional[List[str]]:
        with self._reading(f"read observations of {name!r}") as db:
            row = db.query(EntityRecord.observations).filter(EntityRecord.name == name).first()
        if row is None:
            return None
        return list(row[0] or [])

    def get_entity(self, name: str) -> Optional[Entity]:
        with self._reading(f"read entity {name!r}") as db:
            row = db.query(EntityRecord).filter(EntityRecord.name == name).first()
            return _to_entity(row) if row else None

    def get_entity_id(self, name: str) -> Optional[int]:
        with self._reading(f"read id of {name!r}") as db:
            row = db.query(EntityRecord.id).filter(EntityRecord.name == name).first()
        return row[0] if row else None

    def get_entity_with_id(self, name: str) -> Optional[tuple]:
        """(id, Entity) for the current row of an entity, or None."""
        with self._reading(f"read entity {name!r}") as db:
            row = db.query(EntityRecord).filter(EntityRecord.name == name).first()
            return (row.id, _to_entity(row)) if row else None

    def get_entities_by_ids(self, ids: Sequence[int]) -> List[Entity]:
        """Entities for the given ids, in the order the ids were given. Unknown ids are dropped."""
        if not ids:
            return []
        with self._reading("read entities by id") as db:
            rows = db.query(EntityRecord).filter(EntityRecord.id.in_(list(ids))).all()
            by_id = {row.id: _to_entity(row) for row in rows}
        return [by_id[i] for i in ids if i in by_id]

    def relations_between(self, names: Iterable[str]) -> List[Relation]:
        """Relations whose endpoints are both within names."""
        name_list = list(dict.fromkeys(names))
        if not name_list:
            return []
        with self._reading("read relations") as db:
            rows = (
                db.query(RelationRecord)
                .filter(
                    RelationRecord.from_entity.in_(name_list),
                    RelationRecord.to_entity.in_(name_list),
                )
                .order_by(RelationRecord.id)
                .all()
            )
            return [_to_relation(r) for r in rows]

    def filter_by_names(self, names: Iterable[str]) -> KnowledgeGraph:
        """Entities with the given names plus relations among the given names."""
        name_list = list(dict.fromkeys(names))
        if not name_list:
            return KnowledgeGraph.empty()
        with self._reading("read entities by name") as db:
            rows = (
                db.query(EntityRecord)
                .filter(EntityRecord.name.in_(name_list))
                .order_by(EntityRecord.id)
                .all()
            )
            entities = [_to_entity(r) for r in rows]
        return KnowledgeGraph(entities=entities, relations=self.relations_between(name_list))

    def scan_all(self) -> KnowledgeGraph:
        """
        Materialize the whole graph.

        Never returns a partial graph: on any storage error the result is empty.
        """
        try:
            with self._session() as db:
                entity_rows = db.query(EntityRecord).order_by(EntityRecord.id).all()
                relation_rows = db.query(RelationRecord).order_by(RelationRecord.id).all()
                return KnowledgeGraph(
                    entities=[_to_entity(r) for r in entity_rows],
                    relations=[_to_relation(r) for r in relation_rows],
                )
        except (SQLAlchemyError, ValueError, TypeError) as exc:
            logger.error(f"❌ Store: full graph scan failed, returning empty graph: {exc}")
            return KnowledgeGraph.empty()

    def list_entity_names(self) -> List[str]:
        with self._reading("list entity names") as db:
            return [row[0] for row in db.query(EntityRecord.name).order_by(EntityRecord.id).all()]

    def count_entities(self) -> int:
        with self._reading("count entities") as db:
            return db.query(EntityRecord).count()

    def count_relations(self) -> int:
        with self._reading("count relations") as db:
            return db.query(RelationRecord).count()
