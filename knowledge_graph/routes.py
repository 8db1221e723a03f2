from contextlib import contextmanager
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from models import (
    AddObservationsRequest,
    CreateEntitiesRequest,
    CreateRelationsRequest,
    DeleteEntitiesRequest,
    DeleteObservationsRequest,
    DeleteRelationsRequest,
    EntityModel,
    KnowledgeGraphModel,
    ObservationResultModel,
    OpenNodesRequest,
    RelationModel,
    StatusResponse,
)
from knowledge_graph.exceptions import (
    EmbeddingUnavailable,
    EntityNotFound,
    StorageReadFailure,
    StorageWriteFailure,
)
from knowledge_graph.manager import KnowledgeGraphManager
from knowledge_graph.models import ObservationAddition, ObservationDeletion
from knowledge_graph.tools import to_entity, to_relation


router = APIRouter(prefix="/graph", tags=["knowledge-graph"])


def get_manager(request: Request) -> KnowledgeGraphManager:
    manager = getattr(request.app.state, "manager", None)
    if manager is None:
        raise HTTPException(status_code=503, detail="Knowledge graph not initialized")
    return manager


@contextmanager
def _graph_errors():
    try:
        yield
    except EntityNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except EmbeddingUnavailable as exc:
        raise HTTPException(status_code=503, detail=f"Embedding model unavailable: {exc}")
    except (StorageReadFailure, StorageWriteFailure) as exc:
        raise HTTPException(status_code=500, detail=str(exc))


@router.get("", response_model=KnowledgeGraphModel)
async def read_graph(manager: KnowledgeGraphManager = Depends(get_manager)) -> Dict[str, Any]:
    graph = await manager.read_graph()
    return graph.to_dict()


@router.post("/entities", response_model=List[EntityModel])
async def create_entities(
    req: CreateEntitiesRequest,
    manager: KnowledgeGraphManager = Depends(get_manager),
) -> List[Dict[str, Any]]:
    with _graph_errors():
        created = await manager.create_entities([to_entity(e) for e in req.entities])
    return [e.to_dict() for e in created]


@router.post("/relations", response_model=List[RelationModel])
async def create_relations(
    req: CreateRelationsRequest,
    manager: KnowledgeGraphManager = Depends(get_manager),
) -> List[Dict[str, Any]]:
    with _graph_errors():
        created = await manager.create_relations([to_relation(r) for r in req.relations])
    return [r.to_dict() for r in created]


@router.post("/observations", response_model=List[ObservationResultModel])
async def add_observations(
    req: AddObservationsRequest,
    manager: KnowledgeGraphManager = Depends(get_manager),
) -> List[Dict[str, Any]]:
    with _graph_errors():
        results = await manager.add_observations([
            ObservationAddition(entity_name=o.entityName, contents=list(o.contents))
            for o in req.observations
        ])
    return [r.to_dict() for r in results]


@router.post("/entities/delete", response_model=StatusResponse)
async def delete_entities(
    req: DeleteEntitiesRequest,
    manager: KnowledgeGraphManager = Depends(get_manager),
) -> StatusResponse:
    with _graph_errors():
        await manager.delete_entities(req.entityNames)
    return StatusResponse(message="Entities deleted successfully")


@router.post("/observations/delete", response_model=StatusResponse)
async def delete_observations(
    req: DeleteObservationsRequest,
    manager: KnowledgeGraphManager = Depends(get_manager),
) -> StatusResponse:
    with _graph_errors():
        await manager.delete_observations([
            ObservationDeletion(entity_name=d.entityName, observations=list(d.observations))
            for d in req.deletions
        ])
    return StatusResponse(message="Observations deleted successfully")


@router.post("/relations/delete", response_model=StatusResponse)
async def delete_relations(
    req: DeleteRelationsRequest,
    manager: KnowledgeGraphManager = Depends(get_manager),
) -> StatusResponse:
    with _graph_errors():
        await manager.delete_relations([to_relation(r) for r in req.relations])
    return StatusResponse(message="Relations deleted successfully")


@router.get("/search", response_model=KnowledgeGraphModel)
async def search_nodes(
    query: str = Query(..., description="Text to match against names, types and observations"),
    top_k: int = Query(5, ge=1, le=100, description="Maximum entities for vector search"),
    manager: KnowledgeGraphManager = Depends(get_manager),
) -> Dict[str, Any]:
    with _graph_errors():
        graph = await manager.search_nodes(query, top_k=top_k)
    return graph.to_dict()


@router.post("/open", response_model=KnowledgeGraphModel)
async def open_nodes(
    req: OpenNodesRequest,
    manager: KnowledgeGraphManager = Depends(get_manager),
) -> Dict[str, Any]:
    with _graph_errors():
        graph = await manager.open_nodes(req.names)
    return graph.to_dict()


@router.get("/stats", response_model=StatusResponse)
def graph_stats(manager: KnowledgeGraphManager = Depends(get_manager)) -> StatusResponse:
    with _graph_errors():
        stats = manager.stats()
    return StatusResponse(message="ok", stats=stats)
