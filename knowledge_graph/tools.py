"""
Knowledge Graph Tools

Tool catalogue and dispatch for agent-facing surfaces (the MCP server).
Arguments are validated with the pydantic request models before the
manager is called; results are plain JSON-serialisable values.
"""

import json
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from pydantic import BaseModel

from models import (
    AddObservationsRequest,
    CreateEntitiesRequest,
    CreateRelationsRequest,
    DeleteEntitiesRequest,
    DeleteObservationsRequest,
    DeleteRelationsRequest,
    EntityModel,
    OpenNodesRequest,
    RelationModel,
    SearchNodesRequest,
)
from knowledge_graph.manager import KnowledgeGraphManager
from knowledge_graph.models import (
    Entity,
    ObservationAddition,
    ObservationDeletion,
    Relation,
)

logger = logging.getLogger(__name__)


class _EmptyArguments(BaseModel):
    pass


_TOOL_SPECS = [
    ("create_entities", "Create multiple new entities in the knowledge graph", CreateEntitiesRequest),
    (
        "create_relations",
        "Create multiple new relations between entities in the knowledge graph. "
        "Relations should be in active voice",
        CreateRelationsRequest,
    ),
    ("add_observations", "Add new observations to existing entities in the knowledge graph", AddObservationsRequest),
    (
        "delete_entities",
        "Delete multiple entities and their associated relations from the knowledge graph",
        DeleteEntitiesRequest,
    ),
    ("delete_observations", "Delete specific observations from entities in the knowledge graph", DeleteObservationsRequest),
    ("delete_relations", "Delete multiple relations from the knowledge graph", DeleteRelationsRequest),
    ("read_graph", "Read the entire knowledge graph", _EmptyArguments),
    ("search_nodes", "Search for nodes in the knowledge graph based on a query", SearchNodesRequest),
    ("open_nodes", "Open specific nodes in the knowledge graph by their names", OpenNodesRequest),
]

TOOL_DEFINITIONS: List[Dict[str, Any]] = [
    {
        "name": name,
        "description": description,
        "inputSchema": model.model_json_schema(by_alias=True),
    }
    for name, description, model in _TOOL_SPECS
]

TOOL_NAMES = [name for name, _, _ in _TOOL_SPECS]


def to_entity(model: EntityModel) -> Entity:
    return Entity(name=model.name, entity_type=model.entityType, observations=list(model.observations))


def to_relation(model: RelationModel) -> Relation:
    return Relation(from_entity=model.from_, to_entity=model.to, relation_type=model.relationType)


def render(result: Any) -> str:
    """Text payload for a tool result"""
    if isinstance(result, str):
        return result
    return json.dumps(result, indent=2, ensure_ascii=False)


class GraphTools:
    """
    Dispatches tool calls to a KnowledgeGraphManager.

    Usage:
        tools = GraphTools(manager)
        result = await tools.call("open_nodes", {"names": ["Jane"]})
    """

    def __init__(self, manager: KnowledgeGraphManager):
        self.manager = manager
        self._handlers: Dict[str, Callable[[Dict[str, Any]], Awaitable[Any]]] = {
            "create_entities": self.create_entities,
            "create_relations": self.create_relations,
            "add_observations": self.add_observations,
            "delete_entities": self.delete_entities,
            "delete_observations": self.delete_observations,
            "delete_relations": self.delete_relations,
            "read_graph": self.read_graph,
            "search_nodes": self.search_nodes,
            "open_nodes": self.open_nodes,
        }

    async def call(self, name: str, arguments: Optional[Dict[str, Any]]) -> Any:
        """
        Run a tool by name.

        Raises:
            ValueError: unknown tool or missing arguments
            pydantic.ValidationError: arguments do not match the tool schema
        """
        handler = self._handlers.get(name)
        if handler is None:
            raise ValueError(f"Unknown tool: {name}")
        if arguments is None:
            raise ValueError(f"No arguments provided for tool: {name}")
        logger.debug(f"Tool call {name}")
        return await handler(arguments)

    async def create_entities(self, arguments: Dict[str, Any]) -> List[Dict[str, Any]]:
        request = CreateEntitiesRequest.model_validate(arguments)
        created = await self.manager.create_entities([to_entity(e) for e in request.entities])
        return [e.to_dict() for e in created]

    async def create_relations(self, arguments: Dict[str, Any]) -> List[Dict[str, Any]]:
        request = CreateRelationsRequest.model_validate(arguments)
        created = await self.manager.create_relations([to_relation(r) for r in request.relations])
        return [r.to_dict() for r in created]

    async def add_observations(self, arguments: Dict[str, Any]) -> List[Dict[str, Any]]:
        request = AddObservationsRequest.model_validate(arguments)
        results = await self.manager.add_observations([
            ObservationAddition(entity_name=o.entityName, contents=list(o.contents))
            for o in request.observations
        ])
        return [r.to_dict() for r in results]

    async def delete_entities(self, arguments: Dict[str, Any]) -> str:
        request = DeleteEntitiesRequest.model_validate(arguments)
        await self.manager.delete_entities(request.entityNames)
        return "Entities deleted successfully"

    async def delete_observations(self, arguments: Dict[str, Any]) -> str:
        request = DeleteObservationsRequest.model_validate(arguments)
        await self.manager.delete_observations([
            ObservationDeletion(entity_name=d.entityName, observations=list(d.observations))
            for d in request.deletions
        ])
        return "Observations deleted successfully"

    async def delete_relations(self, arguments: Dict[str, Any]) -> str:
        request = DeleteRelationsRequest.model_validate(arguments)
        await self.manager.delete_relations([to_relation(r) for r in request.relations])
        return "Relations deleted successfully"

    async def read_graph(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        graph = await self.manager.read_graph()
        return graph.to_dict()

    async def search_nodes(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        request = SearchNodesRequest.model_validate(arguments)
        graph = await self.manager.search_nodes(request.query, top_k=request.topK)
        return graph.to_dict()

    async def open_nodes(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        request = OpenNodesRequest.model_validate(arguments)
        graph = await self.manager.open_nodes(request.names)
        return graph.to_dict()
