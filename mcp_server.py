"""
Knowledge Graph MCP Server

Exposes the knowledge graph to agents over MCP (stdio). All tool results are
JSON text. Logs go to stderr; stdout carries the protocol.

Run:
    python mcp_server.py
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import List

from mcp.server.fastmcp import FastMCP

from config import Settings, settings as default_settings
from models import EntityModel, ObservationAdditionModel, ObservationDeletionModel, RelationModel
from knowledge_graph.manager import KnowledgeGraphManager, build_manager
from knowledge_graph.tools import GraphTools, TOOL_DEFINITIONS, render

logger = logging.getLogger(__name__)

_DESCRIPTIONS = {tool["name"]: tool["description"] for tool in TOOL_DEFINITIONS}


def create_mcp_server(manager: KnowledgeGraphManager) -> FastMCP:
    """Build an MCP server bound to an already constructed manager."""
    tools = GraphTools(manager)

    @asynccontextmanager
    async def lifespan(server: FastMCP):
        await manager.start()
        try:
            yield {"manager": manager}
        finally:
            await manager.close()

    mcp = FastMCP("memory-server", lifespan=lifespan)

    @mcp.tool(name="create_entities", description=_DESCRIPTIONS["create_entities"])
    async def create_entities(entities: List[EntityModel]) -> str:
        return render(await tools.call("create_entities", {
            "entities": [e.model_dump() for e in entities],
        }))

    @mcp.tool(name="create_relations", description=_DESCRIPTIONS["create_relations"])
    async def create_relations(relations: List[RelationModel]) -> str:
        return render(await tools.call("create_relations", {
            "relations": [r.model_dump(by_alias=True) for r in relations],
        }))

    @mcp.tool(name="add_observations", description=_DESCRIPTIONS["add_observations"])
    async def add_observations(observations: List[ObservationAdditionModel]) -> str:
        return render(await tools.call("add_observations", {
            "observations": [o.model_dump() for o in observations],
        }))

    @mcp.tool(name="delete_entities", description=_DESCRIPTIONS["delete_entities"])
    async def delete_entities(entityNames: List[str]) -> str:
        return render(await tools.call("delete_entities", {"entityNames": entityNames}))

    @mcp.tool(name="delete_observations", description=_DESCRIPTIONS["delete_observations"])
    async def delete_observations(deletions: List[ObservationDeletionModel]) -> str:
        return render(await tools.call("delete_observations", {
            "deletions": [d.model_dump() for d in deletions],
        }))

    @mcp.tool(name="delete_relations", description=_DESCRIPTIONS["delete_relations"])
    async def delete_relations(relations: List[RelationModel]) -> str:
        return render(await tools.call("delete_relations", {
            "relations": [r.model_dump(by_alias=True) for r in relations],
        }))

    @mcp.tool(name="read_graph", description=_DESCRIPTIONS["read_graph"])
    async def read_graph() -> str:
        return render(await tools.call("read_graph", {}))

    @mcp.tool(name="search_nodes", description=_DESCRIPTIONS["search_nodes"])
    async def search_nodes(query: str, topK: int = 5) -> str:
        return render(await tools.call("search_nodes", {"query": query, "topK": topK}))

    @mcp.tool(name="open_nodes", description=_DESCRIPTIONS["open_nodes"])
    async def open_nodes(names: List[str]) -> str:
        return render(await tools.call("open_nodes", {"names": names}))

    return mcp


def main(settings: Settings = default_settings) -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        manager = build_manager(settings)
    except Exception as exc:
        logger.critical(f"Fatal error initializing knowledge graph manager: {exc}")
        raise SystemExit(1)

    server = create_mcp_server(manager)
    logger.info("Knowledge Graph MCP Server running on stdio")
    server.run()


if __name__ == "__main__":
    main()
