"""
Tests for tool dispatch (the MCP-facing surface).
"""

import json

import pytest
from pydantic import ValidationError

from knowledge_graph.exceptions import EntityNotFound
from knowledge_graph.tools import GraphTools, TOOL_DEFINITIONS, TOOL_NAMES, render
from mcp_server import create_mcp_server


@pytest.fixture
def tools(lexical_manager):
    return GraphTools(lexical_manager)


class TestCatalogue:

    def test_nine_tools(self):
        assert TOOL_NAMES == [
            "create_entities",
            "create_relations",
            "add_observations",
            "delete_entities",
            "delete_observations",
            "delete_relations",
            "read_graph",
            "search_nodes",
            "open_nodes",
        ]

    def test_relation_schema_uses_wire_names(self):
        schema = next(t for t in TOOL_DEFINITIONS if t["name"] == "create_relations")["inputSchema"]
        assert "from" in json.dumps(schema)
        assert "from_" not in json.dumps(schema)

    def test_search_schema_has_top_k(self):
        schema = next(t for t in TOOL_DEFINITIONS if t["name"] == "search_nodes")["inputSchema"]
        assert schema["required"] == ["query"]
        assert schema["properties"]["topK"]["default"] == 5

    def test_render(self):
        assert render("Entities deleted successfully") == "Entities deleted successfully"
        assert json.loads(render({"entities": [], "relations": []})) == {"entities": [], "relations": []}

    def test_mcp_server_builds(self, lexical_manager):
        server = create_mcp_server(lexical_manager)
        assert server.name == "memory-server"


class TestGraphTools:

    @pytest.mark.asyncio
    async def test_full_flow(self, tools):
        created = await tools.call("create_entities", {"entities": [
            {"name": "Jane", "entityType": "person", "observations": ["likes tea"]},
            {"name": "Acme", "entityType": "org", "observations": []},
        ]})
        assert [e["name"] for e in created] == ["Jane", "Acme"]

        relations = await tools.call("create_relations", {"relations": [
            {"from": "Jane", "to": "Acme", "relationType": "works_at"},
        ]})
        assert relations == [{"from": "Jane", "to": "Acme", "relationType": "works_at"}]

        added = await tools.call("add_observations", {"observations": [
            {"entityName": "Jane", "contents": ["likes tea", "plays chess"]},
        ]})
        assert added == [{"entityName": "Jane", "addedObservations": ["plays chess"]}]

        graph = await tools.call("open_nodes", {"names": ["Jane", "Acme"]})
        assert len(graph["entities"]) == 2
        assert graph["relations"] == relations

        found = await tools.call("search_nodes", {"query": "chess"})
        assert [e["name"] for e in found["entities"]] == ["Jane"]

        message = await tools.call("delete_relations", {"relations": relations})
        assert message == "Relations deleted successfully"

        message = await tools.call("delete_observations", {"deletions": [
            {"entityName": "Jane", "observations": ["likes tea"]},
        ]})
        assert message == "Observations deleted successfully"

        message = await tools.call("delete_entities", {"entityNames": ["Acme"]})
        assert message == "Entities deleted successfully"

        graph = await tools.call("read_graph", {})
        assert graph == {
            "entities": [{"name": "Jane", "entityType": "person", "observations": ["plays chess"]}],
            "relations": [],
        }

    @pytest.mark.asyncio
    async def test_unknown_tool(self, tools):
        with pytest.raises(ValueError, match="Unknown tool: drop_table"):
            await tools.call("drop_table", {})

    @pytest.mark.asyncio
    async def test_missing_arguments(self, tools):
        with pytest.raises(ValueError, match="No arguments provided"):
            await tools.call("read_graph", None)

    @pytest.mark.asyncio
    async def test_invalid_arguments(self, tools):
        with pytest.raises(ValidationError):
            await tools.call("create_entities", {"entities": [{"name": "Jane"}]})

    @pytest.mark.asyncio
    async def test_missing_entity_propagates(self, tools):
        with pytest.raises(EntityNotFound):
            await tools.call("add_observations", {"observations": [
                {"entityName": "Nobody", "contents": ["x"]},
            ]})
