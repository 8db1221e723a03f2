"""
Tests for KnowledgeGraphManager CRUD behaviour.

Runs against a lexical-mode manager unless the test is about embeddings.
"""

import pytest

from config import Settings
from knowledge_graph.exceptions import EntityNotFound
from knowledge_graph.manager import build_manager
from knowledge_graph.models import (
    Entity,
    ObservationAddition,
    ObservationDeletion,
    Relation,
)


class TestCreate:

    @pytest.mark.asyncio
    async def test_create_entities_is_idempotent(self, lexical_manager):
        jane = Entity("Jane", "person", ["likes tea"])
        assert await lexical_manager.create_entities([jane]) == [jane]
        assert await lexical_manager.create_entities([jane]) == []

        graph = await lexical_manager.read_graph()
        assert graph.entity_names == ["Jane"]

    @pytest.mark.asyncio
    async def test_create_entities_returns_only_new(self, lexical_manager):
        await lexical_manager.create_entities([Entity("A", "letter")])
        created = await lexical_manager.create_entities([Entity("A", "letter"), Entity("B", "letter")])
        assert [e.name for e in created] == ["B"]

    @pytest.mark.asyncio
    async def test_create_relations_dedupes_triples(self, lexical_manager):
        relation = Relation("A", "B", "knows")
        assert await lexical_manager.create_relations([relation, relation]) == [relation]
        assert await lexical_manager.create_relations([relation]) == []


class TestObservations:

    @pytest.mark.asyncio
    async def test_add_merges_without_duplicates(self, lexical_manager):
        await lexical_manager.create_entities([Entity("A", "letter", ["x"])])

        results = await lexical_manager.add_observations([ObservationAddition("A", ["x", "y", "y"])])
        assert results[0].entity_name == "A"
        assert results[0].added_observations == ["y"]

        graph = await lexical_manager.open_nodes(["A"])
        assert graph.entities[0].observations == ["x", "y"]

    @pytest.mark.asyncio
    async def test_add_to_missing_entity_writes_nothing(self, lexical_manager):
        await lexical_manager.create_entities([Entity("A", "letter", ["x"])])

        with pytest.raises(EntityNotFound) as exc_info:
            await lexical_manager.add_observations([
                ObservationAddition("A", ["new"]),
                ObservationAddition("Missing", ["y"]),
            ])

        assert exc_info.value.entity_name == "Missing"
        assert str(exc_info.value) == "Entity with name Missing not found"
        graph = await lexical_manager.open_nodes(["A"])
        assert graph.entities[0].observations == ["x"]

    @pytest.mark.asyncio
    async def test_repeated_entity_in_one_call(self, lexical_manager):
        await lexical_manager.create_entities([Entity("A", "letter")])
        results = await lexical_manager.add_observations([
            ObservationAddition("A", ["x"]),
            ObservationAddition("A", ["x", "y"]),
        ])
        assert [r.added_observations for r in results] == [["x"], ["y"]]

    @pytest.mark.asyncio
    async def test_delete_observations(self, lexical_manager):
        await lexical_manager.create_entities([Entity("A", "letter", ["x", "y", "z"])])
        await lexical_manager.delete_observations([
            ObservationDeletion("A", ["y", "not there"]),
            ObservationDeletion("Missing", ["x"]),
        ])
        graph = await lexical_manager.open_nodes(["A"])
        assert graph.entities[0].observations == ["x", "z"]


class TestDelete:

    @pytest.mark.asyncio
    async def test_delete_entity_cascades_relations(self, lexical_manager):
        await lexical_manager.create_entities([Entity("A", "letter"), Entity("B", "letter")])
        await lexical_manager.create_relations([Relation("A", "B", "knows")])

        await lexical_manager.delete_entities(["A"])

        graph = await lexical_manager.read_graph()
        assert graph.entity_names == ["B"]
        assert graph.relations == []

    @pytest.mark.asyncio
    async def test_missing_targets_leave_graph_unchanged(self, lexical_manager):
        await lexical_manager.create_entities([Entity("A", "letter", ["x"])])
        await lexical_manager.create_relations([Relation("A", "B", "likes")])
        before = (await lexical_manager.read_graph()).to_dict()

        await lexical_manager.delete_entities(["Nobody"])
        await lexical_manager.delete_observations([ObservationDeletion("Nobody", ["x"])])
        await lexical_manager.delete_relations([Relation("A", "B", "knows")])

        assert (await lexical_manager.read_graph()).to_dict() == before

    @pytest.mark.asyncio
    async def test_delete_missing_entity_removes_dangling_relations(self, lexical_manager):
        await lexical_manager.create_entities([Entity("A", "letter", ["x"])])
        await lexical_manager.create_relations([
            Relation("A", "Ghost", "haunted_by"),
            Relation("A", "A", "is"),
        ])

        await lexical_manager.delete_entities(["Ghost"])

        graph = await lexical_manager.read_graph()
        assert graph.entity_names == ["A"]
        assert graph.relations == [Relation("A", "A", "is")]

    @pytest.mark.asyncio
    async def test_delete_relation_exact_triple(self, lexical_manager):
        await lexical_manager.create_relations([
            Relation("A", "B", "knows"),
            Relation("A", "B", "likes"),
        ])
        await lexical_manager.delete_relations([Relation("A", "B", "knows")])
        graph = await lexical_manager.read_graph()
        assert graph.relations == [Relation("A", "B", "likes")]


class TestReads:

    @pytest.mark.asyncio
    async def test_open_nodes_relations_within_set(self, lexical_manager):
        await lexical_manager.create_relations([
            Relation("B", "A", "follows"),
            Relation("A", "C", "knows"),
            Relation("A", "B", "knows"),
        ])
        await lexical_manager.create_entities([Entity("A", "letter"), Entity("B", "letter"), Entity("C", "letter")])

        graph = await lexical_manager.open_nodes(["A", "B"])
        assert sorted(graph.entity_names) == ["A", "B"]
        assert set(graph.relations) == {Relation("B", "A", "follows"), Relation("A", "B", "knows")}

    @pytest.mark.asyncio
    async def test_jane_and_acme(self, lexical_manager):
        await lexical_manager.create_entities([Entity("Jane", "person", ["likes tea"])])
        await lexical_manager.create_entities([Entity("Acme", "org", [])])
        await lexical_manager.create_relations([Relation("Jane", "Acme", "works_at")])

        graph = await lexical_manager.read_graph()
        assert graph.to_dict() == {
            "entities": [
                {"name": "Jane", "entityType": "person", "observations": ["likes tea"]},
                {"name": "Acme", "entityType": "org", "observations": []},
            ],
            "relations": [{"from": "Jane", "to": "Acme", "relationType": "works_at"}],
        }

        await lexical_manager.delete_entities(["Acme"])
        graph = await lexical_manager.read_graph()
        assert graph.entity_names == ["Jane"]
        assert graph.relations == []

    @pytest.mark.asyncio
    async def test_stats(self, lexical_manager):
        await lexical_manager.create_entities([Entity("A", "letter")])
        stats = lexical_manager.stats()
        assert stats["search_mode"] == "lexical"
        assert stats["entities"] == 1
        assert stats["relations"] == 0
        assert "embeddings" not in stats

    @pytest.mark.asyncio
    async def test_data_survives_restart(self, lexical_settings):
        first = build_manager(lexical_settings)
        await first.create_entities([Entity("A", "letter", ["x"])])
        await first.close()

        second = build_manager(lexical_settings)
        try:
            graph = await second.read_graph()
            assert graph.entities == [Entity("A", "letter", ["x"])]
        finally:
            await second.close()


class TestVectorMode:

    @pytest.mark.asyncio
    async def test_writes_do_not_wait_for_embeddings(self, vector_manager):
        await vector_manager.create_entities([Entity("Jane", "person", ["likes tea"])])

        graph = await vector_manager.open_nodes(["Jane"])
        assert graph.entity_names == ["Jane"]

        await vector_manager.wait_for_enrichment()
        assert vector_manager.vector_store.count() == 1

    @pytest.mark.asyncio
    async def test_add_observations_reembeds(self, vector_manager, fake_embeddings):
        await vector_manager.create_entities([Entity("Jane", "person", ["likes tea"])])
        await vector_manager.wait_for_enrichment()

        await vector_manager.add_observations([ObservationAddition("Jane", ["plays chess"])])
        await vector_manager.wait_for_enrichment()

        entity_id = vector_manager.store.get_entity_id("Jane")
        assert vector_manager.vector_store.get_document(entity_id) == "Jane likes tea plays chess"

    @pytest.mark.asyncio
    async def test_no_op_addition_schedules_nothing(self, vector_manager):
        await vector_manager.create_entities([Entity("Jane", "person", ["likes tea"])])
        await vector_manager.wait_for_enrichment()
        submitted = vector_manager.enrichment.stats.submitted

        await vector_manager.add_observations([ObservationAddition("Jane", ["likes tea"])])
        assert vector_manager.enrichment.stats.submitted == submitted

    @pytest.mark.asyncio
    async def test_delete_observations_keeps_old_embedding(self, vector_manager):
        await vector_manager.create_entities([Entity("Jane", "person", ["likes tea", "plays chess"])])
        await vector_manager.wait_for_enrichment()

        await vector_manager.delete_observations([ObservationDeletion("Jane", ["plays chess"])])
        await vector_manager.wait_for_enrichment()

        entity_id = vector_manager.store.get_entity_id("Jane")
        assert vector_manager.vector_store.get_document(entity_id) == "Jane likes tea plays chess"

    @pytest.mark.asyncio
    async def test_delete_entity_removes_embedding(self, vector_manager):
        await vector_manager.create_entities([Entity("Jane", "person", ["likes tea"])])
        await vector_manager.wait_for_enrichment()

        await vector_manager.delete_entities(["Jane"])
        assert vector_manager.vector_store.count() == 0

    @pytest.mark.asyncio
    async def test_reindex(self, vector_manager):
        await vector_manager.create_entities([Entity("A", "letter", ["x"]), Entity("B", "letter", ["y"])])
        await vector_manager.wait_for_enrichment()
        vector_manager.vector_store.reset()

        assert await vector_manager.reindex() == 2
        await vector_manager.wait_for_enrichment()
        assert vector_manager.vector_store.count() == 2

    @pytest.mark.asyncio
    async def test_stats_include_embeddings(self, vector_manager):
        await vector_manager.create_entities([Entity("A", "letter", ["x"])])
        await vector_manager.wait_for_enrichment()

        stats = vector_manager.stats()
        assert stats["search_mode"] == "vector"
        assert stats["embedding_model"] == "fake-embedding"
        assert stats["embeddings"]["completed"] == 1
        assert stats["embeddings"]["pending"] == 0
        assert stats["total_embeddings"] == 1


class TestBuildManager:

    def test_unknown_search_mode(self, tmp_path):
        settings = Settings(DB_FILE_PATH=str(tmp_path / "memory.db"), SEARCH_MODE="fuzzy")
        with pytest.raises(ValueError):
            build_manager(settings)

    @pytest.mark.asyncio
    async def test_mode_aliases(self, tmp_path):
        settings = Settings(DB_FILE_PATH=str(tmp_path / "memory.db"), SEARCH_MODE="basic")
        manager = build_manager(settings)
        try:
            assert manager.search_mode == "lexical"
            assert manager.enrichment is None
        finally:
            await manager.close()
