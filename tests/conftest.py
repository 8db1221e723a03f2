"""
Shared fixtures for knowledge graph tests.

Vector-mode managers use FakeEmbeddingService: a hashed bag-of-words
embedding, so similar texts get close vectors without downloading a model.
"""

import hashlib
import math
import re
from typing import List

import pytest
import pytest_asyncio

from config import Settings
from knowledge_graph.embedding_service import EmbeddingService
from knowledge_graph.exceptions import EmbeddingUnavailable
from knowledge_graph.manager import build_manager

FAKE_DIMENSIONS = 64


def _tokens(text: str) -> List[str]:
    return re.findall(r"[a-z0-9]+", text.lower())


class FakeEmbeddingService(EmbeddingService):
    """Deterministic, normalized token-hash vectors."""

    def __init__(self, dimensions: int = FAKE_DIMENSIONS):
        super().__init__("fake-embedding", dimensions)
        self.calls: List[str] = []

    async def _embed(self, text: str) -> List[float]:
        self.calls.append(text)
        vector = [0.0] * self.dimensions
        for token in _tokens(text):
            bucket = int(hashlib.md5(token.encode("utf-8")).hexdigest(), 16) % self.dimensions
            vector[bucket] += 1.0
        norm = math.sqrt(sum(v * v for v in vector)) or 1.0
        return [v / norm for v in vector]


class FailingEmbeddingService(EmbeddingService):
    """Every call fails like an unreachable model."""

    def __init__(self, dimensions: int = FAKE_DIMENSIONS):
        super().__init__("failing-embedding", dimensions)

    async def _embed(self, text: str) -> List[float]:
        raise EmbeddingUnavailable("model offline", model=self.model)


@pytest.fixture
def lexical_settings(tmp_path):
    return Settings(DB_FILE_PATH=str(tmp_path / "memory.db"), SEARCH_MODE="lexical")


@pytest.fixture
def vector_settings(tmp_path):
    return Settings(
        DB_FILE_PATH=str(tmp_path / "memory.db"),
        CHROMA_DB_PATH=str(tmp_path / "chroma"),
        SEARCH_MODE="vector",
        EMBEDDING_WORKERS=2,
        EMBEDDING_QUEUE_SIZE=100,
    )


@pytest.fixture
def fake_embeddings():
    return FakeEmbeddingService()


@pytest_asyncio.fixture
async def lexical_manager(lexical_settings):
    manager = build_manager(lexical_settings)
    await manager.start()
    yield manager
    await manager.close()


@pytest_asyncio.fixture
async def vector_manager(vector_settings, fake_embeddings):
    manager = build_manager(vector_settings, embedding_service=fake_embeddings)
    await manager.start()
    yield manager
    await manager.close()


@pytest.fixture
def failing_embeddings():
    return FailingEmbeddingService()
