"""
Embedding Enrichment

Background generation of entity embeddings. Writes to the graph store never
wait for the embedding model: they submit a job (the entity name) to a
bounded queue, and a fixed set of asyncio worker tasks embed the entity's
current text and upsert it into the vector store.

Failures are counted and logged here and never reach the write that
triggered the job. Jobs are not retried.
"""

import asyncio
import logging
from dataclasses import dataclass, asdict
from typing import Dict, List, Optional

from knowledge_graph.embedding_service import EmbeddingService
from knowledge_graph.exceptions import EmbeddingUnavailable
from knowledge_graph.models import EmbeddingVector
from knowledge_graph.store import GraphStore
from knowledge_graph.vector_store import VectorStore

logger = logging.getLogger(__name__)


@dataclass
class EnrichmentStats:
    submitted: int = 0
    completed: int = 0
    failed: int = 0
    dropped: int = 0  # queue was full
    skipped: int = 0  # entity gone (or replaced) before the vector was written

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


class EmbeddingWorkerPool:
    """
    Bounded job queue plus worker tasks for embedding generation.

    Workers are started lazily on the running event loop, so the pool can be
    built before any loop exists. submit() never blocks: when the queue is
    full the job is dropped and counted.

    Two jobs for the same entity may finish out of order, so the stored
    vector can reflect an older observation snapshot than the row. That
    staleness is accepted; the row in the store always wins for reads.
    """

    def __init__(
        self,
        store: GraphStore,
        embedding_service: EmbeddingService,
        vector_store: VectorStore,
        workers: int = 2,
        max_queue: int = 1000,
    ):
        self.store = store
        self.embedding_service = embedding_service
        self.vector_store = vector_store
        self.worker_count = max(1, int(workers))
        self.max_queue = max(1, int(max_queue))
        self.stats = EnrichmentStats()

        self._queue: Optional[asyncio.Queue] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._workers: List[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return bool(self._workers) and not all(w.done() for w in self._workers)

    @property
    def pending(self) -> int:
        """Jobs queued or in progress"""
        s = self.stats
        return max(0, s.submitted - s.completed - s.failed - s.skipped)

    def _ensure_started(self) -> None:
        loop = asyncio.get_running_loop()
        if self._queue is not None and self._loop is loop and self.running:
            return

        if self._queue is not None and self._loop is not loop:
            logger.warning(
                f"Embedding workers bound to a previous event loop; restarting "
                f"({self._queue.qsize()} queued jobs discarded)"
            )

        self._loop = loop
        self._queue = asyncio.Queue(maxsize=self.max_queue)
        self._workers = [
            loop.create_task(self._worker(i), name=f"embedding-worker-{i}")
            for i in range(self.worker_count)
        ]
        logger.info(f"🚀 Started {self.worker_count} embedding worker(s), queue size {self.max_queue}")

    async def start(self) -> None:
        self._ensure_started()

    def submit(self, entity_name: str) -> bool:
        """
        Queue an embedding job for an entity. Must be called from the event loop.

        Returns:
            False if the queue was full and the job was dropped
        """
        self._ensure_started()
        try:
            self._queue.put_nowait(entity_name)
        except asyncio.QueueFull:
            self.stats.dropped += 1
            logger.warning(f"⚠️ Embedding queue full, dropped job for entity {entity_name!r}")
            return False
        self.stats.submitted += 1
        return True

    async def drain(self) -> None:
        """Wait until every submitted job has been processed."""
        if self._queue is not None and self._loop is asyncio.get_running_loop():
            await self._queue.join()

    async def close(self) -> None:
        """Cancel the workers. Queued jobs are discarded."""
        workers, self._workers = self._workers, []
        for task in workers:
            task.cancel()
        if workers:
            await asyncio.gather(*workers, return_exceptions=True)
            logger.info(f"Stopped {len(workers)} embedding worker(s)")
        self._queue = None
        self._loop = None

    async def _worker(self, index: int) -> None:
        while True:
            entity_name = await self._queue.get()
            try:
                await self.process(entity_name)
            except EmbeddingUnavailable as exc:
                self.stats.failed += 1
                logger.error(f"❌ Embedding unavailable for entity {entity_name!r}: {exc}")
            except Exception as exc:
                self.stats.failed += 1
                logger.exception(f"❌ Error generating/storing embedding for entity {entity_name!r}: {exc}")
            finally:
                self._queue.task_done()

    async def process(self, entity_name: str) -> bool:
        """
        Embed the current text of one entity and store the vector.

        Returns:
            True if a vector was written
        """
        current = self.store.get_entity_with_id(entity_name)
        if current is None:
            self.stats.skipped += 1
            logger.debug(f"Entity {entity_name!r} no longer exists, skipping embedding")
            return False

        entity_id, entity = current
        text = entity.embedding_text
        vector = await self.embedding_service.embed(text)

        # The entity may have been deleted, or deleted and re-created, while the model ran
        if self.store.get_entity_id(entity_name) != entity_id:
            self.stats.skipped += 1
            logger.debug(f"Entity {entity_name!r} changed identity during embedding, skipping")
            return False

        self.vector_store.upsert_embedding(
            EmbeddingVector(
                entity_id=entity_id,
                entity_name=entity.name,
                vector=vector,
                embedding_text=text,
                model=self.embedding_service.model,
            )
        )
        self.stats.completed += 1
        logger.debug(f"Stored {len(vector)}-dimensional embedding for entity {entity_name!r}")
        return True
