"""
Embedding Service

Turns entity text into fixed-length vectors. EMBEDDING_MODEL picks a
(provider, model, dimension) entry from EMBEDDING_MODELS:

- local models run through sentence-transformers, cached under CACHE_DIR
- OpenAI models go through the embeddings API (needs OPENAI_API_KEY)

Model inference is slow; callers must keep it off the synchronous write path.
"""

import asyncio
import logging
import os
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional

from openai import AsyncOpenAI, OpenAIError

from knowledge_graph.exceptions import EmbeddingUnavailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmbeddingModelSpec:
    provider: str  # "local" or "openai"
    model_name: str
    dimensions: int


EMBEDDING_MODELS: Dict[str, EmbeddingModelSpec] = {
    "bge-base-en-v1.5": EmbeddingModelSpec("local", "BAAI/bge-base-en-v1.5", 768),
    "bge-small-en-v1.5": EmbeddingModelSpec("local", "BAAI/bge-small-en-v1.5", 384),
    "all-MiniLM-L6-v2": EmbeddingModelSpec("local", "sentence-transformers/all-MiniLM-L6-v2", 384),
    "text-embedding-3-small": EmbeddingModelSpec("openai", "text-embedding-3-small", 1536),
    "text-embedding-3-large": EmbeddingModelSpec("openai", "text-embedding-3-large", 3072),
}


def resolve_model(identifier: str) -> EmbeddingModelSpec:
    """Look up a model by registry key or by its full model name."""
    if identifier in EMBEDDING_MODELS:
        return EMBEDDING_MODELS[identifier]
    for spec in EMBEDDING_MODELS.values():
        if spec.model_name == identifier:
            return spec
    known = ", ".join(sorted(EMBEDDING_MODELS))
    raise ValueError(f"Unknown embedding model '{identifier}'. Known models: {known}")


class EmbeddingService:
    """
    Base class for embedding providers.

    Subclasses implement _embed(); embed() adds input validation, dimension
    checking and maps provider errors to EmbeddingUnavailable.
    """

    def __init__(self, model: str, dimensions: int):
        self.model = model
        self.dimensions = dimensions

    async def embed(self, text: str) -> List[float]:
        """
        Generate embedding vector from text.

        Args:
            text: Text to embed

        Returns:
            List of `dimensions` floats

        Raises:
            EmbeddingUnavailable: model missing, failing, or returning a bad vector
        """
        if not text or not text.strip():
            raise EmbeddingUnavailable("Text cannot be empty", model=self.model)

        try:
            vector = await self._embed(text)
        except EmbeddingUnavailable:
            raise
        except Exception as exc:
            raise EmbeddingUnavailable(f"Embedding model {self.model} failed: {exc}", model=self.model) from exc

        if len(vector) != self.dimensions:
            raise EmbeddingUnavailable(
                f"Embedding model {self.model} returned {len(vector)} dimensions, expected {self.dimensions}",
                model=self.model,
            )
        return [float(v) for v in vector]

    async def _embed(self, text: str) -> List[float]:
        raise NotImplementedError


class OpenAIEmbeddingService(EmbeddingService):
    """Embeddings from the OpenAI API (text-embedding-3-*)."""

    def __init__(self, model: str, dimensions: int, api_key: Optional[str] = None):
        super().__init__(model, dimensions)
        self._api_key = api_key or os.getenv("OPENAI_API_KEY")
        self._client: Optional[AsyncOpenAI] = None

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            try:
                self._client = AsyncOpenAI(api_key=self._api_key)
            except OpenAIError as exc:
                raise EmbeddingUnavailable(f"OpenAI client unavailable: {exc}", model=self.model) from exc
        return self._client

    async def _embed(self, text: str) -> List[float]:
        response = await self.client.embeddings.create(
            model=self.model,
            input=text
        )
        return response.data[0].embedding


class LocalEmbeddingService(EmbeddingService):
    """
    Embeddings from a local sentence-transformers model.

    The model is loaded on first use (download goes to cache_dir) and
    inference runs in a worker thread so the event loop stays responsive.
    """

    def __init__(self, model: str, dimensions: int, cache_dir: Optional[str] = None):
        super().__init__(model, dimensions)
        self.cache_dir = cache_dir
        self._model = None
        self._load_lock = threading.Lock()

    def _load_model(self):
        with self._load_lock:
            if self._model is not None:
                return self._model
            try:
                from sentence_transformers import SentenceTransformer
            except ImportError as exc:
                raise EmbeddingUnavailable(
                    "sentence-transformers not installed. Install with: pip install kg-memory[local]",
                    model=self.model,
                ) from exc

            logger.info(f"Loading embedding model {self.model} (cache: {self.cache_dir})")
            self._model = SentenceTransformer(
                self.model,
                cache_folder=self.cache_dir,
                device="cpu",
            )
            logger.info(f"✅ Embedding model {self.model} loaded")
            return self._model

    def _encode(self, text: str) -> List[float]:
        model = self._load_model()
        vector = model.encode(
            text,
            convert_to_numpy=True,
            normalize_embeddings=True,
            show_progress_bar=False,
        )
        return vector.tolist()

    async def _embed(self, text: str) -> List[float]:
        return await asyncio.to_thread(self._encode, text)


def create_embedding_service(
    identifier: str,
    cache_dir: Optional[str] = None,
    openai_api_key: Optional[str] = None,
) -> EmbeddingService:
    """Build the provider selected by an EMBEDDING_MODEL identifier."""
    spec = resolve_model(identifier)
    if spec.provider == "openai":
        return OpenAIEmbeddingService(spec.model_name, spec.dimensions, api_key=openai_api_key)
    return LocalEmbeddingService(spec.model_name, spec.dimensions, cache_dir=cache_dir)
