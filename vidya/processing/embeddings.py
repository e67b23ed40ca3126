"""Embedding service for similarity search.

Two backends are available:
- ``sentence-transformers``: all-MiniLM-L6-v2 loaded lazily in an executor
- ``hashing``: signed feature hashing of word unigrams and bigrams, fully
  local and deterministic, suited to small curated corpora and tests

The backend is chosen by configuration. A backend that cannot load
raises ``ExternalServiceError``; there is no silent substitution.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import re
from typing import TYPE_CHECKING, Any

import numpy as np
import numpy.typing as npt

from vidya.errors import ExternalServiceError

if TYPE_CHECKING:
    from vidya.config import EmbeddingConfig

logger = logging.getLogger(__name__)

_TOKEN_PATTERN = re.compile(r"\w+", re.UNICODE)


class HashingEmbedder:
    """Deterministic bag-of-ngrams embedder using signed feature hashing."""

    def __init__(self, dimension: int = 384) -> None:
        self.dimension = dimension

    def _bucket(self, feature: str) -> tuple[int, float]:
        digest = hashlib.blake2b(feature.encode("utf-8"), digest_size=8).digest()
        value = int.from_bytes(digest, "little")
        sign = 1.0 if value & 1 else -1.0
        return (value >> 1) % self.dimension, sign

    def features(self, text: str) -> list[str]:
        tokens = _TOKEN_PATTERN.findall(text.lower())
        bigrams = [f"{a} {b}" for a, b in zip(tokens, tokens[1:])]
        return tokens + bigrams

    def encode(self, text: str) -> npt.NDArray[np.float32]:
        vector = np.zeros(self.dimension, dtype=np.float32)
        for feature in self.features(text):
            index, sign = self._bucket(feature)
            vector[index] += sign
        norm = float(np.linalg.norm(vector))
        if norm > 0:
            vector /= norm
        return vector


class EmbeddingService:
    """Text embedding with a configurable backend.

    Attributes:
        backend: ``hashing`` or ``sentence-transformers``
        model_name: sentence-transformers model name
        dimension: Output vector dimension
    """

    def __init__(self, config: EmbeddingConfig) -> None:
        self.backend = config.backend
        self.model_name = config.model_name
        self.dimension = config.dimension
        self._model: Any = None
        self._hasher: HashingEmbedder | None = None
        self._lock = asyncio.Lock()

        logger.info(f"Embedding service created (backend={self.backend}, dim={self.dimension})")

    async def initialize(self) -> None:
        """Load the backend once.

        Raises:
            ExternalServiceError: If the sentence-transformers model cannot load
        """
        async with self._lock:
            if self._model is not None or self._hasher is not None:
                return

            if self.backend == "hashing":
                self._hasher = HashingEmbedder(self.dimension)
                logger.info(f"✅ Hashing embedder ready (dim={self.dimension})")
                return

            logger.info(f"Loading embedding model: {self.model_name}")
            loop = asyncio.get_running_loop()
            try:
                self._model = await loop.run_in_executor(None, self._load_model_sync, self.model_name)
            except Exception as e:
                logger.error(f"❌ Failed to load embedding model {self.model_name}: {e}")
                raise ExternalServiceError("embedding", f"model load failed: {e}") from e

            model_dim = self._model.get_sentence_embedding_dimension()
            if model_dim:
                self.dimension = int(model_dim)
            logger.info(f"✅ Embedding model loaded: {self.model_name} (dim={self.dimension})")

    @staticmethod
    def _load_model_sync(model_name: str) -> Any:
        from sentence_transformers import SentenceTransformer

        return SentenceTransformer(model_name)

    async def embed(self, text: str) -> npt.NDArray[np.float32]:
        """Embed a single text."""
        vectors = await self.embed_batch([text])
        return vectors[0]

    async def embed_batch(self, texts: list[str], batch_size: int = 32) -> npt.NDArray[np.float32]:
        """Embed several texts.

        Args:
            texts: Texts to embed
            batch_size: Batch size for the model backend

        Returns:
            Array of shape (len(texts), dimension), rows L2-normalized
        """
        await self.initialize()

        if not texts:
            return np.zeros((0, self.dimension), dtype=np.float32)

        loop = asyncio.get_running_loop()
        if self._hasher is not None:
            hasher = self._hasher
            return await loop.run_in_executor(None, lambda: np.stack([hasher.encode(text) for text in texts]))

        try:
            encoded = await loop.run_in_executor(
                None,
                lambda: self._model.encode(
                    texts,
                    batch_size=batch_size,
                    normalize_embeddings=True,
                    show_progress_bar=False,
                ),
            )
        except Exception as e:
            raise ExternalServiceError("embedding", f"encode failed: {e}") from e
        return np.asarray(encoded, dtype=np.float32)
