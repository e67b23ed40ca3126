"""Tests for embedding service."""

from __future__ import annotations

import threading
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from vidya.config import EmbeddingConfig
from vidya.errors import ExternalServiceError
from vidya.processing import EmbeddingService, HashingEmbedder


class TestHashingEmbedder:
    """Test suite for HashingEmbedder."""

    def test_deterministic_and_normalized(self) -> None:
        embedder = HashingEmbedder(dimension=64)

        first = embedder.encode("library timings")
        second = embedder.encode("library timings")

        assert first.shape == (64,)
        assert np.array_equal(first, second)
        assert np.isclose(np.linalg.norm(first), 1.0)

    def test_empty_text_is_zero_vector(self) -> None:
        vector = HashingEmbedder(dimension=32).encode("")

        assert not vector.any()

    def test_features_include_bigrams(self) -> None:
        features = HashingEmbedder().features("Library Opening Hours")

        assert features == ["library", "opening", "hours", "library opening", "opening hours"]

    def test_related_text_scores_higher(self) -> None:
        embedder = HashingEmbedder()
        query = embedder.encode("what are the library timings")
        related = embedder.encode("Question: What are the library timings?")
        unrelated = embedder.encode("Hostel mess menu for Sunday dinner")

        assert float(query @ related) > float(query @ unrelated)


class TestEmbeddingService:
    """Test suite for EmbeddingService."""

    @pytest.mark.asyncio
    async def test_hashing_backend(self) -> None:
        service = EmbeddingService(EmbeddingConfig(backend="hashing", dimension=128))

        vectors = await service.embed_batch(["tech fest", "placement drive"])

        assert vectors.shape == (2, 128)

    @pytest.mark.asyncio
    async def test_hashing_runs_off_the_event_loop(self) -> None:
        service = EmbeddingService(EmbeddingConfig(dimension=64))
        await service.initialize()
        encode = service._hasher.encode
        threads: list[int] = []

        def tracking_encode(text: str) -> np.ndarray:
            threads.append(threading.get_ident())
            return encode(text)

        service._hasher.encode = tracking_encode
        vectors = await service.embed_batch(["tech fest", "placement drive"])

        assert vectors.shape == (2, 64)
        assert len(threads) == 2
        assert threading.get_ident() not in threads

    @pytest.mark.asyncio
    async def test_empty_batch(self) -> None:
        service = EmbeddingService(EmbeddingConfig(dimension=32))

        vectors = await service.embed_batch([])

        assert vectors.shape == (0, 32)

    @pytest.mark.asyncio
    async def test_initialize_is_idempotent(self) -> None:
        service = EmbeddingService(EmbeddingConfig())

        await service.initialize()
        hasher = service._hasher
        await service.initialize()

        assert service._hasher is hasher

    @pytest.mark.asyncio
    async def test_model_backend(self) -> None:
        """The sentence-transformers backend adopts the model's dimension."""
        model = MagicMock()
        model.get_sentence_embedding_dimension.return_value = 4
        model.encode.return_value = np.ones((2, 4), dtype=np.float32) / 2

        with patch.object(EmbeddingService, "_load_model_sync", return_value=model):
            service = EmbeddingService(EmbeddingConfig(backend="sentence-transformers"))
            vectors = await service.embed_batch(["a", "b"])

        assert service.dimension == 4
        assert vectors.shape == (2, 4)
        assert model.encode.call_args.kwargs["normalize_embeddings"] is True

    @pytest.mark.asyncio
    async def test_model_load_failure(self) -> None:
        """A model that cannot load is reported, not replaced."""
        with patch.object(EmbeddingService, "_load_model_sync", side_effect=OSError("no weights")):
            service = EmbeddingService(EmbeddingConfig(backend="sentence-transformers"))
            with pytest.raises(ExternalServiceError):
                await service.initialize()

        assert service._hasher is None
