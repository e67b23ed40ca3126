"""Per-corpus similarity indexes with explicit three-state caching.

Each corpus slot is ``ABSENT``, ``BUILDING`` (one shared build task) or
``READY``. Concurrent ``get_index`` callers during a build await the same
task. ``invalidate`` bumps the slot generation and drops the cached
index; a build that was already running still answers its own waiters
but is not cached, so the next ``get_index`` rebuilds.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

import numpy as np
import numpy.typing as npt

from vidya.index.documents import document_text
from vidya.models import Corpus, EvidenceDocument
from vidya.monitoring import metrics
from vidya.observability import trace_operation

if TYPE_CHECKING:
    from vidya.index.documents import DocumentSource
    from vidya.processing.embeddings import EmbeddingService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScoredDocument:
    """A search hit."""

    document: EvidenceDocument
    score: float


class SimilarityIndex:
    """Point-in-time cosine index over one corpus."""

    def __init__(
        self,
        corpus: Corpus,
        documents: list[EvidenceDocument],
        vectors: npt.NDArray[np.float32],
    ) -> None:
        self.corpus = corpus
        self.documents = documents
        self.built_at = datetime.now(UTC)
        if len(documents):
            norms = np.linalg.norm(vectors, axis=1, keepdims=True)
            norms[norms == 0] = 1.0
            self._vectors = (vectors / norms).astype(np.float32)
        else:
            self._vectors = np.zeros((0, vectors.shape[1] if vectors.ndim == 2 else 0), dtype=np.float32)

    def __len__(self) -> int:
        return len(self.documents)

    def search(self, query_vector: npt.NDArray[np.float32], k: int) -> list[ScoredDocument]:
        """Top ``k`` documents by cosine similarity, best first.

        Args:
            query_vector: Query embedding
            k: Maximum number of hits

        Returns:
            At most ``k`` hits; empty for an empty index or ``k <= 0``
        """
        if k <= 0 or not self.documents:
            return []

        norm = float(np.linalg.norm(query_vector))
        if norm == 0:
            return []
        scores = self._vectors @ (query_vector / norm)

        k = min(k, len(self.documents))
        top = np.argpartition(-scores, k - 1)[:k]
        ordered = top[np.argsort(-scores[top], kind="stable")]
        return [ScoredDocument(self.documents[i], float(scores[i])) for i in ordered]


class IndexState(Enum):
    """Cache state of one corpus slot."""

    ABSENT = "absent"
    BUILDING = "building"
    READY = "ready"


@dataclass
class _Slot:
    state: IndexState = IndexState.ABSENT
    index: SimilarityIndex | None = None
    build: asyncio.Task[SimilarityIndex] | None = None
    generation: int = 0
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


class IndexSet:
    """One lazily-built, invalidatable similarity index per corpus.

    Args:
        source: Supplies documents per corpus at build time
        embeddings: Embedding service shared by builds and queries
    """

    def __init__(self, source: DocumentSource, embeddings: EmbeddingService) -> None:
        self.source = source
        self.embeddings = embeddings
        self._slots: dict[Corpus, _Slot] = {corpus: _Slot() for corpus in Corpus}

    async def get_index(self, corpus: Corpus) -> SimilarityIndex:
        """Return the cached index for ``corpus``, building it if needed.

        Raises:
            Exception: Whatever the document source or embedding service
                raised during the build; the slot returns to ``ABSENT``
        """
        slot = self._slots[corpus]
        async with slot.lock:
            if slot.state is IndexState.READY and slot.index is not None:
                return slot.index

            if slot.state is IndexState.BUILDING and slot.build is not None:
                build = slot.build
            else:
                build = asyncio.ensure_future(self._build(corpus))
                slot.state = IndexState.BUILDING
                slot.build = build
                build.add_done_callback(
                    functools.partial(self._on_build_done, corpus, slot.generation)
                )

        return await asyncio.shield(build)

    async def _build(self, corpus: Corpus) -> SimilarityIndex:
        started = time.perf_counter()
        with trace_operation("index.build", {"corpus": corpus.value}):
            documents = await self.source.load(corpus)
            texts = [document_text(document) for document in documents]
            vectors = await self.embeddings.embed_batch(texts)
            index = SimilarityIndex(corpus, documents, vectors)

        logger.info(
            f"✅ Built {corpus.value} index: {len(index)} documents "
            f"in {time.perf_counter() - started:.3f}s"
        )
        return index

    def _on_build_done(self, corpus: Corpus, generation: int, build: asyncio.Task[Any]) -> None:
        slot = self._slots[corpus]
        error = None if build.cancelled() else build.exception()

        if slot.generation != generation or slot.build is not build:
            # Invalidated while building: answer waiters, cache nothing
            logger.debug(f"Discarding superseded {corpus.value} index build")
            return

        slot.build = None
        if build.cancelled() or error is not None:
            slot.state = IndexState.ABSENT
            slot.index = None
            metrics.index_builds_total.labels(corpus=corpus.value, status="error").inc()
            logger.error(f"❌ Building {corpus.value} index failed: {error!r}")
            return

        slot.index = build.result()
        slot.state = IndexState.READY
        metrics.index_builds_total.labels(corpus=corpus.value, status="success").inc()
        metrics.index_documents.labels(corpus=corpus.value).set(len(slot.index))

    def invalidate(self, corpus: Corpus) -> None:
        """Drop the cached index so the next ``get_index`` rebuilds."""
        slot = self._slots[corpus]
        slot.generation += 1
        slot.state = IndexState.ABSENT
        slot.index = None
        slot.build = None
        logger.debug(f"Invalidated {corpus.value} index (generation {slot.generation})")

    def invalidate_all(self) -> None:
        for corpus in Corpus:
            self.invalidate(corpus)

    async def search(self, corpus: Corpus, query_text: str, k: int) -> list[ScoredDocument]:
        """Search ``corpus`` for ``query_text``.

        Returns:
            At most ``k`` hits ranked by descending similarity; empty for an
            empty corpus
        """
        if k <= 0:
            return []
        index = await self.get_index(corpus)
        if not len(index):
            return []
        query_vector = await self.embeddings.embed(query_text)
        return index.search(query_vector, k)

    def status(self) -> dict[str, dict[str, Any]]:
        """Per-corpus cache state for diagnostics."""
        report: dict[str, dict[str, Any]] = {}
        for corpus, slot in self._slots.items():
            entry: dict[str, Any] = {"state": slot.state.value, "generation": slot.generation}
            if slot.index is not None:
                entry["documents"] = len(slot.index)
                entry["built_at"] = slot.index.built_at.isoformat()
            report[corpus.value] = entry
        return report
