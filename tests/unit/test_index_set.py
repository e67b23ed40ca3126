"""Tests for the per-corpus similarity index set."""

from __future__ import annotations

import asyncio

import pytest

from vidya.config import EmbeddingConfig
from vidya.index import IndexSet, IndexState, InMemoryDocumentStore, document_text, load_corpus_file
from vidya.models import Corpus, EvidenceDocument
from vidya.processing import EmbeddingService


def faq(doc_id: str, question: str, answer: str) -> EvidenceDocument:
    return EvidenceDocument(id=doc_id, corpus=Corpus.FAQ, title=question, body=answer)


class CountingSource:
    """Document source that counts loads and can be held open."""

    def __init__(self, store: InMemoryDocumentStore, fail_first: bool = False) -> None:
        self.store = store
        self.loads = 0
        self.fail_first = fail_first
        self.gate: asyncio.Event | None = None
        self.started = asyncio.Event()

    async def load(self, corpus: Corpus) -> list[EvidenceDocument]:
        self.loads += 1
        documents = self.store.documents(corpus)
        self.started.set()
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_first and self.loads == 1:
            raise RuntimeError("storage unavailable")
        return documents


@pytest.fixture
def store() -> InMemoryDocumentStore:
    store = InMemoryDocumentStore()
    store.add_many(
        [
            faq("f1", "What are the library timings?", "The library is open 8:00 A.M. to 10:00 P.M."),
            faq("f2", "How do I apply for a hostel room?", "Apply through the hostel office portal."),
            faq("f3", "When is the fee payment deadline?", "Fees are due by the 15th of each month."),
        ]
    )
    return store


@pytest.fixture
def embeddings() -> EmbeddingService:
    return EmbeddingService(EmbeddingConfig(backend="hashing"))


class TestIndexSet:
    """Test suite for IndexSet."""

    @pytest.mark.asyncio
    async def test_search_ranks_best_match_first(
        self, store: InMemoryDocumentStore, embeddings: EmbeddingService
    ) -> None:
        index_set = IndexSet(store, embeddings)

        hits = await index_set.search(Corpus.FAQ, "library timings", k=2)

        assert len(hits) == 2
        assert hits[0].document.id == "f1"
        assert hits[0].score >= hits[1].score

    @pytest.mark.asyncio
    async def test_empty_corpus_and_zero_k(
        self, store: InMemoryDocumentStore, embeddings: EmbeddingService
    ) -> None:
        index_set = IndexSet(store, embeddings)

        assert await index_set.search(Corpus.EVENT, "tech fest", k=3) == []
        assert await index_set.search(Corpus.FAQ, "library", k=0) == []

    @pytest.mark.asyncio
    async def test_index_is_cached(self, store: InMemoryDocumentStore, embeddings: EmbeddingService) -> None:
        source = CountingSource(store)
        index_set = IndexSet(source, embeddings)

        first = await index_set.get_index(Corpus.FAQ)
        second = await index_set.get_index(Corpus.FAQ)

        assert first is second
        assert source.loads == 1
        assert index_set.status()["faq"]["state"] == "ready"

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_build(
        self, store: InMemoryDocumentStore, embeddings: EmbeddingService
    ) -> None:
        source = CountingSource(store)
        index_set = IndexSet(source, embeddings)

        results = await asyncio.gather(*(index_set.get_index(Corpus.FAQ) for _ in range(5)))

        assert source.loads == 1
        assert all(result is results[0] for result in results)

    @pytest.mark.asyncio
    async def test_invalidate_triggers_rebuild(
        self, store: InMemoryDocumentStore, embeddings: EmbeddingService
    ) -> None:
        index_set = IndexSet(store, embeddings)
        store.subscribe(index_set.invalidate)

        assert len(await index_set.get_index(Corpus.FAQ)) == 3

        store.add(faq("f4", "Where is the placement cell?", "Block C, first floor."))

        assert index_set.status()["faq"]["state"] == "absent"
        assert len(await index_set.get_index(Corpus.FAQ)) == 4

    @pytest.mark.asyncio
    async def test_invalidate_during_build_is_not_cached(
        self, store: InMemoryDocumentStore, embeddings: EmbeddingService
    ) -> None:
        """A superseded build answers its waiters but the next call rebuilds."""
        source = CountingSource(store)
        source.gate = asyncio.Event()
        index_set = IndexSet(source, embeddings)

        waiter = asyncio.create_task(index_set.get_index(Corpus.FAQ))
        await source.started.wait()
        assert index_set.status()["faq"]["state"] == "building"

        store.add(faq("f4", "Where is the placement cell?", "Block C, first floor."), notify=False)
        index_set.invalidate(Corpus.FAQ)
        source.gate.set()

        stale = await waiter
        assert len(stale) == 3
        assert index_set.status()["faq"]["state"] == "absent"

        fresh = await index_set.get_index(Corpus.FAQ)
        assert len(fresh) == 4
        assert source.loads == 2

    @pytest.mark.asyncio
    async def test_failed_build_returns_to_absent(
        self, store: InMemoryDocumentStore, embeddings: EmbeddingService
    ) -> None:
        source = CountingSource(store, fail_first=True)
        index_set = IndexSet(source, embeddings)

        with pytest.raises(RuntimeError):
            await index_set.get_index(Corpus.FAQ)
        assert index_set.status()["faq"]["state"] == IndexState.ABSENT.value

        index = await index_set.get_index(Corpus.FAQ)
        assert len(index) == 3


class TestDocuments:
    """Test suite for document rendering and corpus files."""

    def test_document_text_per_corpus(self) -> None:
        assert document_text(faq("f", "Q?", "A.")) == "Question: Q?\nAnswer: A."

        event = EvidenceDocument(
            id="e1",
            corpus=Corpus.EVENT,
            title="Tech Fest",
            body="Annual technical festival",
            metadata={"venue": "Main Auditorium"},
        )
        assert document_text(event) == (
            "Event: Tech Fest\n\nDescription: Annual technical festival\n\nVenue: Main Auditorium"
        )

    def test_store_notifies_once_per_corpus(self) -> None:
        store = InMemoryDocumentStore()
        touched: list[Corpus] = []
        store.subscribe(touched.append)

        store.add_many([faq("a", "q", "a"), faq("b", "q", "a")])
        store.add(faq("c", "q", "a"), notify=False)

        assert touched == [Corpus.FAQ]
        assert store.count(Corpus.FAQ) == 3

    def test_load_corpus_file(self, tmp_path) -> None:
        path = tmp_path / "corpus.yaml"
        path.write_text(
            "faq:\n"
            "  - question: What are the library timings?\n"
            "    answer: 8:00 A.M. to 10:00 P.M.\n"
            "event:\n"
            "  - id: fest\n"
            "    title: Tech Fest\n"
            "    description: Annual technical festival\n"
            "    venue: Main Auditorium\n"
        )

        store = load_corpus_file(path)

        assert store.count(Corpus.FAQ) == 1
        event = store.documents(Corpus.EVENT)[0]
        assert event.id == "fest"
        assert event.body == "Annual technical festival"
        assert event.metadata["venue"] == "Main Auditorium"

    def test_load_corpus_file_rejects_unknown_corpus(self, tmp_path) -> None:
        path = tmp_path / "corpus.yaml"
        path.write_text("gossip:\n  - title: nope\n")

        with pytest.raises(ValueError, match="Unknown corpus"):
            load_corpus_file(path)
