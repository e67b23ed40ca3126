"""Evidence documents: per-corpus text rendering and an in-memory store.

The store plays the ingestion collaborator: every write notifies its
listeners with the affected corpus, and ``IndexSet.invalidate`` is the
usual listener.
"""

from __future__ import annotations

import logging
import uuid
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import yaml

from vidya.models import Corpus, EvidenceDocument

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

logger = logging.getLogger(__name__)


@runtime_checkable
class DocumentSource(Protocol):
    """Supplies the current documents of a corpus."""

    async def load(self, corpus: Corpus) -> list[EvidenceDocument]:
        ...


def document_text(document: EvidenceDocument) -> str:
    """Text that is embedded for ``document``.

    Args:
        document: Evidence document

    Returns:
        Corpus-specific rendering of title, body and salient metadata
    """
    meta = document.metadata
    if document.corpus is Corpus.FAQ:
        return f"Question: {document.title}\nAnswer: {document.body}"
    if document.corpus is Corpus.EVENT:
        parts = [f"Event: {document.title}", f"Description: {document.body}"]
        if meta.get("category"):
            parts.append(f"Category: {meta['category']}")
        if meta.get("date"):
            parts.append(f"Date: {meta['date']}")
        if meta.get("venue"):
            parts.append(f"Venue: {meta['venue']}")
        return "\n\n".join(parts)
    if document.corpus is Corpus.CHAT_HISTORY:
        return f"User: {document.title}\n\nAssistant: {document.body}"
    if document.corpus is Corpus.USER_PROFILE:
        return f"Student profile: {document.title}\n{document.body}"
    return f"{document.title}\n\n{document.body}".strip()


class InMemoryDocumentStore:
    """Documents grouped by corpus, with change notification."""

    def __init__(self) -> None:
        self._documents: dict[Corpus, dict[str, EvidenceDocument]] = {corpus: {} for corpus in Corpus}
        self._listeners: list[Callable[[Corpus], None]] = []

    def subscribe(self, listener: Callable[[Corpus], None]) -> None:
        """Call ``listener(corpus)`` after every write to that corpus."""
        self._listeners.append(listener)

    def _notify(self, corpus: Corpus) -> None:
        for listener in self._listeners:
            listener(corpus)

    def add(self, document: EvidenceDocument, notify: bool = True) -> None:
        """Insert or replace a document."""
        self._documents[document.corpus][document.id] = document
        if notify:
            self._notify(document.corpus)

    def add_many(self, documents: Iterable[EvidenceDocument]) -> int:
        """Insert documents, notifying once per touched corpus."""
        touched: set[Corpus] = set()
        count = 0
        for document in documents:
            self._documents[document.corpus][document.id] = document
            touched.add(document.corpus)
            count += 1
        for corpus in touched:
            self._notify(corpus)
        return count

    def remove(self, corpus: Corpus, document_id: str, notify: bool = True) -> bool:
        removed = self._documents[corpus].pop(document_id, None) is not None
        if removed and notify:
            self._notify(corpus)
        return removed

    def documents(self, corpus: Corpus) -> list[EvidenceDocument]:
        return list(self._documents[corpus].values())

    def count(self, corpus: Corpus) -> int:
        return len(self._documents[corpus])

    async def load(self, corpus: Corpus) -> list[EvidenceDocument]:
        return self.documents(corpus)


def _coerce_document(corpus: Corpus, raw: dict[str, Any]) -> EvidenceDocument:
    if corpus is Corpus.FAQ:
        title = raw.get("question") or raw.get("title") or ""
        body = raw.get("answer") or raw.get("body") or ""
    else:
        title = raw.get("title") or raw.get("name") or ""
        body = raw.get("body") or raw.get("content") or raw.get("description") or ""

    metadata = dict(raw.get("metadata") or {})
    for key in ("category", "date", "venue", "owner", "user_id"):
        if key in raw and key not in metadata:
            metadata[key] = raw[key]

    return EvidenceDocument(
        id=str(raw.get("id") or uuid.uuid4().hex),
        corpus=corpus,
        title=str(title),
        body=str(body),
        metadata=metadata,
    )


def load_corpus_file(path: str | Path, store: InMemoryDocumentStore | None = None) -> InMemoryDocumentStore:
    """Load documents from a YAML file mapping corpus names to lists.

    Example file::

        faq:
          - question: What are the library timings?
            answer: The library is open 8:00 A.M. to 10:00 P.M.
        event:
          - title: Tech Fest
            description: Annual technical festival
            date: 2025-03-14

    Args:
        path: YAML file path
        store: Existing store to extend, a new one when omitted

    Returns:
        The populated store

    Raises:
        ValueError: If the file is not a mapping or names an unknown corpus
    """
    store = store or InMemoryDocumentStore()
    with open(Path(path).expanduser()) as f:
        raw = yaml.safe_load(f) or {}

    if not isinstance(raw, dict):
        raise ValueError(f"Corpus file {path} must be a mapping of corpus name to documents")

    for name, entries in raw.items():
        try:
            corpus = Corpus(name)
        except ValueError as e:
            raise ValueError(f"Unknown corpus '{name}' in {path}") from e
        documents = [_coerce_document(corpus, entry) for entry in entries or []]
        store.add_many(documents)
        logger.info(f"Loaded {len(documents)} {corpus.value} documents from {path}")

    return store
