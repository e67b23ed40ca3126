"""Similarity index set over the evidence corpora."""

from vidya.index.documents import (
    DocumentSource,
    InMemoryDocumentStore,
    document_text,
    load_corpus_file,
)
from vidya.index.similarity import IndexSet, IndexState, ScoredDocument, SimilarityIndex

__all__ = [
    "DocumentSource",
    "InMemoryDocumentStore",
    "IndexSet",
    "IndexState",
    "ScoredDocument",
    "SimilarityIndex",
    "document_text",
    "load_corpus_file",
]
