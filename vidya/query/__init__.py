"""Vidya query layer: evidence fan-out and aggregation."""

from vidya.query.aggregator import SOURCE_PRIORITY, EvidenceAggregator
from vidya.query.retriever import EvidenceBundle, EvidenceItem, EvidenceRetriever, RetrievalOptions

__all__ = [
    "SOURCE_PRIORITY",
    "EvidenceAggregator",
    "EvidenceBundle",
    "EvidenceItem",
    "EvidenceRetriever",
    "RetrievalOptions",
]
