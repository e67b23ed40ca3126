"""Text processing: embeddings."""

from vidya.processing.embeddings import EmbeddingService, HashingEmbedder

__all__ = ["EmbeddingService", "HashingEmbedder"]
