"""Embedding provider and storage module."""

from entity_matching.embeddings.models import (
    EmbeddingRecord,
    EmbeddingResult,
    EmbeddingStatus,
)
from entity_matching.embeddings.service import EmbeddingService, HTTPEmbeddingService
from entity_matching.embeddings.store import (
    EmbeddingStore,
    InMemoryEmbeddingStore,
    QdrantEmbeddingStore,
)

__all__ = [
    "EmbeddingRecord",
    "EmbeddingResult",
    "EmbeddingService",
    "EmbeddingStatus",
    "EmbeddingStore",
    "HTTPEmbeddingService",
    "InMemoryEmbeddingStore",
    "QdrantEmbeddingStore",
]
