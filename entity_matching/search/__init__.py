"""Similarity search and mutual matching module."""

from entity_matching.search.coordinator import (
    HybridSearchCoordinator,
    matches_metadata_filters,
)
from entity_matching.search.models import (
    EntityMatch,
    MutualMatch,
    MutualMatchMetadata,
    MutualMatchResult,
    SearchMetadata,
    SearchResponse,
)
from entity_matching.search.mutual import MutualMatchResolver, build_entity_type_filter
from entity_matching.search.ranker import (
    RankedCandidate,
    SimilarityRanker,
    cosine_similarity,
    dot_product,
    magnitude,
    normalize,
)

__all__ = [
    "EntityMatch",
    "HybridSearchCoordinator",
    "MutualMatch",
    "MutualMatchMetadata",
    "MutualMatchResolver",
    "MutualMatchResult",
    "RankedCandidate",
    "SearchMetadata",
    "SearchResponse",
    "SimilarityRanker",
    "build_entity_type_filter",
    "matches_metadata_filters",
    "cosine_similarity",
    "dot_product",
    "magnitude",
    "normalize",
]
