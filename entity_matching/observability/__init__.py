"""Observability module for metrics and monitoring."""

from entity_matching.observability.metrics import (
    get_metrics,
    get_metrics_content_type,
    track_candidate_failure,
    track_embedding_request,
    track_filter_attrition,
    track_reverse_lookup,
    track_search_request,
)

__all__ = [
    "get_metrics",
    "get_metrics_content_type",
    "track_candidate_failure",
    "track_embedding_request",
    "track_filter_attrition",
    "track_reverse_lookup",
    "track_search_request",
]
