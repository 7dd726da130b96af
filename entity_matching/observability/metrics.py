"""Prometheus metrics for entity matching.

Provides metrics instrumentation for:
- Similarity search latency and counts
- Candidate scanning and filter attrition
- Mutual-match reverse lookups
- Embedding provider requests
"""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Histogram,
    generate_latest,
)

from entity_matching.logging_config import get_logger

logger = get_logger(__name__)

# Search Metrics
SEARCH_DURATION = Histogram(
    "entity_search_duration_seconds",
    "Search request duration in seconds",
    ["kind", "status"],  # "kind" label values: entity, text, mutual
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

SEARCH_TOTAL = Counter(
    "entity_searches_total",
    "Total search requests",
    ["kind", "status"],
)

SEARCH_CANDIDATES_SCANNED = Histogram(
    "entity_search_candidates_scanned",
    "Embeddings compared per search",
    ["kind"],
    buckets=[0, 10, 50, 100, 500, 1000, 5000, 10000, 50000],
)

SEARCH_MATCHES_RETURNED = Histogram(
    "entity_search_matches_returned",
    "Matches returned per search",
    ["kind"],
    buckets=[0, 1, 2, 5, 10, 20, 50, 100],
)

# Filter Metrics
FILTER_SURVIVOR_RATIO = Histogram(
    "entity_filter_survivor_ratio",
    "Fraction of evaluated candidates that passed attribute/metadata filters",
    buckets=[0.0, 0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8, 0.9, 1.0],
)

CANDIDATE_EVALUATION_FAILURES = Counter(
    "entity_candidate_evaluation_failures_total",
    "Candidates skipped because loading or filtering them failed",
)

# Mutual Match Metrics
REVERSE_LOOKUPS_TOTAL = Counter(
    "entity_reverse_lookups_total",
    "Mutual-match reverse lookups",
    ["outcome"],  # "outcome" label values: mutual, not_mutual, error
)

# Embedding Metrics
EMBEDDING_REQUEST_DURATION = Histogram(
    "embedding_request_duration_seconds",
    "Embedding request duration in seconds",
    ["model", "status"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0],
)

EMBEDDING_REQUEST_TOTAL = Counter(
    "embedding_requests_total",
    "Total embedding requests",
    ["model", "status"],
)

EMBEDDING_BATCH_SIZE = Histogram(
    "embedding_batch_size",
    "Embedding batch size",
    ["model"],
    buckets=[1, 5, 10, 25, 50, 100, 250, 500],
)


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest()


def get_metrics_content_type() -> str:
    """Get the content type for metrics response."""
    return CONTENT_TYPE_LATEST


def track_search_request(
    kind: str,
    duration: float,
    candidates_scanned: int = 0,
    matches_returned: int = 0,
    success: bool = True,
) -> None:
    """Track search request metrics.

    Args:
        kind: Search kind (entity, text, mutual).
        duration: Request duration in seconds.
        candidates_scanned: Embeddings compared.
        matches_returned: Matches in the response.
        success: Whether the request succeeded.
    """
    status = "success" if success else "error"

    SEARCH_DURATION.labels(kind=kind, status=status).observe(duration)
    SEARCH_TOTAL.labels(kind=kind, status=status).inc()

    if success:
        SEARCH_CANDIDATES_SCANNED.labels(kind=kind).observe(candidates_scanned)
        SEARCH_MATCHES_RETURNED.labels(kind=kind).observe(matches_returned)


def track_filter_attrition(evaluated: int, survivors: int) -> None:
    """Track how many filtered candidates survived.

    Args:
        evaluated: Candidates evaluated against filters.
        survivors: Candidates that passed.
    """
    if evaluated > 0:
        FILTER_SURVIVOR_RATIO.observe(survivors / evaluated)


def track_candidate_failure() -> None:
    """Count a candidate skipped due to an evaluation error."""
    CANDIDATE_EVALUATION_FAILURES.inc()


def track_reverse_lookup(outcome: str) -> None:
    """Count a reverse lookup by outcome (mutual, not_mutual, error)."""
    REVERSE_LOOKUPS_TOTAL.labels(outcome=outcome).inc()


def track_embedding_request(
    model: str,
    duration: float,
    batch_size: int,
    success: bool = True,
) -> None:
    """Track embedding request metrics.

    Args:
        model: Embedding model name.
        duration: Request duration in seconds.
        batch_size: Number of texts in the batch.
        success: Whether the request succeeded.
    """
    status = "success" if success else "error"

    EMBEDDING_REQUEST_DURATION.labels(model=model, status=status).observe(duration)
    EMBEDDING_REQUEST_TOTAL.labels(model=model, status=status).inc()
    EMBEDDING_BATCH_SIZE.labels(model=model).observe(batch_size)
