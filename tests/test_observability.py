"""Tests for observability module."""

from prometheus_client import REGISTRY

from entity_matching.observability.metrics import (
    get_metrics,
    get_metrics_content_type,
    track_candidate_failure,
    track_embedding_request,
    track_filter_attrition,
    track_reverse_lookup,
    track_search_request,
)


def _sample(name: str, labels: dict[str, str] | None = None) -> float:
    return REGISTRY.get_sample_value(name, labels or {}) or 0.0


class TestMetricsFunctions:
    """Tests for metrics tracking functions."""

    def test_get_metrics_returns_bytes(self) -> None:
        """get_metrics returns bytes."""
        assert isinstance(get_metrics(), bytes)
        assert "text/plain" in get_metrics_content_type()

    def test_track_search_request_success(self) -> None:
        """Successful searches record counts and sizes."""
        before = _sample("entity_searches_total", {"kind": "text", "status": "success"})

        track_search_request("text", 0.2, candidates_scanned=500, matches_returned=7)

        after = _sample("entity_searches_total", {"kind": "text", "status": "success"})
        assert after == before + 1
        metrics = get_metrics().decode()
        assert "entity_search_candidates_scanned" in metrics
        assert "entity_search_matches_returned" in metrics

    def test_track_search_request_failure(self) -> None:
        """Failed searches are counted as errors."""
        before = _sample("entity_searches_total", {"kind": "mutual", "status": "error"})

        track_search_request("mutual", 0.1, success=False)

        after = _sample("entity_searches_total", {"kind": "mutual", "status": "error"})
        assert after == before + 1

    def test_track_filter_attrition(self) -> None:
        """Attrition is observed only when something was evaluated."""
        before = _sample("entity_filter_survivor_ratio_count")

        track_filter_attrition(evaluated=20, survivors=5)
        track_filter_attrition(evaluated=0, survivors=0)

        assert _sample("entity_filter_survivor_ratio_count") == before + 1

    def test_track_candidate_failure(self) -> None:
        """track_candidate_failure increments counter."""
        before = _sample("entity_candidate_evaluation_failures_total")
        track_candidate_failure()
        assert _sample("entity_candidate_evaluation_failures_total") == before + 1

    def test_track_reverse_lookup(self) -> None:
        """track_reverse_lookup counts by outcome."""
        before = _sample("entity_reverse_lookups_total", {"outcome": "error"})
        track_reverse_lookup("error")
        assert _sample("entity_reverse_lookups_total", {"outcome": "error"}) == before + 1

    def test_track_embedding_request(self) -> None:
        """track_embedding_request records request."""
        track_embedding_request(
            model="text-embedding-3-small",
            duration=0.1,
            batch_size=10,
            success=True,
        )

        metrics = get_metrics().decode()
        assert "embedding_request_duration_seconds" in metrics
        assert "embedding_batch_size" in metrics
