"""Mutual match detection.

A mutual match is a pair where each entity ranks the other above the
similarity threshold. One forward search collects candidates, then one
reverse search per candidate checks whether the origin comes back.
"""

import asyncio
import time
from datetime import UTC, datetime

from entity_matching.config import SearchSettings, get_settings
from entity_matching.entities.models import EntityType
from entity_matching.exceptions import (
    ReverseLookupError,
    SearchTimeoutError,
    ValidationError,
)
from entity_matching.filters.models import (
    AttributeFilter,
    FilterGroup,
    FilterOperator,
    LogicalOperator,
)
from entity_matching.logging_config import get_logger
from entity_matching.observability.metrics import (
    track_reverse_lookup,
    track_search_request,
)
from entity_matching.search.coordinator import HybridSearchCoordinator
from entity_matching.search.models import (
    EntityMatch,
    MutualMatch,
    MutualMatchMetadata,
    MutualMatchResult,
    SearchResponse,
)

logger = get_logger(__name__)


def build_entity_type_filter(entity_type: EntityType | None) -> FilterGroup | None:
    """Filter group restricting results to one entity type."""
    if entity_type is None:
        return None
    return FilterGroup(
        logical_operator=LogicalOperator.AND,
        filters=[
            AttributeFilter(
                field_path="entityType",
                operator=FilterOperator.EQUALS,
                value=entity_type.value,
            )
        ],
    )


class MutualMatchResolver:
    """Finds bidirectional matches for an entity.

    Reverse lookups run concurrently, bounded by a semaphore. Each lookup
    returns its own result; a failed lookup only drops its candidate. The
    whole request runs under a deadline that cancels lookups still in
    flight.
    """

    def __init__(
        self,
        search_coordinator: HybridSearchCoordinator,
        settings: SearchSettings | None = None,
    ) -> None:
        self._search = search_coordinator
        self._settings = settings or get_settings().search

    async def find_mutual_matches(
        self,
        entity_id: str,
        min_similarity: float | None = None,
        target_entity_type: EntityType | None = None,
        limit: int | None = None,
    ) -> MutualMatchResult:
        """Find entities that match ``entity_id`` in both directions.

        Args:
            entity_id: Origin entity.
            min_similarity: Threshold both legs must meet.
            target_entity_type: Only consider candidates of this type.
            limit: Maximum mutual matches.

        Returns:
            Mutual matches sorted by mutual score, highest first.

        Raises:
            EntityNotFoundError: If the origin has no embedding.
            EmbeddingNotReadyError: If the origin embedding is not generated.
            SearchTimeoutError: If the request deadline is exceeded.
        """
        if min_similarity is None:
            min_similarity = self._settings.mutual_default_min_similarity
        if limit is None:
            limit = self._settings.mutual_default_limit
        if limit < 1:
            raise ValidationError("limit must be at least 1", details={"limit": limit})

        start = time.perf_counter()
        logger.info(
            f"Finding mutual matches for entity {entity_id}",
            extra={
                "entity_id": entity_id,
                "min_similarity": min_similarity,
                "target_entity_type": target_entity_type.value if target_entity_type else None,
                "limit": limit,
            },
        )

        timeout = self._settings.request_timeout_seconds
        try:
            async with asyncio.timeout(timeout):
                forward, results = await self._resolve(
                    entity_id, min_similarity, target_entity_type, limit
                )
        except TimeoutError as e:
            track_search_request("mutual", time.perf_counter() - start, success=False)
            raise SearchTimeoutError(
                f"Mutual match search for entity {entity_id} exceeded {timeout}s",
                details={"entity_id": entity_id, "timeout_seconds": timeout},
            ) from e
        except Exception:
            track_search_request("mutual", time.perf_counter() - start, success=False)
            logger.error(
                f"Error finding mutual matches for entity {entity_id}",
                exc_info=True,
            )
            raise

        mutual = [m for m in results if m is not None]
        mutual.sort(key=lambda m: m.mutual_score, reverse=True)
        mutual = mutual[:limit]

        duration = time.perf_counter() - start
        average = sum(m.mutual_score for m in mutual) / len(mutual) if mutual else 0.0
        logger.info(
            f"Found {len(mutual)} mutual matches out of {len(forward)} candidates "
            f"in {int(duration * 1000)}ms",
            extra={
                "entity_id": entity_id,
                "average_mutual_score": round(average, 3),
                "reverse_lookups": len(results),
            },
        )
        track_search_request(
            "mutual",
            duration,
            candidates_scanned=len(forward),
            matches_returned=len(mutual),
        )

        return MutualMatchResult(
            matches=mutual,
            total_mutual_matches=len(mutual),
            metadata=MutualMatchMetadata(
                searched_at=datetime.now(UTC),
                target_entity_type=target_entity_type,
                candidates_evaluated=len(forward),
                reverse_lookups=len(results),
                duration_ms=int(duration * 1000),
                min_similarity=min_similarity,
            ),
        )

    async def _resolve(
        self,
        entity_id: str,
        min_similarity: float,
        target_entity_type: EntityType | None,
        limit: int,
    ) -> tuple[list[EntityMatch], list[MutualMatch | None]]:
        """Run the forward search and the reverse fan-out."""
        # The type filter reads a core field, never user data, so it must not
        # be skipped by field privacy.
        forward = await self._search.find_similar_to_entity(
            entity_id,
            limit=limit * self._settings.mutual_overfetch_factor,
            min_similarity=min_similarity,
            include_entities=False,
            attribute_filters=build_entity_type_filter(target_entity_type),
            enforce_privacy=False,
        )

        logger.debug(
            f"Forward search found {len(forward.matches)} candidates",
            extra={"entity_id": entity_id},
        )
        if not forward.matches:
            return [], []

        semaphore = asyncio.Semaphore(self._settings.mutual_max_concurrency)
        results = await asyncio.gather(
            *(
                self._check_reverse(
                    entity_id, candidate, min_similarity, target_entity_type, semaphore
                )
                for candidate in forward.matches
            )
        )
        return forward.matches, list(results)

    async def _check_reverse(
        self,
        origin_id: str,
        candidate: EntityMatch,
        min_similarity: float,
        target_entity_type: EntityType | None,
        semaphore: asyncio.Semaphore,
    ) -> MutualMatch | None:
        """Check whether the candidate ranks the origin in its own search."""
        async with semaphore:
            try:
                reverse = await self._reverse_search(candidate.entity_id, min_similarity)
            except ReverseLookupError as e:
                track_reverse_lookup("error")
                logger.warning(
                    e.message,
                    exc_info=True,
                    extra={"error_code": e.code.value, **e.details},
                )
                return None

        reverse_match = next(
            (m for m in reverse.matches if m.entity_id == origin_id),
            None,
        )
        if reverse_match is None:
            track_reverse_lookup("not_mutual")
            return None

        forward_score = candidate.similarity_score
        reverse_score = reverse_match.similarity_score
        if forward_score < min_similarity or reverse_score < min_similarity:
            track_reverse_lookup("not_mutual")
            return None

        logger.debug(
            f"Mutual match detected: {origin_id} <-> {candidate.entity_id}",
            extra={
                "forward_score": round(forward_score, 3),
                "reverse_score": round(reverse_score, 3),
            },
        )
        track_reverse_lookup("mutual")

        return MutualMatch(
            entity_a_id=origin_id,
            entity_b_id=candidate.entity_id,
            entity_b_type=target_entity_type,
            entity_b_name=candidate.entity_name,
            forward_score=forward_score,
            reverse_score=reverse_score,
            mutual_score=(forward_score + reverse_score) / 2,
            detected_at=datetime.now(UTC),
            matched_attributes=candidate.matched_attributes,
        )

    async def _reverse_search(
        self,
        candidate_id: str,
        min_similarity: float,
    ) -> SearchResponse:
        """Search from the candidate's side.

        Raises:
            ReverseLookupError: If the reverse search fails for any reason.
        """
        try:
            return await self._search.find_similar_to_entity(
                candidate_id,
                limit=self._settings.mutual_reverse_lookup_limit,
                min_similarity=min_similarity,
                include_entities=False,
            )
        except Exception as e:
            raise ReverseLookupError(
                f"Error checking reverse match for candidate {candidate_id}: {e}",
                details={"candidate_id": candidate_id},
            ) from e
