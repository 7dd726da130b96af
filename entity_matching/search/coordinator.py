"""Hybrid similarity search coordinator.

Ranks candidates by vector similarity, then narrows the ranked list with
attribute and metadata filters while respecting field privacy.
"""

import time
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from entity_matching.config import SearchSettings, get_settings
from entity_matching.embeddings.models import EmbeddingRecord, EmbeddingStatus
from entity_matching.embeddings.service import EmbeddingService
from entity_matching.embeddings.store import EmbeddingStore
from entity_matching.entities.models import Entity
from entity_matching.entities.store import EntityStore
from entity_matching.exceptions import (
    CandidateEvaluationError,
    EmbeddingError,
    EmbeddingNotReadyError,
    EntityNotFoundError,
    ErrorCode,
    ValidationError,
)
from entity_matching.filters.engine import AttributeFilterEngine
from entity_matching.filters.evaluator import is_numeric
from entity_matching.filters.models import FilterGroup
from entity_matching.logging_config import get_logger
from entity_matching.observability.metrics import (
    track_candidate_failure,
    track_filter_attrition,
    track_search_request,
)
from entity_matching.search.models import EntityMatch, SearchMetadata, SearchResponse
from entity_matching.search.ranker import RankedCandidate, SimilarityRanker

logger = get_logger(__name__)

METADATA_NUMERIC_TOLERANCE = 1e-4


def matches_metadata_filters(
    entity_metadata: Mapping[str, Any] | None,
    filters: Mapping[str, Any],
) -> bool:
    """Check an entity's metadata against required key/value pairs.

    Every filter key must be present. Nested maps are matched recursively,
    so ``{"verification": {"email_verified": True}}`` checks one nested key.
    """
    if not entity_metadata:
        return False

    for key, expected in filters.items():
        if key not in entity_metadata:
            return False

        actual = entity_metadata[key]
        if isinstance(actual, Mapping) and isinstance(expected, Mapping):
            if not matches_metadata_filters(actual, expected):
                return False
        elif not _metadata_values_equal(actual, expected):
            return False

    return True


def _metadata_values_equal(actual: Any, expected: Any) -> bool:
    if actual is None and expected is None:
        return True
    if actual is None or expected is None:
        return False

    if is_numeric(actual) and is_numeric(expected):
        return abs(float(actual) - float(expected)) < METADATA_NUMERIC_TOLERANCE

    if isinstance(actual, bool) or isinstance(expected, bool):
        return isinstance(actual, bool) and isinstance(expected, bool) and actual == expected

    if isinstance(actual, str) and isinstance(expected, str):
        return actual.casefold() == expected.casefold()

    return bool(actual == expected)


class HybridSearchCoordinator:
    """Finds entities similar to a reference entity or a text query.

    Two phases: cosine ranking over every generated embedding, then
    attribute/metadata filtering of the ranked candidates in rank order.
    When filters are active the ranking stage over-fetches so that enough
    candidates survive filtering to fill the page.
    """

    def __init__(
        self,
        embedding_store: EmbeddingStore,
        entity_store: EntityStore,
        embedding_service: EmbeddingService | None = None,
        filter_engine: AttributeFilterEngine | None = None,
        ranker: SimilarityRanker | None = None,
        settings: SearchSettings | None = None,
    ) -> None:
        """Initialize the coordinator.

        Args:
            embedding_store: Source of entity embeddings.
            entity_store: Source of full entities.
            embedding_service: Embeds text queries; required for text search.
            filter_engine: Attribute filter engine.
            ranker: Similarity ranker.
            settings: Search configuration.
        """
        self._embedding_store = embedding_store
        self._entity_store = entity_store
        self._embedding_service = embedding_service
        self._filter_engine = filter_engine or AttributeFilterEngine()
        self._ranker = ranker or SimilarityRanker()
        self._settings = settings or get_settings().search

    async def find_similar_to_entity(
        self,
        entity_id: str,
        limit: int | None = None,
        min_similarity: float | None = None,
        include_entities: bool = False,
        attribute_filters: FilterGroup | None = None,
        metadata_filters: dict[str, Any] | None = None,
        requesting_user_id: str | None = None,
        enforce_privacy: bool = True,
    ) -> SearchResponse:
        """Find entities similar to an existing entity.

        The reference entity is never part of its own results.

        Args:
            entity_id: Reference entity.
            limit: Maximum matches.
            min_similarity: Minimum cosine similarity.
            include_entities: Attach full entities to matches.
            attribute_filters: Structured attribute filter tree.
            metadata_filters: Required metadata key/value pairs.
            requesting_user_id: Requesting user, None for anonymous.
            enforce_privacy: Apply field visibility to attribute filters.

        Returns:
            Ranked matches with search metadata.

        Raises:
            EntityNotFoundError: If the entity has no embedding.
            EmbeddingNotReadyError: If the embedding is not generated yet.
            ValidationError: If limit or min_similarity is out of range.
        """
        limit, min_similarity = self._resolve_params(limit, min_similarity)
        start = time.perf_counter()

        logger.info(
            f"Finding similar entities for {entity_id}",
            extra={
                "entity_id": entity_id,
                "limit": limit,
                "min_similarity": min_similarity,
                "has_attribute_filters": _has_attribute_filters(attribute_filters),
                "has_metadata_filters": bool(metadata_filters),
            },
        )

        try:
            reference = await self._load_reference_vector(entity_id)
            candidates = await self._load_candidates(exclude_entity_id=entity_id)
            response = await self._search(
                reference,
                candidates,
                limit=limit,
                min_similarity=min_similarity,
                include_entities=include_entities,
                attribute_filters=attribute_filters,
                metadata_filters=metadata_filters,
                requesting_user_id=requesting_user_id,
                enforce_privacy=enforce_privacy,
                start=start,
            )
        except Exception:
            track_search_request("entity", time.perf_counter() - start, success=False)
            raise

        logger.info(
            f"Found {response.total_matches} similar entities "
            f"in {response.metadata.duration_ms}ms",
            extra={"entity_id": entity_id},
        )
        track_search_request(
            "entity",
            time.perf_counter() - start,
            candidates_scanned=response.metadata.total_candidates_scanned,
            matches_returned=response.total_matches,
        )
        return response

    async def search_by_text(
        self,
        query: str,
        limit: int | None = None,
        min_similarity: float | None = None,
        include_entities: bool = False,
        attribute_filters: FilterGroup | None = None,
        metadata_filters: dict[str, Any] | None = None,
        requesting_user_id: str | None = None,
        enforce_privacy: bool = True,
    ) -> SearchResponse:
        """Find entities similar to a free-text query.

        Same pipeline as ``find_similar_to_entity`` with the reference
        vector produced by the embedding service; no entity is excluded.

        Raises:
            EmbeddingError: If the query cannot be embedded.
            ValidationError: If the query is blank or parameters are out of range.
        """
        if not query or not query.strip():
            raise ValidationError("Search query must not be empty")
        if self._embedding_service is None:
            raise EmbeddingError(
                "No embedding service configured for text search",
                code=ErrorCode.EMBEDDING_SERVICE_ERROR,
            )

        limit, min_similarity = self._resolve_params(limit, min_similarity)
        start = time.perf_counter()

        logger.info(
            "Searching entities by text query",
            extra={
                "query_length": len(query),
                "limit": limit,
                "min_similarity": min_similarity,
                "has_attribute_filters": _has_attribute_filters(attribute_filters),
                "has_metadata_filters": bool(metadata_filters),
            },
        )

        try:
            result = await self._embedding_service.embed(query)
            if result is None or not result.embedding:
                raise EmbeddingError(
                    "Failed to generate embedding for query",
                    details={"query": query[:100]},
                )
            logger.debug(f"Generated {len(result.embedding)}-dimensional query embedding")

            candidates = await self._load_candidates()
            response = await self._search(
                result.embedding,
                candidates,
                limit=limit,
                min_similarity=min_similarity,
                include_entities=include_entities,
                attribute_filters=attribute_filters,
                metadata_filters=metadata_filters,
                requesting_user_id=requesting_user_id,
                enforce_privacy=enforce_privacy,
                start=start,
            )
        except Exception:
            track_search_request("text", time.perf_counter() - start, success=False)
            raise

        logger.info(
            f"Found {response.total_matches} matching entities for query "
            f"in {response.metadata.duration_ms}ms"
        )
        track_search_request(
            "text",
            time.perf_counter() - start,
            candidates_scanned=response.metadata.total_candidates_scanned,
            matches_returned=response.total_matches,
        )
        return response

    def _resolve_params(
        self,
        limit: int | None,
        min_similarity: float | None,
    ) -> tuple[int, float]:
        if limit is None:
            limit = self._settings.default_limit
        if min_similarity is None:
            min_similarity = self._settings.default_min_similarity

        if limit < 1:
            raise ValidationError("limit must be at least 1", details={"limit": limit})
        if not 0.0 <= min_similarity <= 1.0:
            raise ValidationError(
                "min_similarity must be between 0 and 1",
                details={"min_similarity": min_similarity},
            )
        return limit, min_similarity

    async def _load_reference_vector(self, entity_id: str) -> list[float]:
        record = await self._embedding_store.get(entity_id)
        if record is None:
            raise EntityNotFoundError(
                f"No embedding found for entity {entity_id}",
                code=ErrorCode.EMBEDDING_NOT_FOUND,
                details={"entity_id": entity_id},
            )

        if record.status != EmbeddingStatus.GENERATED:
            raise EmbeddingNotReadyError(
                f"Embedding for entity {entity_id} is not generated "
                f"(status: {record.status.value})",
                details={"entity_id": entity_id, "status": record.status.value},
            )

        if not record.embedding:
            raise EmbeddingNotReadyError(
                f"Embedding vector for entity {entity_id} is null or empty",
                details={"entity_id": entity_id},
            )

        return record.embedding

    async def _load_candidates(
        self,
        exclude_entity_id: str | None = None,
    ) -> list[EmbeddingRecord]:
        records = await self._embedding_store.get_all_by_status(EmbeddingStatus.GENERATED)
        candidates = [
            r for r in records if r.embedding and r.entity_id != exclude_entity_id
        ]
        logger.debug(f"Comparing against {len(candidates)} embeddings")
        return candidates

    async def _search(
        self,
        reference: list[float],
        candidates: list[EmbeddingRecord],
        *,
        limit: int,
        min_similarity: float,
        include_entities: bool,
        attribute_filters: FilterGroup | None,
        metadata_filters: dict[str, Any] | None,
        requesting_user_id: str | None,
        enforce_privacy: bool,
        start: float,
    ) -> SearchResponse:
        has_filters = _has_attribute_filters(attribute_filters) or bool(metadata_filters)
        candidate_limit = (
            limit * self._settings.filter_overfetch_factor if has_filters else limit
        )

        ranked = self._ranker.rank(
            reference,
            candidates,
            min_similarity,
            limit=candidate_limit,
        )

        loaded: dict[str, Entity] = {}
        if has_filters:
            matches = await self._apply_filters(
                ranked,
                attribute_filters=attribute_filters,
                metadata_filters=metadata_filters,
                requesting_user_id=requesting_user_id,
                enforce_privacy=enforce_privacy,
                limit=limit,
                loaded=loaded,
            )
        else:
            matches = [
                EntityMatch(
                    entity_id=c.entity_id,
                    similarity_score=c.score,
                    embedding_dimensions=c.dimensions,
                )
                for c in ranked[:limit]
            ]

        if include_entities:
            await self._populate_entities(matches, loaded)

        return SearchResponse(
            matches=matches,
            total_matches=len(matches),
            metadata=SearchMetadata(
                searched_at=datetime.now(UTC),
                total_candidates_scanned=len(candidates),
                min_similarity=min_similarity,
                requested_limit=limit,
                duration_ms=int((time.perf_counter() - start) * 1000),
            ),
        )

    async def _apply_filters(
        self,
        ranked: list[RankedCandidate],
        *,
        attribute_filters: FilterGroup | None,
        metadata_filters: dict[str, Any] | None,
        requesting_user_id: str | None,
        enforce_privacy: bool,
        limit: int,
        loaded: dict[str, Entity],
    ) -> list[EntityMatch]:
        """Filter ranked candidates in order until ``limit`` survive."""
        logger.debug(
            f"Applying filters to {len(ranked)} candidates",
            extra={"limit": limit, "enforce_privacy": enforce_privacy},
        )

        filtered: list[EntityMatch] = []
        evaluated = 0

        for candidate in ranked:
            evaluated += 1
            try:
                match = await self._evaluate_candidate(
                    candidate,
                    attribute_filters=attribute_filters,
                    metadata_filters=metadata_filters,
                    requesting_user_id=requesting_user_id,
                    enforce_privacy=enforce_privacy,
                    loaded=loaded,
                )
            except CandidateEvaluationError as e:
                track_candidate_failure()
                logger.error(
                    e.message,
                    exc_info=True,
                    extra={"error_code": e.code.value, **e.details},
                )
                continue

            if match is None:
                continue

            filtered.append(match)
            if len(filtered) >= limit:
                break

        logger.info(
            f"Filtering complete: {len(filtered)} matches from {evaluated} "
            f"candidates (out of {len(ranked)} total)"
        )
        track_filter_attrition(evaluated, len(filtered))
        return filtered

    async def _evaluate_candidate(
        self,
        candidate: RankedCandidate,
        *,
        attribute_filters: FilterGroup | None,
        metadata_filters: dict[str, Any] | None,
        requesting_user_id: str | None,
        enforce_privacy: bool,
        loaded: dict[str, Entity],
    ) -> EntityMatch | None:
        """Load and filter one candidate.

        Returns:
            The match, or None if the candidate was filtered out.

        Raises:
            CandidateEvaluationError: If loading or filtering failed.
        """
        entity_id = candidate.entity_id
        try:
            entity = await self._entity_store.get(entity_id)
            if entity is None:
                logger.warning(
                    f"Entity {entity_id} not found during filtering",
                    extra={"entity_id": entity_id},
                )
                return None
            loaded[entity_id] = entity

            if not entity.is_searchable:
                logger.debug(f"Entity {entity_id} is not searchable")
                return None

            matched_attributes: dict[str, Any] | None = None
            if _has_attribute_filters(attribute_filters):
                if not self._filter_engine.evaluate_filters(
                    entity, attribute_filters, requesting_user_id, enforce_privacy
                ):
                    logger.debug(f"Entity {entity_id} did not match attribute filters")
                    return None
                matched_attributes = self._filter_engine.get_matched_attributes(
                    entity, attribute_filters, requesting_user_id, enforce_privacy
                )

            if metadata_filters and not matches_metadata_filters(
                entity.metadata, metadata_filters
            ):
                logger.debug(f"Entity {entity_id} did not match metadata filters")
                return None

        except Exception as e:
            raise CandidateEvaluationError(
                f"Error evaluating filters for entity {entity_id}: {e}",
                details={"entity_id": entity_id},
            ) from e

        logger.debug(
            f"Entity {entity_id} matched all filters",
            extra={
                "similarity": round(candidate.score, 4),
                "matched_attributes": len(matched_attributes or {}),
            },
        )
        return EntityMatch(
            entity_id=entity_id,
            similarity_score=candidate.score,
            matched_attributes=matched_attributes,
            entity_name=entity.name,
            entity_last_modified=entity.last_modified,
            embedding_dimensions=candidate.dimensions,
        )

    async def _populate_entities(
        self,
        matches: list[EntityMatch],
        loaded: dict[str, Entity],
    ) -> None:
        """Attach full entities; a failed load leaves the match as is."""
        for match in matches:
            try:
                entity = loaded.get(match.entity_id)
                if entity is None:
                    entity = await self._entity_store.get(match.entity_id)
                if entity is None:
                    continue
                match.entity = entity
                match.entity_name = entity.name
                match.entity_last_modified = entity.last_modified
            except Exception:
                logger.warning(
                    f"Could not load entity {match.entity_id} for match",
                    exc_info=True,
                )


def _has_attribute_filters(attribute_filters: FilterGroup | None) -> bool:
    return attribute_filters is not None and attribute_filters.has_filters
