"""Search result data models."""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

from entity_matching.entities.models import Entity, EntityType


class EntityMatch(BaseModel):
    """One ranked search result.

    Attributes:
        entity_id: Matched entity.
        similarity_score: Cosine similarity to the reference, in [0, 1].
        entity: Full entity when hydration was requested.
        matched_attributes: Visible values of the filtered fields.
        entity_name: Display name, when the entity was loaded.
        entity_last_modified: Entity timestamp, when the entity was loaded.
        embedding_dimensions: Length of the matched embedding.
    """

    entity_id: str = Field(description="Matched entity ID")
    similarity_score: float = Field(ge=0.0, le=1.0, description="Cosine similarity")
    entity: Entity | None = Field(default=None, description="Hydrated entity")
    matched_attributes: dict[str, Any] | None = Field(
        default=None,
        description="Filtered field values visible to the requester",
    )
    entity_name: str = Field(default="", description="Entity display name")
    entity_last_modified: datetime | None = Field(default=None)
    embedding_dimensions: int | None = Field(default=None)


class SearchMetadata(BaseModel):
    """Diagnostics for a similarity search."""

    searched_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    total_candidates_scanned: int = Field(default=0, description="Embeddings compared")
    min_similarity: float = Field(description="Similarity threshold used")
    requested_limit: int = Field(description="Requested page size")
    duration_ms: int = Field(default=0, description="Search duration in milliseconds")


class SearchResponse(BaseModel):
    """Result of a similarity search."""

    matches: list[EntityMatch] = Field(default_factory=list)
    total_matches: int = Field(default=0)
    metadata: SearchMetadata


class MutualMatch(BaseModel):
    """A pair of entities that each rank the other above the threshold.

    Attributes:
        entity_a_id: Origin entity.
        entity_b_id: Candidate that matched back.
        forward_score: Similarity of B in A's search.
        reverse_score: Similarity of A in B's search.
        mutual_score: Mean of the two scores.
        matched_attributes: Carried over from the forward search.
    """

    entity_a_id: str
    entity_b_id: str
    entity_a_type: EntityType | None = None
    entity_b_type: EntityType | None = None
    entity_a_name: str = ""
    entity_b_name: str = ""
    forward_score: float = Field(ge=0.0, le=1.0)
    reverse_score: float = Field(ge=0.0, le=1.0)
    mutual_score: float = Field(ge=0.0, le=1.0)
    match_type: str = "Mutual"
    detected_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    matched_attributes: dict[str, Any] | None = None


class MutualMatchMetadata(BaseModel):
    """Diagnostics for a mutual-match search."""

    searched_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    target_entity_type: EntityType | None = None
    candidates_evaluated: int = Field(default=0, description="Forward candidates")
    reverse_lookups: int = Field(default=0, description="Reverse searches issued")
    duration_ms: int = Field(default=0)
    min_similarity: float


class MutualMatchResult(BaseModel):
    """Result of a mutual-match search."""

    matches: list[MutualMatch] = Field(default_factory=list)
    total_mutual_matches: int = Field(default=0)
    metadata: MutualMatchMetadata
