"""Pytest configuration and shared fixtures."""

from collections.abc import Callable
from typing import Any

import pytest

from entity_matching.config import SearchSettings
from entity_matching.embeddings.models import EmbeddingRecord, EmbeddingStatus
from entity_matching.embeddings.store import InMemoryEmbeddingStore
from entity_matching.entities.models import (
    Entity,
    EntityType,
    FieldVisibility,
    FieldVisibilitySettings,
)
from entity_matching.entities.store import InMemoryEntityStore


@pytest.fixture
def make_entity() -> Callable[..., Entity]:
    """Factory for entities whose fields are public unless stated otherwise.

    Returns:
        Callable building an Entity.
    """

    def _make(
        entity_id: str,
        attributes: dict[str, Any] | None = None,
        *,
        name: str | None = None,
        entity_type: EntityType = EntityType.PERSON,
        metadata: dict[str, Any] | None = None,
        private_fields: list[str] | None = None,
        default_visibility: FieldVisibility = FieldVisibility.PUBLIC,
        owner: str | None = None,
        searchable: bool = True,
    ) -> Entity:
        privacy = FieldVisibilitySettings(default_visibility=default_visibility)
        for path in private_fields or []:
            privacy.set_field_visibility(path, FieldVisibility.PRIVATE)
        return Entity(
            id=entity_id,
            name=name or entity_id.title(),
            entity_type=entity_type,
            attributes=attributes or {},
            metadata=metadata,
            privacy_settings=privacy,
            owned_by_user_id=owner,
            is_searchable=searchable,
        )

    return _make


@pytest.fixture
def make_embedding() -> Callable[..., EmbeddingRecord]:
    """Factory for generated embedding records.

    Returns:
        Callable building an EmbeddingRecord.
    """

    def _make(
        entity_id: str,
        vector: list[float] | None,
        status: EmbeddingStatus = EmbeddingStatus.GENERATED,
    ) -> EmbeddingRecord:
        return EmbeddingRecord(
            entity_id=entity_id,
            embedding=vector,
            embedding_model="test-model",
            status=status,
        )

    return _make


@pytest.fixture
def search_settings() -> SearchSettings:
    """Search settings with defaults, independent of the environment."""
    return SearchSettings(
        default_limit=10,
        default_min_similarity=0.5,
        filter_overfetch_factor=2,
        mutual_overfetch_factor=3,
        mutual_reverse_lookup_limit=100,
        mutual_default_min_similarity=0.8,
        mutual_default_limit=50,
        mutual_max_concurrency=4,
        request_timeout_seconds=5.0,
    )


@pytest.fixture
def entity_store() -> InMemoryEntityStore:
    return InMemoryEntityStore()


@pytest.fixture
def embedding_store() -> InMemoryEmbeddingStore:
    return InMemoryEmbeddingStore()
