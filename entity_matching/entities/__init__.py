"""Entity and field privacy module."""

from entity_matching.entities.models import (
    Entity,
    EntityType,
    FieldVisibility,
    FieldVisibilitySettings,
    PrivacyGate,
)
from entity_matching.entities.store import EntityStore, InMemoryEntityStore

__all__ = [
    "Entity",
    "EntityStore",
    "EntityType",
    "FieldVisibility",
    "FieldVisibilitySettings",
    "InMemoryEntityStore",
    "PrivacyGate",
]
