"""Entity data models and field-level privacy."""

from datetime import UTC, datetime
from enum import Enum
from typing import Any, Protocol, runtime_checkable
from uuid import uuid4

from pydantic import BaseModel, Field


class EntityType(str, Enum):
    """Kinds of entity that can be matched."""

    PERSON = "Person"
    JOB = "Job"
    PROPERTY = "Property"
    PRODUCT = "Product"
    SERVICE = "Service"
    EVENT = "Event"
    MAJOR = "Major"
    CAREER = "Career"


class FieldVisibility(str, Enum):
    """Who may see a field."""

    PRIVATE = "Private"
    PUBLIC = "Public"
    # Owner-only until a friendship relation exists.
    FRIENDS_ONLY = "FriendsOnly"


def _canonical_segments(field_path: str) -> list[str]:
    """Casefolded path segments with the ``attributes.`` alias removed."""
    if not field_path or not field_path.strip():
        return []
    segments = [segment.strip().casefold() for segment in field_path.split(".")]
    if len(segments) > 1 and segments[0] == "attributes":
        segments = segments[1:]
    return segments


class FieldVisibilitySettings(BaseModel):
    """Per-field visibility map with a fallback default.

    Attributes:
        field_visibility: Visibility keyed by dotted field path.
        default_visibility: Used for paths without an explicit entry.
    """

    field_visibility: dict[str, FieldVisibility] = Field(
        default_factory=dict,
        description="Visibility per field path",
    )
    default_visibility: FieldVisibility = Field(
        default=FieldVisibility.PRIVATE,
        description="Visibility for fields without an explicit setting",
    )

    def get_field_visibility(self, field_path: str) -> FieldVisibility:
        """Get the effective visibility for a field path.

        Paths are matched the way filters resolve them: case-insensitively,
        with a leading ``attributes.`` segment ignored. A path without its
        own setting inherits the setting of its closest configured parent,
        so ``contactInformation.email`` follows ``contactInformation``.
        """
        segments = _canonical_segments(field_path)
        if not segments:
            return self.default_visibility

        explicit = {
            tuple(_canonical_segments(path)): visibility
            for path, visibility in self.field_visibility.items()
        }
        for end in range(len(segments), 0, -1):
            visibility = explicit.get(tuple(segments[:end]))
            if visibility is not None:
                return visibility
        return self.default_visibility

    def set_field_visibility(self, field_path: str, visibility: FieldVisibility) -> None:
        """Set visibility for a single field path. Blank paths are ignored."""
        if not field_path or not field_path.strip():
            return
        self.field_visibility[field_path] = visibility

    def set_bulk_visibility(self, visibility_map: dict[str, FieldVisibility]) -> None:
        """Set visibility for several field paths at once."""
        for field_path, visibility in visibility_map.items():
            self.set_field_visibility(field_path, visibility)

    def remove_field_visibility(self, field_path: str) -> None:
        """Drop an explicit setting so the default applies again."""
        self.field_visibility.pop(field_path, None)

    def has_explicit_visibility(self, field_path: str) -> bool:
        return bool(field_path) and field_path in self.field_visibility

    def public_fields(self) -> list[str]:
        return [
            path
            for path, visibility in self.field_visibility.items()
            if visibility == FieldVisibility.PUBLIC
        ]

    def private_fields(self) -> list[str]:
        return [
            path
            for path, visibility in self.field_visibility.items()
            if visibility == FieldVisibility.PRIVATE
        ]


@runtime_checkable
class PrivacyGate(Protocol):
    """Decides whether a requester may see a field."""

    def is_field_visible_to_user(
        self,
        field_path: str,
        requesting_user_id: str | None,
    ) -> bool:
        ...


class Entity(BaseModel):
    """A matchable entity (person, job, listing, ...).

    Owned by the storage layer; search treats it as read-only input.

    Attributes:
        id: Entity identifier.
        entity_type: Kind of entity.
        name: Display name.
        description: Free-text description.
        attributes: Free-form structured attributes (nested maps allowed).
        metadata: Free-form metadata used by metadata filters.
        privacy_settings: Field-level visibility.
        is_searchable: Whether the entity may appear in filtered search.
        owned_by_user_id: Owner, the only requester who sees private fields.
        created_at: Creation timestamp.
        last_modified: Last modification timestamp.
    """

    id: str = Field(default_factory=lambda: str(uuid4()), description="Entity ID")
    entity_type: EntityType = Field(default=EntityType.PERSON, description="Entity kind")
    external_id: str | None = Field(default=None, description="ID in the source system")
    external_source: str | None = Field(default=None, description="Source system name")
    name: str = Field(default="", description="Display name")
    description: str = Field(default="", description="Free-text description")
    attributes: dict[str, Any] = Field(
        default_factory=dict,
        description="Structured attributes",
    )
    metadata: dict[str, Any] | None = Field(default=None, description="Metadata map")
    privacy_settings: FieldVisibilitySettings = Field(
        default_factory=FieldVisibilitySettings,
        description="Field-level visibility",
    )
    is_searchable: bool = Field(default=True, description="Searchable flag")
    owned_by_user_id: str | None = Field(default=None, description="Owning user")
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    last_modified: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def is_field_visible_to_user(
        self,
        field_path: str,
        requesting_user_id: str | None,
    ) -> bool:
        """Check whether a field may be seen by the requesting user.

        Non-searchable entities expose nothing. Public fields are visible to
        everyone; private and friends-only fields only to the owner. Unknown
        visibility levels are treated as not visible.

        Args:
            field_path: Dotted field path.
            requesting_user_id: Requesting user, None for anonymous.

        Returns:
            True if the field is visible.
        """
        if not self.is_searchable:
            return False

        visibility = self.privacy_settings.get_field_visibility(field_path)

        if visibility == FieldVisibility.PUBLIC:
            return True
        if visibility in (FieldVisibility.PRIVATE, FieldVisibility.FRIENDS_ONLY):
            return self._is_owner(requesting_user_id)
        return False

    def any_field_visible_to_user(
        self,
        field_paths: list[str],
        requesting_user_id: str | None,
    ) -> bool:
        return any(
            self.is_field_visible_to_user(path, requesting_user_id)
            for path in field_paths
        )

    def _is_owner(self, requesting_user_id: str | None) -> bool:
        return (
            bool(requesting_user_id)
            and bool(self.owned_by_user_id)
            and requesting_user_id == self.owned_by_user_id
        )

    def field_namespace(self) -> dict[str, Any]:
        """Build the map that filter field paths are resolved against.

        Core fields use their camelCase names. Attribute keys are promoted to
        the top level so ``naturePreferences.hasPets`` resolves directly, and
        remain reachable under ``attributes.``. Core fields win on collision.
        """
        namespace: dict[str, Any] = dict(self.attributes)
        namespace.update(
            {
                "id": self.id,
                "entityType": self.entity_type.value,
                "externalId": self.external_id,
                "externalSource": self.external_source,
                "name": self.name,
                "description": self.description,
                "attributes": self.attributes,
                "metadata": self.metadata,
                "isSearchable": self.is_searchable,
                "ownedByUserId": self.owned_by_user_id,
                "createdAt": self.created_at,
                "lastModified": self.last_modified,
            }
        )
        return namespace
