"""Dotted field path resolution over an entity's field namespace."""

from collections.abc import Mapping
from typing import Any, Final

from entity_matching.entities.models import Entity


class _Absent:
    """Marker for a path that does not resolve."""

    _instance: "_Absent | None" = None

    def __new__(cls) -> "_Absent":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ABSENT"

    def __bool__(self) -> bool:
        return False


ABSENT: Final = _Absent()


def _lookup(mapping: Mapping[str, Any], segment: str) -> Any:
    if segment in mapping:
        return mapping[segment]
    folded = segment.casefold()
    for key, value in mapping.items():
        if isinstance(key, str) and key.casefold() == folded:
            return value
    return ABSENT


class FieldAccessor:
    """Resolves dotted paths such as ``naturePreferences.hasPets``.

    Each segment is matched case-insensitively against map keys. A missing
    segment, or a segment applied to a non-map value, yields ABSENT.
    """

    def resolve(self, source: Entity | Mapping[str, Any], field_path: str) -> Any:
        if not field_path or not field_path.strip():
            return ABSENT

        current: Any = (
            source.field_namespace() if isinstance(source, Entity) else source
        )
        for segment in field_path.split("."):
            if not isinstance(current, Mapping):
                return ABSENT
            current = _lookup(current, segment.strip())
            if current is ABSENT:
                return ABSENT
        return current
