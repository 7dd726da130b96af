"""Entity store interface and in-memory implementation."""

from abc import ABC, abstractmethod

from entity_matching.entities.models import Entity
from entity_matching.logging_config import get_logger

logger = get_logger(__name__)


class EntityStore(ABC):
    """Abstract base class for entity storage.

    Search only reads through this interface.
    """

    @abstractmethod
    async def get(self, entity_id: str) -> Entity | None:
        """Load an entity.

        Args:
            entity_id: Entity identifier.

        Returns:
            The entity, or None if it does not exist.
        """
        ...


class InMemoryEntityStore(EntityStore):
    """Dictionary-backed entity store for tests and local runs."""

    def __init__(self, entities: list[Entity] | None = None) -> None:
        self._entities: dict[str, Entity] = {}
        for entity in entities or []:
            self.upsert(entity)

    def upsert(self, entity: Entity) -> None:
        self._entities[entity.id] = entity

    def delete(self, entity_id: str) -> bool:
        return self._entities.pop(entity_id, None) is not None

    async def get(self, entity_id: str) -> Entity | None:
        entity = self._entities.get(entity_id)
        if entity is None:
            logger.debug("Entity not found", extra={"entity_id": entity_id})
        return entity

    def __len__(self) -> int:
        return len(self._entities)
