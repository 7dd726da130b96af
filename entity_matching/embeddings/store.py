"""Embedding store interface, in-memory and Qdrant implementations."""

from abc import ABC, abstractmethod
from typing import Any
from uuid import NAMESPACE_URL, uuid5

from qdrant_client import AsyncQdrantClient
from qdrant_client.models import (
    Distance,
    FieldCondition,
    Filter,
    MatchValue,
    PointIdsList,
    PointStruct,
    VectorParams,
)

from entity_matching.config import QdrantSettings, get_settings
from entity_matching.embeddings.models import EmbeddingRecord, EmbeddingStatus
from entity_matching.exceptions import EmbeddingStoreError, ErrorCode
from entity_matching.logging_config import get_logger

logger = get_logger(__name__)


class EmbeddingStore(ABC):
    """Abstract base class for embedding storage.

    Search only reads; writes belong to the embedding pipeline.
    """

    @abstractmethod
    async def get(self, entity_id: str) -> EmbeddingRecord | None:
        """Load the embedding record for an entity.

        Args:
            entity_id: Entity identifier.

        Returns:
            The record, or None if the entity has no embedding.

        Raises:
            EmbeddingStoreError: If the lookup fails.
        """
        ...

    @abstractmethod
    async def get_all_by_status(
        self,
        status: EmbeddingStatus,
        limit: int | None = None,
    ) -> list[EmbeddingRecord]:
        """Load records with the given status.

        Args:
            status: Status to select.
            limit: Maximum records, None for all.

        Returns:
            Matching records.

        Raises:
            EmbeddingStoreError: If the scan fails.
        """
        ...

    @abstractmethod
    async def upsert(self, record: EmbeddingRecord) -> EmbeddingRecord:
        """Insert or replace a record.

        Raises:
            EmbeddingStoreError: If the write fails.
        """
        ...

    @abstractmethod
    async def delete(self, entity_id: str) -> bool:
        """Delete the record for an entity.

        Returns:
            True if a record was removed.
        """
        ...


class InMemoryEmbeddingStore(EmbeddingStore):
    """Dictionary-backed embedding store for tests and local runs."""

    def __init__(self, records: list[EmbeddingRecord] | None = None) -> None:
        self._records: dict[str, EmbeddingRecord] = {}
        for record in records or []:
            self._records[record.entity_id] = record

    async def get(self, entity_id: str) -> EmbeddingRecord | None:
        return self._records.get(entity_id)

    async def get_all_by_status(
        self,
        status: EmbeddingStatus,
        limit: int | None = None,
    ) -> list[EmbeddingRecord]:
        matching = [r for r in self._records.values() if r.status == status]
        return matching if limit is None else matching[:limit]

    async def upsert(self, record: EmbeddingRecord) -> EmbeddingRecord:
        self._records[record.entity_id] = record
        return record

    async def delete(self, entity_id: str) -> bool:
        return self._records.pop(entity_id, None) is not None


class QdrantEmbeddingStore(EmbeddingStore):
    """Embedding store backed by a Qdrant collection.

    Each record is one point. The vector is stored under a named vector so
    records that are still pending can be kept without one; the remaining
    fields live in the payload.
    """

    VECTOR_NAME = "embedding"

    def __init__(
        self,
        settings: QdrantSettings | None = None,
        client: AsyncQdrantClient | None = None,
    ) -> None:
        """Initialize Qdrant embedding store.

        Args:
            settings: Qdrant configuration.
            client: Existing client (for testing).
        """
        self._settings = settings or get_settings().qdrant
        self._client = client
        self._owns_client = client is None

    @property
    def collection(self) -> str:
        return self._settings.collection_name

    async def _get_client(self) -> AsyncQdrantClient:
        """Get or create Qdrant client."""
        if self._client is None:
            api_key = None
            if self._settings.api_key:
                api_key = self._settings.api_key.get_secret_value()

            self._client = AsyncQdrantClient(
                url=self._settings.url,
                api_key=api_key,
            )
        return self._client

    async def close(self) -> None:
        """Close the Qdrant client."""
        if self._owns_client and self._client is not None:
            await self._client.close()
            self._client = None

    @staticmethod
    def point_id(entity_id: str) -> str:
        """Qdrant only accepts UUIDs or integers as point IDs."""
        return str(uuid5(NAMESPACE_URL, EmbeddingRecord.generate_id(entity_id)))

    async def ensure_collection(self, dimensions: int) -> None:
        """Create the collection if it does not exist yet."""
        client = await self._get_client()

        try:
            if await client.collection_exists(self.collection):
                return

            await client.create_collection(
                collection_name=self.collection,
                vectors_config={
                    self.VECTOR_NAME: VectorParams(
                        size=dimensions,
                        distance=Distance.COSINE,
                    )
                },
            )
            logger.info(
                f"Created collection: {self.collection}",
                extra={"dimensions": dimensions},
            )

        except Exception as e:
            raise EmbeddingStoreError(
                f"Failed to create collection: {e}",
                code=ErrorCode.EMBEDDING_STORE_ERROR,
                details={"collection": self.collection, "error": str(e)},
            ) from e

    def _to_record(self, point: Any) -> EmbeddingRecord:
        """Convert a Qdrant point back into a record."""
        vector = point.vector
        if isinstance(vector, dict):
            vector = vector.get(self.VECTOR_NAME)
        payload = dict(point.payload or {})
        payload["embedding"] = list(vector) if vector else None
        return EmbeddingRecord.model_validate(payload)

    async def get(self, entity_id: str) -> EmbeddingRecord | None:
        """Retrieve a record by entity ID."""
        client = await self._get_client()

        try:
            points = await client.retrieve(
                collection_name=self.collection,
                ids=[self.point_id(entity_id)],
                with_payload=True,
                with_vectors=True,
            )
        except Exception as e:
            raise EmbeddingStoreError(
                f"Failed to get embedding: {e}",
                code=ErrorCode.EMBEDDING_STORE_ERROR,
                details={"entity_id": entity_id, "error": str(e)},
            ) from e

        if not points:
            return None
        return self._to_record(points[0])

    async def get_all_by_status(
        self,
        status: EmbeddingStatus,
        limit: int | None = None,
    ) -> list[EmbeddingRecord]:
        """Scroll through every point with the given status."""
        client = await self._get_client()
        status_filter = Filter(
            must=[FieldCondition(key="status", match=MatchValue(value=status.value))]
        )

        records: list[EmbeddingRecord] = []
        offset: Any = None

        try:
            while True:
                page_size = self._settings.scroll_batch_size
                if limit is not None:
                    page_size = min(page_size, limit - len(records))

                points, offset = await client.scroll(
                    collection_name=self.collection,
                    scroll_filter=status_filter,
                    limit=page_size,
                    offset=offset,
                    with_payload=True,
                    with_vectors=True,
                )
                records.extend(self._to_record(point) for point in points)

                if offset is None or (limit is not None and len(records) >= limit):
                    break

        except Exception as e:
            raise EmbeddingStoreError(
                f"Failed to scan embeddings: {e}",
                code=ErrorCode.EMBEDDING_STORE_ERROR,
                details={"status": status.value, "error": str(e)},
            ) from e

        logger.debug(
            f"Loaded {len(records)} embeddings",
            extra={"collection": self.collection, "status": status.value},
        )
        return records

    async def upsert(self, record: EmbeddingRecord) -> EmbeddingRecord:
        """Upsert a record as a single point."""
        client = await self._get_client()

        vector: dict[str, list[float]] = {}
        if record.embedding:
            vector[self.VECTOR_NAME] = record.embedding

        try:
            await client.upsert(
                collection_name=self.collection,
                points=[
                    PointStruct(
                        id=self.point_id(record.entity_id),
                        vector=vector,
                        payload=record.model_dump(mode="json", exclude={"embedding"}),
                    )
                ],
            )
        except Exception as e:
            raise EmbeddingStoreError(
                f"Failed to upsert embedding: {e}",
                code=ErrorCode.EMBEDDING_STORE_ERROR,
                details={"entity_id": record.entity_id, "error": str(e)},
            ) from e

        logger.info(
            "Upserted embedding",
            extra={"entity_id": record.entity_id, "status": record.status.value},
        )
        return record

    async def delete(self, entity_id: str) -> bool:
        """Delete the point for an entity."""
        client = await self._get_client()

        try:
            await client.delete(
                collection_name=self.collection,
                points_selector=PointIdsList(points=[self.point_id(entity_id)]),
            )
        except Exception as e:
            raise EmbeddingStoreError(
                f"Failed to delete embedding: {e}",
                code=ErrorCode.EMBEDDING_STORE_ERROR,
                details={"entity_id": entity_id, "error": str(e)},
            ) from e

        logger.debug("Deleted embedding", extra={"entity_id": entity_id})
        return True
