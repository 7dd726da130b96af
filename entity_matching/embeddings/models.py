"""Embedding data models."""

import base64
import hashlib
from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field


class EmbeddingResult(BaseModel):
    """Result of an embedding operation.

    Attributes:
        text: The original text that was embedded.
        embedding: The embedding vector.
        model: The model used to generate the embedding.
        dimensions: Number of dimensions in the embedding.
    """

    text: str = Field(description="Original text")
    embedding: list[float] = Field(description="Embedding vector")
    model: str = Field(description="Model used for embedding")
    dimensions: int = Field(description="Vector dimensions")

    def model_post_init(self, __context: object) -> None:
        """Validate dimensions match embedding length."""
        if self.dimensions != len(self.embedding):
            raise ValueError(
                f"dimensions ({self.dimensions}) does not match "
                f"embedding length ({len(self.embedding)})"
            )


class EmbeddingStatus(str, Enum):
    """Generation status of an entity embedding."""

    PENDING = "Pending"
    GENERATED = "Generated"
    FAILED = "Failed"


class EmbeddingRecord(BaseModel):
    """Stored embedding for one entity.

    Only records with status GENERATED and a non-empty vector take part
    in ranking.

    Attributes:
        id: Record identifier, ``embedding_<entity_id>``.
        entity_id: Owning entity.
        embedding: The vector, None until generated.
        embedding_model: Model that produced the vector.
        generated_at: When the vector was produced.
        entity_last_modified: Entity timestamp the vector reflects.
        entity_summary: Text that was embedded.
        summary_hash: Hash of ``entity_summary``.
        dimensions: Declared vector length.
        status: Generation status.
        error_message: Last generation error.
        retry_count: Generation attempts that failed.
    """

    id: str = Field(default="", description="Record identifier")
    entity_id: str = Field(description="Entity identifier")
    embedding: list[float] | None = Field(default=None, description="Embedding vector")
    embedding_model: str | None = Field(default=None, description="Model name")
    generated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    entity_last_modified: datetime = Field(default_factory=lambda: datetime.now(UTC))
    entity_summary: str = Field(default="", description="Embedded summary text")
    summary_hash: str = Field(default="", description="Summary hash")
    dimensions: int | None = Field(default=None, description="Vector dimensions")
    status: EmbeddingStatus = Field(default=EmbeddingStatus.PENDING)
    error_message: str | None = Field(default=None, description="Last error")
    retry_count: int = Field(default=0, ge=0, description="Failed attempts")

    def model_post_init(self, __context: object) -> None:
        """Fill derived identifiers."""
        if not self.id:
            self.id = self.generate_id(self.entity_id)
        if self.dimensions is None and self.embedding:
            self.dimensions = len(self.embedding)

    @staticmethod
    def generate_id(entity_id: str) -> str:
        return f"embedding_{entity_id}"

    @staticmethod
    def compute_hash(text: str) -> str:
        """SHA-256 of the text, base64 encoded."""
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        return base64.b64encode(digest).decode("ascii")

    @property
    def is_ready(self) -> bool:
        """Whether the record can take part in ranking."""
        return self.status == EmbeddingStatus.GENERATED and bool(self.embedding)

    def needs_regeneration(self, entity_last_modified: datetime) -> bool:
        return entity_last_modified > self.entity_last_modified

    def summary_changed(self, new_summary: str) -> bool:
        return self.compute_hash(new_summary) != self.summary_hash
