"""Application configuration using Pydantic Settings.

All configuration is loaded from environment variables.
No secrets are hardcoded.
"""

from enum import Enum
from functools import lru_cache

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Application environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class EmbeddingSettings(BaseSettings):
    """Embedding provider configuration.

    Targets any OpenAI-compatible ``/embeddings`` endpoint.
    """

    model_config = SettingsConfigDict(env_prefix="EMBEDDING_")

    base_url: str = Field(
        default="https://api.openai.com/v1",
        description="Embedding service base URL",
    )
    model: str = Field(
        default="text-embedding-3-small",
        description="Embedding model name",
    )
    api_key: SecretStr | None = Field(
        default=None,
        description="API key (optional for local servers)",
    )
    timeout: float = Field(
        default=60.0,
        description="Request timeout in seconds",
    )
    batch_size: int = Field(
        default=32,
        description="Batch size for embedding requests",
    )


class QdrantSettings(BaseSettings):
    """Qdrant configuration for the embedding store."""

    model_config = SettingsConfigDict(env_prefix="QDRANT_")

    url: str = Field(
        default="http://localhost:6333",
        description="Qdrant server URL",
    )
    api_key: SecretStr | None = Field(
        default=None,
        description="Qdrant API key (optional for local)",
    )
    collection_name: str = Field(
        default="entity_embeddings",
        description="Collection holding entity embeddings",
    )
    scroll_batch_size: int = Field(
        default=256,
        description="Page size used when scanning the collection",
    )


class SearchSettings(BaseSettings):
    """Similarity search and mutual matching configuration."""

    model_config = SettingsConfigDict(env_prefix="SEARCH_")

    default_limit: int = Field(
        default=10,
        ge=1,
        description="Default page size for similarity search",
    )
    default_min_similarity: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Default minimum cosine similarity",
    )
    filter_overfetch_factor: int = Field(
        default=2,
        ge=1,
        description="Ranked candidates fetched per requested result when filters are active",
    )
    mutual_overfetch_factor: int = Field(
        default=3,
        ge=1,
        description="Forward candidates fetched per requested mutual match",
    )
    mutual_reverse_lookup_limit: int = Field(
        default=100,
        ge=1,
        description="Result window searched for the origin during reverse lookups",
    )
    mutual_default_min_similarity: float = Field(
        default=0.8,
        ge=0.0,
        le=1.0,
        description="Default threshold applied to both legs of a mutual match",
    )
    mutual_default_limit: int = Field(
        default=50,
        ge=1,
        description="Default number of mutual matches returned",
    )
    mutual_max_concurrency: int = Field(
        default=16,
        ge=1,
        description="Maximum reverse lookups in flight at once",
    )
    request_timeout_seconds: float = Field(
        default=30.0,
        gt=0.0,
        description="Deadline for a mutual match request",
    )


class Settings(BaseSettings):
    """Main application settings.

    Aggregates all configuration sections.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application settings
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Application environment",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )

    # Nested settings
    embedding: EmbeddingSettings = Field(default_factory=EmbeddingSettings)
    qdrant: QdrantSettings = Field(default_factory=QdrantSettings)
    search: SearchSettings = Field(default_factory=SearchSettings)


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()
