"""Application exception hierarchy.

All custom exceptions inherit from EntityMatchingError.
Each exception has an error code for structured error handling.
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Error codes for structured error handling."""

    # General errors (1xxx)
    INTERNAL_ERROR = "EM-1000"
    CONFIGURATION_ERROR = "EM-1001"
    VALIDATION_ERROR = "EM-1002"

    # Entity errors (2xxx)
    ENTITY_NOT_FOUND = "EM-2000"

    # Embedding errors (3xxx)
    EMBEDDING_SERVICE_ERROR = "EM-3000"
    EMBEDDING_NOT_READY = "EM-3001"
    EMBEDDING_NOT_FOUND = "EM-3002"

    # Filter errors (4xxx)
    FILTER_ERROR = "EM-4000"
    INVALID_COMPARISON = "EM-4001"

    # Search errors (5xxx)
    SEARCH_ERROR = "EM-5000"
    CANDIDATE_EVALUATION_FAILED = "EM-5001"
    REVERSE_LOOKUP_FAILED = "EM-5002"
    SEARCH_TIMEOUT = "EM-5003"

    # Storage errors (6xxx)
    EMBEDDING_STORE_ERROR = "EM-6000"


class EntityMatchingError(Exception):
    """Base exception for all entity matching errors.

    Attributes:
        message: Human-readable error message.
        code: Structured error code.
        details: Additional error context.
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": {
                "code": self.code.value,
                "message": self.message,
                "details": self.details,
            }
        }


class ConfigurationError(EntityMatchingError):
    """Configuration or environment error."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.CONFIGURATION_ERROR, details)


class ValidationError(EntityMatchingError):
    """Input validation error."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.VALIDATION_ERROR, details)


class EntityNotFoundError(EntityMatchingError):
    """Reference entity or its embedding does not exist."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.ENTITY_NOT_FOUND,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class EmbeddingNotReadyError(EntityMatchingError):
    """Embedding exists but is not generated or has no vector."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.EMBEDDING_NOT_READY, details)


class EmbeddingError(EntityMatchingError):
    """Embedding provider error."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.EMBEDDING_SERVICE_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class InvalidComparisonError(EntityMatchingError):
    """Ordering operator applied to non-numeric operands.

    This is a defect in the filter definition, not a filter miss.
    """

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.INVALID_COMPARISON, details)


class SearchError(EntityMatchingError):
    """Similarity search error."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.SEARCH_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class CandidateEvaluationError(SearchError):
    """Failure while loading or filtering a single candidate."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.CANDIDATE_EVALUATION_FAILED, details)


class ReverseLookupError(SearchError):
    """Failure during one mutual-match reverse search."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.REVERSE_LOOKUP_FAILED, details)


class SearchTimeoutError(SearchError):
    """Request deadline exceeded."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.SEARCH_TIMEOUT, details)


class EmbeddingStoreError(EntityMatchingError):
    """Embedding store operation error."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.EMBEDDING_STORE_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)
