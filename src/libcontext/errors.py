"""Exception hierarchy shared by the store, providers, and retrieval engine."""

from __future__ import annotations


class LibContextError(Exception):
    """Base class for all libcontext errors."""


class ConfigError(LibContextError, ValueError):
    """Raised when configuration is invalid or credentials are missing."""


class InvalidLibraryIdError(LibContextError, ValueError):
    """Raised when a library id is not of the form /org/project[/version]."""


class EmbeddingDimensionError(LibContextError, ValueError):
    """Raised when embeddings of different lengths would mix in one library."""


class IngestError(LibContextError):
    """Raised when an ingest transaction fails and has been rolled back."""


# ---------------------------------------------------------------------------
# Embedding providers
# ---------------------------------------------------------------------------


class EmbeddingError(LibContextError):
    """Embedding call failed."""


class EmbeddingAuthenticationError(EmbeddingError):
    """Credentials were rejected; aborts the whole batch."""


# ---------------------------------------------------------------------------
# Reranking providers
# ---------------------------------------------------------------------------


class RerankError(LibContextError):
    """Reranking call failed.

    Attributes:
        provider: Short provider name (e.g. ``"cohere"``).
        status_code: HTTP status of the last response, or None for transport
            failures and local errors.
        attempts: Number of requests made before giving up.
    """

    retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        provider: str = "",
        status_code: int | None = None,
        attempts: int = 0,
    ) -> None:
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code
        self.attempts = attempts


class RerankAuthenticationError(RerankError):
    """HTTP 401. Never retried."""


class RerankClientError(RerankError):
    """Other 4xx. Never retried; the message comes from the provider."""


class RerankRateLimitError(RerankError):
    """HTTP 429 on every attempt."""

    retryable = True


class RerankServerError(RerankError):
    """HTTP 5xx on every attempt."""

    retryable = True


class RerankNetworkError(RerankError):
    """Transport failure on every attempt."""

    retryable = True


class RerankDeadlineError(RerankError):
    """Caller deadline passed before the next attempt could start."""
