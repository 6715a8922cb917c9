"""Custom exception hierarchy for initiative-rag.

All application exceptions inherit from :class:`InitiativeRAGError`, which
carries an optional ``provider_name`` so error handlers can identify which
collaborator (e.g. "openai", "sqlite_chunk_store", "local_storage") caused
the failure.

The hierarchy follows the error taxonomy of the ingestion and retrieval
pipeline:

    InitiativeRAGError  (base -- catch-all for any initiative-rag error)
    +-- InputValidationError  (missing / empty required field)       400
    +-- AuthenticationError   (no valid session)                     401
    +-- AuthorizationError    (not owner, not admin)                 403
    +-- NotFoundError         (unknown initiative / attachment)      404
    +-- ExtractionError       (attachment download / parse failure)  502
    +-- RAGError              (embedding or vector search failure)   502
    +-- IndexingError         (chunk store write failure)            500
    +-- RepositoryError       (initiative database failure)          503
    +-- LLMError              (completion API failure)               502
    +-- ProviderTimeoutError  (external call exceeded its timeout)   504
    +-- ConfigurationError    (startup / missing config)             500

Each class declares the HTTP status the API layer maps it to, and whether
the whole operation is safe to retry.  Writers are idempotent, so every
external-dependency failure is retryable.
"""


class InitiativeRAGError(Exception):
    """Base exception for all initiative-rag errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which collaborator triggered the error.
    The ``__str__`` method prefixes the provider name in brackets for
    structured log output, e.g. ``[openai_embedding] Rate limit exceeded``.
    """

    http_status: int = 500
    retryable: bool = False

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Caller errors: reported immediately, never retried
# ---------------------------------------------------------------------------

class InputValidationError(InitiativeRAGError):
    """Raised when a required field is missing, empty, or out of range."""

    http_status = 400

    def __init__(
        self,
        message: str = "Invalid input",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class AuthenticationError(InitiativeRAGError):
    """Raised when an operation requires a signed-in user and none is present."""

    http_status = 401

    def __init__(
        self,
        message: str = "Authentication required",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class AuthorizationError(InitiativeRAGError):
    """Raised when the signed-in user is neither the owner nor an admin."""

    http_status = 403

    def __init__(
        self,
        message: str = "Forbidden",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class NotFoundError(InitiativeRAGError):
    """Raised when a referenced initiative, attachment, or user does not exist."""

    http_status = 404

    def __init__(
        self,
        message: str = "Not found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# External dependency errors: surfaced with the upstream message, retryable
# ---------------------------------------------------------------------------

class ExtractionError(InitiativeRAGError):
    """Raised when an attachment cannot be downloaded or parsed.

    Fatal for that one attachment only; the index writer catches it and
    skips the attachment.
    """

    http_status = 502
    retryable = True

    def __init__(
        self,
        message: str = "Attachment extraction failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class RAGError(InitiativeRAGError):
    """Raised when an embedding request or a similarity search fails."""

    http_status = 502
    retryable = True

    def __init__(
        self,
        message: str = "RAG pipeline operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class IndexingError(InitiativeRAGError):
    """Raised when the chunk store rejects a delete or insert."""

    http_status = 500
    retryable = True

    def __init__(
        self,
        message: str = "Chunk store write failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class RepositoryError(InitiativeRAGError):
    """Raised when the initiative database cannot be read or written."""

    http_status = 503
    retryable = True

    def __init__(
        self,
        message: str = "Initiative database operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class LLMError(InitiativeRAGError):
    """Raised when the completion API call fails."""

    http_status = 502
    retryable = True

    def __init__(
        self,
        message: str = "LLM API call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ProviderTimeoutError(InitiativeRAGError):
    """Raised when an external call does not finish within its timeout."""

    http_status = 504
    retryable = True

    def __init__(
        self,
        message: str = "External call timed out",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Startup errors
# ---------------------------------------------------------------------------

class ConfigurationError(InitiativeRAGError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
