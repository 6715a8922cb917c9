"""Utility modules for initiative-rag.

- **errors** -- Exception hierarchy rooted at InitiativeRAGError; each class
  declares the HTTP status it maps to and whether a retry is safe.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
- **concurrency** -- per-key asyncio locks and the timeout wrapper applied
  to every external call.
- **text_normalizer** -- canonical whitespace normalisation for extracted
  text, plus the flat form the chunker windows over.
- **signing** -- HMAC-signed session tokens and download URLs.
"""

from initiative_rag.utils.errors import (
    AuthenticationError,
    AuthorizationError,
    ConfigurationError,
    ExtractionError,
    IndexingError,
    InitiativeRAGError,
    InputValidationError,
    LLMError,
    NotFoundError,
    ProviderTimeoutError,
    RAGError,
)
from initiative_rag.utils.text_normalizer import collapse_whitespace, normalize_text

__all__ = [
    "AuthenticationError",
    "AuthorizationError",
    "ConfigurationError",
    "ExtractionError",
    "IndexingError",
    "InitiativeRAGError",
    "InputValidationError",
    "LLMError",
    "NotFoundError",
    "ProviderTimeoutError",
    "RAGError",
    "collapse_whitespace",
    "normalize_text",
]
