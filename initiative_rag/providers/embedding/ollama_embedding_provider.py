"""Nomic embedding provider adapter (local/free via Ollama).

Wraps the Ollama OpenAI-compatible endpoint to implement
:class:`IEmbeddingProvider` using ``nomic-embed-text`` (768 dimensions).
Used when no OpenAI key is configured.  Vectors are not comparable with
OpenAI's, so switching providers requires ``reindex --all``.
"""

from __future__ import annotations

import openai
import structlog

from initiative_rag.config.settings import Settings
from initiative_rag.interfaces.embedding_provider import IEmbeddingProvider
from initiative_rag.utils.errors import ProviderTimeoutError, RAGError

logger = structlog.get_logger(logger_name=__name__)


class OllamaEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by ``nomic-embed-text`` served via Ollama."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._base_url = settings.ollama_base_url.rstrip("/")
        self._client = openai.AsyncOpenAI(
            base_url=f"{self._base_url}/v1",
            api_key="ollama",  # Ollama ignores the key but the SDK requires one
            timeout=openai.Timeout(settings.request_timeout_seconds, connect=5.0),
        )
        self._model = "nomic-embed-text"
        self._dimension = 768

    # ------------------------------------------------------------------
    # IEmbeddingProvider implementation
    # ------------------------------------------------------------------

    async def embed(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []

        try:
            response = await self._client.embeddings.create(
                input=texts,
                model=self._model,
            )
        except openai.APITimeoutError as exc:
            raise ProviderTimeoutError(
                message="Ollama embedding request timed out",
                provider_name=self.get_provider_name(),
            ) from exc
        except openai.APIError as exc:
            raise RAGError(
                message=f"Ollama embedding API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("ollama_embedding_batch", model=self._model, batch_size=len(texts))
        return [list(item.embedding) for item in response.data]

    def get_dimension(self) -> int:
        """Return 768 (nomic-embed-text dimension)."""
        return self._dimension

    def get_provider_name(self) -> str:
        return "ollama_embedding"
