"""Order-preserving, size-bounded embedding requests.

Splits an arbitrarily long list of chunk strings into batches of at most
``batch_size`` (64 by default) before calling the embedding provider, so no
single request exceeds upstream payload limits.  Batches run sequentially;
the first failure aborts the whole call with nothing returned.
"""

from __future__ import annotations

import structlog

from initiative_rag.interfaces.embedding_provider import IEmbeddingProvider
from initiative_rag.utils.concurrency import with_timeout
from initiative_rag.utils.errors import RAGError

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_BATCH_SIZE = 64


class EmbeddingBatcher:
    """Wraps an :class:`IEmbeddingProvider` with batching and a per-batch timeout."""

    def __init__(
        self,
        provider: IEmbeddingProvider,
        batch_size: int = DEFAULT_BATCH_SIZE,
        timeout_seconds: float | None = 25.0,
    ) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self._provider = provider
        self._batch_size = batch_size
        self._timeout = timeout_seconds

    @property
    def provider(self) -> IEmbeddingProvider:
        return self._provider

    @property
    def batch_size(self) -> int:
        return self._batch_size

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Return one vector per input string, in input order.

        Raises
        ------
        RAGError
            If any batch fails or returns the wrong number of vectors.
        ProviderTimeoutError
            If any batch exceeds the timeout.
        """
        if not texts:
            return []

        provider_name = self._provider.get_provider_name()
        vectors: list[list[float]] = []
        for start in range(0, len(texts), self._batch_size):
            batch = texts[start : start + self._batch_size]
            result = await with_timeout(
                self._provider.embed(batch),
                self._timeout,
                provider_name=provider_name,
                operation="embedding request",
            )
            if len(result) != len(batch):
                raise RAGError(
                    message=(
                        f"Embedding provider returned {len(result)} vectors "
                        f"for a batch of {len(batch)}"
                    ),
                    provider_name=provider_name,
                )
            vectors.extend(result)
            logger.debug(
                "embedding_batch",
                provider=provider_name,
                batch_start=start,
                batch_size=len(batch),
            )

        logger.info("embedding_complete", provider=provider_name, total=len(vectors))
        return vectors

    async def embed_query(self, text: str) -> list[float]:
        """Embed a single query string."""
        vectors = await self.embed([text])
        return vectors[0]
