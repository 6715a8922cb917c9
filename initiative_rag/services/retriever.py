"""Nearest-neighbour retrieval over the DocChunk store."""

from __future__ import annotations

import structlog

from initiative_rag.interfaces.chunk_store import IChunkStore
from initiative_rag.models.rag import MatchRow
from initiative_rag.utils.concurrency import with_timeout
from initiative_rag.utils.errors import InputValidationError

logger = structlog.get_logger(logger_name=__name__)


class Retriever:
    """Runs thresholded similarity queries against an :class:`IChunkStore`.

    An empty list is a normal outcome meaning "nothing relevant"; store
    failures propagate as :class:`RAGError` or :class:`ProviderTimeoutError`
    so the two are never confused.
    """

    def __init__(self, store: IChunkStore, timeout_seconds: float | None = 25.0) -> None:
        self._store = store
        self._timeout = timeout_seconds

    async def search(
        self,
        query_embedding: list[float],
        match_count: int,
        min_similarity: float,
    ) -> list[MatchRow]:
        """Return at most *match_count* rows scoring at least *min_similarity*,
        best first.
        """
        if not query_embedding:
            raise InputValidationError(message="query embedding must not be empty")
        if match_count < 1:
            raise InputValidationError(message="match_count must be at least 1")
        if not 0.0 <= min_similarity <= 1.0:
            raise InputValidationError(message="min_similarity must be between 0 and 1")

        rows = await with_timeout(
            self._store.search(query_embedding, match_count, min_similarity),
            self._timeout,
            provider_name=self._store.get_provider_name(),
            operation="similarity search",
        )

        # Backends already filter; re-apply so the contract holds for any store.
        matches = sorted(
            (row for row in rows if row.similarity >= min_similarity),
            key=lambda row: row.similarity,
            reverse=True,
        )[:match_count]

        logger.debug(
            "retrieval_complete",
            match_count=match_count,
            min_similarity=min_similarity,
            returned=len(matches),
        )
        return matches
