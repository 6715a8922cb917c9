"""Question answering and semantic search over indexed initiatives.

Data flow for :meth:`QAService.ask`:

  1. EMBED    -- embed the question with the same provider used at indexing.
  2. RETRIEVE -- thresholded nearest-neighbour search over DocChunk rows.
  3. ANSWER   -- hand the matches to the context assembler with the same
                 threshold, so assembly never admits passages retrieval
                 was meant to exclude.

Zero matches short-circuit to :data:`NO_MATCHES_ANSWER` without an LLM
call, which keeps "nothing found" distinct from a failure.
"""

from __future__ import annotations

import structlog

from initiative_rag.models.rag import AskResult, ContextCandidate, MatchRow
from initiative_rag.services.context_assembler import ContextAssembler
from initiative_rag.services.ingestion.embedding_batcher import EmbeddingBatcher
from initiative_rag.services.retriever import Retriever
from initiative_rag.utils.errors import InputValidationError
from initiative_rag.utils.text_normalizer import collapse_whitespace

logger = structlog.get_logger(logger_name=__name__)

NO_MATCHES_ANSWER = "No relevant initiatives were found for this question."


class QAService:
    """Answers questions and runs semantic search using retrieval + LLM.

    Parameters
    ----------
    batcher:
        Embedding batcher wrapping the configured embedding provider.
    retriever:
        Similarity search over the chunk store.
    assembler:
        Grounded answer generation.
    match_count:
        Rows retrieved for :meth:`ask`.
    search_match_count:
        Rows returned by :meth:`search`.
    min_similarity:
        Default similarity threshold for both flows.
    """

    def __init__(
        self,
        batcher: EmbeddingBatcher,
        retriever: Retriever,
        assembler: ContextAssembler,
        match_count: int = 10,
        search_match_count: int = 20,
        min_similarity: float = 0.78,
    ) -> None:
        self._batcher = batcher
        self._retriever = retriever
        self._assembler = assembler
        self._match_count = match_count
        self._search_match_count = search_match_count
        self._min_similarity = min_similarity

    @property
    def min_similarity(self) -> float:
        return self._min_similarity

    async def search(
        self,
        query: str,
        match_count: int | None = None,
        min_similarity: float | None = None,
    ) -> list[MatchRow]:
        """Embed *query* and return the closest chunks, best first."""
        query = collapse_whitespace(query or "")
        if not query:
            raise InputValidationError(message="query required")

        embedding = await self._batcher.embed_query(query)
        matches = await self._retriever.search(
            embedding,
            self._search_match_count if match_count is None else match_count,
            self._min_similarity if min_similarity is None else min_similarity,
        )
        logger.info("semantic_search", query_length=len(query), matches=len(matches))
        return matches

    async def ask(
        self,
        question: str,
        match_count: int | None = None,
        min_similarity: float | None = None,
    ) -> AskResult:
        """Answer *question* from the indexed initiatives."""
        question = collapse_whitespace(question or "")
        if not question:
            raise InputValidationError(message="question required")
        threshold = self._min_similarity if min_similarity is None else min_similarity

        embedding = await self._batcher.embed_query(question)
        matches = await self._retriever.search(
            embedding, self._match_count if match_count is None else match_count, threshold
        )
        if not matches:
            logger.info("ask_no_matches", min_similarity=threshold)
            return AskResult(answer=NO_MATCHES_ANSWER, found=False, matches=[])

        answer = await self._assembler.answer(
            question,
            [ContextCandidate.from_match(row) for row in matches],
            min_similarity=threshold,
        )
        logger.info("ask_answered", matches=len(matches), min_similarity=threshold)
        return AskResult(answer=answer, found=True, matches=matches)
