"""Unit tests for QAService -- search and ask over a real SQLite chunk store."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from initiative_rag.models.rag import DocChunk
from initiative_rag.services.context_assembler import ContextAssembler
from initiative_rag.services.qa_service import NO_MATCHES_ANSWER, QAService
from initiative_rag.services.retriever import Retriever
from initiative_rag.utils.errors import InputValidationError
from tests.conftest import KeywordEmbeddingProvider


async def _seed(chunk_store, embedder: KeywordEmbeddingProvider) -> None:
    passages = {
        "park-1": "Build a park on Elm Street. Budget is limited.",
        "bike-1": "Paint a bike lane along the main road.",
        "library-1": "Extend library hours for the school holidays.",
    }
    for initiative_id, content in passages.items():
        await chunk_store.replace_initiative_chunks(
            initiative_id,
            [
                DocChunk(
                    initiative_id=initiative_id,
                    source="initiative",
                    chunk_index=0,
                    content=content,
                    embedding=embedder.vector(content),
                )
            ],
        )


@pytest.fixture
async def qa(chunk_store, batcher, assembler, embedder) -> QAService:
    await _seed(chunk_store, embedder)
    return QAService(batcher, Retriever(chunk_store), assembler, min_similarity=0.5)


class TestSearch:
    @pytest.mark.asyncio
    async def test_returns_relevant_chunk(self, qa: QAService) -> None:
        matches = await qa.search("park budget")
        assert [m.initiative_id for m in matches] == ["park-1"]
        assert matches[0].similarity >= 0.5

    @pytest.mark.asyncio
    async def test_threshold_override(self, qa: QAService) -> None:
        matches = await qa.search("park bike school", min_similarity=0.0)
        assert {m.initiative_id for m in matches} == {"park-1", "bike-1", "library-1"}

    @pytest.mark.asyncio
    async def test_match_count_override(self, qa: QAService) -> None:
        matches = await qa.search("park bike school", match_count=1, min_similarity=0.0)
        assert len(matches) == 1

    @pytest.mark.asyncio
    async def test_zero_match_count_is_not_replaced_by_default(self, qa: QAService) -> None:
        with pytest.raises(InputValidationError, match="match_count must be at least 1"):
            await qa.search("park budget", match_count=0)

    @pytest.mark.asyncio
    async def test_query_whitespace_collapsed(
        self, qa: QAService, embedder: KeywordEmbeddingProvider
    ) -> None:
        await qa.search("  park \n budget ")
        assert embedder.calls[-1] == ["park budget"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("query", ["", " \n "])
    async def test_blank_query_rejected(self, qa: QAService, query: str) -> None:
        with pytest.raises(InputValidationError, match="query required"):
            await qa.search(query)


class TestAsk:
    @pytest.mark.asyncio
    async def test_answers_with_citation(self, qa: QAService, llm) -> None:
        result = await qa.ask("Is there a park budget?")
        assert result.found is True
        assert "[#1]" in result.answer
        assert [m.initiative_id for m in result.matches] == ["park-1"]
        assert len(llm.calls) == 1

    @pytest.mark.asyncio
    async def test_no_matches_skips_llm(self, qa: QAService, llm) -> None:
        result = await qa.ask("What about the weather?")
        assert result.found is False
        assert result.answer == NO_MATCHES_ANSWER
        assert result.matches == []
        assert llm.calls == []

    @pytest.mark.asyncio
    async def test_threshold_forwarded_to_assembler(self, batcher, chunk_store, embedder) -> None:
        await _seed(chunk_store, embedder)
        assembler = MagicMock(spec=ContextAssembler)
        assembler.answer = AsyncMock(return_value="ok [#1]")
        qa = QAService(batcher, Retriever(chunk_store), assembler, min_similarity=0.5)

        await qa.ask("park", min_similarity=0.55)

        _, kwargs = assembler.answer.call_args
        assert kwargs["min_similarity"] == 0.55

    @pytest.mark.asyncio
    async def test_zero_match_count_rejected(self, qa: QAService, llm) -> None:
        with pytest.raises(InputValidationError, match="match_count must be at least 1"):
            await qa.ask("Is there a park budget?", match_count=0)
        assert llm.calls == []

    @pytest.mark.asyncio
    async def test_blank_question_rejected(self, qa: QAService) -> None:
        with pytest.raises(InputValidationError):
            await qa.ask("   ")

    def test_default_threshold(self, batcher, assembler) -> None:
        qa = QAService(batcher, MagicMock(spec=Retriever), assembler)
        assert qa.min_similarity == 0.78
