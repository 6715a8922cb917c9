"""Unit tests for Retriever."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from initiative_rag.interfaces.chunk_store import IChunkStore
from initiative_rag.models.rag import MatchRow
from initiative_rag.services.retriever import Retriever
from initiative_rag.utils.errors import InputValidationError, ProviderTimeoutError, RAGError


def _row(row_id: str, similarity: float) -> MatchRow:
    return MatchRow(id=row_id, initiative_id="i1", content=row_id, similarity=similarity)


def _mock_store(rows: list[MatchRow] | None = None, **search_kwargs: object) -> MagicMock:
    store = MagicMock(spec=IChunkStore)
    if rows is not None:
        search_kwargs["return_value"] = rows
    store.search = AsyncMock(**search_kwargs)
    store.get_provider_name.return_value = "mock_store"
    return store


class TestRetriever:
    @pytest.mark.asyncio
    async def test_passes_arguments_to_store(self) -> None:
        store = _mock_store([])
        await Retriever(store).search([0.1, 0.2], match_count=5, min_similarity=0.7)
        store.search.assert_awaited_once_with([0.1, 0.2], 5, 0.7)

    @pytest.mark.asyncio
    async def test_reapplies_threshold_order_and_cap(self) -> None:
        # A store that ignores the contract still yields a conforming result.
        store = _mock_store(
            [_row("low", 0.3), _row("mid", 0.8), _row("top", 0.95), _row("hi", 0.9)]
        )
        matches = await Retriever(store).search([1.0], match_count=2, min_similarity=0.5)
        assert [m.id for m in matches] == ["top", "hi"]

    @pytest.mark.asyncio
    async def test_empty_result_is_not_an_error(self) -> None:
        assert await Retriever(_mock_store([])).search([1.0], 3, 0.9) == []

    @pytest.mark.asyncio
    async def test_store_failure_propagates(self) -> None:
        store = _mock_store(side_effect=RAGError(message="db gone", provider_name="mock_store"))
        with pytest.raises(RAGError, match="db gone"):
            await Retriever(store).search([1.0], 3, 0.5)

    @pytest.mark.asyncio
    async def test_slow_store_times_out(self) -> None:
        async def _slow(*args: object) -> list[MatchRow]:
            await asyncio.sleep(1)
            return []

        store = _mock_store(side_effect=_slow)
        with pytest.raises(ProviderTimeoutError):
            await Retriever(store, timeout_seconds=0.01).search([1.0], 3, 0.5)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "embedding,match_count,min_similarity",
        [([], 5, 0.5), ([1.0], 0, 0.5), ([1.0], 5, -0.1), ([1.0], 5, 1.5)],
    )
    async def test_invalid_arguments(
        self, embedding: list[float], match_count: int, min_similarity: float
    ) -> None:
        store = _mock_store([])
        with pytest.raises(InputValidationError):
            await Retriever(store).search(embedding, match_count, min_similarity)
        store.search.assert_not_called()
