"""Unit tests for ContextAssembler -- selection, rendering, and answering."""

from __future__ import annotations

import pytest

from initiative_rag.models.rag import ContextCandidate
from initiative_rag.services.context_assembler import INSUFFICIENT_INFORMATION, ContextAssembler
from initiative_rag.utils.errors import InputValidationError
from tests.conftest import RecordingLLM


def _cand(content: str, similarity: float, initiative_id: str = "i1") -> ContextCandidate:
    return ContextCandidate(initiative_id=initiative_id, content=content, similarity=similarity)


class TestSelect:
    def test_loose_mode_keeps_top_ten(self, assembler: ContextAssembler) -> None:
        candidates = [_cand(f"passage {i}", i / 20) for i in range(15)]
        selected = assembler.select(candidates)
        assert len(selected) == 10
        assert selected[0].content == "passage 14"

    def test_strict_mode_filters_and_keeps_six(self, assembler: ContextAssembler) -> None:
        candidates = [_cand(f"passage {i}", 0.5 + i / 40) for i in range(15)]
        selected = assembler.select(candidates, min_similarity=0.7)
        assert len(selected) == 6
        assert all(c.similarity >= 0.7 for c in selected)

    def test_strict_mode_can_drop_everything(self, assembler: ContextAssembler) -> None:
        assert assembler.select([_cand("weak", 0.2)], min_similarity=0.5) == []

    def test_duplicates_collapse_to_best_score(self, assembler: ContextAssembler) -> None:
        selected = assembler.select(
            [_cand("same", 0.4), _cand("same", 0.9), _cand("same", 0.9, initiative_id="i2")]
        )
        assert [(c.initiative_id, c.similarity) for c in selected] == [("i1", 0.9), ("i2", 0.9)]

    def test_blank_passages_dropped(self, assembler: ContextAssembler) -> None:
        assert assembler.select([_cand("   ", 0.9), _cand("", 0.8)]) == []

    def test_only_first_candidates_considered(self, llm: RecordingLLM) -> None:
        assembler = ContextAssembler(llm, max_candidates=2)
        selected = assembler.select([_cand("a", 0.1), _cand("b", 0.2), _cand("c", 0.99)])
        assert [c.content for c in selected] == ["b", "a"]


class TestRender:
    def test_numbered_blocks(self, assembler: ContextAssembler) -> None:
        rendered = assembler.render_context([_cand("first", 0.9), _cand("second", 0.8, "i2")])
        assert rendered == "[#1] (initiative i1)\nfirst\n\n[#2] (initiative i2)\nsecond"

    def test_long_passages_truncated(self, llm: RecordingLLM) -> None:
        assembler = ContextAssembler(llm, max_context_chars=10)
        rendered = assembler.render_context([_cand("x" * 50, 0.9)])
        assert rendered.endswith("\n" + "x" * 10)


class TestAnswer:
    @pytest.mark.asyncio
    async def test_no_candidates_skips_llm(
        self, assembler: ContextAssembler, llm: RecordingLLM
    ) -> None:
        assert await assembler.answer("What about parks?", []) == INSUFFICIENT_INFORMATION
        assert llm.calls == []

    @pytest.mark.asyncio
    async def test_threshold_excluding_everything_skips_llm(
        self, assembler: ContextAssembler, llm: RecordingLLM
    ) -> None:
        answer = await assembler.answer("Parks?", [_cand("weak", 0.3)], min_similarity=0.8)
        assert answer == INSUFFICIENT_INFORMATION
        assert llm.calls == []

    @pytest.mark.asyncio
    async def test_answer_cites_context(
        self, assembler: ContextAssembler, llm: RecordingLLM
    ) -> None:
        answer = await assembler.answer(
            "What is planned on Elm Street?",
            [_cand("Build a park on Elm Street. Budget is limited.", 0.9)],
        )
        assert "[#1]" in answer
        prompt = llm.calls[0]["user_prompt"]
        assert prompt.startswith("Question: What is planned on Elm Street?")
        assert "[#1] (initiative i1)\nBuild a park on Elm Street." in prompt
        assert "ONLY" in llm.calls[0]["system_prompt"]
        assert llm.calls[0]["temperature"] == 0.2
        assert llm.calls[0]["max_tokens"] == 800

    @pytest.mark.asyncio
    async def test_empty_completion_falls_back(self) -> None:
        assembler = ContextAssembler(RecordingLLM(reply="   "))
        answer = await assembler.answer("Parks?", [_cand("park", 0.9)])
        assert answer == INSUFFICIENT_INFORMATION

    @pytest.mark.asyncio
    @pytest.mark.parametrize("question", ["", "   "])
    async def test_blank_question_rejected(
        self, assembler: ContextAssembler, question: str
    ) -> None:
        with pytest.raises(InputValidationError, match="question required"):
            await assembler.answer(question, [_cand("park", 0.9)])
