"""Unit tests for TextChunker soft word-boundary windowing."""

from __future__ import annotations

import random

import pytest

from initiative_rag.services.ingestion.chunker import TextChunker
from initiative_rag.utils.text_normalizer import collapse_whitespace

_LOREM = (
    "Residents propose a new park on Elm Street with benches, trees and a small "
    "playground. The budget is limited, so volunteers will plant the trees. "
    "Lighting along the path keeps the park safe after dark. Maintenance would "
    "be shared between the district office and the neighbourhood association. "
) * 8

_WORDS = ("park", "a", "budget", "on", "Elm", "street.", "of", "trees", "lighting", "is")


def _shared_prefix(previous: str, following: str) -> int:
    """Length of the longest suffix of *previous* that starts *following*."""
    for size in range(min(len(previous), len(following)), 0, -1):
        if following.startswith(previous[-size:]):
            return size
    return 0


class TestConstruction:
    def test_defaults(self) -> None:
        chunker = TextChunker()
        assert chunker.chunk_size == 1000
        assert chunker.overlap == 150

    @pytest.mark.parametrize("size,overlap", [(100, 100), (50, 80)])
    def test_size_not_greater_than_overlap_rejected(self, size: int, overlap: int) -> None:
        with pytest.raises(ValueError, match="greater than overlap"):
            TextChunker(chunk_size=size, overlap=overlap)

    def test_negative_overlap_rejected(self) -> None:
        with pytest.raises(ValueError):
            TextChunker(chunk_size=100, overlap=-1)


class TestChunk:
    def test_empty_text_returns_no_chunks(self) -> None:
        assert TextChunker().chunk("") == []

    def test_whitespace_only_returns_no_chunks(self) -> None:
        assert TextChunker().chunk("   \n\t  ") == []

    def test_short_text_is_one_chunk(self) -> None:
        text = "Build a park on Elm Street.\n\nBudget is limited."
        assert TextChunker().chunk(text) == ["Build a park on Elm Street. Budget is limited."]

    def test_long_text_produces_bounded_chunks(self) -> None:
        chunker = TextChunker(chunk_size=200, overlap=40)
        chunks = chunker.chunk(_LOREM)
        assert len(chunks) > 1
        assert all(0 < len(c) <= 200 for c in chunks)

    def test_chunks_are_trimmed(self) -> None:
        chunks = TextChunker(chunk_size=120, overlap=20).chunk(_LOREM)
        assert all(c == c.strip() for c in chunks)

    def test_prefers_word_boundaries(self) -> None:
        chunks = TextChunker(chunk_size=150, overlap=30).chunk(_LOREM)
        words = set(collapse_whitespace(_LOREM).split(" "))
        # The overlap may start mid-word; the cut never does.
        for chunk in chunks[:-1]:
            assert chunk.split(" ")[-1].rstrip(".") in {w.rstrip(".") for w in words}

    def test_deterministic(self) -> None:
        chunker = TextChunker(chunk_size=180, overlap=30)
        assert chunker.chunk(_LOREM) == chunker.chunk(_LOREM)

    def test_iter_chunks_matches_chunk(self) -> None:
        chunker = TextChunker(chunk_size=180, overlap=30)
        assert list(chunker.iter_chunks(_LOREM)) == chunker.chunk(_LOREM)


class TestSpans:
    @pytest.mark.parametrize("size,overlap", [(200, 40), (120, 0), (90, 60), (1000, 150)])
    def test_spans_cover_every_character(self, size: int, overlap: int) -> None:
        flat = collapse_whitespace(_LOREM)
        spans = TextChunker(chunk_size=size, overlap=overlap).spans(_LOREM)

        covered = [False] * len(flat)
        for start, end in spans:
            for i in range(start, end):
                covered[i] = True
        assert all(covered)
        assert spans[0][0] == 0
        assert spans[-1][1] == len(flat)

    @pytest.mark.parametrize("size,overlap", [(200, 40), (90, 60)])
    def test_consecutive_spans_overlap(self, size: int, overlap: int) -> None:
        spans = TextChunker(chunk_size=size, overlap=overlap).spans(_LOREM)
        for (_, prev_end), (next_start, _) in zip(spans, spans[1:]):
            assert prev_end - next_start >= overlap

    def test_spans_always_advance(self) -> None:
        spans = TextChunker(chunk_size=60, overlap=50).spans(_LOREM)
        starts = [s for s, _ in spans]
        assert starts == sorted(set(starts))

    def test_window_never_exceeds_size(self) -> None:
        spans = TextChunker(chunk_size=100, overlap=10).spans(_LOREM)
        assert all(end - start <= 100 for start, end in spans)

    def test_text_without_spaces_cuts_hard(self) -> None:
        text = "x" * 250
        spans = TextChunker(chunk_size=100, overlap=20).spans(text)
        assert spans[0] == (0, 100)
        assert spans[1][0] == 80


class TestChunkOverlap:
    @pytest.mark.parametrize("size,overlap", [(120, 30), (200, 40), (90, 60)])
    def test_trimmed_chunks_keep_full_overlap(self, size: int, overlap: int) -> None:
        rng = random.Random(7)
        chunker = TextChunker(chunk_size=size, overlap=overlap)
        for _ in range(50):
            text = " ".join(rng.choice(_WORDS) for _ in range(300))
            chunks = chunker.chunk(text)
            for previous, following in zip(chunks, chunks[1:]):
                assert _shared_prefix(previous, following) >= overlap

    def test_overlap_starting_on_a_space_steps_back(self) -> None:
        # Four-letter words put every cut - overlap offset on a space.
        text = "aaaa bbbb cccc dddd eeee ffff gggg hhhh"
        chunker = TextChunker(chunk_size=20, overlap=5)
        spans = chunker.spans(text)
        flat = collapse_whitespace(text)
        for start, _ in spans:
            assert flat[start] != " "
