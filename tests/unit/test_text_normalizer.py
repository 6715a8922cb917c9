"""Unit tests for whitespace normalisation."""

from __future__ import annotations

from initiative_rag.utils.text_normalizer import collapse_whitespace, normalize_text


class TestNormalizeText:
    def test_empty_input(self) -> None:
        assert normalize_text("") == ""

    def test_collapses_spaces_and_tabs(self) -> None:
        assert normalize_text("a  \t b") == "a b"

    def test_strips_trailing_space_before_newline(self) -> None:
        assert normalize_text("line one   \nline two") == "line one\nline two"

    def test_collapses_blank_line_runs(self) -> None:
        assert normalize_text("para one\n\n\n\n\npara two") == "para one\n\npara two"

    def test_carriage_returns_become_newlines(self) -> None:
        assert normalize_text("a\rb") == "a\nb"

    def test_trims_outer_whitespace(self) -> None:
        assert normalize_text("  \n hello world \n ") == "hello world"

    def test_idempotent(self) -> None:
        once = normalize_text("x \t y\r\n\r\n\r\nz  ")
        assert normalize_text(once) == once


class TestCollapseWhitespace:
    def test_newlines_become_single_spaces(self) -> None:
        assert collapse_whitespace("a\n\nb\tc   d") == "a b c d"

    def test_whitespace_only(self) -> None:
        assert collapse_whitespace(" \n\t ") == ""
