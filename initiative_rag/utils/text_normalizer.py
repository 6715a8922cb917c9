"""Whitespace normalisation for extracted document text.

Two forms are provided:

- :func:`normalize_text` -- the canonical form stored and indexed.  Line
  structure survives (paragraph breaks collapse to exactly one blank line).
- :func:`collapse_whitespace` -- the flat form the chunker windows over.
  Every whitespace run becomes a single space.

Both are pure and deterministic; empty input yields empty output.
"""

from __future__ import annotations

import re

_TRAILING_SPACE_BEFORE_NEWLINE = re.compile(r"[ \t]+\n")
_MULTI_NEWLINE = re.compile(r"\n{3,}")
_MULTI_SPACE = re.compile(r"[ \t]+")
_ANY_WHITESPACE = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    """Return *text* in canonical form.

    Carriage returns become line feeds, horizontal whitespace before a
    newline is stripped, runs of three or more newlines collapse to two,
    runs of spaces/tabs collapse to one space, and the result is trimmed.
    """
    if not text:
        return ""
    result = text.replace("\r", "\n")
    result = _TRAILING_SPACE_BEFORE_NEWLINE.sub("\n", result)
    result = _MULTI_NEWLINE.sub("\n\n", result)
    result = _MULTI_SPACE.sub(" ", result)
    return result.strip()


def collapse_whitespace(text: str) -> str:
    """Collapse every whitespace run (newlines included) to one space and trim."""
    if not text:
        return ""
    return _ANY_WHITESPACE.sub(" ", text).strip()
