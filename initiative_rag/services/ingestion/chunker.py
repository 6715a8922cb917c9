"""Fixed-size overlapping text windows cut on word boundaries.

Splits normalised text into character windows sized for the embedding
model (1000 characters with 150 characters of overlap by default).

The strategy:

1. **Flatten** -- every whitespace run collapses to one space, so window
   arithmetic is over a single line of text.

2. **Soft boundaries** -- a window that does not reach the end of the text
   is cut at the last space or full stop it contains, provided that break
   lies beyond ``start + max(overlap + 1, size // 2)``.  Otherwise the window is
   cut hard at ``start + size``.  Words are only split when a single token
   is longer than half a window.

3. **Overlap** -- the next window starts ``overlap`` characters before the
   previous cut, or one character earlier when that offset is a space, so
   the trimmed chunks still share at least ``overlap`` characters.  Every
   character of the flattened text falls in at least one span.

The minimum-advance rule guarantees each window moves forward by at least
one character, so the loop always terminates.
"""

from __future__ import annotations

from typing import Iterator

import structlog

from initiative_rag.utils.text_normalizer import collapse_whitespace

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_CHUNK_SIZE = 1000
DEFAULT_OVERLAP = 150


class TextChunker:
    """Splits text into overlapping character windows.

    Parameters
    ----------
    chunk_size:
        Maximum characters per chunk (default 1000).
    overlap:
        Characters shared between consecutive chunks (default 150).  Must
        be smaller than *chunk_size*.
    """

    def __init__(self, chunk_size: int = DEFAULT_CHUNK_SIZE, overlap: int = DEFAULT_OVERLAP) -> None:
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        if overlap < 0:
            raise ValueError(f"overlap must be non-negative, got {overlap}")
        if chunk_size <= overlap:
            raise ValueError(
                f"chunk_size ({chunk_size}) must be greater than overlap ({overlap})"
            )
        self._chunk_size = chunk_size
        self._overlap = overlap
        self._min_advance = max(overlap + 1, chunk_size // 2)

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    @property
    def overlap(self) -> int:
        return self._overlap

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def chunk(self, text: str) -> list[str]:
        """Split *text* into an ordered list of chunk strings.

        Empty or whitespace-only input returns an empty list.  Text no longer
        than ``chunk_size`` after flattening returns exactly one chunk.
        """
        chunks = list(self.iter_chunks(text))
        logger.debug(
            "chunking_complete",
            num_chunks=len(chunks),
            chunk_size=self._chunk_size,
            overlap=self._overlap,
        )
        return chunks

    def iter_chunks(self, text: str) -> Iterator[str]:
        """Lazily yield chunk strings; restart by calling again."""
        flat = collapse_whitespace(text)
        for start, end in self._windows(flat):
            piece = flat[start:end].strip()
            if piece:
                yield piece

    def spans(self, text: str) -> list[tuple[int, int]]:
        """Return the ``(start, end)`` offsets of every window over the flattened *text*."""
        return list(self._windows(collapse_whitespace(text)))

    # ------------------------------------------------------------------
    # Windowing
    # ------------------------------------------------------------------

    def _windows(self, flat: str) -> Iterator[tuple[int, int]]:
        length = len(flat)
        start = 0
        while start < length:
            limit = start + self._chunk_size
            cut = length if limit >= length else self._soft_cut(flat, start, limit)
            yield start, cut
            if cut >= length:
                return
            previous, start = start, cut - self._overlap
            # A leading space would be trimmed away and cost one shared character.
            if self._overlap and flat[start] == " " and start - 1 > previous:
                start -= 1

    def _soft_cut(self, flat: str, start: int, limit: int) -> int:
        """Return the cut offset for a window that ends before the text does."""
        floor = start + self._min_advance
        space = flat.rfind(" ", floor + 1, limit)
        stop = flat.rfind(".", floor, limit - 1)
        candidates = [pos for pos in (space, stop + 1 if stop != -1 else -1) if pos > floor]
        return max(candidates) if candidates else limit
