"""Data models for the ingestion and retrieval pipeline.

The write path produces :class:`DocChunk` rows; the read path produces
ephemeral :class:`MatchRow` results, which the answer endpoint receives
back from clients as :class:`ContextCandidate` objects.  All models use
frozen config to enforce immutability.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field

SOURCE_INITIATIVE = "initiative"
_ATTACHMENT_PREFIX = "attachment:"


def attachment_source(path: str) -> str:
    """Return the source tag for chunks extracted from the attachment at *path*."""
    return f"{_ATTACHMENT_PREFIX}{path}"


def is_attachment_source(source: str) -> bool:
    return source.startswith(_ATTACHMENT_PREFIX)


# ---------------------------------------------------------------------------
# DocChunk -- one embedded span of an initiative's text or attachment.
# ---------------------------------------------------------------------------
class DocChunk(BaseModel):
    """One indexed, embedded span of text belonging to an initiative.

    ``chunk_index`` values for one initiative form a contiguous, zero-based
    sequence per reindex pass: initiative chunks first, then attachment
    chunks in attachment order.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    initiative_id: str
    source: str = Field(description="'initiative' or 'attachment:<path>'.")
    chunk_index: int = Field(ge=0)
    content: str
    embedding: list[float] = Field(repr=False)
    created_at: datetime = Field(default_factory=lambda: datetime.now(tz=timezone.utc))


# ---------------------------------------------------------------------------
# Retrieval results
# ---------------------------------------------------------------------------
class MatchRow(BaseModel):
    """Result of a similarity query.  Never persisted."""

    model_config = ConfigDict(frozen=True)

    id: str
    initiative_id: str
    content: str
    similarity: float = Field(ge=0.0, le=1.0)
    source: str | None = None


class ContextCandidate(BaseModel):
    """A retrieved passage offered to the context assembler."""

    model_config = ConfigDict(frozen=True)

    initiative_id: str
    content: str
    similarity: float = Field(default=0.0, ge=0.0, le=1.0)
    source: str | None = None

    @classmethod
    def from_match(cls, row: MatchRow) -> ContextCandidate:
        return cls(
            initiative_id=row.initiative_id,
            content=row.content,
            similarity=row.similarity,
            source=row.source,
        )


class AskResult(BaseModel):
    """Outcome of the ask flow: the answer text plus the matches behind it."""

    model_config = ConfigDict(frozen=True)

    answer: str
    found: bool = Field(description="False when retrieval returned no matches.")
    matches: list[MatchRow] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Ingestion bookkeeping
# ---------------------------------------------------------------------------
class IndexResult(BaseModel):
    """Summary of one reindex pass for a single initiative."""

    model_config = ConfigDict(frozen=True)

    initiative_id: str
    inserted: int = Field(ge=0)
    initiative_chunks: int = Field(default=0, ge=0)
    attachment_chunks: int = Field(default=0, ge=0)
    skipped_attachments: list[str] = Field(
        default_factory=list,
        description="Paths whose extraction failed and were left out.",
    )
    elapsed_seconds: float = Field(default=0.0, ge=0.0)


class BulkIndexResult(BaseModel):
    """Summary of a 'reindex everything' run."""

    model_config = ConfigDict(frozen=True)

    purged: int = Field(ge=0)
    inserted: int = Field(ge=0)
    initiatives: int = Field(ge=0)
    skipped_attachments: list[str] = Field(default_factory=list)
    elapsed_seconds: float = Field(default=0.0, ge=0.0)
