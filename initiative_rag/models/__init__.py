"""Pydantic models for initiatives and the retrieval pipeline."""

from initiative_rag.models.initiative import (
    Attachment,
    Feedback,
    FeedbackCategory,
    Initiative,
    InitiativeStatus,
    StatusChange,
    UserIdentity,
    UserRole,
)
from initiative_rag.models.rag import (
    SOURCE_INITIATIVE,
    AskResult,
    BulkIndexResult,
    ContextCandidate,
    DocChunk,
    IndexResult,
    MatchRow,
    attachment_source,
)

__all__ = [
    "SOURCE_INITIATIVE",
    "AskResult",
    "Attachment",
    "BulkIndexResult",
    "ContextCandidate",
    "DocChunk",
    "Feedback",
    "FeedbackCategory",
    "IndexResult",
    "Initiative",
    "InitiativeStatus",
    "MatchRow",
    "StatusChange",
    "UserIdentity",
    "UserRole",
    "attachment_source",
]
