"""Pydantic v2 request/response schemas for the initiative-rag API.

Request models are permissive on purpose: every field is optional and
routes check presence themselves, so a missing field answers 400 with an
``{"error": ...}`` body instead of FastAPI's 422 validation payload.
Both ``snake_case`` and the ``camelCase`` names web clients send are
accepted.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from initiative_rag.models.initiative import Attachment, Initiative, StatusChange
from initiative_rag.models.rag import MatchRow


class _Request(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class IngestRequest(_Request):
    initiative_id: str | None = Field(
        default=None, validation_alias=AliasChoices("initiative_id", "initiativeId")
    )
    all: bool = False


class EmbedRequest(_Request):
    q: str | None = None


class ContextItem(_Request):
    initiative_id: str = Field(validation_alias=AliasChoices("initiative_id", "initiativeId"))
    content: str
    similarity: float | None = None


class AnswerRequest(_Request):
    question: str | None = None
    contexts: list[ContextItem] = Field(default_factory=list)
    min_similarity: float | None = Field(
        default=None, validation_alias=AliasChoices("min_similarity", "minSimilarity")
    )


class SearchRequest(_Request):
    query: str | None = Field(default=None, validation_alias=AliasChoices("query", "q"))
    match_count: int | None = Field(
        default=None, validation_alias=AliasChoices("match_count", "matchCount")
    )
    min_similarity: float | None = Field(
        default=None, validation_alias=AliasChoices("min_similarity", "minSimilarity")
    )


class AskRequest(_Request):
    question: str | None = None


class CreateInitiativeRequest(_Request):
    title: str | None = None
    description: str | None = None


class StatusUpdateRequest(_Request):
    status: str | None = None


class FeedbackRequest(_Request):
    message: str | None = None
    category: str | None = None
    email: str | None = None
    page: str | None = None
    initiative_id: str | None = Field(
        default=None, validation_alias=AliasChoices("initiative_id", "initiativeId")
    )
    rating: int | None = None


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str


class IngestResponse(BaseModel):
    ok: bool = True
    inserted: int | None = None
    skipped_attachments: list[str] = Field(default_factory=list)


class EmbedResponse(BaseModel):
    embedding: list[float]


class AnswerResponse(BaseModel):
    answer: str


class MatchResponse(BaseModel):
    """One similarity hit as returned to clients."""

    id: str
    initiative_id: str
    content: str
    similarity: float
    source: str | None = None

    @classmethod
    def from_row(cls, row: MatchRow) -> MatchResponse:
        return cls(**row.model_dump())


class SearchResponse(BaseModel):
    matches: list[MatchResponse]


class AskResponse(BaseModel):
    answer: str
    found: bool
    matches: list[MatchResponse]


class AttachmentResponse(BaseModel):
    id: str
    initiative_id: str
    path: str
    filename: str
    mime_type: str | None
    size_bytes: int
    created_at: datetime

    @classmethod
    def from_model(cls, attachment: Attachment) -> AttachmentResponse:
        return cls(filename=attachment.filename, **attachment.model_dump())


class InitiativeResponse(BaseModel):
    id: str
    author_id: str
    title: str
    description: str
    status: str
    created_at: datetime
    attachments: list[AttachmentResponse] | None = None

    @classmethod
    def from_model(
        cls,
        initiative: Initiative,
        attachments: list[Attachment] | None = None,
    ) -> InitiativeResponse:
        return cls(
            id=initiative.id,
            author_id=initiative.author_id,
            title=initiative.title,
            description=initiative.description,
            status=initiative.status.value,
            created_at=initiative.created_at,
            attachments=(
                [AttachmentResponse.from_model(a) for a in attachments]
                if attachments is not None
                else None
            ),
        )


class InitiativeListResponse(BaseModel):
    initiatives: list[InitiativeResponse]
    total: int


class StatusChangeResponse(BaseModel):
    id: int
    initiative_id: str
    changed_by_user_id: str
    from_status: str | None
    to_status: str
    changed_at: datetime

    @classmethod
    def from_model(cls, change: StatusChange) -> StatusChangeResponse:
        return cls(
            id=change.id,
            initiative_id=change.initiative_id,
            changed_by_user_id=change.changed_by_user_id,
            from_status=change.from_status.value if change.from_status else None,
            to_status=change.to_status.value,
            changed_at=change.changed_at,
        )


class StatusHistoryResponse(BaseModel):
    history: list[StatusChangeResponse]


class UploadResponse(BaseModel):
    attachments: list[AttachmentResponse]


class SignedUrlResponse(BaseModel):
    url: str
    expires_in: int


class OkResponse(BaseModel):
    ok: bool = True


class FeedbackResponse(BaseModel):
    ok: bool = True
    id: int


class HealthResponse(BaseModel):
    """Application health check response."""

    status: str
    version: str
    providers: dict[str, Any]
