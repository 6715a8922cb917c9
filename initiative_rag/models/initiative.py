"""Domain models for initiatives, their attachments, and the people around them.

Pydantic v2 models, frozen so a record read from the repository cannot be
mutated in place; state changes go back through the repository.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class InitiativeStatus(str, Enum):
    """Review lifecycle of an initiative."""

    SUBMITTED = "submitted"
    IN_REVIEW = "in_review"
    APPROVED = "approved"
    REJECTED = "rejected"


class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"


class FeedbackCategory(str, Enum):
    BUG = "bug"
    IDEA = "idea"
    QUESTION = "question"
    OTHER = "other"


class UserIdentity(BaseModel):
    """The signed-in caller as resolved from a session token."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Stable user identifier.")
    email: str = Field(default="", description="Contact e-mail; empty for system identities.")
    role: UserRole = Field(default=UserRole.USER, description="Stored role; drives admin checks.")

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @classmethod
    def system(cls) -> UserIdentity:
        """Administrative identity used by the CLI and background jobs."""
        return cls(id="system", email="", role=UserRole.ADMIN)


class Initiative(BaseModel):
    """A submitted proposal with a review lifecycle status.

    Owned by its author.  Status is mutated only by an admin, and
    initiatives are never hard-deleted.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Unique identifier (UUID).")
    author_id: str = Field(description="User id of the submitting author.")
    title: str = Field(description="Short title.")
    description: str = Field(default="", description="Free-text body.")
    status: InitiativeStatus = Field(default=InitiativeStatus.SUBMITTED)
    created_at: datetime = Field(default_factory=_utcnow)

    def indexable_text(self) -> str:
        """Title and description joined the way they are chunked for retrieval."""
        return f"{self.title}\n\n{self.description}"


class Attachment(BaseModel):
    """A file uploaded against an initiative.  Immutable once created."""

    model_config = ConfigDict(frozen=True)

    id: str
    initiative_id: str
    path: str = Field(description="Storage path '<owner>/<initiative>/<ts>_<name>'.")
    mime_type: str | None = Field(default=None, description="Declared media type, if any.")
    size_bytes: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=_utcnow)

    @property
    def filename(self) -> str:
        return self.path.rsplit("/", 1)[-1]


class StatusChange(BaseModel):
    """One row of an initiative's status audit trail."""

    model_config = ConfigDict(frozen=True)

    id: int
    initiative_id: str
    changed_by_user_id: str
    from_status: InitiativeStatus | None
    to_status: InitiativeStatus
    changed_at: datetime = Field(default_factory=_utcnow)


class Feedback(BaseModel):
    """User feedback about the application or a specific initiative."""

    model_config = ConfigDict(frozen=True)

    message: str = Field(min_length=5)
    category: FeedbackCategory = FeedbackCategory.OTHER
    email: str | None = None
    page: str | None = None
    initiative_id: str | None = None
    rating: int | None = Field(default=None, ge=1, le=5)
    user_id: str | None = None
