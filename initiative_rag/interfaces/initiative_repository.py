"""Abstract base class for the relational store of users, initiatives,
attachments, status history, and feedback."""

from __future__ import annotations

from abc import ABC, abstractmethod

from initiative_rag.models.initiative import (
    Attachment,
    Feedback,
    Initiative,
    InitiativeStatus,
    StatusChange,
    UserIdentity,
    UserRole,
)


# Concrete implementation: SQLiteInitiativeRepository
# Located in: initiative_rag/providers/repository/
class IInitiativeRepository(ABC):
    """Contract for the relational records the pipeline reads and the
    workflow service writes."""

    @abstractmethod
    async def initialize(self) -> None:
        """Create tables and indices if they do not exist yet."""

    # -- Users ----------------------------------------------------------

    @abstractmethod
    async def upsert_user(self, email: str, role: UserRole = UserRole.USER) -> UserIdentity:
        """Create the user for *email* or update its role; return the identity."""

    @abstractmethod
    async def get_user(self, user_id: str) -> UserIdentity | None:
        """Return the user with *user_id*, or ``None``."""

    # -- Initiatives ----------------------------------------------------

    @abstractmethod
    async def create_initiative(self, author_id: str, title: str, description: str) -> Initiative:
        """Insert a new initiative in ``submitted`` status."""

    @abstractmethod
    async def get_initiative(self, initiative_id: str) -> Initiative | None:
        """Return the initiative, or ``None`` if it does not exist."""

    @abstractmethod
    async def list_initiatives(
        self,
        status: InitiativeStatus | None = None,
        author_id: str | None = None,
    ) -> list[Initiative]:
        """Return initiatives newest first, optionally filtered."""

    @abstractmethod
    async def update_status(
        self,
        initiative_id: str,
        new_status: InitiativeStatus,
        changed_by: str,
    ) -> Initiative:
        """Set the status and append a history row in one transaction."""

    @abstractmethod
    async def list_status_history(self, initiative_id: str) -> list[StatusChange]:
        """Return status changes oldest first."""

    # -- Attachments ----------------------------------------------------

    @abstractmethod
    async def add_attachment(
        self,
        initiative_id: str,
        path: str,
        mime_type: str | None,
        size_bytes: int,
    ) -> Attachment:
        """Record an uploaded attachment."""

    @abstractmethod
    async def get_attachment(self, attachment_id: str) -> Attachment | None:
        """Return the attachment, or ``None``."""

    @abstractmethod
    async def list_attachments(self, initiative_id: str) -> list[Attachment]:
        """Return an initiative's attachments in upload order."""

    @abstractmethod
    async def delete_attachment(self, attachment_id: str) -> bool:
        """Delete the attachment row; return ``False`` if it did not exist."""

    # -- Feedback -------------------------------------------------------

    @abstractmethod
    async def add_feedback(self, feedback: Feedback) -> int:
        """Insert a feedback row and return its id."""
