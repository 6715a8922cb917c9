"""Initiative workflow: submission, review, attachments, and feedback.

Everything here sits in front of the ingestion pipeline.  Indexing is a
separate step: clients call the ingest endpoint after a submission or an
upload, and a failed reindex never rolls back the records written here.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from initiative_rag.interfaces.attachment_storage import IAttachmentStorage
from initiative_rag.interfaces.initiative_repository import IInitiativeRepository
from initiative_rag.models.initiative import (
    Attachment,
    Feedback,
    FeedbackCategory,
    Initiative,
    InitiativeStatus,
    StatusChange,
    UserIdentity,
)
from initiative_rag.providers.storage.local_attachment_storage import build_attachment_path
from initiative_rag.services.access_policy import (
    require_admin,
    require_attachment_access,
    require_user,
)
from initiative_rag.utils.errors import InputValidationError, NotFoundError

logger = structlog.get_logger(logger_name=__name__)

_MIN_FEEDBACK_LENGTH = 5


@dataclass(frozen=True)
class UploadedFile:
    """One file received from a client, fully read into memory."""

    filename: str
    data: bytes
    content_type: str | None = None


class InitiativeService:
    """Coordinates the repository and attachment storage.

    Parameters
    ----------
    repository:
        Relational store for initiatives and their satellites.
    storage:
        Object storage for attachment bytes.
    max_files_per_upload:
        Upper bound on files accepted by one upload call.
    signed_url_ttl:
        Lifetime in seconds of download links.
    """

    def __init__(
        self,
        repository: IInitiativeRepository,
        storage: IAttachmentStorage,
        max_files_per_upload: int = 5,
        signed_url_ttl: int = 3600,
    ) -> None:
        self._repository = repository
        self._storage = storage
        self._max_files = max_files_per_upload
        self._signed_url_ttl = signed_url_ttl

    # ------------------------------------------------------------------
    # Initiatives
    # ------------------------------------------------------------------

    async def submit_initiative(
        self, user: UserIdentity | None, title: str, description: str = ""
    ) -> Initiative:
        user = require_user(user, "submit_initiative")
        title = (title or "").strip()
        if not title:
            raise InputValidationError(message="title required")
        return await self._repository.create_initiative(
            author_id=user.id,
            title=title,
            description=(description or "").strip(),
        )

    async def get_initiative(self, initiative_id: str) -> Initiative:
        initiative = await self._repository.get_initiative(initiative_id)
        if initiative is None:
            raise NotFoundError(message=f"Initiative not found: {initiative_id}")
        return initiative

    async def list_initiatives(
        self,
        status: InitiativeStatus | str | None = None,
        author_id: str | None = None,
    ) -> list[Initiative]:
        return await self._repository.list_initiatives(
            status=_parse_status(status) if status else None,
            author_id=author_id,
        )

    async def change_status(
        self,
        user: UserIdentity | None,
        initiative_id: str,
        new_status: InitiativeStatus | str,
    ) -> Initiative:
        """Move an initiative to *new_status* and record who did it.  Admin only."""
        admin = require_admin(user, "change_status")
        status = _parse_status(new_status)
        return await self._repository.update_status(initiative_id, status, changed_by=admin.id)

    async def status_history(self, initiative_id: str) -> list[StatusChange]:
        await self.get_initiative(initiative_id)
        return await self._repository.list_status_history(initiative_id)

    # ------------------------------------------------------------------
    # Attachments
    # ------------------------------------------------------------------

    async def list_attachments(self, initiative_id: str) -> list[Attachment]:
        return await self._repository.list_attachments(initiative_id)

    async def upload_attachments(
        self,
        user: UserIdentity | None,
        initiative_id: str,
        files: list[UploadedFile],
    ) -> list[Attachment]:
        """Store *files* against the initiative and record one row per file."""
        user = require_user(user, "upload_attachments")
        if not files:
            raise InputValidationError(message="at least one file required")
        if len(files) > self._max_files:
            raise InputValidationError(
                message=f"at most {self._max_files} files per upload"
            )
        initiative = await self.get_initiative(initiative_id)
        require_attachment_access(user, initiative, "upload_attachments")

        stored: list[Attachment] = []
        for file in files:
            path = build_attachment_path(user.id, initiative.id, file.filename)
            await self._storage.upload(path, file.data, file.content_type)
            attachment = await self._repository.add_attachment(
                initiative_id=initiative.id,
                path=path,
                mime_type=file.content_type or None,
                size_bytes=len(file.data),
            )
            stored.append(attachment)

        logger.info(
            "attachments_uploaded",
            initiative_id=initiative.id,
            user_id=user.id,
            count=len(stored),
        )
        return stored

    async def delete_attachment(self, user: UserIdentity | None, attachment_id: str) -> None:
        user = require_user(user, "delete_attachment")
        attachment = await self._load_attachment(attachment_id)
        initiative = await self.get_initiative(attachment.initiative_id)
        require_attachment_access(user, initiative, "delete_attachment")

        await self._storage.delete(attachment.path)
        await self._repository.delete_attachment(attachment.id)
        logger.info(
            "attachment_removed",
            attachment_id=attachment.id,
            initiative_id=initiative.id,
            user_id=user.id,
        )

    async def attachment_link(self, user: UserIdentity | None, attachment_id: str) -> str:
        """Return a time-limited download URL for the attachment."""
        require_user(user, "attachment_link")
        attachment = await self._load_attachment(attachment_id)
        return self._storage.create_signed_url(attachment.path, self._signed_url_ttl)

    async def _load_attachment(self, attachment_id: str) -> Attachment:
        attachment = await self._repository.get_attachment(attachment_id)
        if attachment is None:
            raise NotFoundError(message=f"Attachment not found: {attachment_id}")
        return attachment

    # ------------------------------------------------------------------
    # Feedback
    # ------------------------------------------------------------------

    async def submit_feedback(
        self,
        message: str,
        category: FeedbackCategory | str | None = None,
        email: str | None = None,
        page: str | None = None,
        initiative_id: str | None = None,
        rating: int | None = None,
        user: UserIdentity | None = None,
    ) -> int:
        message = (message or "").strip()
        if len(message) < _MIN_FEEDBACK_LENGTH:
            raise InputValidationError(
                message=f"message must be at least {_MIN_FEEDBACK_LENGTH} characters"
            )
        try:
            parsed_category = FeedbackCategory(category or FeedbackCategory.OTHER)
        except ValueError as exc:
            raise InputValidationError(message=f"unknown category: {category}") from exc
        if rating is not None and not 1 <= rating <= 5:
            raise InputValidationError(message="rating must be between 1 and 5")

        feedback = Feedback(
            message=message,
            category=parsed_category,
            email=(email or "").strip() or None,
            page=page or None,
            initiative_id=initiative_id or None,
            rating=rating,
            user_id=user.id if user else None,
        )
        return await self._repository.add_feedback(feedback)


def _parse_status(value: InitiativeStatus | str) -> InitiativeStatus:
    try:
        return InitiativeStatus(value)
    except ValueError as exc:
        allowed = ", ".join(s.value for s in InitiativeStatus)
        raise InputValidationError(
            message=f"unknown status '{value}'; expected one of {allowed}"
        ) from exc
