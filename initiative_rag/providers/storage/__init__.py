"""Attachment object storage."""

from initiative_rag.providers.storage.local_attachment_storage import (
    LocalAttachmentStorage,
    build_attachment_path,
    sanitize_filename,
)

__all__ = ["LocalAttachmentStorage", "build_attachment_path", "sanitize_filename"]
