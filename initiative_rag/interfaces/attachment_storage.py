"""Abstract base class for attachment object storage."""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementation: LocalAttachmentStorage
# Located in: initiative_rag/providers/storage/
class IAttachmentStorage(ABC):
    """Contract for storing raw attachment bytes under opaque path strings.

    Paths have the form ``<ownerId>/<initiativeId>/<timestamp>_<filename>``.
    Clients read files only through time-limited signed URLs; the ingestion
    pipeline reads bytes directly with :meth:`download`.
    """

    @abstractmethod
    async def upload(self, path: str, data: bytes, content_type: str | None = None) -> None:
        """Store *data* at *path*, overwriting nothing (paths are unique)."""

    @abstractmethod
    async def download(self, path: str) -> bytes:
        """Return the bytes stored at *path*.

        Raises
        ------
        initiative_rag.utils.errors.ExtractionError
            If the object is missing or unreadable.
        """

    @abstractmethod
    async def delete(self, path: str) -> None:
        """Remove the object at *path*; a missing object is not an error."""

    @abstractmethod
    def create_signed_url(self, path: str, ttl_seconds: int = 3600) -> str:
        """Return a download URL for *path* valid for *ttl_seconds*."""

    @abstractmethod
    def verify_signature(self, path: str, expires: int, signature: str) -> bool:
        """Return ``True`` if *signature* authorises reading *path* now."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier such as ``"local_storage"``."""
