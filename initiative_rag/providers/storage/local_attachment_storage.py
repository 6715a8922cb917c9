"""Filesystem-backed attachment storage with HMAC-signed download URLs.

Objects live under ``attachments_dir`` at their opaque storage path.  File
I/O runs in a worker thread so the event loop never blocks on disk.
Clients read files only through ``/api/v1/files/<path>`` URLs carrying an
``expires`` timestamp and a signature over ``path:expires``.
"""

from __future__ import annotations

import asyncio
import re
import time
from pathlib import Path, PurePosixPath
from urllib.parse import quote, urlencode

import structlog

from initiative_rag.interfaces.attachment_storage import IAttachmentStorage
from initiative_rag.utils.errors import ExtractionError, InputValidationError
from initiative_rag.utils.signing import sign_path, verify_path_signature

logger = structlog.get_logger(logger_name=__name__)

_UNSAFE_FILENAME_CHARS = re.compile(r"[^\w.\-]+", re.ASCII)


def sanitize_filename(name: str) -> str:
    """Replace every run of characters outside ``[A-Za-z0-9_.-]`` with ``_``."""
    cleaned = _UNSAFE_FILENAME_CHARS.sub("_", name.strip())
    return cleaned or "file"


def build_attachment_path(
    owner_id: str,
    initiative_id: str,
    filename: str,
    timestamp_ms: int | None = None,
) -> str:
    """Return ``<ownerId>/<initiativeId>/<timestamp>_<sanitizedFilename>``."""
    ts = int(time.time() * 1000) if timestamp_ms is None else timestamp_ms
    return f"{owner_id}/{initiative_id}/{ts}_{sanitize_filename(filename)}"


class LocalAttachmentStorage(IAttachmentStorage):
    """Attachment bytes on the local filesystem.

    Parameters
    ----------
    root_dir:
        Directory every storage path is resolved under.
    signing_secret:
        Secret for download URL signatures.
    public_base_url:
        Scheme and host prefixed to signed URLs.
    """

    def __init__(
        self,
        root_dir: str | Path,
        signing_secret: str,
        public_base_url: str = "http://localhost:8000",
    ) -> None:
        self._root = Path(root_dir).resolve()
        self._secret = signing_secret
        self._base_url = public_base_url.rstrip("/")

    def _resolve(self, path: str) -> Path:
        """Map a storage path to a file under the root, rejecting traversal."""
        parts = PurePosixPath(path).parts
        if not parts or path.startswith("/") or any(p in ("..", ".") for p in parts):
            raise InputValidationError(
                message=f"Invalid storage path: {path!r}",
                provider_name=self.get_provider_name(),
            )
        target = self._root.joinpath(*parts).resolve()
        if self._root not in target.parents:
            raise InputValidationError(
                message=f"Invalid storage path: {path!r}",
                provider_name=self.get_provider_name(),
            )
        return target

    # ------------------------------------------------------------------
    # IAttachmentStorage implementation
    # ------------------------------------------------------------------

    async def upload(self, path: str, data: bytes, content_type: str | None = None) -> None:
        target = self._resolve(path)

        def _write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)

        await asyncio.to_thread(_write)
        logger.info("attachment_stored", path=path, bytes=len(data), content_type=content_type)

    async def download(self, path: str) -> bytes:
        target = self._resolve(path)
        try:
            return await asyncio.to_thread(target.read_bytes)
        except OSError as exc:
            raise ExtractionError(
                message=f"Could not download {path}: {exc.strerror or exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def delete(self, path: str) -> None:
        target = self._resolve(path)
        await asyncio.to_thread(target.unlink, True)
        logger.info("attachment_deleted", path=path)

    def create_signed_url(self, path: str, ttl_seconds: int = 3600) -> str:
        self._resolve(path)
        expires = int(time.time()) + ttl_seconds
        query = urlencode({"expires": expires, "signature": sign_path(self._secret, path, expires)})
        return f"{self._base_url}/api/v1/files/{quote(path)}?{query}"

    def verify_signature(self, path: str, expires: int, signature: str) -> bool:
        return verify_path_signature(self._secret, path, expires, signature)

    def get_provider_name(self) -> str:
        return "local_storage"
