"""Attachment text extraction: stored bytes in, normalised plain text out.

Dispatch is by declared media type, falling back to the filename extension
when the type is absent or generic (``application/octet-stream``):

    PDF            -> PyMuPDF text layer, page by page
    DOCX           -> python-docx paragraphs and table cells
    text/*, .txt   -> UTF-8 decode
    anything else  -> ""  (nothing to index; never an error)

Bytes are read directly from attachment storage; the unsupported check
runs first so an image or spreadsheet never costs a download.
"""

from __future__ import annotations

import asyncio
import io
from enum import Enum
from typing import Callable

import fitz  # PyMuPDF -- the "fitz" import name is a PyMuPDF convention
import structlog
from docx import Document

from initiative_rag.interfaces.attachment_storage import IAttachmentStorage
from initiative_rag.utils.concurrency import with_timeout
from initiative_rag.utils.errors import ExtractionError, ProviderTimeoutError
from initiative_rag.utils.text_normalizer import normalize_text

logger = structlog.get_logger(logger_name=__name__)

_GENERIC_MEDIA_TYPES = frozenset(
    {"", "application/octet-stream", "binary/octet-stream", "application/unknown"}
)
_TEXT_APPLICATION_TYPES = frozenset({"application/json", "application/xml", "application/x-yaml"})


class DocumentKind(str, Enum):
    PDF = "pdf"
    DOCX = "docx"
    TEXT = "text"


_EXTENSION_KINDS: dict[str, DocumentKind] = {
    ".pdf": DocumentKind.PDF,
    ".docx": DocumentKind.DOCX,
    ".txt": DocumentKind.TEXT,
    ".md": DocumentKind.TEXT,
}


def detect_kind(path: str, media_type: str | None) -> DocumentKind | None:
    """Return how to parse the attachment at *path*, or ``None`` if unsupported."""
    mime = (media_type or "").split(";", 1)[0].strip().lower()
    if mime not in _GENERIC_MEDIA_TYPES:
        if "pdf" in mime:
            return DocumentKind.PDF
        if "wordprocessingml" in mime:
            return DocumentKind.DOCX
        if mime.startswith("text/") or mime in _TEXT_APPLICATION_TYPES:
            return DocumentKind.TEXT
        return None

    filename = path.rsplit("/", 1)[-1].lower()
    dot = filename.rfind(".")
    if dot == -1:
        return None
    return _EXTENSION_KINDS.get(filename[dot:])


# ---------------------------------------------------------------------------
# Format parsers (synchronous; run in a worker thread)
# ---------------------------------------------------------------------------


def _pdf_text(data: bytes) -> str:
    with fitz.open(stream=data, filetype="pdf") as doc:
        return "\n\n".join(page.get_text("text") for page in doc)


def _docx_text(data: bytes) -> str:
    doc = Document(io.BytesIO(data))
    parts = [para.text for para in doc.paragraphs]
    for table in doc.tables:
        for row in table.rows:
            parts.append(" ".join(cell.text for cell in row.cells))
    return "\n".join(parts)


def _plain_text(data: bytes) -> str:
    return data.decode("utf-8-sig", errors="replace")


_PARSERS: dict[DocumentKind, Callable[[bytes], str]] = {
    DocumentKind.PDF: _pdf_text,
    DocumentKind.DOCX: _docx_text,
    DocumentKind.TEXT: _plain_text,
}


class DocumentExtractor:
    """Produces normalised text for a stored attachment.

    Parameters
    ----------
    storage:
        Attachment storage the raw bytes are downloaded from.
    timeout_seconds:
        Upper bound on the storage download.
    """

    def __init__(self, storage: IAttachmentStorage, timeout_seconds: float | None = 25.0) -> None:
        self._storage = storage
        self._timeout = timeout_seconds

    async def extract(self, path: str, media_type: str | None) -> str:
        """Return the normalised text of the attachment at *path*.

        Returns ``""`` for unsupported types and for documents with no text
        layer.

        Raises
        ------
        ExtractionError
            If the download fails or the document cannot be parsed.  Fatal
            for this attachment only.
        """
        kind = detect_kind(path, media_type)
        if kind is None:
            logger.debug("attachment_unsupported_type", path=path, media_type=media_type)
            return ""

        try:
            data = await with_timeout(
                self._storage.download(path),
                self._timeout,
                provider_name=self._storage.get_provider_name(),
                operation="attachment download",
            )
        except ProviderTimeoutError as exc:
            raise ExtractionError(
                message=f"Download of {path} timed out",
                provider_name=exc.provider_name,
            ) from exc

        try:
            raw = await asyncio.to_thread(_PARSERS[kind], data)
        except Exception as exc:  # noqa: BLE001 - parser libraries raise assorted types
            raise ExtractionError(
                message=f"Could not read {kind.value} attachment {path}: {exc}",
                provider_name="document_extractor",
            ) from exc

        text = normalize_text(raw)
        logger.info(
            "attachment_extracted",
            path=path,
            kind=kind.value,
            bytes=len(data),
            chars=len(text),
        )
        return text
