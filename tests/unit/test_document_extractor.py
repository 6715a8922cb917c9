"""Unit tests for DocumentExtractor and media type detection."""

from __future__ import annotations

import asyncio
import io
from unittest.mock import AsyncMock, MagicMock

import fitz
import pytest
from docx import Document

from initiative_rag.interfaces.attachment_storage import IAttachmentStorage
from initiative_rag.providers.storage.local_attachment_storage import LocalAttachmentStorage
from initiative_rag.services.ingestion.document_extractor import (
    DocumentExtractor,
    DocumentKind,
    detect_kind,
)
from initiative_rag.utils.errors import ExtractionError


def _pdf_bytes(*pages: str) -> bytes:
    doc = fitz.open()
    for text in pages:
        page = doc.new_page()
        page.insert_text((72, 72), text)
    data = doc.tobytes()
    doc.close()
    return data


def _docx_bytes(*paragraphs: str) -> bytes:
    doc = Document()
    for text in paragraphs:
        doc.add_paragraph(text)
    buf = io.BytesIO()
    doc.save(buf)
    return buf.getvalue()


class TestDetectKind:
    @pytest.mark.parametrize(
        "path,media_type,expected",
        [
            ("a/b/1_plan.pdf", "application/pdf", DocumentKind.PDF),
            (
                "a/b/1_plan.docx",
                "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
                DocumentKind.DOCX,
            ),
            ("a/b/1_notes.txt", "text/plain", DocumentKind.TEXT),
            ("a/b/1_notes.txt", "text/plain; charset=utf-8", DocumentKind.TEXT),
            ("a/b/1_notes.md", "text/markdown", DocumentKind.TEXT),
            ("a/b/1_data.json", "application/json", DocumentKind.TEXT),
        ],
    )
    def test_declared_media_type(self, path: str, media_type: str, expected: DocumentKind) -> None:
        assert detect_kind(path, media_type) is expected

    @pytest.mark.parametrize(
        "path,expected",
        [
            ("a/b/1_plan.PDF", DocumentKind.PDF),
            ("a/b/1_plan.docx", DocumentKind.DOCX),
            ("a/b/1_notes.txt", DocumentKind.TEXT),
            ("a/b/1_readme.md", DocumentKind.TEXT),
        ],
    )
    def test_extension_fallback_for_generic_type(self, path: str, expected: DocumentKind) -> None:
        assert detect_kind(path, None) is expected
        assert detect_kind(path, "application/octet-stream") is expected

    @pytest.mark.parametrize(
        "path,media_type",
        [
            ("a/b/1_photo.png", "image/png"),
            ("a/b/1_sheet.xlsx", "application/vnd.ms-excel"),
            ("a/b/1_noext", None),
            ("a/b/1_archive.zip", "application/octet-stream"),
        ],
    )
    def test_unsupported(self, path: str, media_type: str | None) -> None:
        assert detect_kind(path, media_type) is None

    def test_declared_type_wins_over_extension(self) -> None:
        assert detect_kind("a/b/1_scan.pdf", "image/png") is None


class TestDocumentExtractor:
    @pytest.mark.asyncio
    async def test_plain_text_returns_normalized_content(
        self, storage: LocalAttachmentStorage
    ) -> None:
        await storage.upload("u/i/1_notes.txt", "Trees   along\r\n\r\n\r\nthe road.  ".encode())
        text = await DocumentExtractor(storage).extract("u/i/1_notes.txt", "text/plain")
        assert text == "Trees along\n\nthe road."

    @pytest.mark.asyncio
    async def test_utf8_bom_is_dropped(self, storage: LocalAttachmentStorage) -> None:
        await storage.upload("u/i/1_bom.txt", "﻿hello".encode("utf-8"))
        assert await DocumentExtractor(storage).extract("u/i/1_bom.txt", "text/plain") == "hello"

    @pytest.mark.asyncio
    async def test_unsupported_type_returns_empty_without_download(self) -> None:
        storage = MagicMock(spec=IAttachmentStorage)
        storage.download = AsyncMock()
        text = await DocumentExtractor(storage).extract("u/i/1_photo.png", "image/png")
        assert text == ""
        storage.download.assert_not_called()

    @pytest.mark.asyncio
    async def test_pdf_text_layer(self, storage: LocalAttachmentStorage) -> None:
        await storage.upload("u/i/1_plan.pdf", _pdf_bytes("Park budget page one", "Page two"))
        text = await DocumentExtractor(storage).extract("u/i/1_plan.pdf", "application/pdf")
        assert "Park budget page one" in text
        assert "Page two" in text

    @pytest.mark.asyncio
    async def test_docx_paragraphs(self, storage: LocalAttachmentStorage) -> None:
        await storage.upload("u/i/1_plan.docx", _docx_bytes("First paragraph", "Second one"))
        text = await DocumentExtractor(storage).extract("u/i/1_plan.docx", None)
        assert text == "First paragraph\nSecond one"

    @pytest.mark.asyncio
    async def test_missing_file_raises_extraction_error(
        self, storage: LocalAttachmentStorage
    ) -> None:
        with pytest.raises(ExtractionError):
            await DocumentExtractor(storage).extract("u/i/1_gone.txt", "text/plain")

    @pytest.mark.asyncio
    async def test_corrupt_pdf_raises_extraction_error(
        self, storage: LocalAttachmentStorage
    ) -> None:
        await storage.upload("u/i/1_broken.pdf", b"not a pdf at all")
        with pytest.raises(ExtractionError, match="pdf"):
            await DocumentExtractor(storage).extract("u/i/1_broken.pdf", "application/pdf")

    @pytest.mark.asyncio
    async def test_download_timeout_becomes_extraction_error(self) -> None:
        async def _slow_download(path: str) -> bytes:
            await asyncio.sleep(1)
            return b""

        storage = MagicMock(spec=IAttachmentStorage)
        storage.download = _slow_download
        storage.get_provider_name.return_value = "slow_storage"

        extractor = DocumentExtractor(storage, timeout_seconds=0.01)
        with pytest.raises(ExtractionError, match="timed out"):
            await extractor.extract("u/i/1_notes.txt", "text/plain")
