"""Unit tests for LocalAttachmentStorage and attachment path helpers."""

from __future__ import annotations

from urllib.parse import parse_qs, unquote, urlparse

import pytest

from initiative_rag.providers.storage.local_attachment_storage import (
    LocalAttachmentStorage,
    build_attachment_path,
    sanitize_filename,
)
from initiative_rag.utils.errors import ExtractionError, InputValidationError


class TestPathHelpers:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("plan.pdf", "plan.pdf"),
            ("my plan (v2).pdf", "my_plan_v2_.pdf"),
            ("../../etc/passwd", ".._.._etc_passwd"),
            ("Überblick.docx", "_berblick.docx"),
            ("   ", "file"),
        ],
    )
    def test_sanitize_filename(self, raw: str, expected: str) -> None:
        assert sanitize_filename(raw) == expected

    def test_build_attachment_path(self) -> None:
        path = build_attachment_path("u1", "i1", "my plan.pdf", timestamp_ms=1700000000000)
        assert path == "u1/i1/1700000000000_my_plan.pdf"


class TestLocalAttachmentStorage:
    @pytest.mark.asyncio
    async def test_upload_download_delete(self, storage: LocalAttachmentStorage) -> None:
        await storage.upload("u/i/1_a.txt", b"hello", "text/plain")
        assert await storage.download("u/i/1_a.txt") == b"hello"

        await storage.delete("u/i/1_a.txt")
        with pytest.raises(ExtractionError):
            await storage.download("u/i/1_a.txt")

    @pytest.mark.asyncio
    async def test_delete_missing_is_silent(self, storage: LocalAttachmentStorage) -> None:
        await storage.delete("u/i/never.txt")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", ["../escape.txt", "/abs/path.txt", "u/../../x.txt", ""])
    async def test_traversal_rejected(self, storage: LocalAttachmentStorage, path: str) -> None:
        with pytest.raises(InputValidationError):
            await storage.upload(path, b"x")

    def test_signed_url_verifies(self, storage: LocalAttachmentStorage) -> None:
        url = storage.create_signed_url("u/i/1_my_plan.pdf", ttl_seconds=60)
        parsed = urlparse(url)
        query = parse_qs(parsed.query)

        assert parsed.netloc == "testserver"
        assert parsed.path == "/api/v1/files/u/i/1_my_plan.pdf"
        path = unquote(parsed.path[len("/api/v1/files/") :])
        assert storage.verify_signature(path, int(query["expires"][0]), query["signature"][0])

    def test_signature_for_other_path_rejected(self, storage: LocalAttachmentStorage) -> None:
        query = parse_qs(urlparse(storage.create_signed_url("u/i/1_a.pdf")).query)
        assert not storage.verify_signature(
            "u/i/1_b.pdf", int(query["expires"][0]), query["signature"][0]
        )

    def test_provider_name(self, storage: LocalAttachmentStorage) -> None:
        assert storage.get_provider_name() == "local_storage"
