"""Unit tests for HMAC session tokens and download signatures."""

from __future__ import annotations

import pytest

from initiative_rag.utils.signing import SessionSigner, sign_path, verify_path_signature


class TestSessionSigner:
    def test_round_trip(self) -> None:
        signer = SessionSigner("secret")
        token = signer.issue("user-1", issued_at=1_000)
        assert token.startswith("user-1:1000:")
        assert signer.verify(token, now=1_500) == "user-1"

    def test_expired_token(self) -> None:
        signer = SessionSigner("secret", max_age_seconds=60)
        token = signer.issue("user-1", issued_at=1_000)
        assert signer.verify(token, now=1_061) is None

    def test_wrong_secret(self) -> None:
        token = SessionSigner("secret").issue("user-1", issued_at=1_000)
        assert SessionSigner("other").verify(token, now=1_000) is None

    def test_tampered_user_id(self) -> None:
        token = SessionSigner("secret").issue("user-1", issued_at=1_000)
        forged = "user-2" + token[len("user-1") :]
        assert SessionSigner("secret").verify(forged, now=1_000) is None

    @pytest.mark.parametrize("token", [None, "", "abc", "a:b", ":100:sig", "u:notanumber:sig"])
    def test_malformed(self, token: str | None) -> None:
        assert SessionSigner("secret").verify(token, now=0) is None


class TestPathSignature:
    def test_valid_until_expiry(self) -> None:
        sig = sign_path("secret", "u/i/1_plan.pdf", 2_000)
        assert verify_path_signature("secret", "u/i/1_plan.pdf", 2_000, sig, now=2_000)
        assert not verify_path_signature("secret", "u/i/1_plan.pdf", 2_000, sig, now=2_001)

    def test_bound_to_path_and_expiry(self) -> None:
        sig = sign_path("secret", "u/i/1_plan.pdf", 2_000)
        assert not verify_path_signature("secret", "u/i/2_other.pdf", 2_000, sig, now=0)
        assert not verify_path_signature("secret", "u/i/1_plan.pdf", 3_000, sig, now=0)
        assert not verify_path_signature("wrong", "u/i/1_plan.pdf", 2_000, sig, now=0)
