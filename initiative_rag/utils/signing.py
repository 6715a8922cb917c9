"""HMAC-SHA256 signing for session tokens and attachment download URLs.

# ─── TOKEN FORMATS ───────────────────────────────────────────────────
#
# Session token:   {user_id}:{issued_unix}:{hmac_hex}
#   hmac = HMAC-SHA256(secret, "{user_id}:{issued_unix}")
#   Valid while now - issued_unix <= max_age_seconds.
#
# Download signature:  ?expires={unix}&signature={hmac_hex}
#   hmac = HMAC-SHA256(secret, "{path}:{expires}")
#   Valid while now <= expires.
#
# Both are stateless: nothing is stored server-side, and every comparison
# runs through hmac.compare_digest.
# ─────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import hashlib
import hmac
import time


def _digest(secret: str, payload: str) -> str:
    return hmac.new(
        secret.encode("utf-8"),
        payload.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


class SessionSigner:
    """Issue and verify signed session tokens bound to a user id.

    Parameters
    ----------
    secret:
        Shared signing secret (``SIGNING_SECRET``).
    max_age_seconds:
        Lifetime of an issued token (default 7 days).
    """

    def __init__(self, secret: str, max_age_seconds: int = 7 * 24 * 3600) -> None:
        self._secret = secret
        self._max_age = max_age_seconds

    def issue(self, user_id: str, issued_at: int | None = None) -> str:
        """Return a token of the form ``{user_id}:{issued}:{hmac}``."""
        issued = int(time.time()) if issued_at is None else issued_at
        payload = f"{user_id}:{issued}"
        return f"{payload}:{_digest(self._secret, payload)}"

    def verify(self, token: str | None, now: float | None = None) -> str | None:
        """Return the user id carried by *token*, or ``None`` if it is invalid.

        A token is invalid when it is malformed, its signature does not
        match, or it is older than ``max_age_seconds``.
        """
        if not token or token.count(":") < 2:
            return None

        # user ids never contain ':'; split from the right regardless.
        payload, provided = token.rsplit(":", 1)
        user_id, issued_str = payload.rsplit(":", 1)
        if not user_id:
            return None
        try:
            issued = int(issued_str)
        except ValueError:
            return None

        current = time.time() if now is None else now
        if current - issued > self._max_age:
            return None

        if not hmac.compare_digest(provided, _digest(self._secret, payload)):
            return None
        return user_id


def sign_path(secret: str, path: str, expires: int) -> str:
    """Return the hex signature authorising a download of *path* until *expires*."""
    return _digest(secret, f"{path}:{expires}")


def verify_path_signature(
    secret: str,
    path: str,
    expires: int,
    signature: str,
    now: float | None = None,
) -> bool:
    """Check a download signature produced by :func:`sign_path`."""
    current = time.time() if now is None else now
    if current > expires:
        return False
    return hmac.compare_digest(signature, sign_path(secret, path, expires))
