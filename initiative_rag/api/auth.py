"""Request identity resolution.

One capability answers "who is calling": :func:`current_user`.  It accepts
a session token from the ``Authorization: Bearer`` header or, failing
that, the ``session`` cookie, and resolves it against the user table so
the role always comes from storage rather than from the token.
"""

from __future__ import annotations

from typing import Annotated

import structlog
from fastapi import Depends, Request

from initiative_rag.models.initiative import UserIdentity
from initiative_rag.utils.logging import bind_request_context, get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

SESSION_COOKIE = "session"


def _extract_token(request: Request) -> str | None:
    header = request.headers.get("authorization", "")
    scheme, _, credentials = header.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return request.cookies.get(SESSION_COOKIE) or None


async def current_user(request: Request) -> UserIdentity | None:
    """Return the signed-in user, or ``None`` for anonymous callers.

    Missing, malformed, expired, or forged tokens and tokens for unknown
    users all resolve to anonymous; callers decide whether that is fatal.
    """
    token = _extract_token(request)
    if token is None:
        return None

    user_id = request.app.state.session_signer.verify(token)
    if user_id is None:
        _logger.info("session_token_rejected", path=str(request.url.path))
        return None

    user = await request.app.state.repository.get_user(user_id)
    if user is None:
        _logger.info("session_user_unknown", user_id=user_id)
        return None

    bind_request_context(user_id=user.id)
    return user


CurrentUserDep = Annotated[UserIdentity | None, Depends(current_user)]
