"""Authorization policy for initiative-scoped operations.

One predicate decides who may touch an initiative's derived data:
its author or an administrator.  The ``require_*`` helpers raise the
matching error and write an audit log line on denial.
"""

from __future__ import annotations

import structlog

from initiative_rag.models.initiative import Initiative, UserIdentity
from initiative_rag.utils.errors import AuthenticationError, AuthorizationError

logger = structlog.get_logger(logger_name=__name__)


def can_reindex(user: UserIdentity | None, initiative: Initiative) -> bool:
    """Return ``True`` if *user* may rebuild *initiative*'s chunks."""
    if user is None:
        return False
    return user.is_admin or user.id == initiative.author_id


def can_manage_attachments(user: UserIdentity | None, initiative: Initiative) -> bool:
    """Attachments follow the same ownership rule as reindexing."""
    return can_reindex(user, initiative)


def require_user(user: UserIdentity | None, action: str) -> UserIdentity:
    """Return *user*, or raise :class:`AuthenticationError` if anonymous."""
    if user is None:
        logger.warning("authentication_required", action=action)
        raise AuthenticationError(message="Unauthorized")
    return user


def require_admin(user: UserIdentity | None, action: str) -> UserIdentity:
    """Return *user* if it is an administrator; raise otherwise."""
    user = require_user(user, action)
    if not user.is_admin:
        logger.warning("authorization_denied", action=action, user_id=user.id, reason="not_admin")
        raise AuthorizationError(message="Forbidden")
    return user


def require_reindex_access(user: UserIdentity | None, initiative: Initiative) -> UserIdentity:
    """Raise unless *user* is the author of *initiative* or an administrator."""
    user = require_user(user, "reindex")
    if not can_reindex(user, initiative):
        logger.warning(
            "authorization_denied",
            action="reindex",
            user_id=user.id,
            initiative_id=initiative.id,
        )
        raise AuthorizationError(message="Forbidden")
    return user


def require_attachment_access(
    user: UserIdentity | None, initiative: Initiative, action: str
) -> UserIdentity:
    """Raise unless *user* may manage *initiative*'s attachments."""
    user = require_user(user, action)
    if not can_manage_attachments(user, initiative):
        logger.warning(
            "authorization_denied",
            action=action,
            user_id=user.id,
            initiative_id=initiative.id,
        )
        raise AuthorizationError(message="Forbidden")
    return user
