"""Administrator check for the scheduled-task endpoints.

Callers identify themselves with the ``X-User-Id`` header. A deployment
behind its own authentication proxy can leave ``admin_users`` empty, which
allows every caller (safe default for dev/tests).
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Awaitable, Callable

from fastapi import Header, HTTPException, Request, status

logger = logging.getLogger(__name__)

ADMIN_HEADER = "X-User-Id"
FORBIDDEN_DETAIL = "Administrator access required"


def _normalize_user_id(user_id: str | None) -> str:
    normalized = (user_id or "").strip().lower()
    if normalized.startswith("@"):
        normalized = normalized[1:]
    return normalized


def normalize_admin_users(admin_users: Iterable[str] | None) -> set[str]:
    if admin_users is None:
        return set()
    return {n for u in admin_users if (n := _normalize_user_id(u))}


def is_admin(user_id: str | None, admin_users: Iterable[str] | None) -> bool:
    allowed = normalize_admin_users(admin_users)
    if not allowed:
        return True
    return _normalize_user_id(user_id) in allowed


def require_admin(
    admin_users: Iterable[str] | None,
) -> Callable[..., Awaitable[str | None]]:
    """Build a FastAPI dependency that rejects non-admin callers with 403."""

    async def dependency(
        request: Request,
        user_id: str | None = Header(default=None, alias=ADMIN_HEADER),
    ) -> str | None:
        if is_admin(user_id, admin_users):
            return user_id

        # Record which condition failed so the 403 log shows why
        request.state.authz_failure = {
            "code": "ADMIN_REQUIRED",
            "user_id": user_id,
            "header_present": user_id is not None,
        }
        logger.warning(
            "Rejected %s %s: user %r is not an administrator",
            request.method,
            request.url.path,
            user_id,
        )
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=FORBIDDEN_DETAIL)

    return dependency
