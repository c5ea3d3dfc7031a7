"""Caller identity for user-scoped routes.

Authentication itself happens at the hosted identity provider; by the time a
request reaches this service the provider-issued user id travels in the
``X-User-Id`` header (name configurable via ``APP_USER_ID_HEADER``).
"""

from __future__ import annotations

import logging

from fastapi import Request

from governor.core.config import settings
from governor.core.errors import AuthenticationAppError
from governor.core.logging import hash_key

logger = logging.getLogger(__name__)

ANONYMOUS_USER_ID = "anonymous"


def resolve_user_id(raw: str | None) -> str:
    """Validate and normalize a user id header value.

    Raises:
        AuthenticationAppError: If the id is missing while auth is required.
    """
    user_id = (raw or "").strip()
    if user_id:
        return user_id

    if not settings.app.auth_required:
        return ANONYMOUS_USER_ID

    logger.warning("auth.missing_user_id", extra={"auth_required": True})
    raise AuthenticationAppError(
        code="missing_user_id",
        message=f"Sign in first. Provide the {settings.app.user_id_header} header.",
    )


async def current_user_id(request: Request) -> str:
    """FastAPI dependency returning the signed-in user's id.

    Usage:
        @router.post("/games")
        async def create(user_id: str = Depends(current_user_id)): ...
    """
    user_id = resolve_user_id(request.headers.get(settings.app.user_id_header))
    logger.debug("auth.identified", extra={"user": hash_key(user_id)})
    return user_id


async def caller_id(request: Request) -> str:
    """FastAPI dependency naming whose governor serves the request.

    Never rejects: callers without the identity header share the
    anonymous governor.
    """
    raw = (request.headers.get(settings.app.user_id_header) or "").strip()
    return raw or ANONYMOUS_USER_ID
