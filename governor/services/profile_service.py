"""User profile and session operations routed through the request governor."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from governor.adapters.store.base import AbstractDocumentStore, DocumentNotFoundError
from governor.core.errors import NotFoundAppError
from governor.core.logging import hash_key
from governor.schemas.profile import ProfileUpdate, SignInRequest, UserProfile
from governor.services.governor import RequestGovernor, governed_key

logger = logging.getLogger(__name__)

USERS = "users"
DEFAULT_LEVEL = 2


def profile_key(uid: str) -> str:
    return governed_key("profile", uid)


class ProfileService:
    """Profile reads/updates plus the sign-in and sign-out hooks."""

    def __init__(self, store: AbstractDocumentStore, governor: RequestGovernor) -> None:
        self.store = store
        self.governor = governor

    async def get_profile(self, uid: str) -> UserProfile | None:
        async def fetch() -> UserProfile | None:
            self.governor.check_rate_limit("get_user_profile")
            doc = await self.store.get(USERS, uid)
            return UserProfile(**doc) if doc else None

        return await self.governor.deduplicated_fetch(
            profile_key(uid), fetch, cache_category="user_profile"
        )

    async def update_profile(self, uid: str, changes: ProfileUpdate) -> UserProfile:
        """Persist profile edits and drop the cached copy.

        Raises:
            RateLimitedAppError: If the update quota is exhausted.
            NotFoundAppError: If the user has no profile yet.
        """
        self.governor.check_rate_limit("update_profile")

        current = await self.store.get(USERS, uid)
        if current is None:
            raise NotFoundAppError(
                code="profile_not_found",
                message="Profile not found. Sign in first.",
                details={"user_id": uid},
            )

        fields = {
            **changes.model_dump(exclude_none=True),
            "updated_at": datetime.now(timezone.utc),
        }
        try:
            await self.store.update(USERS, uid, fields)
        except DocumentNotFoundError:
            raise NotFoundAppError(
                code="profile_not_found",
                message="Profile not found. Sign in first.",
                details={"user_id": uid},
            ) from None
        self.governor.invalidate_cache(profile_key(uid))
        return UserProfile(**{**current, **fields})

    async def sign_in(self, identity: SignInRequest) -> UserProfile:
        """Record a sign-in, creating the profile on first visit."""
        self.governor.check_rate_limit("sign_in")

        existing = await self.store.get(USERS, identity.uid)
        if existing is not None:
            return UserProfile(**existing)

        now = datetime.now(timezone.utc)
        profile = UserProfile(
            uid=identity.uid,
            email=identity.email,
            name=identity.name or "",
            photo_url=identity.photo_url or "",
            level=DEFAULT_LEVEL,
            created_at=now,
            updated_at=now,
        )
        await self.store.set(USERS, identity.uid, profile.model_dump())
        self.governor.invalidate_cache(profile_key(identity.uid))
        logger.info("profile.created", extra={"user": hash_key(identity.uid)})
        return profile

    def sign_out(self) -> None:
        """Forget every cached read and quota record of the ending session."""
        self.governor.clear_all()
