"""Rate limit and cache TTL policy tables.

These tables are the governor's configuration surface. They are plain data so
they can be edited (or overridden through settings) without touching the
limiter, cache or deduplication logic.

Action names and cache categories are separate namespaces: an action names a
kind of remote operation ("get_all_games"), a category names a kind of cached
result ("all_games").
"""

from __future__ import annotations

from typing import Mapping

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_POLICY_KEY = "default"


class QuotaPolicy(BaseModel):
    """Sliding-window quota for one action.

    Attributes:
        max: Maximum accepted calls within the window.
        window_ms: Window size in milliseconds.
    """

    model_config = ConfigDict(frozen=True)

    max: int = Field(..., gt=0, description="Maximum calls allowed per window")
    window_ms: int = Field(..., gt=0, description="Sliding window size in milliseconds")


DEFAULT_RATE_LIMITS: dict[str, QuotaPolicy] = {
    "get_all_games": QuotaPolicy(max=3, window_ms=10_000),
    "get_game_by_id": QuotaPolicy(max=10, window_ms=10_000),
    "get_user_profile": QuotaPolicy(max=20, window_ms=10_000),
    "get_organizer_pending_requests": QuotaPolicy(max=3, window_ms=30_000),
    "create_game": QuotaPolicy(max=2, window_ms=60_000),
    "delete_game": QuotaPolicy(max=2, window_ms=60_000),
    "request_to_join": QuotaPolicy(max=3, window_ms=30_000),
    "approve_request": QuotaPolicy(max=5, window_ms=10_000),
    "reject_request": QuotaPolicy(max=5, window_ms=10_000),
    "leave_game": QuotaPolicy(max=3, window_ms=30_000),
    "add_comment": QuotaPolicy(max=5, window_ms=30_000),
    "delete_comment": QuotaPolicy(max=5, window_ms=30_000),
    "update_profile": QuotaPolicy(max=3, window_ms=30_000),
    "sign_in": QuotaPolicy(max=3, window_ms=60_000),
    DEFAULT_POLICY_KEY: QuotaPolicy(max=10, window_ms=10_000),
}

DEFAULT_CACHE_TTL_MS: dict[str, int] = {
    "user_profile": 60_000,
    "all_games": 15_000,
    "game_by_id": 10_000,
    "pending_requests": 20_000,
    DEFAULT_POLICY_KEY: 10_000,
}


def merge_rate_limits(
    overrides: Mapping[str, QuotaPolicy] | None,
    base: Mapping[str, QuotaPolicy] = DEFAULT_RATE_LIMITS,
) -> dict[str, QuotaPolicy]:
    """Return a new policy table with ``overrides`` applied over ``base``."""

    merged = dict(base)
    merged.update(overrides or {})
    return merged


def merge_cache_ttls(
    overrides: Mapping[str, int] | None,
    base: Mapping[str, int] = DEFAULT_CACHE_TTL_MS,
) -> dict[str, int]:
    """Return a new TTL table with ``overrides`` applied over ``base``.

    Raises:
        ValueError: If any TTL is negative.
    """

    merged = dict(base)
    merged.update(overrides or {})
    negative = sorted(name for name, ttl in merged.items() if ttl < 0)
    if negative:
        raise ValueError(f"cache TTLs must be >= 0: {', '.join(negative)}")
    return merged
