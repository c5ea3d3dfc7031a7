"""Rate limiter interfaces.

The governor depends on this abstraction (not the concrete implementation)
so the per-process limiter can be swapped for another bookkeeping strategy
without touching callers.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of a single rate limit check.

    Attributes:
        allowed: Whether the call was accepted (and recorded).
        action: Action name the check was made for.
        limit: Max calls per window for the action's policy.
        remaining: Calls still available in the window after this check.
        retry_after_seconds: Seconds until the oldest counted call ages out
            when blocked; None when allowed.
    """

    allowed: bool
    action: str
    limit: int
    remaining: int
    retry_after_seconds: float | None


class AbstractRateLimiter(ABC):
    """Interface for per-action rate limiters."""

    @abstractmethod
    def check(self, action: str) -> RateLimitResult:
        """Check the quota for ``action`` and record the call when allowed.

        A blocked call is never recorded.

        Args:
            action: Action name; unknown names use the default policy.

        Returns:
            RateLimitResult describing whether the call was allowed.
        """
        raise NotImplementedError

    @abstractmethod
    def reset(self) -> None:
        """Forget every recorded call."""
        raise NotImplementedError
