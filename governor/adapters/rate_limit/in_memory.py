"""In-memory sliding-window rate limiter.

Notes:
- Per-process only: nothing is shared across processes or devices.
- Thread-safe: uses a lock around each action's read-modify-write.
- Pruning is lazy: an action's timestamps are trimmed only when that action
  is checked again (or on an explicit :meth:`prune`).
"""

from __future__ import annotations

import threading
import time
from collections import deque
from typing import Callable, Mapping

from governor.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from governor.core.policies import DEFAULT_POLICY_KEY, QuotaPolicy


class InMemorySlidingWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter counting accepted calls within a sliding window per action.

    A call made 9.9s ago under a 10s window still counts; a call exactly
    ``window_ms`` old no longer does.
    """

    def __init__(
        self,
        policies: Mapping[str, QuotaPolicy],
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the limiter.

        Args:
            policies: Action name to quota policy; must contain ``default``.
            clock: Time source returning UNIX time in seconds.

        Raises:
            ValueError: If the default policy is missing or a policy is invalid.
        """
        if DEFAULT_POLICY_KEY not in policies:
            raise ValueError("policies must define a 'default' entry")
        for name, policy in policies.items():
            if policy.max < 1:
                raise ValueError(f"policy '{name}': max must be >= 1")
            if policy.window_ms < 1:
                raise ValueError(f"policy '{name}': window_ms must be >= 1")

        self._policies = dict(policies)
        self._clock = clock
        self._lock = threading.RLock()
        self._timestamps: dict[str, deque[float]] = {}

    def policy_for(self, action: str) -> QuotaPolicy:
        return self._policies.get(action) or self._policies[DEFAULT_POLICY_KEY]

    def _now_ms(self) -> float:
        return self._clock() * 1000.0

    @staticmethod
    def _prune(timestamps: deque[float], now_ms: float, window_ms: int) -> None:
        # Timestamps are appended in order, so expired ones sit at the left.
        while timestamps and now_ms - timestamps[0] >= window_ms:
            timestamps.popleft()

    def check(self, action: str) -> RateLimitResult:
        """Check and consume one call of budget for ``action``.

        Raises:
            ValueError: If action is empty.
        """
        if not action:
            raise ValueError("action must be a non-empty string")

        policy = self.policy_for(action)
        now_ms = self._now_ms()

        with self._lock:
            timestamps = self._timestamps.setdefault(action, deque())
            self._prune(timestamps, now_ms, policy.window_ms)

            if len(timestamps) >= policy.max:
                retry_after_ms = max(0.0, timestamps[0] + policy.window_ms - now_ms)
                return RateLimitResult(
                    allowed=False,
                    action=action,
                    limit=policy.max,
                    remaining=0,
                    retry_after_seconds=retry_after_ms / 1000.0,
                )

            timestamps.append(now_ms)
            return RateLimitResult(
                allowed=True,
                action=action,
                limit=policy.max,
                remaining=policy.max - len(timestamps),
                retry_after_seconds=None,
            )

    def prune(self) -> int:
        """Drop expired timestamps for every action.

        Returns:
            Number of actions whose records became empty and were removed.
        """
        now_ms = self._now_ms()
        with self._lock:
            emptied = []
            for action, timestamps in self._timestamps.items():
                self._prune(timestamps, now_ms, self.policy_for(action).window_ms)
                if not timestamps:
                    emptied.append(action)
            for action in emptied:
                del self._timestamps[action]
            return len(emptied)

    def reset(self) -> None:
        with self._lock:
            self._timestamps.clear()

    def tracked_actions(self) -> int:
        with self._lock:
            return len(self._timestamps)
