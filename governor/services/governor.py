"""Client-side request governor.

Sits between callers and a metered document store and combines:

- a sliding-window rate limiter per action name,
- a TTL cache whose expiry is chosen by a category label,
- coalescing of concurrent identical requests.

All bookkeeping is in memory and local to the process. Build independent
instances with :class:`RequestGovernor`. The HTTP layer gives every client its
own instance through :class:`GovernorRegistry` (:func:`get_governor_registry`)
and uses :func:`get_governor` for callers without an identity.
"""

from __future__ import annotations

import functools
import logging
import threading
import time
from collections import OrderedDict
from typing import Any, Callable, Mapping

from governor.adapters.rate_limit.base import AbstractRateLimiter
from governor.adapters.rate_limit.in_memory import InMemorySlidingWindowRateLimiter
from governor.core.config import GovernorSettings, settings
from governor.core.errors import RateLimitedAppError
from governor.core.logging import hash_key
from governor.core.policies import (
    DEFAULT_CACHE_TTL_MS,
    DEFAULT_POLICY_KEY,
    DEFAULT_RATE_LIMITS,
    QuotaPolicy,
)
from governor.services.dedup import InFlightRegistry, Operation
from governor.utils.ttl_cache import CategoryTTLCache

logger = logging.getLogger(__name__)


class RequestGovernor:
    """Rate limiter, TTL cache and request de-duplicator in one object.

    Args:
        rate_limits: Action name to quota policy (needs ``default``).
        cache_ttls_ms: Cache category to TTL in ms (needs ``default``).
        clock: Time source returning UNIX seconds, shared by limiter and cache.
        limiter: Optional limiter to use instead of the in-memory one.
    """

    def __init__(
        self,
        rate_limits: Mapping[str, QuotaPolicy] = DEFAULT_RATE_LIMITS,
        cache_ttls_ms: Mapping[str, int] = DEFAULT_CACHE_TTL_MS,
        *,
        clock: Callable[[], float] = time.time,
        limiter: AbstractRateLimiter | None = None,
    ) -> None:
        self._limiter = limiter or InMemorySlidingWindowRateLimiter(rate_limits, clock=clock)
        self._cache = CategoryTTLCache(cache_ttls_ms, clock=clock)
        self._in_flight = InFlightRegistry()

    @classmethod
    def from_settings(
        cls,
        governor_settings: GovernorSettings | None = None,
        *,
        clock: Callable[[], float] = time.time,
    ) -> "RequestGovernor":
        """Build a governor from configuration.

        A disabled governor keeps the same API but never throttles and never
        serves cached values; concurrent identical requests are still merged.
        """
        cfg = governor_settings or settings.governor
        if not cfg.enabled:
            logger.warning("governor.disabled")
            return cls(
                {DEFAULT_POLICY_KEY: QuotaPolicy(max=2**31 - 1, window_ms=1)},
                {DEFAULT_POLICY_KEY: 0},
                clock=clock,
            )
        return cls(cfg.resolved_rate_limits(), cfg.resolved_cache_ttls(), clock=clock)

    def check_rate_limit(self, action: str, soft_fail: bool = False) -> bool:
        """Record a call of ``action`` if its quota allows it.

        Args:
            action: Action name; unknown names use the ``default`` policy.
            soft_fail: Report exhaustion as ``False`` instead of raising.

        Returns:
            True when the call was accepted; False when soft-limited.

        Raises:
            RateLimitedAppError: When the quota is exhausted and soft_fail is off.
        """
        result = self._limiter.check(action)
        if result.allowed:
            return True

        logger.warning(
            "rate_limit.exceeded",
            extra={
                "action": action,
                "limit": result.limit,
                "soft_fail": soft_fail,
                "retry_after_s": result.retry_after_seconds,
            },
        )
        if soft_fail:
            return False
        raise RateLimitedAppError(
            details={
                "action": action,
                "retry_after": round(result.retry_after_seconds or 0.0, 3),
            }
        )

    def get_cached(self, key: str) -> Any:
        """Return the cached value for ``key`` or None when absent/expired."""
        return self._cache.get(key)

    def set_cache(self, key: str, value: Any, category: str = DEFAULT_POLICY_KEY) -> None:
        """Cache ``value`` under ``key`` with the TTL of ``category``."""
        self._cache.set(key, value, category)

    def invalidate_cache(self, key_or_prefix: str) -> int:
        """Drop ``key_or_prefix`` and every ``key_or_prefix:*`` entry.

        Matching in-flight reads are detached too: they still answer their
        current waiters but no longer populate the cache, and later callers
        start a fresh read.

        Returns:
            Number of cache entries removed.
        """
        removed = self._cache.invalidate(key_or_prefix)
        self._in_flight.invalidate(key_or_prefix)
        return removed

    async def deduplicated_fetch(
        self,
        key: str,
        operation: Operation,
        *,
        cache_category: str | None = None,
    ) -> Any:
        """Serve ``key`` from cache, from an in-flight request, or run ``operation``.

        ``operation`` is invoked only when there is neither a valid cache entry
        nor a pending request for ``key``. When ``cache_category`` is given the
        result is cached once, by the shared operation, before its waiters
        resume; otherwise caching is left to ``operation``.

        Errors raised by ``operation`` reach every waiter unchanged and are
        never cached.
        """
        found, value = self._cache.lookup(key)
        if found:
            return value

        on_success = None
        if cache_category is not None:
            on_success = functools.partial(self._cache.set, key, category=cache_category)

        return await self._in_flight.run(key, operation, on_success=on_success)

    def is_in_flight(self, key: str) -> bool:
        return key in self._in_flight

    def clear_all(self) -> None:
        """Empty the cache, the quota records and the in-flight table.

        Called on sign-out so one user's reads never leak into the next
        session. Operations already running finish for their current waiters
        but no longer populate the cache.
        """
        self._cache.clear()
        self._limiter.reset()
        self._in_flight.clear()
        logger.info("governor.cleared")

    def sweep(self) -> dict[str, int]:
        """Optionally purge expired cache entries and stale quota records."""
        purged = self._cache.purge_expired()
        emptied = 0
        if isinstance(self._limiter, InMemorySlidingWindowRateLimiter):
            emptied = self._limiter.prune()
        return {"cache_purged": purged, "actions_pruned": emptied}

    def stats(self) -> dict[str, Any]:
        limiter_stats: dict[str, int] = {}
        if isinstance(self._limiter, InMemorySlidingWindowRateLimiter):
            limiter_stats["tracked_actions"] = self._limiter.tracked_actions()
        return {
            "cache": self._cache.stats(),
            "dedup": self._in_flight.stats(),
            "rate_limit": limiter_stats,
        }


class GovernorRegistry:
    """One governor per client, the way each browser session owns its own.

    Quotas, cached reads and in-flight requests are never shared between
    clients. The least recently used client is dropped once ``max_clients``
    governors exist; it starts from empty bookkeeping on its next request.

    Args:
        factory: Builds the governor for a client seen for the first time.
        max_clients: Upper bound on retained governors.
    """

    def __init__(
        self,
        factory: Callable[[], RequestGovernor] = RequestGovernor.from_settings,
        *,
        max_clients: int = 10_000,
    ) -> None:
        if max_clients < 1:
            raise ValueError("max_clients must be >= 1")
        self._factory = factory
        self._max_clients = max_clients
        self._lock = threading.Lock()
        self._governors: OrderedDict[str, RequestGovernor] = OrderedDict()
        self._evictions = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._governors)

    def __contains__(self, client_id: str) -> bool:
        with self._lock:
            return client_id in self._governors

    def get(self, client_id: str) -> RequestGovernor:
        """Return ``client_id``'s governor, creating it on first use."""
        with self._lock:
            governor = self._governors.get(client_id)
            if governor is None:
                governor = self._factory()
                self._governors[client_id] = governor
                logger.debug("governor.created", extra={"client": hash_key(client_id)})
            self._governors.move_to_end(client_id)  # mark as recently used

            while len(self._governors) > self._max_clients:
                evicted, _ = self._governors.popitem(last=False)
                self._evictions += 1
                logger.debug("governor.evicted", extra={"client": hash_key(evicted)})
            return governor

    def discard(self, client_id: str) -> bool:
        """Forget ``client_id``'s governor. Returns whether one existed."""
        with self._lock:
            return self._governors.pop(client_id, None) is not None

    def stats(self) -> dict[str, int]:
        with self._lock:
            return {
                "clients": len(self._governors),
                "max_clients": self._max_clients,
                "evictions": self._evictions,
            }


_governor: RequestGovernor | None = None
_registry: GovernorRegistry | None = None


def get_governor() -> RequestGovernor:
    """Return the process-wide governor, creating it on first use.

    The HTTP layer uses it for callers without an identity.
    """

    global _governor
    if _governor is None:
        _governor = RequestGovernor.from_settings()
    return _governor


def get_governor_registry() -> GovernorRegistry:
    """Return the process-wide per-client registry, creating it on first use."""

    global _registry
    if _registry is None:
        _registry = GovernorRegistry(max_clients=settings.governor.max_clients)
    return _registry


def reset_governor() -> None:
    """Drop the process-wide governor and registry so the next call rebuilds them."""

    global _governor, _registry
    _governor = None
    _registry = None


def governed_key(*parts: str) -> str:
    """Join key parts with ':' so prefix invalidation can target families."""
    return ":".join(parts)

