"""In-memory cache with per-category TTLs.

Entries expire lazily: a stale entry is removed the next time its key is
read. There is no size bound; :meth:`CategoryTTLCache.purge_expired` can be
called as an optional sweep.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from governor.core.logging import hash_key
from governor.core.policies import DEFAULT_POLICY_KEY

logger = logging.getLogger(__name__)


@dataclass
class CacheItem:
    """Container for cached values with expiration metadata."""

    value: Any
    expires_at: float
    category: str


class CategoryTTLCache:
    """Thread-safe in-memory cache whose TTL is chosen by a category label.

    Attributes:
        ttls_ms: Category to TTL in milliseconds; must contain ``default``.
    """

    def __init__(
        self,
        ttls_ms: Mapping[str, int],
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if DEFAULT_POLICY_KEY not in ttls_ms:
            raise ValueError("ttls_ms must define a 'default' entry")
        self._ttls_ms = dict(ttls_ms)
        self._clock = clock
        self._store: dict[str, CacheItem] = {}
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"CategoryTTLCache(size={len(self._store)}, hits={self._hits}, "
            f"misses={self._misses}, evictions={self._evictions})"
        )

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def ttl_for(self, category: str) -> int:
        """TTL in milliseconds for ``category`` (default when unknown)."""
        ttl = self._ttls_ms.get(category)
        return self._ttls_ms[DEFAULT_POLICY_KEY] if ttl is None else ttl

    def lookup(self, key: str) -> tuple[bool, Any]:
        """Return ``(found, value)`` so a cached ``None`` is not a miss."""

        with self._lock:
            item = self._store.get(key)
            if item is None:
                self._misses += 1
                logger.debug(
                    "cache.miss",
                    extra={"cache_key": hash_key(key), "reason": "not_found"},
                )
                return False, None

            if self._clock() >= item.expires_at:
                del self._store[key]
                self._evictions += 1
                self._misses += 1
                logger.debug(
                    "cache.miss",
                    extra={"cache_key": hash_key(key), "reason": "expired"},
                )
                return False, None

            self._hits += 1
            logger.debug(
                "cache.hit",
                extra={"cache_key": hash_key(key), "category": item.category},
            )
            return True, item.value

    def get(self, key: str, default: Any = None) -> Any:
        """Return the cached value if present and unexpired, else ``default``."""

        found, value = self.lookup(key)
        return value if found else default

    def set(self, key: str, value: Any, category: str = DEFAULT_POLICY_KEY) -> None:
        """Store ``value`` under ``key``, replacing any existing entry."""

        ttl_ms = self.ttl_for(category)
        with self._lock:
            self._store[key] = CacheItem(
                value=value,
                expires_at=self._clock() + ttl_ms / 1000.0,
                category=category,
            )
            logger.debug(
                "cache.set",
                extra={
                    "cache_key": hash_key(key),
                    "category": category,
                    "ttl_ms": ttl_ms,
                    "size": len(self._store),
                },
            )

    def invalidate(self, key_or_prefix: str) -> int:
        """Remove ``key_or_prefix`` and every key namespaced under it.

        ``invalidate("game:1")`` removes ``game:1``, ``game:1:players`` and
        ``game:1:comments`` but leaves ``game:10`` and ``game:2:players``.

        Returns:
            Number of entries removed.
        """

        namespace = key_or_prefix + ":"
        with self._lock:
            doomed = [
                k for k in self._store if k == key_or_prefix or k.startswith(namespace)
            ]
            for k in doomed:
                del self._store[k]

        if doomed:
            logger.debug(
                "cache.invalidate",
                extra={"cache_key": hash_key(key_or_prefix), "removed": len(doomed)},
            )
        return len(doomed)

    def purge_expired(self) -> int:
        """Drop every expired entry. Returns how many were removed."""

        with self._lock:
            now = self._clock()
            expired = [k for k, item in self._store.items() if now >= item.expires_at]
            for k in expired:
                del self._store[k]
            self._evictions += len(expired)
            return len(expired)

    def clear(self) -> None:
        """Remove all cached entries and reset counters."""

        with self._lock:
            self._store.clear()
            self._hits = 0
            self._misses = 0
            self._evictions = 0

    def stats(self) -> dict[str, int]:
        """Return lightweight cache metrics without exposing values."""

        with self._lock:
            return {
                "entries": len(self._store),
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
            }
