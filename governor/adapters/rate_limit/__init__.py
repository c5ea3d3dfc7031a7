"""Rate limiting adapters.

This package keeps the limiter behind a small interface so the governor can
start with an in-memory sliding window and swap bookkeeping strategies later
without changing its callers.
"""

from governor.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from governor.adapters.rate_limit.in_memory import InMemorySlidingWindowRateLimiter

__all__ = [
    "AbstractRateLimiter",
    "InMemorySlidingWindowRateLimiter",
    "RateLimitResult",
]
