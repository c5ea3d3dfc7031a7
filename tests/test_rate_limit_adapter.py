"""Unit tests for the in-memory sliding-window rate limiter."""

from unittest.mock import Mock

import pytest

from governor.adapters.rate_limit.in_memory import InMemorySlidingWindowRateLimiter
from governor.core.policies import DEFAULT_RATE_LIMITS, QuotaPolicy


def _limiter(clock, **policies: QuotaPolicy) -> InMemorySlidingWindowRateLimiter:
    table = {"default": QuotaPolicy(max=10, window_ms=10_000), **policies}
    return InMemorySlidingWindowRateLimiter(table, clock=clock)


def test_allows_up_to_limit_in_same_window() -> None:
    clock = Mock(return_value=1000.0)
    limiter = _limiter(clock, x=QuotaPolicy(max=3, window_ms=60_000))

    assert limiter.check("x").allowed is True
    assert limiter.check("x").allowed is True
    result = limiter.check("x")
    assert result.allowed is True
    assert result.remaining == 0


def test_blocks_when_over_limit_without_recording() -> None:
    clock = Mock(return_value=1000.0)
    limiter = _limiter(clock, x=QuotaPolicy(max=2, window_ms=60_000))

    limiter.check("x")
    limiter.check("x")

    blocked = limiter.check("x")
    assert blocked.allowed is False
    assert blocked.remaining == 0
    assert blocked.retry_after_seconds == pytest.approx(60.0)

    # Rejected attempts do not extend the window.
    clock.return_value = 1060.0
    assert limiter.check("x").allowed is True


def test_window_slides_instead_of_resetting() -> None:
    clock = Mock(return_value=1000.0)
    limiter = _limiter(clock, x=QuotaPolicy(max=2, window_ms=10_000))

    assert limiter.check("x").allowed is True  # t=0s
    clock.return_value = 1005.0
    assert limiter.check("x").allowed is True  # t=5s
    clock.return_value = 1009.9
    assert limiter.check("x").allowed is False  # first call still counts

    clock.return_value = 1010.0
    # Only the t=0s call aged out, so exactly one slot opens.
    assert limiter.check("x").allowed is True
    assert limiter.check("x").allowed is False


def test_unknown_action_uses_default_policy() -> None:
    clock = Mock(return_value=1000.0)
    limiter = _limiter(clock)

    results = [limiter.check("something_new").allowed for _ in range(11)]

    assert results == [True] * 10 + [False]
    assert limiter.policy_for("something_new") == limiter.policy_for("default")


def test_isolated_by_action() -> None:
    clock = Mock(return_value=1000.0)
    limiter = _limiter(clock, a=QuotaPolicy(max=1, window_ms=60_000))

    assert limiter.check("a").allowed is True
    assert limiter.check("a").allowed is False
    assert limiter.check("b").allowed is True


def test_prune_drops_stale_records() -> None:
    clock = Mock(return_value=1000.0)
    limiter = _limiter(clock, a=QuotaPolicy(max=1, window_ms=1_000))
    limiter.check("a")
    limiter.check("b")

    clock.return_value = 1002.0
    assert limiter.prune() == 1  # "b" uses the 10s default window
    assert limiter.tracked_actions() == 1


def test_reset_forgets_everything() -> None:
    clock = Mock(return_value=1000.0)
    limiter = _limiter(clock, a=QuotaPolicy(max=1, window_ms=60_000))
    limiter.check("a")

    limiter.reset()

    assert limiter.check("a").allowed is True


def test_built_in_table_values() -> None:
    assert DEFAULT_RATE_LIMITS["get_all_games"] == QuotaPolicy(max=3, window_ms=10_000)
    assert DEFAULT_RATE_LIMITS["get_organizer_pending_requests"] == QuotaPolicy(
        max=3, window_ms=30_000
    )
    assert DEFAULT_RATE_LIMITS["sign_in"] == QuotaPolicy(max=3, window_ms=60_000)
    assert DEFAULT_RATE_LIMITS["default"] == QuotaPolicy(max=10, window_ms=10_000)
    assert len(DEFAULT_RATE_LIMITS) == 15


def test_requires_default_policy() -> None:
    with pytest.raises(ValueError):
        InMemorySlidingWindowRateLimiter({"x": QuotaPolicy(max=1, window_ms=1)})


def test_invalid_check_args() -> None:
    limiter = _limiter(Mock(return_value=1000.0))

    with pytest.raises(ValueError):
        limiter.check("")
