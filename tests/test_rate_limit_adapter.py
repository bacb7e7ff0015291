"""Unit tests for the fixed-window rate limiter adapter."""

from unittest.mock import Mock

import pytest

from gateway.adapters.rate_limit import FixedWindowRateLimiter


def test_allows_up_to_limit_in_same_window() -> None:
    clock = Mock(return_value=1000.0)
    limiter = FixedWindowRateLimiter(limit=3, window_seconds=60, clock=clock)

    assert limiter.consume("k").allowed is True
    assert limiter.consume("k").allowed is True
    result = limiter.consume("k")
    assert result.allowed is True
    assert result.remaining == 0
    assert result.retry_after_seconds is None
    assert result.reset_after_seconds == 20


def test_blocks_when_over_limit() -> None:
    clock = Mock(return_value=1000.0)
    limiter = FixedWindowRateLimiter(limit=2, window_seconds=60, clock=clock)

    assert limiter.consume("k").allowed is True
    assert limiter.consume("k").allowed is True

    blocked = limiter.consume("k")
    assert blocked.allowed is False
    assert blocked.remaining == 0
    # Window [960, 1020) ends 20s after "now"
    assert blocked.reset_at == 1020
    assert blocked.retry_after_seconds == 20
    assert blocked.reset_after_seconds == 20


def test_rejections_do_not_consume_budget() -> None:
    clock = Mock(return_value=1000.0)
    limiter = FixedWindowRateLimiter(limit=1, window_seconds=60, clock=clock)

    limiter.consume("k")
    for _ in range(5):
        assert limiter.consume("k").allowed is False

    clock.return_value = 1020.0
    assert limiter.consume("k").allowed is True


def test_resets_on_new_window() -> None:
    clock = Mock(return_value=1000.0)
    limiter = FixedWindowRateLimiter(limit=1, window_seconds=10, clock=clock)

    assert limiter.consume("k").allowed is True
    assert limiter.consume("k").allowed is False

    clock.return_value = 1010.0
    assert limiter.consume("k").allowed is True


def test_windows_are_fixed_not_sliding() -> None:
    clock = Mock(return_value=1009.0)
    limiter = FixedWindowRateLimiter(limit=1, window_seconds=10, clock=clock)

    assert limiter.consume("k").allowed is True

    # One second later is already the next window
    clock.return_value = 1010.0
    assert limiter.consume("k").allowed is True


def test_isolated_by_key() -> None:
    clock = Mock(return_value=1000.0)
    limiter = FixedWindowRateLimiter(limit=1, window_seconds=60, clock=clock)

    assert limiter.consume("k1").allowed is True
    assert limiter.consume("k1").allowed is False

    assert limiter.consume("k2").allowed is True


def test_reset_forgets_key() -> None:
    clock = Mock(return_value=1000.0)
    limiter = FixedWindowRateLimiter(limit=1, window_seconds=60, clock=clock)

    limiter.consume("k")
    limiter.reset("k")

    assert limiter.consume("k").allowed is True


def test_sweep_drops_only_past_windows() -> None:
    clock = Mock(return_value=1000.0)
    limiter = FixedWindowRateLimiter(limit=5, window_seconds=60, clock=clock)

    limiter.consume("old")
    clock.return_value = 1030.0
    limiter.consume("current")

    assert limiter.sweep() == 1
    assert limiter.tracked_keys() == 1


@pytest.mark.parametrize(
    "kwargs",
    [
        {"limit": 0, "window_seconds": 60},
        {"limit": 1, "window_seconds": 0},
    ],
)
def test_invalid_constructor_args(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        FixedWindowRateLimiter(**kwargs)


def test_invalid_consume_args() -> None:
    limiter = FixedWindowRateLimiter(limit=1, window_seconds=60)

    with pytest.raises(ValueError):
        limiter.consume("")

    with pytest.raises(ValueError):
        limiter.consume("k", cost=0)
