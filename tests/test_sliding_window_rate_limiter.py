"""Unit tests for the in-memory sliding-window rate limiter."""

from unittest.mock import Mock

import pytest

from leaf_tracker.adapters.rate_limit.in_memory import SlidingWindowRateLimiter

HOUR = 3600


def _limiter(start: float = 1000.0, **kwargs) -> tuple[SlidingWindowRateLimiter, Mock]:
    clock = Mock(return_value=start)
    return SlidingWindowRateLimiter(clock=clock, **kwargs), clock


def test_admits_exactly_limit_requests_then_denies() -> None:
    limiter, _ = _limiter()

    decisions = [limiter.check_admission("client", 5).allowed for _ in range(7)]

    assert decisions == [True] * 5 + [False, False]


def test_remaining_counts_down_to_zero_and_never_goes_negative() -> None:
    limiter, _ = _limiter()

    remaining = [limiter.check_admission("client", 3).remaining for _ in range(5)]

    assert remaining == [2, 1, 0, 0, 0]


def test_hourly_scenario_reports_time_until_oldest_request_expires() -> None:
    limiter, clock = _limiter(start=0.0)

    results = []
    for minute in (0, 1, 2):
        clock.return_value = minute * 60.0
        results.append(limiter.check_admission("client", 3))

    assert [r.allowed for r in results] == [True, True, True]
    assert [r.remaining for r in results] == [2, 1, 0]

    clock.return_value = 3 * 60.0
    denied = limiter.check_admission("client", 3)

    assert denied.allowed is False
    assert denied.remaining == 0
    assert denied.reset_seconds == 57 * 60


def test_window_slides_and_readmits_after_it_passes() -> None:
    limiter, clock = _limiter()

    assert limiter.check_admission("client", 1).allowed is True
    assert limiter.check_admission("client", 1).allowed is False

    clock.return_value = 1000.0 + HOUR + 1
    assert limiter.check_admission("client", 1).allowed is True


def test_entries_expire_one_by_one_as_the_window_slides() -> None:
    limiter, clock = _limiter(start=0.0)

    clock.return_value = 0.0
    limiter.check_admission("client", 2)
    clock.return_value = 600.0
    limiter.check_admission("client", 2)

    clock.return_value = HOUR + 1.0
    result = limiter.check_admission("client", 2)

    # The t=0 entry left the window; t=600 and the new one remain
    assert result.allowed is True
    assert result.remaining == 0
    assert limiter.timestamps("client") == [600.0, HOUR + 1.0]


def test_entry_exactly_one_window_old_is_evicted() -> None:
    limiter, clock = _limiter(start=0.0)

    assert limiter.check_admission("client", 1).allowed is True

    clock.return_value = float(HOUR)
    assert limiter.check_admission("client", 1).allowed is True


def test_denied_requests_are_not_recorded() -> None:
    limiter, clock = _limiter()

    limiter.check_admission("client", 2)
    limiter.check_admission("client", 2)
    clock.return_value = 1100.0
    limiter.check_admission("client", 2)
    limiter.check_admission("client", 2)

    assert limiter.timestamps("client") == [1000.0, 1000.0]


def test_first_request_is_always_admitted() -> None:
    limiter, _ = _limiter()

    result = limiter.check_admission("newcomer", 1)

    assert result.allowed is True
    assert result.remaining == 0
    assert result.reset_seconds == HOUR


def test_zero_limit_denies_everything_with_zero_reset() -> None:
    limiter, _ = _limiter()

    result = limiter.check_admission("client", 0)

    assert result.allowed is False
    assert result.remaining == 0
    assert result.reset_seconds == 0
    assert limiter.timestamps("client") == []


def test_clients_are_isolated() -> None:
    limiter, _ = _limiter()

    assert limiter.check_admission("a", 1).allowed is True
    assert limiter.check_admission("a", 1).allowed is False

    assert limiter.check_admission("b", 1).allowed is True


def test_limit_is_chosen_per_call() -> None:
    limiter, _ = _limiter()

    for _ in range(3):
        limiter.check_admission("client", 10)

    assert limiter.check_admission("client", 3).allowed is False
    assert limiter.check_admission("client", 10).allowed is True


def test_evict_stale_filters_one_client_only() -> None:
    limiter, clock = _limiter(start=0.0)
    limiter.check_admission("a", 5)
    limiter.check_admission("b", 5)
    clock.return_value = 100.0
    limiter.check_admission("a", 5)

    survivors = limiter.evict_stale("a", HOUR + 50.0)

    assert survivors == [100.0]
    assert limiter.timestamps("a") == [100.0]
    assert limiter.timestamps("b") == [0.0]


def test_sweep_removes_idle_clients_and_keeps_active_ones() -> None:
    limiter, clock = _limiter(start=0.0)
    limiter.check_admission("idle", 5)
    limiter.check_admission("mixed", 5)
    clock.return_value = 3000.0
    limiter.check_admission("active", 5)
    limiter.check_admission("mixed", 5)

    removed = limiter.sweep(HOUR + 10.0)

    assert removed == 1
    assert "idle" not in limiter
    assert limiter.timestamps("active") == [3000.0]
    assert limiter.timestamps("mixed") == [3000.0]
    assert len(limiter) == 2


def test_sweep_runs_only_after_the_interval() -> None:
    limiter, clock = _limiter(window_seconds=60, sweep_interval_seconds=300)
    limiter.check_admission("stale", 5)

    clock.return_value = 1000.0 + 100
    limiter.check_admission("other", 5)
    assert "stale" in limiter

    clock.return_value = 1000.0 + 301
    limiter.check_admission("other", 5)
    assert "stale" not in limiter
    assert "other" in limiter


@pytest.mark.parametrize(
    "kwargs",
    [
        {"window_seconds": 0},
        {"sweep_interval_seconds": 0},
        {"window_seconds": -1},
    ],
)
def test_invalid_constructor_args(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        SlidingWindowRateLimiter(**kwargs)


def test_invalid_check_args() -> None:
    limiter = SlidingWindowRateLimiter()

    with pytest.raises(ValueError):
        limiter.check_admission("", 1)

    with pytest.raises(ValueError):
        limiter.check_admission("client", -1)
