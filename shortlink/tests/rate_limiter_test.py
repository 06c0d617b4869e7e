import threading
import time
from unittest.mock import Mock

import pytest

from shortlink.services.rate_limiter import RateLimiter


@pytest.fixture
def clock():
    return Mock(return_value=1000.0)


@pytest.fixture
def limiter(clock):
    return RateLimiter(window_seconds=60, cleanup_interval_seconds=300, clock=clock)


def test_allows_exactly_rate_calls_per_window(limiter):
    results = [limiter.allow("1.2.3.4", 5) for _ in range(6)]
    assert results == [True] * 5 + [False]


def test_window_reset_after_elapsed(limiter, clock):
    for _ in range(3):
        assert limiter.allow("ip", 3) is True
    assert limiter.allow("ip", 3) is False

    # still inside the window at exactly window_seconds
    clock.return_value = 1060.0
    assert limiter.allow("ip", 3) is False

    clock.return_value = 1060.5
    assert limiter.allow("ip", 3) is True
    assert limiter.allow("ip", 3) is True
    assert limiter.allow("ip", 3) is True
    assert limiter.allow("ip", 3) is False


def test_reset_happens_once_per_window(limiter, clock):
    assert limiter.allow("ip", 2) is True
    clock.return_value = 1061.0
    # new window opens at 1061; tokens are not leaked back incrementally
    assert limiter.allow("ip", 2) is True
    clock.return_value = 1100.0
    assert limiter.allow("ip", 2) is True
    assert limiter.allow("ip", 2) is False


def test_identities_are_isolated(limiter):
    assert limiter.allow("a", 1) is True
    assert limiter.allow("a", 1) is False

    assert limiter.allow("b", 1) is True
    assert limiter.allow("a", 1) is False


def test_non_positive_rate_denies(limiter):
    assert limiter.allow("ip", 0) is False
    assert limiter.allow("ip", -3) is False
    assert len(limiter) == 0


def test_retry_after_counts_down_to_window_end(limiter, clock):
    assert limiter.retry_after("unknown") == 0
    limiter.allow("ip", 1)
    clock.return_value = 1030.0
    assert limiter.retry_after("ip") == 31


def test_concurrent_calls_for_one_identity_never_exceed_rate():
    limiter = RateLimiter(window_seconds=3600)
    barrier = threading.Barrier(20)
    allowed = []
    lock = threading.Lock()

    def worker():
        barrier.wait()
        for _ in range(10):
            ok = limiter.allow("shared", 50)
            with lock:
                allowed.append(ok)

    threads = [threading.Thread(target=worker) for _ in range(20)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(allowed) == 200
    assert sum(allowed) == 50


def test_reclaim_removes_only_stale_identities(limiter, clock):
    limiter.allow("old", 5)
    clock.return_value = 1100.0
    limiter.allow("recent", 5)

    # "old" started 121s ago (> 2 windows); "recent" 21s ago
    clock.return_value = 1121.0
    assert limiter.reclaim() == 1
    assert len(limiter) == 1

    # a reclaimed identity comes back with a full allotment
    assert all(limiter.allow("old", 2) for _ in range(2))
    assert limiter.allow("old", 2) is False


def test_reclaim_keeps_windows_within_stale_horizon(limiter, clock):
    limiter.allow("ip", 5)
    clock.return_value = 1120.0
    assert limiter.reclaim() == 0


def test_background_reclaimer_runs_without_traffic(clock):
    limiter = RateLimiter(window_seconds=1, cleanup_interval_seconds=0.01, clock=clock)
    limiter.allow("ip", 1)
    clock.return_value = 1010.0
    limiter.start()
    try:
        deadline = time.monotonic() + 5
        while len(limiter) and time.monotonic() < deadline:
            time.sleep(0.01)
        assert len(limiter) == 0
    finally:
        limiter.stop()


@pytest.mark.parametrize(
    "kwargs",
    [
        {"window_seconds": 0},
        {"cleanup_interval_seconds": 0},
        {"stale_after_windows": 0},
    ],
)
def test_invalid_constructor_args(kwargs):
    with pytest.raises(ValueError):
        RateLimiter(**kwargs)
