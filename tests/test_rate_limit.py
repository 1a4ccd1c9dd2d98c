from __future__ import annotations

from foodrescue.rate_limit import RateLimiter


class Clock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_allows_up_to_limit_then_rejects() -> None:
    limiter = RateLimiter(limit=10, window_seconds=60, clock=Clock())

    results = [limiter.allow("1.2.3.4") for _ in range(12)]

    assert results == [True] * 10 + [False, False]


def test_window_expiry_resets_count() -> None:
    clock = Clock()
    limiter = RateLimiter(limit=2, window_seconds=60, clock=clock)
    assert [limiter.allow("a") for _ in range(3)] == [True, True, False]

    clock.now += 59
    assert limiter.allow("a") is False

    clock.now += 1
    assert limiter.allow("a") is True
    assert limiter.allow("a") is True
    assert limiter.allow("a") is False


def test_keys_are_independent() -> None:
    limiter = RateLimiter(limit=1, window_seconds=60, clock=Clock())

    assert limiter.allow("a") is True
    assert limiter.allow("a") is False
    assert limiter.allow("b") is True


def test_instances_do_not_share_state() -> None:
    first = RateLimiter(limit=1, clock=Clock())
    second = RateLimiter(limit=1, clock=Clock())

    assert first.allow("a") is True
    assert first.allow("a") is False
    assert second.allow("a") is True


def test_reset_clears_all_windows() -> None:
    limiter = RateLimiter(limit=1, clock=Clock())
    limiter.allow("a")
    limiter.reset()
    assert limiter.allow("a") is True
