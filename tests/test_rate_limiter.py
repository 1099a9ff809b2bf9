from __future__ import annotations

from compass_gps.utils.rate_limiter import RateLimiter


class _Clock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_call_over_cap_is_rejected_within_window() -> None:
    clock = _Clock()
    limiter = RateLimiter(max_requests=30, window=60, clock=clock)

    results = [limiter.is_rate_limited() for _ in range(30)]
    assert results == [False] * 30

    clock.now += 10
    assert limiter.is_rate_limited() is True
    assert limiter.count == 31


def test_window_elapse_resets_counter_to_one() -> None:
    clock = _Clock()
    limiter = RateLimiter(max_requests=30, window=60, clock=clock)
    for _ in range(31):
        limiter.is_rate_limited()

    clock.now += 61
    assert limiter.is_rate_limited() is False
    assert limiter.count == 1


def test_window_boundary_is_inclusive() -> None:
    clock = _Clock()
    limiter = RateLimiter(max_requests=1, window=60, clock=clock)
    assert limiter.is_rate_limited() is False

    # exactly one window later the window has not yet expired
    clock.now += 60
    assert limiter.is_rate_limited() is True


def test_seconds_until_reset() -> None:
    clock = _Clock()
    limiter = RateLimiter(max_requests=1, window=60, clock=clock)
    limiter.is_rate_limited()
    clock.now += 15.5
    assert limiter.seconds_until_reset() == 45

    clock.now += 100
    assert limiter.seconds_until_reset() == 0


def test_limiters_do_not_share_state() -> None:
    clock = _Clock()
    first = RateLimiter(max_requests=1, window=60, clock=clock)
    second = RateLimiter(max_requests=1, window=60, clock=clock)

    first.is_rate_limited()
    assert first.is_rate_limited() is True
    assert second.is_rate_limited() is False
