import pytest

from cachelayer.api.rate_limiter import FixedWindowRateLimiter
from cachelayer.exceptions import RateLimitExceededError


def test_allows_up_to_limit(clock):
    limiter = FixedWindowRateLimiter(3, 60, clock=clock)
    assert limiter.hit("1.2.3.4") == 2
    assert limiter.hit("1.2.3.4") == 1
    assert limiter.hit("1.2.3.4") == 0
    with pytest.raises(RateLimitExceededError) as exc:
        limiter.hit("1.2.3.4")
    assert exc.value.retry_after == 60

def test_clients_are_counted_separately(clock):
    limiter = FixedWindowRateLimiter(1, 60, clock=clock)
    limiter.hit("a")
    limiter.hit("b")
    with pytest.raises(RateLimitExceededError):
        limiter.hit("a")

def test_window_resets(clock):
    limiter = FixedWindowRateLimiter(1, 10, clock=clock)
    limiter.hit("a")
    clock.advance(4)
    with pytest.raises(RateLimitExceededError) as exc:
        limiter.hit("a")
    assert exc.value.retry_after == 6

    clock.advance(7)
    assert limiter.hit("a") == 0

def test_reset(clock):
    limiter = FixedWindowRateLimiter(1, 10, clock=clock)
    limiter.hit("a")
    limiter.reset()
    assert limiter.hit("a") == 0
