import pytest

from chat_api.core.exceptions import RateLimitError
from chat_api.core.rate_limit import RateLimiter


class FakeClock:

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def clock():
    return FakeClock()


def test_allows_up_to_limit_then_rejects(clock):
    limiter = RateLimiter(max_requests=3, window_seconds=60, clock=clock)
    assert [limiter.hit("u1") for _ in range(3)] == [2, 1, 0]

    with pytest.raises(RateLimitError) as exc_info:
        limiter.hit("u1")
    assert exc_info.value.status_code == 429
    assert exc_info.value.retry_after == 60


def test_retry_after_counts_down(clock):
    limiter = RateLimiter(max_requests=1, window_seconds=60, clock=clock)
    limiter.hit("u1")
    clock.advance(45.5)
    with pytest.raises(RateLimitError) as exc_info:
        limiter.hit("u1")
    assert exc_info.value.retry_after == 15


def test_window_resets_after_deadline(clock):
    limiter = RateLimiter(max_requests=1, window_seconds=60, clock=clock)
    limiter.hit("u1")
    clock.advance(60)
    assert limiter.hit("u1") == 0


def test_identities_are_independent(clock):
    limiter = RateLimiter(max_requests=1, window_seconds=60, clock=clock)
    limiter.hit("u1")
    assert limiter.hit("u2") == 0
    with pytest.raises(RateLimitError):
        limiter.hit("u1")


def test_reset_forgets_identity(clock):
    limiter = RateLimiter(max_requests=1, window_seconds=60, clock=clock)
    limiter.hit("u1")
    limiter.reset("u1")
    assert limiter.hit("u1") == 0


def test_map_is_bounded_and_sweeps_expired(clock):
    limiter = RateLimiter(max_requests=5, window_seconds=10, max_entries=3, clock=clock)
    limiter.hit("a")
    limiter.hit("b")
    clock.advance(11)
    limiter.hit("c")
    limiter.hit("d")
    # a and b had expired and were swept to make room for d
    assert len(limiter) == 2


def test_lru_eviction_when_nothing_expired(clock):
    limiter = RateLimiter(max_requests=1, window_seconds=60, max_entries=2, clock=clock)
    limiter.hit("a")
    limiter.hit("b")
    limiter.hit("c")
    assert len(limiter) == 2
    # "a" was least recently used, so it starts a fresh window
    assert limiter.hit("a") == 0
    with pytest.raises(RateLimitError):
        limiter.hit("c")


def test_invalid_configuration():
    with pytest.raises(ValueError):
        RateLimiter(max_requests=0, window_seconds=60)
    with pytest.raises(ValueError):
        RateLimiter(max_requests=1, window_seconds=0)
