"""Test IRC outbound flood control."""

import pytest

from jirc.adapters.irc_throttle import TokenBucket


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class TestTokenBucket:
    def test_burst_up_to_limit_without_waiting(self):
        bucket = TokenBucket(limit=3, clock=FakeClock())
        assert [bucket.reserve() for _ in range(3)] == [0.0, 0.0, 0.0]

    def test_waits_grow_once_bucket_is_empty(self):
        bucket = TokenBucket(limit=2, rate=1.0, clock=FakeClock())
        bucket.reserve()
        bucket.reserve()
        assert bucket.reserve() == pytest.approx(1.0)
        assert bucket.reserve() == pytest.approx(2.0)

    def test_refill_over_time_capped_at_limit(self):
        clock = FakeClock()
        bucket = TokenBucket(limit=2, rate=0.5, clock=clock)
        bucket.reserve()
        bucket.reserve()
        clock.now = 2.0
        assert bucket.tokens == pytest.approx(1.0)
        clock.now = 100.0
        assert bucket.tokens == pytest.approx(2.0)

    @pytest.mark.parametrize(("limit", "rate"), [(0, 1.0), (1, 0.0), (5, -1.0)])
    def test_invalid_parameters(self, limit, rate):
        with pytest.raises(ValueError):
            TokenBucket(limit=limit, rate=rate)
