"""Tests for the sliding-window rate limiter"""

import asyncio

import pytest

from ordinals_data.errors import ConfigError, ThrottledError
from ordinals_data.resilience import RateLimiter


def _limiter(clock, max_requests=2, window=10.0, **kwargs) -> RateLimiter:
    return RateLimiter(
        max_requests,
        window,
        name="test",
        clock=clock,
        sleep=clock.sleep,
        **kwargs,
    )


class TestRateLimiter:
    """Test rate limiter"""

    @pytest.mark.asyncio
    async def test_grants_within_limit(self, clock):
        limiter = _limiter(clock, max_requests=3)

        for _ in range(3):
            await limiter.acquire()

        assert clock.sleeps == []
        assert limiter.remaining() == 0

    @pytest.mark.asyncio
    async def test_waits_for_window_to_slide(self, clock):
        """Test a caller over the limit waits until the oldest grant ages out"""
        events = []
        limiter = _limiter(clock, max_requests=2, window=10.0, on_event=events.append)

        await limiter.acquire()
        clock.advance(4.0)
        await limiter.acquire()
        await limiter.acquire()

        assert clock.sleeps == [6.0]
        assert limiter.waits == 1
        assert events == ["waited"]

    @pytest.mark.asyncio
    async def test_rejects_beyond_max_wait(self, clock):
        events = []
        limiter = _limiter(clock, max_requests=1, window=60.0, max_wait=5.0, on_event=events.append)

        await limiter.acquire()
        with pytest.raises(ThrottledError) as exc_info:
            await limiter.acquire()

        assert exc_info.value.retry_after == 60.0
        assert limiter.rejections == 1
        assert events == ["rejected"]
        assert clock.sleeps == []

    @pytest.mark.asyncio
    async def test_per_call_timeout_overrides_max_wait(self, clock):
        limiter = _limiter(clock, max_requests=1, window=10.0)

        await limiter.acquire()
        with pytest.raises(ThrottledError):
            await limiter.acquire(timeout=1.0)
        await limiter.acquire(timeout=10.0)

        assert clock.sleeps == [10.0]

    @pytest.mark.asyncio
    async def test_fifo_order(self, clock):
        """Test waiters are granted in arrival order"""
        limiter = _limiter(clock, max_requests=1, window=10.0)
        order = []

        async def worker(name):
            await limiter.acquire()
            order.append((name, clock()))

        await asyncio.gather(worker("a"), worker("b"), worker("c"))

        assert order == [("a", 1000.0), ("b", 1010.0), ("c", 1020.0)]

    @pytest.mark.asyncio
    async def test_never_exceeds_limit_in_any_window(self, clock):
        limiter = _limiter(clock, max_requests=3, window=10.0)
        grants = []

        for _ in range(10):
            await limiter.acquire()
            grants.append(clock())
            clock.advance(1.0)

        for i, start in enumerate(grants):
            in_window = [t for t in grants[i:] if t < start + 10.0]
            assert len(in_window) <= 3

    @pytest.mark.asyncio
    async def test_penalize_holds_back_grants(self, clock):
        """Test an upstream rate limit hint delays the next grant"""
        limiter = _limiter(clock, max_requests=5)
        limiter.penalize(5.0)

        assert limiter.time_until_next() == 5.0
        await limiter.acquire()
        assert clock.sleeps == [5.0]

    def test_try_acquire(self, clock):
        limiter = _limiter(clock, max_requests=1)

        assert limiter.try_acquire() is True
        assert limiter.try_acquire() is False

        limiter.reset()
        assert limiter.try_acquire() is True

    def test_invalid_configuration(self, clock):
        with pytest.raises(ConfigError):
            _limiter(clock, max_requests=0)
        with pytest.raises(ConfigError):
            _limiter(clock, window=0)
        with pytest.raises(ConfigError):
            _limiter(clock, max_wait=-1)
