"""
Unit tests for the status request rate limiter.
"""

import asyncio
import time

import pytest

from verification_poller.utils.rate_limiter import RateLimiter


class TestRateLimiter:
    """Test RateLimiter class."""

    @pytest.mark.asyncio
    async def test_requests_within_limit_pass_immediately(self) -> None:
        limiter = RateLimiter(max_requests=4, per_seconds=0.3)

        start = time.monotonic()
        for _ in range(4):
            await limiter.acquire()

        assert time.monotonic() - start < 0.05
        assert limiter.available == 0

    @pytest.mark.asyncio
    async def test_request_over_limit_waits_for_window(self) -> None:
        limiter = RateLimiter(max_requests=2, per_seconds=0.3)

        start = time.monotonic()
        for _ in range(3):
            await limiter.acquire()
        elapsed = time.monotonic() - start

        assert 0.3 <= elapsed < 0.6

    @pytest.mark.asyncio
    async def test_concurrent_status_requests_share_window(self) -> None:
        """Concurrent sessions are served in order, the overflow after the window."""
        limiter = RateLimiter(max_requests=2, per_seconds=0.3)
        start = time.monotonic()

        async def request() -> float:
            await limiter.acquire()
            return time.monotonic() - start

        offsets = await asyncio.gather(*(request() for _ in range(4)))

        assert max(offsets[:2]) < 0.05
        assert min(offsets[2:]) >= 0.3

    @pytest.mark.asyncio
    async def test_available_recovers_after_window(self) -> None:
        limiter = RateLimiter(max_requests=1, per_seconds=0.1)
        await limiter.acquire()
        assert limiter.available == 0

        await asyncio.sleep(0.12)

        assert limiter.available == 1

    @pytest.mark.asyncio
    async def test_reset(self) -> None:
        limiter = RateLimiter(max_requests=1, per_seconds=5.0)
        await limiter.acquire()

        limiter.reset()

        start = time.monotonic()
        await limiter.acquire()
        assert time.monotonic() - start < 0.05

    def test_rejects_non_positive_limit(self) -> None:
        with pytest.raises(ValueError):
            RateLimiter(max_requests=0, per_seconds=1.0)
