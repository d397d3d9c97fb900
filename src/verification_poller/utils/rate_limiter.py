"""
Sliding-window rate limiter for status requests.

Caps the number of status requests sent to the verification backend across
all polling sessions, so many concurrent documents cannot flood the API.
"""

import asyncio
import logging
import time
from collections import deque

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Async sliding-window rate limiter.

    Ensures that no more than `max_requests` are sent within any `per_seconds` window.

    Example:
        >>> limiter = RateLimiter(max_requests=120, per_seconds=60)
        >>> async def get_status():
        ...     await limiter.acquire()
        ...     # Send status request
    """

    def __init__(self, max_requests: int, per_seconds: float) -> None:
        """
        Initialize rate limiter.

        Args:
            max_requests: Maximum number of requests allowed per window
            per_seconds: Window length in seconds

        Raises:
            ValueError: If max_requests is not positive
        """
        if max_requests <= 0:
            raise ValueError("max_requests must be positive")
        self.max_requests = max_requests
        self.per_seconds = per_seconds
        self._sent: deque[float] = deque()
        self._lock = asyncio.Lock()

    def _evict(self, now: float) -> None:
        while self._sent and self._sent[0] <= now - self.per_seconds:
            self._sent.popleft()

    @property
    def available(self) -> int:
        """Number of requests that could be sent right now without waiting."""
        self._evict(time.monotonic())
        return self.max_requests - len(self._sent)

    async def acquire(self) -> None:
        """
        Wait for a free slot in the current window and claim it.

        Note:
            Waiters are served in arrival order because the lock is held while sleeping.
        """
        async with self._lock:
            now = time.monotonic()
            self._evict(now)
            while len(self._sent) >= self.max_requests:
                wait_for = self._sent[0] + self.per_seconds - now
                logger.debug(f"Status request rate limit reached, waiting {wait_for:.2f}s")
                await asyncio.sleep(max(wait_for, 0.0))
                now = time.monotonic()
                self._evict(now)
            self._sent.append(now)

    def reset(self) -> None:
        """Forget all recorded requests."""
        self._sent.clear()
