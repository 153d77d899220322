"""Rate limiting implementation"""

import asyncio
import time
from collections import deque
from threading import Lock
from typing import Awaitable, Callable, Deque, Optional

from ..errors import ConfigError, ThrottledError
from ..observability import get_logger

logger = get_logger(__name__)

# Floor for computed waits so a coarse clock always makes progress
_MIN_WAIT = 0.001


class SlidingWindow:
    """Log of grant timestamps within a trailing window"""

    def __init__(self, max_requests: int, window: float, clock: Callable[[], float]):
        self.max_requests = max_requests
        self.window = window
        self._clock = clock
        self._timestamps: Deque[float] = deque()
        self._penalty_until = 0.0
        self._lock = Lock()

    def _evict(self, now: float) -> None:
        """Drop timestamps outside the window (must be called with lock held)"""
        cutoff = now - self.window
        while self._timestamps and self._timestamps[0] <= cutoff:
            self._timestamps.popleft()

    def reserve(self) -> float:
        """Record a grant and return 0.0, or return seconds until one is possible"""
        with self._lock:
            now = self._clock()
            self._evict(now)

            if now < self._penalty_until:
                return max(self._penalty_until - now, _MIN_WAIT)

            if len(self._timestamps) < self.max_requests:
                self._timestamps.append(now)
                return 0.0

            return max(self._timestamps[0] + self.window - now, _MIN_WAIT)

    def wait_time(self) -> float:
        """Seconds until a grant is possible, without reserving"""
        with self._lock:
            now = self._clock()
            self._evict(now)
            if now < self._penalty_until:
                return self._penalty_until - now
            if len(self._timestamps) < self.max_requests:
                return 0.0
            return max(0.0, self._timestamps[0] + self.window - now)

    def count(self) -> int:
        with self._lock:
            self._evict(self._clock())
            return len(self._timestamps)

    def penalize(self, seconds: float) -> None:
        with self._lock:
            self._penalty_until = max(self._penalty_until, self._clock() + seconds)

    def reset(self) -> None:
        with self._lock:
            self._timestamps.clear()
            self._penalty_until = 0.0


class RateLimiter:
    """
    Sliding-window rate limiter for outbound upstream calls

    ``acquire`` waits for a free slot in arrival order. A caller whose wait
    would exceed ``max_wait`` (or the per-call ``timeout``) is rejected with
    ThrottledError instead of being left queued.
    """

    def __init__(
        self,
        max_requests: int,
        window: float = 60.0,
        *,
        name: str = "upstream",
        max_wait: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        on_event: Optional[Callable[[str], None]] = None,
    ):
        """
        Initialize rate limiter

        Args:
            max_requests: Maximum grants within any trailing window
            window: Window duration in seconds
            name: Identifier used in logs
            max_wait: Longest a caller may wait for a slot (None waits indefinitely)
            clock: Monotonic time source
            sleep: Coroutine used to wait, injectable for tests
            on_event: Called with "waited" or "rejected"
        """
        if max_requests <= 0:
            raise ConfigError(f"max_requests must be positive, got {max_requests}")
        if window <= 0:
            raise ConfigError(f"window must be positive, got {window}")
        if max_wait is not None and max_wait < 0:
            raise ConfigError(f"max_wait must not be negative, got {max_wait}")

        self.name = name
        self.max_requests = max_requests
        self.window = window
        self.max_wait = max_wait
        self._clock = clock
        self._sleep = sleep
        self._on_event = on_event
        self._window = SlidingWindow(max_requests, window, clock)
        # asyncio.Lock wakes waiters in FIFO order
        self._queue = asyncio.Lock()
        self.waits = 0
        self.rejections = 0

        logger.info(
            "Rate limiter initialized",
            extra={"extra": {
                "identifier": name,
                "max_requests": max_requests,
                "window": window,
            }},
        )

    def _emit(self, event: str) -> None:
        if self._on_event:
            self._on_event(event)

    async def acquire(self, timeout: Optional[float] = None) -> None:
        """
        Acquire a permit, waiting if necessary

        Args:
            timeout: Longest wait for this call (defaults to max_wait)

        Raises:
            ThrottledError: If no slot frees up within the allowed wait
        """
        limit = self.max_wait if timeout is None else timeout
        deadline = None if limit is None else self._clock() + limit

        async with self._queue:
            waited = False
            while True:
                wait_time = self._window.reserve()
                if wait_time <= 0:
                    if waited:
                        self._emit("waited")
                    return

                if deadline is not None and self._clock() + wait_time > deadline:
                    self.rejections += 1
                    self._emit("rejected")
                    logger.warning(
                        "Request rate limited",
                        extra={"extra": {
                            "identifier": self.name,
                            "current_requests": self._window.count(),
                            "max_requests": self.max_requests,
                            "wait_time": round(wait_time, 3),
                        }},
                    )
                    raise ThrottledError(
                        f"Rate limiter '{self.name}' has no free slot within {limit}s",
                        retry_after=wait_time,
                    )

                if not waited:
                    self.waits += 1
                    waited = True
                logger.info(
                    "Waiting for rate limit to reset",
                    extra={"extra": {"identifier": self.name, "wait_time": round(wait_time, 3)}},
                )
                await self._sleep(wait_time)

    def try_acquire(self) -> bool:
        """Take a permit only if one is free right now and nobody is queued"""
        if self._queue.locked():
            return False
        return self._window.reserve() == 0.0

    def penalize(self, seconds: float) -> None:
        """Hold back all grants for ``seconds`` (cooperative backoff after a 429)"""
        if seconds <= 0:
            return
        self._window.penalize(seconds)
        logger.warning(
            "Upstream rate limit hint applied",
            extra={"extra": {"identifier": self.name, "penalty": round(seconds, 3)}},
        )

    def time_until_next(self) -> float:
        """Seconds until the next permit could be granted"""
        return self._window.wait_time()

    def remaining(self) -> int:
        """Permits still available in the current window"""
        return max(0, self.max_requests - self._window.count())

    def reset(self) -> None:
        self._window.reset()
        logger.info("Rate limiter reset", extra={"extra": {"identifier": self.name}})
