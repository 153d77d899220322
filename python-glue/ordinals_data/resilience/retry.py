"""Retry decorators and policies"""

import asyncio
import functools
import random
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, TypeVar

from ..errors import ConfigError, DataClientError, classify_error
from ..observability import get_logger

T = TypeVar("T")

logger = get_logger(__name__)


@dataclass(frozen=True)
class RetryDecision:
    """Outcome of consulting the retry policy after a failed attempt"""
    retry: bool
    delay: float = 0.0


@dataclass
class RetryState:
    """Per-call retry bookkeeping, discarded when the call ends"""
    attempt: int = 0
    last_error: Optional[DataClientError] = None
    next_delay: float = 0.0


@dataclass
class RetryPolicy:
    """
    Exponential backoff with jitter

    The n-th failed attempt waits ``min(base_delay * 2 ** (n - 1), max_delay)``
    plus a uniform jitter in ``[0, delay * jitter_factor]``. Pass a seeded
    ``random.Random`` as ``rng`` for reproducible delays.
    """
    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    jitter_factor: float = 0.1
    rng: random.Random = field(default_factory=random.Random, repr=False, compare=False)

    def __post_init__(self):
        if self.max_attempts <= 0:
            raise ConfigError(f"max_attempts must be positive, got {self.max_attempts}")
        if self.base_delay <= 0:
            raise ConfigError(f"base_delay must be positive, got {self.base_delay}")
        if self.max_delay <= 0:
            raise ConfigError(f"max_delay must be positive, got {self.max_delay}")
        if self.jitter_factor < 0:
            raise ConfigError(f"jitter_factor must not be negative, got {self.jitter_factor}")

    def backoff(self, attempt: int) -> float:
        """Delay before the next attempt, without jitter"""
        return min(self.base_delay * (2 ** max(attempt - 1, 0)), self.max_delay)

    def delay(self, attempt: int) -> float:
        """Delay before the next attempt, with jitter"""
        delay = self.backoff(attempt)
        if self.jitter_factor:
            delay += self.rng.uniform(0.0, delay * self.jitter_factor)
        return delay

    def should_retry(self, attempt: int, error: BaseException) -> RetryDecision:
        """
        Decide whether to retry after the ``attempt``-th failure

        Fatal errors never retry; retryable ones retry until the
        ``max_attempts``-th failure.
        """
        classified = classify_error(error)
        if not classified.retryable:
            return RetryDecision(retry=False)
        if attempt >= self.max_attempts:
            return RetryDecision(retry=False)
        return RetryDecision(retry=True, delay=self.delay(attempt))


async def call_with_retry(
    func: Callable[..., Awaitable[T]],
    *args,
    policy: RetryPolicy,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    on_retry: Optional[Callable[[int, DataClientError, float], None]] = None,
    **kwargs,
) -> T:
    """
    Run ``func`` until it succeeds or the policy gives up

    Every failure is converted with ``classify_error``; only the final
    error is raised.
    """
    state = RetryState()

    while True:
        state.attempt += 1
        try:
            return await func(*args, **kwargs)
        except Exception as e:
            error = classify_error(e)
            state.last_error = error
            decision = policy.should_retry(state.attempt, error)

            if not decision.retry:
                if error is e:
                    raise
                raise error from e

            state.next_delay = decision.delay
            logger.info(
                "Retrying after failure",
                extra={"extra": {
                    "attempt": state.attempt,
                    "error_kind": error.kind.value,
                    "delay": round(decision.delay, 3),
                }},
            )
            if on_retry:
                on_retry(state.attempt, error, decision.delay)

            await sleep(decision.delay)


def retry(
    policy: Optional[RetryPolicy] = None,
    on_retry: Optional[Callable[[int, DataClientError, float], None]] = None,
):
    """Decorator for retrying async functions"""
    if policy is None:
        policy = RetryPolicy()

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            return await call_with_retry(func, *args, policy=policy, on_retry=on_retry, **kwargs)

        return wrapper
    return decorator
