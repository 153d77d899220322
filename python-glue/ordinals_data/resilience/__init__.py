"""Resilience patterns: retry, circuit breaker, rate limiting"""

from .retry import retry, call_with_retry, RetryPolicy, RetryDecision, RetryState
from .circuit_breaker import CircuitBreaker, CircuitState
from .rate_limiter import RateLimiter

__all__ = [
    "retry",
    "call_with_retry",
    "RetryPolicy",
    "RetryDecision",
    "RetryState",
    "CircuitBreaker",
    "CircuitState",
    "RateLimiter",
]
