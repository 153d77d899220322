"""Resilient data client: cache, circuit breaker, rate limiter and retries"""

import asyncio
import functools
import random
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Union

from .adapters.base import UpstreamAdapter
from .cache import CacheStore
from .config import Config
from .errors import (
    CircuitOpenError,
    DataClientError,
    ErrorKind,
    FetchTimeoutError,
    InvalidRequestError,
    MalformedResponseError,
    NotFoundError,
    ThrottledError,
    classify_error,
)
from .observability import MetricsCollector, fetch_context, get_logger
from .resilience import CircuitBreaker, CircuitState, RateLimiter, RetryPolicy, call_with_retry

logger = get_logger(__name__)


class Source(Enum):
    """Where a fetch result came from"""
    CACHE = "cache"
    NETWORK = "network"
    STALE_FALLBACK = "stale_fallback"


@dataclass
class FetchRequest:
    """A logical fetch"""
    key: str
    force_refresh: bool = False
    timeout: Optional[float] = None
    ttl: Optional[float] = None


@dataclass
class FetchResult:
    """Value returned by DataClient.fetch"""
    key: str
    value: Any
    source: Source
    error: Optional[ErrorKind] = None

    @property
    def from_cache(self) -> bool:
        return self.source != Source.NETWORK

    @property
    def stale(self) -> bool:
        return self.source == Source.STALE_FALLBACK


@dataclass
class ClientStats:
    """Upstream traffic counters"""
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    total_retries: int = 0
    rate_limit_violations: int = 0
    coalesced_requests: int = 0
    total_response_time: float = 0.0

    @property
    def average_response_time(self) -> float:
        """Mean upstream attempt duration in milliseconds"""
        if self.total_requests == 0:
            return 0.0
        return self.total_response_time / self.total_requests * 1000.0


class _InFlight:
    """A shared network load and the number of callers awaiting it"""

    __slots__ = ("task", "refs")

    def __init__(self, task: "asyncio.Task[Any]"):
        self.task = task
        self.refs = 0


class DataClient:
    """
    Fetches keyed resources from one upstream adapter

    Lookup order for ``fetch``: fresh cache entry, circuit breaker check,
    then a network load (one permit from the rate limiter per attempt,
    retries per the retry policy). When the load fails, or the breaker is
    open, an expired cache entry is served as a stale fallback if one is
    still held. Concurrent fetches of the same key share one network load.
    """

    def __init__(
        self,
        adapter: UpstreamAdapter,
        *,
        cache: Optional[CacheStore] = None,
        breaker: Optional[CircuitBreaker] = None,
        limiter: Optional[RateLimiter] = None,
        retry_policy: Optional[RetryPolicy] = None,
        default_timeout: Optional[float] = None,
        metrics: Optional[MetricsCollector] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if default_timeout is not None and default_timeout <= 0:
            raise ValueError(f"default_timeout must be positive, got {default_timeout}")

        self.adapter = adapter
        self.metrics = metrics
        self.cache = cache or CacheStore(clock=clock)
        self.breaker = breaker or CircuitBreaker(adapter.name, clock=clock)
        self.limiter = limiter or RateLimiter(
            60,
            name=adapter.name,
            clock=clock,
            sleep=sleep,
            on_event=metrics.record_rate_limit if metrics else None,
        )
        self.retry_policy = retry_policy or RetryPolicy()
        self.default_timeout = default_timeout
        self.stats = ClientStats()
        self._clock = clock
        self._sleep = sleep
        self._inflight: Dict[str, _InFlight] = {}
        self._report_circuit()

    @classmethod
    def from_config(
        cls,
        config: Config,
        adapter: UpstreamAdapter,
        *,
        metrics: Optional[MetricsCollector] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> "DataClient":
        """Build a client and its collaborators from validated configuration"""
        config.validate()

        cache = CacheStore(
            max_entries=config.cache.max_entries,
            default_ttl=config.cache.default_ttl,
            clock=clock,
        )
        breaker = CircuitBreaker(
            adapter.name,
            failure_threshold=config.circuit_breaker.failure_threshold,
            success_threshold=config.circuit_breaker.success_threshold,
            cooldown=config.circuit_breaker.cooldown,
            probe_count=config.circuit_breaker.probe_count,
            clock=clock,
        )
        limiter = RateLimiter(
            config.max_requests_per_window,
            config.rate_limit.window,
            name=adapter.name,
            max_wait=config.rate_limit.max_wait,
            clock=clock,
            sleep=sleep,
            on_event=metrics.record_rate_limit if metrics else None,
        )
        policy = RetryPolicy(
            max_attempts=config.retry.max_attempts,
            base_delay=config.retry.base_delay,
            max_delay=config.retry.max_delay,
            jitter_factor=config.retry.jitter_factor,
            rng=rng or random.Random(),
        )

        return cls(
            adapter,
            cache=cache,
            breaker=breaker,
            limiter=limiter,
            retry_policy=policy,
            default_timeout=config.api.fetch_timeout,
            metrics=metrics,
            clock=clock,
            sleep=sleep,
        )

    async def fetch(
        self,
        key: str,
        *,
        force_refresh: bool = False,
        timeout: Optional[float] = None,
        ttl: Optional[float] = None,
    ) -> FetchResult:
        """
        Fetch a value by key

        Args:
            key: Resource key understood by the adapter
            force_refresh: Skip the fresh-cache lookup
            timeout: Overall deadline in seconds (defaults to default_timeout)
            ttl: Cache TTL for a freshly fetched value

        Returns:
            FetchResult tagged with its source

        Raises:
            InvalidRequestError: If ttl or timeout is not positive (no network call is made)
            DataClientError: When no live or stale value is available
        """
        if ttl is not None and ttl <= 0:
            raise InvalidRequestError(f"ttl must be positive, got {ttl}", key=key)
        if timeout is not None and timeout <= 0:
            raise InvalidRequestError(f"timeout must be positive, got {timeout}", key=key)

        with fetch_context(key):
            result = await self._fetch(key, force_refresh, timeout, ttl)
            logger.debug("Fetch served", extra={"extra": {"key": key, "source": result.source.value}})
            return result

    async def _fetch(
        self,
        key: str,
        force_refresh: bool,
        timeout: Optional[float],
        ttl: Optional[float],
    ) -> FetchResult:
        if not force_refresh:
            value = self.cache.get(key)
            if value is not None:
                if self.metrics:
                    self.metrics.record_cache_hit()
                    self.metrics.record_fetch(Source.CACHE.value)
                return FetchResult(key, value, Source.CACHE)
            if self.metrics:
                self.metrics.record_cache_miss()

        if self.breaker.state == CircuitState.OPEN:
            self._report_circuit()
            return self._fallback(
                key, CircuitOpenError(f"Circuit breaker '{self.breaker.name}' is OPEN", key=key)
            )

        deadline = self.default_timeout if timeout is None else timeout
        try:
            if deadline is None:
                value = await self._join(key, ttl)
            else:
                value = await asyncio.wait_for(self._join(key, ttl), deadline)
        except asyncio.TimeoutError:
            return self._fallback(
                key, FetchTimeoutError(f"Fetch for {key!r} exceeded {deadline}s", key=key)
            )
        except DataClientError as error:
            return self._fallback(key, error)

        if self.metrics:
            self.metrics.record_fetch(Source.NETWORK.value)
        return FetchResult(key, value, Source.NETWORK)

    async def fetch_many(
        self, requests: Iterable[Union[str, FetchRequest]]
    ) -> List[Union[FetchResult, DataClientError]]:
        """Fetch several keys concurrently; failures are returned in place"""
        normalized = [
            r if isinstance(r, FetchRequest) else FetchRequest(key=r) for r in requests
        ]
        results = await asyncio.gather(
            *(
                self.fetch(r.key, force_refresh=r.force_refresh, timeout=r.timeout, ttl=r.ttl)
                for r in normalized
            ),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException) and not isinstance(result, DataClientError):
                raise result
        return results

    def _fallback(self, key: str, error: DataClientError) -> FetchResult:
        """Serve an expired entry when live data is unavailable, else raise"""
        stale = self.cache.get_stale(key)
        if stale is not None:
            logger.warning(
                "Serving stale cache entry",
                extra={"extra": {"key": key, "error_kind": error.kind.value}},
            )
            if self.metrics:
                self.metrics.record_fetch(Source.STALE_FALLBACK.value, error.kind.value)
            return FetchResult(key, stale, Source.STALE_FALLBACK, error=error.kind)

        if self.metrics:
            self.metrics.record_fetch("none", error.kind.value)
        raise error

    async def _join(self, key: str, ttl: Optional[float]) -> Any:
        """Await the shared load for ``key``, starting it if needed"""
        inflight = self._inflight.get(key)
        if inflight is None:
            inflight = _InFlight(asyncio.ensure_future(self._load(key, ttl)))
            self._inflight[key] = inflight
            inflight.task.add_done_callback(functools.partial(self._forget, key, inflight))
        else:
            self.stats.coalesced_requests += 1

        inflight.refs += 1
        try:
            return await asyncio.shield(inflight.task)
        finally:
            inflight.refs -= 1
            # Last waiter gone (timed out or cancelled): abandon the network call
            if inflight.refs == 0 and not inflight.task.done():
                inflight.task.cancel()
                if self._inflight.get(key) is inflight:
                    del self._inflight[key]

    def _forget(self, key: str, inflight: _InFlight, task: "asyncio.Task[Any]") -> None:
        if self._inflight.get(key) is inflight:
            del self._inflight[key]
        if not task.cancelled():
            task.exception()

    async def _load(self, key: str, ttl: Optional[float]) -> Any:
        """One network load: breaker admission, retried attempts, cache fill"""
        try:
            self.breaker.before_call()
        except CircuitOpenError as e:
            e.key = key
            raise

        # Set once a request actually goes out to the adapter
        contacted = asyncio.Event()
        try:
            value = await call_with_retry(
                self._attempt,
                key,
                contacted,
                policy=self.retry_policy,
                sleep=self._sleep,
                on_retry=self._on_retry,
            )
        except asyncio.CancelledError:
            # A load abandoned before reaching the adapter says nothing about upstream
            if contacted.is_set():
                self.breaker.record_failure()
            else:
                self.breaker.release()
            self._report_circuit()
            raise
        except DataClientError as error:
            self._record_outcome(error)
            raise

        self.breaker.record_success()
        self._report_circuit()
        self.cache.put(key, value, ttl)
        return value

    def _record_outcome(self, error: DataClientError) -> None:
        """Feed a terminal failure to the breaker according to what it says about upstream"""
        if isinstance(error, NotFoundError):
            # Upstream answered; the resource just does not exist
            self.breaker.record_success()
        elif isinstance(error, ThrottledError):
            self.breaker.release()
        else:
            self.breaker.record_failure()
        self._report_circuit()

    async def _attempt(self, key: str, contacted: asyncio.Event) -> Any:
        """A single upstream call behind a rate limiter permit"""
        try:
            await self.limiter.acquire()
        except ThrottledError as e:
            self.stats.rate_limit_violations += 1
            e.key = key
            raise

        contacted.set()
        self.stats.total_requests += 1
        started = self._clock()
        try:
            value = await self.adapter.fetch(key)
            if value is None:
                raise MalformedResponseError("Upstream returned no data", key=key)
        except Exception as e:
            self._record_call(False, started)
            error = classify_error(e, key)
            if error.kind == ErrorKind.RATE_LIMITED:
                self.stats.rate_limit_violations += 1
                self.limiter.penalize(error.retry_after or self.retry_policy.backoff(1))
                if self.metrics:
                    self.metrics.record_rate_limit("upstream_429")
            if error is e:
                raise
            raise error from e

        self._record_call(True, started)
        return value

    def _record_call(self, success: bool, started: float) -> None:
        duration = max(0.0, self._clock() - started)
        self.stats.total_response_time += duration
        if success:
            self.stats.successful_requests += 1
        else:
            self.stats.failed_requests += 1
        if self.metrics:
            self.metrics.record_upstream_call(self.adapter.name, success, duration)

    def _on_retry(self, attempt: int, error: DataClientError, delay: float) -> None:
        self.stats.total_retries += 1
        if self.metrics:
            self.metrics.record_retry(self.adapter.name, error.kind.value)

    def _report_circuit(self) -> None:
        if self.metrics:
            self.metrics.set_circuit_state(self.adapter.name, self.breaker.state.value)

    def get_cache_stats(self) -> Dict[str, Any]:
        """Cache hits, misses and size"""
        return self.cache.stats().to_dict()

    def get_circuit_state(self) -> Dict[str, Any]:
        """Circuit breaker status and consecutive failures"""
        return self.breaker.snapshot()

    def invalidate(self, key: str) -> bool:
        return self.cache.invalidate(key)

    def clear_cache(self) -> None:
        self.cache.clear()

    async def aclose(self) -> None:
        """Cancel outstanding loads and close the adapter"""
        for inflight in list(self._inflight.values()):
            inflight.task.cancel()
        self._inflight.clear()
        await self.adapter.aclose()
