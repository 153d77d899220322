"""Pytest configuration and fixtures"""

import random

import pytest

from ordinals_data.bitcoin import BlockInfo, InscriptionContent
from ordinals_data.cache import CacheStore
from ordinals_data.client import DataClient
from ordinals_data.config import Config
from ordinals_data.observability import MetricsCollector
from ordinals_data.resilience import CircuitBreaker, RateLimiter, RetryPolicy
from ordinals_data.service import BitcoinService

from fixtures.upstream import FakeUpstream, ManualClock, block_payload, echo_key


@pytest.fixture
def clock():
    """Manual clock shared by all components of a test"""
    return ManualClock()


@pytest.fixture
def upstream():
    """Fake upstream answering every key"""
    return FakeUpstream(default=echo_key)


@pytest.fixture
def make_client(clock):
    """Factory for a DataClient wired to the manual clock"""

    def _make(
        adapter,
        *,
        max_entries: int = 100,
        default_ttl: float = 60.0,
        max_attempts: int = 3,
        failure_threshold: int = 3,
        cooldown: float = 30.0,
        success_threshold: int = 1,
        max_requests: int = 100,
        window: float = 60.0,
        max_wait=None,
        default_timeout=None,
        metrics=None,
    ) -> DataClient:
        return DataClient(
            adapter,
            cache=CacheStore(max_entries, default_ttl, clock=clock),
            breaker=CircuitBreaker(
                adapter.name,
                failure_threshold=failure_threshold,
                success_threshold=success_threshold,
                cooldown=cooldown,
                clock=clock,
            ),
            limiter=RateLimiter(
                max_requests,
                window,
                name=adapter.name,
                max_wait=max_wait,
                clock=clock,
                sleep=clock.sleep,
            ),
            retry_policy=RetryPolicy(
                max_attempts=max_attempts,
                base_delay=1.0,
                max_delay=10.0,
                jitter_factor=0.0,
            ),
            default_timeout=default_timeout,
            metrics=metrics,
            clock=clock,
            sleep=clock.sleep,
        )

    return _make


@pytest.fixture
def test_config():
    """Configuration with fast retries for service-level tests"""
    config = Config()
    config.retry.base_delay = 0.01
    config.retry.max_delay = 0.05
    config.retry.jitter_factor = 0.0
    config.circuit_breaker.failure_threshold = 3
    config.rate_limit.max_requests_per_window = 1000
    config.api.fetch_timeout = 5.0
    return config


@pytest.fixture
def block_upstream():
    """Fake upstream answering with parsed block, tip and inscription data"""

    def answer(key: str):
        if key == "blockheight":
            return 850000
        if key.startswith("block:"):
            return BlockInfo.model_validate(block_payload(int(key.split(":", 1)[1])))
        inscription_id = key.split(":", 1)[1]
        return InscriptionContent(
            id=inscription_id,
            content_type="text/plain;charset=utf-8",
            content="hello ordinals",
            content_length=14,
        )

    return FakeUpstream(name="ordinals", default=answer)


@pytest.fixture
def service(test_config, block_upstream):
    """BitcoinService backed by the fake upstream"""
    return BitcoinService.from_config(
        test_config,
        adapter=block_upstream,
        metrics=MetricsCollector(),
        rng=random.Random(7),
    )
