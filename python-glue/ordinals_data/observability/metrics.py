"""Prometheus metrics collection"""

from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, generate_latest

CIRCUIT_STATE_VALUES = {"closed": 0, "half_open": 1, "open": 2}


class MetricsCollector:
    """Metrics collector using Prometheus"""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        # Each collector owns its registry so several clients can coexist
        self.registry = registry or CollectorRegistry()

        self.fetches_total = Counter(
            "ordinals_fetches_total",
            "Total number of logical fetch calls",
            ["source", "outcome"],
            registry=self.registry,
        )

        self.upstream_calls_total = Counter(
            "ordinals_upstream_calls_total",
            "Total number of upstream HTTP attempts",
            ["upstream", "status"],
            registry=self.registry,
        )

        self.upstream_latency_seconds = Histogram(
            "ordinals_upstream_latency_seconds",
            "Upstream attempt latency in seconds",
            ["upstream"],
            buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
            registry=self.registry,
        )

        self.retries_total = Counter(
            "ordinals_retries_total",
            "Total number of retried attempts",
            ["upstream", "error_kind"],
            registry=self.registry,
        )

        self.rate_limit_events_total = Counter(
            "ordinals_rate_limit_events_total",
            "Local rate limiter waits and rejections, upstream 429s",
            ["event"],
            registry=self.registry,
        )

        self.circuit_state = Gauge(
            "ordinals_circuit_state",
            "Circuit breaker state (0=closed, 1=half_open, 2=open)",
            ["upstream"],
            registry=self.registry,
        )

        self.cache_hits_total = Counter(
            "ordinals_cache_hits_total",
            "Total fresh cache hits",
            registry=self.registry,
        )

        self.cache_misses_total = Counter(
            "ordinals_cache_misses_total",
            "Total cache misses",
            registry=self.registry,
        )

    def record_fetch(self, source: str, outcome: str = "success") -> None:
        """Record the outcome of a logical fetch"""
        self.fetches_total.labels(source=source, outcome=outcome).inc()

    def record_upstream_call(self, upstream: str, success: bool, duration_seconds: float) -> None:
        """Record one upstream attempt"""
        status_label = "success" if success else "error"
        self.upstream_calls_total.labels(upstream=upstream, status=status_label).inc()
        self.upstream_latency_seconds.labels(upstream=upstream).observe(duration_seconds)

    def record_retry(self, upstream: str, error_kind: str) -> None:
        self.retries_total.labels(upstream=upstream, error_kind=error_kind).inc()

    def record_rate_limit(self, event: str) -> None:
        """Record a rate limit event ("waited", "rejected" or "upstream_429")"""
        self.rate_limit_events_total.labels(event=event).inc()

    def set_circuit_state(self, upstream: str, status: str) -> None:
        self.circuit_state.labels(upstream=upstream).set(CIRCUIT_STATE_VALUES.get(status, -1))

    def record_cache_hit(self) -> None:
        self.cache_hits_total.inc()

    def record_cache_miss(self) -> None:
        self.cache_misses_total.inc()

    def export(self) -> str:
        """Export metrics in Prometheus format"""
        return generate_latest(self.registry).decode("utf-8")
