"""Observability: logging, metrics"""

from .logging import (
    setup_logging,
    get_logger,
    fetch_context,
    set_fetch_id,
    get_fetch_id,
    get_fetch_key,
    set_correlation_id,
    get_correlation_id,
)
from .metrics import MetricsCollector

__all__ = [
    "setup_logging",
    "get_logger",
    "fetch_context",
    "set_fetch_id",
    "get_fetch_id",
    "get_fetch_key",
    "set_correlation_id",
    "get_correlation_id",
    "MetricsCollector",
]
