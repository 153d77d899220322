"""Resilient block and inscription data access for the Ordinals explorer API"""

from .client import DataClient, FetchRequest, FetchResult, Source
from .errors import (
    ErrorKind,
    DataClientError,
    RetryableError,
    FatalError,
    NotFoundError,
    RateLimitedError,
    CircuitOpenError,
    FetchTimeoutError,
)
from .service import BitcoinService

__version__ = "0.1.0"

__all__ = [
    "DataClient",
    "FetchRequest",
    "FetchResult",
    "Source",
    "BitcoinService",
    "ErrorKind",
    "DataClientError",
    "RetryableError",
    "FatalError",
    "NotFoundError",
    "RateLimitedError",
    "CircuitOpenError",
    "FetchTimeoutError",
]
