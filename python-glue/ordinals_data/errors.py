"""Error taxonomy for upstream data access"""

import asyncio
from enum import Enum
from typing import Optional

import httpx


class ErrorKind(Enum):
    """Classification surfaced to callers of the data client"""
    RETRYABLE = "retryable"
    FATAL = "fatal"
    RATE_LIMITED = "rate_limited"
    CIRCUIT_OPEN = "circuit_open"
    TIMEOUT = "timeout"
    NOT_FOUND = "not_found"


class DataClientError(Exception):
    """Base class for every error that crosses the data client boundary"""

    kind: ErrorKind = ErrorKind.FATAL

    def __init__(
        self,
        message: str,
        *,
        key: Optional[str] = None,
        status_code: Optional[int] = None,
        retry_after: Optional[float] = None,
    ):
        super().__init__(message)
        self.message = message
        self.key = key
        self.status_code = status_code
        self.retry_after = retry_after

    @property
    def retryable(self) -> bool:
        """Whether another attempt may succeed"""
        return self.kind in (ErrorKind.RETRYABLE, ErrorKind.RATE_LIMITED)

    def to_dict(self) -> dict:
        data = {"kind": self.kind.value, "message": self.message}
        if self.key is not None:
            data["key"] = self.key
        if self.status_code is not None:
            data["status_code"] = self.status_code
        if self.retry_after is not None:
            data["retry_after"] = self.retry_after
        return data


class RetryableError(DataClientError):
    """Transient network or server-side failure"""
    kind = ErrorKind.RETRYABLE


class UpstreamTimeoutError(RetryableError):
    """A single upstream attempt timed out"""


class FatalError(DataClientError):
    """Client-side, auth or malformed-response failure; never retried"""
    kind = ErrorKind.FATAL


class MalformedResponseError(FatalError):
    """Upstream answered with data that could not be parsed or validated"""


class AuthenticationError(FatalError):
    """Upstream rejected our credentials"""


class InvalidRequestError(FatalError):
    """The requested identifier is invalid; no network call is made"""


class NotFoundError(DataClientError):
    """Upstream has no resource for the key and no fallback exists"""
    kind = ErrorKind.NOT_FOUND


class RateLimitedError(DataClientError):
    """Upstream answered 429"""
    kind = ErrorKind.RATE_LIMITED


class ThrottledError(RateLimitedError):
    """Local rate limiter refused a permit within the allowed wait"""

    @property
    def retryable(self) -> bool:
        return False


class CircuitOpenError(DataClientError):
    """Circuit breaker short-circuited the request"""
    kind = ErrorKind.CIRCUIT_OPEN


class FetchTimeoutError(DataClientError):
    """Overall deadline of a fetch call was exceeded"""
    kind = ErrorKind.TIMEOUT


class ConfigError(ValueError):
    """Invalid configuration value"""


def _parse_retry_after(response: httpx.Response) -> Optional[float]:
    value = response.headers.get("retry-after")
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


def classify_status(status_code: int, message: str, key: Optional[str] = None,
                    retry_after: Optional[float] = None) -> DataClientError:
    """Map an HTTP status code onto the error taxonomy"""
    if status_code == 429:
        return RateLimitedError(message, key=key, status_code=status_code, retry_after=retry_after)
    if status_code in (401, 403):
        return AuthenticationError(message, key=key, status_code=status_code)
    if status_code == 404:
        return NotFoundError(message, key=key, status_code=status_code)
    if 400 <= status_code < 500:
        return FatalError(message, key=key, status_code=status_code)
    return RetryableError(message, key=key, status_code=status_code)


def classify_error(error: BaseException, key: Optional[str] = None) -> DataClientError:
    """
    Convert any exception raised while talking to upstream into the taxonomy

    Args:
        error: Exception raised by an adapter or transport
        key: Request key, attached to the returned error

    Returns:
        A DataClientError subclass instance (the input itself if already classified)
    """
    if isinstance(error, DataClientError):
        if error.key is None:
            error.key = key
        return error

    if isinstance(error, httpx.HTTPStatusError):
        response = error.response
        return classify_status(
            response.status_code,
            f"Upstream returned HTTP {response.status_code}",
            key=key,
            retry_after=_parse_retry_after(response),
        )

    if isinstance(error, (httpx.TimeoutException, asyncio.TimeoutError, TimeoutError)):
        return UpstreamTimeoutError(f"Upstream request timed out: {error}", key=key)

    if isinstance(error, (httpx.TransportError, ConnectionError, OSError)):
        return RetryableError(f"Upstream connection failed: {error}", key=key)

    # pydantic.ValidationError and json.JSONDecodeError are ValueErrors
    if isinstance(error, (ValueError, KeyError, TypeError)):
        return MalformedResponseError(f"Malformed upstream response: {error}", key=key)

    return RetryableError(f"Unexpected upstream failure: {error!r}", key=key)
