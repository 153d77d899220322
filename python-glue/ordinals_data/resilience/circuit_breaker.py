"""Circuit breaker pattern implementation"""

import time
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar
from dataclasses import dataclass, field
from threading import Lock

from ..errors import CircuitOpenError, ConfigError
from ..observability import get_logger

T = TypeVar("T")

logger = get_logger(__name__)


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreaker:
    """
    Circuit breaker guarding one upstream endpoint

    Cooldown is evaluated lazily against ``clock`` whenever the state is
    read, so no timers are involved. While half-open at most
    ``probe_count`` trial calls may be outstanding at once.

    ``on_state_change`` runs with the internal lock held and must not call
    back into the breaker.
    """

    name: str
    failure_threshold: int = 5
    success_threshold: int = 1
    cooldown: float = 30.0
    probe_count: int = 1
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)
    on_state_change: Optional[Callable[["CircuitBreaker", CircuitState, CircuitState], None]] = field(
        default=None, repr=False
    )

    _state: CircuitState = field(default=CircuitState.CLOSED, init=False)
    _consecutive_failures: int = field(default=0, init=False)
    _successes_in_half_open: int = field(default=0, init=False)
    _probes_in_flight: int = field(default=0, init=False)
    _opened_at: Optional[float] = field(default=None, init=False)
    _lock: Lock = field(default_factory=Lock, init=False, repr=False)

    def __post_init__(self):
        for attr in ("failure_threshold", "success_threshold", "probe_count"):
            if getattr(self, attr) <= 0:
                raise ConfigError(f"{attr} must be positive, got {getattr(self, attr)}")
        if self.cooldown <= 0:
            raise ConfigError(f"cooldown must be positive, got {self.cooldown}")

    @property
    def state(self) -> CircuitState:
        """Get current circuit breaker state"""
        with self._lock:
            self._check_state()
            return self._state

    @property
    def consecutive_failures(self) -> int:
        with self._lock:
            return self._consecutive_failures

    def _transition(self, new_state: CircuitState) -> None:
        """Change state (must be called with lock held)"""
        old_state = self._state
        if old_state == new_state:
            return
        self._state = new_state

        if new_state == CircuitState.OPEN:
            self._opened_at = self.clock()
            self._successes_in_half_open = 0
            self._probes_in_flight = 0
            logger.warning(
                "Circuit breaker opened",
                extra={"extra": {
                    "circuit": self.name,
                    "from_state": old_state.value,
                    "consecutive_failures": self._consecutive_failures,
                }},
            )
        elif new_state == CircuitState.HALF_OPEN:
            self._successes_in_half_open = 0
            self._probes_in_flight = 0
            logger.info("Circuit breaker half-open", extra={"extra": {"circuit": self.name}})
        else:
            self._consecutive_failures = 0
            self._successes_in_half_open = 0
            self._probes_in_flight = 0
            self._opened_at = None
            logger.info("Circuit breaker closed", extra={"extra": {"circuit": self.name}})

        if self.on_state_change:
            self.on_state_change(self, old_state, new_state)

    def _check_state(self) -> None:
        """Move OPEN to HALF_OPEN once the cooldown has elapsed (lock held)"""
        if self._state == CircuitState.OPEN and self._opened_at is not None:
            if self.clock() - self._opened_at >= self.cooldown:
                self._transition(CircuitState.HALF_OPEN)

    def before_call(self) -> None:
        """
        Admit a call or raise CircuitOpenError

        Every admitted call must be followed by exactly one of
        ``record_success``, ``record_failure`` or ``release``.
        """
        with self._lock:
            self._check_state()

            if self._state == CircuitState.OPEN:
                remaining = self.cooldown - (self.clock() - (self._opened_at or 0.0))
                raise CircuitOpenError(
                    f"Circuit breaker '{self.name}' is OPEN",
                    retry_after=max(0.0, remaining),
                )

            if self._state == CircuitState.HALF_OPEN:
                if self._probes_in_flight >= self.probe_count:
                    raise CircuitOpenError(
                        f"Circuit breaker '{self.name}' is HALF_OPEN and probing",
                    )
                self._probes_in_flight += 1

    def record_success(self) -> None:
        """Handle successful call"""
        with self._lock:
            if self._state == CircuitState.HALF_OPEN:
                self._probes_in_flight = max(0, self._probes_in_flight - 1)
                self._successes_in_half_open += 1
                if self._successes_in_half_open >= self.success_threshold:
                    self._transition(CircuitState.CLOSED)
            elif self._state == CircuitState.CLOSED:
                self._consecutive_failures = 0

    def record_failure(self) -> None:
        """Handle failed call"""
        with self._lock:
            if self._state == CircuitState.HALF_OPEN:
                self._consecutive_failures += 1
                self._transition(CircuitState.OPEN)
            elif self._state == CircuitState.CLOSED:
                self._consecutive_failures += 1
                if self._consecutive_failures >= self.failure_threshold:
                    self._transition(CircuitState.OPEN)

    def release(self) -> None:
        """Give back a half-open probe slot without judging upstream health"""
        with self._lock:
            if self._state == CircuitState.HALF_OPEN:
                self._probes_in_flight = max(0, self._probes_in_flight - 1)

    def reset(self) -> None:
        """Force the breaker back to CLOSED"""
        with self._lock:
            self._transition(CircuitState.CLOSED)
            self._consecutive_failures = 0

    def snapshot(self) -> Dict[str, Any]:
        """Point-in-time view for health checks"""
        with self._lock:
            self._check_state()
            return {
                "name": self.name,
                "status": self._state.value,
                "consecutive_failures": self._consecutive_failures,
                "opened_at": self._opened_at,
                "successes_in_half_open": self._successes_in_half_open,
            }

    async def call(self, func: Callable[..., Awaitable[T]], *args, **kwargs) -> T:
        """Execute function with circuit breaker protection"""
        self.before_call()

        try:
            result = await func(*args, **kwargs)
        except Exception:
            self.record_failure()
            raise
        self.record_success()
        return result
