"""
Circuit breaker for data source calls.

A breaker watches the outcome of the calls routed through it. Once failures
cross the threshold it opens and rejects calls immediately with a
``CircuitOpenError`` instead of letting every request wait through its own
retries. After the recovery timeout it lets a few trial calls through
(half-open); if they succeed the circuit closes again, and any failure
re-opens it.

Only backend failures count. Validation and not-found errors describe the
request, not the health of the store, and pass through untouched.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from .errors import ClassifiedError, ErrorKind, ErrorSeverity, from_exception

logger = logging.getLogger(__name__)

T = TypeVar("T")

Clock = Callable[[], float]

_IGNORED_KINDS = frozenset({ErrorKind.VALIDATION_ERROR, ErrorKind.NOT_FOUND})


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass(frozen=True)
class CircuitBreakerSettings:
    """Breaker thresholds. Durations are in seconds."""

    failure_threshold: int = 5
    recovery_timeout: float = 60.0
    monitoring_period: float = 300.0
    half_open_max_calls: int = 3
    expected_error_rate: float = 0.1
    minimum_throughput: int = 10

    def __post_init__(self):
        if self.failure_threshold < 1:
            raise ValueError("failure_threshold must be at least 1")
        if self.half_open_max_calls < 1:
            raise ValueError("half_open_max_calls must be at least 1")
        if self.recovery_timeout < 0 or self.monitoring_period < 0:
            raise ValueError("recovery_timeout and monitoring_period must not be negative")
        if not 0 <= self.expected_error_rate <= 1:
            raise ValueError("expected_error_rate must be between 0 and 1")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CircuitBreakerSettings":
        defaults = cls()
        return cls(
            failure_threshold=int(data.get("failure_threshold", defaults.failure_threshold)),
            recovery_timeout=float(data.get("recovery_timeout", defaults.recovery_timeout)),
            monitoring_period=float(data.get("monitoring_period", defaults.monitoring_period)),
            half_open_max_calls=int(data.get("half_open_max_calls", defaults.half_open_max_calls)),
            expected_error_rate=float(data.get("expected_error_rate", defaults.expected_error_rate)),
            minimum_throughput=int(data.get("minimum_throughput", defaults.minimum_throughput)),
        )


class CircuitOpenError(ClassifiedError):
    """Raised without calling the operation while a circuit rejects calls.

    It is a transient backend error for rendering purposes, but the
    RetryExecutor must not retry it: the breaker would reject every attempt.
    """

    @property
    def is_retryable(self) -> bool:
        return False


@dataclass
class CircuitStats:
    name: str
    state: CircuitState
    failure_count: int
    success_count: int
    total_calls: int
    error_rate: float

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["state"] = self.state.value
        return data


class CircuitBreaker:
    """Thread-safe circuit breaker around async operations."""

    def __init__(
        self,
        name: str,
        settings: Optional[CircuitBreakerSettings] = None,
        clock: Clock = time.monotonic,
    ):
        self.name = name
        self.settings = settings or CircuitBreakerSettings()
        self._clock = clock
        self._lock = threading.Lock()
        self._reset_counters()

    def _reset_counters(self) -> None:
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._total_calls = 0
        self._last_failure_at: Optional[float] = None
        self._opened_at: Optional[float] = None
        self._half_open_calls = 0
        self._half_open_successes = 0

    @property
    def state(self) -> CircuitState:
        with self._lock:
            self._refresh()
            return self._state

    def _refresh(self) -> None:
        now = self._clock()
        if (
            self._state is CircuitState.OPEN
            and now - self._opened_at >= self.settings.recovery_timeout
        ):
            self._state = CircuitState.HALF_OPEN
            self._half_open_calls = 0
            self._half_open_successes = 0
            logger.info(f"Circuit '{self.name}' half-open, allowing trial calls")

        if (
            self._last_failure_at is not None
            and now - self._last_failure_at > self.settings.monitoring_period
        ):
            self._failure_count = 0

    def _admit(self) -> None:
        with self._lock:
            self._refresh()
            if self._state is CircuitState.OPEN:
                raise self._rejection(
                    f"Circuit breaker '{self.name}' is open",
                    "Service temporarily unavailable. Please try again later.",
                    ErrorSeverity.HIGH,
                )
            if self._state is CircuitState.HALF_OPEN:
                if self._half_open_calls >= self.settings.half_open_max_calls:
                    raise self._rejection(
                        f"Circuit breaker '{self.name}' is testing recovery",
                        "Service is recovering. Please try again in a moment.",
                        ErrorSeverity.MEDIUM,
                    )
                self._half_open_calls += 1
            self._total_calls += 1

    def _rejection(self, message: str, user_message: str, severity: ErrorSeverity) -> CircuitOpenError:
        return CircuitOpenError(
            message,
            ErrorKind.TRANSIENT_BACKEND_ERROR,
            severity,
            context={"circuit": self.name, "state": self._state.value},
            user_message=user_message,
        )

    def _on_success(self) -> None:
        with self._lock:
            self._success_count += 1
            if self._state is CircuitState.HALF_OPEN:
                self._half_open_successes += 1
                if self._half_open_successes >= self.settings.half_open_max_calls:
                    self._state = CircuitState.CLOSED
                    self._failure_count = 0
                    logger.info(f"Circuit '{self.name}' closed after successful trial calls")

    def _on_failure(self) -> None:
        with self._lock:
            self._failure_count += 1
            self._last_failure_at = self._clock()
            if self._state is CircuitState.HALF_OPEN or self._should_open():
                self._open()

    def _should_open(self) -> bool:
        if self._total_calls < self.settings.minimum_throughput:
            return False
        if self._failure_count >= self.settings.failure_threshold:
            return True
        return self._failure_count / self._total_calls > self.settings.expected_error_rate

    def _open(self) -> None:
        self._state = CircuitState.OPEN
        self._opened_at = self._clock()
        self._half_open_calls = 0
        self._half_open_successes = 0
        logger.warning(
            f"Circuit '{self.name}' opened after {self._failure_count} failures "
            f"in {self._total_calls} calls"
        )

    async def call(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run ``operation`` through the breaker.

        Raises:
            CircuitOpenError: the circuit rejected the call; the operation was
                not invoked
        """
        self._admit()
        try:
            result = await operation()
        except Exception as exc:
            if from_exception(exc).kind not in _IGNORED_KINDS:
                self._on_failure()
            else:
                self._on_success()
            raise
        self._on_success()
        return result

    def force_open(self) -> None:
        with self._lock:
            self._open()

    def reset(self) -> None:
        with self._lock:
            self._reset_counters()

    def stats(self) -> CircuitStats:
        with self._lock:
            self._refresh()
            return CircuitStats(
                name=self.name,
                state=self._state,
                failure_count=self._failure_count,
                success_count=self._success_count,
                total_calls=self._total_calls,
                error_rate=self._failure_count / self._total_calls if self._total_calls else 0.0,
            )


class CircuitBreakerManager:
    """Registry of named breakers, one per service."""

    def __init__(self, settings: Optional[CircuitBreakerSettings] = None, clock: Clock = time.monotonic):
        self.settings = settings or CircuitBreakerSettings()
        self._clock = clock
        self._breakers: Dict[str, CircuitBreaker] = {}
        self._lock = threading.Lock()

    def get(self, name: str) -> CircuitBreaker:
        with self._lock:
            breaker = self._breakers.get(name)
            if breaker is None:
                breaker = self._breakers[name] = CircuitBreaker(name, self.settings, self._clock)
            return breaker

    def all_stats(self) -> Dict[str, Dict[str, Any]]:
        with self._lock:
            breakers = list(self._breakers.values())
        return {breaker.name: breaker.stats().to_dict() for breaker in breakers}

    def reset_all(self) -> None:
        with self._lock:
            breakers = list(self._breakers.values())
        for breaker in breakers:
            breaker.reset()
