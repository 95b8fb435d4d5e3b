"""
Operation-agnostic retry executor with configurable backoff.

The executor only knows the retry contract: it invokes an async operation up
to ``policy.max_attempts`` times, waits between attempts according to the
policy's backoff strategy, and gives up immediately on errors that must not be
retried (validation, not-found, non-operational). Waiting is cooperative
(``asyncio.sleep`` by default), so a pending retry never occupies a worker and
is cancelled together with the task awaiting it.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, Generic, Optional, TypeVar

from .errors import ClassifiedError, from_exception

if TYPE_CHECKING:
    from .circuit_breaker import CircuitBreaker

logger = logging.getLogger(__name__)

T = TypeVar("T")

SleepFunc = Callable[[float], Awaitable[Any]]


class BackoffStrategy(str, Enum):
    FIXED = "fixed"
    LINEAR = "linear"
    EXPONENTIAL = "exponential"


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff policy. Delays are expressed in seconds."""

    max_attempts: int = 3
    backoff_strategy: BackoffStrategy = BackoffStrategy.EXPONENTIAL
    base_delay: float = 0.1
    max_delay: float = 1.0
    jitter: bool = False

    def __post_init__(self):
        object.__setattr__(self, "backoff_strategy", BackoffStrategy(self.backoff_strategy))
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0:
            raise ValueError("base_delay must not be negative")
        if self.max_delay < self.base_delay:
            raise ValueError("max_delay must be greater than or equal to base_delay")

    def delay_for(self, attempt: int) -> float:
        """Delay to wait after failed attempt number ``attempt`` (1-based)."""
        if self.backoff_strategy is BackoffStrategy.EXPONENTIAL:
            delay = self.base_delay * (2 ** (attempt - 1))
        elif self.backoff_strategy is BackoffStrategy.LINEAR:
            delay = self.base_delay * attempt
        else:
            delay = self.base_delay
        return min(delay, self.max_delay)

    def wait_for(self, attempt: int, rand: Callable[[], float] = random.random) -> float:
        """Actual wait after ``attempt``: ``delay_for`` scaled into [50%, 100%] when jitter is on."""
        delay = self.delay_for(attempt)
        if self.jitter:
            delay *= 0.5 + rand() * 0.5
        return delay

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RetryPolicy":
        return cls(
            max_attempts=int(data.get("max_attempts", cls.max_attempts)),
            backoff_strategy=BackoffStrategy(data.get("backoff_strategy", cls.backoff_strategy)),
            base_delay=float(data.get("base_delay", cls.base_delay)),
            max_delay=float(data.get("max_delay", cls.max_delay)),
            jitter=bool(data.get("jitter", cls.jitter)),
        )


# Named presets. Callers pick one of these instead of declaring literals.
STANDARD_POLICY = RetryPolicy(
    max_attempts=3,
    backoff_strategy=BackoffStrategy.EXPONENTIAL,
    base_delay=0.1,
    max_delay=1.0,
)

FAST_BEST_EFFORT_POLICY = RetryPolicy(
    max_attempts=2,
    backoff_strategy=BackoffStrategy.LINEAR,
    base_delay=0.05,
    max_delay=0.2,
)

POLICY_PRESETS: Dict[str, RetryPolicy] = {
    "standard": STANDARD_POLICY,
    "fast_best_effort": FAST_BEST_EFFORT_POLICY,
}


@dataclass
class RetryResult(Generic[T]):
    """Detailed outcome of ``RetryExecutor.execute_with_result``."""

    success: bool
    result: Optional[T] = None
    error: Optional[ClassifiedError] = None
    attempts: int = 0
    elapsed: float = 0.0


class RetryExecutor:
    """Runs async operations under a RetryPolicy.

    The executor keeps no state between invocations, so one instance can be
    shared by concurrent callers using different policies.
    """

    def __init__(self, sleep: Optional[SleepFunc] = None, rand: Callable[[], float] = random.random):
        self._sleep = sleep or asyncio.sleep
        self._rand = rand

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        policy: RetryPolicy = STANDARD_POLICY,
        operation_name: str = "operation",
        circuit_breaker: Optional[CircuitBreaker] = None,
    ) -> T:
        """Invoke ``operation`` until it succeeds or the policy is exhausted.

        Raises:
            ClassifiedError: the error of the last attempt, or the first
                non-retryable error encountered. With a ``circuit_breaker``
                every attempt goes through it, and a rejection by an open
                circuit ends the loop at once.
        """
        outcome = await self._run(operation, policy, operation_name, circuit_breaker)
        if outcome.success:
            return outcome.result
        raise outcome.error

    async def execute_with_result(
        self,
        operation: Callable[[], Awaitable[T]],
        policy: RetryPolicy = STANDARD_POLICY,
        operation_name: str = "operation",
        circuit_breaker: Optional[CircuitBreaker] = None,
    ) -> RetryResult[T]:
        """Same contract as ``execute`` but reports the outcome instead of raising."""
        return await self._run(operation, policy, operation_name, circuit_breaker)

    async def _run(
        self,
        operation: Callable[[], Awaitable[T]],
        policy: RetryPolicy,
        operation_name: str,
        circuit_breaker: Optional[CircuitBreaker] = None,
    ) -> RetryResult[T]:
        started = time.monotonic()
        last_error: Optional[ClassifiedError] = None

        for attempt in range(1, policy.max_attempts + 1):
            try:
                if circuit_breaker is not None:
                    result = await circuit_breaker.call(operation)
                else:
                    result = await operation()
                return RetryResult(
                    success=True,
                    result=result,
                    attempts=attempt,
                    elapsed=time.monotonic() - started,
                )
            except Exception as exc:
                error = from_exception(exc, operation=operation_name, attempt=attempt)
                if error is not exc:
                    error.__cause__ = exc
                last_error = error

            if not last_error.is_retryable:
                return RetryResult(
                    success=False,
                    error=last_error,
                    attempts=attempt,
                    elapsed=time.monotonic() - started,
                )

            if attempt == policy.max_attempts:
                break

            delay = policy.wait_for(attempt, self._rand)
            logger.warning(
                f"{operation_name} attempt {attempt}/{policy.max_attempts} failed "
                f"({last_error.kind.value}: {last_error.message}), retrying in {delay:.3f}s"
            )
            await self._sleep(delay)

        logger.error(
            f"{operation_name} failed after {policy.max_attempts} attempts: {last_error.message}"
        )
        return RetryResult(
            success=False,
            error=last_error,
            attempts=policy.max_attempts,
            elapsed=time.monotonic() - started,
        )
