"""Circuit breaker for asynchronous operations."""

import functools
import time
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Awaitable, Callable, TypeVar

from loguru import logger

from freshguard.observability.metrics import MetricsSink, NullMetrics
from freshguard.resilience.exceptions import CircuitOpenError

if TYPE_CHECKING:
    from loguru import Logger

T = TypeVar("T")


class CircuitBreakerState(str, Enum):
    """State of a circuit breaker."""

    CLOSED = "CLOSED"  # Calls pass through
    OPEN = "OPEN"  # Calls are rejected until the recovery timeout elapses
    HALF_OPEN = "HALF_OPEN"  # Trial calls decide whether to close again


@dataclass(frozen=True)
class CircuitBreakerStats:
    """Snapshot of a circuit breaker's counters."""

    name: str
    state: CircuitBreakerState
    failure_count: int
    success_count: int
    total_calls: int
    successful_calls: int
    failed_calls: int
    rejected_calls: int
    last_state_change: float


class CircuitBreaker:
    """
    Gates calls to an operation that keeps failing.

    CLOSED -> OPEN after ``failure_threshold`` consecutive failures,
    OPEN -> HALF_OPEN once ``recovery_timeout`` seconds have passed,
    HALF_OPEN -> CLOSED after ``success_threshold`` consecutive successes,
    HALF_OPEN -> OPEN on any failure.

    The breaker never masks errors: a failing operation's exception is
    re-raised unchanged. Only rejected calls raise ``CircuitOpenError``.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        success_threshold: int = 2,
        recovery_timeout: float = 60.0,
        logger: "Logger | None" = None,
        metrics: MetricsSink | None = None,
        enable_detailed_logging: bool = False,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize circuit breaker.

        Args:
            name: Identifies the guarded operation/backend in errors and logs
            failure_threshold: Consecutive failures that open the circuit
            success_threshold: Consecutive half-open successes that close it
            recovery_timeout: Seconds to wait before allowing a trial call
            logger: Optional loguru logger (defaults to the freshguard logger)
            metrics: Optional metrics sink (defaults to a no-op sink)
            enable_detailed_logging: Log every call, not only transitions
            clock: Monotonic time source, injectable for tests
        """
        if failure_threshold < 1 or success_threshold < 1:
            raise ValueError("Circuit breaker thresholds must be at least 1")
        if recovery_timeout < 0:
            raise ValueError("recovery_timeout must be non-negative")

        self.name = name
        self.failure_threshold = failure_threshold
        self.success_threshold = success_threshold
        self.recovery_timeout = recovery_timeout
        self.enable_detailed_logging = enable_detailed_logging
        self._log = logger or _default_logger(name)
        self._metrics = metrics or NullMetrics()
        self._clock = clock

        self._state = CircuitBreakerState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._last_state_change = clock()
        self._opened_at: float | None = None

        self._total_calls = 0
        self._successful_calls = 0
        self._failed_calls = 0
        self._rejected_calls = 0

    @property
    def state(self) -> CircuitBreakerState:
        """Current state. OPEN moves to HALF_OPEN lazily, on the next call."""
        return self._state

    def get_state(self) -> CircuitBreakerState:
        return self._state

    def get_name(self) -> str:
        return self.name

    def remaining_cooldown(self) -> float:
        """Seconds until an OPEN circuit allows a trial call."""
        if self._state is not CircuitBreakerState.OPEN or self._opened_at is None:
            return 0.0
        return max(self.recovery_timeout - (self._clock() - self._opened_at), 0.0)

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """
        Run ``operation`` through the breaker.

        Raises:
            CircuitOpenError: If the circuit is open and still cooling down
        """
        if self._state is CircuitBreakerState.OPEN:
            remaining = self.remaining_cooldown()
            if remaining > 0:
                self._rejected_calls += 1
                if self.enable_detailed_logging:
                    self._log.debug(f"Circuit '{self.name}' rejected call ({remaining:.1f}s remaining)")
                raise CircuitOpenError(self.name, remaining)
            self._transition(CircuitBreakerState.HALF_OPEN)

        self._total_calls += 1
        try:
            result = await operation()
        except Exception:
            self._on_failure()
            raise

        self._on_success()
        return result

    def __call__(self, func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        """Use the breaker as a decorator on an async function."""

        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            return await self.execute(lambda: func(*args, **kwargs))

        return wrapper

    def _on_success(self) -> None:
        self._successful_calls += 1
        if self._state is CircuitBreakerState.HALF_OPEN:
            self._success_count += 1
            if self._success_count >= self.success_threshold:
                self._transition(CircuitBreakerState.CLOSED)
        else:
            self._failure_count = 0

        if self.enable_detailed_logging:
            self._log.debug(f"Circuit '{self.name}' call succeeded (state={self._state.value})")

    def _on_failure(self) -> None:
        self._failed_calls += 1
        if self._state is CircuitBreakerState.HALF_OPEN:
            self._transition(CircuitBreakerState.OPEN)
            return

        self._failure_count += 1
        if self.enable_detailed_logging:
            self._log.debug(
                f"Circuit '{self.name}' call failed ({self._failure_count}/{self.failure_threshold})"
            )
        if self._failure_count >= self.failure_threshold:
            self._transition(CircuitBreakerState.OPEN)

    def _transition(self, new_state: CircuitBreakerState) -> None:
        old_state = self._state
        self._state = new_state
        self._last_state_change = self._clock()

        if new_state is CircuitBreakerState.OPEN:
            self._opened_at = self._last_state_change
            self._success_count = 0
        elif new_state is CircuitBreakerState.HALF_OPEN:
            self._success_count = 0
        else:
            self._opened_at = None
            self._failure_count = 0
            self._success_count = 0

        level = "WARNING" if new_state is CircuitBreakerState.OPEN else "INFO"
        self._log.log(level, f"Circuit '{self.name}' {old_state.value} -> {new_state.value}")
        self._metrics.record_circuit_breaker_state(
            self.name, new_state.value, self._failure_count, self.failure_threshold
        )

    def reset(self) -> None:
        """Force the breaker back to CLOSED."""
        if self._state is not CircuitBreakerState.CLOSED:
            self._transition(CircuitBreakerState.CLOSED)
        self._failure_count = 0
        self._success_count = 0

    def get_stats(self) -> CircuitBreakerStats:
        """Get a snapshot of the breaker's state and counters."""
        return CircuitBreakerStats(
            name=self.name,
            state=self._state,
            failure_count=self._failure_count,
            success_count=self._success_count,
            total_calls=self._total_calls,
            successful_calls=self._successful_calls,
            failed_calls=self._failed_calls,
            rejected_calls=self._rejected_calls,
            last_state_change=self._last_state_change,
        )


def _default_logger(name: str) -> "Logger":
    return logger.bind(component="circuit_breaker", circuit=name)
