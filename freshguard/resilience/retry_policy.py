"""Retry policy with exponential backoff and jitter."""

import asyncio
import functools
import random
from dataclasses import dataclass
from typing import TYPE_CHECKING, Awaitable, Callable, TypeVar

from loguru import logger

from freshguard.monitoring.domain.exceptions import ConfigurationError, QueryError, SecurityError
from freshguard.observability.metrics import MetricsSink, NullMetrics
from freshguard.resilience.exceptions import CircuitOpenError, RetryExhaustedError

if TYPE_CHECKING:
    from loguru import Logger

T = TypeVar("T")

NON_RETRYABLE_ERRORS: tuple[type[BaseException], ...] = (ConfigurationError, SecurityError, CircuitOpenError)


def is_retryable(error: BaseException) -> bool:
    """Default retry predicate: caller and policy errors are never retried, nor are missing tables."""
    if isinstance(error, QueryError) and error.operation == "table_not_found":
        return False
    return not isinstance(error, NON_RETRYABLE_ERRORS)


@dataclass(frozen=True)
class RetryStats:
    """Snapshot of a retry policy's counters."""

    name: str
    total_executions: int
    successful_executions: int
    failed_executions: int
    total_attempts: int
    last_attempts: int


class RetryPolicy:
    """
    Retries an asynchronous operation with exponential backoff.

    The delay before attempt ``n`` (n >= 2) is
    ``min(base_delay * backoff_multiplier ** (n - 2), max_delay)``, optionally
    scaled by a random factor in ``[1 - jitter_ratio, 1 + jitter_ratio]``.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        backoff_multiplier: float = 2.0,
        enable_jitter: bool = True,
        jitter_ratio: float = 0.1,
        name: str = "operation",
        retryable: Callable[[BaseException], bool] = is_retryable,
        logger: "Logger | None" = None,
        metrics: MetricsSink | None = None,
        enable_detailed_logging: bool = False,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if base_delay < 0 or max_delay < 0:
            raise ValueError("Delays must be non-negative")
        if backoff_multiplier < 1:
            raise ValueError("backoff_multiplier must be at least 1")
        if not 0 <= jitter_ratio <= 1:
            raise ValueError("jitter_ratio must be between 0 and 1")

        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.backoff_multiplier = backoff_multiplier
        self.enable_jitter = enable_jitter
        self.jitter_ratio = jitter_ratio
        self.name = name
        self.retryable = retryable
        self.enable_detailed_logging = enable_detailed_logging
        self._log = logger or _default_logger(name)
        self._metrics = metrics or NullMetrics()
        self._sleep = sleep

        self._total_executions = 0
        self._successful_executions = 0
        self._failed_executions = 0
        self._total_attempts = 0
        self._last_attempts = 0

    def compute_delay(self, attempt: int) -> float:
        """Backoff delay (seconds) before ``attempt``, without jitter."""
        if attempt < 2:
            return 0.0
        return min(self.base_delay * self.backoff_multiplier ** (attempt - 2), self.max_delay)

    def _jittered(self, delay: float) -> float:
        if not self.enable_jitter or delay == 0:
            return delay
        factor = random.uniform(1 - self.jitter_ratio, 1 + self.jitter_ratio)
        return max(delay * factor, 0.0)

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """
        Run ``operation`` until it succeeds or attempts run out.

        Raises:
            RetryExhaustedError: When every attempt failed
            Exception: Non-retryable errors are re-raised unchanged
        """
        self._total_executions += 1
        last_error: BaseException | None = None

        for attempt in range(1, self.max_attempts + 1):
            delay = 0.0
            if attempt > 1:
                delay = self._jittered(self.compute_delay(attempt))
                if self.enable_detailed_logging:
                    self._log.debug(f"Retrying '{self.name}' in {delay:.3f}s (attempt {attempt}/{self.max_attempts})")
                await self._sleep(delay)

            self._total_attempts += 1
            self._last_attempts = attempt
            try:
                result = await operation()
            except Exception as e:
                last_error = e
                final = attempt == self.max_attempts or not self.retryable(e)
                self._metrics.record_retry_attempt(self.name, attempt, delay, False, final)

                if not self.retryable(e):
                    self._failed_executions += 1
                    self._log.debug(f"'{self.name}' raised non-retryable {type(e).__name__}")
                    raise

                self._log.warning(f"'{self.name}' attempt {attempt}/{self.max_attempts} failed: {type(e).__name__}")
                continue

            self._metrics.record_retry_attempt(self.name, attempt, delay, True, True)
            self._successful_executions += 1
            if attempt > 1:
                self._log.info(f"'{self.name}' succeeded after {attempt} attempts")
            return result

        self._failed_executions += 1
        self._log.error(f"'{self.name}' exhausted {self.max_attempts} attempts")
        raise RetryExhaustedError(self.name, self.max_attempts, last_error)

    def __call__(self, func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        """Use the policy as a decorator on an async function."""

        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            return await self.execute(lambda: func(*args, **kwargs))

        return wrapper

    def get_stats(self) -> RetryStats:
        """Get a snapshot of the policy's counters."""
        return RetryStats(
            name=self.name,
            total_executions=self._total_executions,
            successful_executions=self._successful_executions,
            failed_executions=self._failed_executions,
            total_attempts=self._total_attempts,
            last_attempts=self._last_attempts,
        )


def _default_logger(name: str) -> "Logger":
    return logger.bind(component="retry_policy", operation=name)
