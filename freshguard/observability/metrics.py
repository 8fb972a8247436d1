"""Metrics sinks for queries, checks and resilience primitives."""

import time
from collections import Counter, defaultdict, deque
from dataclasses import dataclass
from typing import Awaitable, Callable, Protocol, TypeVar, runtime_checkable

T = TypeVar("T")

# Breaker transitions kept for inspection; older ones are dropped
MAX_TRANSITIONS = 1000


@runtime_checkable
class MetricsSink(Protocol):
    """Protocol for metrics backends."""

    def record_query(
        self,
        operation: str,
        database: str,
        table: str | None,
        duration_ms: float,
        success: bool,
        error: BaseException | None = None,
    ) -> None:
        """Record a single data source query."""
        ...

    def record_check(self, check_type: str, status: str, duration_ms: float) -> None:
        """Record the outcome of a check."""
        ...

    def record_circuit_breaker_state(
        self, name: str, state: str, failure_count: int, failure_threshold: int
    ) -> None:
        """Record a circuit breaker state transition."""
        ...

    def record_retry_attempt(
        self, operation: str, attempt: int, delay: float, success: bool, final: bool
    ) -> None:
        """Record a retry attempt."""
        ...


class NullMetrics(MetricsSink):
    """Metrics sink that discards everything."""

    def record_query(self, operation, database, table, duration_ms, success, error=None) -> None:
        pass

    def record_check(self, check_type, status, duration_ms) -> None:
        pass

    def record_circuit_breaker_state(self, name, state, failure_count, failure_threshold) -> None:
        pass

    def record_retry_attempt(self, operation, attempt, delay, success, final) -> None:
        pass


@dataclass
class QueryMetrics:
    """Aggregated query statistics."""

    total_queries: int = 0
    successful_queries: int = 0
    failed_queries: int = 0
    average_duration_ms: float = 0.0

    @property
    def error_rate(self) -> float:
        """Percentage of failed queries."""
        if not self.total_queries:
            return 0.0
        return self.failed_queries / self.total_queries * 100


class MetricsCollector(MetricsSink):
    """Simple in-memory metrics collector."""

    def __init__(self, component: str = "freshguard"):
        self.component = component
        self.reset()

    def reset(self) -> None:
        """Clear all collected metrics."""
        self._query_count = 0
        self._query_duration_total = 0.0
        self._query_failures = 0
        self._query_errors: Counter[str] = Counter()
        self.check_counts: Counter[tuple[str, str]] = Counter()
        self._check_duration_totals: dict[str, float] = defaultdict(float)
        self.circuit_states: dict[str, str] = {}
        self.circuit_transitions: deque[tuple[str, str]] = deque(maxlen=MAX_TRANSITIONS)
        self.retry_attempts: Counter[str] = Counter()

    def record_query(self, operation, database, table, duration_ms, success, error=None) -> None:
        self._query_count += 1
        self._query_duration_total += duration_ms
        if not success:
            self._query_failures += 1
            self._query_errors[type(error).__name__ if error else "unknown"] += 1

    def record_check(self, check_type, status, duration_ms) -> None:
        self.check_counts[(check_type, str(status))] += 1
        self._check_duration_totals[check_type] += duration_ms

    def record_circuit_breaker_state(self, name, state, failure_count, failure_threshold) -> None:
        self.circuit_states[name] = str(state)
        self.circuit_transitions.append((name, str(state)))

    def record_retry_attempt(self, operation, attempt, delay, success, final) -> None:
        self.retry_attempts[operation] += 1

    def get_query_metrics(self) -> QueryMetrics:
        """Get aggregated query statistics."""
        total = self._query_count
        return QueryMetrics(
            total_queries=total,
            successful_queries=total - self._query_failures,
            failed_queries=self._query_failures,
            average_duration_ms=self._query_duration_total / total if total else 0.0,
        )

    def get_average_check_duration(self, check_type: str) -> float:
        """Mean duration in milliseconds of the checks of one type."""
        runs = sum(count for (kind, _), count in self.check_counts.items() if kind == check_type)
        return self._check_duration_totals.get(check_type, 0.0) / runs if runs else 0.0

    def get_error_counts(self) -> dict[str, int]:
        """Failed queries grouped by error type."""
        return dict(self._query_errors)


async def time_operation(
    metrics: MetricsSink,
    operation: str,
    database: str,
    table: str | None,
    func: Callable[[], Awaitable[T]],
) -> T:
    """Run ``func`` and record its duration and outcome as a query metric."""
    start = time.perf_counter()
    try:
        result = await func()
    except Exception as e:
        metrics.record_query(operation, database, table, (time.perf_counter() - start) * 1000, False, e)
        raise

    metrics.record_query(operation, database, table, (time.perf_counter() - start) * 1000, True)
    return result
