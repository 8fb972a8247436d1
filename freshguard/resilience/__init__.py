"""Resilience primitives usable around any async operation."""

from freshguard.resilience.circuit_breaker import CircuitBreaker, CircuitBreakerState, CircuitBreakerStats
from freshguard.resilience.exceptions import CircuitOpenError, ResilienceError, RetryExhaustedError
from freshguard.resilience.retry_policy import RetryPolicy, RetryStats, is_retryable
from freshguard.resilience.timeout import run_with_timeout

__all__ = [
    "CircuitBreaker",
    "CircuitBreakerState",
    "CircuitBreakerStats",
    "CircuitOpenError",
    "ResilienceError",
    "RetryExhaustedError",
    "RetryPolicy",
    "RetryStats",
    "is_retryable",
    "run_with_timeout",
]
