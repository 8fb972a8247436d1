"""Exceptions raised by the resilience primitives."""

from freshguard.monitoring.domain.exceptions import FreshGuardError, get_user_message


class ResilienceError(FreshGuardError):
    """Base exception for circuit breaker and retry failures."""

    code = "resilience_error"

    def safe_message(self) -> str:
        """Message that can be shown to users."""
        return self.message


class CircuitOpenError(ResilienceError):
    """Raised when a call is rejected because the circuit is open."""

    code = "circuit_open"

    def __init__(self, name: str, remaining: float):
        self.name = name
        self.remaining = max(remaining, 0.0)
        super().__init__(
            message=f"Circuit breaker '{name}' is open; retry in {self.remaining:.1f}s",
            details={"circuit": name, "remaining_seconds": self.remaining},
        )


class RetryExhaustedError(ResilienceError):
    """Raised when every retry attempt has failed."""

    code = "retry_exhausted"

    def __init__(self, name: str, attempts: int, last_error: BaseException):
        self.name = name
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            message=f"Operation '{name}' failed after {attempts} attempts",
            details={
                "operation": name,
                "attempts": attempts,
                "last_error_type": type(last_error).__name__,
            },
            cause=last_error,
        )

    def safe_message(self) -> str:
        return f"{self.message}: {get_user_message(self.last_error)}"
