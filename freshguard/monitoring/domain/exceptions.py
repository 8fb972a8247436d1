"""Error taxonomy for the monitoring layer and the user-facing sanitizer."""

from typing import Any


class FreshGuardError(Exception):
    """Base exception for all FreshGuard errors."""

    code = "freshguard_error"

    def __init__(self, message: str, details: dict | None = None, cause: BaseException | None = None):
        """
        Initialize FreshGuard exception.

        Args:
            message: Human-readable error message (must be safe to show to users)
            details: Optional dict with additional error context (never rendered)
            cause: Underlying exception, kept for debugging only
        """
        self.message = message
        self.details = details or {}
        self.cause = cause
        super().__init__(message)


class ConfigurationError(FreshGuardError):
    """Raised when a rule or configuration value is invalid."""

    code = "configuration_error"


class SecurityError(FreshGuardError):
    """Raised when a request violates the security policy."""

    code = "security_error"
    prefix = "Security validation failed"

    def __init__(self, reason: str = "request rejected", details: dict | None = None):
        super().__init__(message=f"{self.prefix}: {reason}", details=details)


class SourceConnectionError(FreshGuardError, ConnectionError):
    """Raised when the data source cannot be reached."""

    code = "connection_error"

    def __init__(
        self,
        message: str = "Unable to connect to the data source",
        host: str | None = None,
        port: int | None = None,
        cause: BaseException | None = None,
    ):
        details: dict[str, Any] = {}
        if host:
            details["host"] = host
        if port:
            details["port"] = port
        super().__init__(message, details, cause)


class OperationTimeoutError(FreshGuardError, TimeoutError):
    """Raised when an operation exceeds its time budget."""

    code = "timeout_error"

    def __init__(self, operation: str, timeout: float):
        self.operation = operation
        self.timeout = timeout
        super().__init__(
            message=f"Operation '{operation}' timed out after {timeout:g}s",
            details={"operation": operation, "timeout": timeout},
        )


class QueryError(FreshGuardError):
    """Raised when a named query-level operation fails."""

    code = "query_error"

    def __init__(
        self,
        message: str,
        operation: str,
        table: str | None = None,
        cause: BaseException | None = None,
    ):
        self.operation = operation
        self.table = table
        details: dict[str, Any] = {"operation": operation}
        if table:
            details["table"] = table
        super().__init__(message, details, cause)

    @classmethod
    def table_not_found(cls, table: str) -> "QueryError":
        """Build the error raised when a table resolves to zero columns."""
        return cls(f"Table not found: {table}", operation="table_not_found", table=table)


class MonitoringError(FreshGuardError):
    """Raised for check-level failures not covered by the other kinds."""

    code = "monitoring_error"


GENERIC_ERROR_MESSAGE = "An unexpected error occurred while running the check"
CONNECTION_ERROR_MESSAGE = "Unable to connect to the data source"


def get_user_message(error: BaseException | None) -> str:
    """
    Convert any exception into a short, stable message that is safe to show.

    Only messages authored by FreshGuard itself are passed through. Raw
    driver errors, SQL text, connection strings and rejected input never
    reach the caller.
    """
    # Imported lazily: resilience errors subclass FreshGuardError.
    from freshguard.resilience.exceptions import ResilienceError

    if error is None:
        return GENERIC_ERROR_MESSAGE
    if isinstance(error, SourceConnectionError):
        return CONNECTION_ERROR_MESSAGE
    if isinstance(error, ResilienceError):
        return error.safe_message()
    if isinstance(error, FreshGuardError):
        return error.message
    return GENERIC_ERROR_MESSAGE
