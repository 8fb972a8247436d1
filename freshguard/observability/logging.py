"""Structured logging utilities with context management."""

import contextvars
import sys
from typing import Any

from loguru import logger

# Context variables for maintaining check context
check_context: contextvars.ContextVar[dict[str, Any]] = contextvars.ContextVar("check_context", default={})

SENSITIVE_KEYS = ("password", "secret", "token", "api_key", "apikey", "credential", "connection_string")
REDACTED = "[REDACTED]"


class LoggingContext:
    """
    Context manager for structured logging with automatic context injection.

    Example:
        with LoggingContext(rule_id="r1", check_type="freshness"):
            logger.info("Running check")  # Will include rule_id and check_type
    """

    def __init__(self, **context_data):
        """
        Initialize logging context.

        Args:
            **context_data: Key-value pairs to add to logging context
        """
        self.context_data = context_data
        self.token = None

    def __enter__(self):
        """Enter context and set context variables."""
        current = check_context.get().copy()
        current.update(self.context_data)

        self.token = check_context.set(current)

        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Exit context and restore previous context."""
        if self.token:
            check_context.reset(self.token)


def get_logging_context() -> dict[str, Any]:
    """
    Get current logging context.

    Returns:
        Dictionary of current context variables
    """
    return check_context.get().copy()


def is_sensitive_key(key: str) -> bool:
    """Whether a log extra key may hold a secret."""
    lowered = key.lower()
    return any(marker in lowered for marker in SENSITIVE_KEYS)


def redact_sensitive(data: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of ``data`` with secret-looking values replaced."""
    redacted = {}
    for key, value in data.items():
        if is_sensitive_key(key):
            redacted[key] = REDACTED
        elif isinstance(value, dict):
            redacted[key] = redact_sensitive(value)
        else:
            redacted[key] = value
    return redacted


def _context_filter(record) -> bool:
    """Add context variables to log record and scrub secrets."""
    for key, value in check_context.get().items():
        record["extra"].setdefault(key, value)

    record["extra"].update(redact_sensitive(record["extra"]))
    return True


def configure_logging(level: str = "INFO", sink: Any = None, serialize: bool = False) -> int:
    """
    Enable freshguard log output through loguru.

    The library is silent by default; host applications call this once at
    startup to route freshguard records to ``sink`` (stderr by default).

    Returns:
        The loguru handler id, so callers can remove it again.
    """
    logger.enable("freshguard")

    return logger.add(
        sink=sink or sys.stderr,
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
            "<level>{message}</level> | {extra}"
        ),
        filter=_context_filter,
        level=level,
        serialize=serialize,
    )


def log_with_context(level: str, message: str, **extra_context):
    """
    Log a message with additional context.

    Args:
        level: Log level (debug, info, warning, error, critical)
        message: Log message
        **extra_context: Additional context to include in this log only
    """
    context = get_logging_context()
    context.update(extra_context)

    logger.bind(**redact_sensitive(context)).log(level.upper(), message)
