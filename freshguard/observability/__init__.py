"""Logging, metrics and debug capture."""

from freshguard.observability.debug import DebugContext
from freshguard.observability.logging import (
    LoggingContext,
    configure_logging,
    get_logging_context,
    log_with_context,
    redact_sensitive,
)
from freshguard.observability.metrics import (
    MetricsCollector,
    MetricsSink,
    NullMetrics,
    QueryMetrics,
    time_operation,
)

__all__ = [
    "DebugContext",
    "LoggingContext",
    "configure_logging",
    "get_logging_context",
    "log_with_context",
    "redact_sensitive",
    "MetricsCollector",
    "MetricsSink",
    "NullMetrics",
    "QueryMetrics",
    "time_operation",
]
