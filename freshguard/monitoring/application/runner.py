"""Shared execution flow for the check algorithms."""

import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, TypeVar

from loguru import logger

from freshguard.config import CheckConfig
from freshguard.monitoring.domain.exceptions import MonitoringError, get_user_message
from freshguard.monitoring.domain.models import CheckResult, CheckStatus, ExecutionRecord, RuleType, utc_now
from freshguard.monitoring.domain.protocols import HistoryStore
from freshguard.monitoring.domain.validators import is_integer
from freshguard.observability.debug import DebugContext
from freshguard.observability.logging import LoggingContext
from freshguard.observability.metrics import MetricsSink, NullMetrics
from freshguard.resilience.timeout import run_with_timeout

T = TypeVar("T")


class CheckRun:
    """
    State of a single check invocation: timing, timeouts, debug capture.

    Every data source or history store call goes through ``call`` so it is
    bounded by the configured timeout and timed for the debug payload.
    """

    def __init__(
        self,
        check_type: RuleType,
        rule: Any,
        config: CheckConfig | None = None,
        metrics: MetricsSink | None = None,
    ):
        self.check_type = check_type
        self.config = config or CheckConfig()
        self.metrics = metrics or NullMetrics()
        rule_id = getattr(rule, "id", None)
        self.rule_id = rule_id if isinstance(rule_id, str) and rule_id else None
        self.debug = DebugContext(
            self.config.debug, prefix=check_type.value, check_type=check_type.value, rule_id=self.rule_id
        )
        self._started = time.perf_counter()

    @property
    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self._started) * 1000

    async def call(self, operation: str, func: Callable[[], Awaitable[T]], **details: Any) -> T:
        """
        Await ``func()`` within the per-check timeout.

        ``details`` (table, column) reach the debug payload only when
        ``expose_queries`` is set.
        """
        start = time.perf_counter()
        try:
            result = await run_with_timeout(func(), self.config.timeout, operation)
        except Exception:
            self.debug.record_operation(
                operation, (time.perf_counter() - start) * 1000, success=False, **details
            )
            raise

        self.debug.record_operation(operation, (time.perf_counter() - start) * 1000, **details)
        return result

    def result(self, status: CheckStatus, **fields: Any) -> CheckResult:
        """Build the final result for this run."""
        return CheckResult(
            status=status,
            executed_at=utc_now(),
            execution_duration_ms=round(self.elapsed_ms, 3),
            debug=self.debug.to_payload(),
            **fields,
        )

    def failed(self, error: BaseException) -> CheckResult:
        """Convert an error into a failed result with a sanitized message."""
        message = get_user_message(error)
        self.debug.record_error(error)
        logger.warning(f"{self.check_type.value} check failed: {type(error).__name__}: {message}")
        logger.opt(exception=error).debug("Check failure details")
        return self.result(CheckStatus.FAILED, error=message)

    async def record(self, history_store: HistoryStore | None, result: CheckResult) -> None:
        """
        Persist the execution, best-effort.

        A failing write is logged and swallowed; it never changes the result.
        """
        self.metrics.record_check(self.check_type.value, result.status.value, result.execution_duration_ms)

        if history_store is None or self.rule_id is None:
            return

        record = ExecutionRecord.from_result(self.rule_id, result)
        try:
            await run_with_timeout(history_store.save_execution(record), self.config.timeout, "save_execution")
        except Exception as e:
            logger.warning(f"Failed to record execution for rule {self.rule_id}: {type(e).__name__}")


async def execute_check(
    check_type: RuleType,
    rule: Any,
    validate: Callable[[Any], None],
    evaluate: Callable[[CheckRun], Awaitable[CheckResult]],
    history_store: HistoryStore | None = None,
    config: CheckConfig | None = None,
    metrics: MetricsSink | None = None,
) -> CheckResult:
    """
    Run one check: validate, evaluate, record, return.

    Never raises (except on cancellation). Validation and evaluation errors
    become ``failed`` results carrying a sanitized message.
    """
    run = CheckRun(check_type, rule, config, metrics)

    with LoggingContext(rule_id=run.rule_id, check_type=check_type.value, debug_id=run.debug.debug_id):
        try:
            validate(rule)
            result = await evaluate(run)
        except Exception as e:
            result = run.failed(e)

        logger.debug(f"{check_type.value} check finished with status={result.status.value}")
        await run.record(history_store, result)

    return result


def ensure_row_count(value: Any) -> int:
    """Reject row counts a data source should never return."""
    if not is_integer(value) or value < 0:
        raise MonitoringError("Invalid row count returned from data source")
    return value


def ensure_utc(value: datetime) -> datetime:
    """Treat naive timestamps as UTC."""
    if not isinstance(value, datetime):
        raise MonitoringError("Invalid timestamp returned from data source")
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
