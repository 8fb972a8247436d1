"""Freshness check: is the newest row older than the rule allows?"""

import math
from datetime import timedelta

from freshguard.config import CheckConfig
from freshguard.monitoring.application.runner import CheckRun, ensure_row_count, ensure_utc, execute_check
from freshguard.monitoring.domain.exceptions import MonitoringError
from freshguard.monitoring.domain.models import CheckResult, CheckStatus, FreshnessRule, RuleType, utc_now
from freshguard.monitoring.domain.protocols import DataSource, HistoryStore
from freshguard.monitoring.domain.validators import validate_freshness_rule
from freshguard.observability.metrics import MetricsSink

DEFAULT_TIMESTAMP_COLUMN = "updated_at"

# Clock skew allowed between the source and this process
MAX_FUTURE_SKEW = timedelta(hours=1)


async def check_freshness(
    data_source: DataSource,
    rule: FreshnessRule,
    history_store: HistoryStore | None = None,
    config: CheckConfig | None = None,
    metrics: MetricsSink | None = None,
) -> CheckResult:
    """
    Compare the latest timestamp in a table against the rule's tolerance.

    Returns ``alert`` when the lag exceeds ``tolerance_minutes`` or the table
    is empty, ``ok`` otherwise, ``failed`` on any error.
    """

    async def evaluate(run: CheckRun) -> CheckResult:
        table = rule.table_name
        column = rule.timestamp_column or DEFAULT_TIMESTAMP_COLUMN
        run.debug.context.update(table=table, column=column)

        row_count = await run.call("get_row_count", lambda: data_source.get_row_count(table), table=table)
        row_count = ensure_row_count(row_count)
        if row_count == 0:
            return run.result(CheckStatus.ALERT, row_count=0, error="Table is empty")

        latest = await run.call(
            "get_max_timestamp", lambda: data_source.get_max_timestamp(table, column), table=table, column=column
        )
        if latest is None:
            return run.result(
                CheckStatus.ALERT, row_count=row_count, error=f"No timestamp found in column '{column}'"
            )

        last_update = ensure_utc(latest)
        lag = utc_now() - last_update
        if lag < -MAX_FUTURE_SKEW:
            raise MonitoringError("Invalid timestamp: last update is in the future")

        lag_minutes = math.floor(lag.total_seconds() / 60)
        status = CheckStatus.ALERT if lag_minutes > rule.tolerance_minutes else CheckStatus.OK

        return run.result(status, row_count=row_count, last_update=last_update, lag_minutes=lag_minutes)

    return await execute_check(
        RuleType.FRESHNESS, rule, validate_freshness_rule, evaluate, history_store, config, metrics
    )
