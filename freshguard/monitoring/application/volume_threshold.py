"""Volume threshold check: is the row count within static bounds?"""

from freshguard.config import CheckConfig
from freshguard.monitoring.application.runner import CheckRun, ensure_row_count, execute_check
from freshguard.monitoring.domain.models import CheckResult, CheckStatus, RuleType, VolumeThresholdRule
from freshguard.monitoring.domain.protocols import DataSource, HistoryStore
from freshguard.monitoring.domain.validators import validate_volume_threshold_rule
from freshguard.observability.metrics import MetricsSink


async def check_volume_threshold(
    data_source: DataSource,
    rule: VolumeThresholdRule,
    history_store: HistoryStore | None = None,
    config: CheckConfig | None = None,
    metrics: MetricsSink | None = None,
) -> CheckResult:
    """Alert when the row count is below ``min_row_threshold`` or above ``max_row_threshold``."""

    async def evaluate(run: CheckRun) -> CheckResult:
        table = rule.table_name
        run.debug.context["table"] = table

        row_count = await run.call("get_row_count", lambda: data_source.get_row_count(table), table=table)
        row_count = ensure_row_count(row_count)

        if rule.min_row_threshold is not None and row_count < rule.min_row_threshold:
            return run.result(
                CheckStatus.ALERT,
                row_count=row_count,
                error=f"Row count {row_count} is below minimum threshold {rule.min_row_threshold}",
            )

        if rule.max_row_threshold is not None and row_count > rule.max_row_threshold:
            return run.result(
                CheckStatus.ALERT,
                row_count=row_count,
                error=f"Row count {row_count} exceeds maximum threshold {rule.max_row_threshold}",
            )

        return run.result(CheckStatus.OK, row_count=row_count)

    return await execute_check(
        RuleType.VOLUME_THRESHOLD, rule, validate_volume_threshold_rule, evaluate, history_store, config, metrics
    )
