"""Volume anomaly check: does the row count deviate from recent history?"""

from datetime import timedelta
from statistics import fmean

from loguru import logger

from freshguard.config import CheckConfig
from freshguard.monitoring.application.runner import CheckRun, ensure_row_count, execute_check
from freshguard.monitoring.domain.models import CheckResult, CheckStatus, RuleType, VolumeAnomalyRule, utc_now
from freshguard.monitoring.domain.protocols import DataSource, HistoryStore
from freshguard.monitoring.domain.validators import validate_volume_anomaly_rule
from freshguard.observability.metrics import MetricsSink

# Tunable: fewer historical points than this means no baseline yet
MIN_BASELINE_POINTS = 3

# Tunable: maximum number of historical executions read per check
HISTORY_LIMIT = 100


def compute_deviation(current: int, average: float) -> float:
    """Absolute percentage deviation of ``current`` from ``average``."""
    if average <= 0:
        return 0.0
    return abs(current - average) / average * 100


async def check_volume_anomaly(
    data_source: DataSource,
    rule: VolumeAnomalyRule,
    history_store: HistoryStore | None = None,
    config: CheckConfig | None = None,
    metrics: MetricsSink | None = None,
) -> CheckResult:
    """
    Compare the current row count against the mean of recent successful executions.

    Without a history store, or with fewer than ``MIN_BASELINE_POINTS``
    historical row counts, the check is in cold start and returns ``ok``.
    """

    async def evaluate(run: CheckRun) -> CheckResult:
        table = rule.table_name
        run.debug.context["table"] = table

        row_count = await run.call("get_row_count", lambda: data_source.get_row_count(table), table=table)
        row_count = ensure_row_count(row_count)

        if row_count < rule.minimum_row_count:
            return run.result(CheckStatus.OK, row_count=row_count)

        history: list[int] = []
        if history_store is None:
            logger.debug("No history store configured; volume baseline unavailable")
        else:
            since = utc_now() - timedelta(days=rule.baseline_window_days)
            records = await run.call(
                "get_recent_executions",
                lambda: history_store.get_recent_executions(rule.id, since, HISTORY_LIMIT, CheckStatus.OK),
            )
            history = [
                record.row_count
                for record in records
                if record.status == CheckStatus.OK and record.row_count is not None
            ][:HISTORY_LIMIT]

        run.debug.context["baseline_points"] = len(history)

        if len(history) < MIN_BASELINE_POINTS:
            return run.result(CheckStatus.OK, row_count=row_count, deviation=0.0, baseline_average=row_count)

        average = fmean(history)
        deviation = compute_deviation(row_count, average)
        status = CheckStatus.ALERT if deviation > rule.deviation_threshold_percent else CheckStatus.OK

        return run.result(
            status,
            row_count=row_count,
            deviation=round(deviation, 2),
            baseline_average=round(average),
        )

    return await execute_check(
        RuleType.VOLUME_ANOMALY, rule, validate_volume_anomaly_rule, evaluate, history_store, config, metrics
    )
