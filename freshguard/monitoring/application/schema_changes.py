"""Schema change check: has a table's structure drifted from its baseline?"""

from loguru import logger

from freshguard.config import CheckConfig
from freshguard.monitoring.application.runner import CheckRun, execute_check
from freshguard.monitoring.domain.exceptions import ConfigurationError, QueryError
from freshguard.monitoring.domain.models import (
    AdaptationMode,
    ChangeType,
    CheckResult,
    CheckStatus,
    ColumnChange,
    MonitoringMode,
    RuleType,
    SchemaChangeRule,
    SchemaChanges,
    SchemaSnapshot,
    TableSchema,
)
from freshguard.monitoring.domain.protocols import DataSource, HistoryStore
from freshguard.monitoring.domain.validators import validate_schema_change_rule
from freshguard.observability.metrics import MetricsSink


def _same_type(old: str, new: str) -> bool:
    return old.strip().lower() == new.strip().lower()


def compare_schemas(baseline: TableSchema, current: TableSchema) -> SchemaChanges:
    """
    Diff two schemas by column name.

    Columns present only in ``current`` are added, only in ``baseline``
    removed; a changed type or nullability is a modification.
    """
    old_columns = baseline.column_map()
    new_columns = current.column_map()

    added = [
        ColumnChange(column_name=name, change_type=ChangeType.ADDED, new_type=col.type, new_nullable=col.nullable)
        for name, col in new_columns.items()
        if name not in old_columns
    ]
    removed = [
        ColumnChange(column_name=name, change_type=ChangeType.REMOVED, old_type=col.type, old_nullable=col.nullable)
        for name, col in old_columns.items()
        if name not in new_columns
    ]

    modified = []
    for name, old in old_columns.items():
        new = new_columns.get(name)
        if new is None:
            continue
        if not _same_type(old.type, new.type) or old.nullable != new.nullable:
            modified.append(
                ColumnChange(
                    column_name=name,
                    change_type=ChangeType.MODIFIED,
                    old_type=old.type,
                    new_type=new.type,
                    old_nullable=old.nullable,
                    new_nullable=new.nullable,
                )
            )

    return SchemaChanges(added=added, removed=removed, modified=modified)


async def check_schema_changes(
    data_source: DataSource,
    rule: SchemaChangeRule,
    history_store: HistoryStore | None = None,
    config: CheckConfig | None = None,
    metrics: MetricsSink | None = None,
) -> CheckResult:
    """
    Compare a table's current columns against the stored baseline.

    The first run stores the baseline. Later runs alert on differences,
    unless the adaptation mode is ``auto``, in which case the new schema
    becomes the baseline and the result is ``ok``.
    """

    async def evaluate(run: CheckRun) -> CheckResult:
        if history_store is None:
            raise ConfigurationError("Schema change checks require a history store")

        table = rule.table_name
        settings = rule.schema_change_config
        mode = MonitoringMode(settings.monitoring_mode)
        track_columns = rule.track_column_changes and mode in (MonitoringMode.FULL, MonitoringMode.COLUMNS)
        track_table = rule.track_table_changes and mode in (MonitoringMode.FULL, MonitoringMode.TABLE)
        run.debug.context.update(table=table, monitoring_mode=mode.value)

        baseline = await run.call("get_current_baseline", lambda: history_store.get_current_baseline(rule.id))

        try:
            schema = await run.call("get_table_schema", lambda: data_source.get_table_schema(table), table=table)
        except QueryError as e:
            if e.operation == "table_not_found" and baseline is not None and track_table:
                changes = SchemaChanges(table_removed=True)
                return run.result(CheckStatus.ALERT, schema_changes=changes, error=changes.summary())
            raise

        if baseline is None:
            await run.call(
                "set_baseline", lambda: history_store.set_baseline(rule.id, SchemaSnapshot.from_schema(rule.id, schema))
            )
            logger.info(f"Stored initial schema baseline with {len(schema.columns)} columns")
            return run.result(CheckStatus.OK)

        changes = compare_schemas(baseline.to_schema(), schema) if track_columns else SchemaChanges()
        if not changes.has_changes:
            return run.result(CheckStatus.OK)

        if AdaptationMode(settings.adaptation_mode) == AdaptationMode.AUTO:
            await run.call(
                "set_baseline", lambda: history_store.set_baseline(rule.id, SchemaSnapshot.from_schema(rule.id, schema))
            )
            logger.info(f"Schema baseline adapted: {changes.summary()}")
            return run.result(CheckStatus.OK, schema_changes=changes)

        return run.result(CheckStatus.ALERT, schema_changes=changes, error=changes.summary())

    return await execute_check(
        RuleType.SCHEMA_CHANGE, rule, validate_schema_change_rule, evaluate, history_store, config, metrics
    )
