"""Domain layer for the check engine."""

from freshguard.monitoring.domain.exceptions import (
    ConfigurationError,
    FreshGuardError,
    MonitoringError,
    OperationTimeoutError,
    QueryError,
    SecurityError,
    SourceConnectionError,
    get_user_message,
)
from freshguard.monitoring.domain.models import (
    AdaptationMode,
    ChangeType,
    CheckResult,
    CheckStatus,
    ColumnChange,
    ColumnInfo,
    ExecutionRecord,
    FreshnessRule,
    MonitoringMode,
    Rule,
    RuleType,
    SchemaChangeConfig,
    SchemaChangeRule,
    SchemaChanges,
    SchemaSnapshot,
    TableSchema,
    VolumeAnomalyRule,
    VolumeThresholdRule,
    parse_rule,
)
from freshguard.monitoring.domain.protocols import DataSource, HistoryStore

__all__ = [
    "ConfigurationError",
    "FreshGuardError",
    "MonitoringError",
    "OperationTimeoutError",
    "QueryError",
    "SecurityError",
    "SourceConnectionError",
    "get_user_message",
    "AdaptationMode",
    "ChangeType",
    "CheckResult",
    "CheckStatus",
    "ColumnChange",
    "ColumnInfo",
    "ExecutionRecord",
    "FreshnessRule",
    "MonitoringMode",
    "Rule",
    "RuleType",
    "SchemaChangeConfig",
    "SchemaChangeRule",
    "SchemaChanges",
    "SchemaSnapshot",
    "TableSchema",
    "VolumeAnomalyRule",
    "VolumeThresholdRule",
    "parse_rule",
    "DataSource",
    "HistoryStore",
]
