"""FreshGuard: data freshness, volume and schema checks with a hardened query layer."""

from loguru import logger

from freshguard.config import (
    CheckConfig,
    ConnectorConfig,
    DebugConfig,
    FreshGuardSettings,
    HistoryStoreConfig,
    LoggingConfig,
    SecurityConfig,
)
from freshguard.monitoring.domain import (
    AdaptationMode,
    CheckResult,
    CheckStatus,
    ColumnInfo,
    ConfigurationError,
    DataSource,
    ExecutionRecord,
    FreshGuardError,
    FreshnessRule,
    HistoryStore,
    MonitoringError,
    MonitoringMode,
    OperationTimeoutError,
    QueryError,
    Rule,
    RuleType,
    SchemaChangeConfig,
    SchemaChangeRule,
    SchemaChanges,
    SchemaSnapshot,
    SecurityError,
    SourceConnectionError,
    TableSchema,
    VolumeAnomalyRule,
    VolumeThresholdRule,
    get_user_message,
    parse_rule,
)
from freshguard.resilience import (
    CircuitBreaker,
    CircuitBreakerState,
    CircuitOpenError,
    RetryExhaustedError,
    RetryPolicy,
)
from freshguard.monitoring.application import (
    check_freshness,
    check_schema_changes,
    check_volume_anomaly,
    check_volume_threshold,
)
from freshguard.monitoring.infrastructure import (
    BaseConnector,
    InMemoryHistoryStore,
    MonitoringContainer,
    ResilientDataSource,
    SQLAlchemyConnector,
    SqlAlchemyHistoryStore,
    create_container,
    create_history_store,
)
from freshguard.observability import DebugContext, MetricsCollector, configure_logging

# Silent until the host application calls configure_logging()
logger.disable("freshguard")

__version__ = "0.1.0"

__all__ = [
    "AdaptationMode",
    "BaseConnector",
    "CheckConfig",
    "CheckResult",
    "CheckStatus",
    "CircuitBreaker",
    "CircuitBreakerState",
    "CircuitOpenError",
    "ColumnInfo",
    "ConfigurationError",
    "ConnectorConfig",
    "DataSource",
    "DebugConfig",
    "DebugContext",
    "ExecutionRecord",
    "FreshGuardError",
    "FreshGuardSettings",
    "FreshnessRule",
    "HistoryStore",
    "HistoryStoreConfig",
    "InMemoryHistoryStore",
    "LoggingConfig",
    "MetricsCollector",
    "MonitoringContainer",
    "MonitoringError",
    "MonitoringMode",
    "OperationTimeoutError",
    "QueryError",
    "ResilientDataSource",
    "RetryExhaustedError",
    "RetryPolicy",
    "Rule",
    "RuleType",
    "SQLAlchemyConnector",
    "SchemaChangeConfig",
    "SchemaChangeRule",
    "SchemaChanges",
    "SchemaSnapshot",
    "SecurityConfig",
    "SecurityError",
    "SourceConnectionError",
    "SqlAlchemyHistoryStore",
    "TableSchema",
    "VolumeAnomalyRule",
    "VolumeThresholdRule",
    "check_freshness",
    "check_schema_changes",
    "check_volume_anomaly",
    "check_volume_threshold",
    "configure_logging",
    "create_container",
    "create_history_store",
    "get_user_message",
    "parse_rule",
]
