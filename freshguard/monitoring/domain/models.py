"""Domain models for the check engine."""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


def utc_now() -> datetime:
    """Timezone-aware current time."""
    return datetime.now(timezone.utc)


class RuleType(str, Enum):
    """Kind of check a rule configures."""

    FRESHNESS = "freshness"
    VOLUME_ANOMALY = "volume_anomaly"
    VOLUME_THRESHOLD = "volume_threshold"
    SCHEMA_CHANGE = "schema_change"


class CheckStatus(str, Enum):
    """Outcome of a check."""

    OK = "ok"
    ALERT = "alert"
    FAILED = "failed"


class AdaptationMode(str, Enum):
    """What a schema check does with a detected change."""

    AUTO = "auto"  # Accept the new schema as baseline
    MANUAL = "manual"  # Keep the baseline, alert, wait for a human
    ALERT_ONLY = "alert-only"  # Keep the baseline, alert


class MonitoringMode(str, Enum):
    """Which kinds of schema change a check considers."""

    FULL = "full"  # Column-level and table-level
    COLUMNS = "columns"  # Column-level only
    TABLE = "table"  # Table-level only


class ChangeType(str, Enum):
    """Kind of column difference."""

    ADDED = "added"
    REMOVED = "removed"
    MODIFIED = "modified"


# Rule Schemas
# Ranges are checked by the validators at check time, not here, so that an
# out-of-range rule produces a failed result instead of a construction error.
class RuleBase(BaseModel):
    """Fields shared by every rule variant."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Rule identifier")
    source_id: str = Field(default="", description="Data source identifier")
    name: str = Field(default="", description="Human-readable rule name")
    table_name: str = Field(description="Table to check")
    timestamp_column: str | None = Field(default=None, description="Column holding row update times")
    check_interval_minutes: int = Field(default=60, description="Scheduling hint for external schedulers")
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class FreshnessRule(RuleBase):
    """Alert when a table has not been updated within a tolerance."""

    rule_type: Literal["freshness"] = "freshness"
    tolerance_minutes: int = 60
    timestamp_column: str | None = "updated_at"


class VolumeAnomalyRule(RuleBase):
    """Alert when the row count deviates from its recent history."""

    rule_type: Literal["volume_anomaly"] = "volume_anomaly"
    baseline_window_days: int = 30
    deviation_threshold_percent: float = 20
    minimum_row_count: int = 0


class VolumeThresholdRule(RuleBase):
    """Alert when the row count falls outside static bounds."""

    rule_type: Literal["volume_threshold"] = "volume_threshold"
    min_row_threshold: int | None = None
    max_row_threshold: int | None = None


class SchemaChangeConfig(BaseModel):
    """How schema changes are handled."""

    model_config = ConfigDict(frozen=True)

    adaptation_mode: AdaptationMode = AdaptationMode.MANUAL
    monitoring_mode: MonitoringMode = MonitoringMode.FULL


class SchemaChangeRule(RuleBase):
    """Alert when a table's structure drifts from its baseline."""

    rule_type: Literal["schema_change"] = "schema_change"
    track_column_changes: bool = True
    track_table_changes: bool = True
    schema_change_config: SchemaChangeConfig = Field(default_factory=SchemaChangeConfig)


Rule = Annotated[
    Union[FreshnessRule, VolumeAnomalyRule, VolumeThresholdRule, SchemaChangeRule],
    Field(discriminator="rule_type"),
]

_rule_adapter: TypeAdapter[Rule] = TypeAdapter(Rule)


def parse_rule(data: dict[str, Any]) -> Rule:
    """Build the rule variant matching ``data["rule_type"]``."""
    return _rule_adapter.validate_python(data)


@dataclass(frozen=True)
class ColumnInfo:
    """A single column of a table."""

    name: str
    type: str
    nullable: bool = True


@dataclass(frozen=True)
class TableSchema:
    """Columns of a table as reported by a data source."""

    table: str
    columns: list[ColumnInfo] = field(default_factory=list)

    def column_map(self) -> dict[str, ColumnInfo]:
        return {column.name: column for column in self.columns}


@dataclass(frozen=True)
class SchemaSnapshot:
    """A stored schema baseline for a rule."""

    rule_id: str
    table: str
    columns: list[ColumnInfo]
    captured_at: datetime = field(default_factory=utc_now)

    @classmethod
    def from_schema(cls, rule_id: str, schema: TableSchema) -> "SchemaSnapshot":
        return cls(rule_id=rule_id, table=schema.table, columns=list(schema.columns))

    def to_schema(self) -> TableSchema:
        return TableSchema(table=self.table, columns=list(self.columns))


@dataclass(frozen=True)
class ColumnChange:
    """A single column difference between baseline and current schema."""

    column_name: str
    change_type: ChangeType
    old_type: str | None = None
    new_type: str | None = None
    old_nullable: bool | None = None
    new_nullable: bool | None = None


@dataclass(frozen=True)
class SchemaChanges:
    """Structured diff between a baseline and the current schema."""

    added: list[ColumnChange] = field(default_factory=list)
    removed: list[ColumnChange] = field(default_factory=list)
    modified: list[ColumnChange] = field(default_factory=list)
    table_removed: bool = False

    @property
    def has_changes(self) -> bool:
        return bool(self.added or self.removed or self.modified or self.table_removed)

    @property
    def change_count(self) -> int:
        return len(self.added) + len(self.removed) + len(self.modified) + int(self.table_removed)

    def summary(self) -> str:
        """One-line description of the changes."""
        if self.table_removed:
            return "Table no longer exists"

        parts = []
        if self.added:
            parts.append(f"{len(self.added)} added ({', '.join(c.column_name for c in self.added)})")
        if self.removed:
            parts.append(f"{len(self.removed)} removed ({', '.join(c.column_name for c in self.removed)})")
        if self.modified:
            parts.append(f"{len(self.modified)} modified ({', '.join(c.column_name for c in self.modified)})")
        return "Schema changed: " + "; ".join(parts) if parts else "No schema changes"


@dataclass(frozen=True)
class CheckResult:
    """Result of a single check invocation."""

    status: CheckStatus
    executed_at: datetime
    execution_duration_ms: float
    row_count: int | None = None
    last_update: datetime | None = None
    lag_minutes: int | None = None
    deviation: float | None = None
    baseline_average: float | None = None
    schema_changes: SchemaChanges | None = None
    error: str | None = None
    debug: dict[str, Any] | None = None

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        data = asdict(self)
        data["status"] = self.status.value
        return {key: value for key, value in data.items() if value is not None}


@dataclass(frozen=True)
class ExecutionRecord:
    """A persisted fact about one check execution."""

    rule_id: str
    status: CheckStatus
    execution_duration_ms: float
    executed_at: datetime
    row_count: int | None = None
    lag_minutes: int | None = None
    error: str | None = None

    @classmethod
    def from_result(cls, rule_id: str, result: CheckResult) -> "ExecutionRecord":
        return cls(
            rule_id=rule_id,
            status=result.status,
            execution_duration_ms=result.execution_duration_ms,
            executed_at=result.executed_at,
            row_count=result.row_count,
            lag_minutes=result.lag_minutes,
            error=result.error,
        )
