"""Validators run before any query is built.

Identifier errors never echo the rejected value back to the caller.
"""

import re
from numbers import Real
from typing import Any

from freshguard.monitoring.domain.exceptions import ConfigurationError, SecurityError
from freshguard.monitoring.domain.models import (
    AdaptationMode,
    FreshnessRule,
    MonitoringMode,
    RuleType,
    SchemaChangeRule,
    VolumeAnomalyRule,
    VolumeThresholdRule,
)

MAX_IDENTIFIER_LENGTH = 256
IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z0-9_]+(\.[A-Za-z0-9_]+)?$")

MIN_TOLERANCE_MINUTES = 1
MAX_TOLERANCE_MINUTES = 10080  # One week
MIN_BASELINE_WINDOW_DAYS = 1
MAX_BASELINE_WINDOW_DAYS = 365
MIN_DEVIATION_THRESHOLD = 0
MAX_DEVIATION_THRESHOLD = 1000

_CHECK_LABELS = {
    RuleType.FRESHNESS: "freshness",
    RuleType.VOLUME_ANOMALY: "volume anomaly",
    RuleType.VOLUME_THRESHOLD: "volume threshold",
    RuleType.SCHEMA_CHANGE: "schema change",
}


def is_integer(value: Any) -> bool:
    """True for ints, excluding bools."""
    return isinstance(value, int) and not isinstance(value, bool)


def is_number(value: Any) -> bool:
    """True for finite real numbers, excluding bools."""
    return isinstance(value, Real) and not isinstance(value, bool) and value == value


def validate_identifier(value: Any, kind: str = "identifier") -> str:
    """
    Validate a table or column name.

    Raises:
        ConfigurationError: If the value is missing or not a string
        SecurityError: If the value is too long or contains disallowed characters
    """
    if not isinstance(value, str) or not value:
        raise ConfigurationError(f"{kind.capitalize()} is required and must be a string")

    if len(value) > MAX_IDENTIFIER_LENGTH:
        raise SecurityError(f"{kind} too long (max {MAX_IDENTIFIER_LENGTH} characters)")

    if not IDENTIFIER_PATTERN.match(value):
        raise SecurityError(f"invalid {kind}")

    return value


def validate_table_name(table: Any) -> str:
    return validate_identifier(table, "table name")


def validate_column_name(column: Any) -> str:
    return validate_identifier(column, "column name")


def validate_rule_base(rule: Any, expected_type: RuleType) -> None:
    """Checks shared by every check function."""
    if rule is None:
        raise ConfigurationError("Monitoring rule is required")

    rule_id = getattr(rule, "id", None)
    if not rule_id or not isinstance(rule_id, str):
        raise ConfigurationError("Rule ID is required and must be a string")

    if getattr(rule, "rule_type", None) != expected_type.value:
        raise ConfigurationError(
            f'Rule type must be "{expected_type.value}" for {_CHECK_LABELS[expected_type]} checks'
        )

    validate_table_name(getattr(rule, "table_name", None))


def validate_freshness_rule(rule: FreshnessRule) -> None:
    """Validate a rule passed to the freshness check."""
    validate_rule_base(rule, RuleType.FRESHNESS)

    tolerance = rule.tolerance_minutes
    if not is_integer(tolerance) or not MIN_TOLERANCE_MINUTES <= tolerance <= MAX_TOLERANCE_MINUTES:
        raise ConfigurationError(
            f"Tolerance must be an integer between {MIN_TOLERANCE_MINUTES} and {MAX_TOLERANCE_MINUTES} minutes"
        )

    validate_column_name(rule.timestamp_column or "updated_at")


def validate_volume_anomaly_rule(rule: VolumeAnomalyRule) -> None:
    """Validate a rule passed to the volume anomaly check."""
    validate_rule_base(rule, RuleType.VOLUME_ANOMALY)

    window = rule.baseline_window_days
    if not is_integer(window) or not MIN_BASELINE_WINDOW_DAYS <= window <= MAX_BASELINE_WINDOW_DAYS:
        raise ConfigurationError(
            f"Baseline window must be an integer between {MIN_BASELINE_WINDOW_DAYS} "
            f"and {MAX_BASELINE_WINDOW_DAYS} days"
        )

    threshold = rule.deviation_threshold_percent
    if not is_number(threshold) or not MIN_DEVIATION_THRESHOLD <= threshold <= MAX_DEVIATION_THRESHOLD:
        raise ConfigurationError(
            f"Deviation threshold must be between {MIN_DEVIATION_THRESHOLD} and {MAX_DEVIATION_THRESHOLD} percent"
        )

    minimum = rule.minimum_row_count
    if not is_integer(minimum) or minimum < 0:
        raise ConfigurationError("Minimum row count must be a non-negative integer")


def validate_volume_threshold_rule(rule: VolumeThresholdRule) -> None:
    """Validate a rule passed to the volume threshold check."""
    validate_rule_base(rule, RuleType.VOLUME_THRESHOLD)

    minimum = rule.min_row_threshold
    maximum = rule.max_row_threshold

    if minimum is None and maximum is None:
        raise ConfigurationError("At least one of min_row_threshold or max_row_threshold must be set")

    if minimum is not None and (not is_integer(minimum) or minimum < 0):
        raise ConfigurationError("min_row_threshold must be a non-negative integer")

    if maximum is not None and (not is_integer(maximum) or maximum < 0):
        raise ConfigurationError("max_row_threshold must be a non-negative integer")

    if minimum is not None and maximum is not None and minimum > maximum:
        raise ConfigurationError("min_row_threshold cannot be greater than max_row_threshold")


def validate_schema_change_rule(rule: SchemaChangeRule) -> None:
    """Validate a rule passed to the schema change check."""
    validate_rule_base(rule, RuleType.SCHEMA_CHANGE)

    config = rule.schema_change_config
    if config is None:
        raise ConfigurationError("Schema change configuration is required")

    try:
        AdaptationMode(config.adaptation_mode)
    except ValueError:
        raise ConfigurationError('Adaptation mode must be one of "auto", "manual" or "alert-only"') from None

    try:
        MonitoringMode(config.monitoring_mode)
    except ValueError:
        raise ConfigurationError('Monitoring mode must be one of "full", "columns" or "table"') from None

    if not rule.track_column_changes and not rule.track_table_changes:
        raise ConfigurationError("At least one of track_column_changes or track_table_changes must be enabled")
