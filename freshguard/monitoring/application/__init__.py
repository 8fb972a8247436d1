"""Check algorithms."""

from freshguard.monitoring.application.freshness import check_freshness
from freshguard.monitoring.application.schema_changes import check_schema_changes, compare_schemas
from freshguard.monitoring.application.volume import check_volume_anomaly
from freshguard.monitoring.application.volume_threshold import check_volume_threshold

__all__ = [
    "check_freshness",
    "check_schema_changes",
    "check_volume_anomaly",
    "check_volume_threshold",
    "compare_schemas",
]
