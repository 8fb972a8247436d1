"""Protocols (interfaces) for data sources and history stores."""

from datetime import datetime
from typing import Protocol, runtime_checkable

from freshguard.config import DebugConfig
from freshguard.monitoring.domain.models import CheckStatus, ExecutionRecord, SchemaSnapshot, TableSchema


@runtime_checkable
class DataSource(Protocol):
    """
    Contract every backend connector implements.

    Check algorithms depend only on this interface, never on a concrete
    backend.
    """

    async def test_connection(self, debug: DebugConfig | None = None) -> bool:
        """Return True if the source is reachable. Never raises."""
        ...

    async def list_tables(self) -> list[str]:
        """
        List tables in the source.

        Returns:
            At most the configured maximum number of names (silently truncated)
        """
        ...

    async def get_table_schema(self, table: str) -> TableSchema:
        """
        Get a table's columns.

        Raises:
            QueryError: ``table_not_found`` when the table has no columns
        """
        ...

    async def get_row_count(self, table: str) -> int:
        """Get the number of rows in a table (>= 0)."""
        ...

    async def get_max_timestamp(self, table: str, column: str) -> datetime | None:
        """Latest value of a timestamp column, or None for an empty column."""
        ...

    async def get_min_timestamp(self, table: str, column: str) -> datetime | None:
        """Earliest value of a timestamp column, or None for an empty column."""
        ...

    async def get_last_modified(self, table: str) -> datetime | None:
        """Best-effort last modification time; None when unsupported."""
        ...

    async def close(self) -> None:
        """Release resources. Idempotent, never raises."""
        ...


@runtime_checkable
class HistoryStore(Protocol):
    """Persistence for check executions and schema baselines."""

    async def save_execution(self, record: ExecutionRecord) -> None:
        """
        Append an execution record.

        Must not raise: storage failures are logged by the store.
        """
        ...

    async def get_recent_executions(
        self,
        rule_id: str,
        since: datetime,
        limit: int = 100,
        status: CheckStatus | None = None,
    ) -> list[ExecutionRecord]:
        """Executions of a rule at or after ``since``, newest first, optionally filtered by status."""
        ...

    async def get_current_baseline(self, rule_id: str) -> SchemaSnapshot | None:
        """The current schema baseline for a rule, if any."""
        ...

    async def set_baseline(self, rule_id: str, snapshot: SchemaSnapshot) -> None:
        """Atomically replace the current schema baseline for a rule."""
        ...
