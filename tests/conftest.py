"""Shared fixtures for the FreshGuard test suite."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from typing import Any

import pytest

from freshguard.config import ConnectorConfig, SecurityConfig
from freshguard.monitoring.domain.exceptions import QueryError
from freshguard.monitoring.domain.models import (
    CheckStatus,
    ColumnInfo,
    ExecutionRecord,
    FreshnessRule,
    SchemaChangeRule,
    TableSchema,
    VolumeAnomalyRule,
    VolumeThresholdRule,
    utc_now,
)
from freshguard.monitoring.infrastructure.base_connector import BaseConnector
from freshguard.monitoring.infrastructure.history_store import InMemoryHistoryStore

INJECTION_TABLE = "orders'; DROP TABLE admin; --"


class FakeDataSource:
    """In-memory data source with scriptable answers and call recording."""

    def __init__(
        self,
        row_count: int = 0,
        max_timestamp: datetime | None = None,
        schema: TableSchema | None = None,
        error: BaseException | None = None,
        delay: float = 0.0,
    ):
        self.row_count = row_count
        self.max_timestamp = max_timestamp
        self.schema = schema
        self.error = error
        self.delay = delay
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.closed = False

    async def _answer(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error

    async def test_connection(self, debug=None) -> bool:
        return self.error is None

    async def list_tables(self) -> list[str]:
        await self._answer("list_tables")
        return [self.schema.table] if self.schema else []

    async def get_table_schema(self, table: str) -> TableSchema:
        await self._answer("get_table_schema", table)
        if self.schema is None:
            raise QueryError.table_not_found(table)
        return self.schema

    async def get_row_count(self, table: str) -> int:
        await self._answer("get_row_count", table)
        return self.row_count

    async def get_max_timestamp(self, table: str, column: str) -> datetime | None:
        await self._answer("get_max_timestamp", table, column)
        return self.max_timestamp

    async def get_min_timestamp(self, table: str, column: str) -> datetime | None:
        await self._answer("get_min_timestamp", table, column)
        return self.max_timestamp

    async def get_last_modified(self, table: str) -> datetime | None:
        return self.max_timestamp

    async def close(self) -> None:
        self.closed = True


class FakeConnector(BaseConnector):
    """BaseConnector over canned rows; records every executed statement."""

    def __init__(self, rows: list[dict[str, Any]] | None = None, columns=None, delay: float = 0.0, **kwargs):
        kwargs.setdefault("config", ConnectorConfig(database="warehouse"))
        super().__init__(**kwargs)
        self.rows = rows if rows is not None else [{"count": 0}]
        self.columns = columns or []
        self.delay = delay
        self.executed: list[str] = []
        self.connect_calls = 0
        self.disconnect_calls = 0

    async def _connect(self) -> None:
        self.connect_calls += 1

    async def _disconnect(self) -> None:
        self.disconnect_calls += 1

    async def _execute(self, sql: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        self.executed.append(sql)
        if self.delay:
            await asyncio.sleep(self.delay)
        return list(self.rows)

    async def _fetch_table_names(self) -> list[str]:
        return [f"table_{i}" for i in range(len(self.rows))]

    async def _fetch_columns(self, table: str) -> list[ColumnInfo]:
        return list(self.columns)


def make_history(rule_id: str, counts: list[int], status: CheckStatus = CheckStatus.OK) -> list[ExecutionRecord]:
    """Execution records one hour apart, newest last."""
    now = utc_now()
    return [
        ExecutionRecord(
            rule_id=rule_id,
            status=status,
            execution_duration_ms=1.0,
            executed_at=now - timedelta(hours=len(counts) - i),
            row_count=count,
        )
        for i, count in enumerate(counts)
    ]


@pytest.fixture
def history_store() -> InMemoryHistoryStore:
    return InMemoryHistoryStore()


@pytest.fixture
def freshness_rule() -> FreshnessRule:
    return FreshnessRule(id="rule-freshness", table_name="orders", tolerance_minutes=60)


@pytest.fixture
def volume_rule() -> VolumeAnomalyRule:
    return VolumeAnomalyRule(id="rule-volume", table_name="orders", deviation_threshold_percent=20)


@pytest.fixture
def threshold_rule() -> VolumeThresholdRule:
    return VolumeThresholdRule(id="rule-threshold", table_name="orders", min_row_threshold=10, max_row_threshold=100)


@pytest.fixture
def schema_rule() -> SchemaChangeRule:
    return SchemaChangeRule(id="rule-schema", table_name="orders")


@pytest.fixture
def orders_schema() -> TableSchema:
    return TableSchema(
        table="orders",
        columns=[
            ColumnInfo(name="id", type="integer", nullable=False),
            ColumnInfo(name="amount", type="decimal"),
            ColumnInfo(name="updated_at", type="timestamp"),
        ],
    )


@pytest.fixture
def open_security() -> SecurityConfig:
    """Security config for local test databases without TLS."""
    return SecurityConfig(require_ssl=False)
