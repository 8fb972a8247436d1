"""Tests for injection resistance and the connector security gate."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from freshguard.config import ConnectorConfig, SecurityConfig
from freshguard.monitoring.application import (
    check_freshness,
    check_schema_changes,
    check_volume_anomaly,
    check_volume_threshold,
)
from freshguard.monitoring.domain.exceptions import (
    CONNECTION_ERROR_MESSAGE,
    OperationTimeoutError,
    QueryError,
    SecurityError,
    SourceConnectionError,
    get_user_message,
)
from freshguard.monitoring.domain.models import (
    CheckStatus,
    ColumnInfo,
    FreshnessRule,
    SchemaChangeRule,
    VolumeAnomalyRule,
    VolumeThresholdRule,
)
from freshguard.monitoring.infrastructure.history_store import InMemoryHistoryStore
from tests.conftest import INJECTION_TABLE, FakeConnector, FakeDataSource

INJECTION_CASES = [
    (check_freshness, FreshnessRule(id="r1", table_name=INJECTION_TABLE)),
    (check_volume_anomaly, VolumeAnomalyRule(id="r2", table_name=INJECTION_TABLE)),
    (check_volume_threshold, VolumeThresholdRule(id="r3", table_name=INJECTION_TABLE, min_row_threshold=1)),
    (check_schema_changes, SchemaChangeRule(id="r4", table_name=INJECTION_TABLE)),
]


class TestInjectionResistance:
    """Malicious table names never reach the data source or the caller."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("check, rule", INJECTION_CASES)
    async def test_malicious_table_name(self, check, rule) -> None:
        source = FakeDataSource(row_count=10)
        result = await check(source, rule, InMemoryHistoryStore())

        assert result.status == CheckStatus.FAILED
        assert result.error == "Security validation failed: invalid table name"
        assert "DROP" not in result.error
        assert "--" not in result.error
        assert INJECTION_TABLE not in result.error
        assert source.calls == []

    @pytest.mark.asyncio
    async def test_malicious_timestamp_column(self) -> None:
        rule = FreshnessRule(id="r1", table_name="orders", timestamp_column="updated_at) FROM admin --")
        source = FakeDataSource(row_count=10)
        result = await check_freshness(source, rule)

        assert result.status == CheckStatus.FAILED
        assert result.error == "Security validation failed: invalid column name"
        assert source.calls == []

    @pytest.mark.asyncio
    async def test_overlong_table_name(self) -> None:
        rule = VolumeThresholdRule(id="r1", table_name="t" * 300, min_row_threshold=1)
        result = await check_volume_threshold(FakeDataSource(row_count=10), rule)

        assert result.error == "Security validation failed: table name too long (max 256 characters)"


class TestSslRequirement:
    """Connectors refuse unencrypted connections unless explicitly allowed."""

    def test_ssl_required_by_default(self) -> None:
        with pytest.raises(SecurityError, match="SSL is required"):
            FakeConnector(config=ConnectorConfig(database="warehouse", ssl=False))

    def test_explicit_opt_out(self) -> None:
        connector = FakeConnector(
            config=ConnectorConfig(database="warehouse", ssl=False), security=SecurityConfig(require_ssl=False)
        )
        assert connector.config.ssl is False


class TestQueryValidation:
    """Allow-list and blocked keyword enforcement."""

    @pytest.mark.parametrize(
        "sql",
        [
            'SELECT COUNT(*) AS count FROM "orders"',
            'SELECT MAX("updated_at") AS max_date FROM "public"."orders"',
            'SELECT MIN("created_at") AS min_date FROM "orders"',
            "SELECT 1",
            "SELECT table_name FROM information_schema.tables WHERE table_schema = :schema",
        ],
    )
    def test_allowed(self, sql: str) -> None:
        assert FakeConnector().validate_query(sql) == sql

    @pytest.mark.parametrize(
        "sql",
        [
            "DELETE FROM orders",
            "SELECT COUNT(*) FROM orders; DROP TABLE admin",
            "SELECT 1 -- comment",
            "SELECT 1 /* hidden */",
            "UPDATE orders SET amount = 0",
            "SELECT MAX(id) FROM orders WHERE 1=1 OR EXEC xp_cmdshell",
        ],
    )
    def test_blocked_keywords(self, sql: str) -> None:
        with pytest.raises(SecurityError, match="blocked keyword"):
            FakeConnector().validate_query(sql)

    @pytest.mark.parametrize("sql", ["SELECT * FROM orders", "SELECT amount FROM orders WHERE id = 1"])
    def test_unlisted_shapes_rejected(self, sql: str) -> None:
        with pytest.raises(SecurityError, match="allowed pattern"):
            FakeConnector().validate_query(sql)

    def test_whitespace_is_collapsed(self) -> None:
        assert FakeConnector().validate_query("SELECT\n  COUNT(*)\n\tFROM orders") == "SELECT COUNT(*) FROM orders"

    def test_empty(self) -> None:
        with pytest.raises(SecurityError, match="empty query"):
            FakeConnector().validate_query("   ")

    @pytest.mark.asyncio
    async def test_raw_sql_always_refused(self) -> None:
        with pytest.raises(SecurityError, match="Direct SQL queries are not allowed"):
            await FakeConnector().query("SELECT 1")

    @pytest.mark.asyncio
    async def test_keyword_like_identifiers_are_allowed(self) -> None:
        """Validated names such as ``sp_sales`` or ``update`` are not mistaken for blocked keywords."""
        connector = FakeConnector(rows=[{"max_date": "2024-03-01 12:30:00"}])
        await connector.get_max_timestamp("sp_sales", "update")

        assert connector.executed == ['SELECT MAX("update") AS max_date FROM "sp_sales"']

    def test_blocked_keywords_outside_identifiers_still_rejected(self) -> None:
        with pytest.raises(SecurityError, match="blocked keyword"):
            FakeConnector().validate_query('SELECT COUNT(*) AS count FROM "sp_sales"; DROP TABLE x', ('"sp_sales"',))


class TestIdentifierQuoting:
    """Identifiers are validated, then quoted per part."""

    def test_simple(self) -> None:
        assert FakeConnector().escape_identifier("orders") == '"orders"'

    def test_schema_qualified(self) -> None:
        assert FakeConnector().escape_identifier("public.orders") == '"public"."orders"'

    def test_rejects_injection(self) -> None:
        with pytest.raises(SecurityError):
            FakeConnector().escape_identifier(INJECTION_TABLE)


class TestGateOperations:
    """Typed operations built on the gate."""

    @pytest.mark.asyncio
    async def test_row_count_statement(self) -> None:
        connector = FakeConnector(rows=[{"count": 42}])

        assert await connector.get_row_count("orders") == 42
        assert connector.executed == ['SELECT COUNT(*) AS count FROM "orders"']

    @pytest.mark.asyncio
    async def test_max_timestamp_parses_strings(self) -> None:
        connector = FakeConnector(rows=[{"max_date": "2024-03-01 12:30:00"}])
        value = await connector.get_max_timestamp("orders", "updated_at")

        assert value.isoformat() == "2024-03-01T12:30:00+00:00"
        assert connector.executed == ['SELECT MAX("updated_at") AS max_date FROM "orders"']

    @pytest.mark.asyncio
    async def test_rows_are_capped(self) -> None:
        connector = FakeConnector(rows=[{"count": i} for i in range(20)], security=SecurityConfig(max_rows=5))

        assert len(await connector.run_query("SELECT 1")) == 5
        assert len(await connector.list_tables()) == 5

    @pytest.mark.asyncio
    async def test_query_timeout(self) -> None:
        connector = FakeConnector(delay=0.5, security=SecurityConfig(query_timeout=0.05))

        with pytest.raises(OperationTimeoutError) as exc_info:
            await connector.get_row_count("orders")
        assert exc_info.value.operation == "get_row_count"
        assert exc_info.value.timeout == 0.05

    @pytest.mark.asyncio
    async def test_missing_table(self) -> None:
        with pytest.raises(QueryError) as exc_info:
            await FakeConnector(columns=[]).get_table_schema("orders")
        assert exc_info.value.operation == "table_not_found"

    @pytest.mark.asyncio
    async def test_last_modified_probes_common_columns(self) -> None:
        connector = FakeConnector(
            rows=[{"max_date": "2024-03-01T12:30:00Z"}],
            columns=[ColumnInfo("id", "integer"), ColumnInfo("modified_at", "timestamp")],
        )
        value = await connector.get_last_modified("orders")

        assert value.isoformat() == "2024-03-01T12:30:00+00:00"
        assert connector.executed[-1] == 'SELECT MAX("modified_at") AS max_date FROM "orders"'

    @pytest.mark.asyncio
    async def test_last_modified_without_candidates(self) -> None:
        connector = FakeConnector(columns=[ColumnInfo("id", "integer")])
        assert await connector.get_last_modified("orders") is None

    @pytest.mark.asyncio
    async def test_last_modified_never_raises(self) -> None:
        assert await FakeConnector().get_last_modified(INJECTION_TABLE) is None


class BrokenDriver(FakeConnector):
    """Connector whose driver fails in a configurable phase."""

    def __init__(self, fail_on: str, **kwargs: Any):
        super().__init__(**kwargs)
        self.fail_on = fail_on

    async def _connect(self) -> None:
        if self.fail_on == "connect":
            raise OSError("could not connect to server at 10.1.2.3:5432 (password=hunter2)")
        await super()._connect()

    async def _execute(self, sql: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        if self.fail_on == "execute":
            raise RuntimeError('relation "secret_table" does not exist')
        return await super()._execute(sql, params)


class TestDriverErrors:
    """Driver failures are wrapped into safe errors."""

    @pytest.mark.asyncio
    async def test_connect_failure(self) -> None:
        with pytest.raises(SourceConnectionError) as exc_info:
            await BrokenDriver("connect").get_row_count("orders")
        assert get_user_message(exc_info.value) == CONNECTION_ERROR_MESSAGE
        assert "hunter2" not in get_user_message(exc_info.value)

    @pytest.mark.asyncio
    async def test_execute_failure(self) -> None:
        with pytest.raises(QueryError) as exc_info:
            await BrokenDriver("execute").get_row_count("orders")
        assert exc_info.value.message == "Query failed during get_row_count"
        assert "secret_table" not in get_user_message(exc_info.value)

    @pytest.mark.asyncio
    async def test_test_connection_never_raises(self) -> None:
        assert await FakeConnector().test_connection() is True
        assert await BrokenDriver("connect").test_connection() is False
        assert await BrokenDriver("execute").test_connection() is False


class TestLifecycle:
    """Connect once, close idempotently."""

    @pytest.mark.asyncio
    async def test_connects_lazily_once(self) -> None:
        connector = FakeConnector(rows=[{"count": 1}])
        await connector.get_row_count("orders")
        await connector.get_row_count("orders")

        assert connector.connect_calls == 1

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self) -> None:
        connector = FakeConnector(rows=[{"count": 1}])
        await connector.get_row_count("orders")

        await connector.close()
        await connector.close()

        assert connector.disconnect_calls == 1

    @pytest.mark.asyncio
    async def test_closed_connector_refuses_work(self) -> None:
        connector = FakeConnector(rows=[{"count": 1}])
        await connector.close()

        with pytest.raises(SourceConnectionError):
            await connector.get_row_count("orders")

    @pytest.mark.asyncio
    async def test_concurrent_calls_connect_once(self) -> None:
        connector = FakeConnector(rows=[{"count": 7}])
        counts = await asyncio.gather(*(connector.get_row_count("orders") for _ in range(5)))

        assert counts == [7] * 5
        assert connector.connect_calls == 1
