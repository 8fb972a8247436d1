"""Tests for the schema change check."""

from __future__ import annotations

from dataclasses import replace

import pytest

from freshguard.monitoring.application.schema_changes import check_schema_changes, compare_schemas
from freshguard.monitoring.domain.models import (
    AdaptationMode,
    ChangeType,
    CheckStatus,
    ColumnInfo,
    MonitoringMode,
    SchemaChangeConfig,
    SchemaChangeRule,
    SchemaSnapshot,
    TableSchema,
)
from freshguard.monitoring.infrastructure.history_store import InMemoryHistoryStore
from tests.conftest import FakeDataSource


class CountingStore(InMemoryHistoryStore):
    """In-memory store that counts baseline writes."""

    def __init__(self):
        super().__init__()
        self.baseline_writes = 0

    async def set_baseline(self, rule_id: str, snapshot: SchemaSnapshot) -> None:
        self.baseline_writes += 1
        await super().set_baseline(rule_id, snapshot)


def with_column(schema: TableSchema, column: ColumnInfo) -> TableSchema:
    return replace(schema, columns=[*schema.columns, column])


def rule_with(adaptation: AdaptationMode = AdaptationMode.MANUAL, monitoring: MonitoringMode = MonitoringMode.FULL):
    return SchemaChangeRule(
        id="rule-schema",
        table_name="orders",
        schema_change_config=SchemaChangeConfig(adaptation_mode=adaptation, monitoring_mode=monitoring),
    )


class TestCompareSchemas:
    """Column diffing."""

    def test_identical(self, orders_schema: TableSchema) -> None:
        assert not compare_schemas(orders_schema, orders_schema).has_changes

    def test_added_and_removed(self, orders_schema: TableSchema) -> None:
        current = TableSchema(
            table="orders",
            columns=[*orders_schema.columns[:2], ColumnInfo(name="discount", type="decimal")],
        )
        changes = compare_schemas(orders_schema, current)

        assert [c.column_name for c in changes.added] == ["discount"]
        assert [c.column_name for c in changes.removed] == ["updated_at"]
        assert changes.added[0].change_type == ChangeType.ADDED
        assert changes.change_count == 2

    def test_type_change(self, orders_schema: TableSchema) -> None:
        current = TableSchema(
            table="orders",
            columns=[c if c.name != "amount" else ColumnInfo("amount", "text") for c in orders_schema.columns],
        )
        changes = compare_schemas(orders_schema, current)

        assert len(changes.modified) == 1
        assert changes.modified[0].old_type == "decimal"
        assert changes.modified[0].new_type == "text"

    def test_nullability_change(self, orders_schema: TableSchema) -> None:
        current = TableSchema(
            table="orders",
            columns=[
                c if c.name != "amount" else ColumnInfo("amount", "decimal", nullable=False)
                for c in orders_schema.columns
            ],
        )
        changes = compare_schemas(orders_schema, current)

        assert changes.modified[0].old_nullable is True
        assert changes.modified[0].new_nullable is False

    def test_type_case_is_ignored(self, orders_schema: TableSchema) -> None:
        current = TableSchema(
            table="orders", columns=[ColumnInfo(c.name, c.type.upper(), c.nullable) for c in orders_schema.columns]
        )
        assert not compare_schemas(orders_schema, current).has_changes

    def test_summary(self, orders_schema: TableSchema) -> None:
        current = with_column(orders_schema, ColumnInfo(name="discount", type="decimal"))
        assert compare_schemas(orders_schema, current).summary() == "Schema changed: 1 added (discount)"


class TestBaseline:
    """First run and idempotence."""

    @pytest.mark.asyncio
    async def test_first_run_stores_baseline(self, schema_rule: SchemaChangeRule, orders_schema: TableSchema) -> None:
        store = CountingStore()
        result = await check_schema_changes(FakeDataSource(schema=orders_schema), schema_rule, store)

        assert result.status == CheckStatus.OK
        assert result.schema_changes is None
        baseline = await store.get_current_baseline(schema_rule.id)
        assert baseline.to_schema().column_map() == orders_schema.column_map()

    @pytest.mark.asyncio
    async def test_unchanged_schema_is_idempotent(
        self, schema_rule: SchemaChangeRule, orders_schema: TableSchema
    ) -> None:
        store = CountingStore()
        source = FakeDataSource(schema=orders_schema)

        first = await check_schema_changes(source, schema_rule, store)
        second = await check_schema_changes(source, schema_rule, store)

        assert first.status == second.status == CheckStatus.OK
        assert store.baseline_writes == 1

    @pytest.mark.asyncio
    async def test_requires_history_store(self, schema_rule: SchemaChangeRule, orders_schema: TableSchema) -> None:
        result = await check_schema_changes(FakeDataSource(schema=orders_schema), schema_rule)

        assert result.status == CheckStatus.FAILED
        assert result.error == "Schema change checks require a history store"


class TestAdaptation:
    """What happens once a change is detected."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("mode", [AdaptationMode.MANUAL, AdaptationMode.ALERT_ONLY])
    async def test_non_auto_modes_alert_and_keep_baseline(
        self, orders_schema: TableSchema, mode: AdaptationMode
    ) -> None:
        rule = rule_with(adaptation=mode)
        store = CountingStore()
        await check_schema_changes(FakeDataSource(schema=orders_schema), rule, store)

        changed = FakeDataSource(schema=with_column(orders_schema, ColumnInfo(name="discount", type="decimal")))
        first = await check_schema_changes(changed, rule, store)
        second = await check_schema_changes(changed, rule, store)

        assert first.status == second.status == CheckStatus.ALERT
        assert first.error == "Schema changed: 1 added (discount)"
        assert [c.column_name for c in first.schema_changes.added] == ["discount"]
        assert store.baseline_writes == 1

    @pytest.mark.asyncio
    async def test_auto_mode_adopts_new_schema(self, orders_schema: TableSchema) -> None:
        rule = rule_with(adaptation=AdaptationMode.AUTO)
        store = CountingStore()
        changed = FakeDataSource(schema=with_column(orders_schema, ColumnInfo(name="discount", type="decimal")))

        await check_schema_changes(FakeDataSource(schema=orders_schema), rule, store)
        second = await check_schema_changes(changed, rule, store)
        third = await check_schema_changes(changed, rule, store)

        assert second.status == CheckStatus.OK
        assert second.schema_changes.has_changes
        assert third.status == CheckStatus.OK
        assert third.schema_changes is None
        assert store.baseline_writes == 2


class TestTableLevel:
    """Table disappearance and monitoring modes."""

    @pytest.mark.asyncio
    async def test_table_removed_alerts(self, schema_rule: SchemaChangeRule, orders_schema: TableSchema) -> None:
        store = InMemoryHistoryStore()
        await check_schema_changes(FakeDataSource(schema=orders_schema), schema_rule, store)

        result = await check_schema_changes(FakeDataSource(schema=None), schema_rule, store)

        assert result.status == CheckStatus.ALERT
        assert result.schema_changes.table_removed
        assert result.error == "Table no longer exists"

    @pytest.mark.asyncio
    async def test_missing_table_without_baseline_fails(self, schema_rule: SchemaChangeRule) -> None:
        result = await check_schema_changes(FakeDataSource(schema=None), schema_rule, InMemoryHistoryStore())

        assert result.status == CheckStatus.FAILED
        assert result.error == "Table not found: orders"

    @pytest.mark.asyncio
    async def test_table_mode_ignores_column_changes(self, orders_schema: TableSchema) -> None:
        rule = rule_with(monitoring=MonitoringMode.TABLE)
        store = InMemoryHistoryStore()
        await check_schema_changes(FakeDataSource(schema=orders_schema), rule, store)

        changed = FakeDataSource(schema=with_column(orders_schema, ColumnInfo(name="discount", type="decimal")))
        result = await check_schema_changes(changed, rule, store)

        assert result.status == CheckStatus.OK

    @pytest.mark.asyncio
    async def test_columns_mode_does_not_report_table_removal(self, orders_schema: TableSchema) -> None:
        rule = rule_with(monitoring=MonitoringMode.COLUMNS)
        store = InMemoryHistoryStore()
        await check_schema_changes(FakeDataSource(schema=orders_schema), rule, store)

        result = await check_schema_changes(FakeDataSource(schema=None), rule, store)

        assert result.status == CheckStatus.FAILED
        assert result.error == "Table not found: orders"
