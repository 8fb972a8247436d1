"""Repositories for history data access."""

from datetime import datetime, timezone
from typing import Sequence

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from freshguard.monitoring.domain.models import CheckStatus, ColumnInfo, ExecutionRecord, SchemaSnapshot
from freshguard.monitoring.infrastructure.orm import CheckExecutionRow, SchemaBaselineRow


def _to_utc(value: datetime) -> datetime:
    """SQLite drops tzinfo on the way back; values are always written as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class ExecutionRepository:
    """Repository for CheckExecutionRow entities."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, record: ExecutionRecord) -> CheckExecutionRow:
        """Insert an execution record."""
        row = CheckExecutionRow(
            rule_id=record.rule_id,
            status=CheckStatus(record.status).value,
            execution_duration_ms=record.execution_duration_ms,
            executed_at=_to_utc(record.executed_at),
            row_count=record.row_count,
            lag_minutes=record.lag_minutes,
            error=record.error,
        )
        self.session.add(row)
        await self.session.flush()
        return row

    async def list_recent(
        self, rule_id: str, since: datetime, limit: int, status: CheckStatus | None = None
    ) -> Sequence[CheckExecutionRow]:
        """Executions of a rule since a point in time, newest first."""
        query = select(CheckExecutionRow).where(
            CheckExecutionRow.rule_id == rule_id,
            CheckExecutionRow.executed_at >= _to_utc(since),
        )
        if status is not None:
            query = query.where(CheckExecutionRow.status == CheckStatus(status).value)

        result = await self.session.execute(
            query.order_by(CheckExecutionRow.executed_at.desc(), CheckExecutionRow.id.desc()).limit(limit)
        )
        return result.scalars().all()

    @staticmethod
    def to_record(row: CheckExecutionRow) -> ExecutionRecord:
        return ExecutionRecord(
            rule_id=row.rule_id,
            status=CheckStatus(row.status),
            execution_duration_ms=row.execution_duration_ms,
            executed_at=_to_utc(row.executed_at),
            row_count=row.row_count,
            lag_minutes=row.lag_minutes,
            error=row.error,
        )


class BaselineRepository:
    """Repository for SchemaBaselineRow entities."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_current(self, rule_id: str) -> SchemaBaselineRow | None:
        """Get the current baseline of a rule."""
        result = await self.session.execute(
            select(SchemaBaselineRow)
            .where(SchemaBaselineRow.rule_id == rule_id, SchemaBaselineRow.is_current.is_(True))
            .order_by(SchemaBaselineRow.captured_at.desc(), SchemaBaselineRow.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def replace_current(self, rule_id: str, snapshot: SchemaSnapshot) -> SchemaBaselineRow:
        """Retire the current baseline of a rule and insert a new one."""
        await self.session.execute(
            update(SchemaBaselineRow)
            .where(SchemaBaselineRow.rule_id == rule_id, SchemaBaselineRow.is_current.is_(True))
            .values(is_current=False)
        )
        row = SchemaBaselineRow(
            rule_id=rule_id,
            table_name=snapshot.table,
            columns=[
                {"name": column.name, "type": column.type, "nullable": column.nullable} for column in snapshot.columns
            ],
            captured_at=_to_utc(snapshot.captured_at),
            is_current=True,
        )
        self.session.add(row)
        await self.session.flush()
        return row

    @staticmethod
    def to_snapshot(row: SchemaBaselineRow) -> SchemaSnapshot:
        return SchemaSnapshot(
            rule_id=row.rule_id,
            table=row.table_name,
            columns=[
                ColumnInfo(name=column["name"], type=column["type"], nullable=column.get("nullable", True))
                for column in row.columns
            ],
            captured_at=_to_utc(row.captured_at),
        )
