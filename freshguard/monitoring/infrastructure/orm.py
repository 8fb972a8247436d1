"""ORM tables for execution history and schema baselines."""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, BigInteger, Boolean, DateTime, Float, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


class CheckExecutionRow(Base):
    """One executed check."""

    __tablename__ = "check_executions"
    __table_args__ = (Index("ix_check_executions_rule_executed", "rule_id", "executed_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    rule_id: Mapped[str] = mapped_column(String(256), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)  # ok / alert / failed
    execution_duration_ms: Mapped[float] = mapped_column(Float, nullable=False)
    executed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    row_count: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    lag_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<CheckExecutionRow(rule_id={self.rule_id!r}, status={self.status!r}, executed_at={self.executed_at})>"


class SchemaBaselineRow(Base):
    """A schema snapshot; at most one row per rule has ``is_current`` set."""

    __tablename__ = "schema_baselines"
    __table_args__ = (Index("ix_schema_baselines_rule_current", "rule_id", "is_current"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    rule_id: Mapped[str] = mapped_column(String(256), nullable=False)
    table_name: Mapped[str] = mapped_column(String(256), nullable=False)
    columns: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False)
    captured_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    is_current: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<SchemaBaselineRow(rule_id={self.rule_id!r}, table={self.table_name!r}, current={self.is_current})>"
