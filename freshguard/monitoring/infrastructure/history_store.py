"""History stores: execution records and schema baselines."""

from collections import defaultdict
from datetime import datetime, timezone

from loguru import logger

from freshguard.config import HistoryStoreConfig
from freshguard.monitoring.domain.exceptions import ConfigurationError
from freshguard.monitoring.domain.models import CheckStatus, ExecutionRecord, SchemaSnapshot
from freshguard.monitoring.domain.protocols import HistoryStore
from freshguard.monitoring.infrastructure.database import Database
from freshguard.monitoring.infrastructure.repositories import BaselineRepository, ExecutionRepository


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class InMemoryHistoryStore:
    """Process-local history store for tests and embedding."""

    def __init__(self):
        self._executions: dict[str, list[ExecutionRecord]] = defaultdict(list)
        self._baselines: dict[str, SchemaSnapshot] = {}

    async def save_execution(self, record: ExecutionRecord) -> None:
        self._executions[record.rule_id].append(record)

    async def get_recent_executions(
        self,
        rule_id: str,
        since: datetime,
        limit: int = 100,
        status: CheckStatus | None = None,
    ) -> list[ExecutionRecord]:
        since = _aware(since)
        records = [
            record
            for record in self._executions.get(rule_id, [])
            if _aware(record.executed_at) >= since and (status is None or record.status == status)
        ]
        records.sort(key=lambda record: _aware(record.executed_at), reverse=True)
        return records[:limit]

    async def get_current_baseline(self, rule_id: str) -> SchemaSnapshot | None:
        return self._baselines.get(rule_id)

    async def set_baseline(self, rule_id: str, snapshot: SchemaSnapshot) -> None:
        self._baselines[rule_id] = snapshot

    async def close(self) -> None:
        pass


class SqlAlchemyHistoryStore:
    """History store backed by any SQLAlchemy async database."""

    def __init__(self, database: Database):
        self.database = database

    async def save_execution(self, record: ExecutionRecord) -> None:
        try:
            async with self.database.get_async_session() as session:
                await ExecutionRepository(session).create(record)
        except Exception as e:
            logger.warning(f"Failed to save execution for rule {record.rule_id}: {type(e).__name__}")

    async def get_recent_executions(
        self,
        rule_id: str,
        since: datetime,
        limit: int = 100,
        status: CheckStatus | None = None,
    ) -> list[ExecutionRecord]:
        async with self.database.get_async_session() as session:
            rows = await ExecutionRepository(session).list_recent(rule_id, since, limit, status)
            return [ExecutionRepository.to_record(row) for row in rows]

    async def get_current_baseline(self, rule_id: str) -> SchemaSnapshot | None:
        async with self.database.get_async_session() as session:
            row = await BaselineRepository(session).get_current(rule_id)
            return BaselineRepository.to_snapshot(row) if row else None

    async def set_baseline(self, rule_id: str, snapshot: SchemaSnapshot) -> None:
        # Retire and insert in one transaction
        async with self.database.get_async_session() as session:
            await BaselineRepository(session).replace_current(rule_id, snapshot)
        logger.debug(f"Schema baseline stored for rule {rule_id}")

    async def close(self) -> None:
        await self.database.close()


async def create_history_store(config: HistoryStoreConfig | None = None) -> HistoryStore:
    """
    Build the history store described by ``config``.

    Raises:
        ConfigurationError: If the sqlalchemy store has no URL
    """
    config = config or HistoryStoreConfig()

    if config.type == "memory":
        return InMemoryHistoryStore()

    if not config.url:
        raise ConfigurationError("History store URL is required for the sqlalchemy store")

    database = Database(config.url)
    if config.create_tables:
        await database.create_all()
    return SqlAlchemyHistoryStore(database)
