"""Data source wrapper applying retry and circuit breaking to every call."""

import functools
from datetime import datetime
from typing import Awaitable, Callable, TypeVar

from freshguard.config import DebugConfig
from freshguard.monitoring.domain.models import TableSchema
from freshguard.monitoring.domain.protocols import DataSource
from freshguard.resilience.circuit_breaker import CircuitBreaker
from freshguard.resilience.retry_policy import RetryPolicy

T = TypeVar("T")


class ResilientDataSource:
    """
    Wrap a data source so each call goes through a retry policy and/or a
    circuit breaker.

    The breaker sits inside the retry loop: every attempt counts towards
    the breaker, and an open breaker stops retrying immediately.
    """

    def __init__(
        self,
        source: DataSource,
        retry_policy: RetryPolicy | None = None,
        circuit_breaker: CircuitBreaker | None = None,
    ):
        self.source = source
        self.retry_policy = retry_policy
        self.circuit_breaker = circuit_breaker

    async def _call(self, operation: Callable[[], Awaitable[T]]) -> T:
        attempt = operation
        if self.circuit_breaker is not None:
            attempt = functools.partial(self.circuit_breaker.execute, operation)

        if self.retry_policy is not None:
            return await self.retry_policy.execute(attempt)
        return await attempt()

    async def test_connection(self, debug: DebugConfig | None = None) -> bool:
        # Never raises, so there is nothing to retry
        return await self.source.test_connection(debug)

    async def list_tables(self) -> list[str]:
        return await self._call(self.source.list_tables)

    async def get_table_schema(self, table: str) -> TableSchema:
        return await self._call(lambda: self.source.get_table_schema(table))

    async def get_row_count(self, table: str) -> int:
        return await self._call(lambda: self.source.get_row_count(table))

    async def get_max_timestamp(self, table: str, column: str) -> datetime | None:
        return await self._call(lambda: self.source.get_max_timestamp(table, column))

    async def get_min_timestamp(self, table: str, column: str) -> datetime | None:
        return await self._call(lambda: self.source.get_min_timestamp(table, column))

    async def get_last_modified(self, table: str) -> datetime | None:
        return await self.source.get_last_modified(table)

    async def close(self) -> None:
        await self.source.close()
