"""Security gate shared by every backend connector."""

import asyncio
import re
from abc import ABC, abstractmethod
from datetime import date, datetime, time as dt_time, timezone
from typing import Any, Awaitable, Callable, Iterable, TypeVar

from loguru import logger

from freshguard.config import ConnectorConfig, DebugConfig, SecurityConfig
from freshguard.monitoring.domain.exceptions import (
    FreshGuardError,
    OperationTimeoutError,
    QueryError,
    SecurityError,
    SourceConnectionError,
)
from freshguard.monitoring.domain.models import ColumnInfo, TableSchema
from freshguard.monitoring.domain.validators import validate_identifier, validate_table_name
from freshguard.observability.metrics import MetricsSink, NullMetrics, time_operation
from freshguard.resilience.timeout import run_with_timeout

T = TypeVar("T")

# Columns probed, in order, when a table has no declared timestamp column
TIMESTAMP_PROBE_COLUMNS = ("updated_at", "modified_at", "last_modified", "timestamp")


def _keyword_pattern(keyword: str) -> re.Pattern:
    if keyword.isalpha():
        return re.compile(rf"(?<![A-Za-z0-9_]){re.escape(keyword)}(?![A-Za-z0-9_])", re.IGNORECASE)
    if keyword[0].isalpha():
        # Prefixes such as xp_ / sp_
        return re.compile(rf"(?<![A-Za-z0-9_]){re.escape(keyword)}", re.IGNORECASE)
    return re.compile(re.escape(keyword))


def coerce_timestamp(value: Any) -> datetime | None:
    """Normalize a driver timestamp value to an aware datetime."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, date):
        return datetime.combine(value, dt_time.min, tzinfo=timezone.utc)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            raise QueryError("Invalid timestamp value returned by the data source", "parse_timestamp") from None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    raise QueryError("Unsupported timestamp value returned by the data source", "parse_timestamp")


class BaseConnector(ABC):
    """
    Base class for data source connectors.

    Every statement a subclass executes passes through ``run_query``, which
    validates its shape, bounds it with the query timeout and caps the rows
    kept. Table and column names are validated and quoted before they are
    interpolated. Subclasses only implement the driver hooks.
    """

    def __init__(
        self,
        config: ConnectorConfig,
        security: SecurityConfig | None = None,
        metrics: MetricsSink | None = None,
    ):
        """
        Initialize the connector.

        Raises:
            SecurityError: If SSL is required but disabled in ``config``
        """
        self.config = config
        self.security = security or SecurityConfig()
        self.metrics = metrics or NullMetrics()

        if self.security.require_ssl and not config.ssl:
            raise SecurityError("SSL is required but disabled for this connection")

        self._allowed_patterns = [
            re.compile(pattern, re.IGNORECASE | re.DOTALL) for pattern in self.security.allowed_query_patterns
        ]
        self._blocked_patterns = [_keyword_pattern(keyword) for keyword in self.security.blocked_keywords]
        self._connected = False
        self._closed = False
        self._connect_lock = asyncio.Lock()

    @property
    def database_name(self) -> str:
        return self.config.database or "default"

    # Driver hooks

    @abstractmethod
    async def _connect(self) -> None:
        """Open the underlying connection or pool."""

    @abstractmethod
    async def _disconnect(self) -> None:
        """Release the underlying connection or pool."""

    @abstractmethod
    async def _execute(self, sql: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        """Execute a validated statement and return rows as mappings."""

    @abstractmethod
    async def _fetch_table_names(self) -> list[str]:
        """Return the names of all tables visible to the connection."""

    @abstractmethod
    async def _fetch_columns(self, table: str) -> list[ColumnInfo]:
        """Return the columns of a table, or an empty list if it does not exist."""

    # Gate

    def quote_identifier(self, part: str) -> str:
        """Quote one already validated identifier part. ANSI double quotes by default."""
        return f'"{part}"'

    def qualify_table(self, table: str) -> str:
        """Name under which typed operations address ``table``."""
        return table

    def escape_identifier(self, identifier: str, kind: str = "identifier") -> str:
        """Validate and quote a (possibly ``schema.table``) identifier."""
        validate_identifier(identifier, kind)
        return ".".join(self.quote_identifier(part) for part in identifier.split("."))

    def validate_query(self, sql: str, identifiers: Iterable[str] = ()) -> str:
        """
        Check a statement against the blocked keywords and allowed shapes.

        ``identifiers`` are quoted names produced by ``escape_identifier``;
        they are masked before the keyword screen, so a validated column
        such as ``update`` does not trip it.

        Returns:
            The statement with whitespace collapsed

        Raises:
            SecurityError: If the statement is empty, contains a blocked
                keyword or does not match an allowed pattern
        """
        normalized = " ".join(sql.split()) if isinstance(sql, str) else ""
        if not normalized:
            raise SecurityError("empty query")

        screened = normalized
        for identifier in identifiers:
            screened = screened.replace(identifier, " ident ")

        for pattern in self._blocked_patterns:
            if pattern.search(screened):
                raise SecurityError("query contains a blocked keyword")

        if not any(pattern.match(normalized) for pattern in self._allowed_patterns):
            raise SecurityError("query does not match an allowed pattern")

        return normalized

    async def execute_with_timeout(
        self, awaitable: Awaitable[T], timeout: float | None = None, operation: str = "query"
    ) -> T:
        """Await ``awaitable`` within ``timeout`` seconds (default: the query timeout)."""
        return await run_with_timeout(awaitable, timeout or self.security.query_timeout, operation)

    def limit_rows(self, rows: list[T]) -> list[T]:
        """Cap a result set at ``max_rows``."""
        if len(rows) > self.security.max_rows:
            logger.debug(f"Result truncated from {len(rows)} to {self.security.max_rows} rows")
            return rows[: self.security.max_rows]
        return rows

    async def query(self, sql: str) -> list[dict[str, Any]]:
        """Arbitrary SQL is never accepted."""
        raise SecurityError("Direct SQL queries are not allowed; use the typed data source methods")

    # Connection lifecycle

    async def connect(self) -> None:
        """
        Open the connection within the connection timeout.

        Concurrent callers share a single setup; only the first one runs
        ``_connect``.
        """
        if self._closed:
            raise SourceConnectionError("Connector has been closed", host=self.config.host, port=self.config.port)
        if self._connected:
            return

        async with self._connect_lock:
            if self._closed:
                raise SourceConnectionError(
                    "Connector has been closed", host=self.config.host, port=self.config.port
                )
            if self._connected:
                return

            try:
                await run_with_timeout(self._connect(), self.security.connection_timeout, "connect")
            except (OperationTimeoutError, SecurityError, SourceConnectionError):
                raise
            except Exception as e:
                raise SourceConnectionError(host=self.config.host, port=self.config.port, cause=e) from e

            self._connected = True
        logger.debug(f"Connected to {self.database_name}")

    async def close(self) -> None:
        """Close the connection. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True

        if not self._connected:
            return
        self._connected = False

        try:
            await self._disconnect()
        except Exception as e:
            logger.warning(f"Error while closing connection to {self.database_name}: {type(e).__name__}")

    async def _guarded(
        self, operation: str, func: Callable[[], Awaitable[T]], table: str | None = None
    ) -> T:
        """Run a driver call under the timeout, recording metrics and wrapping driver errors."""
        await self.connect()
        try:
            return await time_operation(
                self.metrics,
                operation,
                self.database_name,
                table,
                lambda: self.execute_with_timeout(func(), operation=operation),
            )
        except FreshGuardError:
            raise
        except Exception as e:
            raise QueryError(f"Query failed during {operation}", operation, table, cause=e) from e

    async def run_query(
        self,
        sql: str,
        params: dict[str, Any] | None = None,
        operation: str = "query",
        table: str | None = None,
        identifiers: Iterable[str] = (),
    ) -> list[dict[str, Any]]:
        """Validate and execute an internally built statement."""
        normalized = self.validate_query(sql, identifiers)
        rows = await self._guarded(operation, lambda: self._execute(normalized, params or {}), table)
        return self.limit_rows(rows)

    # DataSource

    async def test_connection(self, debug: DebugConfig | None = None) -> bool:
        """Return True if the source answers ``SELECT 1``. Never raises."""
        try:
            await self.run_query("SELECT 1 AS ok", operation="test_connection")
            return True
        except Exception as e:
            if debug is not None and debug.enabled:
                logger.debug(
                    f"Connection test failed for {self.database_name} ({type(e).__name__}). "
                    f"Suggestion: {self._connection_suggestion(e)}"
                )
            return False

    @staticmethod
    def _connection_suggestion(error: BaseException) -> str:
        if isinstance(error, OperationTimeoutError):
            return "increase connection_timeout or check network latency to the host"
        if isinstance(error, SecurityError):
            return "review the SSL and security settings of the connector"
        if isinstance(error, SourceConnectionError):
            return "check host, port, firewall rules and that the database is running"
        return "check credentials, database name and permissions"

    async def list_tables(self) -> list[str]:
        names = await self._guarded("list_tables", self._fetch_table_names)
        return self.limit_rows(sorted(names))

    async def get_table_schema(self, table: str) -> TableSchema:
        validate_table_name(table)
        columns = await self._guarded("get_table_schema", lambda: self._fetch_columns(table), table)
        if not columns:
            raise QueryError.table_not_found(table)
        return TableSchema(table=table, columns=self.limit_rows(list(columns)))

    async def get_row_count(self, table: str) -> int:
        quoted = self.escape_identifier(self.qualify_table(table), "table name")
        rows = await self.run_query(
            f"SELECT COUNT(*) AS count FROM {quoted}", operation="get_row_count", table=table, identifiers=(quoted,)
        )
        if not rows:
            raise QueryError("Row count query returned no rows", "get_row_count", table)
        return int(rows[0]["count"])

    async def get_max_timestamp(self, table: str, column: str) -> datetime | None:
        return await self._aggregate_timestamp("MAX", "max_date", table, column)

    async def get_min_timestamp(self, table: str, column: str) -> datetime | None:
        return await self._aggregate_timestamp("MIN", "min_date", table, column)

    async def _aggregate_timestamp(self, func: str, alias: str, table: str, column: str) -> datetime | None:
        quoted_table = self.escape_identifier(self.qualify_table(table), "table name")
        quoted_column = self.escape_identifier(column, "column name")
        rows = await self.run_query(
            f"SELECT {func}({quoted_column}) AS {alias} FROM {quoted_table}",
            operation=f"get_{func.lower()}_timestamp",
            table=table,
            identifiers=(quoted_table, quoted_column),
        )
        if not rows:
            return None
        return coerce_timestamp(rows[0][alias])

    async def get_last_modified(self, table: str) -> datetime | None:
        """Latest value of the first common timestamp column found. Never raises."""
        try:
            schema = await self.get_table_schema(table)
            names = {column.name.lower(): column.name for column in schema.columns}
            for candidate in TIMESTAMP_PROBE_COLUMNS:
                if candidate in names:
                    return await self.get_max_timestamp(table, names[candidate])
        except Exception as e:
            logger.debug(f"Last modified lookup failed: {type(e).__name__}")
        return None
