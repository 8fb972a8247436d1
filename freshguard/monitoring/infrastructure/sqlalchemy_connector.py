"""Generic connector over any SQLAlchemy async driver."""

from typing import Any

from loguru import logger
from sqlalchemy import inspect, text, types
from sqlalchemy.engine import URL, make_url
from sqlalchemy.sql.compiler import IdentifierPreparer
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from freshguard.config import ConnectorConfig, SecurityConfig
from freshguard.monitoring.domain.models import ColumnInfo
from freshguard.monitoring.infrastructure.base_connector import BaseConnector
from freshguard.observability.metrics import MetricsSink

# Order matters: subclasses before their bases
_TYPE_MAP: tuple[tuple[type, str], ...] = (
    (types.Boolean, "boolean"),
    (types.BigInteger, "bigint"),
    (types.Integer, "integer"),
    (types.Float, "float"),
    (types.Numeric, "decimal"),
    (types.DateTime, "timestamp"),
    (types.Date, "date"),
    (types.Time, "time"),
    (types.String, "text"),
)


def normalize_type(column_type: Any) -> str:
    """Map a reflected SQLAlchemy type to a backend-neutral name."""
    for sa_type, name in _TYPE_MAP:
        if isinstance(column_type, sa_type):
            return name
    return "unknown"


class SQLAlchemyConnector(BaseConnector):
    """
    Connector for any database with a SQLAlchemy async dialect.

    Examples: ``sqlite+aiosqlite:///path.db``, ``postgresql+asyncpg://...``.
    Metadata comes from SQLAlchemy's inspector rather than hand-written
    catalog queries.
    """

    def __init__(
        self,
        config: ConnectorConfig,
        security: SecurityConfig | None = None,
        metrics: MetricsSink | None = None,
        drivername: str = "postgresql+asyncpg",
        connect_args: dict[str, Any] | None = None,
    ):
        super().__init__(config, security, metrics)
        self.url = self._build_url(config, drivername)
        self.connect_args = connect_args or {}
        self._engine: AsyncEngine | None = None
        self._preparer: IdentifierPreparer | None = None

    @staticmethod
    def _build_url(config: ConnectorConfig, drivername: str) -> URL:
        if config.url:
            return make_url(config.url)
        return URL.create(
            drivername,
            username=config.username,
            password=config.password,
            host=config.host,
            port=config.port,
            database=config.database or None,
        )

    @property
    def database_name(self) -> str:
        return self.config.database or self.url.database or "default"

    def _split_table(self, table: str) -> tuple[str | None, str]:
        if "." in table:
            schema, name = table.split(".", 1)
            return schema, name
        return self.config.schema_name, table

    def qualify_table(self, table: str) -> str:
        """Prefix ``schema_name`` to unqualified tables, as metadata lookups do."""
        schema, name = self._split_table(table)
        return f"{schema}.{name}" if schema else name

    @property
    def identifier_preparer(self) -> IdentifierPreparer:
        if self._preparer is None:
            dialect = self._engine.dialect if self._engine is not None else self.url.get_dialect()()
            self._preparer = dialect.identifier_preparer
        return self._preparer

    def quote_identifier(self, part: str) -> str:
        """Quote with the dialect's own quoting (backticks on MySQL, brackets on SQL Server)."""
        return self.identifier_preparer.quote_identifier(part)

    def _create_engine(self) -> AsyncEngine:
        engine_kwargs: dict[str, Any] = {"echo": False, "connect_args": self.connect_args}
        if self.url.get_backend_name() != "sqlite":
            engine_kwargs.update(
                pool_pre_ping=True,  # Verify connections before using
                pool_size=5,
                max_overflow=5,
                pool_recycle=3600,
                pool_timeout=self.security.connection_timeout,
            )
        return create_async_engine(self.url, **engine_kwargs)

    async def _connect(self) -> None:
        self._engine = self._create_engine()
        async with self._engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

        logger.info(f"Connection pool configured for {self.url.get_backend_name()} database {self.database_name}")

    async def _disconnect(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None

    async def _execute(self, sql: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        async with self._engine.connect() as conn:
            result = await conn.execute(text(sql), params)
            # One extra row so the gate can tell the result was truncated
            rows = result.mappings().fetchmany(self.security.max_rows + 1)
        return [dict(row) for row in rows]

    async def _fetch_table_names(self) -> list[str]:
        schema = self.config.schema_name
        async with self._engine.connect() as conn:
            return await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names(schema=schema))

    async def _fetch_columns(self, table: str) -> list[ColumnInfo]:
        schema, name = self._split_table(table)

        def reflect(sync_conn) -> list[ColumnInfo]:
            inspector = inspect(sync_conn)
            if not inspector.has_table(name, schema=schema):
                return []
            return [
                ColumnInfo(
                    name=column["name"],
                    type=normalize_type(column["type"]),
                    nullable=bool(column.get("nullable", True)),
                )
                for column in inspector.get_columns(name, schema=schema)
            ]

        async with self._engine.connect() as conn:
            return await conn.run_sync(reflect)
