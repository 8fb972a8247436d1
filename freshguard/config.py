"""Configuration for FreshGuard.

The check engine only consumes the plain models defined here; it never reads
the environment. Host applications that want environment/.env driven
configuration load ``FreshGuardSettings`` themselves and pass the pieces on.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_ALLOWED_QUERY_PATTERNS: tuple[str, ...] = (
    r"^SELECT\s+COUNT\(\*\)(\s+AS\s+\w+)?\s+FROM\s+\S+$",
    r"^SELECT\s+(MAX|MIN)\([^()]+\)(\s+AS\s+\w+)?\s+FROM\s+\S+(\s+WHERE\s+\S+\s+IS\s+NOT\s+NULL)?$",
    r"^SELECT\s+1(\s+AS\s+\w+)?$",
    r"^SELECT\s+.+\s+FROM\s+information_schema\.\w+(\s+.*)?$",
    r"^DESCRIBE\s+\S+$",
    r"^SHOW\s+\w+(\s+.*)?$",
)

DEFAULT_BLOCKED_KEYWORDS: tuple[str, ...] = (
    "INSERT",
    "UPDATE",
    "DELETE",
    "DROP",
    "CREATE",
    "ALTER",
    "TRUNCATE",
    "GRANT",
    "REVOKE",
    "EXEC",
    "EXECUTE",
    "MERGE",
    "CALL",
    "--",
    "/*",
    "*/",
    ";",
    "xp_",
    "sp_",
)


class SecurityConfig(BaseModel):
    """Parameters of the security gate shared by every connector."""

    model_config = ConfigDict(frozen=True)

    connection_timeout: float = Field(default=30.0, gt=0, description="Connection timeout in seconds")
    query_timeout: float = Field(default=10.0, gt=0, description="Query timeout in seconds")
    max_rows: int = Field(default=1000, ge=1, description="Maximum rows kept from any result set")
    require_ssl: bool = Field(default=True, description="Reject connectors configured without TLS")
    allowed_query_patterns: tuple[str, ...] = Field(
        default=DEFAULT_ALLOWED_QUERY_PATTERNS, description="Read-only statement shapes (regex)"
    )
    blocked_keywords: tuple[str, ...] = Field(
        default=DEFAULT_BLOCKED_KEYWORDS, description="Keywords and tokens never allowed in a statement"
    )


class ConnectorConfig(BaseModel):
    """Connection parameters for a data source connector."""

    model_config = ConfigDict(frozen=True)

    url: str | None = Field(default=None, description="SQLAlchemy URL (takes precedence over host/database)")
    host: str = Field(default="localhost", description="Database host")
    port: int | None = Field(default=None, description="Database port")
    database: str = Field(default="", description="Database name or file path")
    username: str | None = Field(default=None, description="Database user")
    password: str | None = Field(default=None, repr=False, description="Database password")
    ssl: bool = Field(default=True, description="Use an encrypted connection")
    schema_name: str | None = Field(default=None, description="Default schema for table lookups")


class DebugConfig(BaseModel):
    """Opt-in diagnostic capture attached to check results."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = Field(default=False, description="Attach a debug payload to results")
    expose_queries: bool = Field(default=False, description="Include operation/query context in debug output")
    expose_raw_errors: bool = Field(default=False, description="Include raw error text in debug output")


class CheckConfig(BaseModel):
    """Per-call configuration for the check functions."""

    model_config = ConfigDict(frozen=True)

    timeout: float = Field(default=30.0, gt=0, description="Timeout in seconds for each data source call")
    debug: DebugConfig = Field(default_factory=DebugConfig)


class HistoryStoreConfig(BaseModel):
    """Configuration for the execution history / schema baseline store."""

    model_config = ConfigDict(frozen=True)

    type: Literal["memory", "sqlalchemy"] = Field(default="memory", description="Store implementation")
    url: str | None = Field(default=None, description="Async SQLAlchemy URL for the sqlalchemy store")
    create_tables: bool = Field(default=True, description="Create the store tables on initialization")


class LoggingConfig(BaseModel):
    """Configuration for loguru output."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = Field(default=False, description="Enable freshguard log output")
    level: str = Field(default="INFO", description="Minimum log level")
    serialize: bool = Field(default=False, description="Emit JSON log lines")


class FreshGuardSettings(BaseSettings):
    """Environment-driven settings for applications embedding FreshGuard."""

    model_config = SettingsConfigDict(
        env_prefix="FRESHGUARD_", env_file=".env", env_nested_delimiter="__", extra="ignore"
    )

    security: SecurityConfig = Field(default_factory=SecurityConfig)
    check: CheckConfig = Field(default_factory=CheckConfig)
    history_store: HistoryStoreConfig = Field(default_factory=HistoryStoreConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
