"""Backend connectors, history stores and wiring."""

from freshguard.monitoring.infrastructure.base_connector import BaseConnector
from freshguard.monitoring.infrastructure.container import MonitoringContainer, create_container
from freshguard.monitoring.infrastructure.database import Database
from freshguard.monitoring.infrastructure.history_store import (
    InMemoryHistoryStore,
    SqlAlchemyHistoryStore,
    create_history_store,
)
from freshguard.monitoring.infrastructure.resilient_source import ResilientDataSource
from freshguard.monitoring.infrastructure.sqlalchemy_connector import SQLAlchemyConnector

__all__ = [
    "BaseConnector",
    "Database",
    "InMemoryHistoryStore",
    "MonitoringContainer",
    "ResilientDataSource",
    "SQLAlchemyConnector",
    "SqlAlchemyHistoryStore",
    "create_container",
    "create_history_store",
]
