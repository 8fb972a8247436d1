"""Dependency injection container for the check engine."""

from typing import Any, TypeVar

from dependency_injector import containers, providers
from pydantic import BaseModel

from freshguard.config import CheckConfig, FreshGuardSettings, HistoryStoreConfig, SecurityConfig
from freshguard.monitoring.infrastructure.history_store import create_history_store
from freshguard.monitoring.infrastructure.sqlalchemy_connector import SQLAlchemyConnector
from freshguard.observability.logging import configure_logging
from freshguard.observability.metrics import MetricsCollector
from freshguard.resilience.circuit_breaker import CircuitBreaker
from freshguard.resilience.retry_policy import RetryPolicy

M = TypeVar("M", bound=BaseModel)


def _model(model: type[M], data: dict[str, Any] | None) -> M:
    return model.model_validate(data or {})


class MonitoringContainer(containers.DeclarativeContainer):
    """Dependency injection container for the check engine."""

    config = providers.Configuration()

    # Configuration models
    security_config = providers.Singleton(_model, SecurityConfig, config.security)
    check_config = providers.Singleton(_model, CheckConfig, config.check)
    history_store_config = providers.Singleton(_model, HistoryStoreConfig, config.history_store)

    # Metrics
    metrics = providers.Singleton(MetricsCollector, component="freshguard")

    # History store (async: ``await container.history_store()``)
    history_store = providers.Singleton(create_history_store, config=history_store_config)

    # Connectors take their ConnectorConfig at call time
    connector = providers.Factory(SQLAlchemyConnector, security=security_config, metrics=metrics)

    # Resilience
    retry_policy = providers.Factory(RetryPolicy, metrics=metrics)
    circuit_breaker = providers.Factory(CircuitBreaker, metrics=metrics)


def create_container(settings: FreshGuardSettings | None = None) -> MonitoringContainer:
    """Build a container from settings (environment / .env when omitted)."""
    settings = settings or FreshGuardSettings()

    container = MonitoringContainer()
    container.config.from_dict(settings.model_dump(mode="json"))

    if settings.logging.enabled:
        configure_logging(level=settings.logging.level, serialize=settings.logging.serialize)

    return container
