"""
Application DI Container (dependency-injector).

Centralizes service creation and lifecycle management. Environment variables
are read here (``load_config_from_env``) and in the presentation layer only;
inner layers receive plain values.

Usage::

    from web_intelligence.container import ApplicationContainer, load_config_from_env

    container = ApplicationContainer()
    container.config.from_dict(load_config_from_env())

    engine = container.engine()
    dispatcher = container.dispatcher()

    # In tests - override any provider:
    container.registry.override(providers.Object(fake_registry))
"""

from __future__ import annotations

import logging
import os
from typing import Any

from dependency_injector import containers, providers

from web_intelligence.shared.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG: dict[str, Any] = {
    "serper_api_key": None,
    "linkup_api_key": None,
    "tavily_api_key": None,
    "http_timeout": 30.0,
    "fast_budget": 3.0,
    "balanced_budget": 6.0,
    "comprehensive_budget": 12.0,
    "hybrid_graph_weight": 0.5,
    "token_delay": 0.0,
}


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from None


def load_config_from_env() -> dict[str, Any]:
    """Collect container configuration from environment variables."""
    return {
        "serper_api_key": os.environ.get("SERPER_API_KEY") or None,
        "linkup_api_key": os.environ.get("LINKUP_API_KEY") or None,
        "tavily_api_key": os.environ.get("TAVILY_API_KEY") or None,
        "http_timeout": _env_float("WEB_INTEL_HTTP_TIMEOUT", DEFAULT_CONFIG["http_timeout"]),
        "fast_budget": _env_float("WEB_INTEL_FAST_BUDGET", DEFAULT_CONFIG["fast_budget"]),
        "balanced_budget": _env_float("WEB_INTEL_BALANCED_BUDGET", DEFAULT_CONFIG["balanced_budget"]),
        "comprehensive_budget": _env_float(
            "WEB_INTEL_COMPREHENSIVE_BUDGET", DEFAULT_CONFIG["comprehensive_budget"]
        ),
        "hybrid_graph_weight": _env_float("WEB_INTEL_HYBRID_GRAPH_WEIGHT", DEFAULT_CONFIG["hybrid_graph_weight"]),
        "token_delay": _env_float("WEB_INTEL_TOKEN_DELAY", DEFAULT_CONFIG["token_delay"]),
    }


def _create_registry(
    serper_api_key: str | None,
    linkup_api_key: str | None,
    tavily_api_key: str | None,
    http_timeout: float,
) -> object:
    """Register an adapter per configured credential, in fast-to-slow declaration order."""
    from web_intelligence.infrastructure.providers import (
        LinkupAdapter,
        ProviderRegistry,
        SerperAdapter,
        TavilyAdapter,
    )

    registry = ProviderRegistry()
    for adapter_cls, api_key in (
        (SerperAdapter, serper_api_key),
        (LinkupAdapter, linkup_api_key),
        (TavilyAdapter, tavily_api_key),
    ):
        if api_key:
            registry.register(adapter_cls(api_key, timeout=http_timeout))
        else:
            logger.info(f"{adapter_cls.capability.name}: no API key configured, provider disabled")

    if not len(registry):
        raise ConfigurationError(
            "No search provider configured. Set at least one of SERPER_API_KEY, LINKUP_API_KEY, TAVILY_API_KEY"
        )
    registry.freeze()
    return registry


def _create_selector(registry: object, fast_budget: float, balanced_budget: float, comprehensive_budget: float) -> object:
    from web_intelligence.application.search import StrategySelector, policy_with_budgets
    from web_intelligence.domain.entities import Urgency

    policy = policy_with_budgets(
        {
            Urgency.FAST: fast_budget,
            Urgency.BALANCED: balanced_budget,
            Urgency.COMPREHENSIVE: comprehensive_budget,
        }
    )
    return StrategySelector(registry, policy)


def _create_aggregator() -> object:
    from web_intelligence.application.search import ResultAggregator

    return ResultAggregator()


def _create_engine(registry: object, selector: object, aggregator: object) -> object:
    from web_intelligence.application.search import AggregationEngine

    return AggregationEngine(registry, selector, aggregator)


def _create_classifier() -> object:
    from web_intelligence.application.conversation import StrategyClassifier

    return StrategyClassifier()


def _create_dispatcher(
    engine: object,
    classifier: object,
    aggregator: object,
    hybrid_graph_weight: float,
    token_delay: float,
) -> object:
    from web_intelligence.application.conversation import ConversationalDispatcher

    return ConversationalDispatcher(
        engine,
        classifier,
        aggregator,
        hybrid_graph_weight=hybrid_graph_weight,
        token_delay=token_delay,
    )


def _create_connection_manager() -> object:
    from web_intelligence.application.conversation import ConnectionManager

    return ConnectionManager()


class ApplicationContainer(containers.DeclarativeContainer):
    """Central DI container for the Web Intelligence engine.

    Manages creation and lifecycle of all core services:
    - ``registry``: provider adapters (frozen after creation)
    - ``selector`` / ``aggregator`` / ``engine``: search pipeline
    - ``classifier`` / ``dispatcher``: conversational streaming
    - ``connections``: active streams of this process
    """

    config = providers.Configuration()

    registry = providers.Singleton(
        _create_registry,
        serper_api_key=config.serper_api_key,
        linkup_api_key=config.linkup_api_key,
        tavily_api_key=config.tavily_api_key,
        http_timeout=config.http_timeout,
    )

    selector = providers.Singleton(
        _create_selector,
        registry=registry,
        fast_budget=config.fast_budget,
        balanced_budget=config.balanced_budget,
        comprehensive_budget=config.comprehensive_budget,
    )

    aggregator = providers.Singleton(_create_aggregator)

    engine = providers.Singleton(
        _create_engine,
        registry=registry,
        selector=selector,
        aggregator=aggregator,
    )

    classifier = providers.Singleton(_create_classifier)

    dispatcher = providers.Singleton(
        _create_dispatcher,
        engine=engine,
        classifier=classifier,
        aggregator=aggregator,
        hybrid_graph_weight=config.hybrid_graph_weight,
        token_delay=config.token_delay,
    )

    connections = providers.Singleton(_create_connection_manager)


def create_container(config: dict[str, Any] | None = None) -> ApplicationContainer:
    """Build a container from *config* (defaults to the environment)."""
    container = ApplicationContainer()
    container.config.from_dict({**DEFAULT_CONFIG, **(config if config is not None else load_config_from_env())})
    return container


__all__ = ["ApplicationContainer", "DEFAULT_CONFIG", "create_container", "load_config_from_env"]
