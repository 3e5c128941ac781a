"""Tests for the DI container and environment configuration."""

from __future__ import annotations

import os
from unittest.mock import patch

import pytest

from web_intelligence.container import DEFAULT_CONFIG, create_container, load_config_from_env
from web_intelligence.domain.entities import SearchQuery
from web_intelligence.infrastructure.providers import SerperAdapter, TavilyAdapter
from web_intelligence.shared.exceptions import ConfigurationError


class TestRegistryFromConfig:
    async def test_only_configured_providers_registered(self):
        container = create_container({"serper_api_key": "k"})
        registry = container.registry()

        assert registry.names == ("serper",)
        assert registry.frozen
        assert isinstance(registry.get("serper"), SerperAdapter)
        await registry.aclose()

    async def test_declaration_order_is_fast_to_slow(self):
        container = create_container({"tavily_api_key": "t", "serper_api_key": "s", "linkup_api_key": "l"})
        registry = container.registry()

        assert registry.names == ("serper", "linkup", "tavily")
        assert isinstance(registry.get("tavily"), TavilyAdapter)
        await registry.aclose()

    def test_no_keys_is_configuration_error(self):
        container = create_container({})
        with pytest.raises(ConfigurationError, match="SERPER_API_KEY"):
            container.registry()

    async def test_services_are_singletons(self):
        container = create_container({"serper_api_key": "k"})

        assert container.engine() is container.engine()
        assert container.dispatcher() is container.dispatcher()
        assert container.connections() is container.connections()
        assert container.engine().registry is container.registry()
        await container.registry().aclose()

    async def test_budgets_flow_into_selector(self):
        container = create_container({"serper_api_key": "k", "fast_budget": 1.5})

        plan = container.selector().select(SearchQuery.create("valid query", urgency="fast"))

        assert plan.provider_names == ("serper",)
        assert plan.budget == 1.5
        await container.registry().aclose()


class TestEnvironment:
    def test_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            config = load_config_from_env()
        assert config == {**DEFAULT_CONFIG}

    def test_reads_keys_and_numbers(self):
        env = {
            "SERPER_API_KEY": "serper-key",
            "TAVILY_API_KEY": "",
            "WEB_INTEL_BALANCED_BUDGET": "4.5",
            "WEB_INTEL_HYBRID_GRAPH_WEIGHT": "0.25",
        }
        with patch.dict(os.environ, env, clear=True):
            config = load_config_from_env()

        assert config["serper_api_key"] == "serper-key"
        assert config["tavily_api_key"] is None
        assert config["balanced_budget"] == 4.5
        assert config["hybrid_graph_weight"] == 0.25

    def test_bad_number(self):
        with patch.dict(os.environ, {"WEB_INTEL_FAST_BUDGET": "soon"}, clear=True):
            with pytest.raises(ConfigurationError, match="WEB_INTEL_FAST_BUDGET"):
                load_config_from_env()

    async def test_container_reads_environment(self):
        with patch.dict(os.environ, {"LINKUP_API_KEY": "l"}, clear=True):
            container = create_container()
        registry = container.registry()
        assert registry.names == ("linkup",)
        await registry.aclose()
