"""
Tests for the MCP tool layer.

Tools are registered on a collector that records the decorated functions,
then called directly; ``create_server`` is checked against a real FastMCP.
"""

from __future__ import annotations

import json

import pytest
from dependency_injector import providers

from conftest import FakeAdapter, make_engine, make_registry
from web_intelligence.container import create_container
from web_intelligence.domain.entities import ProviderKind, SearchQuery
from web_intelligence.presentation.mcp_server import create_server, get_container
from web_intelligence.presentation.mcp_server.tools import (
    format_response_markdown,
    register_web_intelligence_tools,
)
from web_intelligence.shared.exceptions import ProviderUnauthorizedError


class _ToolCollector:
    def __init__(self):
        self.tools = {}

    def tool(self):
        def decorator(func):
            self.tools[func.__name__] = func
            return func

        return decorator


@pytest.fixture
def tools(engine, dispatcher):
    collector = _ToolCollector()
    register_web_intelligence_tools(collector, engine, dispatcher)
    return collector.tools


class TestRegistration:
    def test_four_tools(self, tools):
        assert set(tools) == {"web_search", "analyze_search_strategy", "provider_search", "web_intelligence_health"}

    async def test_create_server(self, registry):
        container = create_container({"serper_api_key": "unused"})
        container.registry.override(providers.Object(registry))

        server = create_server(container=container)

        assert get_container() is container
        names = {tool.name for tool in await server.list_tools()}
        assert "web_search" in names
        assert "analyze_search_strategy" in names


class TestWebSearchTool:
    async def test_markdown(self, tools):
        text = await tools["web_search"]("OpenAI latest funding", intent="news")

        assert text.startswith("## Web search: OpenAI latest funding")
        assert "### Answer (medium-answer)" in text
        assert "OpenAI raised new funding at a higher valuation." in text
        assert "### Results" in text
        assert "techcrunch.com" in text

    async def test_json(self, tools):
        text = await tools["web_search"]("OpenAI latest funding", urgency="fast", output_format="json")
        data = json.loads(text)
        assert data["providersUsed"] == ["fast-link"]
        assert len(data["results"]) == 3

    async def test_invalid_query_returns_message(self, tools, link_provider):
        text = await tools["web_search"]("")
        assert text.startswith("❌ **Error**: Invalid query")
        assert "💡 **Suggestion**" in text
        assert link_provider.calls == 0

    async def test_invalid_output_format(self, tools):
        text = await tools["web_search"]("valid query", output_format="xml")
        assert "output_format" in text


class TestOtherTools:
    def test_analyze_search_strategy(self, tools, link_provider):
        data = json.loads(tools["analyze_search_strategy"]("Tell me about Jane Doe's connections at Acme"))
        assert data["strategy"] == "graph"
        assert data["entities"]["person"] == "Jane Doe"
        assert data["legs"] == ["graph"]
        assert link_provider.calls == 0

    def test_analyze_empty_query(self, tools):
        assert tools["analyze_search_strategy"]("  ").startswith("❌")

    async def test_provider_search(self, tools, answer_provider):
        text = await tools["provider_search"]("medium-answer", "valid query", output_format="json")
        assert json.loads(text)["providersUsed"] == ["medium-answer"]
        assert answer_provider.calls == 1

    async def test_provider_search_unknown(self, tools):
        text = await tools["provider_search"]("nope", "valid query")
        assert "provider" in text
        assert text.startswith("❌")

    async def test_health(self, tools):
        data = json.loads(await tools["web_intelligence_health"]())
        assert data["overall"] is True
        assert list(data["providers"]) == ["fast-link", "medium-answer", "slow-research"]


class TestMarkdown:
    async def test_follow_ups_without_errors(self, engine):
        response = await engine.search(SearchQuery.create("valid query", urgency="comprehensive"))
        text = format_response_markdown(response)
        assert "### Follow-up questions" in text
        assert "- Who led the round?" in text
        assert "### Provider errors" not in text

    async def test_failed_response(self):
        down = FakeAdapter("down", error=ProviderUnauthorizedError("down", "credentials rejected"))
        other = FakeAdapter("other", kind=ProviderKind.ANSWER_SYNTHESIS, error=ProviderUnauthorizedError("other"))
        response = await make_engine(make_registry(down, other)).search(SearchQuery.create("valid query"))

        text = format_response_markdown(response)

        assert "❌" in text
        assert "### Results" not in text
        assert "- down: unauthorized (credentials rejected)" in text
