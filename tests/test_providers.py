"""
Tests for provider adapters: request shaping, HTTP error mapping, normalization.

The adapters' httpx client is replaced by a mock; no network access.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from web_intelligence.domain.entities import RawProviderResult, SearchIntent, SearchQuery, Urgency
from web_intelligence.infrastructure.providers import (
    LinkupAdapter,
    SerperAdapter,
    TavilyAdapter,
    clamp_score,
    normalize_linkup,
    normalize_serper,
    normalize_tavily,
    position_score,
)
from web_intelligence.infrastructure.providers.linkup import build_linkup_query, linkup_depth
from web_intelligence.infrastructure.providers.serper import build_serper_query
from web_intelligence.shared.exceptions import (
    ProviderMalformedResponseError,
    ProviderRateLimitedError,
    ProviderTimeoutError,
    ProviderUnauthorizedError,
    ProviderUnavailableError,
)


def _response(status: int = 200, json=None, content: bytes | None = None, headers=None) -> httpx.Response:
    request = httpx.Request("POST", "https://provider.test/search")
    if content is not None:
        return httpx.Response(status, content=content, headers=headers, request=request)
    return httpx.Response(status, json=json if json is not None else {}, headers=headers, request=request)


def _adapter(cls, response=None, side_effect=None, api_key="secret"):
    client = MagicMock()
    client.post = AsyncMock(return_value=response, side_effect=side_effect)
    client.aclose = AsyncMock()
    return cls(api_key, client=client), client


# =============================================================================
# Request shaping
# =============================================================================


class TestSerperRequests:
    def test_query_rewrites(self):
        assert build_serper_query(SearchQuery.create("rust developer", intent="job", location="Berlin")) == (
            "/search",
            "rust developer jobs Berlin",
        )
        assert build_serper_query(SearchQuery.create("rust developer", intent="job")) == (
            "/search",
            "rust developer jobs",
        )
        assert build_serper_query(SearchQuery.create("Acme", intent="company")) == ("/news", "Acme news")
        assert build_serper_query(SearchQuery.create("Jane Doe", intent="person", company="Acme")) == (
            "/search",
            "Jane Doe Acme",
        )
        assert build_serper_query(SearchQuery.create("chip exports", intent="news")) == ("/news", "chip exports")
        assert build_serper_query(SearchQuery.create("vector databases")) == ("/search", "vector databases")

    async def test_request_sent(self):
        adapter, client = _adapter(SerperAdapter, _response(json={"organic": []}))
        query = SearchQuery.create("rust developer", intent="job", location="Berlin", max_results=5)

        raw = await adapter.execute(query, budget=3.0)

        assert raw.provider == "serper"
        call = client.post.call_args
        assert call.args[0] == "https://google.serper.dev/search"
        assert call.kwargs["json"] == {"q": "rust developer jobs Berlin", "num": 5, "gl": "Berlin"}
        assert call.kwargs["headers"]["X-API-KEY"] == "secret"


class TestLinkupRequests:
    def test_query_rewrites(self):
        job = SearchQuery.create("data engineer", intent="job", location="Paris")
        company = SearchQuery.create("Acme", intent="company")
        assert build_linkup_query(job) == "data engineer jobs in Paris"
        assert build_linkup_query(company) == "Acme company overview business model"
        assert linkup_depth(job) == "deep"
        assert linkup_depth(SearchQuery.create("vector databases")) == "standard"
        assert linkup_depth(SearchQuery.create("vector databases", urgency=Urgency.COMPREHENSIVE)) == "deep"

    async def test_request_sent(self):
        adapter, client = _adapter(LinkupAdapter, _response(json={"sources": []}))
        await adapter.execute(SearchQuery.create("Acme", intent="company"), budget=6.0)

        call = client.post.call_args
        assert call.args[0] == "https://api.linkup.so/v1/search"
        assert call.kwargs["json"] == {
            "q": "Acme company overview business model",
            "depth": "deep",
            "outputType": "sourcedAnswer",
        }
        assert call.kwargs["headers"]["Authorization"] == "Bearer secret"


class TestTavilyRequests:
    async def test_news_request(self):
        adapter, client = _adapter(TavilyAdapter, _response(json={"results": []}))
        await adapter.execute(SearchQuery.create("chip exports", intent="news", max_results=7), budget=12.0)

        body = client.post.call_args.kwargs["json"]
        assert client.post.call_args.args[0] == "https://api.tavily.com/search"
        assert body["api_key"] == "secret"
        assert body["query"] == "chip exports"
        assert body["topic"] == "news"
        assert body["search_depth"] == "basic"
        assert body["include_answer"] is True
        assert body["max_results"] == 7

    def test_not_eligible_for_jobs(self):
        assert not TavilyAdapter.capability.supports(SearchIntent.JOB)
        assert TavilyAdapter.capability.supports(SearchIntent.NEWS)


# =============================================================================
# Error mapping
# =============================================================================


class TestErrorMapping:
    async def test_missing_key_fails_without_call(self):
        adapter, client = _adapter(SerperAdapter, _response(), api_key=None)
        with pytest.raises(ProviderUnauthorizedError, match="API key not configured"):
            await adapter.execute(SearchQuery.create("valid query"), budget=3.0)
        client.post.assert_not_called()
        assert not adapter.configured

    @pytest.mark.parametrize("status", [401, 403])
    async def test_unauthorized(self, status):
        adapter, _ = _adapter(SerperAdapter, _response(status))
        with pytest.raises(ProviderUnauthorizedError):
            await adapter.execute(SearchQuery.create("valid query"), budget=3.0)

    async def test_rate_limited_reads_retry_after(self):
        adapter, _ = _adapter(LinkupAdapter, _response(429, headers={"Retry-After": "5"}))
        with pytest.raises(ProviderRateLimitedError) as exc_info:
            await adapter.execute(SearchQuery.create("valid query"), budget=3.0)
        assert exc_info.value.context.retry_after == 5.0

    async def test_server_error_unavailable(self):
        adapter, _ = _adapter(TavilyAdapter, _response(503))
        with pytest.raises(ProviderUnavailableError) as exc_info:
            await adapter.execute(SearchQuery.create("valid query"), budget=3.0)
        assert exc_info.value.status_code == 503

    async def test_invalid_json_malformed(self):
        adapter, _ = _adapter(SerperAdapter, _response(content=b"<html>oops</html>"))
        with pytest.raises(ProviderMalformedResponseError):
            await adapter.execute(SearchQuery.create("valid query"), budget=3.0)

    async def test_non_object_json_malformed(self):
        adapter, _ = _adapter(SerperAdapter, _response(json=[1, 2, 3]))
        with pytest.raises(ProviderMalformedResponseError, match="JSON object"):
            await adapter.execute(SearchQuery.create("valid query"), budget=3.0)

    async def test_transport_error_unavailable(self):
        adapter, _ = _adapter(SerperAdapter, side_effect=httpx.ConnectError("connection refused"))
        with pytest.raises(ProviderUnavailableError, match="request failed"):
            await adapter.execute(SearchQuery.create("valid query"), budget=3.0)

    async def test_transport_timeout(self):
        adapter, _ = _adapter(SerperAdapter, side_effect=httpx.ReadTimeout("read timed out"))
        with pytest.raises(ProviderTimeoutError):
            await adapter.execute(SearchQuery.create("valid query"), budget=3.0)

    async def test_budget_enforced(self):
        async def slow_post(*args, **kwargs):
            await asyncio.sleep(5.0)

        adapter, _ = _adapter(SerperAdapter, side_effect=slow_post)
        with pytest.raises(ProviderTimeoutError) as exc_info:
            await adapter.execute(SearchQuery.create("valid query"), budget=0.05)
        assert exc_info.value.budget == 0.05


# =============================================================================
# Normalization
# =============================================================================


class TestNormalizers:
    def test_position_decay(self):
        assert position_score(0, 4) == 1.0
        assert position_score(3, 4) == 0.25
        assert position_score(0, 0) == 0.0

    def test_clamp_score(self):
        assert clamp_score(1.7, 0.5) == 1.0
        assert clamp_score(-0.2, 0.5) == 0.0
        assert clamp_score("high", 0.5) == 0.5
        assert clamp_score(True, 0.5) == 0.5

    def test_serper(self):
        raw = RawProviderResult(
            provider="serper",
            payload={
                "organic": [
                    {"title": "First", "link": "https://www.first.com/a", "snippet": "one", "position": 1},
                    {"title": "No link"},
                    {"title": "Second", "link": "https://second.com/b", "date": "2 days ago"},
                ],
                "answerBox": {"answer": "42"},
            },
        )
        payload = normalize_serper(raw)

        assert [r.url for r in payload.results] == ["https://www.first.com/a", "https://second.com/b"]
        assert [r.relevance_score for r in payload.results] == [1.0, 0.5]
        assert payload.results[0].domain == "first.com"
        assert payload.results[1].position == 2
        assert payload.results[1].published_date == "2 days ago"
        assert payload.answer == "42"

    def test_serper_news_and_knowledge_graph(self):
        raw = RawProviderResult(
            provider="serper",
            payload={
                "news": [{"title": "Story", "link": "https://news.com/s"}],
                "knowledgeGraph": {"description": "A company."},
            },
        )
        payload = normalize_serper(raw)
        assert len(payload.results) == 1
        assert payload.answer == "A company."

    def test_serper_wrong_shape(self):
        with pytest.raises(ProviderMalformedResponseError):
            normalize_serper(RawProviderResult(provider="serper", payload={"organic": "nope"}))

    def test_linkup(self):
        raw = RawProviderResult(
            provider="linkup",
            payload={
                "answer": "Synthesized answer.",
                "sources": [
                    {"name": "Source A", "url": "https://a.com", "snippet": "a"},
                    {"name": "Source B", "url": "https://b.com", "snippet": "b"},
                ],
            },
        )
        payload = normalize_linkup(raw)
        assert payload.answer == "Synthesized answer."
        assert [r.title for r in payload.results] == ["Source A", "Source B"]
        assert payload.results[1].relevance_score == 0.5

    def test_linkup_wrong_shape(self):
        with pytest.raises(ProviderMalformedResponseError):
            normalize_linkup(RawProviderResult(provider="linkup", payload={"sources": {"url": "x"}}))

    def test_tavily(self):
        raw = RawProviderResult(
            provider="tavily",
            payload={
                "answer": "Research answer.",
                "results": [
                    {"title": "A", "url": "https://a.com", "content": "body a", "score": 1.7},
                    {"title": "B", "url": "https://b.com", "content": "body b"},
                    {"title": "C", "url": "https://c.com", "score": 0.42},
                ],
                "follow_up_questions": ["What next?", ""],
            },
        )
        payload = normalize_tavily(raw)
        assert [r.relevance_score for r in payload.results] == [1.0, pytest.approx(2 / 3), 0.42]
        assert payload.results[0].snippet == "body a"
        assert payload.follow_up_questions == ("What next?",)
        assert payload.answer == "Research answer."


# =============================================================================
# Health & lifecycle
# =============================================================================


class TestHealthAndLifecycle:
    async def test_healthy(self):
        adapter, _ = _adapter(SerperAdapter, _response(json={"organic": []}))
        health = await adapter.health_check()
        assert health.healthy
        assert health.provider == "serper"

    async def test_unhealthy_reports_detail(self):
        adapter, _ = _adapter(LinkupAdapter, _response(401))
        health = await adapter.health_check()
        assert not health.healthy
        assert "credentials rejected" in health.error

    async def test_context_manager_closes_client(self):
        adapter, client = _adapter(TavilyAdapter, _response())
        async with adapter as entered:
            assert entered is adapter
        client.aclose.assert_awaited_once()

    def test_stream_answer_not_supported(self):
        adapter, _ = _adapter(SerperAdapter, _response())
        with pytest.raises(NotImplementedError):
            adapter.stream_answer(SearchQuery.create("valid query"), 3.0)
