"""
Tests for AggregationEngine.

Exercises plan execution against fake providers: parallel and sequential
modes, per-provider failure isolation, budgets, cancellation and the
convenience entry points (jobs, company research, single provider, health).
"""

from __future__ import annotations

import asyncio

import pytest

from conftest import FakeAdapter, make_engine, make_registry
from web_intelligence.application.search import policy_with_budgets
from web_intelligence.domain.entities import (
    LatencyClass,
    ProviderKind,
    RawProviderResult,
    SearchIntent,
    SearchQuery,
    Urgency,
)
from web_intelligence.shared.async_utils import RequestContext
from web_intelligence.shared.exceptions import (
    InvalidParameterError,
    InvalidQueryError,
    ProviderMalformedResponseError,
    ProviderUnauthorizedError,
    ProviderUnavailableError,
)

# =============================================================================
# Aggregation
# =============================================================================


class TestSearch:
    async def test_balanced_news_example(self, engine, link_provider, answer_provider, research_provider):
        """Two providers with three results each and one shared URL give five results."""
        query = SearchQuery.create("OpenAI latest funding", intent="news", urgency="balanced")

        response = await engine.search(query)

        assert response.providers_used == ("fast-link", "medium-answer")
        assert len(response.results) == 5
        scores = [r.relevance_score for r in response.results]
        assert scores == sorted(scores, reverse=True)
        assert response.errors == ()
        assert not response.failed
        assert response.answer == "OpenAI raised new funding at a higher valuation."
        assert response.answer_provider == "medium-answer"
        assert research_provider.calls == 0

        shared = [r for r in response.results if r.domain == "reuters.com"]
        assert len(shared) == 1
        assert shared[0].relevance_score == 0.9

    async def test_fast_calls_exactly_one_provider(self, engine, link_provider, answer_provider):
        response = await engine.search(SearchQuery.create("valid query", urgency="fast"))
        assert response.providers_used == ("fast-link",)
        assert link_provider.calls == 1
        assert answer_provider.calls == 0

    async def test_comprehensive_reports_every_provider(self, link_provider, answer_provider):
        broken = FakeAdapter(
            "broken",
            latency=LatencyClass.SLOW,
            kind=ProviderKind.RESEARCH,
            error=ProviderUnavailableError("broken", "HTTP 502"),
        )
        engine = make_engine(make_registry(link_provider, answer_provider, broken))

        response = await engine.search(SearchQuery.create("valid query", urgency="comprehensive"))

        assert response.providers_used == ("fast-link", "medium-answer", "broken")
        assert [e.provider for e in response.errors] == ["broken"]
        assert response.errors[0].error_type == "unavailable"
        assert response.succeeded_providers == ("fast-link", "medium-answer")

    async def test_partial_failure(self, link_provider):
        failing = FakeAdapter(
            "answer",
            latency=LatencyClass.MEDIUM,
            kind=ProviderKind.ANSWER_SYNTHESIS,
            error=ProviderUnauthorizedError("answer"),
        )
        engine = make_engine(make_registry(link_provider, failing))

        response = await engine.search(SearchQuery.create("valid query"))

        assert not response.failed
        assert len(response.results) == 3
        assert {r.source_provider for r in response.results} == {"fast-link"}
        assert [(e.provider, e.error_type, e.retryable) for e in response.errors] == [
            ("answer", "unauthorized", False)
        ]
        assert response.answer is None

    async def test_total_failure_is_reported_not_raised(self):
        a = FakeAdapter("a", error=ProviderUnavailableError("a"))
        b = FakeAdapter("b", kind=ProviderKind.ANSWER_SYNTHESIS, error=ProviderUnavailableError("b"))
        engine = make_engine(make_registry(a, b))

        response = await engine.search(SearchQuery.create("valid query"))

        assert response.failed
        assert response.results == ()
        assert len(response.errors) == len(response.providers_used) == 2
        assert response.failure.error_type == "all_providers_failed"

    async def test_unexpected_exception_isolated(self, link_provider):
        crashing = FakeAdapter("crash", kind=ProviderKind.ANSWER_SYNTHESIS, error=RuntimeError("bug"))
        engine = make_engine(make_registry(link_provider, crashing))

        response = await engine.search(SearchQuery.create("valid query"))

        assert not response.failed
        assert response.errors[0].provider == "crash"
        assert response.errors[0].error_type == "unavailable"

    async def test_malformed_payload_isolated(self, link_provider):
        bad = FakeAdapter("bad", kind=ProviderKind.ANSWER_SYNTHESIS)

        async def missing_results(query, budget):
            return RawProviderResult(provider="bad", payload={})

        bad.execute = missing_results
        engine = make_engine(make_registry(link_provider, bad))

        response = await engine.search(SearchQuery.create("valid query"))

        assert response.errors[0].error_type == ProviderMalformedResponseError.error_type
        assert len(response.results) == 3

    async def test_max_results_truncates(self, engine):
        response = await engine.search(SearchQuery.create("OpenAI latest funding", max_results=2))
        assert len(response.results) == 2

    async def test_follow_up_questions_collected(self, engine):
        response = await engine.search(SearchQuery.create("valid query", urgency="comprehensive"))
        assert response.follow_up_questions == ("Who led the round?",)

    async def test_invalid_query_raised_before_any_call(self, engine, link_provider):
        with pytest.raises(InvalidQueryError):
            await engine.search_jobs("", "Berlin")
        assert link_provider.calls == 0

    async def test_no_compatible_provider(self):
        engine = make_engine(make_registry(FakeAdapter("news", intents=frozenset({SearchIntent.NEWS}))))
        response = await engine.search(SearchQuery.create("rust developer", intent="job"))
        assert response.failed
        assert response.providers_used == ()


# =============================================================================
# Budgets and cancellation
# =============================================================================


class TestBudgetsAndCancellation:
    async def test_slow_provider_times_out(self, link_provider):
        slow = FakeAdapter("slow", kind=ProviderKind.ANSWER_SYNTHESIS, delay=5.0)
        engine = make_engine(
            make_registry(link_provider, slow),
            policy=policy_with_budgets({Urgency.BALANCED: 0.05}),
            deadline_grace=0.05,
        )

        response = await engine.search(SearchQuery.create("valid query"))

        assert not response.failed
        assert [(e.provider, e.error_type) for e in response.errors] == [("slow", "timeout")]
        assert slow.cancelled == 1
        assert response.timing_ms < 2000

    async def test_sequential_fast_times_out(self):
        slow = FakeAdapter("slow", delay=5.0)
        engine = make_engine(
            make_registry(slow),
            policy=policy_with_budgets({Urgency.FAST: 0.05}),
            deadline_grace=0.05,
        )
        response = await engine.search(SearchQuery.create("valid query", urgency="fast"))
        assert response.failed
        assert response.errors[0].error_type == "timeout"

    async def test_cancel_discards_late_results(self):
        a = FakeAdapter("a", delay=5.0, results=[("https://a.com", 1.0)])
        b = FakeAdapter("b", kind=ProviderKind.ANSWER_SYNTHESIS, delay=5.0, results=[("https://b.com", 1.0)])
        engine = make_engine(make_registry(a, b))
        context = RequestContext()

        task = asyncio.create_task(engine.search(SearchQuery.create("valid query"), context))
        await asyncio.sleep(0.05)
        context.cancel()
        response = await task

        assert response.cancelled
        assert response.results == ()
        assert a.cancelled == 1
        assert b.cancelled == 1


# =============================================================================
# Entry points
# =============================================================================


class TestEntryPoints:
    async def test_search_with_provider(self, engine, link_provider, answer_provider):
        response = await engine.search_with_provider("medium-answer", SearchQuery.create("valid query"))
        assert response.providers_used == ("medium-answer",)
        assert link_provider.calls == 0
        assert answer_provider.calls == 1

    async def test_search_with_unknown_provider(self, engine):
        with pytest.raises(InvalidParameterError):
            await engine.search_with_provider("nope", SearchQuery.create("valid query"))

    async def test_search_jobs(self, engine, link_provider, research_provider):
        response = await engine.search_jobs("rust developer", "Berlin", urgency="comprehensive")
        assert response.query.intent == SearchIntent.JOB
        assert link_provider.queries[0].location == "Berlin"
        assert research_provider.calls == 0

    @pytest.mark.parametrize(
        ("focus", "text", "intent"),
        [
            ("overview", "Acme", SearchIntent.COMPANY),
            ("news", "Acme latest news", SearchIntent.NEWS),
            ("careers", "Acme careers hiring", SearchIntent.JOB),
            ("financial", "Acme financial results revenue funding", SearchIntent.GENERAL),
        ],
    )
    async def test_research_company_focus(self, engine, focus, text, intent):
        response = await engine.research_company("Acme", focus)
        assert response.query.text == text
        assert response.query.intent == intent
        assert response.query.company == "Acme"

    async def test_research_company_rejects_unknown_focus(self, engine):
        with pytest.raises(InvalidParameterError, match="focus"):
            await engine.research_company("Acme", "gossip")

    async def test_research_company_requires_name(self, engine):
        with pytest.raises(InvalidQueryError):
            await engine.research_company("  ")

    async def test_plan_preview_does_not_call(self, engine, link_provider):
        plan = engine.plan(SearchQuery.create("valid query"))
        assert plan.provider_names == ("fast-link", "medium-answer")
        assert link_provider.calls == 0


class TestHealth:
    async def test_health_check(self, link_provider):
        down = FakeAdapter("down", error=ProviderUnauthorizedError("down", "credentials rejected"))
        engine = make_engine(make_registry(link_provider, down))

        report = await engine.health_check()

        data = report.to_dict()
        assert data["overall"] is True
        assert data["providers"]["fast-link"]["healthy"] is True
        assert data["providers"]["down"]["healthy"] is False
        assert data["providers"]["down"]["error"] == "credentials rejected"
        assert data["timestamp"]
