"""
Pytest configuration and shared fixtures.

Provider fakes subclass BaseProviderAdapter and override ``execute`` so the
engine, dispatcher and transports run unchanged without network access.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from typing import Any

import pytest

from web_intelligence.application.conversation import ConversationalDispatcher, StrategyClassifier
from web_intelligence.application.search import AggregationEngine, ResultAggregator, StrategySelector
from web_intelligence.domain.entities import (
    ALL_INTENTS,
    LatencyClass,
    NormalizedPayload,
    NormalizedResult,
    ProviderCapability,
    ProviderKind,
    RawProviderResult,
    SearchIntent,
    SearchQuery,
    extract_domain,
)
from web_intelligence.infrastructure.providers import BaseProviderAdapter, ProviderRegistry

# ============================================================
# Result builders
# ============================================================


def make_result(
    url: str,
    score: float,
    provider: str = "fake",
    position: int | None = None,
    title: str | None = None,
) -> NormalizedResult:
    return NormalizedResult(
        title=title or url,
        url=url,
        snippet=f"Snippet for {url}",
        domain=extract_domain(url),
        source_provider=provider,
        relevance_score=score,
        position=position,
    )


def normalize_fake(raw: RawProviderResult) -> NormalizedPayload:
    payload = raw.payload
    return NormalizedPayload(
        results=tuple(payload["results"]),
        answer=payload.get("answer"),
        follow_up_questions=tuple(payload.get("follow_ups", ())),
    )


# ============================================================
# Fake adapter
# ============================================================


class FakeAdapter(BaseProviderAdapter):
    """
    In-memory provider.

    ``results`` is a list of ``(url, score)`` pairs or a callable taking the
    SearchQuery and returning such a list. ``stream_answer`` yields ``tokens``
    and then raises ``token_error`` when one is given.
    """

    def __init__(
        self,
        name: str,
        *,
        latency: LatencyClass = LatencyClass.FAST,
        kind: ProviderKind = ProviderKind.LINK_RANKING,
        intents: frozenset[SearchIntent] = ALL_INTENTS,
        results: Sequence[tuple[str, float]] | Callable[[SearchQuery], Sequence[tuple[str, float]]] = (),
        answer: str | None = None,
        follow_ups: Sequence[str] = (),
        delay: float = 0.0,
        error: Exception | None = None,
        tokens: Sequence[str] | None = None,
        token_error: Exception | None = None,
    ) -> None:
        super().__init__("test-key")
        self.capability = ProviderCapability(
            name=name,
            latency_class=latency,
            kind=kind,
            normalize=normalize_fake,
            supported_intents=intents,
            supplies_answer=True,
            streams_answer=tokens is not None,
        )
        self.results = results
        self.answer = answer
        self.follow_ups = list(follow_ups)
        self.delay = delay
        self.error = error
        self.tokens = list(tokens or [])
        self.token_error = token_error
        self.calls = 0
        self.cancelled = 0
        self.queries: list[SearchQuery] = []

    async def execute(self, query: SearchQuery, budget: float) -> RawProviderResult:
        self.calls += 1
        self.queries.append(query)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled += 1
            raise
        if self.error is not None:
            raise self.error

        pairs = self.results(query) if callable(self.results) else self.results
        results = [
            make_result(url, score, provider=self.name, position=index + 1)
            for index, (url, score) in enumerate(pairs)
        ]
        payload: dict[str, Any] = {"results": results, "answer": self.answer, "follow_ups": self.follow_ups}
        return RawProviderResult(provider=self.name, payload=payload)

    async def stream_answer(self, query: SearchQuery, budget: float):
        for token in self.tokens:
            await asyncio.sleep(0)
            yield token
        if self.token_error is not None:
            raise self.token_error


def make_registry(*adapters: BaseProviderAdapter) -> ProviderRegistry:
    registry = ProviderRegistry()
    for adapter in adapters:
        registry.register(adapter)
    registry.freeze()
    return registry


def make_engine(registry: ProviderRegistry, **kwargs: Any) -> AggregationEngine:
    policy = kwargs.pop("policy", None)
    return AggregationEngine(registry, StrategySelector(registry, policy), ResultAggregator(), **kwargs)


# ============================================================
# Fixtures
# ============================================================


@pytest.fixture
def link_provider():
    """Fast link-ranking provider (Serper-like)."""
    return FakeAdapter(
        "fast-link",
        latency=LatencyClass.FAST,
        kind=ProviderKind.LINK_RANKING,
        results=[
            ("https://techcrunch.com/openai-funding", 1.0),
            ("https://reuters.com/openai-raises", 0.67),
            ("https://bloomberg.com/openai", 0.33),
        ],
    )


@pytest.fixture
def answer_provider():
    """Medium answer-synthesis provider (Linkup-like)."""
    return FakeAdapter(
        "medium-answer",
        latency=LatencyClass.MEDIUM,
        kind=ProviderKind.ANSWER_SYNTHESIS,
        results=[
            ("https://Reuters.com/openai-raises/", 0.9),
            ("https://openai.com/blog/funding", 0.6),
            ("https://ft.com/openai-valuation", 0.3),
        ],
        answer="OpenAI raised new funding at a higher valuation.",
    )


@pytest.fixture
def research_provider():
    """Slow research provider (Tavily-like), not eligible for job searches."""
    return FakeAdapter(
        "slow-research",
        latency=LatencyClass.SLOW,
        kind=ProviderKind.RESEARCH,
        intents=frozenset({SearchIntent.GENERAL, SearchIntent.COMPANY, SearchIntent.NEWS, SearchIntent.PERSON}),
        results=[("https://theinformation.com/openai", 0.8)],
        answer="Research answer.",
        follow_ups=["Who led the round?"],
    )


@pytest.fixture
def registry(link_provider, answer_provider, research_provider):
    return make_registry(link_provider, answer_provider, research_provider)


@pytest.fixture
def engine(registry):
    return make_engine(registry)


@pytest.fixture
def dispatcher(engine):
    return ConversationalDispatcher(engine, StrategyClassifier(), ResultAggregator())
