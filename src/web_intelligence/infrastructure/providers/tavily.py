"""
Tavily Adapter - research-grade search via api.tavily.com.

API: POST https://api.tavily.com/search with the key in the body
(``api_key``). Results carry a native ``score``; the payload may also hold a
synthesized ``answer`` and ``follow_up_questions``.
"""

from __future__ import annotations

import logging
from typing import Any

from web_intelligence.domain.entities import (
    LatencyClass,
    NormalizedPayload,
    NormalizedResult,
    ProviderCapability,
    ProviderKind,
    RawProviderResult,
    SearchIntent,
    SearchQuery,
    Urgency,
    extract_domain,
)
from web_intelligence.shared.exceptions import ProviderMalformedResponseError

from .base import BaseProviderAdapter, ProviderRequest, clamp_score, position_score

logger = logging.getLogger(__name__)

TAVILY_BASE_URL = "https://api.tavily.com"


def normalize_tavily(raw: RawProviderResult) -> NormalizedPayload:
    payload = raw.payload
    items = payload.get("results", [])
    if not isinstance(items, list):
        raise ProviderMalformedResponseError(raw.provider, "'results' is not a list")

    entries = [item for item in items if isinstance(item, dict) and item.get("url")]
    total = len(entries)
    results = []
    for index, item in enumerate(entries):
        url = str(item["url"])
        results.append(
            NormalizedResult(
                title=str(item.get("title") or url),
                url=url,
                snippet=str(item.get("content") or item.get("snippet") or ""),
                domain=extract_domain(url),
                source_provider=raw.provider,
                relevance_score=clamp_score(item.get("score"), position_score(index, total)),
                position=index + 1,
                published_date=item.get("published_date"),
            )
        )

    logger.debug(f"{raw.provider}: normalized {len(results)} result(s)")
    follow_ups = payload.get("follow_up_questions") or []
    answer = payload.get("answer")
    return NormalizedPayload(
        results=tuple(results),
        answer=str(answer) if answer else None,
        follow_up_questions=tuple(str(q) for q in follow_ups if q) if isinstance(follow_ups, list) else (),
    )


TAVILY_CAPABILITY = ProviderCapability(
    name="tavily",
    latency_class=LatencyClass.SLOW,
    kind=ProviderKind.RESEARCH,
    normalize=normalize_tavily,
    supported_intents=frozenset(
        {SearchIntent.GENERAL, SearchIntent.COMPANY, SearchIntent.NEWS, SearchIntent.PERSON}
    ),
    supplies_answer=True,
)


class TavilyAdapter(BaseProviderAdapter):
    """Research-grade provider; slowest, not planned for job searches."""

    capability = TAVILY_CAPABILITY
    _base_url = TAVILY_BASE_URL

    def _build_request(self, query: SearchQuery) -> ProviderRequest:
        body: dict[str, Any] = {
            "api_key": self._api_key,
            "query": query.text,
            "search_depth": "advanced" if query.urgency == Urgency.COMPREHENSIVE else "basic",
            "include_answer": True,
            "include_raw_content": False,
            "max_results": query.max_results,
        }
        if query.intent == SearchIntent.NEWS:
            body["topic"] = "news"
        return ProviderRequest("/search", body)
