"""
Linkup Adapter - synthesized answers with cited sources via api.linkup.so.

API: POST https://api.linkup.so/v1/search, ``Authorization: Bearer <key>``,
body ``{"q", "depth": standard|deep, "outputType": "sourcedAnswer"}``.
Response: ``{"answer": str, "sources": [{"name", "url", "snippet"}]}``.
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

from .base import BaseProviderAdapter, ProviderRequest, position_score

logger = logging.getLogger(__name__)

LINKUP_BASE_URL = "https://api.linkup.so/v1"

_DEEP_INTENTS = frozenset({SearchIntent.JOB, SearchIntent.COMPANY})


def build_linkup_query(query: SearchQuery) -> str:
    if query.intent == SearchIntent.JOB:
        return f"{query.text} jobs in {query.location}" if query.location else f"{query.text} jobs"
    if query.intent == SearchIntent.COMPANY:
        return f"{query.company or query.text} company overview business model"
    return query.text


def linkup_depth(query: SearchQuery) -> str:
    if query.urgency == Urgency.COMPREHENSIVE or query.intent in _DEEP_INTENTS:
        return "deep"
    return "standard"


def normalize_linkup(raw: RawProviderResult) -> NormalizedPayload:
    """Map a ``sourcedAnswer`` payload; sources are ranked by position decay."""
    payload = raw.payload
    sources = payload.get("sources", [])
    if not isinstance(sources, list):
        raise ProviderMalformedResponseError(raw.provider, "'sources' is not a list")

    entries = [s for s in sources if isinstance(s, dict) and s.get("url")]
    total = len(entries)
    results = []
    for index, source in enumerate(entries):
        url = str(source["url"])
        results.append(
            NormalizedResult(
                title=str(source.get("name") or url),
                url=url,
                snippet=str(source.get("snippet") or source.get("content") or ""),
                domain=extract_domain(url),
                source_provider=raw.provider,
                relevance_score=position_score(index, total),
                position=index + 1,
            )
        )

    logger.debug(f"{raw.provider}: normalized {len(results)} result(s)")
    answer = payload.get("answer")
    return NormalizedPayload(
        results=tuple(results),
        answer=str(answer) if answer else None,
    )


LINKUP_CAPABILITY = ProviderCapability(
    name="linkup",
    latency_class=LatencyClass.MEDIUM,
    kind=ProviderKind.ANSWER_SYNTHESIS,
    normalize=normalize_linkup,
    supplies_answer=True,
)


class LinkupAdapter(BaseProviderAdapter):
    """Answer-synthesizing provider; eligible for every intent."""

    capability = LINKUP_CAPABILITY
    _base_url = LINKUP_BASE_URL

    def _auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._api_key}"}

    def _build_request(self, query: SearchQuery) -> ProviderRequest:
        body: dict[str, Any] = {
            "q": build_linkup_query(query),
            "depth": linkup_depth(query),
            "outputType": "sourcedAnswer",
        }
        return ProviderRequest("/search", body)
