"""
Serper Adapter - fast link-ranked Google results via google.serper.dev.

API: POST https://google.serper.dev/search (or /news), header ``X-API-KEY``.
Results carry a 1-based ``position`` but no score; relevance is derived from
position decay.
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
    extract_domain,
)
from web_intelligence.shared.exceptions import ProviderMalformedResponseError

from .base import BaseProviderAdapter, ProviderRequest, position_score

logger = logging.getLogger(__name__)

SERPER_BASE_URL = "https://google.serper.dev"


def build_serper_query(query: SearchQuery) -> tuple[str, str]:
    """Return ``(endpoint, q)`` for *query*, rewritten per intent."""
    if query.intent == SearchIntent.JOB:
        text = f"{query.text} jobs {query.location}" if query.location else f"{query.text} jobs"
        return "/search", text
    if query.intent == SearchIntent.COMPANY:
        return "/news", f"{query.company or query.text} news"
    if query.intent == SearchIntent.PERSON:
        return "/search", f"{query.text} {query.company}" if query.company else query.text
    if query.intent == SearchIntent.NEWS:
        return "/news", query.text
    return "/search", query.text


def normalize_serper(raw: RawProviderResult) -> NormalizedPayload:
    """Map a Serper payload (``organic`` or ``news`` list) to the common schema."""
    payload = raw.payload
    items = payload.get("organic")
    if items is None:
        items = payload.get("news", [])
    if not isinstance(items, list):
        raise ProviderMalformedResponseError(raw.provider, "'organic' is not a list")

    entries = [item for item in items if isinstance(item, dict) and item.get("link")]
    total = len(entries)
    results = []
    for index, item in enumerate(entries):
        url = str(item["link"])
        position = item.get("position")
        results.append(
            NormalizedResult(
                title=str(item.get("title") or url),
                url=url,
                snippet=str(item.get("snippet") or ""),
                domain=extract_domain(url),
                source_provider=raw.provider,
                relevance_score=position_score(index, total),
                position=position if isinstance(position, int) else index + 1,
                published_date=item.get("date"),
            )
        )

    logger.debug(f"{raw.provider}: normalized {len(results)} result(s)")
    return NormalizedPayload(results=tuple(results), answer=_serper_answer(payload))


def _serper_answer(payload: dict[str, Any]) -> str | None:
    answer_box = payload.get("answerBox")
    if isinstance(answer_box, dict):
        answer = answer_box.get("answer") or answer_box.get("snippet")
        if answer:
            return str(answer)
    graph = payload.get("knowledgeGraph")
    if isinstance(graph, dict) and graph.get("description"):
        return str(graph["description"])
    return None


SERPER_CAPABILITY = ProviderCapability(
    name="serper",
    latency_class=LatencyClass.FAST,
    kind=ProviderKind.LINK_RANKING,
    normalize=normalize_serper,
    supplies_answer=True,
)


class SerperAdapter(BaseProviderAdapter):
    """Link-ranking provider; the fastest backend, eligible for every intent."""

    capability = SERPER_CAPABILITY
    _base_url = SERPER_BASE_URL

    def _auth_headers(self) -> dict[str, str]:
        return {"X-API-KEY": self._api_key or ""}

    def _build_request(self, query: SearchQuery) -> ProviderRequest:
        endpoint, text = build_serper_query(query)
        body: dict[str, Any] = {"q": text, "num": query.max_results}
        if query.location:
            body["gl"] = query.location
        return ProviderRequest(endpoint, body)
