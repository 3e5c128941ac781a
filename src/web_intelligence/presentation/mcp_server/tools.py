"""
Web Intelligence MCP Tools.

Provides:
- web_search: routed multi-provider search with merged results
- analyze_search_strategy: retrieval strategy preview (no provider calls)
- provider_search: single-provider search for debugging
- web_intelligence_health: provider health probe

Tools return Markdown by default (``output_format="json"`` for raw data).
Domain errors are returned as agent-friendly messages instead of raised.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from web_intelligence.domain.entities import SearchQuery
from web_intelligence.shared.exceptions import InvalidParameterError, WebIntelligenceError

if TYPE_CHECKING:
    from mcp.server.fastmcp import FastMCP

    from web_intelligence.application.conversation import ConversationalDispatcher
    from web_intelligence.application.search import AggregationEngine
    from web_intelligence.domain.entities import AggregatedResponse

logger = logging.getLogger(__name__)

OUTPUT_FORMATS = ("markdown", "json")


# =============================================================================
# Formatting
# =============================================================================


def _dump(data: dict[str, Any]) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False)


def _check_format(output_format: str) -> str:
    fmt = (output_format or "markdown").strip().lower()
    if fmt not in OUTPUT_FORMATS:
        raise InvalidParameterError("output_format", output_format, " | ".join(OUTPUT_FORMATS))
    return fmt


def format_response_markdown(response: AggregatedResponse) -> str:
    """Render an aggregated response for an agent."""
    lines = [f"## Web search: {response.query.text}", ""]
    lines.append(
        f"*Providers: {', '.join(response.providers_used) or 'none'} · "
        f"{len(response.results)} result(s) · {response.timing_ms}ms*"
    )

    if response.failed:
        lines += ["", f"❌ {response.failure}"]
    if response.answer:
        source = f" ({response.answer_provider})" if response.answer_provider else ""
        lines += ["", f"### Answer{source}", "", response.answer]

    if response.results:
        lines += ["", "### Results", ""]
        for i, result in enumerate(response.results, 1):
            lines.append(f"{i}. **{result.title or result.url}** ({result.domain}, score {result.relevance_score:.2f})")
            lines.append(f"   {result.url}")
            if result.snippet:
                lines.append(f"   {result.snippet}")

    if response.follow_up_questions:
        lines += ["", "### Follow-up questions", ""]
        lines += [f"- {q}" for q in response.follow_up_questions]

    if response.errors:
        lines += ["", "### Provider errors", ""]
        lines += [f"- {e.provider}: {e.error_type} ({e.message})" for e in response.errors]

    return "\n".join(lines)


# =============================================================================
# Registration
# =============================================================================


def register_web_intelligence_tools(
    mcp: FastMCP,
    engine: AggregationEngine,
    dispatcher: ConversationalDispatcher,
):
    """Register web intelligence tools (4 tools)."""

    @mcp.tool()
    async def web_search(
        query: str,
        intent: str = "general",
        urgency: str = "balanced",
        location: str | None = None,
        company: str | None = None,
        max_results: int = 10,
        output_format: str = "markdown",
    ) -> str:
        """
        Search the web through the best-suited providers and merge the results.

        Args:
            query: Search text, e.g. "OpenAI latest funding"
            intent: general | job | company | person | news
            urgency: fast (1 provider) | balanced (2 providers) | comprehensive (all)
            location: Location hint, mainly for job searches
            company: Company hint for company/person searches
            max_results: Maximum merged results (default: 10)
            output_format: "markdown" (default) or "json"

        Returns:
            Merged, deduplicated results ranked by relevance, plus a synthesized
            answer when a provider supplied one.
        """
        try:
            fmt = _check_format(output_format)
            search_query = SearchQuery.create(
                query,
                intent=intent,
                urgency=urgency,
                location=location,
                company=company,
                max_results=max_results,
            )
            response = await engine.search(search_query)
            if fmt == "json":
                return _dump(response.to_dict())
            return format_response_markdown(response)
        except WebIntelligenceError as e:
            logger.info(f"web_search rejected: {e}")
            return e.to_agent_message()

    @mcp.tool()
    def analyze_search_strategy(query: str) -> str:
        """
        Preview how a conversational query would be routed. No search is run.

        Strategies:
            vector: semantic similarity search for general questions
            graph:  entity/relationship search (people, introductions, history)
            hybrid: both, merged with weighted scores

        Args:
            query: Conversational query, e.g. "Who is the CTO at Acme Corp?"

        Returns:
            JSON with strategy, category, detected person/company and reasoning.
        """
        try:
            search_query = SearchQuery.create(query)
        except WebIntelligenceError as e:
            return e.to_agent_message()
        analysis = dispatcher.classify_strategy(search_query.text)
        data = analysis.to_dict()
        data["legs"] = [leg.name for leg in dispatcher.build_legs(search_query, analysis)]
        return _dump(data)

    @mcp.tool()
    async def provider_search(
        provider: str,
        query: str,
        intent: str = "general",
        max_results: int = 10,
        output_format: str = "markdown",
    ) -> str:
        """
        Query exactly one provider (debugging a specific backend).

        Args:
            provider: Provider name (see web_intelligence_health)
            query: Search text
            intent: general | job | company | person | news
            max_results: Maximum results (default: 10)
            output_format: "markdown" (default) or "json"
        """
        try:
            fmt = _check_format(output_format)
            search_query = SearchQuery.create(query, intent=intent, max_results=max_results)
            response = await engine.search_with_provider(provider, search_query)
            if fmt == "json":
                return _dump(response.to_dict())
            return format_response_markdown(response)
        except WebIntelligenceError as e:
            logger.info(f"provider_search rejected: {e}")
            return e.to_agent_message()

    @mcp.tool()
    async def web_intelligence_health() -> str:
        """
        Probe every configured search provider.

        Returns:
            JSON with an overall flag and per-provider status and latency.
        """
        report = await engine.health_check()
        return _dump(report.to_dict())

    logger.info("Registered 4 web intelligence tools")
