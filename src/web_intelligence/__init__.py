"""
Web Intelligence - multi-provider web search routing and aggregation.

Routes a search query to the best-suited external search providers (Serper,
Linkup, Tavily) according to intent and urgency, runs them concurrently under
a time budget, and merges their results into one deduplicated, ranked
response. A conversational front end classifies queries into vector, graph
or hybrid retrieval and streams the answer as ordered fragments.

Usage:
    from web_intelligence import SearchQuery, create_container

    container = create_container({"serper_api_key": "...", "linkup_api_key": "..."})
    engine = container.engine()
    response = await engine.search(SearchQuery.create("OpenAI latest funding", intent="news"))

    for result in response.results:
        print(f"{result.relevance_score:.2f} {result.title} ({result.url})")
"""

from .container import ApplicationContainer, create_container
from .domain.entities import (
    AggregatedResponse,
    NormalizedResult,
    RetrievalStrategy,
    SearchIntent,
    SearchQuery,
    StreamFragment,
    Urgency,
)
from .shared.exceptions import WebIntelligenceError

__version__ = "0.1.0"

__all__ = [
    "ApplicationContainer",
    "create_container",
    "SearchQuery",
    "SearchIntent",
    "Urgency",
    "NormalizedResult",
    "AggregatedResponse",
    "RetrievalStrategy",
    "StreamFragment",
    "WebIntelligenceError",
]
