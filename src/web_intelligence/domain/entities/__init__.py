"""
Domain Entities - Core business objects.

These entities represent the core concepts of the web intelligence domain:
- SearchQuery: a validated request (intent + urgency)
- ProviderCapability: static metadata of a registered backend
- NormalizedResult / AggregatedResponse: the provider-agnostic result schema
- StreamFragment: one unit of a streamed conversational response
"""

from .provider import (
    ALL_INTENTS,
    HealthReport,
    LatencyClass,
    ProviderCapability,
    ProviderHealth,
    ProviderKind,
    RawProviderResult,
)
from .query import DEFAULT_MAX_RESULTS, MIN_QUERY_LENGTH, SearchIntent, SearchQuery, Urgency
from .results import (
    AggregatedResponse,
    NormalizedPayload,
    NormalizedResult,
    ProviderErrorRecord,
    canonicalize_url,
    extract_domain,
)
from .stream import DispatchState, FragmentKind, RetrievalStrategy, StreamFragment

__all__ = [
    # Query
    "SearchQuery",
    "SearchIntent",
    "Urgency",
    "MIN_QUERY_LENGTH",
    "DEFAULT_MAX_RESULTS",
    # Provider
    "LatencyClass",
    "ProviderKind",
    "ProviderCapability",
    "RawProviderResult",
    "ProviderHealth",
    "HealthReport",
    "ALL_INTENTS",
    # Results
    "NormalizedResult",
    "NormalizedPayload",
    "ProviderErrorRecord",
    "AggregatedResponse",
    "canonicalize_url",
    "extract_domain",
    # Stream
    "RetrievalStrategy",
    "DispatchState",
    "FragmentKind",
    "StreamFragment",
]
