"""
Domain Layer - Core Business Logic

Contains:
- entities: Core domain entities (SearchQuery, NormalizedResult, StreamFragment)
"""

from .entities import (
    AggregatedResponse,
    NormalizedResult,
    ProviderCapability,
    SearchIntent,
    SearchQuery,
    StreamFragment,
    Urgency,
)

__all__ = [
    "SearchQuery",
    "SearchIntent",
    "Urgency",
    "ProviderCapability",
    "NormalizedResult",
    "AggregatedResponse",
    "StreamFragment",
]
