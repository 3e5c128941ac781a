"""
Infrastructure Layer - External Systems Integration

Contains:
- providers: search provider adapters (Serper, Linkup, Tavily) and their registry
"""

from .providers import (
    BaseProviderAdapter,
    LinkupAdapter,
    ProviderRegistry,
    SerperAdapter,
    TavilyAdapter,
)

__all__ = [
    "BaseProviderAdapter",
    "ProviderRegistry",
    "SerperAdapter",
    "LinkupAdapter",
    "TavilyAdapter",
]
