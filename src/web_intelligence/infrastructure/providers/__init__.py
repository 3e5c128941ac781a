"""
Search provider adapters.

- serper: link-ranked results (fast)
- linkup: synthesized answer with cited sources (medium)
- tavily: research-grade results with native scores (slow)
"""

from .base import BaseProviderAdapter, ProviderRequest, clamp_score, position_score
from .linkup import LINKUP_CAPABILITY, LinkupAdapter, normalize_linkup
from .registry import ProviderRegistry
from .serper import SERPER_CAPABILITY, SerperAdapter, normalize_serper
from .tavily import TAVILY_CAPABILITY, TavilyAdapter, normalize_tavily

__all__ = [
    "BaseProviderAdapter",
    "ProviderRequest",
    "ProviderRegistry",
    "position_score",
    "clamp_score",
    "SerperAdapter",
    "LinkupAdapter",
    "TavilyAdapter",
    "SERPER_CAPABILITY",
    "LINKUP_CAPABILITY",
    "TAVILY_CAPABILITY",
    "normalize_serper",
    "normalize_linkup",
    "normalize_tavily",
]
