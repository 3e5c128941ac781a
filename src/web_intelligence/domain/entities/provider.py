"""
Provider Entities - capability metadata describing each registered backend.

The Strategy Selector works exclusively on these descriptors; it never looks
at provider names, so adding a backend means registering one more adapter.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from .query import SearchIntent

if TYPE_CHECKING:
    from collections.abc import Callable

    from .results import NormalizedPayload


class LatencyClass(Enum):
    """Expected response-time band of a provider."""

    FAST = "fast"
    MEDIUM = "medium"
    SLOW = "slow"

    @property
    def rank(self) -> int:
        """Ordinal used for tie-breaking (narrower band = lower rank)."""
        return _LATENCY_RANK[self]


_LATENCY_RANK = {LatencyClass.FAST: 0, LatencyClass.MEDIUM: 1, LatencyClass.SLOW: 2}


class ProviderKind(Enum):
    """What a provider contributes to an aggregated response."""

    LINK_RANKING = "link_ranking"  # ordered URL/snippet results
    ANSWER_SYNTHESIS = "answer_synthesis"  # prose answer plus cited sources
    RESEARCH = "research"  # deeper, slower results with citations


ALL_INTENTS: frozenset[SearchIntent] = frozenset(SearchIntent)


@dataclass(frozen=True, slots=True)
class RawProviderResult:
    """
    Provider-specific payload, opaque outside its adapter/normalizer pair.

    Lifetime ends once normalized.
    """

    provider: str
    payload: dict[str, Any]
    elapsed_ms: int = 0


@dataclass(frozen=True, slots=True)
class ProviderCapability:
    """
    Static description of one provider.

    Attributes:
        name: Registry key (unique)
        latency_class: Expected latency band
        kind: Link-ranking, answer-synthesis or research
        supported_intents: Intents this provider may be planned for
        supplies_answer: Payload may carry a synthesized answer
        streams_answer: Adapter can deliver answer tokens incrementally
        normalize: Maps this provider's RawProviderResult to a NormalizedPayload
    """

    name: str
    latency_class: LatencyClass
    kind: ProviderKind
    normalize: Callable[[RawProviderResult], NormalizedPayload] = field(compare=False, repr=False)
    supported_intents: frozenset[SearchIntent] = ALL_INTENTS
    supplies_answer: bool = False
    streams_answer: bool = False

    def supports(self, intent: SearchIntent) -> bool:
        return intent in self.supported_intents

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "latencyClass": self.latency_class.value,
            "kind": self.kind.value,
            "supportedIntents": sorted(i.value for i in self.supported_intents),
            "suppliesAnswer": self.supplies_answer,
            "streamsAnswer": self.streams_answer,
        }


@dataclass(frozen=True, slots=True)
class ProviderHealth:
    """Outcome of probing one provider."""

    provider: str
    healthy: bool
    latency_ms: int = 0
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "healthy": self.healthy,
            "latencyMs": self.latency_ms,
        }
        if self.error:
            result["error"] = self.error
        return result


@dataclass(frozen=True, slots=True)
class HealthReport:
    """Health of every registered provider; overall is healthy if any one is."""

    providers: tuple[ProviderHealth, ...]
    checked_at: str

    @property
    def overall(self) -> bool:
        return any(p.healthy for p in self.providers)

    def to_dict(self) -> dict[str, Any]:
        return {
            "overall": self.overall,
            "providers": {p.provider: p.to_dict() for p in self.providers},
            "timestamp": self.checked_at,
        }
