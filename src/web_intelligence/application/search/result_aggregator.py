"""
ResultAggregator - Multi-Provider Result Merging and Ranking

This module merges normalized results from several providers:
1. Deduplication by canonical URL (higher relevance score wins)
2. Stable ranking by relevance score with documented tie-breaks
3. Weighted combination of result sets (hybrid retrieval legs)

Architecture Decision:
    ResultAggregator operates on NormalizedResult objects.
    It does NOT make API calls - purely processes existing results.

    Input lists are passed in execution-plan order; that order is the
    first tie-break everywhere (dedup and sort), the provider-reported
    position is the second.

Example:
    >>> aggregator = ResultAggregator()
    >>> results, stats = aggregator.aggregate_and_rank(
    ...     [("serper", serper_results), ("linkup", linkup_results)],
    ...     max_results=10,
    ... )
    >>> stats.duplicates_removed
    1
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Sequence

    from web_intelligence.domain.entities import NormalizedResult

logger = logging.getLogger(__name__)


@dataclass
class AggregationStats:
    """Statistics from aggregation process."""

    total_input: int = 0
    unique_results: int = 0
    duplicates_removed: int = 0
    by_provider: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_input": self.total_input,
            "unique_results": self.unique_results,
            "duplicates_removed": self.duplicates_removed,
            "by_provider": self.by_provider,
        }


@dataclass(frozen=True, slots=True)
class _Candidate:
    result: NormalizedResult
    plan_index: int
    arrival: int

    @property
    def position(self) -> float:
        return self.result.position if self.result.position is not None else math.inf

    def beats(self, other: _Candidate) -> bool:
        """True when self should replace *other* as the representative of a URL."""
        if self.result.relevance_score != other.result.relevance_score:
            return self.result.relevance_score > other.result.relevance_score
        if self.plan_index != other.plan_index:
            return self.plan_index < other.plan_index
        return self.position < other.position

    def sort_key(self) -> tuple[float, int, float, int]:
        return (-self.result.relevance_score, self.plan_index, self.position, self.arrival)


# =============================================================================
# ResultAggregator
# =============================================================================


class ResultAggregator:
    """
    Merges and ranks results from multiple providers.

    Responsibilities:
    1. Deduplicate by canonical URL, keeping the higher score
    2. Sort by score descending, ties by plan order then position
    3. Truncate to the caller's limit
    4. Scale leg scores for weighted (hybrid) merges
    """

    def aggregate_and_rank(
        self,
        result_lists: Sequence[tuple[str, Sequence[NormalizedResult]]],
        max_results: int | None = None,
    ) -> tuple[list[NormalizedResult], AggregationStats]:
        """
        Deduplicate, rank and truncate in one pass.

        Returns:
            Tuple of (ranked results, aggregation statistics)
        """
        candidates, stats = self._deduplicate(result_lists)
        ranked = sorted(candidates, key=_Candidate.sort_key)
        if max_results is not None:
            ranked = ranked[:max_results]
        logger.debug(
            f"Aggregated {stats.total_input} result(s) into {stats.unique_results} unique, "
            f"returning {len(ranked)}"
        )
        return [c.result for c in ranked], stats

    @staticmethod
    def apply_weight(results: Sequence[NormalizedResult], weight: float) -> list[NormalizedResult]:
        """Scale every relevance score by *weight* (clamped to [0, 1])."""
        factor = max(0.0, min(1.0, weight))
        return [r.with_score(r.relevance_score * factor) for r in results]

    @staticmethod
    def leg_factors(weights: Sequence[float]) -> list[float]:
        """Relative factors ``w / max(weights)`` so the heaviest leg keeps its scores."""
        top = max(weights, default=0.0)
        if top <= 0:
            return [1.0 for _ in weights]
        return [max(0.0, w) / top for w in weights]

    # =========================================================================
    # Deduplication
    # =========================================================================

    def _deduplicate(
        self,
        result_lists: Sequence[tuple[str, Sequence[NormalizedResult]]],
    ) -> tuple[list[_Candidate], AggregationStats]:
        stats = AggregationStats()
        winners: dict[str, _Candidate] = {}
        arrival = 0

        for plan_index, (provider, results) in enumerate(result_lists):
            stats.by_provider[provider] = stats.by_provider.get(provider, 0) + len(results)
            for result in results:
                stats.total_input += 1
                candidate = _Candidate(result=result, plan_index=plan_index, arrival=arrival)
                arrival += 1
                key = result.canonical_url
                current = winners.get(key)
                if current is None:
                    winners[key] = candidate
                elif candidate.beats(current):
                    winners[key] = _Candidate(result=result, plan_index=plan_index, arrival=current.arrival)

        stats.unique_results = len(winners)
        stats.duplicates_removed = stats.total_input - stats.unique_results
        return list(winners.values()), stats
