"""
Strategy Selector - decides which providers run for a query, how, and for how long.

Policy Matrix (default):
    ┌───────────────┬──────────────────────────────────────────┬────────────┬────────┐
    │ Urgency       │ Provider set                             │ Mode       │ Budget │
    ├───────────────┼──────────────────────────────────────────┼────────────┼────────┤
    │ FAST          │ single fastest compatible provider       │ sequential │ 3 s    │
    │ BALANCED      │ one link-ranking + one answer-synthesis  │ parallel   │ 6 s    │
    │ COMPREHENSIVE │ every compatible provider                │ parallel   │ 12 s   │
    └───────────────┴──────────────────────────────────────────┴────────────┴────────┘

Slot tie-break: narrower latency class first, then registry declaration order.
A balanced slot with no candidate of its kind is filled from the remaining
compatible providers by the same tie-break.

Selection only reads capability metadata; it never looks at provider names.
It is pure and deterministic for a given registry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import TYPE_CHECKING

from web_intelligence.domain.entities import ProviderCapability, ProviderKind, SearchQuery, Urgency

if TYPE_CHECKING:
    from collections.abc import Mapping

    from web_intelligence.infrastructure.providers import ProviderRegistry

logger = logging.getLogger(__name__)


class ExecutionMode(Enum):
    SEQUENTIAL = "sequential"
    PARALLEL = "parallel"


@dataclass(frozen=True, slots=True)
class UrgencyPolicy:
    """
    One row of the policy matrix.

    ``slots`` lists the provider kind wanted per slot (``None`` = any kind);
    ``slots=None`` selects every compatible provider.
    """

    slots: tuple[ProviderKind | None, ...] | None
    mode: ExecutionMode
    budget: float


DEFAULT_POLICY: dict[Urgency, UrgencyPolicy] = {
    Urgency.FAST: UrgencyPolicy(slots=(None,), mode=ExecutionMode.SEQUENTIAL, budget=3.0),
    Urgency.BALANCED: UrgencyPolicy(
        slots=(ProviderKind.LINK_RANKING, ProviderKind.ANSWER_SYNTHESIS),
        mode=ExecutionMode.PARALLEL,
        budget=6.0,
    ),
    Urgency.COMPREHENSIVE: UrgencyPolicy(slots=None, mode=ExecutionMode.PARALLEL, budget=12.0),
}


def policy_with_budgets(
    budgets: Mapping[Urgency, float],
    base: Mapping[Urgency, UrgencyPolicy] | None = None,
) -> dict[Urgency, UrgencyPolicy]:
    """Copy of *base* (default policy) with budgets overridden where given."""
    base = base or DEFAULT_POLICY
    return {
        urgency: replace(policy, budget=float(budgets[urgency])) if budgets.get(urgency) else policy
        for urgency, policy in base.items()
    }


@dataclass(frozen=True, slots=True)
class ExecutionPlan:
    """Providers to call (in plan order), execution mode and time budget."""

    providers: tuple[ProviderCapability, ...]
    mode: ExecutionMode
    budget: float
    reasoning: str

    @property
    def provider_names(self) -> tuple[str, ...]:
        return tuple(p.name for p in self.providers)

    @property
    def is_empty(self) -> bool:
        return not self.providers

    def to_dict(self) -> dict:
        return {
            "providers": list(self.provider_names),
            "mode": self.mode.value,
            "budgetSeconds": self.budget,
            "reasoning": self.reasoning,
        }


class StrategySelector:
    """
    Builds an ExecutionPlan from a query and the registered capabilities.

    Usage:
        selector = StrategySelector(registry)
        plan = selector.select(SearchQuery.create("rust jobs", intent="job"))
        plan.provider_names  # ('serper', 'linkup')
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        policy: Mapping[Urgency, UrgencyPolicy] | None = None,
    ) -> None:
        self._registry = registry
        self._policy = dict(policy or DEFAULT_POLICY)

    @property
    def policy(self) -> dict[Urgency, UrgencyPolicy]:
        return dict(self._policy)

    def select(self, query: SearchQuery) -> ExecutionPlan:
        policy = self._policy[query.urgency]
        candidates = self.compatible(query)

        if not candidates:
            reasoning = f"No registered provider supports intent '{query.intent.value}'"
            logger.warning(reasoning)
            return ExecutionPlan(providers=(), mode=policy.mode, budget=policy.budget, reasoning=reasoning)

        if policy.slots is None:
            chosen = candidates
            reasoning = (
                f"{query.urgency.value.capitalize()} urgency: all {len(chosen)} providers "
                f"compatible with '{query.intent.value}'"
            )
        else:
            chosen = self._fill_slots(policy.slots, candidates)
            reasoning = (
                f"{query.urgency.value.capitalize()} urgency: "
                + ", ".join(f"{c.name} ({c.kind.value}, {c.latency_class.value})" for c in chosen)
            )

        plan = ExecutionPlan(
            providers=tuple(chosen),
            mode=policy.mode,
            budget=policy.budget,
            reasoning=reasoning,
        )
        logger.debug(f"Plan for {query.text!r}: {plan.provider_names} {plan.mode.value} {plan.budget}s")
        return plan

    def compatible(self, query: SearchQuery) -> list[ProviderCapability]:
        """Capabilities supporting the query intent, narrowest latency first (stable)."""
        declared = [c for c in self._registry.capabilities() if c.supports(query.intent)]
        return sorted(declared, key=lambda c: c.latency_class.rank)

    @staticmethod
    def _fill_slots(
        slots: tuple[ProviderKind | None, ...],
        candidates: list[ProviderCapability],
    ) -> list[ProviderCapability]:
        chosen: list[ProviderCapability] = []
        for kind in slots:
            remaining = [c for c in candidates if c not in chosen]
            if not remaining:
                break
            match = next((c for c in remaining if kind is None or c.kind == kind), None)
            chosen.append(match or remaining[0])
        return chosen
