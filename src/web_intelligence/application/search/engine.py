"""
Aggregation Engine - executes an ExecutionPlan and merges the outcome.

Flow per request:
    1. StrategySelector builds the plan (providers, mode, budget)
    2. One task per provider (parallel) or one call after another (sequential),
       each bound by the plan budget; failures are isolated per provider
    3. Calls still running at the overall deadline (budget + grace) are cancelled
       and recorded as timeouts
    4. Each payload goes through the ResultNormalizer
    5. ResultAggregator deduplicates, ranks and truncates
    6. The answer comes from the first provider (plan order) that supplied one

The engine never raises for provider failures: when every provider fails the
response carries ``failed=True`` and one error per provider. Only invalid
input (``ValidationError``) is raised, before any call starts. There are no
retries.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from web_intelligence.domain.entities import (
    AggregatedResponse,
    HealthReport,
    NormalizedPayload,
    ProviderErrorRecord,
    ProviderHealth,
    SearchIntent,
    SearchQuery,
    Urgency,
)
from web_intelligence.shared.async_utils import (
    BudgetExpired,
    RequestContext,
    gather_isolated,
    run_sequentially,
)
from web_intelligence.shared.exceptions import (
    InvalidParameterError,
    ProviderError,
    ProviderTimeoutError,
    ProviderUnavailableError,
)

from .normalizer import ResultNormalizer
from .result_aggregator import ResultAggregator
from .strategy_selector import ExecutionMode, ExecutionPlan, StrategySelector

if TYPE_CHECKING:
    from web_intelligence.domain.entities import ProviderCapability
    from web_intelligence.infrastructure.providers import ProviderRegistry

logger = logging.getLogger(__name__)

DEFAULT_DEADLINE_GRACE = 0.5
HEALTH_CHECK_TIMEOUT = 15.0

COMPANY_FOCUS = ("overview", "news", "careers", "financial")


class AggregationEngine:
    """
    Runs provider calls for a query and produces one AggregatedResponse.

    Usage:
        engine = AggregationEngine(registry, StrategySelector(registry))
        response = await engine.search(SearchQuery.create("OpenAI latest funding", intent="news"))
        response.providers_used  # ('serper', 'linkup')
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        selector: StrategySelector,
        aggregator: ResultAggregator | None = None,
        normalizer: ResultNormalizer | None = None,
        *,
        deadline_grace: float = DEFAULT_DEADLINE_GRACE,
    ) -> None:
        self._registry = registry
        self._selector = selector
        self._aggregator = aggregator or ResultAggregator()
        self._normalizer = normalizer or ResultNormalizer()
        self._grace = deadline_grace

    @property
    def registry(self) -> ProviderRegistry:
        return self._registry

    def plan(self, query: SearchQuery) -> ExecutionPlan:
        """Preview the execution plan without calling any provider."""
        return self._selector.select(query)

    # =========================================================================
    # Search
    # =========================================================================

    async def search(
        self,
        query: SearchQuery,
        context: RequestContext | None = None,
        *,
        plan: ExecutionPlan | None = None,
    ) -> AggregatedResponse:
        """
        Execute a search across the planned providers.

        Args:
            query: Validated query
            context: Request-scoped cancellation token (created if omitted)
            plan: Pre-computed plan (defaults to the selector's choice)

        Returns:
            AggregatedResponse; ``failed`` is set when no provider succeeded and
            ``cancelled`` when the context was cancelled (late results discarded)
        """
        context = context or RequestContext()
        plan = plan or self.plan(query)
        started = time.monotonic()

        if plan.is_empty:
            return AggregatedResponse(
                query=query,
                providers_used=(),
                failed=True,
                strategy=plan.reasoning,
                timing_ms=0,
            )

        logger.info(
            f"[{context.request_id}] Searching {query.text!r} "
            f"({query.intent.value}/{query.urgency.value}) with {', '.join(plan.provider_names)}"
        )

        calls = {
            capability.name: self._bind_call(capability, query, plan.budget)
            for capability in plan.providers
        }
        if plan.mode == ExecutionMode.PARALLEL:
            outcomes = await gather_isolated(calls, timeout=plan.budget + self._grace, context=context)
        else:
            outcomes = await run_sequentially(calls, context=context)

        timing_ms = int((time.monotonic() - started) * 1000)

        if context.cancelled:
            logger.info(f"[{context.request_id}] Cancelled; discarding {len(outcomes)} outcome(s)")
            return AggregatedResponse(
                query=query,
                providers_used=plan.provider_names,
                timing_ms=timing_ms,
                strategy=plan.reasoning,
                cancelled=True,
            )

        return self._assemble(query, plan, outcomes, timing_ms)

    async def search_with_provider(
        self,
        name: str,
        query: SearchQuery,
        context: RequestContext | None = None,
    ) -> AggregatedResponse:
        """
        Single-provider search (debugging a specific backend).

        Raises:
            InvalidParameterError: unknown provider name
        """
        capability = self._registry.get(name).capability
        policy = self._selector.policy[query.urgency]
        plan = ExecutionPlan(
            providers=(capability,),
            mode=ExecutionMode.SEQUENTIAL,
            budget=policy.budget,
            reasoning=f"Direct {name} search",
        )
        return await self.search(query, context, plan=plan)

    async def search_jobs(
        self,
        text: str,
        location: str | None = None,
        *,
        urgency: Urgency | str = Urgency.BALANCED,
        max_results: int = 10,
        context: RequestContext | None = None,
    ) -> AggregatedResponse:
        query = SearchQuery.create(
            text,
            intent=SearchIntent.JOB,
            urgency=urgency,
            location=location,
            max_results=max_results,
        )
        return await self.search(query, context)

    async def research_company(
        self,
        company: str,
        focus: str = "overview",
        *,
        urgency: Urgency | str = Urgency.BALANCED,
        max_results: int = 10,
        context: RequestContext | None = None,
    ) -> AggregatedResponse:
        """
        Company research with a focus area.

        Focus:
            overview  -> company intent (business overview)
            news      -> news intent on recent coverage
            careers   -> job intent on open positions
            financial -> general intent on revenue and funding
        """
        focus = (focus or "overview").strip().lower()
        if focus not in COMPANY_FOCUS:
            raise InvalidParameterError("focus", focus, " | ".join(COMPANY_FOCUS))

        name = (company or "").strip()
        if focus == "news":
            text, intent = f"{name} latest news", SearchIntent.NEWS
        elif focus == "careers":
            text, intent = f"{name} careers hiring", SearchIntent.JOB
        elif focus == "financial":
            text, intent = f"{name} financial results revenue funding", SearchIntent.GENERAL
        else:
            text, intent = name, SearchIntent.COMPANY

        query = SearchQuery.create(
            text if name else None,
            intent=intent,
            urgency=urgency,
            company=name,
            max_results=max_results,
        )
        return await self.search(query, context)

    # =========================================================================
    # Health
    # =========================================================================

    async def health_check(self) -> HealthReport:
        """Probe every registered provider concurrently."""
        probes = {adapter.name: adapter.health_check for adapter in self._registry}
        outcomes = await gather_isolated(probes, timeout=HEALTH_CHECK_TIMEOUT)

        providers = []
        for name, outcome in outcomes.items():
            if isinstance(outcome, ProviderHealth):
                providers.append(outcome)
            else:
                providers.append(ProviderHealth(provider=name, healthy=False, error=_describe(outcome)))

        report = HealthReport(providers=tuple(providers), checked_at=datetime.now(UTC).isoformat())
        logger.info(f"Health check: overall={'healthy' if report.overall else 'unhealthy'}")
        return report

    # =========================================================================
    # Internals
    # =========================================================================

    def _bind_call(self, capability: ProviderCapability, query: SearchQuery, budget: float):
        async def call() -> NormalizedPayload:
            adapter = self._registry.get(capability.name)
            try:
                async with asyncio.timeout(budget + self._grace):
                    raw = await adapter.execute(query, budget)
            except TimeoutError:
                raise ProviderTimeoutError(capability.name, budget) from None
            return self._normalizer.normalize(raw, capability)

        return call

    def _assemble(
        self,
        query: SearchQuery,
        plan: ExecutionPlan,
        outcomes: dict[str, NormalizedPayload | BaseException],
        timing_ms: int,
    ) -> AggregatedResponse:
        succeeded: list[tuple[str, NormalizedPayload]] = []
        errors: list[ProviderErrorRecord] = []

        for capability in plan.providers:
            outcome = outcomes.get(capability.name)
            if isinstance(outcome, NormalizedPayload):
                succeeded.append((capability.name, outcome))
            else:
                error = self._to_provider_error(capability.name, outcome, plan.budget)
                logger.warning(f"Provider {capability.name} failed: {error.error_type}: {error.detail}")
                errors.append(ProviderErrorRecord.from_error(error))

        results, stats = self._aggregator.aggregate_and_rank(
            [(name, payload.results) for name, payload in succeeded],
            max_results=query.max_results,
        )

        answer, answer_provider = None, None
        for name, payload in succeeded:
            if payload.answer:
                answer, answer_provider = payload.answer, name
                break

        follow_ups: list[str] = []
        for _, payload in succeeded:
            follow_ups.extend(q for q in payload.follow_up_questions if q not in follow_ups)

        failed = not succeeded
        if failed:
            logger.error(f"All providers failed for {query.text!r}: {', '.join(plan.provider_names)}")
        else:
            logger.info(
                f"Merged {stats.total_input} result(s) from {len(succeeded)} provider(s), "
                f"{stats.duplicates_removed} duplicate(s) removed, {timing_ms}ms"
            )

        return AggregatedResponse(
            query=query,
            providers_used=plan.provider_names,
            results=tuple(results),
            answer=answer,
            answer_provider=answer_provider,
            follow_up_questions=tuple(follow_ups),
            timing_ms=timing_ms,
            errors=tuple(errors),
            failed=failed,
            strategy=plan.reasoning,
        )

    @staticmethod
    def _to_provider_error(name: str, outcome: BaseException | None, budget: float) -> ProviderError:
        if isinstance(outcome, ProviderError):
            return outcome
        if isinstance(outcome, BudgetExpired):
            return ProviderTimeoutError(name, budget)
        if isinstance(outcome, asyncio.CancelledError):
            return ProviderUnavailableError(name, "call cancelled")
        if outcome is None:
            return ProviderUnavailableError(name, "no outcome recorded")
        logger.error(f"Provider {name} raised unexpected {type(outcome).__name__}: {outcome}", exc_info=outcome)
        return ProviderUnavailableError(name, f"unexpected error: {outcome}")


def _describe(outcome: BaseException) -> str:
    if isinstance(outcome, ProviderError):
        return outcome.detail
    if isinstance(outcome, BudgetExpired):
        return "health probe timed out"
    return str(outcome) or type(outcome).__name__
