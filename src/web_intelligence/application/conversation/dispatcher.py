"""
Conversational Dispatcher - turns a query into an ordered stream of fragments.

Lifecycle of one request:
    RECEIVED -> CLASSIFYING -> EXECUTING -> STREAMING -> COMPLETED | FAILED
    (any non-final state -> CANCELLED when the caller goes away)

Fragment order:
    status, strategy, status, token..., sources, complete
    (a status fragment may precede the remaining tokens when a live answer
    breaks and the search result is sent instead)
    or, on failure, a terminal error fragment instead of sources/complete.

A FragmentStream is lazy (production starts on first iteration), finite and
single-use. One producer task writes fragments into a queue in generation
order; the consumer reads them back in that order. Cancelling the stream
cancels the producer and, through the request context, every in-flight
provider call.

Example:
    stream = dispatcher.stream("Who is the CTO at Acme Corp?")
    async for fragment in stream:
        print(fragment.kind, fragment.content)
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from web_intelligence.domain.entities import (
    AggregatedResponse,
    DispatchState,
    FragmentKind,
    RetrievalStrategy,
    SearchIntent,
    SearchQuery,
    StreamFragment,
)
from web_intelligence.shared.async_utils import RequestContext, gather_isolated
from web_intelligence.shared.exceptions import (
    AllProvidersFailedError,
    InvalidStateTransitionError,
    ProviderError,
    StreamCancelledError,
    StreamConsumedError,
    WebIntelligenceError,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from web_intelligence.application.search.engine import AggregationEngine
    from web_intelligence.application.search.result_aggregator import ResultAggregator

    from .strategy_classifier import StrategyAnalysis, StrategyClassifier

logger = logging.getLogger(__name__)

DEFAULT_HYBRID_GRAPH_WEIGHT = 0.5
NO_ANSWER_TEXT = "No synthesized answer was available for this query. See the sources below."

_TRANSITIONS: dict[DispatchState, frozenset[DispatchState]] = {
    DispatchState.RECEIVED: frozenset({DispatchState.CLASSIFYING, DispatchState.FAILED}),
    DispatchState.CLASSIFYING: frozenset({DispatchState.EXECUTING, DispatchState.FAILED}),
    DispatchState.EXECUTING: frozenset({DispatchState.STREAMING, DispatchState.FAILED}),
    DispatchState.STREAMING: frozenset({DispatchState.COMPLETED, DispatchState.FAILED}),
    DispatchState.COMPLETED: frozenset(),
    DispatchState.FAILED: frozenset(),
    DispatchState.CANCELLED: frozenset(),
}


# =============================================================================
# Fragment Stream
# =============================================================================


class FragmentStream:
    """
    Lazy, finite, single-use async iterator of StreamFragments.

    The producer coroutine receives this stream and calls ``emit()``; the
    consumer iterates it. ``cancel()``/``aclose()`` stop production and end
    iteration without raising to the consumer.
    """

    def __init__(
        self,
        producer: Callable[[FragmentStream], Awaitable[None]],
        context: RequestContext | None = None,
    ) -> None:
        self._producer = producer
        self.context = context or RequestContext()
        self._queue: asyncio.Queue[StreamFragment | None] = asyncio.Queue()
        self._task: asyncio.Task[None] | None = None
        self._state = DispatchState.RECEIVED
        self._sequence = 0
        self._iterated = False
        self._closed = False
        self.response: AggregatedResponse | None = None

    @property
    def stream_id(self) -> str:
        return self.context.request_id

    @property
    def state(self) -> DispatchState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._closed

    def transition(self, target: DispatchState) -> None:
        """Move the state machine; illegal transitions raise InvalidStateTransitionError."""
        if self._state == DispatchState.CANCELLED:
            raise StreamCancelledError(f"Stream {self.stream_id} was cancelled")
        if target not in _TRANSITIONS[self._state]:
            raise InvalidStateTransitionError(self._state.value, target.value)
        logger.debug(f"[{self.stream_id}] {self._state.value} -> {target.value}")
        self._state = target

    def emit(self, kind: FragmentKind, content: str = "", data: dict[str, Any] | None = None) -> StreamFragment:
        """Queue the next fragment (sequence numbers increase by one)."""
        self.context.raise_if_cancelled()
        self._sequence += 1
        fragment = StreamFragment(kind=kind, content=content, data=data or {}, sequence=self._sequence)
        self._queue.put_nowait(fragment)
        return fragment

    # -------------------------------------------------------------------------
    # Iteration
    # -------------------------------------------------------------------------

    def __aiter__(self) -> FragmentStream:
        if self._iterated:
            raise StreamConsumedError()
        self._iterated = True
        return self

    async def __anext__(self) -> StreamFragment:
        if self._closed:
            raise StopAsyncIteration
        if self._task is None:
            self._task = asyncio.create_task(self._run(), name=f"fragment-stream-{self.stream_id}")
            self.context.track(self._task)

        fragment = await self._queue.get()
        if fragment is None or self._closed:
            self._closed = True
            raise StopAsyncIteration
        if fragment.is_terminal:
            self._closed = True
        return fragment

    async def _run(self) -> None:
        try:
            await self._producer(self)
        except StreamCancelledError:
            logger.debug(f"[{self.stream_id}] producer stopped after cancellation")
        finally:
            self._queue.put_nowait(None)

    # -------------------------------------------------------------------------
    # Cancellation
    # -------------------------------------------------------------------------

    def cancel(self) -> None:
        """Stop production and in-flight provider calls; no further fragments are delivered."""
        if not self._state.is_final:
            logger.info(f"[{self.stream_id}] stream cancelled in state {self._state.value}")
            self._state = DispatchState.CANCELLED
        self._closed = True
        self.context.cancel()
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._queue.put_nowait(None)

    async def aclose(self) -> None:
        self.cancel()
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)


# =============================================================================
# Dispatcher
# =============================================================================


@dataclass(frozen=True, slots=True)
class ExecutionLeg:
    """One engine execution inside a retrieval strategy."""

    name: str
    query: SearchQuery
    weight: float = 1.0


class ConversationalDispatcher:
    """
    Routes conversational queries to the engine by retrieval strategy.

    Strategy -> legs:
        vector -> one leg with the query's own intent
        graph  -> one entity leg (person intent; company intent when only a
                  company is named)
        hybrid -> both legs in parallel; leg scores scaled by
                  ``weight / max(weights)`` before the merge
    """

    def __init__(
        self,
        engine: AggregationEngine,
        classifier: StrategyClassifier,
        aggregator: ResultAggregator,
        *,
        hybrid_graph_weight: float = DEFAULT_HYBRID_GRAPH_WEIGHT,
        token_delay: float = 0.0,
    ) -> None:
        if not 0.0 <= hybrid_graph_weight <= 1.0:
            raise ValueError(f"hybrid_graph_weight must be within [0, 1], got {hybrid_graph_weight}")
        self._engine = engine
        self._classifier = classifier
        self._aggregator = aggregator
        self._graph_weight = hybrid_graph_weight
        self._token_delay = token_delay

    # =========================================================================
    # Classification
    # =========================================================================

    def classify_strategy(self, text: str) -> StrategyAnalysis:
        """Classify without executing anything."""
        return self._classifier.classify(text)

    def determine_search_strategy(self, text: str) -> RetrievalStrategy:
        return self._classifier.determine_search_strategy(text)

    def build_legs(self, query: SearchQuery, analysis: StrategyAnalysis) -> list[ExecutionLeg]:
        if analysis.strategy == RetrievalStrategy.VECTOR:
            return [ExecutionLeg("vector", query)]
        graph = ExecutionLeg("graph", self._graph_query(query, analysis), self._graph_weight)
        if analysis.strategy == RetrievalStrategy.GRAPH:
            return [ExecutionLeg("graph", graph.query)]
        return [ExecutionLeg("vector", query, 1.0 - self._graph_weight), graph]

    @staticmethod
    def _graph_query(query: SearchQuery, analysis: StrategyAnalysis) -> SearchQuery:
        company = analysis.company or query.company
        if analysis.person:
            return SearchQuery.create(
                analysis.person,
                intent=SearchIntent.PERSON,
                urgency=query.urgency,
                company=company,
                location=query.location,
                max_results=query.max_results,
            )
        if company:
            return SearchQuery.create(
                company,
                intent=SearchIntent.COMPANY,
                urgency=query.urgency,
                company=company,
                location=query.location,
                max_results=query.max_results,
            )
        return query.with_intent(SearchIntent.PERSON)

    # =========================================================================
    # Execution
    # =========================================================================

    async def search(
        self,
        query: SearchQuery,
        context: RequestContext | None = None,
        *,
        analysis: StrategyAnalysis | None = None,
    ) -> AggregatedResponse:
        """Classify and execute without streaming."""
        context = context or RequestContext()
        analysis = analysis or self._classifier.classify(query.text)
        return await self._execute(self.build_legs(query, analysis), query, context)

    async def _execute(
        self,
        legs: list[ExecutionLeg],
        query: SearchQuery,
        context: RequestContext,
    ) -> AggregatedResponse:
        if len(legs) == 1:
            return await self._engine.search(legs[0].query, context)

        outcomes = await gather_isolated(
            {leg.name: (lambda leg=leg: self._engine.search(leg.query, context)) for leg in legs},
            context=context,
        )
        context.raise_if_cancelled()
        responses: list[tuple[ExecutionLeg, AggregatedResponse]] = []
        for leg in legs:
            outcome = outcomes[leg.name]
            if isinstance(outcome, BaseException):
                raise outcome
            responses.append((leg, outcome))
        return self._combine(query, responses)

    def _combine(
        self,
        query: SearchQuery,
        responses: list[tuple[ExecutionLeg, AggregatedResponse]],
    ) -> AggregatedResponse:
        factors = self._aggregator.leg_factors([leg.weight for leg, _ in responses])
        weighted = [
            (leg.name, self._aggregator.apply_weight(response.results, factor))
            for (leg, response), factor in zip(responses, factors, strict=True)
        ]
        results, _stats = self._aggregator.aggregate_and_rank(weighted, max_results=query.max_results)

        providers: list[str] = []
        errors = []
        seen_errors: set[str] = set()
        follow_ups: list[str] = []
        answer, answer_provider = None, None
        for _, response in responses:
            providers.extend(p for p in response.providers_used if p not in providers)
            for error in response.errors:
                if error.provider not in seen_errors:
                    seen_errors.add(error.provider)
                    errors.append(error)
            follow_ups.extend(q for q in response.follow_up_questions if q not in follow_ups)
            if answer is None and response.answer:
                answer, answer_provider = response.answer, response.answer_provider

        # A provider that failed in one leg but succeeded in another is not an error
        succeeded = {p for _, r in responses for p in r.succeeded_providers}
        errors = [e for e in errors if e.provider not in succeeded]

        return AggregatedResponse(
            query=query,
            providers_used=tuple(providers),
            results=tuple(results),
            answer=answer,
            answer_provider=answer_provider,
            follow_up_questions=tuple(follow_ups),
            timing_ms=max(r.timing_ms for _, r in responses),
            errors=tuple(errors),
            failed=all(r.failed for _, r in responses),
            strategy=" | ".join(
                f"{leg.name} (x{factor:.2f}): {response.strategy}"
                for (leg, response), factor in zip(responses, factors, strict=True)
            ),
            cancelled=any(r.cancelled for _, r in responses),
        )

    # =========================================================================
    # Streaming
    # =========================================================================

    def stream(
        self,
        query: SearchQuery | str,
        *,
        context: RequestContext | None = None,
        **hints: Any,
    ) -> FragmentStream:
        """
        Create a fragment stream for *query*.

        A raw string is validated inside the stream, so an invalid query is
        reported as a terminal error fragment rather than raised.
        """

        async def produce(stream: FragmentStream) -> None:
            await self._produce(stream, query, hints)

        return FragmentStream(produce, context)

    async def _produce(self, stream: FragmentStream, query: SearchQuery | str, hints: dict[str, Any]) -> None:
        try:
            stream.transition(DispatchState.CLASSIFYING)
            stream.emit(FragmentKind.STATUS, "Analyzing your query...")
            if not isinstance(query, SearchQuery):
                query = SearchQuery.create(query, **hints)
            analysis = self._classifier.classify(query.text)
            stream.emit(FragmentKind.STRATEGY, analysis.strategy.value, analysis.to_dict())

            stream.transition(DispatchState.EXECUTING)
            legs = self.build_legs(query, analysis)
            stream.emit(
                FragmentKind.STATUS,
                f"Searching with {analysis.strategy.value} strategy...",
                {"legs": [leg.name for leg in legs]},
            )
            response = await self._execute_and_stream(stream, legs, query)
            stream.response = response

            if response.failed:
                self._fail(stream, response.failure or AllProvidersFailedError(response.providers_used), response)
                return

            stream.emit(
                FragmentKind.SOURCES,
                data={
                    "results": [r.to_dict() for r in response.results],
                    "providersUsed": list(response.providers_used),
                    "errors": [e.to_dict() for e in response.errors],
                    "followUpQuestions": list(response.follow_up_questions),
                },
            )
            stream.emit(
                FragmentKind.COMPLETE,
                data={
                    "searchId": stream.stream_id,
                    "strategy": analysis.strategy.value,
                    "timingMs": response.timing_ms,
                    "totalResults": len(response.results),
                    "answerProvider": response.answer_provider,
                },
            )
            stream.transition(DispatchState.COMPLETED)
            logger.info(f"[{stream.stream_id}] completed with {len(response.results)} result(s)")

        except (StreamCancelledError, asyncio.CancelledError):
            raise
        except WebIntelligenceError as e:
            logger.warning(f"[{stream.stream_id}] {e.error_type}: {e}")
            self._fail(stream, e)
        except Exception as e:
            logger.exception(f"[{stream.stream_id}] unexpected dispatch error: {e}")
            self._fail(stream, e)

    async def _execute_and_stream(
        self,
        stream: FragmentStream,
        legs: list[ExecutionLeg],
        query: SearchQuery,
    ) -> AggregatedResponse:
        """Run the legs; pipe answer tokens live when the lead provider streams, else slice the answer."""
        context = stream.context
        lead = legs[0].query
        plan = self._engine.plan(lead)
        live = next((c for c in plan.providers if c.streams_answer), None)

        if live is None:
            response = await self._execute(legs, query, context)
            stream.transition(DispatchState.STREAMING)
            if not response.failed:
                await self._emit_answer_words(stream, response.answer or NO_ANSWER_TEXT)
            return response

        emitted: list[str] = []
        interrupted = False
        search_task = context.track(asyncio.ensure_future(self._execute(legs, query, context)))
        try:
            stream.transition(DispatchState.STREAMING)
            adapter = self._engine.registry.get(live.name)
            try:
                async with asyncio.timeout(plan.budget):
                    async for token in adapter.stream_answer(lead, plan.budget):
                        stream.emit(FragmentKind.TOKEN, token)
                        emitted.append(token)
            except (ProviderError, TimeoutError) as e:
                logger.warning(f"[{stream.stream_id}] live answer from {live.name} interrupted: {e}")
                interrupted = True
            response = await search_task
        finally:
            # Any exit without the search result releases its provider calls
            if not search_task.done():
                search_task.cancel()
                await asyncio.gather(search_task, return_exceptions=True)

        if response.failed:
            return response
        if not emitted:
            await self._emit_answer_words(stream, response.answer or NO_ANSWER_TEXT)
        elif interrupted:
            await self._resume_answer(stream, "".join(emitted), response.answer)
        return response

    async def _resume_answer(self, stream: FragmentStream, partial: str, answer: str | None) -> None:
        """Complete an interrupted live answer from the search result."""
        if answer and answer.startswith(partial):
            rest = answer[len(partial) :]
            if rest:
                await self._emit_answer_words(stream, rest)
            return
        stream.emit(
            FragmentKind.STATUS,
            "Live answer interrupted; sending the full answer.",
            {"interrupted": True, "partialLength": len(partial)},
        )
        await self._emit_answer_words(stream, answer or NO_ANSWER_TEXT)

    async def _emit_answer_words(self, stream: FragmentStream, answer: str) -> None:
        words = answer.split(" ")
        for index, word in enumerate(words):
            stream.emit(FragmentKind.TOKEN, word if index == len(words) - 1 else f"{word} ")
            if self._token_delay > 0:
                await asyncio.sleep(self._token_delay)

    @staticmethod
    def _fail(stream: FragmentStream, error: BaseException, response: AggregatedResponse | None = None) -> None:
        if isinstance(error, WebIntelligenceError):
            data = error.to_dict()
        else:
            data = {"error": str(error) or type(error).__name__, "type": "internal"}
        if response is not None:
            data["providerErrors"] = [e.to_dict() for e in response.errors]
        stream.transition(DispatchState.FAILED)
        stream.emit(FragmentKind.ERROR, str(error) or type(error).__name__, data)
