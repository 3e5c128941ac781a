"""
Async Utilities for concurrent provider calls.

Python 3.11+ features used:
- asyncio.timeout for budget enforcement (3.11+)
- TypeVar-based generic functions

Provides:
- Request-scoped cancellation context
- Isolated parallel execution (one failure never cancels siblings)
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TypeVar

from .exceptions import StreamCancelledError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Mapping

logger = logging.getLogger(__name__)

K = TypeVar("K")
T = TypeVar("T")


class BudgetExpired(Exception):
    """Marker result for a task still pending when the overall deadline hit."""

    def __init__(self, timeout: float) -> None:
        super().__init__(f"deadline of {timeout:.1f}s expired")
        self.timeout = timeout


# =============================================================================
# Request Context (cancellation token)
# =============================================================================


@dataclass
class RequestContext:
    """
    Cancellation token owned by one request.

    The transport boundary creates it; every in-flight provider task of the
    request is tracked so that ``cancel()`` reaches all of them. Once cancelled,
    results that arrive late must be discarded by their consumer.

    Example:
        context = RequestContext()
        response = await engine.search(query, context=context)
        ...
        context.cancel()  # caller disconnected
    """

    request_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    started_at: float = field(default_factory=time.monotonic)
    _cancelled: bool = field(init=False, default=False)
    _tasks: set[asyncio.Task[Any]] = field(init=False, default_factory=set)

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def in_flight(self) -> int:
        """Number of tracked tasks that have not finished yet."""
        return sum(1 for task in self._tasks if not task.done())

    def track(self, task: asyncio.Task[Any]) -> asyncio.Task[Any]:
        """Track *task*; cancel it immediately if the context is already cancelled."""
        if self._cancelled:
            task.cancel()
            return task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def cancel(self) -> None:
        """Cancel the request and every tracked in-flight task."""
        if self._cancelled:
            return
        self._cancelled = True
        pending = [task for task in self._tasks if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            logger.debug(f"Request {self.request_id}: cancelled {len(pending)} in-flight task(s)")

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise StreamCancelledError(f"Request {self.request_id} was cancelled")

    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self.started_at) * 1000)


# =============================================================================
# Parallel Execution
# =============================================================================


async def gather_isolated(
    calls: Mapping[K, Callable[[], Awaitable[T]]],
    *,
    timeout: float | None = None,
    context: RequestContext | None = None,
) -> dict[K, T | BaseException]:
    """
    Run calls concurrently with bulkhead isolation.

    Unlike ``asyncio.TaskGroup`` a failing call never cancels its siblings.
    Results keep the key order of *calls* regardless of completion order.
    Calls still pending when *timeout* expires are cancelled and reported as
    :class:`BudgetExpired`; calls cancelled through *context* are reported as
    ``asyncio.CancelledError`` instances.

    Example:
        results = await gather_isolated(
            {"a": lambda: fetch("a"), "b": lambda: fetch("b")},
            timeout=6.0,
        )
    """
    tasks: dict[K, asyncio.Task[T]] = {}
    for key, factory in calls.items():
        task = asyncio.ensure_future(factory())
        if context is not None:
            context.track(task)
        tasks[key] = task

    if not tasks:
        return {}

    try:
        _done, pending = await asyncio.wait(tasks.values(), timeout=timeout)
    except asyncio.CancelledError:
        for task in tasks.values():
            task.cancel()
        await asyncio.gather(*tasks.values(), return_exceptions=True)
        raise

    for task in pending:
        task.cancel()
    if pending:
        await asyncio.gather(*pending, return_exceptions=True)

    results: dict[K, T | BaseException] = {}
    for key, task in tasks.items():
        if task in pending:
            results[key] = BudgetExpired(timeout or 0.0)
        elif task.cancelled():
            results[key] = asyncio.CancelledError()
        elif task.exception() is not None:
            results[key] = task.exception()
        else:
            results[key] = task.result()
    return results


async def run_sequentially(
    calls: Mapping[K, Callable[[], Awaitable[T]]],
    *,
    context: RequestContext | None = None,
) -> dict[K, T | BaseException]:
    """Run calls one after another, capturing each outcome (no fallback chaining)."""
    results: dict[K, T | BaseException] = {}
    for key, factory in calls.items():
        if context is not None and context.cancelled:
            results[key] = asyncio.CancelledError()
            continue
        task = asyncio.ensure_future(factory())
        if context is not None:
            context.track(task)
        try:
            results[key] = await task
        except asyncio.CancelledError as e:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
            # Cancelled through the request context, not by our caller
            results[key] = e
        except Exception as e:
            results[key] = e
    return results
