"""
Connection Manager - registry of the active fragment streams of this process.

Transports register a stream when a client connects and get a handle back;
the handle unregisters on exit. Streams can be cancelled by id (e.g. from a
separate DELETE request) or all at once on shutdown.

Usage:
    async with manager.register(stream, subscriber_id="user-42") as handle:
        async for fragment in stream:
            ...
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from typing_extensions import Self

if TYPE_CHECKING:
    from .dispatcher import FragmentStream

logger = logging.getLogger(__name__)


class ConnectionHandle:
    """Registration of one stream; closing it unregisters (and cancels if still open)."""

    def __init__(self, manager: ConnectionManager, stream: FragmentStream, subscriber_id: str | None) -> None:
        self._manager = manager
        self.stream = stream
        self.subscriber_id = subscriber_id
        self.connected_at = time.time()
        self._released = False

    @property
    def stream_id(self) -> str:
        return self.stream.stream_id

    @property
    def active(self) -> bool:
        return not self._released

    async def release(self) -> None:
        if self._released:
            return
        self._released = True
        self._manager.unregister(self)
        if not self.stream.state.is_final:
            await self.stream.aclose()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.release()

    def __repr__(self) -> str:
        return f"ConnectionHandle(stream_id={self.stream_id!r}, subscriber_id={self.subscriber_id!r})"


class ConnectionManager:
    """Per-process registry of active streams (one instance per container)."""

    def __init__(self) -> None:
        self._handles: dict[str, ConnectionHandle] = {}

    def register(self, stream: FragmentStream, subscriber_id: str | None = None) -> ConnectionHandle:
        handle = ConnectionHandle(self, stream, subscriber_id)
        self._handles[stream.stream_id] = handle
        logger.debug(f"Stream {stream.stream_id} registered ({self.active_count} active)")
        return handle

    def unregister(self, handle: ConnectionHandle) -> None:
        if self._handles.get(handle.stream_id) is handle:
            del self._handles[handle.stream_id]
            logger.debug(f"Stream {handle.stream_id} unregistered ({self.active_count} active)")

    def cancel(self, stream_id: str) -> bool:
        """Cancel one stream by id; returns False if it is not active."""
        handle = self._handles.get(stream_id)
        if handle is None:
            return False
        handle.stream.cancel()
        logger.info(f"Stream {stream_id} cancelled on request")
        return True

    async def cancel_all(self) -> int:
        handles = list(self._handles.values())
        for handle in handles:
            await handle.release()
        if handles:
            logger.info(f"Cancelled {len(handles)} active stream(s)")
        return len(handles)

    @property
    def active_count(self) -> int:
        return len(self._handles)

    def handles_for(self, subscriber_id: str) -> list[ConnectionHandle]:
        return [h for h in self._handles.values() if h.subscriber_id == subscriber_id]

    def get(self, stream_id: str) -> ConnectionHandle | None:
        return self._handles.get(stream_id)
