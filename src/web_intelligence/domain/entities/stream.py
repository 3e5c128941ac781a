"""
Stream Entities - conversational dispatch vocabulary.

Key Entities:
    - RetrievalStrategy: vector / graph / hybrid retrieval
    - DispatchState: lifecycle of one conversational request
    - StreamFragment: one incremental unit of a streamed response
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class RetrievalStrategy(Enum):
    """How a conversational query is routed to the engine."""

    VECTOR = "vector"  # informational, one leg with the query's own intent
    GRAPH = "graph"  # relationship-oriented, entity leg
    HYBRID = "hybrid"  # both legs, weighted merge

    @property
    def description(self) -> str:
        return _STRATEGY_DESCRIPTIONS[self]


_STRATEGY_DESCRIPTIONS = {
    RetrievalStrategy.VECTOR: "Semantic search over informational content",
    RetrievalStrategy.GRAPH: "Relationship search around people and companies",
    RetrievalStrategy.HYBRID: "Semantic and relationship search, merged by weight",
}


class DispatchState(Enum):
    RECEIVED = "received"
    CLASSIFYING = "classifying"
    EXECUTING = "executing"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_final(self) -> bool:
        return self in (DispatchState.COMPLETED, DispatchState.FAILED, DispatchState.CANCELLED)


class FragmentKind(Enum):
    STATUS = "status"
    STRATEGY = "strategy"
    TOKEN = "token"
    SOURCES = "sources"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class StreamFragment:
    """
    One unit of streamed output.

    ``sequence`` is strictly increasing within a stream. A ``complete`` or
    ``error`` fragment is always the last one.
    """

    kind: FragmentKind
    content: str = ""
    data: dict[str, Any] = field(default_factory=dict)
    sequence: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.kind in (FragmentKind.COMPLETE, FragmentKind.ERROR)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"type": self.kind.value, "sequence": self.sequence}
        if self.content:
            result["content"] = self.content
        if self.data:
            result["data"] = self.data
        return result

    def to_sse(self) -> str:
        """Render as one Server-Sent Events message."""
        return f"data: {json.dumps(self.to_dict(), ensure_ascii=False)}\n\n"
