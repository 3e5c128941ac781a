"""
Conversation - strategy classification and streamed dispatch.

- StrategyClassifier: vector / graph / hybrid from the query text
- ConversationalDispatcher: runs the engine per strategy and streams fragments
- ConnectionManager: active streams of this process
"""

from .connections import ConnectionHandle, ConnectionManager
from .dispatcher import ConversationalDispatcher, ExecutionLeg, FragmentStream
from .strategy_classifier import QueryCategory, StrategyAnalysis, StrategyClassifier

__all__ = [
    "StrategyClassifier",
    "StrategyAnalysis",
    "QueryCategory",
    "ConversationalDispatcher",
    "ExecutionLeg",
    "FragmentStream",
    "ConnectionManager",
    "ConnectionHandle",
]
