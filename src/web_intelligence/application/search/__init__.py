"""
Search - provider selection, execution and result merging.

- StrategySelector: urgency policy -> ExecutionPlan
- AggregationEngine: runs the plan with per-provider isolation
- ResultNormalizer: provider payload -> common schema
- ResultAggregator: dedup, rank, weighted merge
"""

from .engine import AggregationEngine
from .normalizer import ResultNormalizer
from .result_aggregator import AggregationStats, ResultAggregator
from .strategy_selector import (
    DEFAULT_POLICY,
    ExecutionMode,
    ExecutionPlan,
    StrategySelector,
    UrgencyPolicy,
    policy_with_budgets,
)

__all__ = [
    "AggregationEngine",
    "ResultNormalizer",
    "ResultAggregator",
    "AggregationStats",
    "StrategySelector",
    "ExecutionPlan",
    "ExecutionMode",
    "UrgencyPolicy",
    "DEFAULT_POLICY",
    "policy_with_budgets",
]
