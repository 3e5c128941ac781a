"""
StrategyClassifier - picks the retrieval strategy for a conversational query.

This module inspects the query text for:
1. Query category (decision maker, introduction, sales, company, temporal,
   relationship, general) from keyword cues
2. Person and company entity mentions
3. The resulting retrieval strategy (vector, graph, hybrid)

Architecture Decision:
    StrategyClassifier is stateless and uses keyword and pattern heuristics.
    It does NOT call any external APIs, so classification is a pure function
    of the query string and can be previewed without executing a search.

Example:
    >>> classifier = StrategyClassifier()
    >>> classifier.classify("Tell me about Jane Doe's connections at Acme").strategy
    RetrievalStrategy.GRAPH
    >>> classifier.classify("latest trends in vector databases").strategy
    RetrievalStrategy.VECTOR
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any

from web_intelligence.domain.entities import RetrievalStrategy


class QueryCategory(Enum):
    """
    What the conversational query is about.

    Checked in declaration order; the first category with a matching cue wins.
    """

    DECISION_MAKER = "decision_maker"  # "who is the CTO", "buyer"
    INTRODUCTION = "introduction"  # "introduce me", "connections", "warm intro"
    SALES = "sales"  # "sales opportunity", "buying signal"
    COMPANY = "company"  # "about the company", "organization"
    TEMPORAL = "temporal"  # "what changed", "history", "timeline"
    RELATIONSHIP = "relationship"  # "worked with", "reports to"
    GENERAL = "general"


CATEGORY_STRATEGY: dict[QueryCategory, RetrievalStrategy] = {
    QueryCategory.DECISION_MAKER: RetrievalStrategy.HYBRID,
    QueryCategory.INTRODUCTION: RetrievalStrategy.GRAPH,
    QueryCategory.SALES: RetrievalStrategy.HYBRID,
    QueryCategory.COMPANY: RetrievalStrategy.HYBRID,
    QueryCategory.TEMPORAL: RetrievalStrategy.GRAPH,
    QueryCategory.RELATIONSHIP: RetrievalStrategy.GRAPH,
    QueryCategory.GENERAL: RetrievalStrategy.VECTOR,
}


def _cue_pattern(*cues: str) -> re.Pattern[str]:
    return re.compile(r"\b(?:" + "|".join(cues) + r")\b", re.IGNORECASE)


@dataclass(frozen=True, slots=True)
class StrategyAnalysis:
    """Result of classifying one query."""

    query: str
    strategy: RetrievalStrategy
    category: QueryCategory
    cue: str | None = None
    person: str | None = None
    company: str | None = None

    @property
    def reasoning(self) -> str:
        if self.cue:
            base = f"'{self.cue}' suggests a {self.category.value.replace('_', ' ')} query"
        elif self.person:
            base = f"mentions person '{self.person}'"
        else:
            base = "no relationship cues"
        return f"{base} -> {self.strategy.value}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "query": self.query,
            "strategy": self.strategy.value,
            "category": self.category.value,
            "entities": {"person": self.person, "company": self.company},
            "reasoning": self.reasoning,
            "description": self.strategy.description,
        }


class StrategyClassifier:
    """
    Heuristic retrieval-strategy classifier.

    Rules:
    - The first matching category cue decides the strategy (CATEGORY_STRATEGY)
    - A general query that names a person is routed hybrid (entity + semantic)
    - Otherwise vector
    """

    CATEGORY_CUES: dict[QueryCategory, re.Pattern[str]] = {
        QueryCategory.DECISION_MAKER: _cue_pattern(
            r"decision[- ]makers?", r"cto", r"ceo", r"cfo", r"vp of \w+", r"head of \w+", r"buyers?"
        ),
        QueryCategory.INTRODUCTION: _cue_pattern(
            r"introduc(?:e|tion|tions)", r"connections?", r"connected", r"warm intro"
        ),
        QueryCategory.SALES: _cue_pattern(r"sales", r"opportunit(?:y|ies)", r"buying signals?"),
        QueryCategory.COMPANY: _cue_pattern(r"company", r"companies", r"organi[sz]ation", r"about"),
        QueryCategory.TEMPORAL: _cue_pattern(r"changed", r"history", r"timeline", r"over time"),
        QueryCategory.RELATIONSHIP: _cue_pattern(
            r"relationships?", r"worked with", r"works with", r"reports? to", r"colleagues?"
        ),
    }

    # "Jane Doe's", "Jane Doe" (two or more capitalized words)
    POSSESSIVE_NAME_PATTERN = re.compile(r"\b([A-Z][a-z]+(?:\s+[A-Z][a-z]+)+)['’]s\b")
    NAME_RUN_PATTERN = re.compile(r"\b[A-Z][a-z]+(?:\s+[A-Z][a-z]+)+\b")

    # "at Acme", "Acme Inc", "Globex Corp."
    COMPANY_AT_PATTERN = re.compile(r"\bat\s+([A-Z][\w&.-]*(?:\s+[A-Z][\w&.-]*)*)")
    COMPANY_SUFFIX_PATTERN = re.compile(
        r"\b([A-Z][\w&-]*(?:\s+[A-Z][\w&-]*)*\s+(?:Inc|Corp|Corporation|Ltd|LLC|GmbH|Co)\b\.?)"
    )

    def classify(self, query: str) -> StrategyAnalysis:
        text = (query or "").strip()
        category, cue = self._detect_category(text)
        person = self.extract_person(text)
        company = self.extract_company(text)

        strategy = CATEGORY_STRATEGY[category]
        if category == QueryCategory.GENERAL and person:
            strategy = RetrievalStrategy.HYBRID

        return StrategyAnalysis(
            query=text,
            strategy=strategy,
            category=category,
            cue=cue,
            person=person,
            company=company,
        )

    def determine_search_strategy(self, query: str) -> RetrievalStrategy:
        return self.classify(query).strategy

    def _detect_category(self, text: str) -> tuple[QueryCategory, str | None]:
        for category, pattern in self.CATEGORY_CUES.items():
            match = pattern.search(text)
            if match:
                return category, match.group(0).lower()
        return QueryCategory.GENERAL, None

    def extract_person(self, text: str) -> str | None:
        possessive = self.POSSESSIVE_NAME_PATTERN.search(text)
        runs = [possessive.group(1)] if possessive else []
        runs += [
            m.group(0)
            for m in self.NAME_RUN_PATTERN.finditer(text)
            if not text[: m.start()].rstrip().endswith(" at")
        ]
        for run in runs:
            words = run.split()
            while words and words[0].lower() in _LEADING_WORDS:
                words.pop(0)
            if len(words) >= 2 and words[-1] not in _COMPANY_SUFFIXES:
                return " ".join(words)
        return None

    def extract_company(self, text: str) -> str | None:
        match = self.COMPANY_SUFFIX_PATTERN.search(text) or self.COMPANY_AT_PATTERN.search(text)
        if not match:
            return None
        return match.group(1).rstrip(".?!,")


_COMPANY_SUFFIXES = frozenset({"Inc", "Corp", "Corporation", "Ltd", "LLC", "GmbH", "Co"})

# Capitalized sentence starters that are not part of a name
_LEADING_WORDS = frozenset(
    {
        "tell", "find", "show", "who", "what", "when", "where", "which", "how", "why",
        "is", "does", "did", "can", "could", "should", "introduce", "search", "look",
        "get", "list", "give", "help", "please", "hi", "hello", "the", "a", "an",
    }
)
