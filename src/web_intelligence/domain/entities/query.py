"""
Query Entities - what a caller asks the engine for.

Key Entities:
    - SearchQuery: immutable, validated request (one per search)
    - SearchIntent: caller-declared purpose, filters eligible providers
    - Urgency: latency/quality tradeoff, drives provider-set size

Example:
    >>> query = SearchQuery.create("OpenAI latest funding", intent="news", urgency="balanced")
    >>> query.intent
    <SearchIntent.NEWS: 'news'>
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from web_intelligence.shared.exceptions import InvalidParameterError, InvalidQueryError

MIN_QUERY_LENGTH = 2
DEFAULT_MAX_RESULTS = 10


class SearchIntent(Enum):
    """Caller-declared purpose of the query."""

    GENERAL = "general"
    JOB = "job"
    COMPANY = "company"
    PERSON = "person"
    NEWS = "news"

    @classmethod
    def parse(cls, value: SearchIntent | str | None) -> SearchIntent:
        """Parse an intent name; legacy route names are accepted as aliases."""
        if value is None or value == "":
            return cls.GENERAL
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower()
        key = _INTENT_ALIASES.get(key, key)
        try:
            return cls(key)
        except ValueError:
            raise InvalidParameterError(
                "intent", value, " | ".join(i.value for i in cls)
            ) from None


_INTENT_ALIASES = {
    "job_search": "job",
    "jobs": "job",
    "company_research": "company",
    "person_lookup": "person",
    "people": "person",
}


class Urgency(Enum):
    """Latency/quality tradeoff requested by the caller."""

    FAST = "fast"
    BALANCED = "balanced"
    COMPREHENSIVE = "comprehensive"

    @classmethod
    def parse(cls, value: Urgency | str | None) -> Urgency:
        if value is None or value == "":
            return cls.BALANCED
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise InvalidParameterError(
                "urgency", value, " | ".join(u.value for u in cls)
            ) from None


@dataclass(frozen=True, slots=True)
class SearchQuery:
    """
    A validated search request.

    Immutable once constructed; created per request and discarded after the
    response is produced. Use :meth:`create` to build one from raw input.
    """

    text: str
    intent: SearchIntent = SearchIntent.GENERAL
    urgency: Urgency = Urgency.BALANCED
    location: str | None = None
    company: str | None = None
    max_results: int = DEFAULT_MAX_RESULTS

    def __post_init__(self) -> None:
        if not self.text or not self.text.strip():
            raise InvalidQueryError(self.text)
        if self.text != self.text.strip():
            raise InvalidQueryError(self.text, "Query text must be trimmed")
        if len(self.text) < MIN_QUERY_LENGTH:
            raise InvalidQueryError(self.text, f"Query must be at least {MIN_QUERY_LENGTH} characters")
        if not isinstance(self.max_results, int) or isinstance(self.max_results, bool) or self.max_results <= 0:
            raise InvalidParameterError("max_results", self.max_results, "a positive integer")

    @classmethod
    def create(
        cls,
        text: str | None,
        *,
        intent: SearchIntent | str | None = None,
        urgency: Urgency | str | None = None,
        location: str | None = None,
        company: str | None = None,
        max_results: int | str | None = None,
    ) -> SearchQuery:
        """
        Build a query from loosely-typed caller input.

        Trims text and optional hints, coerces enum names and numeric strings.

        Raises:
            InvalidQueryError: empty or too-short text
            InvalidParameterError: unknown intent/urgency, bad max_results
        """
        if text is None or not str(text).strip():
            raise InvalidQueryError(text)

        if max_results is None or max_results == "":
            limit = DEFAULT_MAX_RESULTS
        else:
            try:
                limit = int(max_results)
            except (TypeError, ValueError):
                raise InvalidParameterError("max_results", max_results, "a positive integer") from None

        return cls(
            text=str(text).strip(),
            intent=SearchIntent.parse(intent),
            urgency=Urgency.parse(urgency),
            location=(location or "").strip() or None,
            company=(company or "").strip() or None,
            max_results=limit,
        )

    def with_intent(self, intent: SearchIntent) -> SearchQuery:
        """Copy of this query with another intent (queries are immutable)."""
        return SearchQuery(
            text=self.text,
            intent=intent,
            urgency=self.urgency,
            location=self.location,
            company=self.company,
            max_results=self.max_results,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "query": self.text,
            "intent": self.intent.value,
            "urgency": self.urgency.value,
            "location": self.location,
            "company": self.company,
            "maxResults": self.max_results,
        }
