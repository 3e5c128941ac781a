"""
Result Entities - the provider-agnostic result schema.

Key Entities:
    - NormalizedResult: one link/snippet in the common schema
    - NormalizedPayload: what a normalizer produces from one provider payload
    - ProviderErrorRecord: a captured per-provider failure
    - AggregatedResponse: merged, deduplicated, ranked outcome of one search

Example:
    >>> response = await engine.search(query)
    >>> [r.url for r in response.results]
    >>> response.errors  # providers that failed, and why
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any
from urllib.parse import urlsplit, urlunsplit

from web_intelligence.shared.exceptions import AllProvidersFailedError, ProviderError

if TYPE_CHECKING:
    from .query import SearchQuery


def canonicalize_url(url: str) -> str:
    """
    Canonical form used as the deduplication key.

    Lower-cased, fragment dropped, trailing slash removed. Query strings are
    kept since they often identify distinct pages.
    """
    text = url.strip().lower()
    if not text:
        return text
    parts = urlsplit(text)
    path = parts.path.rstrip("/")
    return urlunsplit((parts.scheme, parts.netloc, path, parts.query, ""))


@dataclass(frozen=True, slots=True)
class NormalizedResult:
    """A single search hit in the common schema."""

    title: str
    url: str
    snippet: str
    domain: str
    source_provider: str
    relevance_score: float
    position: int | None = None
    published_date: str | None = None

    def __post_init__(self) -> None:
        if not 0.0 <= self.relevance_score <= 1.0:
            raise ValueError(f"relevance_score out of range: {self.relevance_score}")

    @property
    def canonical_url(self) -> str:
        return canonicalize_url(self.url)

    def with_score(self, score: float) -> NormalizedResult:
        return NormalizedResult(
            title=self.title,
            url=self.url,
            snippet=self.snippet,
            domain=self.domain,
            source_provider=self.source_provider,
            relevance_score=score,
            position=self.position,
            published_date=self.published_date,
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "title": self.title,
            "url": self.url,
            "snippet": self.snippet,
            "domain": self.domain,
            "sourceProvider": self.source_provider,
            "relevanceScore": round(self.relevance_score, 4),
        }
        if self.position is not None:
            result["position"] = self.position
        if self.published_date:
            result["publishedDate"] = self.published_date
        return result


@dataclass(frozen=True, slots=True)
class NormalizedPayload:
    results: tuple[NormalizedResult, ...] = ()
    answer: str | None = None
    follow_up_questions: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class ProviderErrorRecord:
    """A provider failure as reported on the response."""

    provider: str
    error_type: str
    message: str
    retryable: bool = False

    @classmethod
    def from_error(cls, error: ProviderError) -> ProviderErrorRecord:
        return cls(
            provider=error.provider,
            error_type=error.error_type,
            message=error.detail,
            retryable=error.retryable,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider": self.provider,
            "type": self.error_type,
            "message": self.message,
            "retryable": self.retryable,
        }


@dataclass(frozen=True, slots=True)
class AggregatedResponse:
    """
    Final merged outcome of one search.

    ``results`` are sorted by ``relevance_score`` descending; ties go to the
    provider earlier in the execution plan, then to the lower position.
    ``failed`` is set when every planned provider failed; the response is
    still well formed in that case.
    """

    query: SearchQuery
    providers_used: tuple[str, ...]
    results: tuple[NormalizedResult, ...] = ()
    answer: str | None = None
    answer_provider: str | None = None
    follow_up_questions: tuple[str, ...] = ()
    timing_ms: int = 0
    errors: tuple[ProviderErrorRecord, ...] = ()
    failed: bool = False
    strategy: str = ""
    cancelled: bool = False

    @property
    def failure(self) -> AllProvidersFailedError | None:
        if not self.failed:
            return None
        return AllProvidersFailedError(self.providers_used)

    @property
    def succeeded_providers(self) -> tuple[str, ...]:
        failed = {e.provider for e in self.errors}
        return tuple(p for p in self.providers_used if p not in failed)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "query": self.query.text,
            "intent": self.query.intent.value,
            "urgency": self.query.urgency.value,
            "providersUsed": list(self.providers_used),
            "results": [r.to_dict() for r in self.results],
            "answer": self.answer,
            "answerProvider": self.answer_provider,
            "followUpQuestions": list(self.follow_up_questions),
            "timingMs": self.timing_ms,
            "errors": [e.to_dict() for e in self.errors],
            "failed": self.failed,
            "strategy": self.strategy,
        }
        if self.failed:
            result["failure"] = self.failure.to_dict()
        return result


def extract_domain(url: str) -> str:
    """Host part of *url* without a leading ``www.``; empty string if unparsable."""
    try:
        host = urlsplit(url.strip()).hostname or ""
    except ValueError:
        return ""
    return host.removeprefix("www.")
