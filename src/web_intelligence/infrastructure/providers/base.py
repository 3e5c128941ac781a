"""
Base Provider Adapter - common HTTP call pattern for every search backend.

Each adapter owns one ``httpx.AsyncClient`` and turns a SearchQuery into
exactly one outbound request. The base class provides:
- Budget enforcement (``asyncio.timeout``) per call
- Translation of HTTP/transport failures into ProviderError subclasses
- JSON decoding with shape checks
- Health probing and client lifecycle

There are no retries: a failed call is reported once and the engine records it.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any, ClassVar

import httpx
from typing_extensions import Self

from web_intelligence.domain.entities import (
    ProviderCapability,
    ProviderHealth,
    RawProviderResult,
    SearchQuery,
    Urgency,
)
from web_intelligence.shared.exceptions import (
    ProviderError,
    ProviderMalformedResponseError,
    ProviderRateLimitedError,
    ProviderTimeoutError,
    ProviderUnauthorizedError,
    ProviderUnavailableError,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)

HEALTH_PROBE_QUERY = "web intelligence health check"
HEALTH_PROBE_BUDGET = 10.0


class ProviderRequest:
    """One outbound request as shaped by an adapter."""

    __slots__ = ("path", "body", "headers")

    def __init__(self, path: str, body: dict[str, Any], headers: dict[str, str] | None = None) -> None:
        self.path = path
        self.body = body
        self.headers = headers or {}

    def __repr__(self) -> str:
        return f"ProviderRequest(path={self.path!r}, body={self.body!r})"


class BaseProviderAdapter:
    """
    Base class for search provider adapters.

    Subclasses set ``capability`` and ``_base_url`` and implement
    ``_build_request()``. They may override ``_auth_headers()`` when the
    credential travels in a header.

    Example:
        class MyAdapter(BaseProviderAdapter):
            capability = ProviderCapability(name="my", ...)
            _base_url = "https://api.example.com"

            def _build_request(self, query):
                return ProviderRequest("/search", {"q": query.text})
    """

    capability: ClassVar[ProviderCapability]
    _base_url: ClassVar[str] = ""

    def __init__(
        self,
        api_key: str | None,
        *,
        timeout: float = 30.0,
        base_url: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize adapter.

        Args:
            api_key: Provider credential; ``None`` makes every call fail as unauthorized
            timeout: Transport-level timeout in seconds (the call budget is usually tighter)
            base_url: Override of the provider endpoint (tests, proxies)
            client: Pre-built client, mainly for tests
        """
        self._api_key = api_key
        self._endpoint = (base_url or self._base_url).rstrip("/")
        self._timeout = timeout
        self._client = client or httpx.AsyncClient(
            timeout=timeout,
            headers={"Content-Type": "application/json"},
            limits=httpx.Limits(
                max_connections=20,
                max_keepalive_connections=10,
                keepalive_expiry=30.0,
            ),
        )

    @property
    def name(self) -> str:
        return self.capability.name

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    # =========================================================================
    # Request shaping (subclass hooks)
    # =========================================================================

    def _build_request(self, query: SearchQuery) -> ProviderRequest:
        raise NotImplementedError

    def _auth_headers(self) -> dict[str, str]:
        return {}

    def _build_url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self._endpoint}{path}"

    # =========================================================================
    # Execution
    # =========================================================================

    async def execute(self, query: SearchQuery, budget: float) -> RawProviderResult:
        """
        Perform one call for *query* within *budget* seconds.

        Raises:
            ProviderError: one of the typed subclasses; transport exceptions never escape
        """
        if not self._api_key:
            raise ProviderUnauthorizedError(self.name, "API key not configured")

        request = self._build_request(query)
        started = time.monotonic()
        try:
            async with asyncio.timeout(budget):
                response = await self._client.post(
                    self._build_url(request.path),
                    json=request.body,
                    headers={**self._auth_headers(), **request.headers},
                )
        except TimeoutError:
            logger.warning(f"{self.name}: budget of {budget:.1f}s expired")
            raise ProviderTimeoutError(self.name, budget) from None
        except httpx.TimeoutException as e:
            logger.warning(f"{self.name}: transport timeout: {e}")
            raise ProviderTimeoutError(self.name, budget) from e
        except httpx.RequestError as e:
            logger.warning(f"{self.name}: request failed: {e}")
            raise ProviderUnavailableError(self.name, f"request failed: {e}") from e

        self._raise_for_status(response)
        payload = self._parse_response(response)
        elapsed_ms = int((time.monotonic() - started) * 1000)
        logger.debug(f"{self.name}: {response.status_code} in {elapsed_ms}ms")
        return RawProviderResult(provider=self.name, payload=payload, elapsed_ms=elapsed_ms)

    def stream_answer(self, query: SearchQuery, budget: float) -> AsyncIterator[str]:
        """Incremental answer tokens; only adapters with ``streams_answer`` implement this."""
        raise NotImplementedError(f"{self.name} does not stream answers")

    def _raise_for_status(self, response: httpx.Response) -> None:
        status = response.status_code
        if status < 400:
            return
        if status in (401, 403):
            raise ProviderUnauthorizedError(self.name, f"credentials rejected (HTTP {status})")
        if status == 429:
            raise ProviderRateLimitedError(
                self.name,
                "rate limit exceeded (HTTP 429)",
                retry_after=self._get_retry_after(response),
            )
        logger.warning(f"{self.name} HTTP error {status}: {response.reason_phrase}")
        raise ProviderUnavailableError(self.name, f"HTTP {status} {response.reason_phrase}", status_code=status)

    def _parse_response(self, response: httpx.Response) -> dict[str, Any]:
        try:
            payload = response.json()
        except ValueError as e:
            raise ProviderMalformedResponseError(self.name, f"response is not valid JSON: {e}") from e
        if not isinstance(payload, dict):
            raise ProviderMalformedResponseError(self.name, f"expected a JSON object, got {type(payload).__name__}")
        return payload

    @staticmethod
    def _get_retry_after(response: httpx.Response) -> float:
        """Extract Retry-After from response headers, defaulting to one second."""
        try:
            return float(response.headers.get("Retry-After", 1.0))
        except (ValueError, TypeError):
            return 1.0

    # =========================================================================
    # Health & lifecycle
    # =========================================================================

    async def health_check(self) -> ProviderHealth:
        """Probe the provider with a minimal query."""
        probe = SearchQuery.create(HEALTH_PROBE_QUERY, urgency=Urgency.FAST, max_results=1)
        started = time.monotonic()
        try:
            await self.execute(probe, HEALTH_PROBE_BUDGET)
        except ProviderError as e:
            return ProviderHealth(
                provider=self.name,
                healthy=False,
                latency_ms=int((time.monotonic() - started) * 1000),
                error=e.detail,
            )
        return ProviderHealth(
            provider=self.name,
            healthy=True,
            latency_ms=int((time.monotonic() - started) * 1000),
        )

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(endpoint={self._endpoint!r}, configured={self.configured})"


def position_score(index: int, total: int) -> float:
    """Position decay used when a provider gives no native score: (N - i) / N."""
    if total <= 0:
        return 0.0
    return max(0.0, min(1.0, (total - index) / total))


def clamp_score(value: Any, fallback: float) -> float:
    """Clamp a provider-native score into [0, 1]; use *fallback* when it is not numeric."""
    if isinstance(value, bool) or not isinstance(value, int | float):
        return fallback
    return max(0.0, min(1.0, float(value)))
