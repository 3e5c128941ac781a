"""
Unified Exception Hierarchy for the Web Intelligence engine.

Exception Hierarchy:
    WebIntelligenceError (base)
    ├── ProviderError
    │   ├── ProviderTimeoutError
    │   ├── ProviderUnauthorizedError
    │   ├── ProviderRateLimitedError
    │   ├── ProviderUnavailableError
    │   └── ProviderMalformedResponseError
    ├── ValidationError
    │   ├── InvalidQueryError
    │   └── InvalidParameterError
    ├── AllProvidersFailedError
    ├── StreamCancelledError
    ├── StreamConsumedError
    ├── InvalidStateTransitionError
    └── ConfigurationError

Provider errors are captured per provider by the aggregation engine and
reported in the response; they never abort sibling provider calls.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    WARNING = auto()  # Recoverable, can continue
    ERROR = auto()  # Failed but caller may re-issue
    CRITICAL = auto()  # Cannot continue
    TRANSIENT = auto()  # Temporary condition on the provider side


class ErrorCategory(Enum):
    """Categories for error classification."""

    PROVIDER = "provider"
    VALIDATION = "validation"
    AGGREGATION = "aggregation"
    STREAM = "stream"
    CONFIGURATION = "config"


@dataclass(frozen=True, slots=True)
class ErrorContext:
    """Rich context attached to an error."""

    provider: str | None = None
    operation: str | None = None
    input_value: Any = None
    suggestion: str | None = None
    example: str | None = None
    retry_after: float | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


def _with(ctx: ErrorContext | None, **changes: Any) -> ErrorContext:
    """Copy *ctx* with the given fields replaced (only where not already set)."""
    ctx = ctx or ErrorContext()
    return ErrorContext(
        provider=changes.get("provider") or ctx.provider,
        operation=ctx.operation,
        input_value=changes.get("input_value", ctx.input_value),
        suggestion=ctx.suggestion or changes.get("suggestion"),
        example=ctx.example or changes.get("example"),
        retry_after=changes.get("retry_after", ctx.retry_after),
        metadata=ctx.metadata,
    )


class WebIntelligenceError(Exception):
    """
    Base exception for all Web Intelligence errors.

    Provides:
    - Structured error context
    - Severity classification
    - Retry guidance
    - Agent-friendly formatting
    """

    error_type: str = "internal"

    def __init__(
        self,
        message: str,
        *,
        context: ErrorContext | None = None,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        category: ErrorCategory = ErrorCategory.PROVIDER,
        retryable: bool = False,
    ) -> None:
        super().__init__(message)
        self.context = context or ErrorContext()
        self.severity = severity
        self.category = category
        self.retryable = retryable

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "error": str(self),
            "type": self.error_type,
            "category": self.category.value,
            "severity": self.severity.name.lower(),
            "retryable": self.retryable,
        }
        if self.context.provider:
            result["provider"] = self.context.provider
        if self.context.suggestion:
            result["suggestion"] = self.context.suggestion
        if self.context.example:
            result["example"] = self.context.example
        if self.context.retry_after:
            result["retry_after_seconds"] = self.context.retry_after
        return result

    def to_agent_message(self) -> str:
        """Format for Agent consumption (Markdown)."""
        parts = [f"❌ **Error**: {self}"]

        if self.context.suggestion:
            parts.append(f"💡 **Suggestion**: {self.context.suggestion}")
        if self.context.example:
            parts.append(f"📝 **Example**: `{self.context.example}`")
        if self.retryable:
            if self.context.retry_after:
                parts.append(f"🔄 Retry after {self.context.retry_after:.1f} seconds")
            else:
                parts.append("🔄 Re-issuing the request may succeed")

        return "\n".join(parts)


# =============================================================================
# Provider Errors
# =============================================================================


class ProviderError(WebIntelligenceError):
    """Base class for failures of a single provider call."""

    error_type = "provider_error"

    def __init__(
        self,
        provider: str,
        message: str,
        *,
        context: ErrorContext | None = None,
        retryable: bool = True,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
    ) -> None:
        super().__init__(
            f"{provider}: {message}",
            context=_with(context, provider=provider),
            severity=severity,
            category=ErrorCategory.PROVIDER,
            retryable=retryable,
        )
        self.provider = provider
        self.detail = message


class ProviderTimeoutError(ProviderError):
    """Raised when a provider call exceeds its time budget."""

    error_type = "timeout"

    def __init__(
        self,
        provider: str,
        budget: float,
        *,
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(
            provider,
            f"no response within {budget:.1f}s budget",
            context=_with(context, suggestion="Use a longer urgency level or re-issue the request"),
            severity=ErrorSeverity.TRANSIENT,
        )
        self.budget = budget


class ProviderUnauthorizedError(ProviderError):
    """Raised when credentials are missing or rejected."""

    error_type = "unauthorized"

    def __init__(
        self,
        provider: str,
        message: str = "credentials rejected",
        *,
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(
            provider,
            message,
            context=_with(context, suggestion=f"Check the API key configured for {provider}"),
            retryable=False,
            severity=ErrorSeverity.CRITICAL,
        )


class ProviderRateLimitedError(ProviderError):
    """Raised when the provider answers HTTP 429."""

    error_type = "rate_limited"

    def __init__(
        self,
        provider: str,
        message: str = "rate limit exceeded",
        *,
        retry_after: float = 1.0,
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(
            provider,
            message,
            context=_with(context, retry_after=retry_after, suggestion="Wait and re-issue the request"),
            severity=ErrorSeverity.TRANSIENT,
        )


class ProviderUnavailableError(ProviderError):
    """Raised for transport failures and unexpected HTTP status codes."""

    error_type = "unavailable"

    def __init__(
        self,
        provider: str,
        message: str = "service temporarily unavailable",
        *,
        status_code: int | None = None,
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(provider, message, context=context)
        self.status_code = status_code


class ProviderMalformedResponseError(ProviderError):
    """Raised when a provider payload cannot be decoded or normalized."""

    error_type = "malformed_response"

    def __init__(
        self,
        provider: str,
        message: str = "unexpected response shape",
        *,
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(provider, message, context=context, retryable=False)


# =============================================================================
# Validation Errors
# =============================================================================


class ValidationError(WebIntelligenceError):
    """Base class for validation errors."""

    error_type = "validation"

    def __init__(
        self,
        message: str,
        *,
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(
            message,
            context=context,
            severity=ErrorSeverity.WARNING,
            category=ErrorCategory.VALIDATION,
            retryable=False,
        )


class InvalidQueryError(ValidationError):
    """Raised when the query text is empty or too short."""

    error_type = "invalid_query"

    def __init__(
        self,
        query: str | None,
        reason: str = "Query cannot be empty",
        *,
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(
            f"Invalid query: {reason}",
            context=_with(
                context,
                input_value=query,
                suggestion="Provide a non-empty search query",
                example='web_search(query="OpenAI latest funding", intent="news")',
            ),
        )


class InvalidParameterError(ValidationError):
    """Raised when a parameter value is invalid."""

    error_type = "invalid_parameter"

    def __init__(
        self,
        param_name: str,
        value: Any,
        expected: str,
        *,
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(
            f"Invalid parameter '{param_name}': {value!r} (expected {expected})",
            context=_with(context, input_value=value, suggestion=f"Expected {expected}"),
        )
        self.param_name = param_name


# =============================================================================
# Aggregation / Stream Errors
# =============================================================================


class AllProvidersFailedError(WebIntelligenceError):
    """
    Every provider of an execution plan failed.

    Reported on the response (``AggregatedResponse.failure``), not raised by
    the engine.
    """

    error_type = "all_providers_failed"

    def __init__(
        self,
        providers: list[str] | tuple[str, ...],
        *,
        context: ErrorContext | None = None,
    ) -> None:
        names = ", ".join(providers) if providers else "none"
        super().__init__(
            f"All providers failed ({names})",
            context=context,
            severity=ErrorSeverity.ERROR,
            category=ErrorCategory.AGGREGATION,
            retryable=True,
        )
        self.providers = tuple(providers)


class StreamCancelledError(WebIntelligenceError):
    """The consumer of a fragment stream cancelled it."""

    error_type = "stream_cancelled"

    def __init__(self, message: str = "Stream cancelled by caller") -> None:
        super().__init__(
            message,
            severity=ErrorSeverity.WARNING,
            category=ErrorCategory.STREAM,
        )


class StreamConsumedError(WebIntelligenceError):
    """A fragment stream was iterated a second time."""

    error_type = "stream_consumed"

    def __init__(self, message: str = "Fragment stream already consumed; issue a new query") -> None:
        super().__init__(
            message,
            severity=ErrorSeverity.ERROR,
            category=ErrorCategory.STREAM,
        )


class InvalidStateTransitionError(WebIntelligenceError):
    """A dispatch state machine was asked for a transition it does not allow."""

    error_type = "invalid_state_transition"

    def __init__(self, current: str, target: str) -> None:
        super().__init__(
            f"Cannot move from {current} to {target}",
            severity=ErrorSeverity.CRITICAL,
            category=ErrorCategory.STREAM,
        )
        self.current = current
        self.target = target


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(WebIntelligenceError):
    """Raised for configuration-related errors."""

    error_type = "configuration"

    def __init__(
        self,
        message: str,
        *,
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(
            message,
            context=context,
            severity=ErrorSeverity.CRITICAL,
            category=ErrorCategory.CONFIGURATION,
            retryable=False,
        )


def is_retryable_error(error: Exception) -> bool:
    """Check whether re-issuing the request could succeed."""
    if isinstance(error, WebIntelligenceError):
        return error.retryable

    error_str = str(error).lower()
    transient_patterns = [
        "rate limit",
        "too many requests",
        "temporarily unavailable",
        "service unavailable",
        "connection reset",
        "timeout",
    ]
    return any(pattern in error_str for pattern in transient_patterns)
