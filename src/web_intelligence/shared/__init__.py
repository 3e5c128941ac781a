"""
Shared kernel for the Web Intelligence engine.

Provides:
- Unified exception hierarchy
- Async utilities for isolated concurrent provider calls
- Request-scoped cancellation context
"""

from .async_utils import (
    BudgetExpired,
    RequestContext,
    gather_isolated,
    run_sequentially,
)
from .exceptions import (
    AllProvidersFailedError,
    ConfigurationError,
    ErrorCategory,
    ErrorContext,
    ErrorSeverity,
    InvalidParameterError,
    InvalidQueryError,
    InvalidStateTransitionError,
    ProviderError,
    ProviderMalformedResponseError,
    ProviderRateLimitedError,
    ProviderTimeoutError,
    ProviderUnauthorizedError,
    ProviderUnavailableError,
    StreamCancelledError,
    StreamConsumedError,
    ValidationError,
    WebIntelligenceError,
    is_retryable_error,
)

__all__ = [
    # Exceptions
    "WebIntelligenceError",
    "ErrorContext",
    "ErrorSeverity",
    "ErrorCategory",
    "ProviderError",
    "ProviderTimeoutError",
    "ProviderUnauthorizedError",
    "ProviderRateLimitedError",
    "ProviderUnavailableError",
    "ProviderMalformedResponseError",
    "ValidationError",
    "InvalidQueryError",
    "InvalidParameterError",
    "AllProvidersFailedError",
    "StreamCancelledError",
    "StreamConsumedError",
    "InvalidStateTransitionError",
    "ConfigurationError",
    "is_retryable_error",
    # Async utilities
    "BudgetExpired",
    "RequestContext",
    "gather_isolated",
    "run_sequentially",
]
