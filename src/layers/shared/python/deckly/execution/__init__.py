"""Execution helpers for store access.

- RetryPolicy: Exponential backoff with jitter for transient errors
"""

from deckly.execution.retry_policy import (
    ErrorType,
    RetryConfig,
    RetryPolicy,
    RetryResult,
    classify_error,
    with_retry,
)

__all__ = [
    "ErrorType",
    "RetryConfig",
    "RetryPolicy",
    "RetryResult",
    "classify_error",
    "with_retry",
]
