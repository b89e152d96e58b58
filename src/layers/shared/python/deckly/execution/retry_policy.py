"""Retry policy with exponential backoff and jitter for store reads.

Only transient infrastructure failures are retried: dropped connections,
timeouts, and DynamoDB throttling or 5xx responses. Everything else,
including our own DecklyError subclasses, fails on the first attempt.

Usage:
    policy = RetryPolicy()

    async def load():
        return await asyncio.to_thread(repo.list_by_user, user_id)

    result = await policy.execute(load)
"""

import asyncio
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, TypeVar

import structlog
from botocore.exceptions import (
    ClientError,
    ConnectionClosedError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)

from deckly.utils.exceptions import DecklyError

logger = structlog.get_logger()

T = TypeVar("T")

# DynamoDB error codes worth another attempt
RETRYABLE_ERROR_CODES = frozenset({
    "ProvisionedThroughputExceededException",
    "ThrottlingException",
    "RequestLimitExceeded",
    "InternalServerError",
    "ServiceUnavailable",
    "TransactionInProgressException",
})

NETWORK_ERRORS: tuple[type[Exception], ...] = (
    EndpointConnectionError,
    ConnectionClosedError,
    ConnectTimeoutError,
    ReadTimeoutError,
    ConnectionError,
    TimeoutError,
    asyncio.TimeoutError,
)


class ErrorType(str, Enum):
    """Classification of error types for retry decisions."""

    TRANSIENT = "transient"  # Network or throttling, retry likely to succeed
    PERMANENT = "permanent"  # Won't succeed on retry


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_retries: int = 3
    base_delay: float = 1.0  # Seconds before the first retry
    max_delay: float = 30.0
    exponential_base: float = 2.0
    jitter_factor: float = 0.1  # Random jitter (0-1)

    # Extra exception types to treat as transient
    retry_on: list[type[Exception]] = field(default_factory=list)


@dataclass
class RetryResult:
    """Result of a retry operation."""

    success: bool
    value: Any = None
    error: Exception | None = None
    attempts: int = 0
    total_delay: float = 0.0
    error_type: ErrorType | None = None


def classify_error(error: Exception, extra: tuple[type[Exception], ...] = ()) -> ErrorType:
    """Decide whether an error is worth retrying."""
    if isinstance(error, DecklyError):
        return ErrorType.PERMANENT

    if isinstance(error, NETWORK_ERRORS) or (extra and isinstance(error, extra)):
        return ErrorType.TRANSIENT

    if isinstance(error, ClientError):
        code = error.response.get("Error", {}).get("Code", "")
        status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode", 0)
        if code in RETRYABLE_ERROR_CODES or status >= 500:
            return ErrorType.TRANSIENT

    return ErrorType.PERMANENT


class RetryPolicy:
    """Exponential backoff retry for async operations.

    Example:
        policy = RetryPolicy(RetryConfig(max_retries=5, base_delay=0.5))
        result = await policy.execute(fetch)
        if not result.success:
            raise result.error
    """

    def __init__(
        self,
        config: RetryConfig | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ):
        """Initialize retry policy.

        Args:
            config: Retry configuration.
            sleep: Awaitable sleep used between attempts (asyncio.sleep by default).
        """
        self.config = config or RetryConfig()
        self._sleep = sleep or asyncio.sleep
        self.logger = logger.bind(service="retry_policy")

    async def execute(
        self,
        func: Callable[[], Awaitable[T]],
        context: dict[str, Any] | None = None,
    ) -> RetryResult:
        """Run ``func`` until it succeeds, fails permanently, or retries run out.

        Args:
            func: Zero-argument coroutine function.
            context: Optional fields for log lines.

        Returns:
            RetryResult with outcome.
        """
        context = context or {}
        extra = tuple(self.config.retry_on)
        attempts = 0
        total_delay = 0.0

        while True:
            attempts += 1
            try:
                value = await func()
            except Exception as e:
                error_type = classify_error(e, extra)
                retries_used = attempts - 1

                if error_type == ErrorType.PERMANENT or retries_used >= self.config.max_retries:
                    self.logger.warning(
                        "Operation failed",
                        error=str(e),
                        error_type=error_type.value,
                        attempts=attempts,
                        total_delay=total_delay,
                        **context,
                    )
                    return RetryResult(
                        success=False,
                        error=e,
                        attempts=attempts,
                        total_delay=total_delay,
                        error_type=error_type,
                    )

                delay = self.calculate_delay(attempts)
                total_delay += delay
                self.logger.info(
                    "Retrying operation",
                    error=str(e),
                    attempt=attempts,
                    next_delay=delay,
                    **context,
                )
                await self._sleep(delay)
                continue

            if attempts > 1:
                self.logger.debug("Operation succeeded after retry", attempts=attempts, **context)
            return RetryResult(
                success=True,
                value=value,
                attempts=attempts,
                total_delay=total_delay,
            )

    def calculate_delay(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (1-indexed)."""
        delay = self.config.base_delay * (self.config.exponential_base ** (attempt - 1))

        if self.config.jitter_factor > 0:
            jitter_range = delay * self.config.jitter_factor
            delay += random.uniform(-jitter_range, jitter_range)

        return max(0.0, min(delay, self.config.max_delay))


async def with_retry(
    func: Callable[[], Awaitable[T]],
    config: RetryConfig | None = None,
    context: dict[str, Any] | None = None,
    sleep: Callable[[float], Awaitable[None]] | None = None,
) -> T:
    """Execute a coroutine function with retry logic.

    Returns:
        Function result.

    Raises:
        Exception: The last error if all attempts fail.
    """
    result = await RetryPolicy(config, sleep=sleep).execute(func, context)

    if result.success:
        return result.value

    raise result.error
