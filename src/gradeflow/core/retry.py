"""Retry with exponential backoff for outbound API calls.

Wraps a single asynchronous operation (an LLM or OCR request) and retries it
when the failure looks transient: rate limits, timeouts, upstream 5xx.

Delay before retry N+1:
    min(base_delay * backoff_multiplier ** (N - 1), max_delay) + uniform(0, jitter)
"""

from __future__ import annotations

import asyncio
import random
import re
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# =============================================================================
# CONSTANTS
# =============================================================================

RETRYABLE_MARKERS = (
    "rate limit",
    "timeout",
    "timed out",
    "server had an error",
    "temporarily unavailable",
)

# Request timeout and rate limit
RETRYABLE_4XX = (408, 429)

# "502", "status 503", "error: 500" ... but not "5000 tokens"
_STATUS_5XX = re.compile(r"(?<!\d)5\d{2}(?!\d)")


# =============================================================================
# DATA CLASSES
# =============================================================================


@dataclass
class RetryConfig:
    """Backoff settings (all delays in seconds)."""

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 8.0
    backoff_multiplier: float = 2.0
    jitter: float = 1.0


# =============================================================================
# HELPERS
# =============================================================================


def _status_of(error: BaseException) -> int | None:
    for attr in ("status", "status_code"):
        value = getattr(error, attr, None)
        if isinstance(value, int):
            return value
    return None


def is_retryable_error(error: BaseException) -> bool:
    """Decide whether an error is worth retrying.

    Args:
        error: Exception raised by the wrapped operation

    Returns:
        True for rate limits, timeouts, "server had an error" and 5xx statuses.
        An explicit HTTP status on the error decides on its own.
    """
    status = _status_of(error)
    if status is not None:
        return status >= 500 or status in RETRYABLE_4XX

    message = str(error).lower()
    if any(marker in message for marker in RETRYABLE_MARKERS):
        return True

    return bool(_STATUS_5XX.search(message))


def compute_delay(
    attempt: int,
    config: RetryConfig,
    rng: random.Random | None = None,
) -> float:
    """Delay to wait after a failed attempt (1-based)."""
    rng = rng or random
    backoff = config.base_delay * (config.backoff_multiplier ** (attempt - 1))
    delay = min(backoff, config.max_delay)
    if config.jitter > 0:
        delay += rng.uniform(0, config.jitter)
    return delay


# =============================================================================
# MAIN FUNCTION
# =============================================================================


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    config: RetryConfig | None = None,
    *,
    retryable: Callable[[BaseException], bool] = is_retryable_error,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    operation_name: str = "operation",
) -> T:
    """Run an async operation, retrying transient failures with backoff.

    Args:
        operation: Zero-argument callable returning a fresh awaitable per call
        config: Backoff settings (defaults to RetryConfig())
        retryable: Predicate deciding if an error may be retried
        sleep: Awaitable sleep, injectable for tests
        operation_name: Label used in log events

    Returns:
        Result of the first successful invocation

    Raises:
        The last error raised by the operation, unchanged
    """
    if config is None:
        config = RetryConfig()

    max_attempts = max(1, config.max_attempts)
    attempt = 1

    while True:
        try:
            return await operation()
        except Exception as e:
            logger.warning(
                "retry_attempt_failed",
                operation=operation_name,
                attempt=attempt,
                max_attempts=max_attempts,
                error=str(e),
            )

            if attempt >= max_attempts or not retryable(e):
                raise

            delay = compute_delay(attempt, config)
            logger.info(
                "retry_scheduled",
                operation=operation_name,
                next_attempt=attempt + 1,
                delay_s=round(delay, 3),
            )
            await sleep(delay)
            attempt += 1
