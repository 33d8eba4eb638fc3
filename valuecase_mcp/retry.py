"""
Retry with exponential backoff for rate-limited upstream calls.

Only rate-limit failures (HTTP 429, or an error message that says so) are
retried. Everything else is terminal and propagates on the first attempt.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

import httpx

logger = logging.getLogger(__name__)

T = TypeVar("T")

RATE_LIMIT_STATUS = 429
_RATE_LIMIT_MARKERS = ("429", "rate limit", "too many requests")


@dataclass(frozen=True)
class RetryPolicy:
    """
    Attempt budget and backoff timing (seconds)

    Delay before retry n (1-indexed) = min(initial_delay * backoff_factor ** (n - 1), max_delay)
    """

    max_attempts: int = 3
    initial_delay: float = 1.0
    backoff_factor: float = 2.0
    max_delay: float = 10.0

    def delay(self, attempt: int) -> float:
        return min(self.initial_delay * (self.backoff_factor ** (attempt - 1)), self.max_delay)


def is_rate_limit_error(error: BaseException) -> bool:
    """
    Decide whether a failure is a rate-limit signal worth retrying

    A structured HTTP status wins when present; the message is only inspected
    for errors that carry no response.
    """
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code == RATE_LIMIT_STATUS

    message = str(error).lower()
    return any(marker in message for marker in _RATE_LIMIT_MARKERS)


async def execute_with_retry(
    operation: Callable[[], Awaitable[T]],
    context_label: str,
    policy: RetryPolicy | None = None,
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
) -> T:
    """
    Run an async operation, retrying it on rate-limit failures

    Args:
        operation: Zero-argument coroutine function performing one attempt
        context_label: Description used in log messages (e.g. "valuecase_get_form GET /forms/f1")
        policy: Retry policy (defaults to 3 attempts, 1s/2s backoff, 10s cap)
        sleep: Awaitable sleep function (injectable for tests)

    Returns:
        The operation's result

    Raises:
        The operation's last error once it is terminal or attempts are exhausted
    """
    policy = policy or RetryPolicy()
    attempt = 1

    while True:
        try:
            return await operation()
        except Exception as e:
            retryable = is_rate_limit_error(e)
            if not retryable or attempt >= policy.max_attempts:
                logger.error(f"❌ {context_label} failed (attempt {attempt}/{policy.max_attempts}): {e}")
                raise

            wait_sec = policy.delay(attempt)
            logger.warning(f"⏳ {context_label} rate limited (attempt {attempt}/{policy.max_attempts}), retry in {wait_sec:.1f}s: {e}")
            await sleep(wait_sec)
            attempt += 1
