"""
Retry executor shared by every outbound OpenRouter call.

The executor keeps no state between calls: each with_retry() invocation owns
its attempt counter and nothing else.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import random
from typing import TYPE_CHECKING, Awaitable, Callable, TypeVar

from .errors import LLMDecodeError, LLMValidationError, OpenRouterError

if TYPE_CHECKING:
    from .logger import ClientLogger


T = TypeVar("T")

JITTER_RATIO = 0.1

# Plain errors that no amount of retrying will fix.
FINAL_ERRORS = (LLMValidationError, LLMDecodeError)


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    backoff_factor: float = 2.0
    jitter_enabled: bool = True


DEFAULT_RETRY_POLICY = RetryPolicy()


def calculate_delay(attempt: int, policy: RetryPolicy) -> float:
    """
    Exponential backoff for the given zero-based attempt, capped at
    policy.max_delay, with +-10% jitter when enabled.
    """
    try:
        delay = policy.base_delay * (policy.backoff_factor ** attempt)
    except OverflowError:
        delay = policy.max_delay
    delay = min(delay, policy.max_delay)

    if policy.jitter_enabled:
        delay += delay * JITTER_RATIO * (2 * random.random() - 1)

    return max(delay, 0.0)


async def _wait(delay: float) -> None:
    await asyncio.sleep(delay)


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy | None = None,
    logger: ClientLogger | None = None,
) -> T:
    """
    Run `operation` up to 1 + policy.max_retries times.

    - A non-retryable OpenRouterError, LLMValidationError or LLMDecodeError
      is raised on first occurrence.
    - An OpenRouterError with retry_after > 0 is waited out exactly; other
      failures use exponential backoff.
    - Cancelling the calling task (or an enclosing asyncio timeout) while
      waiting aborts at once; the cancellation propagates, not the last error.
    """
    policy = policy or DEFAULT_RETRY_POLICY

    attempt = 0
    while True:
        try:
            return await operation()
        except FINAL_ERRORS:
            raise
        except Exception as e:
            last_error = e

        if attempt >= policy.max_retries:
            raise last_error

        if isinstance(last_error, OpenRouterError):
            if not last_error.is_retryable:
                raise last_error
            if last_error.status_code == 429 and logger is not None:
                logger.log_rate_limit_hit(last_error.retry_after)
            if last_error.retry_after > 0:
                if logger is not None:
                    logger.log_retry_attempt(attempt + 1, policy.max_retries, last_error.retry_after, last_error)
                await _wait(last_error.retry_after)
                attempt += 1
                continue

        delay = calculate_delay(attempt, policy)
        if logger is not None:
            logger.log_retry_attempt(attempt + 1, policy.max_retries, delay, last_error)
        await _wait(delay)
        attempt += 1
