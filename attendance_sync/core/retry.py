"""
Bounded retry with exponential backoff for remote calls.
"""

import asyncio
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import Callable, TypeVar

from attendance_sync.core.exceptions import TransportError
from attendance_sync.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    initial_delay: float = 1.0
    max_delay: float = 10.0
    backoff_multiplier: float = 2.0
    retry_on: tuple[type[BaseException], ...] = (TransportError,)

    def delay_for(self, attempt: int) -> float:
        """Delay before retry number `attempt` (0-based)."""
        return min(self.initial_delay * self.backoff_multiplier**attempt, self.max_delay)


NO_RETRY = RetryPolicy(max_attempts=1)


async def call_with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    description: str = "remote call",
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Run `operation` until it succeeds or the policy is exhausted.

    Only exceptions listed in `policy.retry_on` are retried; anything else
    propagates immediately. The last retryable exception is re-raised once
    all attempts are used.
    """
    attempt = 0
    while True:
        try:
            return await operation()
        except policy.retry_on as e:
            attempt += 1
            if attempt >= policy.max_attempts:
                logger.warning(f"{description} failed after {attempt} attempts: {e}")
                raise
            delay = policy.delay_for(attempt - 1)
            logger.info(
                f"{description} failed (attempt {attempt}/{policy.max_attempts}), "
                f"retrying in {delay:.1f}s: {e}"
            )
            await sleep(delay)
