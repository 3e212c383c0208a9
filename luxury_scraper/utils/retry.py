"""Retry policy applied at navigation and queue-call boundaries."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def fixed_backoff(delay: float) -> Callable[[int], float]:
    """Same delay after every failed attempt."""
    return lambda attempt: delay


def exponential_backoff(base: float, cap: float = 60.0) -> Callable[[int], float]:
    """base, 2*base, 4*base ... capped at ``cap``."""
    return lambda attempt: min(cap, base * (2 ** (attempt - 1)))


def retry_all(exc: BaseException) -> bool:
    return isinstance(exc, Exception)


@dataclass
class RetryPolicy:
    """
    Bounded retry with a pluggable backoff and retryable-error predicate.

    Attributes:
        max_attempts: Total attempts including the first one
        backoff: Maps the number of the failed attempt (1-based) to a delay in seconds
        retryable: Decides whether an exception deserves another attempt
    """

    max_attempts: int = 3
    backoff: Callable[[int], float] = field(default_factory=lambda: fixed_backoff(5.0))
    retryable: Callable[[BaseException], bool] = retry_all

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        description: str = "operation",
    ) -> T:
        """Await ``operation()`` until it succeeds or attempts run out; re-raises the last error."""
        attempt = 0
        while True:
            attempt += 1
            try:
                return await operation()
            except Exception as e:
                if attempt >= self.max_attempts or not self.retryable(e):
                    raise
                delay = self.backoff(attempt)
                logger.warning(
                    "%s failed (attempt %d/%d): %s; retrying in %.1fs",
                    description, attempt, self.max_attempts, e, delay,
                )
                await asyncio.sleep(delay)
