"""Retry policy for upstream calls (explorer API, chain RPC, facilitator).

A ``RetryPolicy`` is a plain value object handed to each source adapter, so
the retry budget is visible where the adapter is constructed rather than
hidden inside it. Backoff is exponential with a small jitter.
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, TypeVar

import httpx

from riskgate.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

RETRYABLE_STATUS_CODES: frozenset[int] = frozenset({408, 429, 500, 502, 503, 504})


def is_retryable_error(exc: BaseException) -> bool:
    """Network errors, timeouts, HTTP 408/429 and 5xx are worth another attempt."""
    if isinstance(exc, (httpx.TransportError, asyncio.TimeoutError)):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status in RETRYABLE_STATUS_CODES or 500 <= status < 600
    return False


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 2
    base_delay_s: float = 0.25
    backoff_factor: float = 2.0
    max_delay_s: float = 4.0
    retry_predicate: Callable[[BaseException], bool] = field(default=is_retryable_error)

    def delay_for(self, attempt: int) -> float:
        """Sleep before attempt ``attempt + 1`` (attempt is 0-based)."""
        delay = self.base_delay_s * (self.backoff_factor ** attempt)
        return min(delay, self.max_delay_s) + random.uniform(0, self.base_delay_s / 4)

    async def call(
        self,
        fn: Callable[[], Awaitable[T]],
        operation: Optional[str] = None,
    ) -> T:
        """Await ``fn()`` until it succeeds or the budget is spent.

        Non-retryable errors propagate immediately. The last error propagates
        once ``max_attempts`` is reached.
        """
        attempt = 0
        while True:
            try:
                return await fn()
            except Exception as exc:
                attempt += 1
                if attempt >= self.max_attempts or not self.retry_predicate(exc):
                    raise
                delay = self.delay_for(attempt - 1)
                logger.debug(
                    "upstream_retry",
                    operation=operation,
                    attempt=attempt,
                    delay_s=round(delay, 3),
                    error_type=type(exc).__name__,
                )
                await asyncio.sleep(delay)


NO_RETRY = RetryPolicy(max_attempts=1)
