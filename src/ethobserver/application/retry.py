from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from ..domain.errors import RetryExhausted

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(slots=True, frozen=True)
class RetryPolicy:
    """Exponential backoff. max_attempts=None retries forever."""
    initial_delay: float = 0.5
    multiplier: float = 2.0
    max_delay: float = 30.0
    max_attempts: Optional[int] = 20

    def delay(self, attempt: int) -> float:
        """Sleep before the retry that follows failed attempt number `attempt` (1-based)."""
        return min(self.max_delay, self.initial_delay * (self.multiplier ** (attempt - 1)))

    def exhausted(self, attempt: int) -> bool:
        return self.max_attempts is not None and attempt >= self.max_attempts


async def retry(
    op: Callable[[], Awaitable[T]],
    *,
    policy: RetryPolicy,
    describe: str,
) -> T:
    """
    Run `op` until it succeeds, sleeping per `policy` between failures.
    Raises RetryExhausted (chained to the last error) once the attempt budget is spent.
    Cancellation is never retried.
    """
    tries = 0
    while True:
        tries += 1
        try:
            return await op()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if policy.exhausted(tries):
                raise RetryExhausted(describe, tries, e) from e
            delay = policy.delay(tries)
            logger.warning("%s failed (attempt %d): %s: %s; retrying in %.2fs",
                           describe, tries, type(e).__name__, e, delay)
            await asyncio.sleep(delay)
