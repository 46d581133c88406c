"""Retry policy with linearly increasing delays for flaky outbound calls."""
import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """
    Run an async operation up to `max_attempts` times.

    The delay before attempt n+1 is `n * base_delay` seconds, so with the
    defaults a failing call waits 2s, then 4s, before giving up.
    """

    max_attempts: int = 3
    base_delay: float = 2.0
    retry_on: tuple[type[BaseException], ...] = (Exception,)
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep, repr=False)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0:
            raise ValueError("base_delay must not be negative")

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number `attempt` (1-based)."""
        return attempt * self.base_delay

    async def run(self, operation: Callable[[], Awaitable[T]], description: str = "request") -> T:
        """
        Call `operation` until it succeeds or attempts are exhausted.

        Raises:
            The last exception raised by `operation` once every attempt failed.
            Exceptions outside `retry_on` propagate immediately.
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await operation()
            except self.retry_on as e:
                if attempt == self.max_attempts:
                    logger.warning(
                        "%s failed after %d attempt(s): %s", description, attempt, e,
                    )
                    raise
                delay = self.delay_for(attempt)
                logger.info(
                    "%s failed (attempt %d/%d): %s; retrying in %.1fs",
                    description,
                    attempt,
                    self.max_attempts,
                    e,
                    delay,
                )
                await self.sleep(delay)
        # unreachable: the loop either returns or raises
        raise RuntimeError("retry loop exited without a result")
