"""
Retry mechanism for resilient operations.
"""

import asyncio
from typing import Any, Optional, Callable, Awaitable, TypeVar

from shared.logging import get_logger

T = TypeVar("T")


class RetryConfig:
    """Configuration for retry behavior."""

    def __init__(self,
                 max_elapsed: float,
                 base_delay: float = 1.0,
                 max_delay: float = 60.0,
                 exponential_base: float = 2.0):
        self.max_elapsed = max_elapsed
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base


class RetryError(Exception):
    """Exception raised when all retry attempts are exhausted."""
    def __init__(self, message: str, attempts: int, elapsed: float):
        super().__init__(message)
        self.attempts = attempts
        self.elapsed = elapsed


def calculate_delay(attempt: int, config: RetryConfig) -> float:
    """Calculate delay between retry attempts."""
    delay = config.base_delay * (config.exponential_base ** (attempt - 1))

    # Apply max delay cap
    return max(0.0, min(delay, config.max_delay))


async def retry_until(probe: Callable[[], Optional[T]],
                      config: RetryConfig,
                      name: str = "probe",
                      sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep) -> T:
    """
    Call ``probe`` until it returns something other than ``None``.

    Elapsed time is the sum of the backoff delays slept so far. The probe is
    attempted one last time once that sum exceeds ``config.max_elapsed``,
    after which RetryError is raised.
    """
    logger = get_logger(f"retry.{name}")
    elapsed = 0.0
    attempt = 0

    while True:
        attempt += 1
        result = probe()
        if result is not None:
            if attempt > 1:
                logger.debug("Retry succeeded", attempt=attempt, elapsed=elapsed)
            return result

        if elapsed > config.max_elapsed:
            logger.warning(
                "All retry attempts exhausted",
                attempt=attempt,
                elapsed=elapsed
            )
            raise RetryError(
                f"{name} did not succeed after {attempt} attempts",
                attempts=attempt,
                elapsed=elapsed
            )

        delay = calculate_delay(attempt, config)
        await sleep(delay)
        elapsed += delay
