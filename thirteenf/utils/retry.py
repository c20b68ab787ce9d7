"""
Retry logic with exponential backoff.

Every network-facing component wraps its calls in a RetryStrategy. Only
transient failures (connection errors, timeouts, 429 and 5xx responses) are
retried; anything else is raised on the first attempt. When attempts are
exhausted the last error is re-raised, never swallowed.
"""

import random
import time
from typing import Callable, Optional, Tuple, Type

from ..core.exceptions import RateLimitError, TransientNetworkError
from .logger import get_logger

logger = get_logger("thirteenf.utils.retry")

RETRYABLE_EXCEPTIONS: Tuple[Type[Exception], ...] = (TransientNetworkError, RateLimitError)


def is_retryable(error: Exception) -> bool:
    """Return True for errors worth another attempt."""
    return isinstance(error, RETRYABLE_EXCEPTIONS)


class RetryStrategy:
    """
    Configurable retry strategy for programmatic use.

    The delay starts at ``initial_delay`` and doubles after every failed
    attempt, capped at ``max_delay``.

    Usage:
        strategy = RetryStrategy(max_attempts=3, initial_delay=2.0)
        response = strategy.execute(client.get, url)
    """

    def __init__(
        self,
        max_attempts: int = 3,
        initial_delay: float = 1.0,
        max_delay: float = 10.0,
        backoff_multiplier: float = 2.0,
        jitter: bool = False,
        should_retry: Callable[[Exception], bool] = is_retryable,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.backoff_multiplier = backoff_multiplier
        self.jitter = jitter
        self.should_retry = should_retry
        self._sleep = sleep

    def execute(self, func: Callable, *args, **kwargs):
        """
        Execute function with retry logic.

        Args:
            func: Function to execute.
            *args: Positional arguments.
            **kwargs: Keyword arguments.

        Returns:
            Function result.

        Raises:
            The last exception if all attempts fail, or the first
            non-retryable exception.
        """
        name = getattr(func, "__name__", repr(func))

        for attempt in range(1, self.max_attempts + 1):
            try:
                return func(*args, **kwargs)
            except Exception as e:
                if attempt == self.max_attempts or not self.should_retry(e):
                    if attempt > 1:
                        logger.error(f"{name} failed after {attempt} attempts: {e}")
                    raise

                delay = self.calculate_delay(attempt, e)
                logger.warning(
                    f"{name} attempt {attempt}/{self.max_attempts} failed: {e}. "
                    f"Retrying in {delay:.2f}s"
                )
                self._sleep(delay)

        raise RuntimeError("Retry logic failed unexpectedly")

    def calculate_delay(self, attempt: int, error: Optional[Exception] = None) -> float:
        """Calculate delay after the given (1-based) failed attempt."""
        delay = min(
            self.initial_delay * (self.backoff_multiplier ** (attempt - 1)),
            self.max_delay,
        )

        # Honour an explicit Retry-After if the server sent a longer one
        if isinstance(error, RateLimitError) and error.retry_after:
            delay = max(delay, min(error.retry_after, self.max_delay))

        if self.jitter:
            delay = delay * (0.5 + random.random())

        return delay

