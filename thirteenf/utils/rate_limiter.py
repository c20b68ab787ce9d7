"""
Rate limiter for external API requests.

Implements the token bucket algorithm. One limiter is created per external
dependency (SEC EDGAR, the CUSIP mapping API, the company-facts API, the AI
API) so each limit is tuned in one place. SEC allows at most 10 requests per
second; the default here stays well below that.
"""

import threading
import time
from typing import Callable, Optional

from .logger import get_logger

logger = get_logger("thirteenf.utils.rate_limiter")


class RateLimiter:
    """
    Token bucket rate limiter for API requests.

    Thread-safe. The clock and sleep functions are injectable so tests can
    drive the bucket with a fake clock instead of real time.

    Attributes:
        rate: Maximum requests per second.
        burst: Maximum burst size (tokens).
    """

    def __init__(
        self,
        rate: float,
        burst: Optional[int] = None,
        name: str = "default",
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """
        Initialize rate limiter.

        Args:
            rate: Requests per second.
            burst: Maximum burst size. Defaults to rate * 2 (at least 1).
            name: Dependency name, used in log messages.
            clock: Monotonic clock returning seconds.
            sleep: Function used to wait for tokens.
        """
        if rate <= 0:
            raise ValueError(f"Rate must be positive, got {rate}")

        self.rate = rate
        self.burst = burst or max(1, int(rate * 2))
        self.name = name
        self._clock = clock
        self._sleep = sleep

        # Token bucket state
        self._tokens = float(self.burst)
        self._last_update = self._clock()

        self._lock = threading.Lock()

        logger.debug(
            f"Rate limiter '{name}' initialized: rate={self.rate}/sec, burst={self.burst}"
        )

    def _refill_tokens(self) -> None:
        """Refill tokens based on elapsed time."""
        now = self._clock()
        elapsed = now - self._last_update
        self._tokens = min(self.burst, self._tokens + elapsed * self.rate)
        self._last_update = now

    def acquire(self, timeout: Optional[float] = None) -> bool:
        """
        Acquire a token (blocking).

        Args:
            timeout: Maximum time to wait for a token (seconds).
                    None means wait indefinitely.

        Returns:
            True if token acquired, False if timeout exceeded.
        """
        start_time = self._clock()

        while True:
            with self._lock:
                self._refill_tokens()

                if self._tokens >= 1:
                    self._tokens -= 1
                    return True

                wait_time = (1 - self._tokens) / self.rate

            if timeout is not None:
                elapsed = self._clock() - start_time
                if elapsed + wait_time > timeout:
                    return False

            self._sleep(min(wait_time, 0.1))

    def wait(self) -> None:
        """Wait until a token is available (blocking)."""
        self.acquire(timeout=None)

    @property
    def available_tokens(self) -> float:
        """Get current number of available tokens."""
        with self._lock:
            self._refill_tokens()
            return self._tokens

    def reset(self) -> None:
        """Reset the rate limiter to full capacity."""
        with self._lock:
            self._tokens = float(self.burst)
            self._last_update = self._clock()


class AdaptiveRateLimiter(RateLimiter):
    """
    Rate limiter that backs off when the server reports throttling.

    SEC answers with 429 (and sometimes Retry-After) when the fair-access
    limit is exceeded.
    """

    def __init__(
        self,
        rate: float,
        burst: Optional[int] = None,
        name: str = "default",
        min_rate: float = 0.5,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        super().__init__(rate, burst, name=name, clock=clock, sleep=sleep)
        self.min_rate = min_rate
        self._original_rate = self.rate
        self._backoff_until: Optional[float] = None

    def report_rate_limit(self, retry_after: Optional[float] = None) -> None:
        """
        Report that we received a rate limit response.

        Args:
            retry_after: Seconds to wait before retrying (from header).
        """
        with self._lock:
            if retry_after:
                self._backoff_until = self._clock() + retry_after
                logger.warning(f"Rate limit hit on '{self.name}', backing off for {retry_after}s")
            else:
                self.rate = max(self.min_rate, self.rate * 0.5)
                logger.warning(f"Rate limit hit on '{self.name}', reducing rate to {self.rate}/sec")

    def report_success(self) -> None:
        """Report a successful request, slowly restoring the original rate."""
        with self._lock:
            if self.rate < self._original_rate:
                self.rate = min(self._original_rate, self.rate * 1.1)

    def acquire(self, timeout: Optional[float] = None) -> bool:
        """Acquire with backoff check."""
        if self._backoff_until:
            now = self._clock()
            if now < self._backoff_until:
                wait_time = self._backoff_until - now
                if timeout is not None and wait_time > timeout:
                    return False
                self._sleep(wait_time)
            self._backoff_until = None

        return super().acquire(timeout)
