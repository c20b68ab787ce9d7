"""Tests for retry strategy."""

import pytest

from thirteenf.core.exceptions import (
    ExternalApiError,
    RateLimitError,
    StructuralParseError,
    TransientNetworkError,
)
from thirteenf.utils.retry import RetryStrategy, is_retryable


class Flaky:
    """Callable that raises the queued errors, then returns ``result``."""

    def __init__(self, errors, result="ok"):
        self.errors = list(errors)
        self.result = result
        self.calls = 0

    def __call__(self, *args, **kwargs):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


class TestIsRetryable:
    def test_transient_and_rate_limit_are_retryable(self):
        assert is_retryable(TransientNetworkError("timeout"))
        assert is_retryable(RateLimitError())

    def test_other_errors_are_not(self):
        assert not is_retryable(ExternalApiError("HTTP 404", status_code=404))
        assert not is_retryable(StructuralParseError("bad xml"))
        assert not is_retryable(ValueError("boom"))


class TestRetryStrategy:
    """Tests for RetryStrategy class."""

    def test_returns_after_transient_failures(self):
        sleeps = []
        func = Flaky([TransientNetworkError("reset"), TransientNetworkError("reset")])
        strategy = RetryStrategy(max_attempts=3, initial_delay=2.0, sleep=sleeps.append)

        assert strategy.execute(func) == "ok"
        assert func.calls == 3
        # Delay doubles each attempt
        assert sleeps == [2.0, 4.0]

    def test_exhausted_attempts_reraise_last_error(self):
        last = TransientNetworkError("third")
        func = Flaky([TransientNetworkError("first"), TransientNetworkError("second"), last])
        strategy = RetryStrategy(max_attempts=3, initial_delay=0.1, sleep=lambda s: None)

        with pytest.raises(TransientNetworkError) as exc_info:
            strategy.execute(func)

        assert exc_info.value is last
        assert func.calls == 3

    def test_non_retryable_error_raised_immediately(self):
        func = Flaky([ExternalApiError("HTTP 404", status_code=404)])
        strategy = RetryStrategy(max_attempts=5, sleep=lambda s: None)

        with pytest.raises(ExternalApiError):
            strategy.execute(func)
        assert func.calls == 1

    def test_delay_capped_at_max(self):
        strategy = RetryStrategy(initial_delay=2.0, max_delay=5.0)

        assert strategy.calculate_delay(1) == 2.0
        assert strategy.calculate_delay(2) == 4.0
        assert strategy.calculate_delay(3) == 5.0

    def test_retry_after_honoured(self):
        strategy = RetryStrategy(initial_delay=1.0, max_delay=10.0)

        assert strategy.calculate_delay(1, RateLimitError(retry_after=6)) == 6.0
        assert strategy.calculate_delay(1, RateLimitError(retry_after=60)) == 10.0

    def test_passes_arguments_through(self):
        strategy = RetryStrategy(max_attempts=1)
        assert strategy.execute(lambda a, b=0: a + b, 2, b=3) == 5

    def test_rejects_zero_attempts(self):
        with pytest.raises(ValueError):
            RetryStrategy(max_attempts=0)

