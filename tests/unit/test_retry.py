"""Unit tests for the retry executor."""

from unittest.mock import MagicMock

import pytest

from regindex.errors import (
    InvariantViolationError,
    MissingEmbeddingError,
    NotFoundError,
    RateLimitedError,
    TransientFetchError,
    UnknownUnitError,
)
from regindex.fetching.retry import NO_RETRY, RetryConfig, compute_backoff, retry


class TestComputeBackoff:
    """Test the exponential schedule and its cap."""

    def test_doubles_without_jitter(self):
        config = RetryConfig(max_retries=5, base_delay=1.0, max_delay=8.0, jitter=False)
        assert [compute_backoff(a, config) for a in range(5)] == [1.0, 2.0, 4.0, 8.0, 8.0]

    def test_jitter_adds_at_most_a_quarter(self):
        config = RetryConfig(base_delay=1.0, max_delay=8.0)
        delay = compute_backoff(2, config, rng=lambda low, high: high)
        assert delay == pytest.approx(5.0)

    def test_jitter_never_shortens_the_delay(self):
        config = RetryConfig(base_delay=1.0, max_delay=8.0)
        assert compute_backoff(1, config, rng=lambda low, high: low) == 2.0


class TestRetryConfig:
    def test_rejects_negative_retries(self):
        with pytest.raises(ValueError):
            RetryConfig(max_retries=-1)

    def test_rejects_max_below_base(self):
        with pytest.raises(ValueError):
            RetryConfig(base_delay=4.0, max_delay=1.0)


class TestRetry:
    """Test which errors are retried and how long the executor waits."""

    def test_returns_first_success(self):
        sleeps = []
        assert retry(lambda: 42, "op", sleep=sleeps.append) == 42
        assert sleeps == []

    def test_transient_errors_retry_until_success(self):
        operation = MagicMock(side_effect=[TransientFetchError("boom"), TransientFetchError("boom"), "ok"])
        sleeps = []
        config = RetryConfig(max_retries=3, jitter=False)

        assert retry(operation, "op", config, sleep=sleeps.append) == "ok"
        assert operation.call_count == 3
        assert sleeps == [1.0, 2.0]

    def test_reraises_after_budget_spent(self):
        operation = MagicMock(side_effect=TransientFetchError("down", status_code=503))
        sleeps = []
        config = RetryConfig(max_retries=3, jitter=False)

        with pytest.raises(TransientFetchError):
            retry(operation, "op", config, sleep=sleeps.append)
        assert operation.call_count == 4
        assert sleeps == [1.0, 2.0, 4.0]

    @pytest.mark.parametrize(
        "error",
        [
            NotFoundError("gone"),
            InvariantViolationError("bug"),
            MissingEmbeddingError("chunk-1"),
            UnknownUnitError("nope"),
        ],
    )
    def test_non_retryable_errors_raise_immediately(self, error):
        operation = MagicMock(side_effect=error)
        sleeps = []

        with pytest.raises(type(error)):
            retry(operation, "op", RetryConfig(max_retries=5), sleep=sleeps.append)
        assert operation.call_count == 1
        assert sleeps == []

    def test_rate_limit_honors_retry_after(self):
        operation = MagicMock(side_effect=[RateLimitedError("slow down", retry_after=2.0), "ok"])
        sleeps = []

        assert retry(operation, "op", RetryConfig(jitter=False), sleep=sleeps.append) == "ok"
        assert sleeps == [2.0]

    def test_rate_limit_without_header_uses_backoff(self):
        operation = MagicMock(side_effect=[RateLimitedError("slow down"), "ok"])
        sleeps = []

        retry(operation, "op", RetryConfig(base_delay=0.5, jitter=False), sleep=sleeps.append)
        assert sleeps == [0.5]

    def test_no_retry_runs_once(self):
        operation = MagicMock(side_effect=ValueError("bad"))
        with pytest.raises(ValueError):
            retry(operation, "op", NO_RETRY, sleep=lambda s: None)
        assert operation.call_count == 1
