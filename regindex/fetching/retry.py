"""Bounded retry with exponential backoff, jitter and Retry-After support.

Delays: 1s, 2s, 4s, 8s (capped at ``max_delay``). Jitter adds 0-25% of the
delay to keep parallel workers from retrying in lockstep.
"""

import logging
import random
import time
from dataclasses import dataclass
from typing import Callable, TypeVar

from regindex.errors import NonRetryableError, RateLimitedError

logger = logging.getLogger(__name__)

T = TypeVar("T")

JITTER_RATIO = 0.25


@dataclass(frozen=True)
class RetryConfig:
    """Retry policy. Delays are in seconds."""

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 8.0
    jitter: bool = True

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.base_delay < 0:
            raise ValueError("base_delay must be >= 0")
        if self.max_delay < self.base_delay:
            raise ValueError("max_delay must be >= base_delay")


DEFAULT_RETRY = RetryConfig()

# Step presets
EMBED_RETRY = RetryConfig(max_retries=4, base_delay=1.0, max_delay=16.0)
UPSERT_RETRY = RetryConfig(max_retries=3, base_delay=0.5, max_delay=8.0)
STORAGE_RETRY = RetryConfig(max_retries=2, base_delay=0.5, max_delay=0.5)
AWAIT_RETRY = RetryConfig(max_retries=1, base_delay=1.0, max_delay=1.0)
NO_RETRY = RetryConfig(max_retries=0)


def compute_backoff(
    attempt: int,
    config: RetryConfig,
    rng: Callable[[float, float], float] = random.uniform,
) -> float:
    """Return the delay in seconds before retrying after ``attempt`` (0-indexed)."""
    delay = min(config.base_delay * (2 ** attempt), config.max_delay)
    if config.jitter and delay > 0:
        delay += rng(0.0, delay * JITTER_RATIO)
    return delay


def retry(
    operation: Callable[[], T],
    label: str,
    config: RetryConfig | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run ``operation`` until it succeeds or the retry budget is spent.

    NonRetryableError is re-raised on the first occurrence. RateLimitedError
    carrying a ``retry_after`` waits exactly that long instead of following
    the exponential schedule. After ``max_retries + 1`` attempts the last
    error is re-raised.
    """
    config = config or DEFAULT_RETRY
    attempts = config.max_retries + 1

    for attempt in range(attempts):
        try:
            return operation()
        except NonRetryableError:
            raise
        except Exception as e:
            if attempt >= config.max_retries:
                logger.error("%s failed after %d attempts: %s", label, attempt + 1, e)
                raise

            if isinstance(e, RateLimitedError) and e.retry_after is not None:
                delay = max(0.0, e.retry_after)
                logger.info("%s rate limited, honoring Retry-After of %.2fs", label, delay)
            else:
                delay = compute_backoff(attempt, config)

            logger.warning(
                "%s failed (attempt %d/%d), retrying in %.2fs: %s",
                label, attempt + 1, attempts, delay, e,
            )
            sleep(delay)

    # Unreachable: the loop either returns or raises.
    raise RuntimeError(f"{label}: retry loop exited without a result")
