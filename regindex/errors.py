"""Exception taxonomy for the ingestion pipeline.

Retry behaviour is decided by type:

- ``NonRetryableError`` subclasses (404s, invariant violations) are raised
  immediately by the retry executor.
- ``RateLimitedError`` is retried after the provider's Retry-After delay.
- Everything else is treated as transient and retried with backoff.
"""


class RegindexError(Exception):
    """Base class for all pipeline errors."""


class NonRetryableError(RegindexError):
    """An error that retrying cannot fix."""


class NotFoundError(NonRetryableError):
    """The requested resource does not exist (HTTP 404)."""

    def __init__(self, message: str, url: str | None = None):
        super().__init__(message)
        self.url = url


class InvariantViolationError(NonRetryableError):
    """Internal consistency check failed. Indicates a bug, not an outage."""


class MissingStateError(InvariantViolationError):
    """A state key that an earlier step must have written is absent."""

    def __init__(self, key: str):
        super().__init__(f"Required state not found: {key}")
        self.key = key


class MissingEmbeddingError(InvariantViolationError):
    """An upsert batch could not find the vector for one of its chunks."""

    def __init__(self, chunk_id: str):
        super().__init__(f"Missing embedding for chunk: {chunk_id}")
        self.chunk_id = chunk_id


class StepPayloadTooLargeError(InvariantViolationError):
    """A durable step tried to checkpoint a result above the payload ceiling."""

    def __init__(self, step_name: str, size: int, limit: int):
        super().__init__(
            f"Step '{step_name}' returned {size} bytes, limit is {limit}; "
            "write large artifacts to the state store instead"
        )
        self.step_name = step_name
        self.size = size
        self.limit = limit


class RateLimitedError(RegindexError):
    """The remote side asked us to back off (HTTP 429).

    ``retry_after`` is in seconds, or None when the response carried no
    usable Retry-After header.
    """

    def __init__(self, message: str, retry_after: float | None = None):
        super().__init__(message)
        self.retry_after = retry_after


class TransientFetchError(RegindexError):
    """Network failure or non-2xx response other than 404/429."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class UnknownUnitError(NonRetryableError):
    """No unit with the given id exists in the catalog."""


class AdapterNotAvailableError(NonRetryableError):
    """The unit is disabled or its platform has no adapter."""


class WorkflowNotFoundError(RegindexError):
    """No workflow instance with the given id exists."""
