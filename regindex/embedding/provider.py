"""Embedding provider seam used by the embed stage."""

from abc import ABC, abstractmethod


class EmbeddingProvider(ABC):
    """Turns a batch of chunk texts into vectors.

    One call is made per embed batch, so implementations see at most
    ``EMBED_BATCH_SIZE`` texts at a time. Any exception raised here is
    treated as an outage of the embedding service and retried by the
    step's retry policy, except ``NonRetryableError`` subclasses.
    """

    @abstractmethod
    def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed ``texts`` and return one vector per text, in request order.

        Raises:
            ValueError: If texts is empty.
        """
        ...
