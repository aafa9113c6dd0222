"""Embedding stage: one provider call per batch of stored chunks."""

import logging

from regindex.embedding.provider import EmbeddingProvider
from regindex.errors import InvariantViolationError
from regindex.ingestion.tokens import is_within_model_limit
from regindex.pipeline.batching import EMBED_BATCH_SIZE, batch_range, embedding_key
from regindex.storage.state import WorkflowStateStore

logger = logging.getLogger(__name__)


class EmbeddingBatcher:
    """Embeds slices of the ``chunks`` state key into ``embeddings-{i}``."""

    def __init__(self, state: WorkflowStateStore, provider: EmbeddingProvider, batch_size: int = EMBED_BATCH_SIZE):
        self.state = state
        self.provider = provider
        self.batch_size = batch_size
        self._chunks: list[dict] | None = None

    def _load_chunks(self) -> list[dict]:
        if self._chunks is None:
            self._chunks = self.state.get_required("chunks")
        return self._chunks

    def embed_batch(self, index: int) -> int:
        """Embed batch ``index`` and persist its vectors. Returns the batch size."""
        chunks = self._load_chunks()
        items = batch_range(index, self.batch_size, len(chunks))
        if not items:
            return 0

        batch = [chunks[i] for i in items]
        for chunk in batch:
            if not is_within_model_limit(chunk["text"]):
                raise InvariantViolationError(f"Chunk {chunk['chunkId']} exceeds the embedding model input limit")
        texts = [c["text"] for c in batch]
        vectors = self.provider.embed(texts)

        if len(vectors) != len(batch):
            raise InvariantViolationError(
                f"Embedding provider returned {len(vectors)} vectors for {len(batch)} texts"
            )

        embeddings = [
            {"chunkId": chunk["chunkId"], "values": list(vector)}
            for chunk, vector in zip(batch, vectors)
        ]
        self.state.put(embedding_key(index), {"embeddings": embeddings, "count": len(embeddings)})
        logger.debug("Embedded batch %d (%d chunks)", index, len(embeddings))
        return len(embeddings)
