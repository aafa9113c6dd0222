"""Upsert stage: joins stored chunks with their vectors and writes the index."""

import logging

from regindex.errors import MissingEmbeddingError
from regindex.pipeline.batching import UPSERT_BATCH_SIZE, batch_range, embed_batches_for_range, embedding_key
from regindex.storage.state import WorkflowStateStore
from regindex.vectorstore.chroma_store import ChromaVectorIndex

logger = logging.getLogger(__name__)


class UpsertBatcher:
    """Upserts slices of the ``chunks`` state key into the vector index."""

    def __init__(self, state: WorkflowStateStore, index: ChromaVectorIndex, batch_size: int = UPSERT_BATCH_SIZE):
        self.state = state
        self.index = index
        self.batch_size = batch_size
        self._chunks: list[dict] | None = None

    def _load_chunks(self) -> list[dict]:
        if self._chunks is None:
            self._chunks = self.state.get_required("chunks")
        return self._chunks

    def load_vectors(self, start: int, end: int) -> dict[str, list[float]]:
        """Merge every embedding batch overlapping ``[start, end)`` into chunkId -> vector."""
        vectors: dict[str, list[float]] = {}
        for embed_index in embed_batches_for_range(start, end):
            batch = self.state.get_required(embedding_key(embed_index))
            for entry in batch["embeddings"]:
                vectors[entry["chunkId"]] = entry["values"]
        return vectors

    def upsert_batch(self, index: int) -> int:
        """Upsert batch ``index``. Returns the number of records written.

        Raises MissingEmbeddingError if any chunk in the batch has no vector.
        """
        chunks = self._load_chunks()
        items = batch_range(index, self.batch_size, len(chunks))
        if not items:
            return 0

        vectors = self.load_vectors(items.start, items.stop)

        records = []
        for i in items:
            chunk = chunks[i]
            values = vectors.get(chunk["chunkId"])
            if values is None:
                raise MissingEmbeddingError(chunk["chunkId"])
            records.append({"id": chunk["chunkId"], "values": values, "metadata": chunk["metadata"]})

        count = self.index.upsert(records)
        logger.debug("Upserted batch %d (%d records)", index, count)
        return count
