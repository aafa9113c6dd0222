"""Sentence Transformer embedding provider implementation."""

import logging
import os
import threading

from sentence_transformers import SentenceTransformer

from regindex.embedding.provider import EmbeddingProvider

logger = logging.getLogger(__name__)


class SentenceTransformerEmbeddingProvider(EmbeddingProvider):
    """Embedding provider wrapping sentence-transformers models.

    The model is loaded once per process and shared by every worker
    thread; ``encode`` calls are serialized behind a lock.
    """

    def __init__(self, model_name: str = "all-MiniLM-L6-v2", batch_size: int = 64):
        old_verbosity = os.environ.get("TRANSFORMERS_VERBOSITY")
        os.environ["TRANSFORMERS_VERBOSITY"] = "error"
        try:
            try:
                self._model = SentenceTransformer(model_name, local_files_only=True)
            except OSError:
                logger.info("Model %s not cached locally, downloading", model_name)
                self._model = SentenceTransformer(model_name)
        finally:
            if old_verbosity is None:
                os.environ.pop("TRANSFORMERS_VERBOSITY", None)
            else:
                os.environ["TRANSFORMERS_VERBOSITY"] = old_verbosity
        self._batch_size = batch_size
        self._lock = threading.Lock()

    def embed(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            raise ValueError("texts must not be empty")
        with self._lock:
            embeddings = self._model.encode(texts, batch_size=self._batch_size, show_progress_bar=False)
        return embeddings.tolist()
