"""ChromaDB vector index for regulatory chunks."""

import logging

import chromadb
from chromadb.config import Settings as ChromaSettings

logger = logging.getLogger(__name__)

COLLECTION_NAME = "regulatory_chunks"


def _clean_metadata(metadata: dict) -> dict:
    """Chroma rejects None values; drop them."""
    return {k: v for k, v in metadata.items() if v is not None}


class ChromaVectorIndex:
    """ChromaDB-backed vector index keyed by chunk ID.

    Manages a single collection with cosine distance. Writes go through
    ``collection.upsert`` so re-sending a record overwrites it in place.
    """

    def __init__(self, path: str = "./data/chroma", collection_name: str = COLLECTION_NAME):
        if path == ":memory:":
            self._client = chromadb.Client()
        else:
            self._client = chromadb.PersistentClient(
                path=path,
                settings=ChromaSettings(anonymized_telemetry=False),
            )
        self._collection = self._client.get_or_create_collection(
            name=collection_name,
            metadata={"hnsw:space": "cosine"},
        )

    def upsert(self, records: list[dict]) -> int:
        """Upsert ``{id, values, metadata}`` records in one call.

        Returns the number of records written.
        """
        if not records:
            return 0

        ids = []
        embeddings = []
        documents = []
        metadatas = []

        for record in records:
            metadata = _clean_metadata(record["metadata"])
            ids.append(record["id"])
            embeddings.append(record["values"])
            documents.append(metadata.get("text", ""))
            metadatas.append(metadata)

        self._collection.upsert(
            ids=ids,
            embeddings=embeddings,
            documents=documents,
            metadatas=metadatas,
        )
        logger.debug("Upserted %d vectors", len(ids))
        return len(ids)

