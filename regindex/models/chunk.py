"""Chunk data model."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Chunk:
    """A token-bounded, citation-tagged slice of a raw record."""

    chunk_id: str
    source_id: str
    source_type: str
    jurisdiction: str
    text: str
    citation: str
    url: str
    chunk_index: int
    total_chunks: int
    chapter: str = ""
    section: str = ""
    category: str | None = None

    def __post_init__(self):
        if not self.chunk_id:
            raise ValueError("chunk_id must not be empty")
        if not self.text:
            raise ValueError("text must not be empty")
        if self.chunk_index < 0:
            raise ValueError("chunk_index must be >= 0")
        if self.total_chunks <= self.chunk_index:
            raise ValueError("total_chunks must be greater than chunk_index")

    def metadata(self, indexed_at: str) -> dict:
        """Vector index metadata for this chunk."""
        meta = {
            "chunkId": self.chunk_id,
            "sourceId": self.source_id,
            "sourceType": self.source_type,
            "jurisdiction": self.jurisdiction,
            "text": self.text,
            "citation": self.citation,
            "chunkIndex": self.chunk_index,
            "totalChunks": self.total_chunks,
            "indexedAt": indexed_at,
        }
        if self.category:
            meta["category"] = self.category
        return meta

    def to_stored(self, indexed_at: str) -> dict:
        """Entry written to the ``chunks`` state key."""
        return {
            "chunkId": self.chunk_id,
            "text": self.text,
            "metadata": self.metadata(indexed_at),
        }
