"""Batch arithmetic shared by the embed and upsert stages.

Embedding and upsert use different batch sizes, so an upsert batch can
straddle two or more embedding batches. ``embed_batches_for_range`` gives
the inclusive span an upsert batch must load.
"""

import math

# Texts per embedding request
EMBED_BATCH_SIZE = 64

# Records per vector index upsert
UPSERT_BATCH_SIZE = 100


def batch_count(total: int, size: int) -> int:
    if total < 0:
        raise ValueError("total must be >= 0")
    if size <= 0:
        raise ValueError("size must be > 0")
    return math.ceil(total / size)


def embed_batch_count(total: int) -> int:
    return batch_count(total, EMBED_BATCH_SIZE)


def upsert_batch_count(total: int) -> int:
    return batch_count(total, UPSERT_BATCH_SIZE)


def batch_range(index: int, size: int, total: int) -> range:
    """Half-open item range ``[index*size, min((index+1)*size, total))``.

    Empty when ``index`` is past the end.
    """
    if index < 0:
        raise ValueError("index must be >= 0")
    start = index * size
    end = min(start + size, total)
    return range(start, max(start, end))


def embed_batches_for_range(start: int, end: int) -> range:
    """Embedding batch indices covering items ``[start, end)``."""
    if end <= start:
        return range(0)
    first = start // EMBED_BATCH_SIZE
    last = (end - 1) // EMBED_BATCH_SIZE
    return range(first, last + 1)


def embedding_key(index: int) -> str:
    return f"embeddings-{index}"
