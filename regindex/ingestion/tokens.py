"""Token estimation for chunk sizing.

A character heuristic instead of a real tokenizer: ~4 characters per token
for English legal text, plus a 10% buffer so estimates err on the high side
of the embedding model's limit.
"""

import math

CHARS_PER_TOKEN = 4
SAFETY_BUFFER = 1.1

# Soft target per chunk
MAX_CHUNK_TOKENS = 1500

# Hard input ceiling of the embedding model, with headroom below 8192
MODEL_TOKEN_LIMIT = 7500


def count_tokens(text: str) -> int:
    """Conservative token estimate for ``text``."""
    if not text:
        return 0
    return math.ceil(math.ceil(len(text) / CHARS_PER_TOKEN) * SAFETY_BUFFER)


def is_within_model_limit(text: str) -> bool:
    return count_tokens(text) <= MODEL_TOKEN_LIMIT


def max_chars_for_tokens(tokens: int) -> int:
    """Largest character length whose estimate stays within ``tokens``."""
    return max(1, int(tokens / SAFETY_BUFFER) * CHARS_PER_TOKEN)
