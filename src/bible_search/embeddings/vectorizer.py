"""
Hashed Bag-of-Words Vectorizer

Converts text into a fixed-dimension unit vector using the hashing trick:
every token is hashed with 32-bit FNV-1a and counted in bucket
``hash % dimension``. Collisions are accepted as noise.

The vectorizer is a pure function of (text, dimension); the same inputs always
produce a bit-identical float32 vector, so query vectors computed at search
time line up with passage vectors computed at build time.

On-disk layout
--------------
Embeddings are persisted as a packed little-endian IEEE-754 float32 array:
``dimension * 4`` bytes, component ``i`` at byte offset ``4 * i``.
"""

from __future__ import annotations

import re
from typing import List

import numpy as np

from ..core.errors import ConfigurationError, CorpusIntegrityError

VECTORIZER_NAME = "hashed-bow-fnv1a"

FNV_OFFSET_BASIS = 0x811C9DC5
FNV_PRIME = 0x01000193

EMBEDDING_DTYPE = np.dtype("<f4")

_NON_TOKEN_CHARS = re.compile(r"[^a-z0-9\s']")
_WHITESPACE = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    """Collapse whitespace runs and trim."""
    return _WHITESPACE.sub(" ", text).strip()


def tokenize(text: str) -> List[str]:
    lowered = text.lower()
    cleaned = _NON_TOKEN_CHARS.sub(" ", lowered)
    return [token for token in _WHITESPACE.split(cleaned) if token]


def hash_token(token: str, dimension: int) -> int:
    """
    FNV-1a over the token's character codes, truncated to 32 bits, then
    reduced modulo ``dimension``.
    """
    h = FNV_OFFSET_BASIS
    for ch in token:
        h ^= ord(ch)
        h = (h * FNV_PRIME) & 0xFFFFFFFF
    return h % dimension


def vectorize_tokens(tokens: List[str], dimension: int) -> np.ndarray:
    if dimension <= 0:
        raise ConfigurationError(
            f"Embedding dimension must be positive, got {dimension}."
        )

    counts = np.zeros(dimension, dtype=np.float64)
    for token in tokens:
        counts[hash_token(token, dimension)] += 1.0

    norm = float(np.sqrt(np.dot(counts, counts)))
    if norm > 0:
        counts /= norm

    return counts.astype(EMBEDDING_DTYPE)


def embed(text: str, dimension: int) -> np.ndarray:
    """
    Embed ``text`` as a unit-length float32 vector of ``dimension`` entries.

    Returns the all-zero vector when the text has no extractable tokens.
    """
    return vectorize_tokens(tokenize(text), dimension)


def is_zero_vector(vector: np.ndarray) -> bool:
    return not np.any(vector)


# ---------------------------------------------------------------------
# Byte codec
# ---------------------------------------------------------------------

def encode_embedding(vector: np.ndarray) -> bytes:
    return np.asarray(vector, dtype=EMBEDDING_DTYPE).tobytes()


def decode_embedding(raw: bytes, dimension: int) -> np.ndarray:
    """
    Decode a stored embedding into a fresh, writable float32 array.

    Raises
    ------
    CorpusIntegrityError
        If the byte length does not match ``dimension``.
    """
    expected = dimension * EMBEDDING_DTYPE.itemsize
    if len(raw) != expected:
        raise CorpusIntegrityError(
            f"Embedding blob has {len(raw)} bytes, expected {expected} "
            f"for dimension {dimension}."
        )
    return np.frombuffer(raw, dtype=EMBEDDING_DTYPE).astype(np.float32)
