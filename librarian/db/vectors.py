"""
Embedding (de)serialization for the chunks.embedding BLOB column.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np

from librarian.core.errors import CorruptRecordError

EMBEDDING_DTYPE = np.dtype("<f4")


def embedding_to_bytes(embedding: Sequence[float] | np.ndarray) -> bytes:
    """Serialize a vector as flat little-endian float32 bytes."""
    return np.asarray(embedding, dtype=EMBEDDING_DTYPE).ravel().tobytes()


def bytes_to_embedding(data: bytes) -> np.ndarray:
    """Inverse of embedding_to_bytes; rejects lengths that are not whole float32s."""
    if len(data) % EMBEDDING_DTYPE.itemsize != 0:
        raise CorruptRecordError(
            f"Embedding blob of {len(data)} bytes is not a multiple of {EMBEDDING_DTYPE.itemsize}"
        )
    return np.frombuffer(data, dtype=EMBEDDING_DTYPE).astype(np.float32)
