"""
Dense embeddings via sentence-transformers, plus the vector math used for
semantic search over stored chunk embeddings.
"""

from __future__ import annotations

import logging
import os
import threading
from typing import Hashable, List, Protocol, Sequence, Tuple, TypeVar, runtime_checkable

import numpy as np
from sentence_transformers import SentenceTransformer

from librarian.core.errors import EmbeddingUnavailable
from librarian.db.vectors import bytes_to_embedding, embedding_to_bytes

logger = logging.getLogger(__name__)

EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "all-MiniLM-L6-v2")

IdT = TypeVar("IdT", bound=Hashable)

__all__ = [
    "EMBEDDING_MODEL",
    "EmbeddingProvider",
    "SentenceTransformerEmbedder",
    "bytes_to_embedding",
    "cosine_similarity",
    "embedding_to_bytes",
    "top_k",
]


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Anything that turns one text into a fixed-length vector."""

    def embed_one(self, text: str) -> np.ndarray:
        """Embed a single text; raises EmbeddingUnavailable on failure."""
        ...


class SentenceTransformerEmbedder:
    """
    Embedding provider backed by a local sentence-transformers model.

    Create one instance per process and pass it to whatever needs embeddings.
    The model is loaded on first use, exactly once, even if several threads
    ask for it at the same time.
    """

    def __init__(self, model_name: str | None = None) -> None:
        self.model_name = model_name or EMBEDDING_MODEL
        self._model: SentenceTransformer | None = None
        self._lock = threading.Lock()

    @property
    def model(self) -> SentenceTransformer:
        """Lazy-load the model on first access."""
        if self._model is None:
            with self._lock:
                if self._model is None:
                    logger.info("Loading embedding model %s", self.model_name)
                    try:
                        self._model = SentenceTransformer(self.model_name)
                    except Exception as e:
                        raise EmbeddingUnavailable(
                            f"Could not load embedding model {self.model_name}: {e}"
                        ) from e
        return self._model

    @property
    def is_loaded(self) -> bool:
        return self._model is not None

    def embed_one(self, text: str) -> np.ndarray:
        return self.embed([text])[0]

    def embed(self, texts: List[str]) -> np.ndarray:
        """Normalized float32 embeddings, shape (len(texts), dim)."""
        if not texts:
            return np.zeros((0, 0), dtype=np.float32)
        model = self.model
        try:
            emb = model.encode(
                texts,
                convert_to_numpy=True,
                normalize_embeddings=True,
                show_progress_bar=False,
            )
        except Exception as e:
            raise EmbeddingUnavailable(f"Embedding failed: {e}") from e
        return np.asarray(emb, dtype=np.float32)


def cosine_similarity(a: Sequence[float] | np.ndarray, b: Sequence[float] | np.ndarray) -> float:
    """Cosine similarity in [-1, 1]; 0.0 for zero-norm or mismatched-length vectors."""
    va = np.asarray(a, dtype=np.float64).ravel()
    vb = np.asarray(b, dtype=np.float64).ravel()
    if va.shape != vb.shape or va.size == 0:
        return 0.0
    na = np.linalg.norm(va)
    nb = np.linalg.norm(vb)
    if na == 0.0 or nb == 0.0:
        return 0.0
    sim = float(np.dot(va, vb) / (na * nb))
    return max(-1.0, min(1.0, sim))


def top_k(
    query: Sequence[float] | np.ndarray,
    candidates: Sequence[Tuple[IdT, Sequence[float] | np.ndarray]],
    k: int,
) -> List[Tuple[IdT, float]]:
    """
    Rank candidates by cosine similarity to `query`.

    Returns at most k (id, score) pairs with non-increasing scores; equal
    scores keep their candidate order.
    """
    if k <= 0 or not candidates:
        return []
    scored = [(cid, cosine_similarity(query, vec)) for cid, vec in candidates]
    # sorted() is stable, so ties stay in candidate order
    scored = sorted(scored, key=lambda x: x[1], reverse=True)
    return scored[:k]
