"""Test doubles for the embedding provider and the LLM client."""

from __future__ import annotations

import hashlib
from typing import List

import numpy as np

from librarian.core.errors import EmbeddingUnavailable
from librarian.rag.merge import word_set

DIM = 64


def bag_of_words(text: str) -> np.ndarray:
    vec = np.zeros(DIM, dtype=np.float32)
    for word in word_set(text):
        bucket = int(hashlib.md5(word.encode("utf-8")).hexdigest(), 16) % DIM
        vec[bucket] += 1.0
    norm = np.linalg.norm(vec)
    return vec / norm if norm > 0 else vec


class FakeEmbedder:
    """Deterministic bag-of-words embedder; texts sharing words get similar vectors."""

    is_loaded = True

    def __init__(self) -> None:
        self.calls: List[str] = []

    def embed_one(self, text: str) -> np.ndarray:
        self.calls.append(text)
        return bag_of_words(text)


class FailingEmbedder:
    is_loaded = False

    def embed_one(self, text: str) -> np.ndarray:
        raise EmbeddingUnavailable("model not available")


class FakeClient:
    """Stands in for GroqClient; records the messages it was sent."""

    def __init__(self, reply: str = "A grounded answer.") -> None:
        self.reply = reply
        self.calls: List[list] = []

    def chat(self, messages, max_tokens: int = 2048, temperature: float = 0.7) -> str:
        self.calls.append(messages)
        return self.reply

    def stream(self, messages, max_tokens: int = 2048, temperature: float = 0.7):
        self.calls.append(messages)
        for word in self.reply.split(" "):
            yield word + " "


class BatchEmbedder(FakeEmbedder):
    """FakeEmbedder with a batch method, like SentenceTransformerEmbedder.embed."""

    def __init__(self, fail_batches: bool = False) -> None:
        super().__init__()
        self.fail_batches = fail_batches
        self.batches: List[List[str]] = []

    def embed(self, texts: List[str]) -> np.ndarray:
        self.batches.append(list(texts))
        if self.fail_batches:
            raise EmbeddingUnavailable("batch too large")
        return np.stack([bag_of_words(t) for t in texts])
