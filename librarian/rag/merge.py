"""
Combining keyword and semantic hit lists, and content-level deduplication.
"""

from __future__ import annotations

from typing import Callable, FrozenSet, Hashable, Iterable, List, Sequence, TypeVar

T = TypeVar("T")
IdT = TypeVar("IdT", bound=Hashable)


def merge_ranked(*ranked_lists: Sequence[IdT]) -> List[IdT]:
    """
    Concatenate ranked id lists in priority order, keeping the first
    occurrence of every id.

    Example: merge_ranked([3, 1], [1, 7]) -> [3, 1, 7]
    """
    seen: set = set()
    merged: List[IdT] = []
    for ids in ranked_lists:
        for cid in ids:
            if cid in seen:
                continue
            seen.add(cid)
            merged.append(cid)
    return merged


def word_set(text: str) -> FrozenSet[str]:
    """Lower-cased words with non-alphanumeric edges stripped; empty tokens dropped."""
    words = set()
    for tok in text.lower().split():
        start, end = 0, len(tok)
        while start < end and not tok[start].isalnum():
            start += 1
        while end > start and not tok[end - 1].isalnum():
            end -= 1
        if start < end:
            words.add(tok[start:end])
    return frozenset(words)


def jaccard_similarity(a: Iterable[str], b: Iterable[str]) -> float:
    """|a ∩ b| / |a ∪ b|; 0.0 when either side has no words."""
    sa, sb = set(a), set(b)
    if not sa or not sb:
        return 0.0
    return len(sa & sb) / len(sa | sb)


def deduplicate(
    items: Sequence[T],
    key: Callable[[T], str] = str,
    threshold: float = 0.8,
) -> List[T]:
    """
    Keep items in order, dropping any whose word-set Jaccard similarity to an
    already-kept item is >= threshold.
    """
    kept: List[T] = []
    kept_words: List[FrozenSet[str]] = []
    for item in items:
        words = word_set(key(item))
        if any(jaccard_similarity(words, prev) >= threshold for prev in kept_words):
            continue
        kept.append(item)
        kept_words.append(words)
    return kept
