"""
Sliding-window text chunker with boundary-aware break points.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

_SENTENCE_ENDINGS = (". ", "! ", "? ", ".\n", "!\n", "?\n")


@dataclass
class ChunkConfig:
    """Window size and overlap, in characters."""

    chunk_size: int = 1000
    overlap: int = 200
    # A paragraph break must fall past this fraction of the window to be used
    paragraph_ratio: float = 0.5
    # Same for sentence ends and single newlines
    sentence_ratio: float = 1 / 3

    def __post_init__(self) -> None:
        if self.chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if self.overlap < 0:
            raise ValueError("overlap must be non-negative")


@dataclass
class TextChunk:
    """A chunk of text with its [start, end) span in the trimmed source text."""

    text: str
    index: int
    start: int
    end: int


def _find_break(window: str, config: ChunkConfig) -> Optional[int]:
    """Offset within `window` where the chunk should end, or None for the raw boundary."""
    n = len(window)

    pos = window.rfind("\n\n")
    if pos > n * config.paragraph_ratio:
        return pos + 2

    for ending in _SENTENCE_ENDINGS:
        pos = window.rfind(ending)
        if pos > n * config.sentence_ratio:
            return pos + 1

    pos = window.rfind("\n")
    if pos > n * config.sentence_ratio:
        return pos + 1

    pos = window.rfind(" ")
    if pos > 0:
        return pos + 1

    return None


def chunk_text(text: str, config: ChunkConfig | None = None) -> List[TextChunk]:
    """
    Split text into overlapping chunks.

    Chunks prefer to end at a paragraph break, then a sentence end, then a
    newline, then a space. The next window starts `overlap` characters
    before the previous end, but always moves forward.
    """
    config = config or ChunkConfig()
    text = text.strip()
    if not text:
        return []

    if len(text) <= config.chunk_size:
        return [TextChunk(text=text, index=0, start=0, end=len(text))]

    chunks: List[TextChunk] = []
    start = 0
    while start < len(text):
        end = min(start + config.chunk_size, len(text))
        if end < len(text):
            brk = _find_break(text[start:end], config)
            if brk is not None:
                end = start + brk

        piece = text[start:end].strip()
        if piece:
            chunks.append(TextChunk(text=piece, index=len(chunks), start=start, end=end))

        if end >= len(text):
            break
        next_start = end - config.overlap
        start = next_start if next_start > start else end

    return chunks
