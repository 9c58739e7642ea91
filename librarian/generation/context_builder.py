"""
Context builder for grounded prompts.

Packs retrieved blocks into one labeled context string under a hard
character budget, truncating each block at a sentence or paragraph
boundary where possible.
"""

from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING, List, Sequence, Tuple

from .config import GenerationConfig

if TYPE_CHECKING:
    from librarian.rag.retriever import RetrievalResult

ELLIPSIS = "..."


def approx_tokens(text: str, chars_per_token: int = 4) -> int:
    """Rough token count (~4 chars per token for English)."""
    return max(1, len(text) // chars_per_token)


def truncate_content(content: str, max_len: int) -> str:
    """
    Shorten `content` to at most `max_len` characters.

    Content that fits is returned unchanged. Otherwise the cut moves back to
    the last sentence end (keeping the period), paragraph break or newline
    inside the limit; failing all three it is a hard cut ending in "...".
    """
    if max_len <= 0:
        return ""
    if len(content) <= max_len:
        return content

    window = content[:max_len]
    pos = window.rfind(". ")
    if pos > 0:
        return window[: pos + 1]
    pos = window.rfind("\n\n")
    if pos > 0:
        return window[:pos]
    pos = window.rfind("\n")
    if pos > 0:
        return window[:pos]

    if max_len <= len(ELLIPSIS):
        return window
    return content[: max_len - len(ELLIPSIS)] + ELLIPSIS


def available_budget(
    system_prompt_len: int,
    conversation_len: int,
    model_context_tokens: int | None = None,
    config: GenerationConfig | None = None,
) -> int:
    """
    Characters of retrieved context that fit next to the prompt and history.

    The model window (tokens) is converted to characters, the prompt, the
    conversation and a reply reservation are subtracted, and the result is
    clamped to [min_context_chars, max_context_chars].
    """
    config = config or GenerationConfig()
    tokens = model_context_tokens if model_context_tokens is not None else config.model_context_tokens
    window_chars = tokens * config.chars_per_token
    reserved = config.response_reserve_tokens * config.chars_per_token
    remaining = window_chars - system_prompt_len - conversation_len - reserved
    return max(config.min_context_chars, min(config.max_context_chars, remaining))


def format_block(label: str, content: str) -> str:
    return f"{label}\n{content}\n\n"


def assemble_context(
    results: Sequence["RetrievalResult"],
    max_chars: int,
    *,
    chunk_block_chars: int = 1500,
    document_block_chars: int = 2000,
) -> Tuple[List["RetrievalResult"], str]:
    """
    Format results into labeled blocks whose total length is <= max_chars.

    Each block is "<label>\\n<content>\\n\\n". Chunk contents are capped at
    chunk_block_chars, whole-document fallbacks at document_block_chars, and
    the last block is truncated to whatever budget is left. Returns the
    results actually used (content as included) and the context text.
    """
    used: List["RetrievalResult"] = []
    parts: List[str] = []
    total = 0

    for r in results:
        overhead = len(format_block(r.label, ""))
        remaining = max_chars - total - overhead
        if remaining <= 0:
            break
        cap = document_block_chars if r.is_whole_document else chunk_block_chars
        content = truncate_content(r.content, min(cap, remaining)).strip()
        if not content:
            continue
        block = format_block(r.label, content)
        parts.append(block)
        total += len(block)
        used.append(replace(r, content=content))
        if total >= max_chars:
            break

    return used, "".join(parts)
