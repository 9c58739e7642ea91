"""
Configuration for the retrieval pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class RAGConfig:
    """Configuration for hybrid retrieval."""

    use_query_rewriting: bool = True
    keyword_k: int = 10
    semantic_k: int = 10
    # Keyword hits go first: they are the precise matches for "exercise 0.3" style lookups.
    keyword_first: bool = True
    dedup_threshold: float = 0.8
    document_fallback_k: int = 5
    listing_limit: int = 3
    max_context_chars: int = 6000
    chunk_block_chars: int = 1500
    document_block_chars: int = 2000
