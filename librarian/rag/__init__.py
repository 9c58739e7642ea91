"""
RAG (Retrieval-Augmented Generation) module.

Provides retrieval components for hybrid search over a bucket's chunks:
- Boundary-aware chunking
- Dense embeddings and cosine top-k
- FTS5 keyword + embedding hybrid retrieval with Jaccard dedup
- Query rewriting
"""

from .chunker import ChunkConfig, TextChunk, chunk_text
from .config import RAGConfig
from .dense import (
    EmbeddingProvider,
    SentenceTransformerEmbedder,
    bytes_to_embedding,
    cosine_similarity,
    embedding_to_bytes,
    top_k,
)
from .hybrid import HybridRetriever
from .merge import deduplicate, jaccard_similarity, merge_ranked, word_set
from .query_rewriter import QueryRewriter, enhance_query
from .retriever import ContextBundle, RetrievalResult, Retriever

__all__ = [
    "ChunkConfig",
    "TextChunk",
    "chunk_text",
    "RAGConfig",
    "EmbeddingProvider",
    "SentenceTransformerEmbedder",
    "bytes_to_embedding",
    "cosine_similarity",
    "embedding_to_bytes",
    "top_k",
    "HybridRetriever",
    "deduplicate",
    "jaccard_similarity",
    "merge_ranked",
    "word_set",
    "QueryRewriter",
    "enhance_query",
    "ContextBundle",
    "RetrievalResult",
    "Retriever",
]
