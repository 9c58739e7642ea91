"""
Hybrid retriever combining FTS5 keyword search and embedding similarity.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

from librarian.core.errors import EmbeddingUnavailable, EmptyQueryError
from librarian.db.models import Document
from librarian.db.store import BucketStore
from librarian.generation.context_builder import assemble_context

from .config import RAGConfig
from .dense import EmbeddingProvider, top_k
from .merge import deduplicate, merge_ranked
from .query_rewriter import QueryRewriter
from .retriever import (
    SOURCE_DOCUMENT,
    SOURCE_KEYWORD,
    SOURCE_LISTING,
    SOURCE_SEMANTIC,
    ContextBundle,
    RetrievalResult,
)

logger = logging.getLogger(__name__)

STRATEGY_HYBRID = "hybrid"
STRATEGY_DOCUMENT = "document"
STRATEGY_LISTING = "listing"
STRATEGY_OVERVIEW = "overview"
STRATEGY_NONE = "none"


@dataclass
class HybridRetriever:
    """
    Retrieves context for a query from one bucket's store.

    Keyword hits come first, then semantic hits not already present. With no
    chunk hits at all, whole documents are searched, and failing that the
    most recent documents are used. Near-duplicate blocks are dropped before
    the survivors are packed into the character budget.
    """

    store: BucketStore
    embedder: EmbeddingProvider | None = None
    config: RAGConfig = field(default_factory=RAGConfig)
    query_rewriter: QueryRewriter | None = None

    def __post_init__(self) -> None:
        if self.query_rewriter is None and self.config.use_query_rewriting:
            self.query_rewriter = QueryRewriter()

    def enhance(self, query: str) -> str:
        """Search string for `query`; raises EmptyQueryError on blank input."""
        raw = query.strip()
        if not raw:
            raise EmptyQueryError("Query is empty")
        if self.query_rewriter is None:
            return raw
        # A query made only of filler words still searches for something
        return self.query_rewriter.enhance(raw) or raw

    def keyword_hits(self, query: str) -> List[int]:
        return self.store.search_chunks(query, limit=self.config.keyword_k)

    def semantic_hits(self, query: str) -> List[int]:
        """Chunk ids by cosine similarity; empty when embeddings are unavailable."""
        if self.embedder is None or self.config.semantic_k <= 0:
            return []
        candidates = self.store.embedded_chunks()
        if not candidates:
            return []
        try:
            query_vec = self.embedder.embed_one(query)
        except EmbeddingUnavailable as e:
            logger.warning("Query embedding failed, using keyword results only: %s", e)
            return []
        return [cid for cid, _score in top_k(query_vec, candidates, self.config.semantic_k)]

    def retrieve(self, query: str, max_context_chars: int | None = None) -> List[RetrievalResult]:
        """
        Ranked, deduplicated blocks for `query`, truncated to fit the budget.

        Implements the Retriever protocol.
        """
        return self.build_context(query, max_context_chars).results

    def build_context(self, query: str, max_context_chars: int | None = None) -> ContextBundle:
        enhanced = self.enhance(query)
        candidates, strategy = self._candidates(enhanced)
        candidates = deduplicate(
            candidates,
            key=lambda r: r.content,
            threshold=self.config.dedup_threshold,
        )
        budget = max_context_chars if max_context_chars is not None else self.config.max_context_chars
        results, text = self._assemble(candidates, budget)
        logger.debug(
            "Retrieved %d blocks (%d chars) via %s for %r",
            len(results),
            len(text),
            strategy,
            enhanced,
        )
        return ContextBundle(
            query=query,
            enhanced_query=enhanced,
            results=results,
            text=text,
            strategy=strategy if results else STRATEGY_NONE,
        )

    def build_overview(self, max_context_chars: int | None = None, limit: int = 10) -> ContextBundle:
        """Context over the most recent documents, for requests without a topic."""
        docs = self.store.list_documents(limit=limit)
        candidates = [self._document_result(doc, SOURCE_LISTING) for doc in docs]
        budget = max_context_chars if max_context_chars is not None else self.config.max_context_chars
        results, text = self._assemble(candidates, budget)
        return ContextBundle(
            query="",
            enhanced_query="",
            results=results,
            text=text,
            strategy=STRATEGY_OVERVIEW if results else STRATEGY_NONE,
        )

    def _candidates(self, enhanced: str) -> Tuple[List[RetrievalResult], str]:
        keyword = self.keyword_hits(enhanced)
        semantic = self.semantic_hits(enhanced)
        if self.config.keyword_first:
            ordered = merge_ranked(keyword, semantic)
        else:
            ordered = merge_ranked(semantic, keyword)

        results = self._chunk_results(ordered, set(keyword))
        if results:
            return results, STRATEGY_HYBRID

        docs = self.store.search_documents(enhanced, limit=self.config.document_fallback_k)
        if docs:
            return [self._document_result(doc, SOURCE_DOCUMENT) for doc in docs], STRATEGY_DOCUMENT

        docs = self.store.list_documents(limit=self.config.listing_limit)
        return [self._document_result(doc, SOURCE_LISTING) for doc in docs], STRATEGY_LISTING

    def _chunk_results(self, ordered: Sequence[int], keyword_ids: set) -> List[RetrievalResult]:
        if not ordered:
            return []
        chunks = self.store.get_chunks(ordered)
        docs: Dict[int, Document] = self.store.get_documents(ch.document_id for ch in chunks.values())

        results: List[RetrievalResult] = []
        for cid in ordered:
            ch = chunks.get(cid)
            if ch is None:
                continue
            doc = docs.get(ch.document_id)
            results.append(
                RetrievalResult(
                    document_id=ch.document_id,
                    document_name=doc.display_name if doc is not None else "unknown",
                    content=ch.content,
                    source=SOURCE_KEYWORD if cid in keyword_ids else SOURCE_SEMANTIC,
                    chunk_id=cid,
                    chunk_index=ch.chunk_index,
                )
            )
        return results

    @staticmethod
    def _document_result(doc: Document, source: str) -> RetrievalResult:
        return RetrievalResult(
            document_id=doc.id,
            document_name=doc.display_name,
            content=doc.content,
            source=source,
        )

    def _assemble(self, candidates: List[RetrievalResult], budget: int) -> Tuple[List[RetrievalResult], str]:
        return assemble_context(
            candidates,
            budget,
            chunk_block_chars=self.config.chunk_block_chars,
            document_block_chars=self.config.document_block_chars,
        )
