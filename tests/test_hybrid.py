"""
Tests for hybrid retrieval over a bucket store.
"""

from __future__ import annotations

import pytest

from librarian.core.errors import EmptyQueryError
from librarian.db.store import BucketStore
from librarian.rag import HybridRetriever, RAGConfig
from librarian.rag.hybrid import (
    STRATEGY_DOCUMENT,
    STRATEGY_HYBRID,
    STRATEGY_LISTING,
    STRATEGY_NONE,
    STRATEGY_OVERVIEW,
)
from librarian.rag.retriever import SOURCE_KEYWORD, SOURCE_SEMANTIC

from fakes import FailingEmbedder, FakeEmbedder


def test_keyword_hits_come_first(biology_store: BucketStore, embedder: FakeEmbedder):
    retriever = HybridRetriever(store=biology_store, embedder=embedder)

    bundle = retriever.build_context("what is the mitochondria")

    assert bundle.enhanced_query == "mitochondria"
    assert bundle.strategy == STRATEGY_HYBRID
    assert bundle.results[0].document_name == "cells.md"
    assert bundle.results[0].source == SOURCE_KEYWORD
    # Semantic search returns the other chunks after the keyword match
    assert {r.source for r in bundle.results[1:]} == {SOURCE_SEMANTIC}
    assert bundle.text.startswith("--- Document: cells.md (chunk 0) ---\n")


def test_numbered_reference_matches_exactly(biology_store: BucketStore):
    retriever = HybridRetriever(store=biology_store)
    results = retriever.retrieve("can you give me the answer for exercise 0.3?")
    assert results
    assert results[0].document_name == "exercises.txt"


def test_semantic_only_when_no_keyword_match(biology_store: BucketStore, embedder: FakeEmbedder):
    retriever = HybridRetriever(store=biology_store, embedder=embedder)
    bundle = retriever.build_context("zebra quantum")
    assert bundle.strategy == STRATEGY_HYBRID
    assert bundle.results
    assert all(r.source == SOURCE_SEMANTIC for r in bundle.results)


def test_keyword_only_when_embedding_fails(biology_store: BucketStore):
    retriever = HybridRetriever(store=biology_store, embedder=FailingEmbedder())
    results = retriever.retrieve("photosynthesis")
    assert [r.document_name for r in results] == ["plants.md"]
    assert results[0].source == SOURCE_KEYWORD


def test_falls_back_to_document_search(store: BucketStore):
    from librarian.db.models import DocumentKind

    store.add_document(
        source_path="/notes/genetics-lecture.md",
        display_name="genetics-lecture.md",
        kind=DocumentKind.MARKDOWN,
        content="Base pairing rules.",
    )
    retriever = HybridRetriever(store=store)

    bundle = retriever.build_context("genetics")

    assert bundle.strategy == STRATEGY_DOCUMENT
    assert bundle.results[0].is_whole_document
    assert bundle.text.startswith("--- Document: genetics-lecture.md ---\n")


def test_falls_back_to_recent_documents(biology_store: BucketStore):
    retriever = HybridRetriever(store=biology_store, config=RAGConfig(listing_limit=2))
    bundle = retriever.build_context("zebra quantum")
    assert bundle.strategy == STRATEGY_LISTING
    assert [r.document_name for r in bundle.results] == ["exercises.txt", "plants.md"]


def test_empty_bucket_gives_empty_context(store: BucketStore, embedder: FakeEmbedder):
    bundle = HybridRetriever(store=store, embedder=embedder).build_context("anything")
    assert bundle.is_empty
    assert bundle.strategy == STRATEGY_NONE
    assert bundle.text == ""


@pytest.mark.parametrize("query", ["", "   ", "\n"])
def test_empty_query_rejected(biology_store: BucketStore, query: str):
    with pytest.raises(EmptyQueryError):
        HybridRetriever(store=biology_store).retrieve(query)


def test_context_respects_budget(biology_store: BucketStore, embedder: FakeEmbedder):
    retriever = HybridRetriever(store=biology_store, embedder=embedder)
    bundle = retriever.build_context("mitochondria", max_context_chars=120)
    assert 0 < len(bundle.text) <= 120


def test_duplicate_chunks_collapsed(store: BucketStore):
    from librarian.ingest.pipeline import IngestionService
    from librarian.ingest.sources import SourceDocument

    service = IngestionService(store=store)
    text = "Osmosis moves water across a semipermeable membrane."
    service.ingest(SourceDocument.from_text("/a/osmosis.md", text))
    service.ingest(SourceDocument.from_text("/b/osmosis-copy.md", text))

    results = HybridRetriever(store=store).retrieve("osmosis")
    assert len(results) == 1


def test_overview_lists_recent_documents(biology_store: BucketStore):
    bundle = HybridRetriever(store=biology_store).build_overview(limit=2)
    assert bundle.strategy == STRATEGY_OVERVIEW
    assert bundle.document_names == ["exercises.txt", "plants.md"]


def test_without_query_rewriting(biology_store: BucketStore):
    retriever = HybridRetriever(store=biology_store, config=RAGConfig(use_query_rewriting=False))
    assert retriever.enhance("  what is the mitochondria? ") == "what is the mitochondria?"
