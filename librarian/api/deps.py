"""
Request-scoped dependencies: bucket stores and the services built on them.
"""

from __future__ import annotations

from typing import Iterator, Optional

from fastapi import Depends, Query, Request

from librarian.core.buckets import BucketManager
from librarian.db.store import BucketStore
from librarian.generation.generator import StudyGenerator
from librarian.ingest.pipeline import IngestionService
from librarian.llm.client import GroqClient
from librarian.rag.dense import EmbeddingProvider
from librarian.rag.hybrid import HybridRetriever
from librarian.skills.review_service import ReviewService


def get_manager(request: Request) -> BucketManager:
    return request.app.state.manager


def get_embedder(request: Request) -> Optional[EmbeddingProvider]:
    return request.app.state.embedder


def get_store(
    request: Request,
    bucket: Optional[str] = Query(None, description="Bucket to use instead of the current one"),
) -> Iterator[BucketStore]:
    """Open the requested (or current, or default) store for one request."""
    store = get_manager(request).store_for(bucket)
    try:
        yield store
    finally:
        store.close()


def get_retriever(
    request: Request,
    store: BucketStore = Depends(get_store),
) -> HybridRetriever:
    return HybridRetriever(store=store, embedder=get_embedder(request), config=request.app.state.rag_config)


def get_ingestion(
    request: Request,
    store: BucketStore = Depends(get_store),
) -> IngestionService:
    return IngestionService(store=store, embedder=get_embedder(request))


def get_review_service(store: BucketStore = Depends(get_store)) -> ReviewService:
    return ReviewService(store=store)


def get_llm_client(request: Request) -> GroqClient:
    """Client from the app's factory; raises ConfigError when no API key is set."""
    return request.app.state.client_factory()


def get_generator(
    client: GroqClient = Depends(get_llm_client),
    retriever: HybridRetriever = Depends(get_retriever),
) -> StudyGenerator:
    return StudyGenerator(client=client, retriever=retriever)
