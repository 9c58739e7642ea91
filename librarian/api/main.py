"""
FastAPI application exposing buckets, documents, retrieval and study review.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from librarian.core.buckets import BucketManager
from librarian.core.errors import (
    BucketExistsError,
    ConfigError,
    DuplicateSourceError,
    LibrarianError,
    LLMError,
    NotFoundError,
)
from librarian.llm.client import GroqClient, create_client
from librarian.rag.config import RAGConfig
from librarian.rag.dense import EmbeddingProvider, SentenceTransformerEmbedder

from .routes import router
from .study_routes import router as study_router

logger = logging.getLogger(__name__)


def _status_for(exc: LibrarianError) -> int:
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, (BucketExistsError, DuplicateSourceError)):
        return 409
    if isinstance(exc, ConfigError):
        return 503
    if isinstance(exc, LLMError):
        return 502
    # Empty query, invalid bucket name, unsupported source
    return 400


async def librarian_error_handler(request: Request, exc: LibrarianError) -> JSONResponse:
    status_code = _status_for(exc)
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


def create_app(
    manager: Optional[BucketManager] = None,
    embedder: Optional[EmbeddingProvider] = None,
    client_factory: Optional[Callable[[], GroqClient]] = None,
    rag_config: Optional[RAGConfig] = None,
) -> FastAPI:
    """
    Build the app. Anything not passed in is created at startup: the bucket
    manager from the saved config, a lazily-loaded sentence-transformers
    embedder and an LLM client factory reading the API key on demand.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.manager = manager or BucketManager()
        app.state.embedder = embedder or SentenceTransformerEmbedder()
        app.state.client_factory = client_factory or create_client
        app.state.rag_config = rag_config or RAGConfig()
        yield

    app = FastAPI(
        title="Librarian API",
        description="Bucketed document retrieval and spaced-repetition study",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])
    app.add_exception_handler(LibrarianError, librarian_error_handler)
    app.include_router(router)
    app.include_router(study_router)
    return app


app = create_app()
