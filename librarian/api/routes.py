"""
API routes: health, buckets, documents, search, chat and generation.
"""

from __future__ import annotations

import asyncio
import json
from typing import Iterator, List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from fastapi.responses import StreamingResponse

from librarian.core.buckets import BucketManager
from librarian.core.errors import LLMError
from librarian.db.models import Document
from librarian.db.store import BucketStore
from librarian.generation.generator import ContentKind, StudyGenerator
from librarian.generation.parsers import ParseResult
from librarian.ingest.pipeline import IngestionService
from librarian.ingest.sources import SourceDocument
from librarian.llm.client import message
from librarian.rag.hybrid import HybridRetriever
from librarian.rag.retriever import ContextBundle
from librarian.skills.review_service import ReviewService

from .deps import (
    get_embedder,
    get_generator,
    get_ingestion,
    get_manager,
    get_retriever,
    get_review_service,
    get_store,
)
from .models import (
    BucketCreateRequest,
    BucketOut,
    ChatRequest,
    ChatResponse,
    ContextBlock,
    CurrentBucketRequest,
    CurrentBucketResponse,
    DocumentCreateRequest,
    DocumentDetail,
    DocumentSummary,
    GenerateRequest,
    GenerateResponse,
    HealthResponse,
    HomeworkRequest,
    IngestResponse,
    SearchRequest,
    SearchResponse,
    TagsUpdateRequest,
)

router = APIRouter(prefix="/api", tags=["api"])


def _sse_event(event: str, data: str) -> str:
    return f"event: {event}\ndata: {data}\n\n"


def _summary(doc: Document, store: BucketStore) -> DocumentSummary:
    return DocumentSummary(
        id=doc.id,
        display_name=doc.display_name,
        kind=doc.kind,
        source_path=doc.source_path,
        tags=doc.tags,
        created_at=doc.created_at.isoformat(),
        chunk_count=store.count_chunks(doc.id),
    )


def _list_summaries(store: BucketStore, limit: int) -> List[DocumentSummary]:
    return [_summary(doc, store) for doc in store.list_documents(limit=limit)]


def _detail(store: BucketStore, document_id: int) -> DocumentDetail:
    doc = store.require_document(document_id)
    return DocumentDetail(**_summary(doc, store).model_dump(), content=doc.content)


def _retag(store: BucketStore, document_id: int, tags: Optional[str]) -> DocumentSummary:
    return _summary(store.update_tags(document_id, tags), store)


def _delete(store: BucketStore, document_id: int) -> None:
    if not store.delete_document(document_id):
        store.require_document(document_id)


@router.get("/health", response_model=HealthResponse)
async def health(
    manager: BucketManager = Depends(get_manager),
    embedder=Depends(get_embedder),
    store: BucketStore = Depends(get_store),
) -> HealthResponse:
    """Health check with counts for the selected store."""
    bucket = await asyncio.to_thread(manager.current)
    documents = await asyncio.to_thread(store.count_documents)
    chunks = await asyncio.to_thread(store.count_chunks)
    return HealthResponse(
        status="ok",
        bucket=bucket,
        documents=documents,
        chunks=chunks,
        embedding_model_loaded=bool(getattr(embedder, "is_loaded", False)),
    )


# Buckets


@router.get("/buckets", response_model=List[BucketOut])
async def list_buckets(manager: BucketManager = Depends(get_manager)) -> List[BucketOut]:
    buckets = await asyncio.to_thread(manager.list)
    return [BucketOut(name=b.name, is_current=b.is_current) for b in buckets]


@router.post("/buckets", response_model=BucketOut, status_code=status.HTTP_201_CREATED)
async def create_bucket(body: BucketCreateRequest, manager: BucketManager = Depends(get_manager)) -> BucketOut:
    name = await asyncio.to_thread(manager.create, body.name)
    return BucketOut(name=name, is_current=False)


@router.get("/buckets/current", response_model=CurrentBucketResponse)
async def current_bucket(manager: BucketManager = Depends(get_manager)) -> CurrentBucketResponse:
    return CurrentBucketResponse(name=await asyncio.to_thread(manager.current))


@router.put("/buckets/current", response_model=CurrentBucketResponse)
async def use_bucket(body: CurrentBucketRequest, manager: BucketManager = Depends(get_manager)) -> CurrentBucketResponse:
    return CurrentBucketResponse(name=await asyncio.to_thread(manager.use, body.name))


@router.delete("/buckets/{name}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_bucket(name: str, manager: BucketManager = Depends(get_manager)) -> Response:
    await asyncio.to_thread(manager.delete, name)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Documents


@router.get("/documents", response_model=List[DocumentSummary])
async def list_documents(
    limit: int = Query(100, ge=1, le=1000),
    store: BucketStore = Depends(get_store),
) -> List[DocumentSummary]:
    return await asyncio.to_thread(_list_summaries, store, limit)


@router.get("/documents/{document_id}", response_model=DocumentDetail)
async def get_document(document_id: int, store: BucketStore = Depends(get_store)) -> DocumentDetail:
    return await asyncio.to_thread(_detail, store, document_id)


@router.post("/documents", response_model=IngestResponse)
async def add_document(
    body: DocumentCreateRequest,
    response: Response,
    ingestion: IngestionService = Depends(get_ingestion),
) -> IngestResponse:
    """Ingest already-extracted text; an existing source path is reported as skipped."""
    source = SourceDocument.from_text(
        body.source_path,
        body.text,
        display_name=body.display_name,
        kind=body.kind,
        tags=body.tags,
    )
    result = await asyncio.to_thread(ingestion.ingest, source)
    response.status_code = status.HTTP_200_OK if result.skipped else status.HTTP_201_CREATED
    return IngestResponse(
        document_id=result.document_id,
        display_name=result.display_name,
        chunk_count=result.chunk_count,
        embedded_count=result.embedded_count,
        skipped=result.skipped,
    )


@router.patch("/documents/{document_id}/tags", response_model=DocumentSummary)
async def update_tags(
    document_id: int,
    body: TagsUpdateRequest,
    store: BucketStore = Depends(get_store),
) -> DocumentSummary:
    return await asyncio.to_thread(_retag, store, document_id, body.tags)


@router.delete("/documents/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_document(document_id: int, store: BucketStore = Depends(get_store)) -> Response:
    await asyncio.to_thread(_delete, store, document_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Retrieval and generation


@router.post("/search", response_model=SearchResponse)
async def search_endpoint(
    body: SearchRequest,
    retriever: HybridRetriever = Depends(get_retriever),
) -> SearchResponse:
    """Retrieve the context block a prompt would receive (no generation)."""
    bundle = await asyncio.to_thread(retriever.build_context, body.query, body.max_context_chars)
    return SearchResponse(
        query=bundle.query,
        enhanced_query=bundle.enhanced_query,
        strategy=bundle.strategy,
        blocks=[
            ContextBlock(
                document_id=r.document_id,
                document_name=r.document_name,
                chunk_id=r.chunk_id,
                chunk_index=r.chunk_index,
                source=r.source,
                content=r.content,
            )
            for r in bundle.results
        ],
        context=bundle.text,
    )


@router.post("/chat", response_model=ChatResponse)
async def chat(body: ChatRequest, generator: StudyGenerator = Depends(get_generator)) -> ChatResponse:
    """Answer a question grounded in the bucket's documents."""
    history = [message(m.role, m.content) for m in body.history]
    turn = await asyncio.to_thread(generator.chat_turn, body.question, history)
    return ChatResponse(
        answer=turn.answer,
        strategy=turn.context.strategy,
        sources=turn.context.document_names,
    )


def _stream_events(context: ContextBundle, deltas: Iterator[str]) -> Iterator[str]:
    try:
        for delta in deltas:
            yield _sse_event("token", json.dumps({"token": delta}))
    except LLMError as e:
        yield _sse_event("error", json.dumps({"detail": str(e)}))
        return
    yield _sse_event("done", json.dumps({"strategy": context.strategy, "sources": context.document_names}))


@router.post("/chat/stream")
async def chat_stream(body: ChatRequest, generator: StudyGenerator = Depends(get_generator)) -> StreamingResponse:
    """Stream answer tokens via SSE; the final event names the strategy and sources."""
    history = [message(m.role, m.content) for m in body.history]
    # Retrieval finishes here, so the stream itself only talks to the LLM.
    context, deltas = await asyncio.to_thread(generator.stream_chat, body.question, history)
    return StreamingResponse(
        _stream_events(context, deltas),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.post("/homework", response_model=ChatResponse)
async def homework(body: HomeworkRequest, generator: StudyGenerator = Depends(get_generator)) -> ChatResponse:
    """Tutor-style help on a problem, grounded in the bucket's recent documents."""
    history = [message(m.role, m.content) for m in body.history]
    turn = await asyncio.to_thread(generator.homework_turn, body.problem, history)
    return ChatResponse(
        answer=turn.answer,
        strategy=turn.context.strategy,
        sources=turn.context.document_names,
    )


def _generate(
    body: GenerateRequest,
    generator: StudyGenerator,
    ingestion: IngestionService,
    reviews: ReviewService,
) -> GenerateResponse:
    parsed: Optional[ParseResult] = None
    if body.kind == ContentKind.FLASHCARDS:
        content, parsed = generator.flashcards(body.topic)
    elif body.kind == ContentKind.QUIZ:
        content, parsed = generator.quiz(body.topic)
    else:
        content = generator.generate(body.kind, body.topic)

    document_id = None
    if body.save and content.text.strip():
        name = content.kind.display_name
        if content.topic:
            name = f"{name}: {content.topic}"
        document_id = ingestion.ingest_generated(content.text, content.kind.document_kind, name).document_id

    added = 0
    skipped = 0
    if parsed is not None and body.add_to_review:
        added = len(reviews.save_parsed(parsed, document_id=document_id))
        skipped = parsed.skipped

    return GenerateResponse(
        kind=content.kind,
        topic=content.topic,
        text=content.text,
        sources=content.context.document_names,
        document_id=document_id,
        study_items_added=added,
        study_items_skipped=skipped,
    )


@router.post("/generate", response_model=GenerateResponse)
async def generate(
    body: GenerateRequest,
    generator: StudyGenerator = Depends(get_generator),
    ingestion: IngestionService = Depends(get_ingestion),
    reviews: ReviewService = Depends(get_review_service),
) -> GenerateResponse:
    """
    Generate a study guide, flashcards, quiz or summary; optionally save it.

    Flashcards and quiz questions that parse cleanly are added to the review
    queue unless add_to_review is false.
    """
    return await asyncio.to_thread(_generate, body, generator, ingestion, reviews)
