"""
Request and response models for the HTTP API.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from librarian.db.models import DocumentKind
from librarian.generation.generator import ContentKind


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    status: str = "ok"
    bucket: Optional[str] = None
    documents: int = 0
    chunks: int = 0
    embedding_model_loaded: bool = False


class BucketOut(BaseModel):
    name: str
    is_current: bool = False


class BucketCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, description="Bucket name; normalized before use")


class CurrentBucketRequest(BaseModel):
    name: Optional[str] = Field(None, description="Bucket to select; null selects the default store")


class CurrentBucketResponse(BaseModel):
    name: Optional[str] = None


class DocumentSummary(BaseModel):
    id: int
    display_name: str
    kind: DocumentKind
    source_path: str
    tags: Optional[str] = None
    created_at: str
    chunk_count: int = 0


class DocumentDetail(DocumentSummary):
    content: str


class DocumentCreateRequest(BaseModel):
    """Request body for POST /api/documents (text already extracted)."""

    text: str = Field(..., min_length=1)
    source_path: str = Field(..., min_length=1, description="Absolute file path or URL; dedup key")
    display_name: Optional[str] = None
    kind: Optional[DocumentKind] = None
    tags: Optional[str] = None


class IngestResponse(BaseModel):
    document_id: int
    display_name: str
    chunk_count: int
    embedded_count: int
    skipped: bool = False


class TagsUpdateRequest(BaseModel):
    tags: Optional[str] = None


class SearchRequest(BaseModel):
    """Request body for POST /api/search."""

    query: str = Field(..., min_length=1)
    max_context_chars: int = Field(6000, ge=100, le=50000)


class ContextBlock(BaseModel):
    document_id: int
    document_name: str
    chunk_id: Optional[int] = None
    chunk_index: Optional[int] = None
    source: str
    content: str


class SearchResponse(BaseModel):
    """Response for POST /api/search."""

    query: str
    enhanced_query: str
    strategy: str
    blocks: List[ContextBlock] = Field(default_factory=list)
    context: str = ""


class ChatMessage(BaseModel):
    role: str = Field(..., pattern="^(user|assistant)$")
    content: str


class ChatRequest(BaseModel):
    """Request body for POST /api/chat."""

    question: str = Field(..., min_length=1, description="User question")
    history: List[ChatMessage] = Field(default_factory=list)


class HomeworkRequest(BaseModel):
    """Request body for POST /api/homework."""

    problem: str = Field(..., min_length=1)
    history: List[ChatMessage] = Field(default_factory=list)


class ChatResponse(BaseModel):
    answer: str
    strategy: str
    sources: List[str] = Field(default_factory=list)


class GenerateRequest(BaseModel):
    kind: ContentKind
    topic: Optional[str] = None
    save: bool = Field(False, description="Store the output as a document in the bucket")
    add_to_review: bool = Field(True, description="Queue parsed flashcards or quiz questions for review")


class GenerateResponse(BaseModel):
    kind: ContentKind
    topic: Optional[str] = None
    text: str
    sources: List[str] = Field(default_factory=list)
    document_id: Optional[int] = None
    study_items_added: int = 0
    study_items_skipped: int = 0
