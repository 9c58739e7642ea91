from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from librarian.db.models import StudyItemKind


class StudyItemOut(BaseModel):
    """Single study item to present to the user."""

    id: int
    item_type: StudyItemKind
    front: str
    back: str
    document_id: Optional[int] = None
    next_review_at: str
    interval_days: float
    ease_factor: float
    review_count: int


class StudyDueResponse(BaseModel):
    """Response body for GET /api/study/due."""

    items: List[StudyItemOut] = Field(default_factory=list)
    due_count: int = Field(
        default=0,
        description="Total number of due items, which may exceed the batch size",
    )


class NewStudyItemIn(BaseModel):
    item_type: StudyItemKind = StudyItemKind.FLASHCARD
    front: str = Field(..., min_length=1)
    back: str = Field(..., min_length=1)
    document_id: Optional[int] = None


class StudyAddRequest(BaseModel):
    """Request body for POST /api/study/items."""

    items: List[NewStudyItemIn] = Field(default_factory=list)
    raw_text: Optional[str] = Field(
        default=None,
        description="Generated flashcard or quiz text to parse into items",
    )
    parse_as: Optional[str] = Field(
        default=None,
        description="'flashcards' or 'quiz'; required with raw_text",
    )
    document_id: Optional[int] = None


class StudyAddResponse(BaseModel):
    added: List[StudyItemOut] = Field(default_factory=list)
    skipped: int = Field(
        default=0,
        description="Parsed questions dropped because their answer could not be read",
    )


class StudyReviewRequest(BaseModel):
    """Request body for submitting a review."""

    item_id: int
    quality: Optional[int] = Field(
        default=None,
        ge=0,
        le=5,
        description="Self-assessed quality score from 0 (complete blackout) to 5 (perfect recall)",
    )
    user_answer: Optional[str] = Field(
        default=None,
        description="Answer to grade automatically when no quality is given",
    )


class StudyReviewResponse(BaseModel):
    item: StudyItemOut
    quality: int
    correct: Optional[bool] = None
    expected: Optional[str] = None


class KindStats(BaseModel):
    """Per item-kind statistics for review progress."""

    kind: str
    total: int
    learned: int
    due: int
    due_today: int
    overdue: int


class StudyStatsResponse(BaseModel):
    kinds: List[KindStats] = Field(default_factory=list)
    due_count: int = 0
