from __future__ import annotations

import asyncio
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status

from librarian.db.models import StudyItem
from librarian.db.store import NewStudyItem
from librarian.generation.parsers import parse_flashcards, parse_quiz
from librarian.skills.review_service import ReviewService
from librarian.skills.schemas import (
    KindStats,
    StudyAddRequest,
    StudyAddResponse,
    StudyDueResponse,
    StudyItemOut,
    StudyReviewRequest,
    StudyReviewResponse,
    StudyStatsResponse,
)

from .deps import get_review_service

router = APIRouter(prefix="/api/study", tags=["study"])


def _item_out(item: StudyItem) -> StudyItemOut:
    return StudyItemOut(
        id=item.id,
        item_type=item.item_type,
        front=item.front,
        back=item.back,
        document_id=item.document_id,
        next_review_at=item.next_review_at.isoformat(),
        interval_days=item.interval_days,
        ease_factor=item.ease_factor,
        review_count=item.review_count,
    )


@router.get("/due", response_model=StudyDueResponse)
async def due_items(
    limit: int = Query(20, ge=1, le=100),
    service: ReviewService = Depends(get_review_service),
) -> StudyDueResponse:
    """Due items, oldest overdue first."""
    items = await asyncio.to_thread(service.due, limit)
    due_count = await asyncio.to_thread(service.count_due)
    return StudyDueResponse(items=[_item_out(i) for i in items], due_count=due_count)


def _add_items(body: StudyAddRequest, service: ReviewService) -> StudyAddResponse:
    added: List[StudyItem] = []
    skipped = 0

    if body.raw_text:
        if body.parse_as == "flashcards":
            parsed = parse_flashcards(body.raw_text)
        elif body.parse_as == "quiz":
            parsed = parse_quiz(body.raw_text)
        else:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="parse_as must be 'flashcards' or 'quiz' when raw_text is given",
            )
        added.extend(service.save_parsed(parsed, document_id=body.document_id))
        skipped = parsed.skipped

    if body.items:
        added.extend(
            service.store.add_study_items(
                NewStudyItem(kind=i.item_type, front=i.front, back=i.back, document_id=i.document_id)
                for i in body.items
            )
        )

    return StudyAddResponse(added=[_item_out(i) for i in added], skipped=skipped)


@router.post("/items", response_model=StudyAddResponse, status_code=status.HTTP_201_CREATED)
async def add_items(
    body: StudyAddRequest,
    service: ReviewService = Depends(get_review_service),
) -> StudyAddResponse:
    """Add explicit items and/or items parsed from generated flashcard or quiz text."""
    return await asyncio.to_thread(_add_items, body, service)


@router.post("/review", response_model=StudyReviewResponse)
async def review_item(
    body: StudyReviewRequest,
    service: ReviewService = Depends(get_review_service),
) -> StudyReviewResponse:
    """
    Record a review. An explicit quality wins; otherwise user_answer is
    checked and graded 4 (correct) or 1 (incorrect).
    """
    if body.quality is not None:
        item = await asyncio.to_thread(service.review, body.item_id, body.quality)
        return StudyReviewResponse(item=_item_out(item), quality=body.quality)

    if body.user_answer is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Provide either quality or user_answer",
        )
    check, item = await asyncio.to_thread(service.answer, body.item_id, body.user_answer)
    return StudyReviewResponse(
        item=_item_out(item),
        quality=check.quality,
        correct=check.correct,
        expected=check.expected,
    )


@router.get("/stats", response_model=StudyStatsResponse)
async def study_stats(service: ReviewService = Depends(get_review_service)) -> StudyStatsResponse:
    stats = await asyncio.to_thread(service.stats)
    due_count = await asyncio.to_thread(service.count_due)
    return StudyStatsResponse(kinds=[KindStats(**entry) for entry in stats], due_count=due_count)
