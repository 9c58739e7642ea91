from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from librarian.core.errors import StudyItemNotFound
from librarian.db.models import StudyItem, StudyItemKind, utcnow
from librarian.db.store import BucketStore, NewStudyItem
from librarian.generation.parsers import ParseResult, parse_options
from librarian.skills.scheduler import SM2Scheduler

logger = logging.getLogger(__name__)

# Quality recorded for a checked answer
CORRECT_QUALITY = 4
INCORRECT_QUALITY = 1
# Share of expected words a short answer must contain
SHORT_ANSWER_OVERLAP = 0.4


@dataclass
class ReviewSelectionConfig:
    """How many items to surface per review session."""

    default_limit: int = 20


@dataclass
class AnswerCheck:
    correct: bool
    quality: int
    expected: str


def _words(text: str) -> set:
    return set(text.lower().split())


class ReviewService:
    """
    Spaced-repetition review over one bucket's study items.

    Selection and grading live here; the SM-2 arithmetic lives in
    SM2Scheduler and persistence in BucketStore.
    """

    def __init__(
        self,
        store: BucketStore,
        scheduler: Optional[SM2Scheduler] = None,
        config: Optional[ReviewSelectionConfig] = None,
    ) -> None:
        self.store = store
        self.scheduler = scheduler or SM2Scheduler()
        self.config = config or ReviewSelectionConfig()

    def due(self, limit: Optional[int] = None, now: Optional[dt.datetime] = None) -> List[StudyItem]:
        """Due items, oldest overdue first."""
        if limit is None or limit <= 0:
            limit = self.config.default_limit
        return self.store.due_study_items(now=now, limit=limit)

    def count_due(self, now: Optional[dt.datetime] = None) -> int:
        return self.store.count_due(now=now)

    def review(self, item_id: int, quality: int, now: Optional[dt.datetime] = None) -> StudyItem:
        """Apply a recall rating to an item and persist the new schedule."""
        item = self.store.get_study_item(item_id)
        if item is None:
            raise StudyItemNotFound(item_id)
        now = now or utcnow()
        self.scheduler.compute_next(item, quality, now=now)
        item.updated_at = now
        saved = self.store.save_study_item(item)
        logger.debug(
            "Reviewed item %s q=%s: interval=%.2fd ease=%.2f",
            item_id,
            quality,
            saved.interval_days,
            saved.ease_factor,
        )
        return saved

    def save_parsed(self, result: ParseResult, document_id: Optional[int] = None) -> List[StudyItem]:
        """Store parsed flashcards or quiz questions as new, immediately due items."""
        return self.store.add_study_items(
            NewStudyItem(kind=p.kind, front=p.front, back=p.back, document_id=document_id)
            for p in result.items
        )

    @staticmethod
    def check_answer(item: StudyItem, answer: str) -> bool:
        """
        Heuristic answer check.

        Multiple choice accepts the option letter or text, fill-in-the-blank
        needs the expected text inside the answer, short answers need more
        than 40% of the expected words. Flashcards are self-graded, so the
        check is a plain containment test.
        """
        given = answer.strip().lower()
        if not given:
            return False
        expected = item.back.strip().lower()

        if item.item_type == StudyItemKind.QUIZ_MULTIPLE_CHOICE:
            letter = given.rstrip(").:").strip()
            options = dict(parse_options(item.front))
            if letter in options:
                return options[letter].strip().lower() == expected
            return given == expected or expected in given

        if item.item_type == StudyItemKind.QUIZ_SHORT_ANSWER:
            expected_words = _words(expected)
            overlap = len(expected_words & _words(given))
            return overlap / max(1, len(expected_words)) > SHORT_ANSWER_OVERLAP

        return expected in given

    def grade(self, item: StudyItem, answer: str) -> AnswerCheck:
        correct = self.check_answer(item, answer)
        return AnswerCheck(
            correct=correct,
            quality=CORRECT_QUALITY if correct else INCORRECT_QUALITY,
            expected=item.back,
        )

    def answer(
        self, item_id: int, answer: str, now: Optional[dt.datetime] = None
    ) -> Tuple[AnswerCheck, StudyItem]:
        """Grade an answer and feed the resulting quality to the scheduler."""
        item = self.store.get_study_item(item_id)
        if item is None:
            raise StudyItemNotFound(item_id)
        check = self.grade(item, answer)
        return check, self.review(item_id, check.quality, now=now)

    def stats(self, now: Optional[dt.datetime] = None) -> List[dict]:
        """
        Per item-kind statistics.

        Returns a list of dicts with keys:
            kind, total, learned, due, due_today, overdue
        """
        now = now or utcnow()
        today = now.date()
        stats: Dict[str, dict] = {}

        for item in self.store.list_study_items():
            kind = item.item_type.value
            entry = stats.setdefault(
                kind,
                {"kind": kind, "total": 0, "learned": 0, "due": 0, "due_today": 0, "overdue": 0},
            )
            entry["total"] += 1
            if item.review_count > 0:
                entry["learned"] += 1
            if item.next_review_at <= now:
                entry["due"] += 1

            due_date = item.next_review_at.date()
            if due_date < today:
                entry["overdue"] += 1
            elif due_date == today:
                entry["due_today"] += 1

        return sorted(stats.values(), key=lambda e: e["kind"])
