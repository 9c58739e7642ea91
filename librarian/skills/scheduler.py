from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable

SECONDS_PER_DAY = 86400


@runtime_checkable
class SupportsSM2State(Protocol):
    """
    Minimal protocol for SM-2 state.

    This lets us operate on ORM models (StudyItem) or simple
    dataclasses in tests, as long as they expose the expected fields.
    """

    review_count: int
    interval_days: float
    ease_factor: float
    next_review_at: Optional[dt.datetime]


@dataclass
class SM2Config:
    """Config values for the SM-2 scheduler."""

    min_ease_factor: float = 1.3
    initial_ease_factor: float = 2.5
    initial_interval_days: float = 1.0
    second_interval_days: float = 6.0
    # Qualities below this count as a failed recall
    pass_quality: int = 3


class SM2Scheduler:
    """
    SM-2 spaced repetition scheduler.

        - quality is an integer in [0, 5]
        - the ease factor is adjusted after every review, passed or failed,
          and never drops below min_ease_factor
        - quality < 3 resets the interval to 1 day and the review count to 0
        - otherwise the interval goes 1 day, 6 days, then previous * ease
        - interval is in (fractional) days and determines next_review_at
    """

    def __init__(self, config: Optional[SM2Config] = None) -> None:
        self.config = config or SM2Config()

    def next_ease(self, ease: float, quality: int) -> float:
        q_delta = 5 - quality
        ef = ease + 0.1 - q_delta * (0.08 + q_delta * 0.02)
        return max(self.config.min_ease_factor, ef)

    def compute_next(
        self,
        state: SupportsSM2State,
        quality: int,
        *,
        now: Optional[dt.datetime] = None,
    ) -> SupportsSM2State:
        """
        Update the given state in-place using SM-2 and return it.
        """
        if quality < 0 or quality > 5:
            raise ValueError("quality must be between 0 and 5")

        now = now or dt.datetime.now(dt.timezone.utc)

        ef = self.next_ease(state.ease_factor or self.config.initial_ease_factor, quality)
        reps = int(state.review_count or 0)
        interval = float(state.interval_days or self.config.initial_interval_days)

        if quality < self.config.pass_quality:
            # Failed recall: start over.
            reps = 0
            interval = self.config.initial_interval_days
        else:
            if reps == 0:
                interval = self.config.initial_interval_days
            elif reps == 1:
                interval = self.config.second_interval_days
            else:
                interval = interval * ef
            reps += 1

        state.review_count = reps
        state.interval_days = interval
        state.ease_factor = ef
        state.next_review_at = now + dt.timedelta(seconds=int(interval * SECONDS_PER_DAY))
        return state

    @staticmethod
    def is_due(state: SupportsSM2State, now: Optional[dt.datetime] = None) -> bool:
        """Due when next_review_at <= now; items never reviewed are due."""
        now = now or dt.datetime.now(dt.timezone.utc)
        return state.next_review_at is None or state.next_review_at <= now
