"""
Spaced-repetition scheduling.

`is_due_for_review` decides eligibility; a `Scheduler` turns the current
scheduling state plus a recall quality into the next state. `SM2Scheduler`
is the default (SuperMemo-2):

  EF' = max(1.3, EF + (0.1 - (5 - q) * (0.08 + (5 - q) * 0.02)))
  q < 3   -> repetitions = 0, interval = 1
  q >= 3  -> repetitions += 1; interval 1, then 6, then round(interval * EF')

Quality ratings (0-5):
  0  total blackout
  1  incorrect, but the answer seemed easy once shown
  2  incorrect, but the answer seemed hard to recall
  3  correct, with significant effort
  4  correct, after some hesitation
  5  perfect recall
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Protocol

from studybuddy.models.flashcard import DueAt, Flashcard, NeverReviewed, ReviewState

MIN_EASE_FACTOR = 1.3
PASSING_QUALITY = 3
MATURE_INTERVAL_DAYS = 21


@dataclass(frozen=True)
class ScheduleState:
    ease_factor: float
    interval: int
    repetitions: int
    next_review: datetime | None = None

    @classmethod
    def from_card(cls, card: Flashcard) -> ScheduleState:
        return cls(
            ease_factor=card.ease_factor,
            interval=card.interval,
            repetitions=card.repetitions,
            next_review=card.next_review,
        )


class Scheduler(Protocol):
    def schedule(
        self, state: ScheduleState, quality: int, now: datetime
    ) -> ScheduleState:
        """Return the state after a review of the given quality at `now`."""
        ...


def _start_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


class SM2Scheduler:
    def __init__(
        self,
        min_ease_factor: float = MIN_EASE_FACTOR,
        passing_quality: int = PASSING_QUALITY,
    ) -> None:
        self.min_ease_factor = min_ease_factor
        self.passing_quality = passing_quality

    def schedule(
        self, state: ScheduleState, quality: int, now: datetime
    ) -> ScheduleState:
        if not 0 <= quality <= 5:
            raise ValueError(f"quality must be between 0 and 5, got {quality}")

        ease = max(
            self.min_ease_factor,
            state.ease_factor
            + (0.1 - (5 - quality) * (0.08 + (5 - quality) * 0.02)),
        )

        if quality < self.passing_quality:
            repetitions = 0
            interval = 1
        else:
            repetitions = state.repetitions + 1
            if repetitions == 1:
                interval = 1
            elif repetitions == 2:
                interval = 6
            else:
                # round half up
                interval = max(1, math.floor(state.interval * ease + 0.5))

        next_review = _start_of_day(now) + timedelta(days=interval)
        return ScheduleState(
            ease_factor=ease,
            interval=interval,
            repetitions=repetitions,
            next_review=next_review,
        )


def is_due_for_review(state: ReviewState, now: datetime) -> bool:
    """A card is due when it was never reviewed or its review time has passed."""
    if isinstance(state, NeverReviewed):
        return True
    return state.at <= now


def interval_description(next_review: datetime, now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    diff_days = math.ceil(
        (next_review - _start_of_day(now)).total_seconds() / 86400
    )

    if diff_days <= 0:
        return "Later today"
    if diff_days == 1:
        return "Tomorrow"
    if diff_days < 7:
        return f"In {diff_days} days"
    if diff_days < 30:
        weeks = round(diff_days / 7)
        return f"In {weeks} {'week' if weeks == 1 else 'weeks'}"
    if diff_days < 365:
        months = round(diff_days / 30)
        return f"In {months} {'month' if months == 1 else 'months'}"
    years = round(diff_days / 365)
    return f"In {years} {'year' if years == 1 else 'years'}"


def card_stage(repetitions: int, interval: int) -> str:
    if repetitions == 0:
        return "new"
    if repetitions < 3:
        return "learning"
    if interval < MATURE_INTERVAL_DAYS:
        return "young"
    return "mature"


def card_statistics(card: Flashcard, now: datetime | None = None) -> dict:
    """Learning-progress summary for a single card."""
    now = now or datetime.now(timezone.utc)
    state = card.review_state()
    return {
        "stage": card_stage(card.repetitions, card.interval),
        "difficulty": round(100 / card.ease_factor),
        "review_count": card.repetitions,
        "current_interval": card.interval,
        "next_review_in": (
            interval_description(state.at, now)
            if isinstance(state, DueAt)
            else "Not scheduled"
        ),
        "is_due": is_due_for_review(state, now),
        "last_reviewed": card.last_reviewed,
    }
