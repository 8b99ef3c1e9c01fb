"""
Due-card selection for review sessions.

Eligibility: never reviewed, or next_review <= now.
Ordering:    next_review ascending with never-reviewed cards first, then
             created_at ascending.
Buckets:     new (0 repetitions), learning (1-2), review (3+).

Stats describe the whole eligible backlog; `flashcards`/`count` describe the
returned page after the limit is applied.
"""
from __future__ import annotations

from datetime import datetime

from studybuddy.db.repository import ReviewRepository
from studybuddy.models.flashcard import (
    DueFlashcard,
    DueFlashcards,
    DueStats,
    Flashcard,
    NeverReviewed,
)
from studybuddy.services.scheduler import is_due_for_review

LEARNING_THRESHOLD = 3


def due_sort_key(card: Flashcard) -> tuple:
    state = card.review_state()
    if isinstance(state, NeverReviewed):
        return (0, card.created_at, card.created_at)
    return (1, state.at, card.created_at)


def bucket(card: Flashcard) -> str:
    if card.repetitions == 0:
        return "new"
    if card.repetitions < LEARNING_THRESHOLD:
        return "learning"
    return "review"


def compute_stats(cards: list[Flashcard]) -> DueStats:
    stats = DueStats(total=len(cards))
    for card in cards:
        kind = bucket(card)
        setattr(stats, kind, getattr(stats, kind) + 1)
    return stats


def build_due_queue(
    cards: list[DueFlashcard],
    now: datetime,
    limit: int | None = None,
) -> DueFlashcards:
    """Filter, order, bucket and truncate candidate cards."""
    if limit is not None and limit < 0:
        raise ValueError("limit must be non-negative")

    eligible = [c for c in cards if is_due_for_review(c.review_state(), now)]
    # sorted() is stable, so the repository's insertion order breaks full ties
    eligible = sorted(eligible, key=due_sort_key)
    stats = compute_stats(eligible)

    page = eligible if limit is None else eligible[:limit]
    return DueFlashcards(flashcards=page, stats=stats, count=len(page))


async def get_due_flashcards(
    repo: ReviewRepository,
    user_id: str,
    now: datetime,
    deck_id: str | None = None,
    limit: int | None = None,
) -> DueFlashcards:
    candidates = await repo.find_due_flashcards(user_id, now, deck_id=deck_id)
    return build_due_queue(candidates, now, limit)
