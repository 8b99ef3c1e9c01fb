from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Union

from pydantic import BaseModel, Field

from studybuddy.models.gamification import GamificationResult


# --- Review state ---


@dataclass(frozen=True)
class NeverReviewed:
    """A card that has never been reviewed; always due."""


@dataclass(frozen=True)
class DueAt:
    at: datetime


ReviewState = Union[NeverReviewed, DueAt]


# --- Decks ---


class DeckCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: str | None = None
    color: str | None = None


class DeckUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    color: str | None = None


class Deck(BaseModel):
    id: str
    user_id: str
    name: str
    description: str | None
    color: str | None
    card_count: int = 0
    created_at: datetime
    updated_at: datetime


class DeckSummary(BaseModel):
    id: str
    name: str
    color: str | None


# --- Flashcards ---


class FlashcardCreate(BaseModel):
    # Rich-text document ({"type": "doc", ...}) or plain text
    front: dict[str, Any] | str
    back: dict[str, Any] | str
    tag_ids: list[str] = []


class FlashcardUpdate(BaseModel):
    front: dict[str, Any] | str | None = None
    back: dict[str, Any] | str | None = None
    tag_ids: list[str] | None = None


class Flashcard(BaseModel):
    id: str
    deck_id: str
    front: dict[str, Any]
    back: dict[str, Any]
    ease_factor: float      # SM-2 EF, never below 1.3
    interval: int           # days between the last two reviews
    repetitions: int        # consecutive correct recalls
    last_reviewed: datetime | None
    next_review: datetime | None  # None = never reviewed, due immediately
    created_at: datetime
    updated_at: datetime
    tags: list[str] = []

    def review_state(self) -> ReviewState:
        if self.next_review is None:
            return NeverReviewed()
        return DueAt(self.next_review)


class DueFlashcard(Flashcard):
    deck: DeckSummary


class DueStats(BaseModel):
    total: int = 0
    new: int = 0
    learning: int = 0
    review: int = 0


class DueFlashcards(BaseModel):
    flashcards: list[DueFlashcard]
    stats: DueStats
    count: int


class DeckReviewStats(BaseModel):
    deck_id: str
    name: str
    total: int
    due: int


class ReviewOverview(BaseModel):
    total_cards: int
    due_now: int
    per_deck: list[DeckReviewStats]


# --- Reviews ---


class ReviewRequest(BaseModel):
    rating: int = Field(ge=0, le=5)  # 0=wrong, 2=hard, 3=good, 5=easy


class Review(BaseModel):
    id: str
    flashcard_id: str
    quality: int
    reviewed_at: datetime


class ReviewResult(BaseModel):
    review: Review
    flashcard: Flashcard
    next_review_in: str
    gamification: GamificationResult
