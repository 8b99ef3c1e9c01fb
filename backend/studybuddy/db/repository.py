"""Persistence port for review scheduling."""
from __future__ import annotations

from datetime import datetime
from typing import Protocol

import aiosqlite

from studybuddy.db import sqlite
from studybuddy.models.flashcard import DueFlashcard, Flashcard, Review
from studybuddy.services.scheduler import Scheduler, ScheduleState


class ReviewRepository(Protocol):
    async def find_due_flashcards(
        self, user_id: str, now: datetime, deck_id: str | None = None
    ) -> list[DueFlashcard]:
        """
        Cards due for review that belong to decks owned by `user_id`.

        Args:
            user_id: Owner of the decks; enforced by the query, never by the caller
            now: Reference time for the next_review comparison
            deck_id: Optional deck scope

        Returns:
            Due cards ordered most-overdue first
        """
        ...

    async def record_review(
        self,
        card_id: str,
        quality: int,
        scheduler: Scheduler,
        now: datetime,
    ) -> tuple[Review, Flashcard] | None:
        """
        Apply `scheduler` to the card's current state and persist the result atomically.

        Returns:
            The stored review and the updated card, or None if the card does not exist
        """
        ...


class SqliteReviewRepository:
    def __init__(self, db: aiosqlite.Connection) -> None:
        self.db = db

    async def find_due_flashcards(
        self, user_id: str, now: datetime, deck_id: str | None = None
    ) -> list[DueFlashcard]:
        return await sqlite.find_due_flashcards(self.db, user_id, now, deck_id=deck_id)

    async def record_review(
        self,
        card_id: str,
        quality: int,
        scheduler: Scheduler,
        now: datetime,
    ) -> tuple[Review, Flashcard] | None:
        def apply_schedule(card: Flashcard):
            new = scheduler.schedule(ScheduleState.from_card(card), quality, now)
            return new.ease_factor, new.interval, new.repetitions, new.next_review

        return await sqlite.record_review(self.db, card_id, quality, apply_schedule, now)
