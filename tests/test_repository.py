"""
Tests for the SQLite review repository
"""
from datetime import timedelta

import pytest

from conftest import utc
from studybuddy.db import sqlite
from studybuddy.db.repository import SqliteReviewRepository
from studybuddy.models.flashcard import DeckCreate, FlashcardCreate
from studybuddy.services.scheduler import SM2Scheduler

NOW = utc(2024, 5, 1, 12)


async def _deck_with_cards(db, user_id: str, name: str, count: int):
    deck = await sqlite.create_deck(db, user_id, DeckCreate(name=name))
    cards = [
        await sqlite.create_flashcard(
            db, user_id, deck.id, FlashcardCreate(front=f"Q{i}", back=f"A{i}")
        )
        for i in range(count)
    ]
    return deck, cards


async def _schedule(db, card_id: str, next_review) -> None:
    await db.execute(
        "UPDATE flashcards SET next_review = ? WHERE id = ?",
        (sqlite.to_db_time(next_review) if next_review else None, card_id),
    )
    await db.commit()


class TestFindDueFlashcards:
    async def test_only_callers_cards(self, db):
        await _deck_with_cards(db, "alice", "Spanish", 2)
        await _deck_with_cards(db, "bob", "French", 3)

        repo = SqliteReviewRepository(db)
        due = await repo.find_due_flashcards("alice", NOW)
        assert len(due) == 2
        assert {c.deck.name for c in due} == {"Spanish"}

    async def test_excludes_future_cards(self, db):
        _, cards = await _deck_with_cards(db, "alice", "Spanish", 2)
        await _schedule(db, cards[0].id, NOW + timedelta(days=2))

        due = await SqliteReviewRepository(db).find_due_flashcards("alice", NOW)
        assert [c.id for c in due] == [cards[1].id]

    async def test_deck_filter(self, db):
        deck, _ = await _deck_with_cards(db, "alice", "Spanish", 1)
        await _deck_with_cards(db, "alice", "German", 2)

        due = await SqliteReviewRepository(db).find_due_flashcards(
            "alice", NOW, deck_id=deck.id
        )
        assert len(due) == 1
        assert due[0].deck_id == deck.id

    async def test_foreign_deck_filter_returns_nothing(self, db):
        deck, _ = await _deck_with_cards(db, "bob", "French", 2)
        due = await SqliteReviewRepository(db).find_due_flashcards(
            "alice", NOW, deck_id=deck.id
        )
        assert due == []

    async def test_null_next_review_first(self, db):
        _, cards = await _deck_with_cards(db, "alice", "Spanish", 3)
        await _schedule(db, cards[0].id, NOW - timedelta(days=10))
        await _schedule(db, cards[2].id, NOW - timedelta(days=1))

        due = await SqliteReviewRepository(db).find_due_flashcards("alice", NOW)
        assert [c.id for c in due] == [cards[1].id, cards[0].id, cards[2].id]


class TestRecordReview:
    async def test_updates_schedule_and_stores_review(self, db):
        _, (card,) = await _deck_with_cards(db, "alice", "Spanish", 1)

        recorded = await SqliteReviewRepository(db).record_review(
            card.id, 4, SM2Scheduler(), NOW
        )
        assert recorded is not None
        review, updated = recorded
        assert review.quality == 4
        assert updated.repetitions == 1
        assert updated.interval == 1
        assert updated.next_review == utc(2024, 5, 2)
        assert updated.last_reviewed == NOW
        assert await sqlite.count_reviews(db, "alice") == 1

    async def test_sequential_reviews_build_on_each_other(self, db):
        _, (card,) = await _deck_with_cards(db, "alice", "Spanish", 1)
        repo = SqliteReviewRepository(db)
        scheduler = SM2Scheduler()

        await repo.record_review(card.id, 5, scheduler, NOW)
        _, updated = await repo.record_review(card.id, 5, scheduler, NOW)
        assert updated.repetitions == 2
        assert updated.interval == 6

    async def test_missing_card(self, db):
        result = await SqliteReviewRepository(db).record_review(
            "missing", 3, SM2Scheduler(), NOW
        )
        assert result is None

    async def test_scheduler_error_rolls_back(self, db):
        _, (card,) = await _deck_with_cards(db, "alice", "Spanish", 1)

        with pytest.raises(ValueError):
            await SqliteReviewRepository(db).record_review(
                card.id, 9, SM2Scheduler(), NOW
            )
        assert await sqlite.count_reviews(db, "alice") == 0
        unchanged = await sqlite.get_flashcard(db, card.deck_id, card.id)
        assert unchanged.repetitions == 0
        assert unchanged.next_review is None


async def test_review_overview(db):
    deck, cards = await _deck_with_cards(db, "alice", "Spanish", 3)
    await _schedule(db, cards[0].id, NOW + timedelta(days=3))
    await _deck_with_cards(db, "bob", "French", 4)

    overview = await sqlite.get_review_overview(db, "alice", NOW)
    assert overview.total_cards == 3
    assert overview.due_now == 2
    assert [d.deck_id for d in overview.per_deck] == [deck.id]
