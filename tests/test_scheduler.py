"""
Tests for SM-2 scheduling and due-ness checks
"""
from datetime import timedelta

import pytest

from conftest import utc
from studybuddy.models.flashcard import DueAt, Flashcard, NeverReviewed
from studybuddy.services.scheduler import (
    MIN_EASE_FACTOR,
    ScheduleState,
    SM2Scheduler,
    card_stage,
    card_statistics,
    interval_description,
    is_due_for_review,
)

NOW = utc(2024, 3, 10, 15, 30)


@pytest.fixture
def scheduler() -> SM2Scheduler:
    return SM2Scheduler()


def fresh() -> ScheduleState:
    return ScheduleState(ease_factor=2.5, interval=0, repetitions=0)


class TestIsDueForReview:
    def test_never_reviewed_is_due(self):
        assert is_due_for_review(NeverReviewed(), NOW) is True

    def test_past_review_is_due(self):
        assert is_due_for_review(DueAt(NOW - timedelta(seconds=1)), NOW) is True

    def test_exact_boundary_is_due(self):
        assert is_due_for_review(DueAt(NOW), NOW) is True

    def test_future_review_is_not_due(self):
        assert is_due_for_review(DueAt(NOW + timedelta(hours=2)), NOW) is False


class TestSM2Scheduler:
    def test_interval_progression(self, scheduler):
        state = scheduler.schedule(fresh(), 5, NOW)
        assert (state.repetitions, state.interval) == (1, 1)

        state = scheduler.schedule(state, 5, NOW)
        assert (state.repetitions, state.interval) == (2, 6)

        ease = state.ease_factor + 0.1
        state = scheduler.schedule(state, 5, NOW)
        assert state.repetitions == 3
        assert state.interval == round(6 * ease)

    def test_failed_recall_resets(self, scheduler):
        state = ScheduleState(ease_factor=2.6, interval=15, repetitions=4)
        result = scheduler.schedule(state, 1, NOW)
        assert result.repetitions == 0
        assert result.interval == 1

    def test_ease_factor_floor(self, scheduler):
        state = ScheduleState(ease_factor=1.35, interval=1, repetitions=0)
        for _ in range(5):
            state = scheduler.schedule(state, 0, NOW)
        assert state.ease_factor == MIN_EASE_FACTOR

    def test_perfect_recall_raises_ease(self, scheduler):
        result = scheduler.schedule(fresh(), 5, NOW)
        assert result.ease_factor == pytest.approx(2.6)

    def test_quality_three_lowers_ease(self, scheduler):
        result = scheduler.schedule(fresh(), 3, NOW)
        assert result.ease_factor == pytest.approx(2.36)

    def test_next_review_is_start_of_day_plus_interval(self, scheduler):
        result = scheduler.schedule(fresh(), 4, NOW)
        assert result.next_review == utc(2024, 3, 11)
        assert result.next_review > NOW

    @pytest.mark.parametrize("quality", [-1, 6])
    def test_rejects_out_of_range_quality(self, scheduler, quality):
        with pytest.raises(ValueError):
            scheduler.schedule(fresh(), quality, NOW)


class TestIntervalDescription:
    @pytest.mark.parametrize(
        "days, expected",
        [
            (0, "Later today"),
            (1, "Tomorrow"),
            (3, "In 3 days"),
            (7, "In 1 week"),
            (14, "In 2 weeks"),
            (60, "In 2 months"),
            (400, "In 1 year"),
        ],
    )
    def test_descriptions(self, days, expected):
        start = utc(2024, 3, 10)
        assert interval_description(start + timedelta(days=days), NOW) == expected


def test_card_stage():
    assert card_stage(0, 0) == "new"
    assert card_stage(2, 6) == "learning"
    assert card_stage(3, 15) == "young"
    assert card_stage(5, 30) == "mature"


def _card(next_review) -> Flashcard:
    return Flashcard(
        id="c1",
        deck_id="d1",
        front={"type": "doc", "content": []},
        back={"type": "doc", "content": []},
        ease_factor=2.5,
        interval=0 if next_review is None else 6,
        repetitions=0 if next_review is None else 2,
        last_reviewed=None,
        next_review=next_review,
        created_at=utc(2024, 1, 1),
        updated_at=utc(2024, 1, 1),
    )


class TestCardStatistics:
    def test_unscheduled_card(self):
        stats = card_statistics(_card(None), NOW)
        assert stats["next_review_in"] == "Not scheduled"
        assert stats["is_due"] is True
        assert stats["stage"] == "new"

    def test_scheduled_card_follows_review_state(self):
        stats = card_statistics(_card(utc(2024, 3, 13)), NOW)
        assert stats["next_review_in"] == "In 3 days"
        assert stats["is_due"] is False

        stats = card_statistics(_card(utc(2024, 3, 9)), NOW)
        assert stats["is_due"] is True
