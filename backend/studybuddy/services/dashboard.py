"""
Dashboard aggregates: period overview, per-day activity and the activity streak.

All days are UTC calendar days. Weeks start on Sunday.
"""
from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone

import aiosqlite

from studybuddy.db import sqlite
from studybuddy.models.dashboard import (
    DailyActivity,
    DashboardOverview,
    DashboardStats,
    Period,
)

STREAK_LOOKBACK_DAYS = 365


def period_start(period: Period, now: datetime) -> datetime:
    today = now.astimezone(timezone.utc).date()
    if period == "day":
        start = today
    elif period == "week":
        # isoweekday: Monday=1 .. Sunday=7
        start = today - timedelta(days=today.isoweekday() % 7)
    else:
        start = today.replace(day=1)
    return datetime.combine(start, time.min, tzinfo=timezone.utc)


def activity_days(
    start: date, end: date, counts: dict[date, tuple[int, int]]
) -> list[DailyActivity]:
    days = []
    day = start
    while day <= end:
        tasks, cards = counts.get(day, (0, 0))
        days.append(
            DailyActivity(
                label=day.strftime("%a"),
                full_date=day,
                tasks_completed=tasks,
                cards_reviewed=cards,
            )
        )
        day += timedelta(days=1)
    return days


def streak_length(active: set[date], today: date) -> int:
    """Consecutive active days ending today or yesterday.

    An idle today does not break the streak; the day is still in progress.
    """
    streak = 0
    for offset in range(STREAK_LOOKBACK_DAYS):
        day = today - timedelta(days=offset)
        if day in active:
            streak += 1
        elif offset > 0:
            break
    return streak


async def active_days(
    db: aiosqlite.Connection, user_id: str, now: datetime
) -> list[date]:
    since = datetime.combine(
        now.astimezone(timezone.utc).date() - timedelta(days=STREAK_LOOKBACK_DAYS),
        time.min,
        tzinfo=timezone.utc,
    )
    return sorted(await sqlite.activity_dates(db, user_id, since))


async def dashboard_stats(
    db: aiosqlite.Connection, user_id: str, period: Period, now: datetime
) -> DashboardStats:
    start = period_start(period, now)
    today = now.astimezone(timezone.utc).date()

    overview = DashboardOverview(
        total_notes=await sqlite.count_notes(db, user_id),
        total_tasks=await sqlite.count_tasks(db, user_id),
        completed_tasks=await sqlite.count_tasks(db, user_id, completed_since=start),
        total_flashcards=await sqlite.count_flashcards(db, user_id),
        total_decks=await sqlite.count_decks(db, user_id),
        reviews_count=await sqlite.count_reviews(db, user_id, since=start),
        streak=streak_length(set(await active_days(db, user_id, now)), today),
    )
    counts = await sqlite.daily_activity_counts(db, user_id, start)
    return DashboardStats(
        period=period,
        overview=overview,
        activity_data=activity_days(start.date(), today, counts),
        recent_activity=await sqlite.recent_activity(db, user_id, start),
    )
