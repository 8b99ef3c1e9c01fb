"""
Dashboard router.

Endpoints:
  GET /dashboard/stats?period=day|week|month   overview counters, daily activity, recent items
  GET /dashboard/streak                        active days over the last year
"""
from datetime import datetime, timezone

import aiosqlite
from fastapi import APIRouter, Depends, Query

from studybuddy.auth import CurrentUser, get_current_user
from studybuddy.db.sqlite import get_db
from studybuddy.models.dashboard import DashboardStats, Period, StreakDays
from studybuddy.services.dashboard import active_days, dashboard_stats

router = APIRouter()


@router.get("/stats", response_model=DashboardStats)
async def get_dashboard_stats(
    period: Period = Query(default="week"),
    db: aiosqlite.Connection = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    return await dashboard_stats(db, user.id, period, datetime.now(timezone.utc))


@router.get("/streak", response_model=StreakDays)
async def get_streak_days(
    db: aiosqlite.Connection = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    days = await active_days(db, user.id, datetime.now(timezone.utc))
    return StreakDays(active_days=days)
