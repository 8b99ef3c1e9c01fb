from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel

Period = Literal["day", "week", "month"]


class DashboardOverview(BaseModel):
    total_notes: int
    total_tasks: int
    completed_tasks: int
    total_flashcards: int
    total_decks: int
    reviews_count: int
    streak: int


class DailyActivity(BaseModel):
    label: str
    full_date: date
    tasks_completed: int = 0
    cards_reviewed: int = 0


class ActivityItem(BaseModel):
    id: str
    type: Literal["note", "task", "deck"]
    title: str
    timestamp: datetime


class DashboardStats(BaseModel):
    period: Period
    overview: DashboardOverview
    activity_data: list[DailyActivity]
    recent_activity: list[ActivityItem]


class StreakDays(BaseModel):
    active_days: list[date]
