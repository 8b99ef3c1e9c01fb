from __future__ import annotations

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, Field


class AchievementTier(str, Enum):
    BRONZE = "bronze"
    SILVER = "silver"
    GOLD = "gold"
    PLATINUM = "platinum"


class AchievementCategory(str, Enum):
    NOTES = "notes"
    TASKS = "tasks"
    FLASHCARDS = "flashcards"
    STREAK = "streak"
    MASTERY = "mastery"


class Metric(str, Enum):
    """Counter an achievement requirement is measured against."""

    NOTES = "notes"
    FOLDERS = "folders"
    TASKS_CREATED = "tasks_created"
    TASKS_COMPLETED = "tasks_completed"
    DECKS = "decks"
    CARDS_REVIEWED = "cards_reviewed"
    STREAK = "streak"
    LEVEL = "level"


class AchievementDefinition(BaseModel):
    key: str
    name: str
    description: str
    icon: str
    xp_reward: int
    category: AchievementCategory
    tier: AchievementTier
    metric: Metric
    requirement: int


class UnlockedAchievement(BaseModel):
    achievement: AchievementDefinition
    unlocked_at: datetime


class CatalogEntry(BaseModel):
    achievement: AchievementDefinition
    unlocked: bool
    unlocked_at: datetime | None = None


class UserProgress(BaseModel):
    user_id: str
    total_xp: int
    level: int
    current_streak: int
    longest_streak: int
    last_active_date: date | None


class XPProgress(BaseModel):
    current_level: int
    current_level_xp: int
    next_level_xp: int
    progress_xp: int
    progress_percentage: int


class GamificationResult(BaseModel):
    xp_gained: int = 0
    achievements_unlocked: list[AchievementDefinition] = []
    leveled_up: bool = False
    old_level: int | None = None
    new_level: int | None = None


class ProgressResponse(BaseModel):
    progress: UserProgress
    xp_progress: XPProgress
    achievements: list[UnlockedAchievement]


class AwardXPRequest(BaseModel):
    xp: int = Field(gt=0)
    action: str | None = None


class AwardXPResponse(BaseModel):
    xp_gained: int
    total_xp: int
    level: int
    leveled_up: bool
    old_level: int
    action: str | None = None
