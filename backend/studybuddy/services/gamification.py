"""
Gamification: XP, levels, streaks and achievements.

Level curve: level = floor(sqrt(total_xp / 100)) + 1, so level L starts at
(L - 1)^2 * 100 XP (L2 at 100, L3 at 400, L4 at 900, ...).
"""
from __future__ import annotations

import logging
import math
from datetime import date, datetime, timezone

import aiosqlite

from studybuddy.db import sqlite
from studybuddy.models.gamification import (
    AchievementCategory,
    AchievementDefinition,
    AchievementTier,
    CatalogEntry,
    GamificationResult,
    Metric,
    UnlockedAchievement,
    XPProgress,
)

logger = logging.getLogger(__name__)

XP_VALUES = {
    "create_note": 5,
    "update_note": 2,
    "create_folder": 3,
    "create_task": 3,
    "complete_task": 10,
    "create_deck": 5,
    "create_flashcard": 2,
    "review_flashcard": 2,
    "review_flashcard_correct": 3,
}

_TIER_ORDER = {
    AchievementTier.BRONZE: 0,
    AchievementTier.SILVER: 1,
    AchievementTier.GOLD: 2,
    AchievementTier.PLATINUM: 3,
}

_B, _S, _G, _P = (
    AchievementTier.BRONZE,
    AchievementTier.SILVER,
    AchievementTier.GOLD,
    AchievementTier.PLATINUM,
)
_NOTES = AchievementCategory.NOTES
_TASKS = AchievementCategory.TASKS
_CARDS = AchievementCategory.FLASHCARDS
_STREAK = AchievementCategory.STREAK
_MASTERY = AchievementCategory.MASTERY

# (key, name, description, icon, xp_reward, category, tier, metric, requirement)
_CATALOG = [
    ("first-note", "First Steps", "Create your first note", "📝", 10, _NOTES, _B, Metric.NOTES, 1),
    ("notes-10", "Note Taker", "Create 10 notes", "📚", 25, _NOTES, _B, Metric.NOTES, 10),
    ("notes-50", "Prolific Writer", "Create 50 notes", "✍️", 100, _NOTES, _S, Metric.NOTES, 50),
    ("notes-100", "Knowledge Builder", "Create 100 notes", "📖", 250, _NOTES, _G, Metric.NOTES, 100),
    ("notes-500", "Master Scribe", "Create 500 notes", "🏆", 1000, _NOTES, _P, Metric.NOTES, 500),
    ("first-folder", "Organizer", "Create your first folder", "📁", 10, _NOTES, _B, Metric.FOLDERS, 1),
    ("folder-master", "Folder Master", "Create 10 folders", "🗂️", 75, _NOTES, _S, Metric.FOLDERS, 10),
    ("first-task", "Getting Organized", "Create your first task", "✅", 10, _TASKS, _B, Metric.TASKS_CREATED, 1),
    ("tasks-completed-10", "Go-Getter", "Complete 10 tasks", "🎯", 50, _TASKS, _B, Metric.TASKS_COMPLETED, 10),
    ("tasks-completed-50", "Productivity Pro", "Complete 50 tasks", "⚡", 150, _TASKS, _S, Metric.TASKS_COMPLETED, 50),
    ("tasks-completed-100", "Task Master", "Complete 100 tasks", "🌟", 300, _TASKS, _G, Metric.TASKS_COMPLETED, 100),
    ("tasks-completed-500", "Efficiency Expert", "Complete 500 tasks", "👑", 1500, _TASKS, _P, Metric.TASKS_COMPLETED, 500),
    ("first-deck", "Deck Builder", "Create your first flashcard deck", "🃏", 10, _CARDS, _B, Metric.DECKS, 1),
    ("deck-collector", "Deck Collector", "Create 10 flashcard decks", "🎴", 100, _CARDS, _S, Metric.DECKS, 10),
    ("cards-reviewed-100", "Memory Apprentice", "Review 100 flashcards", "🧠", 50, _CARDS, _B, Metric.CARDS_REVIEWED, 100),
    ("cards-reviewed-500", "Memory Champion", "Review 500 flashcards", "💡", 200, _CARDS, _S, Metric.CARDS_REVIEWED, 500),
    ("cards-reviewed-1000", "Recall Master", "Review 1000 flashcards", "🎓", 500, _CARDS, _G, Metric.CARDS_REVIEWED, 1000),
    ("cards-reviewed-5000", "Memory Palace", "Review 5000 flashcards", "🏛️", 2000, _CARDS, _P, Metric.CARDS_REVIEWED, 5000),
    ("streak-3", "Getting Started", "Maintain a 3-day study streak", "🔥", 30, _STREAK, _B, Metric.STREAK, 3),
    ("streak-7", "Week Warrior", "Maintain a 7-day study streak", "🌟", 100, _STREAK, _B, Metric.STREAK, 7),
    ("streak-30", "Month Master", "Maintain a 30-day study streak", "📅", 500, _STREAK, _S, Metric.STREAK, 30),
    ("streak-100", "Century Club", "Maintain a 100-day study streak", "💯", 2000, _STREAK, _G, Metric.STREAK, 100),
    ("streak-200", "Consistency Champion", "Maintain a 200-day study streak", "🏆", 5000, _STREAK, _G, Metric.STREAK, 200),
    ("streak-365", "Year of Excellence", "Maintain a 365-day study streak", "👑", 10000, _STREAK, _P, Metric.STREAK, 365),
    ("level-10", "Rising Star", "Reach level 10", "⭐", 100, _MASTERY, _B, Metric.LEVEL, 10),
    ("level-25", "Expert Learner", "Reach level 25", "🌟", 250, _MASTERY, _S, Metric.LEVEL, 25),
    ("level-50", "Master Student", "Reach level 50", "💫", 500, _MASTERY, _G, Metric.LEVEL, 50),
    ("level-100", "Legendary Scholar", "Reach level 100", "🏆", 1000, _MASTERY, _P, Metric.LEVEL, 100),
]

ACHIEVEMENTS: dict[str, AchievementDefinition] = {
    row[0]: AchievementDefinition(
        key=row[0],
        name=row[1],
        description=row[2],
        icon=row[3],
        xp_reward=row[4],
        category=row[5],
        tier=row[6],
        metric=row[7],
        requirement=row[8],
    )
    for row in _CATALOG
}


# --- Level math ---


def calculate_level(total_xp: int) -> int:
    if total_xp < 0:
        return 1
    return math.floor(math.sqrt(total_xp / 100)) + 1


def xp_for_level(level: int) -> int:
    """Total XP at which `level` begins."""
    if level <= 1:
        return 0
    return (level - 1) ** 2 * 100


def xp_for_next_level(current_level: int) -> int:
    return xp_for_level(current_level + 1)


def xp_progress(total_xp: int) -> XPProgress:
    current_level = calculate_level(total_xp)
    current_level_xp = xp_for_level(current_level)
    next_level_xp = xp_for_level(current_level + 1)
    progress_xp = max(0, total_xp - current_level_xp)
    required = next_level_xp - current_level_xp
    return XPProgress(
        current_level=current_level,
        current_level_xp=current_level_xp,
        next_level_xp=next_level_xp,
        progress_xp=progress_xp,
        progress_percentage=math.floor(progress_xp / required * 100),
    )


def next_streak(
    current: int,
    longest: int,
    last_active: date | None,
    today: date,
) -> tuple[int, int]:
    """Return (current, longest) after activity on `today`."""
    if last_active is None:
        return 1, max(longest, 1)
    days = (today - last_active).days
    if days <= 0:
        return current, longest
    if days == 1:
        current += 1
    else:
        current = 1
    return current, max(longest, current)


# --- Catalog helpers ---


def sort_achievements(
    achievements: list[AchievementDefinition],
) -> list[AchievementDefinition]:
    """Bronze to platinum, cheapest first within a tier."""
    return sorted(achievements, key=lambda a: (_TIER_ORDER[a.tier], a.xp_reward))


def achievements_by_category(category: AchievementCategory) -> list[AchievementDefinition]:
    return [a for a in ACHIEVEMENTS.values() if a.category == category]


def achievements_for_metric(metric: Metric, value: int) -> list[AchievementDefinition]:
    return [
        a for a in ACHIEVEMENTS.values() if a.metric == metric and value >= a.requirement
    ]


def merge_results(*results: GamificationResult) -> GamificationResult:
    merged = GamificationResult()
    for result in results:
        merged.xp_gained += result.xp_gained
        merged.achievements_unlocked.extend(result.achievements_unlocked)
        if result.leveled_up:
            if not merged.leveled_up:
                merged.old_level = result.old_level
            merged.leveled_up = True
            merged.new_level = result.new_level
    return merged


# --- Persistence-backed operations ---


async def award_xp(
    db: aiosqlite.Connection, user_id: str, xp: int
) -> GamificationResult:
    old_level, new_level, _ = await sqlite.add_progress_xp(db, user_id, xp, calculate_level)
    result = GamificationResult(
        xp_gained=xp,
        leveled_up=new_level > old_level,
        old_level=old_level,
        new_level=new_level,
    )
    if result.leveled_up:
        logger.info("User %s reached level %d", user_id, new_level)
        result = merge_results(
            result, await check_achievements(db, user_id, Metric.LEVEL, new_level)
        )
    return result


async def unlock_achievement(
    db: aiosqlite.Connection, user_id: str, key: str
) -> GamificationResult:
    """Unlock an achievement once and award its XP; no-op if already held."""
    achievement = ACHIEVEMENTS.get(key)
    if achievement is None:
        return GamificationResult()
    if not await sqlite.insert_user_achievement(db, user_id, key):
        return GamificationResult()

    logger.info("User %s unlocked achievement %s", user_id, key)
    reward = await award_xp(db, user_id, achievement.xp_reward)
    return merge_results(GamificationResult(achievements_unlocked=[achievement]), reward)


async def check_achievements(
    db: aiosqlite.Connection, user_id: str, metric: Metric, value: int
) -> GamificationResult:
    results = [
        await unlock_achievement(db, user_id, a.key)
        for a in achievements_for_metric(metric, value)
    ]
    return merge_results(*results)


async def update_streak(
    db: aiosqlite.Connection, user_id: str, today: date | None = None
) -> tuple[int, GamificationResult]:
    today = today or datetime.now(timezone.utc).date()
    progress = await sqlite.get_or_create_progress(db, user_id)
    current, longest = next_streak(
        progress.current_streak,
        progress.longest_streak,
        progress.last_active_date,
        today,
    )
    if progress.last_active_date == today:
        return current, GamificationResult()

    await sqlite.set_progress_streak(db, user_id, current, longest, today)
    return current, await check_achievements(db, user_id, Metric.STREAK, current)


async def _metric_value(db: aiosqlite.Connection, user_id: str, metric: Metric) -> int:
    if metric == Metric.NOTES:
        return await sqlite.count_notes(db, user_id)
    if metric == Metric.FOLDERS:
        return await sqlite.count_folders(db, user_id)
    if metric == Metric.TASKS_CREATED:
        return await sqlite.count_tasks(db, user_id)
    if metric == Metric.TASKS_COMPLETED:
        return await sqlite.count_tasks(db, user_id, completed=True)
    if metric == Metric.DECKS:
        return await sqlite.count_decks(db, user_id)
    if metric == Metric.CARDS_REVIEWED:
        return await sqlite.count_reviews(db, user_id)
    raise ValueError(f"metric {metric.value} is not a stored counter")


async def record_activity(
    db: aiosqlite.Connection,
    user_id: str,
    action: str,
    metric: Metric | None = None,
) -> GamificationResult:
    """Award XP for an action, bump the streak and check the related counter.

    Best-effort: failures are logged and an empty result is returned so the
    originating request still succeeds.
    """
    try:
        result = await award_xp(db, user_id, XP_VALUES[action])
        _, streak_result = await update_streak(db, user_id)
        result = merge_results(result, streak_result)
        if metric is not None:
            value = await _metric_value(db, user_id, metric)
            result = merge_results(
                result, await check_achievements(db, user_id, metric, value)
            )
        return result
    except Exception:
        logger.warning("Gamification update failed for user %s (%s)", user_id, action, exc_info=True)
        return GamificationResult()


async def unlocked_achievements(
    db: aiosqlite.Connection, user_id: str
) -> list[UnlockedAchievement]:
    return [
        UnlockedAchievement(achievement=ACHIEVEMENTS[key], unlocked_at=unlocked_at)
        for key, unlocked_at in await sqlite.list_user_achievements(db, user_id)
        if key in ACHIEVEMENTS
    ]


async def achievement_catalog(
    db: aiosqlite.Connection, user_id: str
) -> list[CatalogEntry]:
    unlocked = dict(await sqlite.list_user_achievements(db, user_id))
    return [
        CatalogEntry(
            achievement=a,
            unlocked=a.key in unlocked,
            unlocked_at=unlocked.get(a.key),
        )
        for a in sort_achievements(list(ACHIEVEMENTS.values()))
    ]
