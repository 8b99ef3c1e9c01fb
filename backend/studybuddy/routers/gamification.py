"""
Gamification router.

Endpoints:
  GET  /gamification/progress       XP, level, streak and unlocked achievements
  POST /gamification/xp             award arbitrary XP (client-side actions)
  GET  /gamification/achievements   full catalog with unlocked flags
"""
import logging

import aiosqlite
from fastapi import APIRouter, Depends, Query

from studybuddy.auth import CurrentUser, get_current_user
from studybuddy.db.sqlite import get_db, get_or_create_progress
from studybuddy.models.gamification import (
    AchievementCategory,
    AwardXPRequest,
    AwardXPResponse,
    CatalogEntry,
    ProgressResponse,
)
from studybuddy.services.gamification import (
    achievement_catalog,
    award_xp,
    unlocked_achievements,
    xp_progress,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/progress", response_model=ProgressResponse)
async def get_progress(
    db: aiosqlite.Connection = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
) -> ProgressResponse:
    progress = await get_or_create_progress(db, user.id)
    return ProgressResponse(
        progress=progress,
        xp_progress=xp_progress(progress.total_xp),
        achievements=await unlocked_achievements(db, user.id),
    )


@router.post("/xp", response_model=AwardXPResponse)
async def post_xp(
    body: AwardXPRequest,
    db: aiosqlite.Connection = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
) -> AwardXPResponse:
    result = await award_xp(db, user.id, body.xp)
    progress = await get_or_create_progress(db, user.id)
    logger.info("Awarded %d XP to user %s (%s)", body.xp, user.id, body.action or "manual")
    return AwardXPResponse(
        xp_gained=body.xp,
        total_xp=progress.total_xp,
        level=progress.level,
        leveled_up=result.leveled_up,
        old_level=result.old_level or progress.level,
        action=body.action,
    )


@router.get("/achievements", response_model=list[CatalogEntry])
async def get_achievements(
    category: AchievementCategory | None = Query(default=None),
    db: aiosqlite.Connection = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    catalog = await achievement_catalog(db, user.id)
    if category is not None:
        catalog = [e for e in catalog if e.achievement.category == category]
    return catalog
