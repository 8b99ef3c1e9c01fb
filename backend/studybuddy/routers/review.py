"""
Review queue router.

Endpoints:
  GET  /review/due     cards due now, most overdue first, with bucket stats
  GET  /review/stats   totals and per-deck due counts
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone

import aiosqlite
from fastapi import APIRouter, Depends, HTTPException, Query

from studybuddy.auth import CurrentUser, get_current_user
from studybuddy.db.repository import SqliteReviewRepository
from studybuddy.db.sqlite import get_db, get_review_overview
from studybuddy.models.flashcard import DueFlashcards, ReviewOverview
from studybuddy.services.review_queue import get_due_flashcards

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/due", response_model=DueFlashcards)
async def get_due(
    deck_id: str | None = Query(default=None, alias="deckId"),
    limit: int | None = Query(default=None, ge=0),
    db: aiosqlite.Connection = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
) -> DueFlashcards:
    """Return the caller's due cards. Stats cover every due card, not just the page."""
    repo = SqliteReviewRepository(db)
    try:
        return await get_due_flashcards(
            repo, user.id, datetime.now(timezone.utc), deck_id=deck_id, limit=limit
        )
    except aiosqlite.Error as exc:
        logger.exception("Error fetching due flashcards for user %s", user.id)
        raise HTTPException(
            status_code=500, detail="Failed to fetch due flashcards"
        ) from exc


@router.get("/stats", response_model=ReviewOverview)
async def get_stats(
    db: aiosqlite.Connection = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
) -> ReviewOverview:
    return await get_review_overview(db, user.id, datetime.now(timezone.utc))
