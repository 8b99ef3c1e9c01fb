"""
Decks & flashcards router.

Endpoints:
  GET|POST            /decks
  GET|PATCH|DELETE    /decks/{deck_id}
  GET|POST            /decks/{deck_id}/flashcards
  GET|PATCH|DELETE    /decks/{deck_id}/flashcards/{card_id}
  GET                 /decks/{deck_id}/flashcards/{card_id}/statistics
  POST                /decks/{deck_id}/flashcards/{card_id}/review
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone

import aiosqlite
from fastapi import APIRouter, Depends, HTTPException, Request

from studybuddy.auth import CurrentUser, get_current_user
from studybuddy.db.repository import SqliteReviewRepository
from studybuddy.db.sqlite import (
    create_deck,
    create_flashcard,
    delete_deck,
    delete_flashcard,
    get_db,
    get_deck,
    get_flashcard,
    list_decks,
    list_flashcards,
    update_deck,
    update_flashcard_content,
)
from studybuddy.models.flashcard import (
    Deck,
    DeckCreate,
    DeckUpdate,
    Flashcard,
    FlashcardCreate,
    FlashcardUpdate,
    ReviewRequest,
    ReviewResult,
)
from studybuddy.models.gamification import Metric
from studybuddy.services.gamification import record_activity
from studybuddy.services.scheduler import (
    PASSING_QUALITY,
    Scheduler,
    card_statistics,
    interval_description,
)

logger = logging.getLogger(__name__)
router = APIRouter()

_DUPLICATE_DECK = "A deck with this name already exists"


async def _require_deck(db: aiosqlite.Connection, user_id: str, deck_id: str) -> Deck:
    deck = await get_deck(db, user_id, deck_id)
    if not deck:
        raise HTTPException(status_code=404, detail="Deck not found")
    return deck


async def _require_card(
    db: aiosqlite.Connection, user_id: str, deck_id: str, card_id: str
) -> Flashcard:
    await _require_deck(db, user_id, deck_id)
    card = await get_flashcard(db, deck_id, card_id)
    if not card:
        raise HTTPException(status_code=404, detail="Flashcard not found")
    return card


# --- Decks ---

@router.get("", response_model=list[Deck])
async def list_user_decks(
    db: aiosqlite.Connection = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    return await list_decks(db, user.id)


@router.post("", response_model=Deck, status_code=201)
async def create_user_deck(
    body: DeckCreate,
    db: aiosqlite.Connection = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    try:
        deck = await create_deck(db, user.id, body)
    except aiosqlite.IntegrityError as exc:
        raise HTTPException(status_code=409, detail=_DUPLICATE_DECK) from exc
    await record_activity(db, user.id, "create_deck", Metric.DECKS)
    return deck


@router.get("/{deck_id}", response_model=Deck)
async def get_user_deck(
    deck_id: str,
    db: aiosqlite.Connection = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    return await _require_deck(db, user.id, deck_id)


@router.patch("/{deck_id}", response_model=Deck)
async def update_user_deck(
    deck_id: str,
    body: DeckUpdate,
    db: aiosqlite.Connection = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    try:
        deck = await update_deck(db, user.id, deck_id, body)
    except aiosqlite.IntegrityError as exc:
        raise HTTPException(status_code=409, detail=_DUPLICATE_DECK) from exc
    if not deck:
        raise HTTPException(status_code=404, detail="Deck not found")
    return deck


@router.delete("/{deck_id}", status_code=204)
async def delete_user_deck(
    deck_id: str,
    db: aiosqlite.Connection = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    if not await delete_deck(db, user.id, deck_id):
        raise HTTPException(status_code=404, detail="Deck not found")


# --- Flashcards ---

@router.get("/{deck_id}/flashcards", response_model=list[Flashcard])
async def list_deck_flashcards(
    deck_id: str,
    db: aiosqlite.Connection = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    await _require_deck(db, user.id, deck_id)
    return await list_flashcards(db, deck_id)


@router.post("/{deck_id}/flashcards", response_model=Flashcard, status_code=201)
async def create_deck_flashcard(
    deck_id: str,
    body: FlashcardCreate,
    db: aiosqlite.Connection = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    await _require_deck(db, user.id, deck_id)
    try:
        card = await create_flashcard(db, user.id, deck_id, body)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    await record_activity(db, user.id, "create_flashcard")
    return card


@router.get("/{deck_id}/flashcards/{card_id}", response_model=Flashcard)
async def get_deck_flashcard(
    deck_id: str,
    card_id: str,
    db: aiosqlite.Connection = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    return await _require_card(db, user.id, deck_id, card_id)


@router.patch("/{deck_id}/flashcards/{card_id}", response_model=Flashcard)
async def update_deck_flashcard(
    deck_id: str,
    card_id: str,
    body: FlashcardUpdate,
    db: aiosqlite.Connection = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    await _require_deck(db, user.id, deck_id)
    try:
        card = await update_flashcard_content(db, user.id, deck_id, card_id, body)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if not card:
        raise HTTPException(status_code=404, detail="Flashcard not found")
    return card


@router.delete("/{deck_id}/flashcards/{card_id}", status_code=204)
async def delete_deck_flashcard(
    deck_id: str,
    card_id: str,
    db: aiosqlite.Connection = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    await _require_deck(db, user.id, deck_id)
    if not await delete_flashcard(db, deck_id, card_id):
        raise HTTPException(status_code=404, detail="Flashcard not found")


@router.get("/{deck_id}/flashcards/{card_id}/statistics")
async def get_flashcard_statistics(
    deck_id: str,
    card_id: str,
    db: aiosqlite.Connection = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
) -> dict:
    card = await _require_card(db, user.id, deck_id, card_id)
    return card_statistics(card)


@router.post(
    "/{deck_id}/flashcards/{card_id}/review",
    response_model=ReviewResult,
    status_code=201,
)
async def review_flashcard(
    deck_id: str,
    card_id: str,
    body: ReviewRequest,
    request: Request,
    db: aiosqlite.Connection = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
) -> ReviewResult:
    """Submit a recall rating. Runs the scheduler and awards review XP."""
    await _require_card(db, user.id, deck_id, card_id)

    scheduler: Scheduler = request.app.state.scheduler
    now = datetime.now(timezone.utc)
    try:
        recorded = await SqliteReviewRepository(db).record_review(
            card_id, body.rating, scheduler, now
        )
    except aiosqlite.Error as exc:
        logger.exception("Error recording review for flashcard %s", card_id)
        raise HTTPException(status_code=500, detail="Failed to submit review") from exc
    if recorded is None:
        raise HTTPException(status_code=404, detail="Flashcard not found")
    review, card = recorded

    action = (
        "review_flashcard_correct"
        if body.rating >= PASSING_QUALITY
        else "review_flashcard"
    )
    gamification = await record_activity(db, user.id, action, Metric.CARDS_REVIEWED)

    return ReviewResult(
        review=review,
        flashcard=card,
        next_review_in=interval_description(card.next_review, now),
        gamification=gamification,
    )
