from datetime import datetime

import aiosqlite
from fastapi import APIRouter, Depends, Query

from studybuddy.auth import CurrentUser, get_current_user
from studybuddy.db.sqlite import get_db
from studybuddy.models.search import SearchFilters, SearchResponse, SearchType
from studybuddy.services.search import advanced_search, search_suggestions

router = APIRouter()


@router.get("/advanced", response_model=SearchResponse)
async def search_advanced(
    q: str = Query(default=""),
    type: SearchType | None = Query(default=None),
    tags: str | None = Query(default=None, description="Comma-separated tag names"),
    completed: bool | None = Query(default=None),
    priority: int | None = Query(default=None, ge=0, le=3),
    folder_id: str | None = Query(default=None, alias="folderId"),
    deck_id: str | None = Query(default=None, alias="deckId"),
    due_date_from: datetime | None = Query(default=None, alias="dueDateFrom"),
    due_date_to: datetime | None = Query(default=None, alias="dueDateTo"),
    created_from: datetime | None = Query(default=None, alias="createdFrom"),
    created_to: datetime | None = Query(default=None, alias="createdTo"),
    db: aiosqlite.Connection = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
) -> SearchResponse:
    """Full-text search over the caller's items; inline `key:value` filters are honoured."""
    tag_list = [t.strip() for t in tags.split(",") if t.strip()] if tags else None
    explicit = SearchFilters(
        type=type,
        tags=tag_list or None,
        completed=completed,
        priority=priority,
        folder_id=folder_id,
        deck_id=deck_id,
        due_date_from=due_date_from,
        due_date_to=due_date_to,
        created_from=created_from,
        created_to=created_to,
    )
    filters, results = await advanced_search(db, q, user.id, explicit)
    return SearchResponse(query=q, filters=filters, results=results, count=len(results))


@router.get("/suggestions", response_model=list[str])
async def get_suggestions(
    q: str = Query(default=""),
    db: aiosqlite.Connection = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    return await search_suggestions(db, q, user.id)
