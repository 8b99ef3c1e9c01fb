from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel


class SearchType(str, Enum):
    ALL = "all"
    NOTE = "note"
    TASK = "task"
    FLASHCARD = "flashcard"
    FOLDER = "folder"
    TAG = "tag"


class SearchFilters(BaseModel):
    type: SearchType | None = None
    tags: list[str] | None = None
    completed: bool | None = None
    priority: int | None = None
    folder_id: str | None = None
    deck_id: str | None = None
    due_date_from: datetime | None = None
    due_date_to: datetime | None = None
    created_from: datetime | None = None
    created_to: datetime | None = None


class Highlight(BaseModel):
    title: str | None = None
    content: str | None = None


class SearchResult(BaseModel):
    type: SearchType
    id: str
    title: str
    content: str | None = None
    url: str
    tags: list[str] = []
    metadata: dict[str, Any] = {}
    highlight: Highlight | None = None


class SearchResponse(BaseModel):
    query: str
    filters: SearchFilters
    results: list[SearchResult]
    count: int
