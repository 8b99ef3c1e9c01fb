from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class FolderCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: str | None = None
    color: str | None = None


class Folder(BaseModel):
    id: str
    user_id: str
    name: str
    description: str | None
    color: str | None
    note_count: int = 0
    created_at: datetime


class NoteCreate(BaseModel):
    title: str = Field(min_length=1, max_length=500)
    content: str = ""
    folder_id: str | None = None
    tag_ids: list[str] = []


class NoteUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=500)
    content: str | None = None
    folder_id: str | None = None
    tag_ids: list[str] | None = None


class Note(BaseModel):
    id: str
    user_id: str
    folder_id: str | None
    title: str
    content: str
    tags: list[str] = []
    created_at: datetime
    updated_at: datetime


class NoteList(BaseModel):
    items: list[Note]
    total: int
    offset: int
    limit: int


class TagCreate(BaseModel):
    name: str = Field(min_length=1, max_length=50)
    color: str = "#5e5e5e"


class Tag(BaseModel):
    id: str
    user_id: str
    name: str
    color: str
    usage_count: int = 0


class FolderUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    color: str | None = None


class FolderDetail(Folder):
    notes: list[Note] = []


class TagUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=50)
    color: str | None = None


class TaggedItem(BaseModel):
    id: str
    title: str


class TagDetail(Tag):
    notes: list[TaggedItem] = []
    tasks: list[TaggedItem] = []
    flashcards: list[TaggedItem] = []


class RemoveTagRequest(BaseModel):
    item_type: Literal["note", "task", "flashcard"]
    item_id: str


class RemoveTagResult(BaseModel):
    success: bool = True
    deleted: bool
    message: str
