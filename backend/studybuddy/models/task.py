from datetime import datetime

from pydantic import BaseModel, Field


class TaskCreate(BaseModel):
    title: str = Field(min_length=1, max_length=500)
    description: str | None = None
    priority: int = Field(default=0, ge=0, le=3)
    due_date: datetime | None = None
    tag_ids: list[str] = []


class TaskUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=500)
    description: str | None = None
    priority: int | None = Field(default=None, ge=0, le=3)
    due_date: datetime | None = None
    completed: bool | None = None
    tag_ids: list[str] | None = None


class Task(BaseModel):
    id: str
    user_id: str
    title: str
    description: str | None
    priority: int
    due_date: datetime | None
    completed: bool
    completed_at: datetime | None
    order: int = 0
    tags: list[str] = []
    created_at: datetime
    updated_at: datetime


class TaskPosition(BaseModel):
    id: str
    order: int = Field(ge=0)


class TaskReorder(BaseModel):
    tasks: list[TaskPosition]
