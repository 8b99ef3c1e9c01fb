import aiosqlite
from fastapi import APIRouter, Depends, HTTPException, Query

from studybuddy.auth import CurrentUser, get_current_user
from studybuddy.db.sqlite import (
    create_task,
    delete_task,
    get_db,
    get_task,
    list_tasks,
    reorder_tasks,
    update_task,
)
from studybuddy.models.gamification import Metric
from studybuddy.models.task import Task, TaskCreate, TaskReorder, TaskUpdate
from studybuddy.services.gamification import record_activity

router = APIRouter()


@router.get("", response_model=list[Task])
async def list_user_tasks(
    completed: bool | None = Query(default=None),
    db: aiosqlite.Connection = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    return await list_tasks(db, user.id, completed)


@router.post("", response_model=Task, status_code=201)
async def create_user_task(
    body: TaskCreate,
    db: aiosqlite.Connection = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    task = await create_task(db, user.id, body)
    await record_activity(db, user.id, "create_task", Metric.TASKS_CREATED)
    return task


@router.post("/reorder")
async def reorder_user_tasks(
    body: TaskReorder,
    db: aiosqlite.Connection = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    updated = await reorder_tasks(db, user.id, body.tasks)
    return {"success": True, "updated": updated}


@router.patch("/{task_id}", response_model=Task)
async def update_user_task(
    task_id: str,
    body: TaskUpdate,
    db: aiosqlite.Connection = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    before = await get_task(db, user.id, task_id)
    if not before:
        raise HTTPException(status_code=404, detail="Task not found")

    task = await update_task(db, user.id, task_id, body)
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")

    # XP only on the open -> done transition
    if task.completed and not before.completed:
        await record_activity(db, user.id, "complete_task", Metric.TASKS_COMPLETED)
    return task


@router.delete("/{task_id}", status_code=204)
async def delete_user_task(
    task_id: str,
    db: aiosqlite.Connection = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    if not await delete_task(db, user.id, task_id):
        raise HTTPException(status_code=404, detail="Task not found")
