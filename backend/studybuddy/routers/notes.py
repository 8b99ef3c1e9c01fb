import aiosqlite
from fastapi import APIRouter, Depends, HTTPException, Query

from studybuddy.auth import CurrentUser, get_current_user
from studybuddy.db.sqlite import (
    create_folder,
    create_note,
    delete_folder,
    delete_note,
    get_db,
    get_folder,
    get_note,
    list_folders,
    list_notes,
    update_folder,
    update_note,
)
from studybuddy.models.gamification import Metric
from studybuddy.models.note import (
    Folder,
    FolderCreate,
    FolderDetail,
    FolderUpdate,
    Note,
    NoteCreate,
    NoteList,
    NoteUpdate,
)
from studybuddy.services.gamification import record_activity

router = APIRouter()
folders_router = APIRouter()


async def _check_folder(db: aiosqlite.Connection, user_id: str, folder_id: str | None) -> None:
    if folder_id and not await get_folder(db, user_id, folder_id):
        raise HTTPException(status_code=404, detail="Folder not found")


@router.post("", response_model=Note, status_code=201)
async def create_user_note(
    body: NoteCreate,
    db: aiosqlite.Connection = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    await _check_folder(db, user.id, body.folder_id)
    note = await create_note(db, user.id, body)
    await record_activity(db, user.id, "create_note", Metric.NOTES)
    return note


@router.get("", response_model=NoteList)
async def list_user_notes(
    folder_id: str | None = Query(default=None, alias="folderId"),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=200),
    db: aiosqlite.Connection = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    items, total = await list_notes(db, user.id, folder_id, offset, limit)
    return NoteList(items=items, total=total, offset=offset, limit=limit)


@router.get("/{note_id}", response_model=Note)
async def get_user_note(
    note_id: str,
    db: aiosqlite.Connection = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    note = await get_note(db, user.id, note_id)
    if not note:
        raise HTTPException(status_code=404, detail="Note not found")
    return note


@router.patch("/{note_id}", response_model=Note)
async def update_user_note(
    note_id: str,
    body: NoteUpdate,
    db: aiosqlite.Connection = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    await _check_folder(db, user.id, body.folder_id)
    note = await update_note(db, user.id, note_id, body)
    if not note:
        raise HTTPException(status_code=404, detail="Note not found")
    await record_activity(db, user.id, "update_note")
    return note


@router.delete("/{note_id}", status_code=204)
async def delete_user_note(
    note_id: str,
    db: aiosqlite.Connection = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    if not await delete_note(db, user.id, note_id):
        raise HTTPException(status_code=404, detail="Note not found")


# --- Folders ---

@folders_router.get("", response_model=list[Folder])
async def list_user_folders(
    db: aiosqlite.Connection = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    return await list_folders(db, user.id)


@folders_router.post("", response_model=Folder, status_code=201)
async def create_user_folder(
    body: FolderCreate,
    db: aiosqlite.Connection = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    folder = await create_folder(db, user.id, body)
    await record_activity(db, user.id, "create_folder", Metric.FOLDERS)
    return folder


@folders_router.get("/{folder_id}", response_model=FolderDetail)
async def get_user_folder(
    folder_id: str,
    db: aiosqlite.Connection = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    folder = await get_folder(db, user.id, folder_id)
    if not folder:
        raise HTTPException(status_code=404, detail="Folder not found")
    notes, _ = await list_notes(db, user.id, folder_id, 0, folder.note_count)
    return FolderDetail(**folder.model_dump(), notes=notes)


@folders_router.patch("/{folder_id}", response_model=Folder)
async def update_user_folder(
    folder_id: str,
    body: FolderUpdate,
    db: aiosqlite.Connection = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    folder = await update_folder(db, user.id, folder_id, body)
    if not folder:
        raise HTTPException(status_code=404, detail="Folder not found")
    return folder


@folders_router.delete("/{folder_id}", status_code=204)
async def delete_user_folder(
    folder_id: str,
    db: aiosqlite.Connection = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    if not await delete_folder(db, user.id, folder_id):
        raise HTTPException(status_code=404, detail="Folder not found")
