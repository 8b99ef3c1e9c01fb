import aiosqlite
from fastapi import APIRouter, Depends, HTTPException

from studybuddy.auth import CurrentUser, get_current_user
from studybuddy.db.sqlite import (
    create_tag,
    delete_tag,
    get_db,
    get_tag,
    list_tags,
    remove_tag_from_item,
    tag_name_taken,
    tagged_items,
    update_tag,
)
from studybuddy.models.note import (
    RemoveTagRequest,
    RemoveTagResult,
    Tag,
    TagCreate,
    TagDetail,
    TagUpdate,
)

router = APIRouter()


@router.get("", response_model=list[Tag])
async def list_user_tags(
    db: aiosqlite.Connection = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    return await list_tags(db, user.id)


@router.post("", response_model=Tag, status_code=201)
async def create_user_tag(
    body: TagCreate,
    db: aiosqlite.Connection = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    try:
        return await create_tag(db, user.id, body)
    except aiosqlite.IntegrityError as exc:
        raise HTTPException(
            status_code=409, detail="A tag with this name already exists"
        ) from exc


@router.get("/{tag_id}", response_model=TagDetail)
async def get_user_tag(
    tag_id: str,
    db: aiosqlite.Connection = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    tag = await get_tag(db, user.id, tag_id)
    if not tag:
        raise HTTPException(status_code=404, detail="Tag not found")
    items = await tagged_items(db, tag_id)
    return TagDetail(
        **tag.model_dump(),
        notes=items["note"],
        tasks=items["task"],
        flashcards=items["flashcard"],
    )


@router.patch("/{tag_id}", response_model=Tag)
async def update_user_tag(
    tag_id: str,
    body: TagUpdate,
    db: aiosqlite.Connection = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    if not await get_tag(db, user.id, tag_id):
        raise HTTPException(status_code=404, detail="Tag not found")
    if body.name is not None:
        body.name = body.name.strip()
        if not body.name:
            raise HTTPException(status_code=400, detail="Tag name cannot be empty")
        if await tag_name_taken(db, user.id, body.name, exclude_id=tag_id):
            raise HTTPException(
                status_code=409, detail="A tag with this name already exists"
            )

    tag = await update_tag(db, user.id, tag_id, body)
    if not tag:
        raise HTTPException(status_code=404, detail="Tag not found")
    return tag


@router.post("/{tag_id}/remove-from-item", response_model=RemoveTagResult)
async def remove_user_tag_from_item(
    tag_id: str,
    body: RemoveTagRequest,
    db: aiosqlite.Connection = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    if not await get_tag(db, user.id, tag_id):
        raise HTTPException(status_code=404, detail="Tag not found")

    deleted = await remove_tag_from_item(db, tag_id, body.item_type, body.item_id)
    message = "Tag removed and deleted (no longer in use)" if deleted else "Tag removed from item"
    return RemoveTagResult(deleted=deleted, message=message)


@router.delete("/{tag_id}", status_code=204)
async def delete_user_tag(
    tag_id: str,
    db: aiosqlite.Connection = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    if not await delete_tag(db, user.id, tag_id):
        raise HTTPException(status_code=404, detail="Tag not found")
