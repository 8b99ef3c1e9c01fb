"""
Advanced search across notes, tasks, flashcards, folders and tags.

Inline syntax is pulled out of the free text before matching:

  type:note|task|flashcard|folder|tag
  tag:<name>              (repeatable, all must match)
  due:today|tomorrow|week|overdue
  completed:true|false|yes|no
  priority:0-3

A collection is skipped when an active filter targets a field it does not
have (e.g. `completed:` only ever returns tasks).
"""
from __future__ import annotations

import html
import logging
import re
from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone

import aiosqlite

from studybuddy.db.sqlite import tags_for_items, to_db_time
from studybuddy.models.search import Highlight, SearchFilters, SearchResult, SearchType

logger = logging.getLogger(__name__)

PER_COLLECTION_LIMIT = 20
SNIPPET_RADIUS = 60

_TYPE_RE = re.compile(r"type:(\w+)", re.IGNORECASE)
_TAG_RE = re.compile(r"tag:(\w+)", re.IGNORECASE)
_DUE_RE = re.compile(r"due:(today|tomorrow|week|overdue)", re.IGNORECASE)
_COMPLETED_RE = re.compile(r"completed:(true|false|yes|no)", re.IGNORECASE)
_PRIORITY_RE = re.compile(r"priority:([0-3])", re.IGNORECASE)
_SPACES_RE = re.compile(r"\s{2,}")


@dataclass(frozen=True)
class _Collection:
    kind: SearchType
    select: str
    alias: str
    text_columns: tuple[str, ...]
    filters: frozenset[str]
    order_by: str
    item_type: str | None = None  # item_tags discriminator


_COLLECTIONS = {
    SearchType.NOTE: _Collection(
        kind=SearchType.NOTE,
        select="""SELECT n.id, n.title, n.content, n.folder_id, fo.name AS folder_name
                  FROM notes n LEFT JOIN folders fo ON fo.id = n.folder_id""",
        alias="n",
        text_columns=("n.title", "n.content"),
        filters=frozenset({"tags", "folder_id", "created_from", "created_to"}),
        order_by="n.updated_at DESC",
        item_type="note",
    ),
    SearchType.TASK: _Collection(
        kind=SearchType.TASK,
        select="""SELECT t.id, t.title, t.description, t.completed, t.priority, t.due_date
                  FROM tasks t""",
        alias="t",
        text_columns=("t.title", "t.description"),
        filters=frozenset(
            {
                "tags",
                "completed",
                "priority",
                "due_date_from",
                "due_date_to",
                "created_from",
                "created_to",
            }
        ),
        order_by="t.updated_at DESC",
        item_type="task",
    ),
    SearchType.FLASHCARD: _Collection(
        kind=SearchType.FLASHCARD,
        select="""SELECT f.id, f.front_text, f.back_text, f.deck_id, d.name AS deck_name
                  FROM flashcards f JOIN decks d ON d.id = f.deck_id""",
        alias="f",
        text_columns=("f.front_text", "f.back_text"),
        filters=frozenset({"tags", "deck_id", "created_from", "created_to"}),
        order_by="f.updated_at DESC",
        item_type="flashcard",
    ),
    SearchType.FOLDER: _Collection(
        kind=SearchType.FOLDER,
        select="SELECT fo.id, fo.name, fo.description, fo.color FROM folders fo",
        alias="fo",
        text_columns=("fo.name", "fo.description"),
        filters=frozenset({"created_from", "created_to"}),
        order_by="fo.name ASC",
    ),
    SearchType.TAG: _Collection(
        kind=SearchType.TAG,
        select="""SELECT tg.id, tg.name, tg.color,
                         (SELECT COUNT(*) FROM item_tags it WHERE it.tag_id = tg.id) AS usage_count
                  FROM tags tg""",
        alias="tg",
        text_columns=("tg.name",),
        filters=frozenset(),
        order_by="tg.name ASC",
    ),
}

# Flashcards are owned through their deck
_OWNER_COLUMN = {
    SearchType.NOTE: "n.user_id",
    SearchType.TASK: "t.user_id",
    SearchType.FLASHCARD: "d.user_id",
    SearchType.FOLDER: "fo.user_id",
    SearchType.TAG: "tg.user_id",
}


def _start_of_day(moment: datetime) -> datetime:
    return datetime.combine(moment.date(), time.min, tzinfo=moment.tzinfo)


def _end_of_day(moment: datetime) -> datetime:
    return datetime.combine(moment.date(), time.max, tzinfo=moment.tzinfo)


def _strip_spans(text: str, spans: list[tuple[int, int]]) -> str:
    keep = [True] * len(text)
    for start, end in spans:
        keep[start:end] = [False] * (end - start)
    return "".join(ch for ch, kept in zip(text, keep) if kept)


def parse_search_query(
    query: str, now: datetime | None = None
) -> tuple[str, SearchFilters]:
    """Split inline filters out of a query string. Returns (clean_query, filters)."""
    now = now or datetime.now(timezone.utc)
    filters = SearchFilters(type=SearchType.ALL)
    spans: list[tuple[int, int]] = []

    match = _TYPE_RE.search(query)
    if match:
        value = match.group(1).lower()
        if value in {t.value for t in SearchType if t != SearchType.ALL}:
            filters.type = SearchType(value)
        spans.append(match.span())

    tags = []
    for match in _TAG_RE.finditer(query):
        tags.append(match.group(1))
        spans.append(match.span())
    if tags:
        filters.tags = tags

    match = _DUE_RE.search(query)
    if match:
        today = _start_of_day(now)
        value = match.group(1).lower()
        if value == "today":
            filters.due_date_from = today
            filters.due_date_to = _end_of_day(today)
        elif value == "tomorrow":
            tomorrow = today + timedelta(days=1)
            filters.due_date_from = tomorrow
            filters.due_date_to = _end_of_day(tomorrow)
        elif value == "week":
            filters.due_date_from = today
            filters.due_date_to = today + timedelta(days=7)
        else:
            filters.due_date_to = today
        spans.append(match.span())

    match = _COMPLETED_RE.search(query)
    if match:
        filters.completed = match.group(1).lower() in ("true", "yes")
        spans.append(match.span())

    match = _PRIORITY_RE.search(query)
    if match:
        filters.priority = int(match.group(1))
        spans.append(match.span())

    clean = _strip_spans(query, spans)
    return _SPACES_RE.sub(" ", clean).strip(), filters


def merge_filters(parsed: SearchFilters, explicit: SearchFilters) -> SearchFilters:
    """Explicit request filters win over ones parsed from the query text."""
    return parsed.model_copy(update=explicit.model_dump(exclude_none=True))


def collections_for(search_type: SearchType | None) -> list[SearchType]:
    if search_type in (None, SearchType.ALL):
        return list(_COLLECTIONS)
    return [search_type]


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def build_collection_query(
    kind: SearchType,
    clean_query: str,
    filters: SearchFilters,
    user_id: str,
    limit: int = PER_COLLECTION_LIMIT,
) -> tuple[str, list] | None:
    """Build the SQL for one collection, or None if the filters rule it out."""
    coll = _COLLECTIONS[kind]
    active = {
        name
        for name, value in filters.model_dump(exclude_none=True).items()
        if name != "type" and value != []
    }
    if active - coll.filters:
        return None

    a = coll.alias
    conditions = [f"{_OWNER_COLUMN[kind]} = ?"]
    params: list = [user_id]

    if clean_query:
        pattern = f"%{_escape_like(clean_query)}%"
        conditions.append(
            "(" + " OR ".join(f"{col} LIKE ? ESCAPE '\\'" for col in coll.text_columns) + ")"
        )
        params.extend([pattern] * len(coll.text_columns))

    for tag in filters.tags or []:
        conditions.append(
            f"""EXISTS (SELECT 1 FROM item_tags it JOIN tags tt ON tt.id = it.tag_id
                        WHERE it.item_type = ? AND it.item_id = {a}.id
                        AND tt.name = ? COLLATE NOCASE)"""
        )
        params.extend([coll.item_type, tag])

    if filters.completed is not None:
        conditions.append(f"{a}.completed = ?")
        params.append(int(filters.completed))
    if filters.priority is not None:
        conditions.append(f"{a}.priority = ?")
        params.append(filters.priority)
    if filters.folder_id:
        conditions.append(f"{a}.folder_id = ?")
        params.append(filters.folder_id)
    if filters.deck_id:
        conditions.append(f"{a}.deck_id = ?")
        params.append(filters.deck_id)
    if filters.due_date_from:
        conditions.append(f"{a}.due_date >= ?")
        params.append(to_db_time(filters.due_date_from))
    if filters.due_date_to:
        conditions.append(f"{a}.due_date <= ?")
        params.append(to_db_time(filters.due_date_to))
    if filters.created_from:
        conditions.append(f"{a}.created_at >= ?")
        params.append(to_db_time(filters.created_from))
    if filters.created_to:
        conditions.append(f"{a}.created_at <= ?")
        params.append(to_db_time(filters.created_to))

    sql = f"{coll.select} WHERE {' AND '.join(conditions)} ORDER BY {coll.order_by} LIMIT ?"
    params.append(limit)
    return sql, params


def highlight(text: str | None, term: str) -> str | None:
    """HTML-escaped snippet of `text` around the first match of `term`, wrapped in <mark>."""
    if not text or not term:
        return None
    idx = text.lower().find(term.lower())
    if idx < 0:
        return None
    start = max(0, idx - SNIPPET_RADIUS)
    end = min(len(text), idx + len(term) + SNIPPET_RADIUS)
    snippet = (
        html.escape(text[start:idx])
        + "<mark>"
        + html.escape(text[idx : idx + len(term)])
        + "</mark>"
        + html.escape(text[idx + len(term) : end])
    )
    return ("…" if start > 0 else "") + snippet + ("…" if end < len(text) else "")


def _to_result(kind: SearchType, row: dict, tags: list[str]) -> SearchResult:
    if kind == SearchType.NOTE:
        url = (
            f"/notes/{row['folder_id']}/edit/{row['id']}"
            if row["folder_id"]
            else f"/notes/{row['id']}"
        )
        return SearchResult(
            type=kind,
            id=row["id"],
            title=row["title"],
            content=row["content"],
            url=url,
            tags=tags,
            metadata={"folder_id": row["folder_id"], "folder_name": row["folder_name"]},
        )
    if kind == SearchType.TASK:
        return SearchResult(
            type=kind,
            id=row["id"],
            title=row["title"],
            content=row["description"],
            url="/tasks",
            tags=tags,
            metadata={
                "completed": bool(row["completed"]),
                "priority": row["priority"],
                "due_date": row["due_date"],
            },
        )
    if kind == SearchType.FLASHCARD:
        return SearchResult(
            type=kind,
            id=row["id"],
            title=row["front_text"],
            content=row["back_text"],
            url=f"/flashcards/{row['deck_id']}",
            tags=tags,
            metadata={"deck_id": row["deck_id"], "deck_name": row["deck_name"]},
        )
    if kind == SearchType.FOLDER:
        return SearchResult(
            type=kind,
            id=row["id"],
            title=row["name"],
            content=row["description"],
            url=f"/notes/{row['id']}",
            metadata={"color": row["color"]},
        )
    return SearchResult(
        type=kind,
        id=row["id"],
        title=row["name"],
        content=f"Used in {row['usage_count']} items",
        url="/tags",
        metadata={"color": row["color"], "usage_count": row["usage_count"]},
    )


async def advanced_search(
    db: aiosqlite.Connection,
    query: str,
    user_id: str,
    filters: SearchFilters | None = None,
) -> tuple[SearchFilters, list[SearchResult]]:
    """Search every applicable collection. Returns the effective filters and the hits."""
    clean_query, parsed = parse_search_query(query)
    merged = merge_filters(parsed, filters or SearchFilters())

    results: list[SearchResult] = []
    for kind in collections_for(merged.type):
        built = build_collection_query(kind, clean_query, merged, user_id)
        if built is None:
            continue
        sql, params = built
        try:
            cursor = await db.execute(sql, params)
            rows = [dict(r) for r in await cursor.fetchall()]
        except aiosqlite.Error:
            logger.exception("Error searching %s", kind.value)
            continue

        item_type = _COLLECTIONS[kind].item_type
        tags = (
            await tags_for_items(db, item_type, [r["id"] for r in rows]) if item_type else {}
        )
        for row in rows:
            result = _to_result(kind, row, tags.get(row["id"], []))
            title_hl = highlight(result.title, clean_query)
            content_hl = highlight(result.content, clean_query)
            if title_hl or content_hl:
                result.highlight = Highlight(title=title_hl, content=content_hl)
            results.append(result)

    return merged, results


async def search_suggestions(
    db: aiosqlite.Connection, query: str, user_id: str
) -> list[str]:
    """Up to five distinct result titles for a partial query."""
    if len(query) < 2:
        return []
    _, results = await advanced_search(db, query, user_id)
    return list(dict.fromkeys(r.title for r in results))[:5]
