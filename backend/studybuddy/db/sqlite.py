import json
import uuid
from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from pathlib import Path
from typing import AsyncIterator

import aiosqlite
from fastapi import Request

from studybuddy.models.dashboard import ActivityItem
from studybuddy.models.flashcard import (
    Deck,
    DeckCreate,
    DeckReviewStats,
    DeckSummary,
    DeckUpdate,
    DueFlashcard,
    Flashcard,
    FlashcardCreate,
    FlashcardUpdate,
    Review,
    ReviewOverview,
)
from studybuddy.models.gamification import UserProgress
from studybuddy.models.note import (
    Folder,
    FolderCreate,
    FolderUpdate,
    Note,
    NoteCreate,
    NoteUpdate,
    Tag,
    TagCreate,
    TaggedItem,
    TagUpdate,
)
from studybuddy.models.task import Task, TaskCreate, TaskPosition, TaskUpdate
from studybuddy.services.rich_text import document_text, to_document

SCHEMA_SQL = """
PRAGMA journal_mode=WAL;
PRAGMA foreign_keys=ON;

CREATE TABLE IF NOT EXISTS decks (
    id          TEXT PRIMARY KEY,
    user_id     TEXT NOT NULL,
    name        TEXT NOT NULL,
    description TEXT,
    color       TEXT,
    created_at  TEXT NOT NULL,
    updated_at  TEXT NOT NULL,
    UNIQUE (user_id, name)
);
CREATE INDEX IF NOT EXISTS idx_decks_user ON decks(user_id);

CREATE TABLE IF NOT EXISTS flashcards (
    id            TEXT PRIMARY KEY,
    deck_id       TEXT NOT NULL REFERENCES decks(id) ON DELETE CASCADE,
    front         TEXT NOT NULL,
    back          TEXT NOT NULL,
    front_text    TEXT NOT NULL DEFAULT '',
    back_text     TEXT NOT NULL DEFAULT '',
    ease_factor   REAL NOT NULL DEFAULT 2.5,
    interval      INTEGER NOT NULL DEFAULT 0,
    repetitions   INTEGER NOT NULL DEFAULT 0 CHECK (repetitions >= 0),
    last_reviewed TEXT,
    next_review   TEXT,
    created_at    TEXT NOT NULL,
    updated_at    TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_flashcards_deck ON flashcards(deck_id);
CREATE INDEX IF NOT EXISTS idx_flashcards_review ON flashcards(deck_id, next_review);

CREATE TABLE IF NOT EXISTS reviews (
    id           TEXT PRIMARY KEY,
    flashcard_id TEXT NOT NULL REFERENCES flashcards(id) ON DELETE CASCADE,
    quality      INTEGER NOT NULL,
    reviewed_at  TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_reviews_flashcard ON reviews(flashcard_id);

CREATE TABLE IF NOT EXISTS folders (
    id          TEXT PRIMARY KEY,
    user_id     TEXT NOT NULL,
    name        TEXT NOT NULL,
    description TEXT,
    color       TEXT,
    created_at  TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_folders_user ON folders(user_id);

CREATE TABLE IF NOT EXISTS notes (
    id          TEXT PRIMARY KEY,
    user_id     TEXT NOT NULL,
    folder_id   TEXT REFERENCES folders(id) ON DELETE SET NULL,
    title       TEXT NOT NULL,
    content     TEXT NOT NULL DEFAULT '',
    created_at  TEXT NOT NULL,
    updated_at  TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_notes_user ON notes(user_id);

CREATE TABLE IF NOT EXISTS tasks (
    id           TEXT PRIMARY KEY,
    user_id      TEXT NOT NULL,
    title        TEXT NOT NULL,
    description  TEXT,
    priority     INTEGER NOT NULL DEFAULT 0,
    due_date     TEXT,
    completed    INTEGER NOT NULL DEFAULT 0,
    completed_at TEXT,
    created_at   TEXT NOT NULL,
    updated_at   TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_tasks_user ON tasks(user_id);

CREATE TABLE IF NOT EXISTS tags (
    id      TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    name    TEXT NOT NULL,
    color   TEXT NOT NULL DEFAULT '#5e5e5e',
    UNIQUE (user_id, name)
);

CREATE TABLE IF NOT EXISTS item_tags (
    tag_id    TEXT NOT NULL REFERENCES tags(id) ON DELETE CASCADE,
    item_type TEXT NOT NULL,
    item_id   TEXT NOT NULL,
    PRIMARY KEY (tag_id, item_type, item_id)
);
CREATE INDEX IF NOT EXISTS idx_item_tags_item ON item_tags(item_type, item_id);

CREATE TABLE IF NOT EXISTS user_progress (
    user_id          TEXT PRIMARY KEY,
    total_xp         INTEGER NOT NULL DEFAULT 0,
    level            INTEGER NOT NULL DEFAULT 1,
    current_streak   INTEGER NOT NULL DEFAULT 0,
    longest_streak   INTEGER NOT NULL DEFAULT 0,
    last_active_date TEXT,
    updated_at       TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS user_achievements (
    user_id         TEXT NOT NULL,
    achievement_key TEXT NOT NULL,
    unlocked_at     TEXT NOT NULL,
    PRIMARY KEY (user_id, achievement_key)
);

CREATE TABLE IF NOT EXISTS schema_version (
    version    INTEGER PRIMARY KEY,
    applied_at TEXT NOT NULL DEFAULT (datetime('now'))
);
INSERT OR IGNORE INTO schema_version(version) VALUES (1);
"""


class Database:
    """Owns the SQLite file location; hands out one connection per unit of work."""

    def __init__(self, path: Path) -> None:
        self.path = path

    async def init(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(self.path) as db:
            await db.executescript(SCHEMA_SQL)

            cursor = await db.execute("SELECT MAX(version) FROM schema_version")
            row = await cursor.fetchone()
            current_version = row[0] if row and row[0] else 0

            if current_version < 2:
                await db.executescript("""
                    ALTER TABLE tasks ADD COLUMN sort_order INTEGER NOT NULL DEFAULT 0;
                    CREATE INDEX IF NOT EXISTS idx_tasks_order ON tasks(user_id, sort_order);
                    INSERT OR IGNORE INTO schema_version(version) VALUES (2);
                """)
            await db.commit()

    @asynccontextmanager
    async def connect(self) -> AsyncIterator[aiosqlite.Connection]:
        async with aiosqlite.connect(self.path) as db:
            db.row_factory = aiosqlite.Row
            await db.execute("PRAGMA foreign_keys=ON")
            yield db

    async def close(self) -> None:
        async with aiosqlite.connect(self.path) as db:
            await db.execute("PRAGMA wal_checkpoint(TRUNCATE)")


async def get_db(request: Request) -> AsyncIterator[aiosqlite.Connection]:
    database: Database = request.app.state.database
    async with database.connect() as db:
        yield db


def to_db_time(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _now() -> str:
    return to_db_time(datetime.now(timezone.utc))


def _new_id() -> str:
    return str(uuid.uuid4())


async def _count(db: aiosqlite.Connection, sql: str, params: tuple = ()) -> int:
    cursor = await db.execute(sql, params)
    row = await cursor.fetchone()
    return row[0] if row and row[0] is not None else 0


# --- Tags ---


async def _set_item_tags(
    db: aiosqlite.Connection,
    user_id: str,
    item_type: str,
    item_id: str,
    tag_ids: list[str],
) -> None:
    """Replace an item's tags. Tags owned by other users are ignored."""
    await db.execute(
        "DELETE FROM item_tags WHERE item_type = ? AND item_id = ?",
        (item_type, item_id),
    )
    for tag_id in dict.fromkeys(tag_ids):
        await db.execute(
            """INSERT INTO item_tags (tag_id, item_type, item_id)
               SELECT id, ?, ? FROM tags WHERE id = ? AND user_id = ?""",
            (item_type, item_id, tag_id, user_id),
        )


async def tags_for_items(
    db: aiosqlite.Connection, item_type: str, item_ids: list[str]
) -> dict[str, list[str]]:
    if not item_ids:
        return {}
    placeholders = ", ".join("?" for _ in item_ids)
    cursor = await db.execute(
        f"""SELECT it.item_id, t.name FROM item_tags it
            JOIN tags t ON t.id = it.tag_id
            WHERE it.item_type = ? AND it.item_id IN ({placeholders})
            ORDER BY t.name""",  # noqa: S608
        (item_type, *item_ids),
    )
    result: dict[str, list[str]] = {}
    for row in await cursor.fetchall():
        result.setdefault(row[0], []).append(row[1])
    return result


async def _drop_item_tags(
    db: aiosqlite.Connection, item_type: str, item_ids: list[str]
) -> None:
    for item_id in item_ids:
        await db.execute(
            "DELETE FROM item_tags WHERE item_type = ? AND item_id = ?",
            (item_type, item_id),
        )


async def create_tag(db: aiosqlite.Connection, user_id: str, body: TagCreate) -> Tag:
    tag_id = _new_id()
    await db.execute(
        "INSERT INTO tags (id, user_id, name, color) VALUES (?, ?, ?, ?)",
        (tag_id, user_id, body.name, body.color),
    )
    await db.commit()
    return Tag(id=tag_id, user_id=user_id, name=body.name, color=body.color)


async def list_tags(db: aiosqlite.Connection, user_id: str) -> list[Tag]:
    cursor = await db.execute(
        """SELECT t.*, COUNT(it.item_id) AS usage_count
           FROM tags t LEFT JOIN item_tags it ON it.tag_id = t.id
           WHERE t.user_id = ?
           GROUP BY t.id
           ORDER BY t.name ASC""",
        (user_id,),
    )
    return [Tag(**dict(r)) for r in await cursor.fetchall()]


async def delete_tag(db: aiosqlite.Connection, user_id: str, tag_id: str) -> bool:
    cursor = await db.execute(
        "DELETE FROM tags WHERE id = ? AND user_id = ?", (tag_id, user_id)
    )
    await db.commit()
    return (cursor.rowcount or 0) > 0


async def get_tag(db: aiosqlite.Connection, user_id: str, tag_id: str) -> Tag | None:
    cursor = await db.execute(
        """SELECT t.*, COUNT(it.item_id) AS usage_count
           FROM tags t LEFT JOIN item_tags it ON it.tag_id = t.id
           WHERE t.id = ? AND t.user_id = ?
           GROUP BY t.id""",
        (tag_id, user_id),
    )
    row = await cursor.fetchone()
    return Tag(**dict(row)) if row else None


async def tag_name_taken(
    db: aiosqlite.Connection, user_id: str, name: str, exclude_id: str | None = None
) -> bool:
    return bool(
        await _count(
            db,
            """SELECT COUNT(*) FROM tags
               WHERE user_id = ? AND name = ? COLLATE NOCASE AND id != ?""",
            (user_id, name, exclude_id or ""),
        )
    )


async def update_tag(
    db: aiosqlite.Connection, user_id: str, tag_id: str, updates: TagUpdate
) -> Tag | None:
    fields = updates.model_dump(exclude_unset=True, exclude_none=True)
    if fields:
        set_clause = ", ".join(f"{k} = ?" for k in fields)
        cursor = await db.execute(
            f"UPDATE tags SET {set_clause} WHERE id = ? AND user_id = ?",  # noqa: S608
            list(fields.values()) + [tag_id, user_id],
        )
        await db.commit()
        if not cursor.rowcount:
            return None
    return await get_tag(db, user_id, tag_id)


async def tagged_items(
    db: aiosqlite.Connection, tag_id: str
) -> dict[str, list[TaggedItem]]:
    """Items carrying a tag, grouped by item type. Flashcards are titled by their front text."""
    cursor = await db.execute(
        """SELECT 'note', n.id, n.title FROM item_tags it
               JOIN notes n ON n.id = it.item_id
               WHERE it.tag_id = ? AND it.item_type = 'note'
           UNION ALL
           SELECT 'task', t.id, t.title FROM item_tags it
               JOIN tasks t ON t.id = it.item_id
               WHERE it.tag_id = ? AND it.item_type = 'task'
           UNION ALL
           SELECT 'flashcard', f.id, f.front_text FROM item_tags it
               JOIN flashcards f ON f.id = it.item_id
               WHERE it.tag_id = ? AND it.item_type = 'flashcard'
           ORDER BY 3""",
        (tag_id, tag_id, tag_id),
    )
    grouped: dict[str, list[TaggedItem]] = {"note": [], "task": [], "flashcard": []}
    for row in await cursor.fetchall():
        grouped[row[0]].append(TaggedItem(id=row[1], title=row[2]))
    return grouped


async def remove_tag_from_item(
    db: aiosqlite.Connection, tag_id: str, item_type: str, item_id: str
) -> bool:
    """Detach a tag from one item and drop the tag once nothing uses it.

    Returns True when the tag itself was deleted.
    """
    await db.execute(
        "DELETE FROM item_tags WHERE tag_id = ? AND item_type = ? AND item_id = ?",
        (tag_id, item_type, item_id),
    )
    remaining = await _count(
        db, "SELECT COUNT(*) FROM item_tags WHERE tag_id = ?", (tag_id,)
    )
    if not remaining:
        await db.execute("DELETE FROM tags WHERE id = ?", (tag_id,))
    await db.commit()
    return remaining == 0


# --- Decks ---


def _row_to_deck(row: aiosqlite.Row) -> Deck:
    return Deck(**dict(row))


async def create_deck(db: aiosqlite.Connection, user_id: str, body: DeckCreate) -> Deck:
    """Raises aiosqlite.IntegrityError if the user already has a deck with that name."""
    deck_id = _new_id()
    now = _now()
    await db.execute(
        """INSERT INTO decks (id, user_id, name, description, color, created_at, updated_at)
           VALUES (?, ?, ?, ?, ?, ?, ?)""",
        (deck_id, user_id, body.name, body.description, body.color, now, now),
    )
    await db.commit()
    return await get_deck(db, user_id, deck_id)  # type: ignore[return-value]


async def get_deck(db: aiosqlite.Connection, user_id: str, deck_id: str) -> Deck | None:
    cursor = await db.execute(
        """SELECT d.*, (SELECT COUNT(*) FROM flashcards f WHERE f.deck_id = d.id) AS card_count
           FROM decks d WHERE d.id = ? AND d.user_id = ?""",
        (deck_id, user_id),
    )
    row = await cursor.fetchone()
    return _row_to_deck(row) if row else None


async def list_decks(db: aiosqlite.Connection, user_id: str) -> list[Deck]:
    cursor = await db.execute(
        """SELECT d.*, (SELECT COUNT(*) FROM flashcards f WHERE f.deck_id = d.id) AS card_count
           FROM decks d WHERE d.user_id = ?
           ORDER BY d.updated_at DESC""",
        (user_id,),
    )
    return [_row_to_deck(r) for r in await cursor.fetchall()]


async def update_deck(
    db: aiosqlite.Connection, user_id: str, deck_id: str, updates: DeckUpdate
) -> Deck | None:
    fields = updates.model_dump(exclude_unset=True)
    if not fields:
        return await get_deck(db, user_id, deck_id)

    fields["updated_at"] = _now()
    set_clause = ", ".join(f"{k} = ?" for k in fields)
    values = list(fields.values()) + [deck_id, user_id]

    await db.execute(
        f"UPDATE decks SET {set_clause} WHERE id = ? AND user_id = ?",  # noqa: S608
        values,
    )
    await db.commit()
    return await get_deck(db, user_id, deck_id)


async def delete_deck(db: aiosqlite.Connection, user_id: str, deck_id: str) -> bool:
    cursor = await db.execute(
        """SELECT f.id FROM flashcards f JOIN decks d ON d.id = f.deck_id
           WHERE d.id = ? AND d.user_id = ?""",
        (deck_id, user_id),
    )
    card_ids = [r[0] for r in await cursor.fetchall()]
    await _drop_item_tags(db, "flashcard", card_ids)
    cursor = await db.execute(
        "DELETE FROM decks WHERE id = ? AND user_id = ?", (deck_id, user_id)
    )
    await db.commit()
    return (cursor.rowcount or 0) > 0


async def count_decks(db: aiosqlite.Connection, user_id: str) -> int:
    return await _count(db, "SELECT COUNT(*) FROM decks WHERE user_id = ?", (user_id,))


# --- Flashcards ---


def _flashcard_fields(row: aiosqlite.Row) -> dict:
    d = dict(row)
    d["front"] = json.loads(d["front"])
    d["back"] = json.loads(d["back"])
    return d


async def _attach_card_tags(
    db: aiosqlite.Connection, cards: list[Flashcard]
) -> list[Flashcard]:
    tags = await tags_for_items(db, "flashcard", [c.id for c in cards])
    for card in cards:
        card.tags = tags.get(card.id, [])
    return cards


async def create_flashcard(
    db: aiosqlite.Connection, user_id: str, deck_id: str, body: FlashcardCreate
) -> Flashcard:
    card_id = _new_id()
    now = _now()
    front = to_document(body.front)
    back = to_document(body.back)
    await db.execute(
        """INSERT INTO flashcards
           (id, deck_id, front, back, front_text, back_text, created_at, updated_at)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
        (
            card_id,
            deck_id,
            json.dumps(front),
            json.dumps(back),
            document_text(front),
            document_text(back),
            now,
            now,
        ),
    )
    await _set_item_tags(db, user_id, "flashcard", card_id, body.tag_ids)
    await db.execute("UPDATE decks SET updated_at = ? WHERE id = ?", (now, deck_id))
    await db.commit()
    return await get_flashcard(db, deck_id, card_id)  # type: ignore[return-value]


async def get_flashcard(
    db: aiosqlite.Connection, deck_id: str, card_id: str
) -> Flashcard | None:
    cursor = await db.execute(
        "SELECT * FROM flashcards WHERE id = ? AND deck_id = ?", (card_id, deck_id)
    )
    row = await cursor.fetchone()
    if row is None:
        return None
    (card,) = await _attach_card_tags(db, [Flashcard(**_flashcard_fields(row))])
    return card


async def list_flashcards(db: aiosqlite.Connection, deck_id: str) -> list[Flashcard]:
    cursor = await db.execute(
        "SELECT * FROM flashcards WHERE deck_id = ? ORDER BY created_at ASC, rowid ASC",
        (deck_id,),
    )
    cards = [Flashcard(**_flashcard_fields(r)) for r in await cursor.fetchall()]
    return await _attach_card_tags(db, cards)


async def update_flashcard_content(
    db: aiosqlite.Connection,
    user_id: str,
    deck_id: str,
    card_id: str,
    update: FlashcardUpdate,
) -> Flashcard | None:
    card = await get_flashcard(db, deck_id, card_id)
    if not card:
        return None
    front = to_document(update.front) if update.front is not None else card.front
    back = to_document(update.back) if update.back is not None else card.back
    now = _now()
    await db.execute(
        """UPDATE flashcards
           SET front = ?, back = ?, front_text = ?, back_text = ?, updated_at = ?
           WHERE id = ?""",
        (
            json.dumps(front),
            json.dumps(back),
            document_text(front),
            document_text(back),
            now,
            card_id,
        ),
    )
    if update.tag_ids is not None:
        await _set_item_tags(db, user_id, "flashcard", card_id, update.tag_ids)
    await db.commit()
    return await get_flashcard(db, deck_id, card_id)


async def delete_flashcard(db: aiosqlite.Connection, deck_id: str, card_id: str) -> bool:
    await _drop_item_tags(db, "flashcard", [card_id])
    cursor = await db.execute(
        "DELETE FROM flashcards WHERE id = ? AND deck_id = ?", (card_id, deck_id)
    )
    await db.commit()
    return (cursor.rowcount or 0) > 0


async def find_due_flashcards(
    db: aiosqlite.Connection,
    user_id: str,
    now: datetime,
    deck_id: str | None = None,
) -> list[DueFlashcard]:
    """Cards owned by the user that were never reviewed or whose review time has passed."""
    sql = """SELECT f.*, d.name AS deck_name, d.color AS deck_color
             FROM flashcards f
             JOIN decks d ON d.id = f.deck_id
             WHERE d.user_id = ?
             AND (f.next_review IS NULL OR f.next_review <= ?)"""
    params: list = [user_id, to_db_time(now)]
    if deck_id:
        sql += " AND f.deck_id = ?"
        params.append(deck_id)
    sql += " ORDER BY f.next_review IS NOT NULL, f.next_review ASC, f.created_at ASC, f.rowid ASC"

    cursor = await db.execute(sql, params)
    cards: list[DueFlashcard] = []
    for row in await cursor.fetchall():
        fields = _flashcard_fields(row)
        fields["deck"] = DeckSummary(
            id=fields["deck_id"],
            name=fields.pop("deck_name"),
            color=fields.pop("deck_color"),
        )
        cards.append(DueFlashcard(**fields))
    return await _attach_card_tags(db, cards)  # type: ignore[return-value]


async def record_review(
    db: aiosqlite.Connection,
    card_id: str,
    quality: int,
    apply_schedule,
    now: datetime,
) -> tuple[Review, Flashcard] | None:
    """Apply a review to a card inside one write transaction.

    `apply_schedule(card) -> (ease_factor, interval, repetitions, next_review)`
    runs against the state read under the write lock, so concurrent reviews of
    the same card serialize instead of overwriting each other.
    """
    await db.execute("BEGIN IMMEDIATE")
    try:
        cursor = await db.execute("SELECT * FROM flashcards WHERE id = ?", (card_id,))
        row = await cursor.fetchone()
        if row is None:
            await db.rollback()
            return None
        card = Flashcard(**_flashcard_fields(row))
        ease_factor, interval, repetitions, next_review = apply_schedule(card)

        reviewed_at = to_db_time(now)
        await db.execute(
            """UPDATE flashcards
               SET ease_factor = ?, interval = ?, repetitions = ?,
                   last_reviewed = ?, next_review = ?, updated_at = ?
               WHERE id = ?""",
            (
                ease_factor,
                interval,
                repetitions,
                reviewed_at,
                to_db_time(next_review),
                reviewed_at,
                card_id,
            ),
        )
        review_id = _new_id()
        await db.execute(
            "INSERT INTO reviews (id, flashcard_id, quality, reviewed_at) VALUES (?, ?, ?, ?)",
            (review_id, card_id, quality, reviewed_at),
        )
        await db.commit()
    except BaseException:
        await db.rollback()
        raise

    updated = await get_flashcard(db, card.deck_id, card_id)
    review = Review(
        id=review_id, flashcard_id=card_id, quality=quality, reviewed_at=reviewed_at
    )
    return review, updated  # type: ignore[return-value]


async def count_reviews(
    db: aiosqlite.Connection, user_id: str, since: datetime | None = None
) -> int:
    sql = """SELECT COUNT(*) FROM reviews r
             JOIN flashcards f ON f.id = r.flashcard_id
             JOIN decks d ON d.id = f.deck_id
             WHERE d.user_id = ?"""
    params: list = [user_id]
    if since is not None:
        sql += " AND r.reviewed_at >= ?"
        params.append(to_db_time(since))
    return await _count(db, sql, tuple(params))


async def count_flashcards(db: aiosqlite.Connection, user_id: str) -> int:
    return await _count(
        db,
        """SELECT COUNT(*) FROM flashcards f
           JOIN decks d ON d.id = f.deck_id
           WHERE d.user_id = ?""",
        (user_id,),
    )


async def get_review_overview(
    db: aiosqlite.Connection, user_id: str, now: datetime
) -> ReviewOverview:
    """Total cards, cards due now, and a per-deck breakdown."""
    cursor = await db.execute(
        """SELECT d.id, d.name,
                  COUNT(f.id) AS total,
                  SUM(CASE WHEN f.id IS NOT NULL
                           AND (f.next_review IS NULL OR f.next_review <= ?)
                      THEN 1 ELSE 0 END) AS due
           FROM decks d
           LEFT JOIN flashcards f ON f.deck_id = d.id
           WHERE d.user_id = ?
           GROUP BY d.id
           ORDER BY d.name ASC""",
        (to_db_time(now), user_id),
    )
    per_deck = [
        DeckReviewStats(deck_id=row[0], name=row[1], total=row[2], due=row[3] or 0)
        for row in await cursor.fetchall()
    ]
    return ReviewOverview(
        total_cards=sum(d.total for d in per_deck),
        due_now=sum(d.due for d in per_deck),
        per_deck=per_deck,
    )


# --- Folders ---


async def create_folder(
    db: aiosqlite.Connection, user_id: str, body: FolderCreate
) -> Folder:
    folder_id = _new_id()
    now = _now()
    await db.execute(
        """INSERT INTO folders (id, user_id, name, description, color, created_at)
           VALUES (?, ?, ?, ?, ?, ?)""",
        (folder_id, user_id, body.name, body.description, body.color, now),
    )
    await db.commit()
    return Folder(
        id=folder_id,
        user_id=user_id,
        name=body.name,
        description=body.description,
        color=body.color,
        created_at=now,
    )


async def get_folder(
    db: aiosqlite.Connection, user_id: str, folder_id: str
) -> Folder | None:
    cursor = await db.execute(
        """SELECT fo.*, (SELECT COUNT(*) FROM notes n WHERE n.folder_id = fo.id) AS note_count
           FROM folders fo WHERE fo.id = ? AND fo.user_id = ?""",
        (folder_id, user_id),
    )
    row = await cursor.fetchone()
    return Folder(**dict(row)) if row else None


async def list_folders(db: aiosqlite.Connection, user_id: str) -> list[Folder]:
    cursor = await db.execute(
        """SELECT fo.*, (SELECT COUNT(*) FROM notes n WHERE n.folder_id = fo.id) AS note_count
           FROM folders fo WHERE fo.user_id = ?
           ORDER BY fo.name ASC""",
        (user_id,),
    )
    return [Folder(**dict(r)) for r in await cursor.fetchall()]


async def delete_folder(db: aiosqlite.Connection, user_id: str, folder_id: str) -> bool:
    cursor = await db.execute(
        "DELETE FROM folders WHERE id = ? AND user_id = ?", (folder_id, user_id)
    )
    await db.commit()
    return (cursor.rowcount or 0) > 0


async def update_folder(
    db: aiosqlite.Connection, user_id: str, folder_id: str, updates: FolderUpdate
) -> Folder | None:
    fields = updates.model_dump(exclude_unset=True)
    if fields.get("name", "") is None:
        fields.pop("name")
    if fields:
        set_clause = ", ".join(f"{k} = ?" for k in fields)
        cursor = await db.execute(
            f"UPDATE folders SET {set_clause} WHERE id = ? AND user_id = ?",  # noqa: S608
            list(fields.values()) + [folder_id, user_id],
        )
        await db.commit()
        if not cursor.rowcount:
            return None
    return await get_folder(db, user_id, folder_id)


async def count_folders(db: aiosqlite.Connection, user_id: str) -> int:
    return await _count(db, "SELECT COUNT(*) FROM folders WHERE user_id = ?", (user_id,))


# --- Notes ---


async def _attach_note_tags(db: aiosqlite.Connection, notes: list[Note]) -> list[Note]:
    tags = await tags_for_items(db, "note", [n.id for n in notes])
    for note in notes:
        note.tags = tags.get(note.id, [])
    return notes


async def create_note(db: aiosqlite.Connection, user_id: str, body: NoteCreate) -> Note:
    note_id = _new_id()
    now = _now()
    await db.execute(
        """INSERT INTO notes (id, user_id, folder_id, title, content, created_at, updated_at)
           VALUES (?, ?, ?, ?, ?, ?, ?)""",
        (note_id, user_id, body.folder_id, body.title, body.content, now, now),
    )
    await _set_item_tags(db, user_id, "note", note_id, body.tag_ids)
    await db.commit()
    return await get_note(db, user_id, note_id)  # type: ignore[return-value]


async def get_note(db: aiosqlite.Connection, user_id: str, note_id: str) -> Note | None:
    cursor = await db.execute(
        "SELECT * FROM notes WHERE id = ? AND user_id = ?", (note_id, user_id)
    )
    row = await cursor.fetchone()
    if row is None:
        return None
    (note,) = await _attach_note_tags(db, [Note(**dict(row))])
    return note


async def list_notes(
    db: aiosqlite.Connection,
    user_id: str,
    folder_id: str | None = None,
    offset: int = 0,
    limit: int = 50,
) -> tuple[list[Note], int]:
    where = "user_id = ?"
    params: list = [user_id]
    if folder_id:
        where += " AND folder_id = ?"
        params.append(folder_id)

    total = await _count(db, f"SELECT COUNT(*) FROM notes WHERE {where}", tuple(params))  # noqa: S608
    cursor = await db.execute(
        f"SELECT * FROM notes WHERE {where} ORDER BY updated_at DESC LIMIT ? OFFSET ?",  # noqa: S608
        (*params, limit, offset),
    )
    notes = [Note(**dict(r)) for r in await cursor.fetchall()]
    return await _attach_note_tags(db, notes), total


async def update_note(
    db: aiosqlite.Connection, user_id: str, note_id: str, updates: NoteUpdate
) -> Note | None:
    fields = updates.model_dump(exclude_unset=True)
    tag_ids = fields.pop("tag_ids", None)
    if not fields and tag_ids is None:
        return await get_note(db, user_id, note_id)

    fields["updated_at"] = _now()
    set_clause = ", ".join(f"{k} = ?" for k in fields)
    cursor = await db.execute(
        f"UPDATE notes SET {set_clause} WHERE id = ? AND user_id = ?",  # noqa: S608
        list(fields.values()) + [note_id, user_id],
    )
    if not cursor.rowcount:
        return None
    if tag_ids is not None:
        await _set_item_tags(db, user_id, "note", note_id, tag_ids)
    await db.commit()
    return await get_note(db, user_id, note_id)


async def delete_note(db: aiosqlite.Connection, user_id: str, note_id: str) -> bool:
    cursor = await db.execute(
        "DELETE FROM notes WHERE id = ? AND user_id = ?", (note_id, user_id)
    )
    if cursor.rowcount:
        await _drop_item_tags(db, "note", [note_id])
    await db.commit()
    return (cursor.rowcount or 0) > 0


async def count_notes(db: aiosqlite.Connection, user_id: str) -> int:
    return await _count(db, "SELECT COUNT(*) FROM notes WHERE user_id = ?", (user_id,))


# --- Tasks ---


def _row_to_task(row: aiosqlite.Row) -> Task:
    d = dict(row)
    d["completed"] = bool(d["completed"])
    d["order"] = d.pop("sort_order", 0)
    return Task(**d)


async def _attach_task_tags(db: aiosqlite.Connection, tasks: list[Task]) -> list[Task]:
    tags = await tags_for_items(db, "task", [t.id for t in tasks])
    for task in tasks:
        task.tags = tags.get(task.id, [])
    return tasks


async def create_task(db: aiosqlite.Connection, user_id: str, body: TaskCreate) -> Task:
    task_id = _new_id()
    now = _now()
    order = await _count(
        db, "SELECT MAX(sort_order) + 1 FROM tasks WHERE user_id = ?", (user_id,)
    )
    await db.execute(
        """INSERT INTO tasks
           (id, user_id, title, description, priority, due_date, sort_order, created_at, updated_at)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
        (
            task_id,
            user_id,
            body.title,
            body.description,
            body.priority,
            to_db_time(body.due_date) if body.due_date else None,
            order,
            now,
            now,
        ),
    )
    await _set_item_tags(db, user_id, "task", task_id, body.tag_ids)
    await db.commit()
    return await get_task(db, user_id, task_id)  # type: ignore[return-value]


async def get_task(db: aiosqlite.Connection, user_id: str, task_id: str) -> Task | None:
    cursor = await db.execute(
        "SELECT * FROM tasks WHERE id = ? AND user_id = ?", (task_id, user_id)
    )
    row = await cursor.fetchone()
    if row is None:
        return None
    (task,) = await _attach_task_tags(db, [_row_to_task(row)])
    return task


async def list_tasks(
    db: aiosqlite.Connection, user_id: str, completed: bool | None = None
) -> list[Task]:
    sql = "SELECT * FROM tasks WHERE user_id = ?"
    params: list = [user_id]
    if completed is not None:
        sql += " AND completed = ?"
        params.append(int(completed))
    sql += " ORDER BY sort_order ASC, created_at DESC"
    cursor = await db.execute(sql, params)
    tasks = [_row_to_task(r) for r in await cursor.fetchall()]
    return await _attach_task_tags(db, tasks)


async def update_task(
    db: aiosqlite.Connection, user_id: str, task_id: str, updates: TaskUpdate
) -> Task | None:
    fields = updates.model_dump(exclude_unset=True)
    tag_ids = fields.pop("tag_ids", None)
    now = _now()

    if "due_date" in fields and fields["due_date"] is not None:
        fields["due_date"] = to_db_time(fields["due_date"])
    if "completed" in fields:
        completed = bool(fields["completed"])
        fields["completed"] = int(completed)
        fields["completed_at"] = now if completed else None

    fields["updated_at"] = now
    set_clause = ", ".join(f"{k} = ?" for k in fields)
    cursor = await db.execute(
        f"UPDATE tasks SET {set_clause} WHERE id = ? AND user_id = ?",  # noqa: S608
        list(fields.values()) + [task_id, user_id],
    )
    if not cursor.rowcount:
        return None
    if tag_ids is not None:
        await _set_item_tags(db, user_id, "task", task_id, tag_ids)
    await db.commit()
    return await get_task(db, user_id, task_id)


async def reorder_tasks(
    db: aiosqlite.Connection, user_id: str, positions: list[TaskPosition]
) -> int:
    """Apply new sort positions atomically. Tasks owned by others are left alone."""
    updated = 0
    await db.execute("BEGIN IMMEDIATE")
    try:
        now = _now()
        for position in positions:
            cursor = await db.execute(
                "UPDATE tasks SET sort_order = ?, updated_at = ? WHERE id = ? AND user_id = ?",
                (position.order, now, position.id, user_id),
            )
            updated += cursor.rowcount or 0
        await db.commit()
    except BaseException:
        await db.rollback()
        raise
    return updated


async def delete_task(db: aiosqlite.Connection, user_id: str, task_id: str) -> bool:
    cursor = await db.execute(
        "DELETE FROM tasks WHERE id = ? AND user_id = ?", (task_id, user_id)
    )
    if cursor.rowcount:
        await _drop_item_tags(db, "task", [task_id])
    await db.commit()
    return (cursor.rowcount or 0) > 0


async def count_tasks(
    db: aiosqlite.Connection,
    user_id: str,
    completed: bool | None = None,
    completed_since: datetime | None = None,
) -> int:
    if completed_since is not None:
        return await _count(
            db,
            "SELECT COUNT(*) FROM tasks WHERE user_id = ? AND completed = 1 AND completed_at >= ?",
            (user_id, to_db_time(completed_since)),
        )
    if completed is None:
        return await _count(db, "SELECT COUNT(*) FROM tasks WHERE user_id = ?", (user_id,))
    return await _count(
        db,
        "SELECT COUNT(*) FROM tasks WHERE user_id = ? AND completed = ?",
        (user_id, int(completed)),
    )


# --- Gamification ---


async def get_or_create_progress(db: aiosqlite.Connection, user_id: str) -> UserProgress:
    await db.execute(
        "INSERT OR IGNORE INTO user_progress (user_id, updated_at) VALUES (?, ?)",
        (user_id, _now()),
    )
    await db.commit()
    cursor = await db.execute(
        "SELECT * FROM user_progress WHERE user_id = ?", (user_id,)
    )
    row = await cursor.fetchone()
    return UserProgress(**dict(row))


async def add_progress_xp(
    db: aiosqlite.Connection, user_id: str, xp: int, level_for
) -> tuple[int, int, int]:
    """Atomically add XP and recompute the level. Returns (old_level, new_level, total_xp)."""
    await get_or_create_progress(db, user_id)
    await db.execute("BEGIN IMMEDIATE")
    try:
        cursor = await db.execute(
            "SELECT total_xp, level FROM user_progress WHERE user_id = ?", (user_id,)
        )
        total_xp, old_level = await cursor.fetchone()
        total_xp += xp
        new_level = level_for(total_xp)
        await db.execute(
            "UPDATE user_progress SET total_xp = ?, level = ?, updated_at = ? WHERE user_id = ?",
            (total_xp, new_level, _now(), user_id),
        )
        await db.commit()
    except BaseException:
        await db.rollback()
        raise
    return old_level, new_level, total_xp


async def set_progress_streak(
    db: aiosqlite.Connection,
    user_id: str,
    current_streak: int,
    longest_streak: int,
    last_active_date: date,
) -> None:
    await db.execute(
        """UPDATE user_progress
           SET current_streak = ?, longest_streak = ?, last_active_date = ?, updated_at = ?
           WHERE user_id = ?""",
        (current_streak, longest_streak, last_active_date.isoformat(), _now(), user_id),
    )
    await db.commit()


async def insert_user_achievement(
    db: aiosqlite.Connection, user_id: str, key: str
) -> bool:
    """Returns False if the user already holds the achievement."""
    cursor = await db.execute(
        """INSERT OR IGNORE INTO user_achievements (user_id, achievement_key, unlocked_at)
           VALUES (?, ?, ?)""",
        (user_id, key, _now()),
    )
    await db.commit()
    return (cursor.rowcount or 0) > 0


async def list_user_achievements(
    db: aiosqlite.Connection, user_id: str
) -> list[tuple[str, datetime]]:
    cursor = await db.execute(
        """SELECT achievement_key, unlocked_at FROM user_achievements
           WHERE user_id = ? ORDER BY unlocked_at DESC""",
        (user_id,),
    )
    return [
        (row[0], datetime.fromisoformat(row[1])) for row in await cursor.fetchall()
    ]


# --- Dashboard ---


async def daily_activity_counts(
    db: aiosqlite.Connection, user_id: str, since: datetime
) -> dict[date, tuple[int, int]]:
    """Per UTC day since ``since``: (tasks completed, cards reviewed)."""
    start = to_db_time(since)
    counts: dict[date, list[int]] = {}

    cursor = await db.execute(
        """SELECT substr(completed_at, 1, 10) AS day, COUNT(*) FROM tasks
           WHERE user_id = ? AND completed = 1 AND completed_at >= ?
           GROUP BY day""",
        (user_id, start),
    )
    for row in await cursor.fetchall():
        counts.setdefault(date.fromisoformat(row[0]), [0, 0])[0] = row[1]

    cursor = await db.execute(
        """SELECT substr(r.reviewed_at, 1, 10) AS day, COUNT(*) FROM reviews r
           JOIN flashcards f ON f.id = r.flashcard_id
           JOIN decks d ON d.id = f.deck_id
           WHERE d.user_id = ? AND r.reviewed_at >= ?
           GROUP BY day""",
        (user_id, start),
    )
    for row in await cursor.fetchall():
        counts.setdefault(date.fromisoformat(row[0]), [0, 0])[1] = row[1]

    return {day: (tasks, cards) for day, (tasks, cards) in counts.items()}


async def activity_dates(
    db: aiosqlite.Connection, user_id: str, since: datetime
) -> set[date]:
    """UTC days with a review, a completed task or a note edit."""
    start = to_db_time(since)
    cursor = await db.execute(
        """SELECT substr(r.reviewed_at, 1, 10) FROM reviews r
               JOIN flashcards f ON f.id = r.flashcard_id
               JOIN decks d ON d.id = f.deck_id
               WHERE d.user_id = ? AND r.reviewed_at >= ?
           UNION
           SELECT substr(completed_at, 1, 10) FROM tasks
               WHERE user_id = ? AND completed = 1 AND completed_at >= ?
           UNION
           SELECT substr(updated_at, 1, 10) FROM notes
               WHERE user_id = ? AND updated_at >= ?""",
        (user_id, start, user_id, start, user_id, start),
    )
    return {date.fromisoformat(row[0]) for row in await cursor.fetchall()}


async def recent_activity(
    db: aiosqlite.Connection, user_id: str, since: datetime, limit: int = 10
) -> list[ActivityItem]:
    """Latest notes, tasks completed since ``since`` and decks, newest first."""
    items: list[ActivityItem] = []
    queries = (
        ("note", "SELECT id, title, updated_at FROM notes WHERE user_id = ? "
                 "ORDER BY updated_at DESC LIMIT 5", (user_id,)),
        ("task", "SELECT id, title, completed_at FROM tasks "
                 "WHERE user_id = ? AND completed = 1 AND completed_at >= ? "
                 "ORDER BY completed_at DESC LIMIT 5", (user_id, to_db_time(since))),
        ("deck", "SELECT id, name, created_at FROM decks WHERE user_id = ? "
                 "ORDER BY created_at DESC LIMIT 5", (user_id,)),
    )
    for item_type, sql, params in queries:
        cursor = await db.execute(sql, params)
        items.extend(
            ActivityItem(id=row[0], type=item_type, title=row[1], timestamp=row[2])
            for row in await cursor.fetchall()
        )
    items.sort(key=lambda item: item.timestamp, reverse=True)
    return items[:limit]
