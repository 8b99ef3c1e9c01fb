"""
Shared fixtures: an isolated app per test backed by a temporary SQLite file,
plus helpers for minting access tokens and poking card schedules directly.
"""
import sqlite3
import time
from datetime import datetime, timezone
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from studybuddy import create_app
from studybuddy.config import Settings
from studybuddy.db import init_database
from studybuddy.db.sqlite import to_db_time

JWT_SECRET = "test-secret"


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        data_dir=tmp_path,
        sqlite_filename="test.db",
        auth_jwt_secret=JWT_SECRET,
        log_level="WARNING",
    )


@pytest.fixture
def client(settings: Settings):
    app = create_app(settings)
    with TestClient(app) as test_client:
        yield test_client


def make_token(user_id: str, secret: str = JWT_SECRET, **claims) -> str:
    payload = {
        "sub": user_id,
        "aud": "authenticated",
        "exp": int(time.time()) + 3600,
        **claims,
    }
    return jwt.encode(payload, secret, algorithm="HS256")


def auth_headers(user_id: str = "user-a") -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user_id)}"}


@pytest.fixture
def alice() -> dict[str, str]:
    return auth_headers("alice")


@pytest.fixture
def bob() -> dict[str, str]:
    return auth_headers("bob")


@pytest.fixture
def set_schedule(settings: Settings):
    """Overwrite a card's scheduling columns behind the API's back."""

    def _set(
        card_id: str,
        next_review: datetime | None,
        repetitions: int = 0,
        created_at: datetime | None = None,
    ) -> None:
        conn = sqlite3.connect(settings.data_dir / settings.sqlite_filename)
        try:
            conn.execute(
                "UPDATE flashcards SET next_review = ?, repetitions = ? WHERE id = ?",
                (to_db_time(next_review) if next_review else None, repetitions, card_id),
            )
            if created_at is not None:
                conn.execute(
                    "UPDATE flashcards SET created_at = ? WHERE id = ?",
                    (to_db_time(created_at), card_id),
                )
            conn.commit()
        finally:
            conn.close()

    return _set


@pytest.fixture
async def db(tmp_path: Path):
    """A raw connection on a freshly initialised database."""
    database = await init_database(tmp_path, "unit.db")
    async with database.connect() as conn:
        yield conn


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)
