from pathlib import Path

from studybuddy.db.sqlite import Database


async def init_database(data_dir: Path, filename: str) -> Database:
    data_dir.mkdir(parents=True, exist_ok=True)
    database = Database(data_dir / filename)
    await database.init()
    return database
