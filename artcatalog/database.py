"""SQLite connection helpers for the catalog database."""

import logging
from contextlib import asynccontextmanager
from pathlib import Path

import aiosqlite

from artcatalog.config import settings
from artcatalog.database_schema import SCHEMA_SQL

logger = logging.getLogger(__name__)

DB_PATH: Path = settings.DATABASE_PATH


def set_db_path(path: str | Path) -> None:
    """Point connections opened without an explicit path at *path*."""
    global DB_PATH
    DB_PATH = Path(path)


def _dict_row_factory(cursor: aiosqlite.Cursor, row: tuple) -> dict:
    """Rows as plain dicts keyed by column name."""
    return {description[0]: value for description, value in zip(cursor.description, row)}


@asynccontextmanager
async def get_db(db_path: str | Path | None = None):
    """Open a catalog connection for the duration of an ``async with`` block.

    Foreign keys are enforced (link rows cascade with their work) and a
    locked database is waited on for up to ``STORE_TIMEOUT`` seconds before
    SQLite gives up.

    Usage:
        async with get_db(path) as db:
            cursor = await db.execute("SELECT * FROM artworks")
    """
    db = await aiosqlite.connect(str(db_path or DB_PATH))
    db.row_factory = _dict_row_factory
    await db.execute("PRAGMA journal_mode=WAL")
    await db.execute("PRAGMA foreign_keys=ON")
    await db.execute(f"PRAGMA busy_timeout={int(settings.STORE_TIMEOUT * 1000)}")
    try:
        yield db
    finally:
        await db.close()


async def init_db(db_path: str | Path | None = None) -> None:
    """Create the catalog tables and indexes if they do not exist yet.

    Existing rows are never touched, so this is safe to run at every start.
    """
    if db_path is not None:
        set_db_path(db_path)
    DB_PATH.parent.mkdir(parents=True, exist_ok=True)

    async with get_db() as db:
        await db.executescript(SCHEMA_SQL)
        await db.commit()
        cursor = await db.execute(
            "SELECT COUNT(*) AS cnt FROM sqlite_master WHERE type = 'table'"
        )
        tables = (await cursor.fetchone())["cnt"]
    logger.debug("Catalog schema ready at %s (%d tables)", DB_PATH, tables)
