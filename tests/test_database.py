"""Tests for artcatalog.database module."""

import aiosqlite
import pytest

from artcatalog.database import get_db, init_db
from artcatalog.services.entity_graph import ENTITY_DEPENDENCIES


@pytest.mark.asyncio
async def test_init_db_creates_tables(db_path):
    """init_db should create every catalog table."""
    await init_db(db_path)

    async with aiosqlite.connect(db_path) as conn:
        cursor = await conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name"
        )
        tables = [row[0] for row in await cursor.fetchall()]

    for table in ENTITY_DEPENDENCIES:
        assert table in tables


@pytest.mark.asyncio
async def test_init_db_creates_parent_directory(tmp_path):
    """init_db should create parent directories if they don't exist."""
    nested_path = str(tmp_path / "a" / "b" / "c" / "test.db")
    await init_db(nested_path)

    async with aiosqlite.connect(nested_path) as conn:
        cursor = await conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table'"
        )
        tables = [row[0] for row in await cursor.fetchall()]
    assert "artworks" in tables


@pytest.mark.asyncio
async def test_init_db_is_idempotent(db_path):
    """Calling init_db twice should not raise or corrupt the database."""
    await init_db(db_path)
    async with aiosqlite.connect(db_path) as conn:
        await conn.execute("INSERT INTO series (name) VALUES ('Blue period')")
        await conn.commit()
    await init_db(db_path)

    async with aiosqlite.connect(db_path) as conn:
        cursor = await conn.execute("SELECT COUNT(*) FROM series")
        row = await cursor.fetchone()
    assert row[0] == 1


@pytest.mark.asyncio
async def test_get_db_returns_dict_rows(db):
    """Rows come back as plain dicts."""
    async with get_db(db) as conn:
        await conn.execute("INSERT INTO tags (name) VALUES ('oil')")
        await conn.commit()
        cursor = await conn.execute("SELECT id, name FROM tags")
        row = await cursor.fetchone()
    assert row == {"id": 1, "name": "oil"}


@pytest.mark.asyncio
async def test_get_db_enforces_foreign_keys(db):
    """A link row pointing at a missing artwork is rejected."""
    async with get_db(db) as conn:
        with pytest.raises(aiosqlite.IntegrityError):
            await conn.execute(
                "INSERT INTO artwork_tags (artwork_id, tag_id) VALUES (99, 99)"
            )


@pytest.mark.asyncio
async def test_sale_must_reference_exactly_one_work(db):
    """The sales table itself refuses a sale of two works at once."""
    async with get_db(db) as conn:
        await conn.execute("INSERT INTO artworks (title) VALUES ('a')")
        await conn.execute("INSERT INTO digital_works (title) VALUES ('d')")
        await conn.commit()
        with pytest.raises(aiosqlite.IntegrityError):
            await conn.execute(
                "INSERT INTO sales (artwork_id, digital_work_id, sale_date) "
                "VALUES (1, 1, '2024-01-01')"
            )
