"""Shared fixtures for the Art Catalog test suite."""

import io
import os

import aiosqlite
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from PIL import Image

from artcatalog.database import init_db
from artcatalog.services.entity_store import EntityStore
from artcatalog.services.migration import MigrationProgress
from artcatalog.services.object_store import ObjectStore


@pytest.fixture
def db_path(tmp_path):
    """Provide a temporary database path."""
    return str(tmp_path / "test.db")


@pytest_asyncio.fixture
async def db(db_path):
    """Initialize a fresh test database and yield the path."""
    await init_db(db_path)
    yield db_path


@pytest.fixture
def upload_dir(tmp_path):
    """Create a temporary upload directory."""
    path = tmp_path / "uploads"
    path.mkdir()
    return path


@pytest_asyncio.fixture
async def store(db):
    """An EntityStore over the test database."""
    return EntityStore(db, timeout=5.0)


@pytest_asyncio.fixture
async def object_store(db, upload_dir):
    """An ObjectStore writing into the temporary upload directory."""
    return ObjectStore(upload_dir, db, timeout=5.0)


def make_image_bytes(fmt: str = "PNG", size: tuple[int, int] = (4, 4), color=(200, 30, 30)) -> bytes:
    """Encode a tiny solid-color image."""
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def png_bytes():
    return make_image_bytes()


@pytest_asyncio.fixture
async def test_app(tmp_path):
    """Create a FastAPI test application with a temporary database."""
    db_file = tmp_path / "data" / "test.db"
    db_file.parent.mkdir(parents=True, exist_ok=True)
    upload_dir = tmp_path / "served"
    upload_dir.mkdir()

    # Set environment variables before importing the app
    os.environ["ARTCAT_DATABASE_PATH"] = str(db_file)
    os.environ["ARTCAT_UPLOAD_PATH"] = str(upload_dir)

    # The lifespan does not run under ASGITransport, so wire the state here
    from artcatalog.main import app

    await init_db(str(db_file))
    app.state.db_path = str(db_file)
    app.state.entity_store = EntityStore(str(db_file), timeout=5.0)
    app.state.object_store = ObjectStore(upload_dir, str(db_file), timeout=5.0)
    app.state.migration_progress = MigrationProgress()
    app.state.migration_result = None

    yield app, str(db_file), upload_dir

    for key in ["ARTCAT_DATABASE_PATH", "ARTCAT_UPLOAD_PATH"]:
        os.environ.pop(key, None)


@pytest_asyncio.fixture
async def client(test_app):
    """Provide an async HTTP client for the test application."""
    app, db_path, upload_dir = test_app
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        ac._db_path = db_path  # Store for test convenience
        ac._upload_dir = upload_dir
        yield ac


# ---------------------------------------------------------------------------
# Row helpers
# ---------------------------------------------------------------------------


async def insert_test_artwork(
    db_path: str,
    title: str = "Untitled",
    inventory_number: str | None = None,
    sale_status: str = "available",
    price: float | None = None,
    location: str | None = None,
    series_id: int | None = None,
) -> int:
    """Insert an artwork row directly and return its ID."""
    async with aiosqlite.connect(db_path) as conn:
        cursor = await conn.execute(
            """
            INSERT INTO artworks
                (title, inventory_number, sale_status, price, location, series_id)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (title, inventory_number, sale_status, price, location, series_id),
        )
        await conn.commit()
        return cursor.lastrowid


async def insert_test_digital_work(
    db_path: str,
    title: str = "Untitled digital",
    price: float | None = None,
) -> int:
    async with aiosqlite.connect(db_path) as conn:
        cursor = await conn.execute(
            "INSERT INTO digital_works (title, price) VALUES (?, ?)", (title, price)
        )
        await conn.commit()
        return cursor.lastrowid


async def insert_test_image(db_path: str, filename: str = "a.png") -> int:
    """Insert a gallery_images row without a file behind it."""
    async with aiosqlite.connect(db_path) as conn:
        cursor = await conn.execute(
            """
            INSERT INTO gallery_images (filename, original_name, mime_type, file_size, file_path)
            VALUES (?, ?, 'image/png', 10, ?)
            """,
            (filename, filename, f"/uploads/{filename}"),
        )
        await conn.commit()
        return cursor.lastrowid


async def fetch_all(db_path: str, sql: str, params: tuple = ()) -> list[dict]:
    async with aiosqlite.connect(db_path) as conn:
        conn.row_factory = aiosqlite.Row
        cursor = await conn.execute(sql, params)
        return [dict(r) for r in await cursor.fetchall()]
