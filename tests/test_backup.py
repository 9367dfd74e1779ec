"""Tests for snapshot export, restore and clear."""

import aiosqlite
import pytest

from artcatalog.services.backup import BackupService, validate_snapshot
from artcatalog.services.entity_graph import insertion_order
from artcatalog.services.errors import InvalidSnapshotFormat
from tests.conftest import fetch_all


def _snapshot():
    return {
        "version": "1.0",
        "timestamp": "2024-01-01T00:00:00+00:00",
        "data": {
            "series": [{"id": 2, "name": "Coast"}],
            "tags": [{"id": 1, "name": "oil", "color": "#aabbcc"}],
            "artworks": [
                {"id": 5, "title": "Harbour", "series_id": 2, "price": 1200,
                 "created_at": "2023-01-01 10:00:00", "updated_at": "2023-02-01 10:00:00"},
                {"id": 8, "title": "Cliffs", "is_public": 1},
            ],
            "artwork_tags": [{"id": 1, "artwork_id": 5, "tag_id": 1}],
            "sales": [{"id": 1, "artwork_id": 5, "sale_date": "2024-01-02", "sale_price": 900}],
            "location_history": [{"id": 1, "artwork_id": 8, "location": "Studio"}],
        },
    }


@pytest.fixture
def backup(store):
    return BackupService(store)


class TestValidateSnapshot:
    @pytest.mark.parametrize(
        "snapshot",
        [
            [],
            {},
            {"data": []},
            {"version": "9.9", "data": {}},
            {"data": {"artworks": {"id": 1}}},
        ],
    )
    def test_rejected(self, snapshot):
        with pytest.raises(InvalidSnapshotFormat):
            validate_snapshot(snapshot)

    def test_version_optional(self):
        assert validate_snapshot({"data": {"tags": []}}) == {"tags": []}


@pytest.mark.asyncio
class TestRestore:
    async def test_restore_keeps_ids_and_links(self, backup, store):
        result = await backup.restore(_snapshot())
        assert result.success is True
        assert result.imported["artworks"] == 2
        assert result.imported["sales"] == 1
        assert result.imported["gallery_images"] == 0

        harbour = await store.get_work("artworks", 5)
        assert harbour["series_id"] == 2
        assert harbour["created_at"] == "2023-01-01 10:00:00"
        assert [t["name"] for t in harbour["tags"]] == ["oil"]
        assert (await store.get_by_id("artworks", 8))["is_public"] == 1

    async def test_new_ids_follow_restored_ones(self, backup, store):
        await backup.restore(_snapshot())
        created = await store.create_artwork({"title": "New"})
        assert created["id"] == 9

    async def test_restore_twice_is_identical(self, backup, db):
        await backup.restore(_snapshot())
        first = await fetch_all(db, "SELECT * FROM artworks ORDER BY id")
        history_first = await fetch_all(db, "SELECT * FROM location_history")
        result = await backup.restore(_snapshot())
        assert result.success is True
        assert await fetch_all(db, "SELECT * FROM artworks ORDER BY id") == first
        assert await fetch_all(db, "SELECT * FROM location_history") == history_first

    async def test_restore_over_existing_rows(self, backup, store):
        await store.create("series", {"name": "Old name"})
        await store.upsert("series", {"id": 2, "name": "Other"})
        await backup.restore(_snapshot())
        assert (await store.get_by_id("series", 2))["name"] == "Coast"
        assert (await store.get_by_id("series", 1))["name"] == "Old name"

    async def test_bad_rows_reported(self, backup, store):
        snapshot = _snapshot()
        snapshot["data"]["artworks"].append({"id": 9, "title": "x", "sale_status": "lost"})
        snapshot["data"]["sales"].append({"id": 2, "artwork_id": 404, "sale_date": "2024-01-01"})
        result = await backup.restore(snapshot)

        assert result.success is False
        assert result.imported["artworks"] == 2
        assert result.failed["artworks"] == 1
        assert result.errors["artworks"][0]["id"] == 9
        assert result.failed["sales"] == 1
        assert await store.count("sales") == 1

    async def test_underscore_statuses_restored(self, backup, store):
        result = await backup.restore({"data": {"artworks": [
            {"id": 1, "title": "A", "sale_status": "on_hold"},
            {"id": 2, "title": "B", "sale_status": "not_for_sale"},
        ]}})
        assert result.imported["artworks"] == 2
        assert result.success is True
        assert (await store.get_by_id("artworks", 1))["sale_status"] == "on-hold"
        assert (await store.get_by_id("artworks", 2))["sale_status"] == "not-for-sale"

    async def test_unknown_tables_ignored(self, backup):
        snapshot = _snapshot()
        snapshot["data"]["models"] = [{"id": 1}]
        result = await backup.restore(snapshot)
        assert result.ignored_tables == ["models"]
        assert result.success is True

    async def test_invalid_snapshot_writes_nothing(self, backup, store):
        with pytest.raises(InvalidSnapshotFormat):
            await backup.restore({"version": "2.0", "data": _snapshot()["data"]})
        assert await store.count("series") == 0

    async def test_result_dict(self, backup):
        data = (await backup.restore(_snapshot())).to_dict()
        assert data["success"] is True
        assert set(data) == {"success", "imported", "failed", "errors", "ignored_tables"}


@pytest.mark.asyncio
class TestExport:
    async def test_export_round_trips(self, backup, store, tmp_path):
        await backup.restore(_snapshot())
        snapshot = await backup.export()
        assert snapshot["version"] == "1.0"
        assert "timestamp" in snapshot
        assert list(snapshot["data"]) == insertion_order()
        assert [a["id"] for a in snapshot["data"]["artworks"]] == [5, 8]

        # Restoring the export into an empty catalog reproduces it
        from artcatalog.database import init_db
        from artcatalog.services.entity_store import EntityStore

        other_path = tmp_path / "other.db"
        await init_db(other_path)
        other = BackupService(EntityStore(other_path, timeout=5.0))
        result = await other.restore(snapshot)
        assert result.success is True
        assert (await other.export())["data"] == snapshot["data"]


@pytest.mark.asyncio
class TestClear:
    async def test_clear_everything(self, backup, store):
        await backup.restore(_snapshot())
        result = await backup.clear()
        assert result.success is True
        assert result.cleared[0] == "location_history"
        for table in insertion_order():
            assert await store.count(table) == 0

    async def test_ids_restart_after_clear(self, backup, store):
        await backup.restore(_snapshot())
        await backup.clear()
        created = await store.create_artwork({"title": "First again"})
        assert created["id"] == 1

    async def test_failure_reported_and_nothing_deleted(self, backup, store, db):
        await backup.restore(_snapshot())
        async with aiosqlite.connect(db) as conn:
            await conn.execute(
                "CREATE TRIGGER keep_tags BEFORE DELETE ON tags "
                "BEGIN SELECT RAISE(ABORT, 'tags are locked'); END"
            )
            await conn.commit()

        result = await backup.clear()
        assert result.success is False
        assert result.failed_table == "tags"
        assert "tags are locked" in result.error
        assert "artworks" in result.cleared
        assert "tags" not in result.cleared
        assert await store.count("artworks") == 2
        assert await store.count("sales") == 1
        assert await store.count("tags") == 1


@pytest.mark.asyncio
class TestSnapshotScenarios:
    async def test_series_and_artwork_imported_once(self, backup, store):
        snapshot = {
            "version": "1.0",
            "data": {
                "series": [{"id": 1, "name": "A"}],
                "artworks": [{"id": 9, "series_id": 1, "title": "X"}],
            },
        }
        for _ in range(2):
            result = await backup.restore(snapshot)
            assert result.success is True
            assert await store.count("series") == 1
            assert await store.count("artworks") == 1

        series = await store.get_by_id("series", 1)
        artwork = await store.get_by_id("artworks", 9)
        assert series["name"] == "A"
        assert (artwork["title"], artwork["series_id"]) == ("X", 1)

    async def test_next_id_after_restored_57(self, backup, store):
        await backup.restore({"data": {"tags": [{"id": 57, "name": "late"}]}})
        created = await store.create("tags", {"name": "next"})
        assert created["id"] >= 58
