"""Tests for artcatalog.api.routes_artworks and routes_digital_works."""

import pytest

from tests.conftest import insert_test_artwork, insert_test_digital_work, insert_test_image


@pytest.mark.asyncio
class TestArtworkCrud:
    async def test_create_and_get(self, client):
        """POST /api/artworks creates the work with its images in order."""
        db_path = client._db_path
        first = await insert_test_image(db_path, "a.png")
        second = await insert_test_image(db_path, "b.png")
        resp = await client.post(
            "/api/artworks",
            json={
                "title": "Harbour",
                "inventory_number": "A-001",
                "location": "Studio",
                "images": [{"id": second}, {"id": first, "is_primary": True}],
            },
        )
        assert resp.status_code == 201
        artwork = resp.json()
        assert [img["id"] for img in artwork["images"]] == [second, first]
        assert artwork["primary_image"]["id"] == first

        resp = await client.get(f"/api/artworks/{artwork['id']}")
        assert resp.status_code == 200
        assert resp.json()["inventory_number"] == "A-001"

    async def test_create_missing_title(self, client):
        resp = await client.post("/api/artworks", json={"medium": "oil"})
        assert resp.status_code == 400

    async def test_create_bad_date(self, client):
        resp = await client.post("/api/artworks", json={"title": "x", "creation_date": "soon"})
        assert resp.status_code == 400

    async def test_duplicate_inventory_number(self, client):
        await client.post("/api/artworks", json={"title": "a", "inventory_number": "A-1"})
        resp = await client.post("/api/artworks", json={"title": "b", "inventory_number": "A-1"})
        assert resp.status_code == 409

    async def test_unknown_image(self, client):
        resp = await client.post("/api/artworks", json={"title": "x", "images": [{"id": 404}]})
        assert resp.status_code == 400

    async def test_get_missing(self, client):
        resp = await client.get("/api/artworks/99")
        assert resp.status_code == 404

    async def test_list_filters_by_series(self, client):
        series = (await client.post("/api/series", json={"name": "Rivers"})).json()
        await client.post("/api/artworks", json={"title": "in", "series_id": series["id"]})
        await client.post("/api/artworks", json={"title": "out"})

        resp = await client.get("/api/artworks", params={"series_id": series["id"]})
        assert [a["title"] for a in resp.json()["artworks"]] == ["in"]
        resp = await client.get("/api/artworks")
        assert len(resp.json()["artworks"]) == 2

    async def test_update_keeps_omitted_fields(self, client):
        artwork = (await client.post(
            "/api/artworks", json={"title": "x", "medium": "oil", "price": 100}
        )).json()
        resp = await client.put(f"/api/artworks/{artwork['id']}", json={"price": 150})
        assert resp.status_code == 200
        data = resp.json()
        assert data["price"] == 150
        assert data["medium"] == "oil"

    async def test_delete(self, client):
        artwork_id = await insert_test_artwork(client._db_path)
        resp = await client.delete(f"/api/artworks/{artwork_id}")
        assert resp.status_code == 200
        resp = await client.delete(f"/api/artworks/{artwork_id}")
        assert resp.status_code == 404


@pytest.mark.asyncio
class TestArtworkTags:
    async def test_set_tags(self, client):
        artwork_id = await insert_test_artwork(client._db_path)
        oil = (await client.post("/api/tags", json={"name": "oil"})).json()
        resp = await client.post(f"/api/artworks/{artwork_id}/tags", json={"tagIds": [oil["id"]]})
        assert resp.status_code == 200
        assert [t["name"] for t in resp.json()["tags"]] == ["oil"]

        resp = await client.post(f"/api/artworks/{artwork_id}/tags", json={"tagIds": []})
        assert resp.json()["tags"] == []

    async def test_unknown_tag(self, client):
        artwork_id = await insert_test_artwork(client._db_path)
        resp = await client.post(f"/api/artworks/{artwork_id}/tags", json={"tagIds": [55]})
        assert resp.status_code == 400


@pytest.mark.asyncio
class TestBulkUpdate:
    async def test_bulk_status_and_price(self, client):
        db_path = client._db_path
        a = await insert_test_artwork(db_path, title="a", price=200.0)
        b = await insert_test_artwork(db_path, title="b", price=50.0)
        resp = await client.patch(
            "/api/artworks/bulk",
            json={
                "ids": [a, b, 999],
                "updates": {"sale_status": "not-for-sale"},
                "price_adjustment": {"mode": "fixed", "amount": -60},
            },
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["count"] == 2
        assert data["updated"] == [a, b]
        assert [f["id"] for f in data["failed"]] == [999]

        assert (await client.get(f"/api/artworks/{a}")).json()["price"] == 140.0
        assert (await client.get(f"/api/artworks/{b}")).json()["price"] == 0.0

    async def test_bulk_rejects_other_fields(self, client):
        a = await insert_test_artwork(client._db_path)
        resp = await client.patch(
            "/api/artworks/bulk", json={"ids": [a], "updates": {"title": "x"}}
        )
        assert resp.status_code == 400

    async def test_bulk_empty_ids(self, client):
        resp = await client.patch(
            "/api/artworks/bulk", json={"ids": [], "updates": {"sale_status": "sold"}}
        )
        assert resp.status_code == 400


@pytest.mark.asyncio
class TestLocationHistory:
    async def test_move_artwork(self, client):
        artwork = (await client.post(
            "/api/artworks", json={"title": "x", "location": "Studio"}
        )).json()
        resp = await client.post(
            f"/api/artworks/{artwork['id']}/location-history",
            json={"location": "Museum", "notes": "on loan"},
        )
        assert resp.status_code == 201
        assert resp.json()["location"] == "Museum"

        resp = await client.get(f"/api/artworks/{artwork['id']}/location-history")
        history = resp.json()["location_history"]
        assert [h["location"] for h in history] == ["Museum", "Studio"]
        assert (await client.get(f"/api/artworks/{artwork['id']}")).json()["location"] == "Museum"

    async def test_missing_artwork(self, client):
        resp = await client.get("/api/artworks/5/location-history")
        assert resp.status_code == 404


@pytest.mark.asyncio
class TestDigitalWorks:
    async def test_crud(self, client):
        resp = await client.post(
            "/api/digital-works",
            json={"title": "Loop", "platform": "web", "file_size": 2048},
        )
        assert resp.status_code == 201
        work = resp.json()
        assert work["file_size"] == "2048"

        resp = await client.put(f"/api/digital-works/{work['id']}", json={"is_public": True})
        assert resp.json()["is_public"] is True

        resp = await client.get("/api/digital-works")
        assert [w["title"] for w in resp.json()["digital_works"]] == ["Loop"]

        resp = await client.delete(f"/api/digital-works/{work['id']}")
        assert resp.status_code == 200

    async def test_bulk_platform(self, client):
        work_id = await insert_test_digital_work(client._db_path)
        resp = await client.patch(
            "/api/digital-works/bulk",
            json={"ids": [work_id], "updates": {"platform": "gallery site"}},
        )
        assert resp.json()["count"] == 1
        assert (await client.get(f"/api/digital-works/{work_id}")).json()["platform"] == "gallery site"
