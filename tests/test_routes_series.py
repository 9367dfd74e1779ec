"""Tests for the series and exhibition API endpoints."""

import pytest

from tests.conftest import insert_test_artwork, insert_test_digital_work


@pytest.mark.asyncio
class TestSeries:
    async def test_create_list_get(self, client):
        resp = await client.post("/api/series", json={"name": "Coast", "start_date": "2019"})
        assert resp.status_code == 201
        series = resp.json()

        await client.post("/api/artworks", json={"title": "Harbour", "series_id": series["id"]})

        listed = (await client.get("/api/series")).json()["series"]
        assert listed[0]["artwork_count"] == 1

        detail = (await client.get(f"/api/series/{series['id']}")).json()
        assert [a["title"] for a in detail["artworks"]] == ["Harbour"]
        assert detail["digital_works"] == []

    async def test_duplicate(self, client):
        await client.post("/api/series", json={"name": "Coast"})
        resp = await client.post("/api/series", json={"name": "Coast"})
        assert resp.status_code == 409

    async def test_delete_keeps_works(self, client):
        series = (await client.post("/api/series", json={"name": "Coast"})).json()
        work = (await client.post(
            "/api/artworks", json={"title": "Harbour", "series_id": series["id"]}
        )).json()
        resp = await client.delete(f"/api/series/{series['id']}")
        assert resp.status_code == 200
        assert (await client.get(f"/api/artworks/{work['id']}")).json()["series_id"] is None

    async def test_update(self, client):
        series = (await client.post("/api/series", json={"name": "Coast"})).json()
        resp = await client.put(
            f"/api/series/{series['id']}", json={"name": "Coastlines", "description": "d"}
        )
        assert resp.json()["name"] == "Coastlines"
        assert (await client.put("/api/series/99", json={"name": "x"})).status_code == 404


@pytest.mark.asyncio
class TestExhibitions:
    async def test_create_with_works(self, client):
        a = await insert_test_artwork(client._db_path, title="Harbour")
        d = await insert_test_digital_work(client._db_path, title="Loop")
        resp = await client.post(
            "/api/exhibitions",
            json={"name": "Shorelines", "venue": "Town hall", "start_date": "2024-06-01",
                  "artworks": [a], "digital_works": [d]},
        )
        assert resp.status_code == 201
        exhibition = resp.json()
        assert [w["title"] for w in exhibition["artworks"]] == ["Harbour"]
        assert [w["title"] for w in exhibition["digital_works"]] == ["Loop"]

        listed = (await client.get("/api/exhibitions")).json()["exhibitions"]
        assert listed[0]["name"] == "Shorelines"

    async def test_unknown_work_rejected(self, client):
        resp = await client.post("/api/exhibitions", json={"name": "x", "artworks": [42]})
        assert resp.status_code == 400
        assert (await client.get("/api/exhibitions")).json()["exhibitions"] == []

    async def test_update_and_delete(self, client):
        a = await insert_test_artwork(client._db_path)
        exhibition = (await client.post(
            "/api/exhibitions", json={"name": "x", "artworks": [a]}
        )).json()
        resp = await client.put(
            f"/api/exhibitions/{exhibition['id']}", json={"curator": "M. Sato", "artworks": []}
        )
        assert resp.json()["curator"] == "M. Sato"
        assert resp.json()["artworks"] == []

        assert (await client.delete(f"/api/exhibitions/{exhibition['id']}")).status_code == 200
        assert (await client.get(f"/api/exhibitions/{exhibition['id']}")).status_code == 404
