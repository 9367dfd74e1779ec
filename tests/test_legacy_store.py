"""Tests for the legacy dump reader and asset fetcher."""

import base64

import httpx
import pytest

from artcatalog.services.errors import ValidationError
from artcatalog.services.legacy_store import (
    AssetFetcher,
    LegacyStore,
    decode_data_uri,
    strip_legacy_fields,
)


def _dump():
    return {
        "artworks": [{"id": 1, "title": "a"}, {"id": 2, "title": "b"}],
        "digital_works": [{"id": 7, "title": "d"}],
        "exhibitions": [{"id": 3, "name": "Spring"}],
        "file_references": [
            {"artwork_id": 1, "file_path": "data:image/png;base64,AAAA", "is_primary": True},
            {"artwork_id": 2, "file_path": "data:image/png;base64,AAAA"},
            {"artwork_id": 2, "file_path": ""},
        ],
        "digital_file_references": [
            {"digital_work_id": 7, "file_path": "https://example.com/d.png"},
        ],
        "artwork_exhibitions": [{"artwork_id": 1, "exhibition_id": 3}],
        "digital_work_exhibitions": [{"digital_work_id": 7, "exhibition_id": 3}],
        "location_history": [
            {"artwork_id": 1, "location": "Gallery", "moved_date": "2023-05-01"},
            {"artwork_id": 1, "location": "Studio", "moved_date": "2021-01-01"},
        ],
    }


class TestLegacyStore:
    def test_counts(self):
        legacy = LegacyStore(_dump())
        counts = legacy.counts()
        assert counts["artworks"] == 2
        assert counts["digital_works"] == 1
        assert counts["location_history"] == 2

    def test_missing_keys_are_empty(self):
        legacy = LegacyStore({"artworks": [{"id": 1, "title": "a"}]})
        assert legacy.exhibitions == []
        assert legacy.asset_references() == []

    def test_bad_shape(self):
        with pytest.raises(ValidationError):
            LegacyStore([])
        with pytest.raises(ValidationError):
            LegacyStore({"artworks": {"id": 1}})

    def test_asset_references_are_distinct(self):
        legacy = LegacyStore(_dump())
        assert legacy.asset_references() == [
            "data:image/png;base64,AAAA",
            "https://example.com/d.png",
        ]

    def test_file_references_for(self):
        legacy = LegacyStore(_dump())
        refs = legacy.file_references_for("artworks", 2)
        assert [r["file_path"] for r in refs] == ["data:image/png;base64,AAAA"]
        assert len(legacy.file_references_for("digital_works", 7)) == 1

    def test_exhibition_links(self):
        legacy = LegacyStore(_dump())
        assert legacy.exhibition_work_ids(3) == ([1], [7])

    def test_location_history_oldest_first(self):
        legacy = LegacyStore(_dump())
        assert [h["location"] for h in legacy.location_history_for(1)] == ["Studio", "Gallery"]

    def test_strip_legacy_fields(self):
        record = {"id": 1, "title": "a", "series_name": "S", "created_at": "x", "medium": "oil"}
        assert strip_legacy_fields(record) == {"title": "a", "medium": "oil"}


class TestDecodeDataUri:
    def test_base64(self):
        payload = base64.b64encode(b"\x89PNG").decode()
        data, mime = decode_data_uri(f"data:image/png;base64,{payload}")
        assert data == b"\x89PNG"
        assert mime == "image/png"

    def test_percent_encoded(self):
        data, mime = decode_data_uri("data:,hello%20world")
        assert data == b"hello world"
        assert mime is None

    def test_malformed(self):
        with pytest.raises(ValidationError):
            decode_data_uri("data:image/png;base64")
        with pytest.raises(ValidationError):
            decode_data_uri("data:image/png;base64,@@@")


@pytest.mark.asyncio
class TestAssetFetcher:
    async def test_data_uri_gets_extension(self, png_bytes):
        uri = "data:image/png;base64," + base64.b64encode(png_bytes).decode()
        async with AssetFetcher() as fetcher:
            data, filename, mime = await fetcher.fetch(uri)
        assert data == png_bytes
        assert filename.endswith(".png")
        assert mime == "image/png"

    async def test_http(self, png_bytes):
        def handler(request):
            return httpx.Response(200, content=png_bytes, headers={"content-type": "image/png"})

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        async with AssetFetcher(client=client) as fetcher:
            data, filename, mime = await fetcher.fetch("https://example.com/img/cat%20one.png")
        await client.aclose()
        assert data == png_bytes
        assert filename == "cat one.png"
        assert mime == "image/png"

    async def test_http_error_propagates(self):
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(404)))
        async with AssetFetcher(client=client) as fetcher:
            with pytest.raises(httpx.HTTPStatusError):
                await fetcher.fetch("https://example.com/gone.png")
        await client.aclose()

    async def test_blob_refused(self):
        async with AssetFetcher() as fetcher:
            with pytest.raises(ValidationError):
                await fetcher.fetch("blob:https://old.example/1234")

    async def test_local_paths_need_a_root(self, monkeypatch):
        from artcatalog.config import settings
        monkeypatch.setattr(settings, "LEGACY_ASSET_PATH", None)
        async with AssetFetcher() as fetcher:
            with pytest.raises(ValidationError):
                await fetcher.fetch("/uploads/a.png")

    async def test_local_read(self, tmp_path, png_bytes):
        (tmp_path / "uploads").mkdir()
        (tmp_path / "uploads" / "a.png").write_bytes(png_bytes)
        async with AssetFetcher(local_root=tmp_path) as fetcher:
            data, filename, mime = await fetcher.fetch("/uploads/a.png")
        assert data == png_bytes
        assert filename == "a.png"
        assert mime == "image/png"

    async def test_local_path_escape(self, tmp_path):
        root = tmp_path / "assets"
        root.mkdir()
        (tmp_path / "secret.png").write_bytes(b"x")
        async with AssetFetcher(local_root=root) as fetcher:
            with pytest.raises(ValidationError):
                await fetcher.fetch("../secret.png")

    async def test_local_missing(self, tmp_path):
        async with AssetFetcher(local_root=tmp_path) as fetcher:
            with pytest.raises(ValidationError):
                await fetcher.fetch("nope.png")
