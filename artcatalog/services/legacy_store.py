"""Reader for the legacy per-browser catalog.

The old client kept everything in the browser and could dump it as one JSON
document with these keys::

    artworks, digital_works, exhibitions, file_references,
    digital_file_references, artwork_exhibitions,
    digital_work_exhibitions, location_history

Image bytes are not part of the dump: each file reference carries a
``file_path`` that is a ``data:`` URI, an ``http(s)://`` URL or a path on
disk.  :class:`AssetFetcher` turns such a reference into bytes.
"""

import base64
import binascii
import logging
import mimetypes
from pathlib import Path
from urllib.parse import unquote, urlparse

import httpx

from artcatalog.config import settings
from artcatalog.services.errors import ValidationError

logger = logging.getLogger(__name__)

LEGACY_KEYS = (
    "artworks",
    "digital_works",
    "exhibitions",
    "file_references",
    "digital_file_references",
    "artwork_exhibitions",
    "digital_work_exhibitions",
    "location_history",
)

# Legacy fields the server assigns or resolves itself (there was no series table)
LEGACY_ONLY_FIELDS = {"id", "created_at", "updated_at", "series_name", "series_id", "images"}

_DEFAULT_HEADERS: dict[str, str] = {
    "User-Agent": "artcatalog-migration/1.0",
    "Accept": "image/*,*/*;q=0.8",
}


class LegacyStore:
    """Read-only view over a legacy JSON dump."""

    def __init__(self, dump: dict) -> None:
        if not isinstance(dump, dict):
            raise ValidationError("Legacy dump must be a JSON object")
        self._tables: dict[str, list[dict]] = {}
        for key in LEGACY_KEYS:
            rows = dump.get(key) or []
            if not isinstance(rows, list):
                raise ValidationError(f"Legacy dump key {key!r} must be a list")
            self._tables[key] = [r for r in rows if isinstance(r, dict)]
        if not any(self._tables.values()):
            logger.info("Legacy dump is empty")

    def table(self, key: str) -> list[dict]:
        return list(self._tables[key])

    @property
    def artworks(self) -> list[dict]:
        return self.table("artworks")

    @property
    def digital_works(self) -> list[dict]:
        return self.table("digital_works")

    @property
    def exhibitions(self) -> list[dict]:
        return self.table("exhibitions")

    # ------------------------------------------------------------------
    # Assets
    # ------------------------------------------------------------------

    def asset_references(self) -> list[str]:
        """Every distinct ``file_path`` referenced by any work, in dump order."""
        refs: dict[str, None] = {}
        for key in ("file_references", "digital_file_references"):
            for ref in self._tables[key]:
                path = ref.get("file_path")
                if path:
                    refs.setdefault(path, None)
        return list(refs)

    def file_references_for(self, kind: str, work_id) -> list[dict]:
        """File references of one work; *kind* is ``artworks`` or ``digital_works``."""
        if kind == "artworks":
            key, fk = "file_references", "artwork_id"
        else:
            key, fk = "digital_file_references", "digital_work_id"
        return [r for r in self._tables[key] if r.get(fk) == work_id and r.get("file_path")]

    # ------------------------------------------------------------------
    # Links
    # ------------------------------------------------------------------

    def exhibition_work_ids(self, exhibition_id) -> tuple[list, list]:
        """Legacy (artwork ids, digital work ids) shown in one exhibition."""
        artwork_ids = [
            link["artwork_id"] for link in self._tables["artwork_exhibitions"]
            if link.get("exhibition_id") == exhibition_id and "artwork_id" in link
        ]
        digital_ids = [
            link["digital_work_id"] for link in self._tables["digital_work_exhibitions"]
            if link.get("exhibition_id") == exhibition_id and "digital_work_id" in link
        ]
        return artwork_ids, digital_ids

    def location_history_for(self, artwork_id) -> list[dict]:
        """Location moves of one artwork, oldest first."""
        entries = [
            h for h in self._tables["location_history"]
            if h.get("artwork_id") == artwork_id and h.get("location")
        ]
        return sorted(entries, key=lambda h: str(h.get("moved_date") or ""))

    def counts(self) -> dict[str, int]:
        return {key: len(rows) for key, rows in self._tables.items()}


def strip_legacy_fields(record: dict) -> dict:
    """Copy of *record* without ids and timestamps the server regenerates."""
    return {k: v for k, v in record.items() if k not in LEGACY_ONLY_FIELDS}


# ---------------------------------------------------------------------------
# Asset materialization
# ---------------------------------------------------------------------------


def _filename_for(name: str, mime_type: str | None, fallback: str) -> str:
    """Make sure the filename carries an extension matching the mime type."""
    name = name or fallback
    if not Path(name).suffix and mime_type:
        ext = mimetypes.guess_extension(mime_type) or ""
        if ext == ".jpe":
            ext = ".jpg"
        name += ext
    return name


def decode_data_uri(uri: str) -> tuple[bytes, str | None]:
    """Decode ``data:[<mime>][;base64],<payload>`` into bytes and mime type."""
    try:
        header, payload = uri[len("data:"):].split(",", 1)
    except ValueError:
        raise ValidationError("Malformed data URI") from None
    params = header.split(";")
    mime_type = params[0] or None
    try:
        if "base64" in params[1:]:
            data = base64.b64decode(payload, validate=True)
        else:
            data = unquote(payload).encode("latin-1")
    except (binascii.Error, UnicodeEncodeError) as e:
        raise ValidationError(f"Malformed data URI payload: {e}") from e
    return data, mime_type


class AssetFetcher:
    """Resolves legacy asset references to ``(bytes, filename, mime_type)``.

    Local paths are only read from below *local_root*; without one they
    are refused.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        local_root: str | Path | None = None,
        timeout: float | None = None,
    ) -> None:
        self._client = client
        self._owns_client = client is None
        self.local_root = Path(local_root) if local_root else settings.LEGACY_ASSET_PATH
        self.timeout = settings.ASSET_FETCH_TIMEOUT if timeout is None else timeout
        self._counter = 0

    async def __aenter__(self) -> "AssetFetcher":
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout, follow_redirects=True, headers=_DEFAULT_HEADERS
            )
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def fetch(self, reference: str) -> tuple[bytes, str, str | None]:
        """Return the bytes behind *reference*.

        Raises:
            ValidationError: unsupported or unreadable reference.
            httpx.HTTPError: the remote fetch failed.
        """
        self._counter += 1
        fallback = f"image-{self._counter}"

        if reference.startswith("data:"):
            data, mime_type = decode_data_uri(reference)
            return data, _filename_for("", mime_type, fallback), mime_type

        scheme = urlparse(reference).scheme.lower()
        if scheme in ("http", "https"):
            return await self._fetch_http(reference, fallback)
        if scheme in ("blob", "filesystem"):
            raise ValidationError(
                f"Browser-local reference cannot be read on the server: {reference}"
            )
        return self._read_local(reference, fallback)

    async def _fetch_http(self, url: str, fallback: str) -> tuple[bytes, str, str | None]:
        if self._client is None:
            await self.__aenter__()
        resp = await self._client.get(url)
        resp.raise_for_status()
        mime_type = resp.headers.get("content-type", "").split(";")[0].strip() or None
        name = unquote(urlparse(str(resp.url)).path.rsplit("/", 1)[-1])
        return resp.content, _filename_for(name, mime_type, fallback), mime_type

    def _read_local(self, reference: str, fallback: str) -> tuple[bytes, str, str | None]:
        if self.local_root is None:
            raise ValidationError(f"Local asset paths are not enabled: {reference}")
        root = self.local_root.resolve()
        path = (root / reference.lstrip("/")).resolve()
        if not path.is_relative_to(root):
            raise ValidationError(f"Asset path escapes the legacy asset directory: {reference}")
        if not path.is_file():
            raise ValidationError(f"Asset file not found: {reference}")
        mime_type = mimetypes.guess_type(path.name)[0]
        return path.read_bytes(), _filename_for(path.name, mime_type, fallback), mime_type
