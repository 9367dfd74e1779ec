"""Image storage for the gallery.

Bytes are written under the upload directory with a generated unique name
and described by a ``gallery_images`` row.  Files are served by the app
under ``/uploads`` so the stored ``file_path`` doubles as the public URL.
"""

import io
import logging
import mimetypes
import secrets
import time
from pathlib import Path

from PIL import Image

from artcatalog.config import settings
from artcatalog.database import get_db
from artcatalog.services.entity_store import bounded_call, fetch_row
from artcatalog.services.errors import (
    NotFound,
    PayloadTooLarge,
    UnsupportedMediaType,
    ValidationError,
)

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp", ".bmp", ".tif", ".tiff"}

URL_PREFIX = "/uploads"


def _unique_name(original: str) -> str:
    """``<millis>-<random hex><ext>`` so concurrent uploads never collide."""
    ext = Path(original).suffix.lower()
    return f"{int(time.time() * 1000)}-{secrets.token_hex(6)}{ext}"


def _with_url(row: dict) -> dict:
    row["url"] = row["file_path"]
    return row


class ObjectStore:
    """Stores uploaded image bytes on disk and indexes them in the database."""

    def __init__(
        self,
        upload_dir: str | Path,
        db_path: str | Path,
        max_bytes: int | None = None,
        timeout: float | None = None,
    ) -> None:
        self.upload_dir = Path(upload_dir)
        self.db_path = str(db_path)
        self.max_bytes = settings.MAX_UPLOAD_BYTES if max_bytes is None else max_bytes
        self.timeout = settings.STORE_TIMEOUT if timeout is None else timeout

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def check(self, data: bytes, filename: str, mime_type: str | None) -> str:
        """Validate one upload and return its effective mime type.

        Raises:
            PayloadTooLarge: over the size ceiling.
            UnsupportedMediaType: not an accepted image type, or the bytes
                are not an image Pillow can identify.
        """
        if len(data) > self.max_bytes:
            raise PayloadTooLarge(
                f"{filename} is {len(data)} bytes; the limit is {self.max_bytes}"
            )

        ext = Path(filename).suffix.lower()
        mime_type = mime_type or mimetypes.guess_type(filename)[0]
        if mime_type == "image/jpg":
            mime_type = "image/jpeg"
        if ext not in IMAGE_EXTENSIONS or mime_type not in settings.ALLOWED_IMAGE_TYPES:
            raise UnsupportedMediaType(
                f"{filename}: only image files are allowed (jpeg, png, gif, webp, bmp, tiff)"
            )

        try:
            with Image.open(io.BytesIO(data)) as img:
                img.verify()
        except Exception as e:
            raise UnsupportedMediaType(f"{filename} is not a readable image: {e}") from e
        return mime_type

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------

    async def upload(self, data: bytes, filename: str, mime_type: str | None = None) -> dict:
        """Store one image and return its gallery row plus ``url``."""
        rows = await self.upload_many([(data, filename, mime_type)])
        return rows[0]

    async def upload_many(self, files: list[tuple[bytes, str, str | None]]) -> list[dict]:
        """Store a batch of images; either every file is stored or none is.

        Each item is ``(data, filename, mime_type)``.
        """
        if not files:
            raise ValidationError("No files uploaded")
        if len(files) > settings.MAX_BATCH_FILES:
            raise ValidationError(
                f"At most {settings.MAX_BATCH_FILES} files may be uploaded at once"
            )

        # Validate everything before touching the disk
        checked = [
            (data, filename, self.check(data, filename, mime_type))
            for data, filename, mime_type in files
        ]

        self.upload_dir.mkdir(parents=True, exist_ok=True)
        written: list[Path] = []
        try:
            for data, filename, _ in checked:
                dest = self.upload_dir / _unique_name(filename)
                dest.write_bytes(data)
                written.append(dest)
            return await bounded_call(self.timeout, self._insert_rows, checked, written)
        except Exception:
            for path in written:
                path.unlink(missing_ok=True)
            raise

    async def _insert_rows(self, checked: list[tuple], written: list[Path]) -> list[dict]:
        async with get_db(self.db_path) as db:
            ids = []
            for (data, filename, mime_type), path in zip(checked, written):
                cursor = await db.execute(
                    """
                    INSERT INTO gallery_images
                        (filename, original_name, mime_type, file_size, file_path)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (path.name, filename, mime_type, len(data), f"{URL_PREFIX}/{path.name}"),
                )
                ids.append(cursor.lastrowid)
            await db.commit()
            rows = [_with_url(await fetch_row(db, "gallery_images", i)) for i in ids]

        logger.info("Stored %d image(s) in %s", len(rows), self.upload_dir)
        return rows

    # ------------------------------------------------------------------
    # Read / rename
    # ------------------------------------------------------------------

    async def get(self, image_id: int) -> dict:
        return await bounded_call(self.timeout, self._get, image_id)

    async def _get(self, image_id: int) -> dict:
        async with get_db(self.db_path) as db:
            return _with_url(await fetch_row(db, "gallery_images", image_id))

    async def list_images(self) -> list[dict]:
        """All images, newest first, with how many works use each."""
        return await bounded_call(self.timeout, self._list_images)

    async def _list_images(self) -> list[dict]:
        async with get_db(self.db_path) as db:
            cursor = await db.execute(
                """
                SELECT gi.*,
                       (SELECT COUNT(*) FROM artwork_images ai WHERE ai.image_id = gi.id)
                     + (SELECT COUNT(*) FROM digital_work_images di WHERE di.image_id = gi.id)
                           AS usage_count
                FROM gallery_images gi
                ORDER BY gi.uploaded_at DESC, gi.id DESC
                """
            )
            return [_with_url(row) for row in await cursor.fetchall()]

    async def open(self, image_id: int) -> Path:
        """Path of the stored bytes for *image_id*."""
        row = await self.get(image_id)
        path = self.upload_dir / row["filename"]
        if not path.is_file():
            raise NotFound("gallery_images", image_id)
        return path

    async def rename(self, image_id: int, original_name: str) -> dict:
        """Change the display name of an image; the stored file keeps its name."""
        original_name = original_name.strip()
        if not original_name:
            raise ValidationError("Name must not be empty")
        return await bounded_call(self.timeout, self._rename, image_id, original_name)

    async def _rename(self, image_id: int, original_name: str) -> dict:
        async with get_db(self.db_path) as db:
            cursor = await db.execute(
                "UPDATE gallery_images SET original_name = ? WHERE id = ?",
                (original_name, image_id),
            )
            if cursor.rowcount == 0:
                raise NotFound("gallery_images", image_id)
            await db.commit()
            return _with_url(await fetch_row(db, "gallery_images", image_id))

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    async def delete(self, image_id: int) -> None:
        """Delete the row (links cascade) and then, best-effort, the file."""
        row = await bounded_call(self.timeout, self._delete_row, image_id)
        path = self.upload_dir / row["filename"]
        try:
            path.unlink()
        except OSError as e:
            logger.warning("Could not remove image file %s: %s", path, e)

    async def _delete_row(self, image_id: int) -> dict:
        async with get_db(self.db_path) as db:
            row = await fetch_row(db, "gallery_images", image_id)
            await db.execute("DELETE FROM gallery_images WHERE id = ?", (image_id,))
            await db.commit()
            return row

