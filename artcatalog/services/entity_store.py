"""Typed access to the catalog tables.

Every public coroutine opens its own connection, runs under the configured
store timeout and translates SQLite failures into the catalog error
taxonomy.  Operations that touch several tables for one logical entity
(a work plus its image links, a sale plus the work's status) commit or
roll back together.
"""

import asyncio
import logging
import sqlite3
from pathlib import Path

import aiosqlite
import pydantic

from artcatalog.config import settings
from artcatalog.database import get_db
from artcatalog.models.schemas import (
    PRICE_ADJUSTMENT_MODES,
    SERVER_TIMESTAMP_COLUMNS,
    ArtworkCreate,
    DigitalWorkCreate,
    ExhibitionCreate,
    LocationEntry,
    TABLE_SCHEMAS,
    normalize_sale_status,
    table_columns,
)
from artcatalog.services.errors import (
    DuplicateName,
    NotFound,
    TransientStoreError,
    ValidationError,
)
from artcatalog.services.pricing import adjust_price, parse_price

logger = logging.getLogger(__name__)

WORK_TABLES = ("artworks", "digital_works")

# work table -> (image link table, tag link table, exhibition link table, fk column)
_WORK_LINKS: dict[str, tuple[str, str, str, str]] = {
    "artworks": ("artwork_images", "artwork_tags", "artwork_exhibitions", "artwork_id"),
    "digital_works": (
        "digital_work_images",
        "digital_work_tags",
        "digital_work_exhibitions",
        "digital_work_id",
    ),
}

_WORK_CREATE_SCHEMAS = {"artworks": ArtworkCreate, "digital_works": DigitalWorkCreate}

# Fields a bulk patch may touch, per work table
BULK_FIELDS: dict[str, set[str]] = {
    "artworks": {"sale_status", "location", "medium", "series_id", "is_public"},
    "digital_works": {"sale_status", "license_type", "platform", "series_id", "is_public"},
}


def _check_table(table: str) -> None:
    if table not in TABLE_SCHEMAS:
        raise ValidationError(f"Unknown table: {table}")


def _integrity_error(exc: sqlite3.IntegrityError) -> ValidationError:
    message = str(exc)
    if "UNIQUE constraint failed" in message:
        column = message.rsplit(":", 1)[-1].strip()
        return DuplicateName(f"A row with this {column} already exists")
    return ValidationError(message)


async def bounded_call(timeout: float, operation, *args):
    """Await *operation* under *timeout*, translating SQLite failures."""
    try:
        return await asyncio.wait_for(operation(*args), timeout=timeout)
    except asyncio.TimeoutError as e:
        raise TransientStoreError(f"Store call timed out after {timeout}s") from e
    except sqlite3.IntegrityError as e:
        raise _integrity_error(e) from e
    except sqlite3.OperationalError as e:
        raise TransientStoreError(str(e)) from e
    except sqlite3.Error as e:
        raise ValidationError(str(e)) from e


def _writable(table: str, record: dict, allow_id: bool = False) -> dict:
    """Keep only declared columns of *table*."""
    columns = set(table_columns(table))
    if not allow_id:
        columns.discard("id")
    return {k: v for k, v in record.items() if k in columns}


def effective_primary(images: list[dict]) -> dict | None:
    """The image shown for a work: first flagged primary, else the first."""
    for image in images:
        if image.get("is_primary"):
            return image
    return images[0] if images else None


class EntityStore:
    """CRUD, upsert and sequence control over the catalog database."""

    def __init__(self, db_path: str | Path, timeout: float | None = None) -> None:
        self.db_path = str(db_path)
        self.timeout = settings.STORE_TIMEOUT if timeout is None else timeout

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    async def _run(self, operation, *args):
        return await bounded_call(self.timeout, operation, *args)

    def connect(self):
        """Open a connection to the catalog database (async context manager)."""
        return get_db(self.db_path)

    # ------------------------------------------------------------------
    # Generic CRUD
    # ------------------------------------------------------------------

    async def create(self, table: str, record: dict) -> dict:
        """Insert *record* and return the stored row with its new id."""
        _check_table(table)
        return await self._run(self._create, table, record)

    async def _create(self, table: str, record: dict) -> dict:
        async with self.connect() as db:
            row_id = await insert_row(db, table, record)
            await db.commit()
            return await fetch_row(db, table, row_id)

    async def get_all(self, table: str) -> list[dict]:
        _check_table(table)
        return await self._run(self._get_all, table)

    async def _get_all(self, table: str) -> list[dict]:
        async with self.connect() as db:
            cursor = await db.execute(f"SELECT * FROM {table} ORDER BY id")
            return await cursor.fetchall()

    async def get_by_id(self, table: str, entity_id: int) -> dict:
        """Return one row or raise :class:`NotFound`."""
        _check_table(table)
        return await self._run(self._get_by_id, table, entity_id)

    async def _get_by_id(self, table: str, entity_id: int) -> dict:
        async with self.connect() as db:
            return await fetch_row(db, table, entity_id)

    async def update(self, table: str, entity_id: int, partial: dict) -> dict:
        """Overwrite the given columns of one row and return the row."""
        _check_table(table)
        return await self._run(self._update, table, entity_id, partial)

    async def _update(self, table: str, entity_id: int, partial: dict) -> dict:
        async with self.connect() as db:
            await update_row(db, table, entity_id, partial)
            await db.commit()
            return await fetch_row(db, table, entity_id)

    async def delete(self, table: str, entity_id: int) -> None:
        _check_table(table)
        await self._run(self._delete, table, entity_id)

    async def _delete(self, table: str, entity_id: int) -> None:
        async with self.connect() as db:
            cursor = await db.execute(f"DELETE FROM {table} WHERE id = ?", (entity_id,))
            if cursor.rowcount == 0:
                raise NotFound(table, entity_id)
            await db.commit()

    async def count(self, table: str) -> int:
        _check_table(table)
        return await self._run(self._count, table)

    async def _count(self, table: str) -> int:
        async with self.connect() as db:
            cursor = await db.execute(f"SELECT COUNT(*) AS cnt FROM {table}")
            return (await cursor.fetchone())["cnt"]

    # ------------------------------------------------------------------
    # Upsert / sequences / bulk delete
    # ------------------------------------------------------------------

    async def upsert(self, table: str, record: dict) -> None:
        """Insert *record* or overwrite every non-id column of the existing row."""
        _check_table(table)
        await self._run(self._upsert, table, record)

    async def _upsert(self, table: str, record: dict) -> None:
        async with self.connect() as db:
            await upsert_row(db, table, record)
            await db.commit()

    async def reset_sequence(self, table: str, next_value: int) -> None:
        """Make the next implicit id of *table* at least *next_value*."""
        _check_table(table)
        await self._run(self._reset_sequence, table, next_value)

    async def _reset_sequence(self, table: str, next_value: int) -> None:
        async with self.connect() as db:
            await set_sequence(db, table, next_value)
            await db.commit()

    async def delete_all(self, table: str) -> int:
        _check_table(table)
        return await self._run(self._delete_all, table)

    async def _delete_all(self, table: str) -> int:
        async with self.connect() as db:
            cursor = await db.execute(f"DELETE FROM {table}")
            await db.commit()
            return cursor.rowcount

    # ------------------------------------------------------------------
    # Whole-table operations used by backup / restore
    # ------------------------------------------------------------------

    async def export_tables(self, tables: list[str]) -> dict[str, list[dict]]:
        """Read the declared columns of every row of *tables* in one connection."""
        for table in tables:
            _check_table(table)
        return await self._run(self._export_tables, tables)

    async def _export_tables(self, tables: list[str]) -> dict[str, list[dict]]:
        data: dict[str, list[dict]] = {}
        async with self.connect() as db:
            for table in tables:
                columns = ", ".join(table_columns(table))
                cursor = await db.execute(f"SELECT {columns} FROM {table} ORDER BY id")
                data[table] = await cursor.fetchall()
        return data

    async def restore_table(self, table: str, rows: list[dict]) -> dict:
        """Upsert *rows* into *table* inside one transaction.

        Each row runs under its own savepoint: a bad row is rolled back and
        reported while the rest of the table still commits.  The id
        sequence is then advanced past the highest id in *rows*.

        Returns:
            ``{"imported": int, "failed": int, "errors": [{"id", "error"}]}``
        """
        _check_table(table)
        return await self._run(self._restore_table, table, rows)

    async def _restore_table(self, table: str, rows: list[dict]) -> dict:
        imported = 0
        errors: list[dict] = []
        async with self.connect() as db:
            await db.execute("BEGIN")
            try:
                for row in rows:
                    await db.execute("SAVEPOINT restore_row")
                    try:
                        await upsert_row(db, table, row)
                    except (ValidationError, sqlite3.Error) as e:
                        await db.execute("ROLLBACK TO SAVEPOINT restore_row")
                        row_id = row.get("id") if isinstance(row, dict) else None
                        logger.warning("Skipping %s row %s: %s", table, row_id, e)
                        errors.append({"id": row_id, "error": str(e)})
                    else:
                        imported += 1
                    await db.execute("RELEASE SAVEPOINT restore_row")

                ids = [
                    row["id"] for row in rows
                    if isinstance(row, dict)
                    and isinstance(row.get("id"), int)
                    and not isinstance(row.get("id"), bool)
                ]
                if ids:
                    await set_sequence(db, table, max(ids) + 1, advance_only=True)
                await db.commit()
            except Exception:
                await db.rollback()
                raise
        return {"imported": imported, "failed": len(errors), "errors": errors}

    async def clear_tables(self, tables: list[str]) -> dict:
        """Delete every row of *tables* in the given order and reset sequences.

        Runs as one transaction.  On failure nothing is deleted and the
        result names the table that failed.

        Returns:
            ``{"cleared": [...], "failed_table": str | None, "error": str | None}``
        """
        for table in tables:
            _check_table(table)
        return await self._run(self._clear_tables, tables)

    async def _clear_tables(self, tables: list[str]) -> dict:
        cleared: list[str] = []
        async with self.connect() as db:
            await db.execute("BEGIN")
            for table in tables:
                try:
                    await db.execute(f"DELETE FROM {table}")
                    await set_sequence(db, table, 1)
                except sqlite3.Error as e:
                    await db.rollback()
                    logger.error(
                        "Clear failed at %s after %s; rolled back: %s",
                        table, ", ".join(cleared) or "nothing", e,
                    )
                    return {"cleared": cleared, "failed_table": table, "error": str(e)}
                cleared.append(table)
            await db.commit()
        return {"cleared": cleared, "failed_table": None, "error": None}

    # ------------------------------------------------------------------
    # Works
    # ------------------------------------------------------------------

    async def create_work(
        self,
        table: str,
        record: dict,
        images: list[dict] | None = None,
        history: list[dict] | None = None,
        series_name: str | None = None,
    ) -> dict:
        """Create a work, link its images and start its location history.

        *record* is validated against the work's create schema first, so
        unknown keys are dropped and malformed dates are rejected.  For
        artworks, *history* (``location``, ``notes``, ``moved_date``
        entries) replaces the single entry for the current location.
        A *series_name* is resolved to a series, created if missing, in
        the same transaction as the work.
        """
        if table not in WORK_TABLES:
            raise ValidationError(f"{table} is not a work table")
        try:
            record = _WORK_CREATE_SCHEMAS[table].model_validate(record).model_dump(
                exclude={"images"}
            )
        except pydantic.ValidationError as e:
            raise ValidationError(f"Invalid {table} record: {e}") from e
        try:
            history = [LocationEntry.model_validate(h).model_dump() for h in history or []]
        except pydantic.ValidationError as e:
            raise ValidationError(f"Invalid location history: {e}") from e
        return await self._run(
            self._create_work, table, record, images or [], history, series_name
        )

    async def _create_work(
        self,
        table: str,
        record: dict,
        images: list[dict],
        history: list[dict],
        series_name: str | None,
    ) -> dict:
        async with self.connect() as db:
            try:
                if series_name:
                    record["series_id"] = await series_id_for(db, series_name)
                work_id = await insert_row(db, table, record)
                await replace_images(db, table, work_id, images)
                if table == "artworks" and history:
                    for entry in history:
                        await db.execute(
                            "INSERT INTO location_history "
                            "(artwork_id, location, notes, moved_date) "
                            "VALUES (?, ?, ?, COALESCE(?, CURRENT_TIMESTAMP))",
                            (work_id, entry["location"], entry.get("notes"),
                             entry.get("moved_date")),
                        )
                elif table == "artworks" and record.get("location"):
                    await db.execute(
                        "INSERT INTO location_history (artwork_id, location) VALUES (?, ?)",
                        (work_id, record["location"]),
                    )
                await db.commit()
            except Exception:
                await db.rollback()
                raise
            return await fetch_work(db, table, work_id)

    async def update_work(
        self,
        table: str,
        work_id: int,
        partial: dict,
        images: list[dict] | None = None,
    ) -> dict:
        """Update a work; when *images* is given the image list is replaced."""
        if table not in WORK_TABLES:
            raise ValidationError(f"{table} is not a work table")
        return await self._run(self._update_work, table, work_id, partial, images)

    async def _update_work(
        self, table: str, work_id: int, partial: dict, images: list[dict] | None
    ) -> dict:
        async with self.connect() as db:
            try:
                previous = await fetch_row(db, table, work_id)
                await update_row(db, table, work_id, partial)
                if images is not None:
                    await replace_images(db, table, work_id, images)
                new_location = partial.get("location")
                if (
                    table == "artworks"
                    and new_location
                    and new_location != previous.get("location")
                ):
                    await db.execute(
                        "INSERT INTO location_history (artwork_id, location) VALUES (?, ?)",
                        (work_id, new_location),
                    )
                await db.commit()
            except Exception:
                await db.rollback()
                raise
            return await fetch_work(db, table, work_id)

    async def create_artwork(self, record: dict, images: list[dict] | None = None) -> dict:
        return await self.create_work("artworks", record, images)

    async def update_artwork(
        self, artwork_id: int, partial: dict, images: list[dict] | None = None
    ) -> dict:
        return await self.update_work("artworks", artwork_id, partial, images)

    async def create_digital_work(
        self, record: dict, images: list[dict] | None = None
    ) -> dict:
        return await self.create_work("digital_works", record, images)

    async def update_digital_work(
        self, digital_work_id: int, partial: dict, images: list[dict] | None = None
    ) -> dict:
        return await self.update_work("digital_works", digital_work_id, partial, images)

    async def get_work(self, table: str, work_id: int) -> dict:
        """One work with its images, tags and exhibitions."""
        if table not in WORK_TABLES:
            raise ValidationError(f"{table} is not a work table")
        return await self._run(self._get_work, table, work_id)

    async def _get_work(self, table: str, work_id: int) -> dict:
        async with self.connect() as db:
            return await fetch_work(db, table, work_id)

    async def list_works(self, table: str, series_id: int | None = None) -> list[dict]:
        """All works of one kind, newest first, with images and tags."""
        if table not in WORK_TABLES:
            raise ValidationError(f"{table} is not a work table")
        return await self._run(self._list_works, table, series_id)

    async def _list_works(self, table: str, series_id: int | None) -> list[dict]:
        image_table, tag_table, _, fk = _WORK_LINKS[table]
        async with self.connect() as db:
            if series_id is None:
                cursor = await db.execute(
                    f"SELECT * FROM {table} ORDER BY created_at DESC, id DESC"
                )
            else:
                cursor = await db.execute(
                    f"SELECT * FROM {table} WHERE series_id = ? "
                    "ORDER BY creation_date DESC, id DESC",
                    (series_id,),
                )
            works = await cursor.fetchall()

            cursor = await db.execute(
                f"""
                SELECT li.{fk} AS work_id, gi.id, gi.filename, gi.file_path,
                       li.is_primary, li.display_order
                FROM {image_table} li
                JOIN gallery_images gi ON gi.id = li.image_id
                ORDER BY li.display_order, li.id
                """
            )
            images: dict[int, list[dict]] = {}
            for row in await cursor.fetchall():
                images.setdefault(row.pop("work_id"), []).append(_image_dict(row))

            cursor = await db.execute(
                f"""
                SELECT lt.{fk} AS work_id, t.id, t.name, t.color
                FROM {tag_table} lt
                JOIN tags t ON t.id = lt.tag_id
                ORDER BY t.name
                """
            )
            tags: dict[int, list[dict]] = {}
            for row in await cursor.fetchall():
                tags.setdefault(row.pop("work_id"), []).append(row)

        for work in works:
            work["is_public"] = bool(work["is_public"])
            work["images"] = images.get(work["id"], [])
            work["primary_image"] = effective_primary(work["images"])
            work["tags"] = tags.get(work["id"], [])
        return works

    async def set_work_tags(self, table: str, work_id: int, tag_ids: list[int]) -> None:
        """Replace the tag set of one work."""
        if table not in WORK_TABLES:
            raise ValidationError(f"{table} is not a work table")
        await self._run(self._set_work_tags, table, work_id, tag_ids)

    async def _set_work_tags(self, table: str, work_id: int, tag_ids: list[int]) -> None:
        _, tag_table, _, fk = _WORK_LINKS[table]
        async with self.connect() as db:
            try:
                await fetch_row(db, table, work_id)
                await db.execute(f"DELETE FROM {tag_table} WHERE {fk} = ?", (work_id,))
                for tag_id in dict.fromkeys(tag_ids):
                    await db.execute(
                        f"INSERT INTO {tag_table} ({fk}, tag_id) VALUES (?, ?)",
                        (work_id, tag_id),
                    )
                await db.commit()
            except Exception:
                await db.rollback()
                raise

    async def bulk_update_works(
        self,
        table: str,
        ids: list[int],
        updates: dict,
        price_adjustment: dict | None = None,
    ) -> dict:
        """Patch several works; each work succeeds or fails on its own.

        Only fields in :data:`BULK_FIELDS` may be set.  A price adjustment
        (``{"mode": "percent"|"fixed", "amount": x}``) is applied to each
        work's current price.
        """
        if table not in WORK_TABLES:
            raise ValidationError(f"{table} is not a work table")
        unknown = set(updates) - BULK_FIELDS[table]
        if unknown:
            raise ValidationError(
                f"Fields not allowed in bulk update: {', '.join(sorted(unknown))}"
            )
        if not updates and not price_adjustment:
            raise ValidationError("Nothing to update")
        if "sale_status" in updates:
            status = updates["sale_status"]
            if not isinstance(status, str):
                raise ValidationError(f"Unknown sale_status: {status}")
            try:
                updates = {**updates, "sale_status": normalize_sale_status(status)}
            except ValueError as e:
                raise ValidationError(str(e)) from e
        if price_adjustment and price_adjustment.get("mode") not in PRICE_ADJUSTMENT_MODES:
            raise ValidationError(
                f"Unknown price adjustment mode: {price_adjustment.get('mode')}"
            )

        updated: list[int] = []
        failed: list[dict] = []
        for work_id in ids:
            try:
                await self._run(
                    self._bulk_update_one, table, work_id, updates, price_adjustment
                )
                updated.append(work_id)
            except NotFound as e:
                failed.append({"id": work_id, "error": str(e)})
            except (ValidationError, TransientStoreError) as e:
                logger.warning("Bulk update of %s %d failed: %s", table, work_id, e)
                failed.append({"id": work_id, "error": str(e)})
        return {"updated": updated, "failed": failed}

    async def _bulk_update_one(
        self, table: str, work_id: int, updates: dict, price_adjustment: dict | None
    ) -> None:
        async with self.connect() as db:
            try:
                current = await fetch_row(db, table, work_id)
                changes = dict(updates)
                if price_adjustment:
                    changes["price"] = adjust_price(
                        current["price"],
                        price_adjustment["mode"],
                        price_adjustment["amount"],
                    )
                await update_row(db, table, work_id, changes)
                new_location = changes.get("location")
                if (
                    table == "artworks"
                    and new_location
                    and new_location != current.get("location")
                ):
                    await db.execute(
                        "INSERT INTO location_history (artwork_id, location) VALUES (?, ?)",
                        (work_id, new_location),
                    )
                await db.commit()
            except Exception:
                await db.rollback()
                raise

    # ------------------------------------------------------------------
    # Location history
    # ------------------------------------------------------------------

    async def add_location(
        self, artwork_id: int, location: str, notes: str | None = None
    ) -> dict:
        """Record a move and update the artwork's current location."""
        return await self._run(self._add_location, artwork_id, location, notes)

    async def _add_location(
        self, artwork_id: int, location: str, notes: str | None
    ) -> dict:
        async with self.connect() as db:
            try:
                await fetch_row(db, "artworks", artwork_id)
                cursor = await db.execute(
                    "INSERT INTO location_history (artwork_id, location, notes) "
                    "VALUES (?, ?, ?)",
                    (artwork_id, location, notes),
                )
                entry_id = cursor.lastrowid
                await db.execute(
                    "UPDATE artworks SET location = ?, updated_at = CURRENT_TIMESTAMP "
                    "WHERE id = ?",
                    (location, artwork_id),
                )
                await db.commit()
            except Exception:
                await db.rollback()
                raise
            return await fetch_row(db, "location_history", entry_id)

    async def location_history(self, artwork_id: int) -> list[dict]:
        return await self._run(self._location_history, artwork_id)

    async def _location_history(self, artwork_id: int) -> list[dict]:
        async with self.connect() as db:
            await fetch_row(db, "artworks", artwork_id)
            cursor = await db.execute(
                "SELECT * FROM location_history WHERE artwork_id = ? "
                "ORDER BY moved_date DESC, id DESC",
                (artwork_id,),
            )
            return await cursor.fetchall()

    # ------------------------------------------------------------------
    # Exhibitions
    # ------------------------------------------------------------------

    async def create_exhibition(
        self,
        record: dict,
        artwork_ids: list[int] | None = None,
        digital_work_ids: list[int] | None = None,
    ) -> dict:
        """Create an exhibition together with its work links."""
        try:
            record = ExhibitionCreate.model_validate(record).model_dump(
                exclude={"artworks", "digital_works"}
            )
        except pydantic.ValidationError as e:
            raise ValidationError(f"Invalid exhibition record: {e}") from e
        return await self._run(
            self._create_exhibition, record, artwork_ids or [], digital_work_ids or []
        )

    async def _create_exhibition(
        self, record: dict, artwork_ids: list[int], digital_work_ids: list[int]
    ) -> dict:
        async with self.connect() as db:
            try:
                exhibition_id = await insert_row(db, "exhibitions", record)
                await replace_exhibition_links(
                    db, exhibition_id, artwork_ids, digital_work_ids
                )
                await db.commit()
            except Exception:
                await db.rollback()
                raise
            return await fetch_exhibition(db, exhibition_id)

    async def update_exhibition(
        self,
        exhibition_id: int,
        partial: dict,
        artwork_ids: list[int] | None = None,
        digital_work_ids: list[int] | None = None,
    ) -> dict:
        """Update an exhibition; a given link list replaces the existing one."""
        return await self._run(
            self._update_exhibition, exhibition_id, partial, artwork_ids, digital_work_ids
        )

    async def _update_exhibition(
        self,
        exhibition_id: int,
        partial: dict,
        artwork_ids: list[int] | None,
        digital_work_ids: list[int] | None,
    ) -> dict:
        async with self.connect() as db:
            try:
                await update_row(db, "exhibitions", exhibition_id, partial)
                await replace_exhibition_links(
                    db, exhibition_id, artwork_ids, digital_work_ids
                )
                await db.commit()
            except Exception:
                await db.rollback()
                raise
            return await fetch_exhibition(db, exhibition_id)

    async def get_exhibition(self, exhibition_id: int) -> dict:
        return await self._run(self._get_exhibition, exhibition_id)

    async def _get_exhibition(self, exhibition_id: int) -> dict:
        async with self.connect() as db:
            return await fetch_exhibition(db, exhibition_id)

    async def list_exhibitions(self) -> list[dict]:
        return await self._run(self._list_exhibitions)

    async def _list_exhibitions(self) -> list[dict]:
        async with self.connect() as db:
            cursor = await db.execute(
                "SELECT id FROM exhibitions ORDER BY start_date DESC, id DESC"
            )
            ids = [row["id"] for row in await cursor.fetchall()]
            return [await fetch_exhibition(db, exhibition_id) for exhibition_id in ids]

    # ------------------------------------------------------------------
    # Series
    # ------------------------------------------------------------------

    async def list_series(self) -> list[dict]:
        """All series with the number of works in each."""
        return await self._run(self._list_series)

    async def _list_series(self) -> list[dict]:
        async with self.connect() as db:
            cursor = await db.execute(
                """
                SELECT s.*,
                       (SELECT COUNT(*) FROM artworks a WHERE a.series_id = s.id)
                           AS artwork_count,
                       (SELECT COUNT(*) FROM digital_works dw WHERE dw.series_id = s.id)
                           AS digital_work_count
                FROM series s
                ORDER BY s.name
                """
            )
            return await cursor.fetchall()

    async def get_or_create_series(self, name: str) -> int:
        """Return the id of the series called *name*, creating it if needed."""
        return await self._run(self._get_or_create_series, name)

    async def _get_or_create_series(self, name: str) -> int:
        async with self.connect() as db:
            series_id = await series_id_for(db, name)
            await db.commit()
            return series_id

    # ------------------------------------------------------------------
    # Tags
    # ------------------------------------------------------------------

    async def list_tags(self) -> list[dict]:
        """All tags with the number of works carrying each."""
        return await self._run(self._list_tags)

    async def _list_tags(self) -> list[dict]:
        async with self.connect() as db:
            cursor = await db.execute(
                """
                SELECT t.*,
                       (SELECT COUNT(*) FROM artwork_tags at WHERE at.tag_id = t.id)
                           AS artwork_count,
                       (SELECT COUNT(*) FROM digital_work_tags dt WHERE dt.tag_id = t.id)
                           AS digital_work_count
                FROM tags t
                ORDER BY t.name
                """
            )
            return await cursor.fetchall()

    # ------------------------------------------------------------------
    # Sales
    # ------------------------------------------------------------------

    async def create_sale(self, record: dict) -> dict:
        """Record a sale and mark the sold work as ``sold``.

        Exactly one of ``artwork_id`` / ``digital_work_id`` must be set and
        ``sale_price`` may be free-text currency.
        """
        artwork_id = record.get("artwork_id")
        digital_work_id = record.get("digital_work_id")
        if (artwork_id is None) == (digital_work_id is None):
            raise ValidationError(
                "Must provide either artwork_id or digital_work_id, but not both"
            )
        if not record.get("sale_date"):
            raise ValidationError("Sale date is required")
        return await self._run(self._create_sale, record)

    async def _create_sale(self, record: dict) -> dict:
        if record.get("artwork_id") is not None:
            work_table, work_id = "artworks", record["artwork_id"]
        else:
            work_table, work_id = "digital_works", record["digital_work_id"]

        values = dict(record)
        values["sale_price"] = parse_price(record.get("sale_price"))
        async with self.connect() as db:
            try:
                await fetch_row(db, work_table, work_id)
                sale_id = await insert_row(db, "sales", values)
                await db.execute(
                    f"UPDATE {work_table} SET sale_status = 'sold', "
                    "updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                    (work_id,),
                )
                await db.commit()
            except Exception:
                await db.rollback()
                raise
            return await fetch_row(db, "sales", sale_id)

    async def update_sale(self, sale_id: int, partial: dict) -> dict:
        """Update the given sale fields; the sold work cannot be changed."""
        changes = {
            k: v for k, v in partial.items()
            if v is not None and k not in ("artwork_id", "digital_work_id")
        }
        if "sale_price" in changes:
            changes["sale_price"] = parse_price(changes["sale_price"])
        return await self.update("sales", sale_id, changes)

    async def delete_sale(self, sale_id: int) -> None:
        """Delete a sale and put the work back on the market."""
        await self._run(self._delete_sale, sale_id)

    async def _delete_sale(self, sale_id: int) -> None:
        async with self.connect() as db:
            try:
                sale = await fetch_row(db, "sales", sale_id)
                await db.execute("DELETE FROM sales WHERE id = ?", (sale_id,))
                if sale["artwork_id"] is not None:
                    work_table, work_id = "artworks", sale["artwork_id"]
                else:
                    work_table, work_id = "digital_works", sale["digital_work_id"]
                await db.execute(
                    f"UPDATE {work_table} SET sale_status = 'available', "
                    "updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                    (work_id,),
                )
                await db.commit()
            except Exception:
                await db.rollback()
                raise

    async def list_sales(self, artwork_id: int | None = None,
                         digital_work_id: int | None = None) -> list[dict]:
        """Sales with the sold work's title and inventory number."""
        return await self._run(self._list_sales, artwork_id, digital_work_id)

    async def _list_sales(
        self, artwork_id: int | None, digital_work_id: int | None
    ) -> list[dict]:
        where = ""
        params: tuple = ()
        if artwork_id is not None:
            where, params = "WHERE s.artwork_id = ?", (artwork_id,)
        elif digital_work_id is not None:
            where, params = "WHERE s.digital_work_id = ?", (digital_work_id,)
        async with self.connect() as db:
            cursor = await db.execute(
                f"""
                SELECT s.*,
                       a.title AS artwork_title,
                       a.inventory_number AS artwork_inventory,
                       dw.title AS digital_work_title,
                       dw.inventory_number AS digital_work_inventory
                FROM sales s
                LEFT JOIN artworks a ON a.id = s.artwork_id
                LEFT JOIN digital_works dw ON dw.id = s.digital_work_id
                {where}
                ORDER BY s.sale_date DESC, s.created_at DESC
                """,
                params,
            )
            return await cursor.fetchall()

    async def sales_summary(self) -> dict:
        return await self._run(self._sales_summary)

    async def _sales_summary(self) -> dict:
        async with self.connect() as db:
            cursor = await db.execute(
                """
                SELECT COUNT(*) AS total_sales,
                       COALESCE(SUM(sale_price), 0) AS total_revenue,
                       AVG(sale_price) AS average_sale_price,
                       COUNT(DISTINCT artwork_id) AS artworks_sold,
                       COUNT(DISTINCT digital_work_id) AS digital_works_sold
                FROM sales
                """
            )
            return await cursor.fetchone()


# ---------------------------------------------------------------------------
# Connection-level helpers (caller owns the transaction)
# ---------------------------------------------------------------------------


async def fetch_row(db: aiosqlite.Connection, table: str, row_id: int) -> dict:
    cursor = await db.execute(f"SELECT * FROM {table} WHERE id = ?", (row_id,))
    row = await cursor.fetchone()
    if row is None:
        raise NotFound(table, row_id)
    return row


async def series_id_for(db: aiosqlite.Connection, name: str) -> int:
    """Id of the series called *name*, inserting it when missing."""
    cursor = await db.execute("SELECT id FROM series WHERE name = ?", (name,))
    row = await cursor.fetchone()
    if row is not None:
        return row["id"]
    cursor = await db.execute("INSERT INTO series (name) VALUES (?)", (name,))
    return cursor.lastrowid


async def insert_row(db: aiosqlite.Connection, table: str, record: dict) -> int:
    values = _writable(table, record, allow_id=record.get("id") is not None)
    if not values:
        raise ValidationError(f"No columns to insert into {table}")
    columns = ", ".join(values)
    placeholders = ", ".join("?" for _ in values)
    cursor = await db.execute(
        f"INSERT INTO {table} ({columns}) VALUES ({placeholders})",
        tuple(values.values()),
    )
    return cursor.lastrowid


async def update_row(
    db: aiosqlite.Connection, table: str, row_id: int, partial: dict
) -> None:
    values = _writable(table, partial)
    if "updated_at" in table_columns(table):
        values.pop("updated_at", None)
        assignments = [f"{col} = ?" for col in values] + ["updated_at = CURRENT_TIMESTAMP"]
    else:
        assignments = [f"{col} = ?" for col in values]
    if not assignments:
        await fetch_row(db, table, row_id)
        return
    cursor = await db.execute(
        f"UPDATE {table} SET {', '.join(assignments)} WHERE id = ?",
        (*values.values(), row_id),
    )
    if cursor.rowcount == 0:
        raise NotFound(table, row_id)


async def upsert_row(db: aiosqlite.Connection, table: str, record: dict) -> None:
    """Insert-or-overwrite one row by id using the table's static schema.

    Every declared column is written.  Server timestamps missing from the
    record keep their stored value (or the insert default) so a re-run
    produces identical rows.
    """
    try:
        row = TABLE_SCHEMAS[table].model_validate(record).model_dump()
    except pydantic.ValidationError as e:
        raise ValidationError(f"Invalid {table} row: {e}") from e

    columns = table_columns(table)
    placeholders: list[str] = []
    assignments: list[str] = []
    insert_params: list = []
    update_params: list = []
    for col in columns:
        value = row[col]
        insert_params.append(value)
        if col in SERVER_TIMESTAMP_COLUMNS:
            placeholders.append("COALESCE(?, CURRENT_TIMESTAMP)")
            assignments.append(f"{col} = COALESCE(?, {col})")
            update_params.append(value)
        else:
            placeholders.append("?")
            if col != "id":
                assignments.append(f"{col} = excluded.{col}")

    await db.execute(
        f"INSERT INTO {table} ({', '.join(columns)}) "
        f"VALUES ({', '.join(placeholders)}) "
        f"ON CONFLICT(id) DO UPDATE SET {', '.join(assignments)}",
        (*insert_params, *update_params),
    )


async def set_sequence(
    db: aiosqlite.Connection, table: str, next_value: int, advance_only: bool = False
) -> None:
    """Point the AUTOINCREMENT counter of *table* at ``next_value - 1``.

    With *advance_only* the counter is never moved backwards.
    """
    seq = max(next_value - 1, 0)
    cursor = await db.execute("SELECT seq FROM sqlite_sequence WHERE name = ?", (table,))
    row = await cursor.fetchone()
    if row is None:
        await db.execute(
            "INSERT INTO sqlite_sequence (name, seq) VALUES (?, ?)", (table, seq)
        )
    elif not advance_only or seq > row["seq"]:
        await db.execute(
            "UPDATE sqlite_sequence SET seq = ? WHERE name = ?", (seq, table)
        )


async def replace_images(
    db: aiosqlite.Connection, table: str, work_id: int, images: list[dict]
) -> None:
    """Delete a work's image links and insert *images* in list order."""
    image_table, _, _, fk = _WORK_LINKS[table]
    await db.execute(f"DELETE FROM {image_table} WHERE {fk} = ?", (work_id,))
    for position, image in enumerate(images):
        await db.execute(
            f"INSERT INTO {image_table} ({fk}, image_id, is_primary, display_order) "
            "VALUES (?, ?, ?, ?)",
            (work_id, image["id"], bool(image.get("is_primary")), position),
        )


async def replace_exhibition_links(
    db: aiosqlite.Connection,
    exhibition_id: int,
    artwork_ids: list[int] | None,
    digital_work_ids: list[int] | None,
) -> None:
    for link_table, fk, ids in (
        ("artwork_exhibitions", "artwork_id", artwork_ids),
        ("digital_work_exhibitions", "digital_work_id", digital_work_ids),
    ):
        if ids is None:
            continue
        await db.execute(
            f"DELETE FROM {link_table} WHERE exhibition_id = ?", (exhibition_id,)
        )
        for work_id in dict.fromkeys(ids):
            await db.execute(
                f"INSERT INTO {link_table} ({fk}, exhibition_id) VALUES (?, ?)",
                (work_id, exhibition_id),
            )


def _image_dict(row: dict) -> dict:
    row["is_primary"] = bool(row["is_primary"])
    return row


async def fetch_work(db: aiosqlite.Connection, table: str, work_id: int) -> dict:
    """Load a work along with its images, tags and exhibitions."""
    image_table, tag_table, exhibition_table, fk = _WORK_LINKS[table]
    work = await fetch_row(db, table, work_id)
    work["is_public"] = bool(work["is_public"])

    cursor = await db.execute(
        f"""
        SELECT gi.id, gi.filename, gi.file_path, li.is_primary, li.display_order
        FROM {image_table} li
        JOIN gallery_images gi ON gi.id = li.image_id
        WHERE li.{fk} = ?
        ORDER BY li.display_order, li.id
        """,
        (work_id,),
    )
    work["images"] = [_image_dict(r) for r in await cursor.fetchall()]
    work["primary_image"] = effective_primary(work["images"])

    cursor = await db.execute(
        f"""
        SELECT t.id, t.name, t.color FROM tags t
        JOIN {tag_table} lt ON lt.tag_id = t.id
        WHERE lt.{fk} = ?
        ORDER BY t.name
        """,
        (work_id,),
    )
    work["tags"] = await cursor.fetchall()

    cursor = await db.execute(
        f"""
        SELECT e.id, e.name, e.venue, e.start_date, e.end_date FROM exhibitions e
        JOIN {exhibition_table} le ON le.exhibition_id = e.id
        WHERE le.{fk} = ?
        ORDER BY e.start_date DESC
        """,
        (work_id,),
    )
    work["exhibitions"] = await cursor.fetchall()
    return work


async def fetch_exhibition(db: aiosqlite.Connection, exhibition_id: int) -> dict:
    """Load an exhibition with the works shown in it."""
    exhibition = await fetch_row(db, "exhibitions", exhibition_id)
    cursor = await db.execute(
        """
        SELECT a.id, a.title, a.inventory_number FROM artworks a
        JOIN artwork_exhibitions ae ON ae.artwork_id = a.id
        WHERE ae.exhibition_id = ?
        ORDER BY a.title
        """,
        (exhibition_id,),
    )
    exhibition["artworks"] = await cursor.fetchall()
    cursor = await db.execute(
        """
        SELECT dw.id, dw.title, dw.inventory_number FROM digital_works dw
        JOIN digital_work_exhibitions de ON de.digital_work_id = dw.id
        WHERE de.exhibition_id = ?
        ORDER BY dw.title
        """,
        (exhibition_id,),
    )
    exhibition["digital_works"] = await cursor.fetchall()
    return exhibition
