"""One-shot migration from the legacy browser catalog to the server store.

Runs in four passes: images, physical artworks, digital works, then
exhibitions.  Legacy ids are remapped as records are created, so an
exhibition only links works that actually made it across.  A record that
fails is logged, counted and skipped; the run itself only fails when the
destination store cannot be reached at all.
"""

import asyncio
import logging
from dataclasses import asdict, dataclass, field
from typing import Callable

import httpx

from artcatalog.services.entity_store import EntityStore
from artcatalog.services.errors import AlreadyInProgress, CatalogError
from artcatalog.services.legacy_store import AssetFetcher, LegacyStore, strip_legacy_fields
from artcatalog.services.object_store import ObjectStore

logger = logging.getLogger(__name__)

# Failures that skip one record instead of aborting the run
RECORD_ERRORS = (CatalogError, httpx.HTTPError, OSError)

ENTITY_CLASSES = ("images", "artworks", "digital_works", "exhibitions")

# Only one migration per process
_migration_lock = asyncio.Lock()


@dataclass
class ClassProgress:
    """Running totals for one entity class."""

    total: int = 0
    migrated: int = 0
    failed: int = 0


@dataclass
class MigrationProgress:
    """Progress of one migration run, owned by whoever started it.

    Observers may read it at any time while the engine writes it.
    """

    running: bool = False
    completed: bool = False
    error: str | None = None
    message: str = ""
    counts: dict[str, ClassProgress] = field(
        default_factory=lambda: {name: ClassProgress() for name in ENTITY_CLASSES}
    )

    def reset(self) -> None:
        self.running = True
        self.completed = False
        self.error = None
        self.message = ""
        self.counts = {name: ClassProgress() for name in ENTITY_CLASSES}

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class MigrationResult:
    success: bool
    summary: dict[str, dict] = field(default_factory=dict)
    error: str | None = None
    id_maps: dict[str, dict] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return asdict(self)


def migration_in_progress() -> bool:
    return _migration_lock.locked()


class MigrationEngine:
    """Moves a :class:`LegacyStore` into the entity and object stores."""

    def __init__(
        self,
        entity_store: EntityStore,
        object_store: ObjectStore,
        fetcher: AssetFetcher,
    ) -> None:
        self.entity_store = entity_store
        self.object_store = object_store
        self.fetcher = fetcher

    async def run(
        self,
        legacy: LegacyStore,
        progress: MigrationProgress | None = None,
        on_progress: Callable[[MigrationProgress], None] | None = None,
    ) -> MigrationResult:
        """Migrate everything in *legacy*.

        Raises:
            AlreadyInProgress: another migration is running in this process.
        """
        if _migration_lock.locked():
            raise AlreadyInProgress("Migration already in progress")

        async with _migration_lock:
            self.progress = progress if progress is not None else MigrationProgress()
            self._on_progress = on_progress
            self.progress.reset()
            return await self._run(legacy)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _report(self, message: str | None = None) -> None:
        if message is not None:
            self.progress.message = message
            logger.info(message)
        if self._on_progress is not None:
            self._on_progress(self.progress)

    async def _run(self, legacy: LegacyStore) -> MigrationResult:
        progress = self.progress
        try:
            # Fail the whole run up front if the destination is unreachable
            await self.entity_store.count("artworks")

            self._report("Migrating images...")
            image_map = await self._migrate_images(legacy)

            self._report("Migrating physical artworks...")
            artwork_map = await self._migrate_works(legacy, "artworks", image_map)

            self._report("Migrating digital works...")
            digital_map = await self._migrate_works(legacy, "digital_works", image_map)

            self._report("Migrating exhibitions...")
            exhibition_map = await self._migrate_exhibitions(
                legacy, artwork_map, digital_map
            )
        except Exception as e:
            logger.exception("Migration aborted")
            progress.error = str(e)
            progress.running = False
            self._report(f"Migration failed: {e}")
            return MigrationResult(
                success=False, summary=self._summary(), error=str(e)
            )

        progress.running = False
        progress.completed = True
        self._report("Migration completed successfully!")
        return MigrationResult(
            success=True,
            summary=self._summary(),
            id_maps={
                "images": image_map,
                "artworks": artwork_map,
                "digital_works": digital_map,
                "exhibitions": exhibition_map,
            },
        )

    def _summary(self) -> dict[str, dict]:
        return {name: asdict(c) for name, c in self.progress.counts.items()}

    async def _migrate_images(self, legacy: LegacyStore) -> dict[str, int]:
        """Upload each distinct legacy asset once; map reference -> image id."""
        counts = self.progress.counts["images"]
        references = legacy.asset_references()
        counts.total = len(references)

        image_map: dict[str, int] = {}
        for reference in references:
            try:
                data, filename, mime_type = await self.fetcher.fetch(reference)
                image = await self.object_store.upload(data, filename, mime_type)
            except RECORD_ERRORS as e:
                logger.warning("Skipping image %s: %s", reference[:80], e)
                counts.failed += 1
            else:
                image_map[reference] = image["id"]
                counts.migrated += 1
            self._report()
        return image_map

    async def _migrate_works(
        self, legacy: LegacyStore, table: str, image_map: dict[str, int]
    ) -> dict:
        """Create each legacy work of *table*; map old id -> new id."""
        counts = self.progress.counts[table]
        works = legacy.table(table)
        counts.total = len(works)

        id_map: dict = {}
        for work in works:
            old_id = work.get("id")
            try:
                new_id = await self._migrate_work(legacy, table, work, image_map)
            except RECORD_ERRORS as e:
                logger.warning("Skipping %s %s: %s", table, old_id, e)
                counts.failed += 1
            else:
                if old_id is not None:
                    id_map[old_id] = new_id
                counts.migrated += 1
            self._report()
        return id_map

    async def _migrate_work(
        self, legacy: LegacyStore, table: str, work: dict, image_map: dict[str, int]
    ) -> int:
        old_id = work.get("id")

        # References that never uploaded are dropped; the work keeps the rest
        images: list[dict] = []
        seen: set[int] = set()
        for ref in legacy.file_references_for(table, old_id):
            image_id = image_map.get(ref["file_path"])
            if image_id is None or image_id in seen:
                continue
            seen.add(image_id)
            images.append({"id": image_id, "is_primary": bool(ref.get("is_primary"))})

        record = strip_legacy_fields(work)
        series_name = work.get("series_name")
        series_name = series_name.strip() if isinstance(series_name, str) else None

        history = legacy.location_history_for(old_id) if table == "artworks" else None
        created = await self.entity_store.create_work(
            table, record, images, history, series_name=series_name or None
        )
        return created["id"]

    async def _migrate_exhibitions(
        self, legacy: LegacyStore, artwork_map: dict, digital_map: dict
    ) -> dict:
        counts = self.progress.counts["exhibitions"]
        exhibitions = legacy.exhibitions
        counts.total = len(exhibitions)

        id_map: dict = {}
        for exhibition in exhibitions:
            old_id = exhibition.get("id")
            old_artworks, old_digital = legacy.exhibition_work_ids(old_id)
            # Works that failed to migrate have no mapping and are left out
            artwork_ids = [artwork_map[i] for i in old_artworks if i in artwork_map]
            digital_ids = [digital_map[i] for i in old_digital if i in digital_map]
            try:
                created = await self.entity_store.create_exhibition(
                    strip_legacy_fields(exhibition), artwork_ids, digital_ids
                )
            except RECORD_ERRORS as e:
                logger.warning("Skipping exhibition %s: %s", old_id, e)
                counts.failed += 1
            else:
                if old_id is not None:
                    id_map[old_id] = created["id"]
                counts.migrated += 1
            self._report()
        return id_map
