"""Snapshot export, upsert restore and full clear of the catalog."""

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone

from artcatalog.services.entity_graph import deletion_order, insertion_order
from artcatalog.services.entity_store import EntityStore
from artcatalog.services.errors import InvalidSnapshotFormat, TransientStoreError

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = "1.0"
SUPPORTED_VERSIONS = {"1.0"}


@dataclass
class RestoreResult:
    """Per-table outcome of a restore."""

    imported: dict[str, int] = field(default_factory=dict)
    failed: dict[str, int] = field(default_factory=dict)
    errors: dict[str, list[dict]] = field(default_factory=dict)
    ignored_tables: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not any(self.failed.values())

    def to_dict(self) -> dict:
        return {"success": self.success, **asdict(self)}


@dataclass
class ClearResult:
    success: bool
    cleared: list[str] = field(default_factory=list)
    failed_table: str | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)


def validate_snapshot(snapshot) -> dict:
    """Check the document shape before anything is written.

    Returns the ``data`` mapping.

    Raises:
        InvalidSnapshotFormat: not an object, ``data`` missing or not an
            object, a table that is not a list, or an unsupported version.
    """
    if not isinstance(snapshot, dict):
        raise InvalidSnapshotFormat("Invalid backup format: expected a JSON object")
    data = snapshot.get("data")
    if not isinstance(data, dict):
        raise InvalidSnapshotFormat("Invalid backup format: missing 'data'")
    version = snapshot.get("version", SNAPSHOT_VERSION)
    if str(version) not in SUPPORTED_VERSIONS:
        raise InvalidSnapshotFormat(f"Unsupported backup version: {version}")
    for table, rows in data.items():
        if not isinstance(rows, list):
            raise InvalidSnapshotFormat(f"Invalid backup format: {table} is not a list")
    return data


class BackupService:
    """Export, restore and clear every catalog table."""

    def __init__(self, entity_store: EntityStore) -> None:
        self.entity_store = entity_store

    async def export(self) -> dict:
        """Snapshot of every table: ``{version, timestamp, data}``."""
        data = await self.entity_store.export_tables(insertion_order())
        logger.info(
            "Exported backup with %d rows across %d tables",
            sum(len(rows) for rows in data.values()), len(data),
        )
        return {
            "version": SNAPSHOT_VERSION,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "data": data,
        }

    async def restore(self, snapshot) -> RestoreResult:
        """Upsert every row of *snapshot*, parents before children.

        Each table commits on its own, so a failure in one table leaves the
        tables before it in place.  Re-running the same snapshot yields the
        same rows.
        """
        data = validate_snapshot(snapshot)
        order = insertion_order()
        result = RestoreResult(ignored_tables=sorted(set(data) - set(order)))
        if result.ignored_tables:
            logger.warning(
                "Ignoring unknown tables in backup: %s", ", ".join(result.ignored_tables)
            )

        for table in order:
            rows = data.get(table) or []
            if not rows:
                result.imported[table] = 0
                result.failed[table] = 0
                continue
            try:
                outcome = await self.entity_store.restore_table(table, rows)
            except TransientStoreError as e:
                logger.warning("Restore of %s rolled back: %s", table, e)
                outcome = {
                    "imported": 0,
                    "failed": len(rows),
                    "errors": [{"id": None, "error": str(e)}],
                }
            result.imported[table] = outcome["imported"]
            result.failed[table] = outcome["failed"]
            if outcome["errors"]:
                result.errors[table] = outcome["errors"]
            logger.info(
                "Restored %s: %d imported, %d failed",
                table, outcome["imported"], outcome["failed"],
            )
        return result

    async def clear(self) -> ClearResult:
        """Delete all rows, children before parents, and reset id sequences."""
        outcome = await self.entity_store.clear_tables(deletion_order())
        if outcome["failed_table"] is None:
            logger.info("Cleared all catalog data")
            return ClearResult(success=True, cleared=outcome["cleared"])
        return ClearResult(
            success=False,
            cleared=outcome["cleared"],
            failed_table=outcome["failed_table"],
            error=outcome["error"],
        )
