"""API routes for backup export, import and clearing all data."""

import logging
import time

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse

from artcatalog.api._helpers import _get_store, _http_error
from artcatalog.services.backup import BackupService
from artcatalog.services.errors import CatalogError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/backup", tags=["backup"])


def _get_backup(request: Request) -> BackupService:
    return BackupService(_get_store(request))


@router.get("/export")
async def export_backup(request: Request):
    """Download every table as one JSON snapshot."""
    try:
        snapshot = await _get_backup(request).export()
    except CatalogError as e:
        raise _http_error(e)
    filename = f"art-catalog-backup-{int(time.time() * 1000)}.json"
    return JSONResponse(
        content=snapshot,
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@router.post("/import")
async def import_backup(request: Request):
    """Restore a snapshot with upsert semantics.

    Expects the JSON produced by ``GET /api/backup/export``.  Rows that
    fail are skipped and reported per table.
    """
    try:
        snapshot = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Backup file is not valid JSON")
    try:
        result = await _get_backup(request).restore(snapshot)
    except CatalogError as e:
        raise _http_error(e)
    logger.info("Backup import finished (success=%s)", result.success)
    return {
        "message": "Data imported successfully" if result.success
        else "Data imported with errors",
        **result.to_dict(),
    }


@router.post("/clear")
async def clear_data(request: Request):
    """Delete all catalog data and reset id sequences."""
    try:
        result = await _get_backup(request).clear()
    except CatalogError as e:
        raise _http_error(e)
    if not result.success:
        return JSONResponse(
            status_code=500,
            content={"message": f"Failed to clear data at {result.failed_table}", **result.to_dict()},
        )
    return {"message": "All data cleared successfully", **result.to_dict()}
