"""API routes for migrating a legacy browser catalog into the server."""

import logging

from fastapi import APIRouter, BackgroundTasks, HTTPException, Request

from artcatalog.api._helpers import _http_error
from artcatalog.services.errors import AlreadyInProgress, CatalogError
from artcatalog.services.legacy_store import AssetFetcher, LegacyStore
from artcatalog.services.migration import (
    MigrationEngine,
    MigrationProgress,
    migration_in_progress,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/migration", tags=["migration"])


def _get_progress(request: Request) -> MigrationProgress:
    return request.app.state.migration_progress


async def _run_migration(app, legacy: LegacyStore) -> None:
    """Background task: run one migration and keep its result on the app."""
    async with AssetFetcher() as fetcher:
        engine = MigrationEngine(app.state.entity_store, app.state.object_store, fetcher)
        try:
            result = await engine.run(legacy, app.state.migration_progress)
        except AlreadyInProgress:
            logger.warning("Migration request dropped: another run is in progress")
            return
    app.state.migration_result = result.to_dict()


# ---------------------------------------------------------------------------
# Start a migration
# ---------------------------------------------------------------------------


@router.post("", status_code=202)
async def start_migration(request: Request, background_tasks: BackgroundTasks):
    """Start migrating a legacy catalog dump in the background.

    Expects the JSON the old client exported (``artworks``,
    ``digital_works``, ``exhibitions``, ``file_references``, ...).
    Poll ``GET /api/migration/status`` for progress.
    """
    progress = _get_progress(request)
    if migration_in_progress() or progress.running:
        raise _http_error(AlreadyInProgress("Migration already in progress"))
    # Claimed before the first await so a concurrent request gets 409
    progress.running = True

    try:
        dump = await request.json()
    except ValueError:
        progress.running = False
        raise HTTPException(status_code=400, detail="Legacy dump is not valid JSON")
    try:
        legacy = LegacyStore(dump)
    except CatalogError as e:
        progress.running = False
        raise _http_error(e)

    request.app.state.migration_result = None
    background_tasks.add_task(_run_migration, request.app, legacy)

    return {"detail": "Migration started in background", "counts": legacy.counts()}


# ---------------------------------------------------------------------------
# Migration status
# ---------------------------------------------------------------------------


@router.get("/status")
async def get_migration_status(request: Request):
    """Current progress counters and the result of the last finished run."""
    return {
        **_get_progress(request).to_dict(),
        "result": getattr(request.app.state, "migration_result", None),
    }
