"""API routes for physical artworks."""

import logging

from fastapi import APIRouter, Query, Request

from artcatalog.api._helpers import _get_store, _http_error
from artcatalog.models.schemas import (
    ArtworkCreate,
    ArtworkUpdate,
    BulkWorkUpdate,
    LocationCreate,
    WorkTagsRequest,
)
from artcatalog.services.errors import CatalogError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/artworks", tags=["artworks"])

TABLE = "artworks"


# ---------------------------------------------------------------------------
# List / get
# ---------------------------------------------------------------------------


@router.get("")
async def list_artworks(request: Request, series_id: int | None = Query(None)):
    """List artworks, newest first, with images and tags."""
    try:
        artworks = await _get_store(request).list_works(TABLE, series_id)
    except CatalogError as e:
        raise _http_error(e)
    return {"artworks": artworks}


@router.get("/{artwork_id}")
async def get_artwork(request: Request, artwork_id: int):
    """Get one artwork with its images, tags and exhibitions."""
    try:
        return await _get_store(request).get_work(TABLE, artwork_id)
    except CatalogError as e:
        raise _http_error(e)


# ---------------------------------------------------------------------------
# Create / update / delete
# ---------------------------------------------------------------------------


@router.post("", status_code=201)
async def create_artwork(request: Request, body: ArtworkCreate):
    """Create an artwork.

    ``images`` is an ordered list of ``{"id": gallery_image_id, "is_primary": bool}``.
    """
    record = body.model_dump(exclude={"images"})
    images = [img.model_dump() for img in body.images]
    try:
        artwork = await _get_store(request).create_artwork(record, images)
    except CatalogError as e:
        raise _http_error(e)
    logger.info("Created artwork %d (%s)", artwork["id"], artwork["title"])
    return artwork


@router.patch("/bulk")
async def bulk_update_artworks(request: Request, body: BulkWorkUpdate):
    """Apply the same field changes and/or price adjustment to several artworks."""
    adjustment = body.price_adjustment.model_dump() if body.price_adjustment else None
    try:
        result = await _get_store(request).bulk_update_works(
            TABLE, body.ids, body.updates, adjustment
        )
    except CatalogError as e:
        raise _http_error(e)
    return {"count": len(result["updated"]), **result}


@router.put("/{artwork_id}")
async def update_artwork(request: Request, artwork_id: int, body: ArtworkUpdate):
    """Update an artwork; omitted fields keep their value."""
    partial = body.model_dump(exclude_unset=True, exclude={"images"})
    images = (
        [img.model_dump() for img in body.images] if body.images is not None else None
    )
    try:
        return await _get_store(request).update_artwork(artwork_id, partial, images)
    except CatalogError as e:
        raise _http_error(e)


@router.delete("/{artwork_id}")
async def delete_artwork(request: Request, artwork_id: int):
    """Delete an artwork; its links, sales and location history cascade."""
    try:
        await _get_store(request).delete(TABLE, artwork_id)
    except CatalogError as e:
        raise _http_error(e)
    return {"detail": f"Artwork {artwork_id} deleted"}


# ---------------------------------------------------------------------------
# Tags
# ---------------------------------------------------------------------------


@router.post("/{artwork_id}/tags")
async def set_artwork_tags(request: Request, artwork_id: int, body: WorkTagsRequest):
    """Replace the artwork's tags with ``tagIds``."""
    store = _get_store(request)
    try:
        await store.set_work_tags(TABLE, artwork_id, body.tagIds)
        artwork = await store.get_work(TABLE, artwork_id)
    except CatalogError as e:
        raise _http_error(e)
    return {"tags": artwork["tags"]}


# ---------------------------------------------------------------------------
# Location history
# ---------------------------------------------------------------------------


@router.get("/{artwork_id}/location-history")
async def get_location_history(request: Request, artwork_id: int):
    """Where the artwork has been, most recent move first."""
    try:
        history = await _get_store(request).location_history(artwork_id)
    except CatalogError as e:
        raise _http_error(e)
    return {"location_history": history}


@router.post("/{artwork_id}/location-history", status_code=201)
async def add_location(request: Request, artwork_id: int, body: LocationCreate):
    """Record a move; the artwork's current location follows."""
    try:
        return await _get_store(request).add_location(
            artwork_id, body.location, body.notes
        )
    except CatalogError as e:
        raise _http_error(e)
