"""API routes for digital works."""

import logging

from fastapi import APIRouter, Query, Request

from artcatalog.api._helpers import _get_store, _http_error
from artcatalog.models.schemas import (
    BulkWorkUpdate,
    DigitalWorkCreate,
    DigitalWorkUpdate,
    WorkTagsRequest,
)
from artcatalog.services.errors import CatalogError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/digital-works", tags=["digital-works"])

TABLE = "digital_works"


@router.get("")
async def list_digital_works(request: Request, series_id: int | None = Query(None)):
    try:
        works = await _get_store(request).list_works(TABLE, series_id)
    except CatalogError as e:
        raise _http_error(e)
    return {"digital_works": works}


@router.get("/{work_id}")
async def get_digital_work(request: Request, work_id: int):
    try:
        return await _get_store(request).get_work(TABLE, work_id)
    except CatalogError as e:
        raise _http_error(e)


@router.post("", status_code=201)
async def create_digital_work(request: Request, body: DigitalWorkCreate):
    """Create a digital work with an ordered image list."""
    record = body.model_dump(exclude={"images"})
    images = [img.model_dump() for img in body.images]
    try:
        work = await _get_store(request).create_digital_work(record, images)
    except CatalogError as e:
        raise _http_error(e)
    logger.info("Created digital work %d (%s)", work["id"], work["title"])
    return work


@router.patch("/bulk")
async def bulk_update_digital_works(request: Request, body: BulkWorkUpdate):
    adjustment = body.price_adjustment.model_dump() if body.price_adjustment else None
    try:
        result = await _get_store(request).bulk_update_works(
            TABLE, body.ids, body.updates, adjustment
        )
    except CatalogError as e:
        raise _http_error(e)
    return {"count": len(result["updated"]), **result}


@router.put("/{work_id}")
async def update_digital_work(request: Request, work_id: int, body: DigitalWorkUpdate):
    partial = body.model_dump(exclude_unset=True, exclude={"images"})
    images = (
        [img.model_dump() for img in body.images] if body.images is not None else None
    )
    try:
        return await _get_store(request).update_digital_work(work_id, partial, images)
    except CatalogError as e:
        raise _http_error(e)


@router.delete("/{work_id}")
async def delete_digital_work(request: Request, work_id: int):
    try:
        await _get_store(request).delete(TABLE, work_id)
    except CatalogError as e:
        raise _http_error(e)
    return {"detail": f"Digital work {work_id} deleted"}


@router.post("/{work_id}/tags")
async def set_digital_work_tags(request: Request, work_id: int, body: WorkTagsRequest):
    store = _get_store(request)
    try:
        await store.set_work_tags(TABLE, work_id, body.tagIds)
        work = await store.get_work(TABLE, work_id)
    except CatalogError as e:
        raise _http_error(e)
    return {"tags": work["tags"]}
