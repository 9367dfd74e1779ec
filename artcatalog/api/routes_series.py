"""API routes for series of works."""

from fastapi import APIRouter, Request

from artcatalog.api._helpers import _get_store, _http_error
from artcatalog.models.schemas import SeriesCreate
from artcatalog.services.errors import CatalogError, DuplicateName

router = APIRouter(prefix="/api/series", tags=["series"])


@router.get("")
async def list_series(request: Request):
    """List all series with artwork and digital work counts."""
    try:
        series = await _get_store(request).list_series()
    except CatalogError as e:
        raise _http_error(e)
    return {"series": series}


@router.get("/{series_id}")
async def get_series(request: Request, series_id: int):
    """Get one series together with the works that belong to it."""
    store = _get_store(request)
    try:
        series = await store.get_by_id("series", series_id)
        series["artworks"] = await store.list_works("artworks", series_id)
        series["digital_works"] = await store.list_works("digital_works", series_id)
    except CatalogError as e:
        raise _http_error(e)
    return series


@router.post("", status_code=201)
async def create_series(request: Request, body: SeriesCreate):
    try:
        return await _get_store(request).create("series", body.model_dump())
    except DuplicateName:
        raise _http_error(DuplicateName(f"Series '{body.name}' already exists"))
    except CatalogError as e:
        raise _http_error(e)


@router.put("/{series_id}")
async def update_series(request: Request, series_id: int, body: SeriesCreate):
    """Replace the series fields."""
    try:
        return await _get_store(request).update("series", series_id, body.model_dump())
    except DuplicateName:
        raise _http_error(DuplicateName(f"Series '{body.name}' already exists"))
    except CatalogError as e:
        raise _http_error(e)


@router.delete("/{series_id}")
async def delete_series(request: Request, series_id: int):
    """Delete a series; its works stay and lose the series reference."""
    try:
        await _get_store(request).delete("series", series_id)
    except CatalogError as e:
        raise _http_error(e)
    return {"detail": f"Series {series_id} deleted"}
