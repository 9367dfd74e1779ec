"""API routes for exhibitions."""

from fastapi import APIRouter, Request

from artcatalog.api._helpers import _get_store, _http_error
from artcatalog.models.schemas import ExhibitionCreate, ExhibitionUpdate
from artcatalog.services.errors import CatalogError

router = APIRouter(prefix="/api/exhibitions", tags=["exhibitions"])


@router.get("")
async def list_exhibitions(request: Request):
    """List exhibitions, most recent first, with the works shown."""
    try:
        exhibitions = await _get_store(request).list_exhibitions()
    except CatalogError as e:
        raise _http_error(e)
    return {"exhibitions": exhibitions}


@router.get("/{exhibition_id}")
async def get_exhibition(request: Request, exhibition_id: int):
    try:
        return await _get_store(request).get_exhibition(exhibition_id)
    except CatalogError as e:
        raise _http_error(e)


@router.post("", status_code=201)
async def create_exhibition(request: Request, body: ExhibitionCreate):
    """Create an exhibition.

    Expects ``artworks`` and ``digital_works`` as lists of work ids.
    """
    record = body.model_dump(exclude={"artworks", "digital_works"})
    try:
        return await _get_store(request).create_exhibition(
            record, body.artworks, body.digital_works
        )
    except CatalogError as e:
        raise _http_error(e)


@router.put("/{exhibition_id}")
async def update_exhibition(request: Request, exhibition_id: int, body: ExhibitionUpdate):
    """Update an exhibition; a given work list replaces the current one."""
    partial = body.model_dump(exclude_unset=True, exclude={"artworks", "digital_works"})
    try:
        return await _get_store(request).update_exhibition(
            exhibition_id, partial, body.artworks, body.digital_works
        )
    except CatalogError as e:
        raise _http_error(e)


@router.delete("/{exhibition_id}")
async def delete_exhibition(request: Request, exhibition_id: int):
    try:
        await _get_store(request).delete("exhibitions", exhibition_id)
    except CatalogError as e:
        raise _http_error(e)
    return {"detail": f"Exhibition {exhibition_id} deleted"}
