"""API routes for tag management."""

from fastapi import APIRouter, Request

from artcatalog.api._helpers import _get_store, _http_error
from artcatalog.models.schemas import TagCreate, TagUpdate
from artcatalog.services.errors import CatalogError, DuplicateName, ValidationError

router = APIRouter(prefix="/api/tags", tags=["tags"])


# ---------------------------------------------------------------------------
# List all tags (with work counts)
# ---------------------------------------------------------------------------


@router.get("")
async def list_tags(request: Request):
    """List all tags with the number of works carrying each."""
    try:
        tags = await _get_store(request).list_tags()
    except CatalogError as e:
        raise _http_error(e)
    return {"tags": tags}


# ---------------------------------------------------------------------------
# Create tag
# ---------------------------------------------------------------------------


@router.post("", status_code=201)
async def create_tag(request: Request, body: TagCreate):
    """Create a new tag.

    Expects JSON body: {"name": "tag_name", "color": "#RRGGBB"}
    """
    try:
        return await _get_store(request).create("tags", body.model_dump())
    except DuplicateName:
        raise _http_error(DuplicateName(f"Tag '{body.name}' already exists"))
    except CatalogError as e:
        raise _http_error(e)


# ---------------------------------------------------------------------------
# Update tag
# ---------------------------------------------------------------------------


@router.put("/{tag_id}")
async def update_tag(request: Request, tag_id: int, body: TagUpdate):
    """Rename a tag and/or change its color."""
    changes = body.model_dump(exclude_none=True)
    if "name" in changes:
        changes["name"] = changes["name"].strip()
        if not changes["name"]:
            raise _http_error(ValidationError("'name' must be a non-empty string"))
    try:
        return await _get_store(request).update("tags", tag_id, changes)
    except DuplicateName:
        raise _http_error(DuplicateName(f"Tag '{changes['name']}' already exists"))
    except CatalogError as e:
        raise _http_error(e)


# ---------------------------------------------------------------------------
# Delete tag
# ---------------------------------------------------------------------------


@router.delete("/{tag_id}")
async def delete_tag(request: Request, tag_id: int):
    """Delete a tag by ID. Work-tag links cascade."""
    store = _get_store(request)
    try:
        tag = await store.get_by_id("tags", tag_id)
        await store.delete("tags", tag_id)
    except CatalogError as e:
        raise _http_error(e)
    return {"detail": f"Tag '{tag['name']}' (id={tag_id}) deleted"}
