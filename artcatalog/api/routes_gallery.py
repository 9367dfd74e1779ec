"""API routes for the image gallery (uploads, rename, delete)."""

import logging

from fastapi import APIRouter, File, Request, UploadFile
from pydantic import BaseModel

from artcatalog.api._helpers import _get_object_store, _http_error
from artcatalog.services.errors import CatalogError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/gallery", tags=["gallery"])


class RenameRequest(BaseModel):
    original_name: str


@router.get("")
async def list_images(request: Request):
    """List uploaded images with how many works use each."""
    try:
        images = await _get_object_store(request).list_images()
    except CatalogError as e:
        raise _http_error(e)
    return {"images": images}


@router.get("/{image_id}")
async def get_image(request: Request, image_id: int):
    try:
        return await _get_object_store(request).get(image_id)
    except CatalogError as e:
        raise _http_error(e)


@router.post("/upload", status_code=201)
async def upload_image(request: Request, image: UploadFile = File(...)):
    """Upload a single image (multipart field ``image``)."""
    data = await image.read()
    try:
        return await _get_object_store(request).upload(
            data, image.filename or "upload", image.content_type
        )
    except CatalogError as e:
        raise _http_error(e)


@router.post("/upload/batch", status_code=201)
async def upload_images(request: Request, images: list[UploadFile] = File(...)):
    """Upload up to 50 images at once (multipart field ``images``).

    Nothing is stored unless every file is accepted.
    """
    files = [
        (await upload.read(), upload.filename or "upload", upload.content_type)
        for upload in images
    ]
    try:
        stored = await _get_object_store(request).upload_many(files)
    except CatalogError as e:
        raise _http_error(e)
    return {"images": stored}


@router.put("/{image_id}")
async def rename_image(request: Request, image_id: int, body: RenameRequest):
    """Change the display name of an image."""
    try:
        return await _get_object_store(request).rename(image_id, body.original_name)
    except CatalogError as e:
        raise _http_error(e)


@router.delete("/{image_id}")
async def delete_image(request: Request, image_id: int):
    """Delete an image; works that used it simply lose it."""
    try:
        await _get_object_store(request).delete(image_id)
    except CatalogError as e:
        raise _http_error(e)
    logger.info("Deleted image %d", image_id)
    return {"detail": f"Image {image_id} deleted"}
