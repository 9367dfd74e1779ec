"""API routes for sales records."""

import logging

from fastapi import APIRouter, Query, Request

from artcatalog.api._helpers import _get_store, _http_error
from artcatalog.models.schemas import SaleCreate, SaleUpdate
from artcatalog.services.errors import CatalogError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sales", tags=["sales"])


@router.get("")
async def list_sales(
    request: Request,
    artwork_id: int | None = Query(None),
    digital_work_id: int | None = Query(None),
):
    """List sales, newest first, optionally for one work."""
    try:
        sales = await _get_store(request).list_sales(artwork_id, digital_work_id)
    except CatalogError as e:
        raise _http_error(e)
    return {"sales": sales}


@router.get("/stats/summary")
async def sales_summary(request: Request):
    """Totals across all recorded sales."""
    try:
        return await _get_store(request).sales_summary()
    except CatalogError as e:
        raise _http_error(e)


@router.get("/{sale_id}")
async def get_sale(request: Request, sale_id: int):
    try:
        return await _get_store(request).get_by_id("sales", sale_id)
    except CatalogError as e:
        raise _http_error(e)


@router.post("", status_code=201)
async def create_sale(request: Request, body: SaleCreate):
    """Record a sale of one artwork or one digital work.

    The sold work's ``sale_status`` becomes ``sold``.
    """
    try:
        sale = await _get_store(request).create_sale(body.model_dump())
    except CatalogError as e:
        raise _http_error(e)
    logger.info(
        "Recorded sale %d (artwork=%s, digital_work=%s)",
        sale["id"], sale["artwork_id"], sale["digital_work_id"],
    )
    return sale


@router.put("/{sale_id}")
async def update_sale(request: Request, sale_id: int, body: SaleUpdate):
    try:
        return await _get_store(request).update_sale(
            sale_id, body.model_dump(exclude_unset=True)
        )
    except CatalogError as e:
        raise _http_error(e)


@router.delete("/{sale_id}")
async def delete_sale(request: Request, sale_id: int):
    """Delete a sale; the work goes back to ``available``."""
    try:
        await _get_store(request).delete_sale(sale_id)
    except CatalogError as e:
        raise _http_error(e)
    return {"detail": f"Sale {sale_id} deleted"}
