"""Shared helper functions for the catalog API routes."""

import logging

from fastapi import HTTPException, Request

from artcatalog.services.entity_store import EntityStore
from artcatalog.services.errors import (
    AlreadyInProgress,
    CatalogError,
    DuplicateName,
    InvalidSnapshotFormat,
    NotFound,
    PayloadTooLarge,
    TransientStoreError,
    UnsupportedMediaType,
    ValidationError,
)
from artcatalog.services.object_store import ObjectStore

logger = logging.getLogger(__name__)

# Most specific first: DuplicateName is a ValidationError
_STATUS_CODES: list[tuple[type[CatalogError], int]] = [
    (NotFound, 404),
    (DuplicateName, 409),
    (ValidationError, 400),
    (PayloadTooLarge, 413),
    (UnsupportedMediaType, 415),
    (TransientStoreError, 503),
    (AlreadyInProgress, 409),
    (InvalidSnapshotFormat, 400),
]


def _get_store(request: Request) -> EntityStore:
    return request.app.state.entity_store


def _get_object_store(request: Request) -> ObjectStore:
    return request.app.state.object_store


def _http_error(exc: CatalogError) -> HTTPException:
    """Translate a service error into the matching HTTP error."""
    for exc_type, status_code in _STATUS_CODES:
        if isinstance(exc, exc_type):
            break
    else:
        status_code = 500
    if status_code >= 500:
        logger.error("Request failed: %s", exc)
    return HTTPException(status_code=status_code, detail=str(exc))
