"""Exceptions raised by the catalog services.

Route handlers translate these into HTTP responses; the bulk engines catch
them per record and keep going.
"""


class CatalogError(Exception):
    """Base class for all catalog service errors."""


class NotFound(CatalogError):
    """The requested entity id does not exist."""

    def __init__(self, table: str, entity_id: int) -> None:
        self.table = table
        self.entity_id = entity_id
        super().__init__(f"{table} {entity_id} not found")


class ValidationError(CatalogError):
    """A record is missing a required field or violates a constraint."""


class DuplicateName(ValidationError):
    """A unique name (tag, series, inventory number) is already taken."""


class PayloadTooLarge(CatalogError):
    """An upload exceeds the per-object size ceiling."""


class UnsupportedMediaType(CatalogError):
    """An upload is not one of the accepted image types."""


class TransientStoreError(CatalogError):
    """The store timed out or was temporarily unreachable."""


class AlreadyInProgress(CatalogError):
    """An engine run was requested while another one is still in flight."""


class InvalidSnapshotFormat(CatalogError):
    """A backup document is missing ``data`` or has an unknown version."""


class EntityGraphError(CatalogError):
    """The declared table dependencies are cyclic or reference unknown tables."""
