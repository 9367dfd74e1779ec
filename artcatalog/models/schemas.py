import re
from datetime import datetime
from typing import Annotated

from pydantic import AfterValidator, BaseModel, BeforeValidator, ConfigDict, field_validator, model_validator


# ---------------------------------------------------------------------------
# Shared allowed values
# ---------------------------------------------------------------------------

SALE_STATUSES = {"available", "sold", "on-loan", "on-hold", "not-for-sale"}
PRICE_ADJUSTMENT_MODES = {"percent", "fixed"}
_HEX_COLOR_RE = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")

# Columns the database fills in itself when a row arrives without them
SERVER_TIMESTAMP_COLUMNS = {"created_at", "updated_at", "uploaded_at", "moved_date"}


def _to_text(v):
    """Accept numbers where the column is free text (legacy rows mix them)."""
    if v is None or isinstance(v, str):
        return v
    if isinstance(v, (int, float)) and not isinstance(v, bool):
        return str(v)
    return v


Text = Annotated[str | None, BeforeValidator(_to_text)]


_PARTIAL_DATE_RE = re.compile(r"^\d{4}(-\d{2})?$")


def _check_date(v: str | None) -> str | None:
    """Accept ISO dates and datetimes, or a bare year / year-month."""
    if v is None or not v.strip():
        return None
    v = v.strip()
    if _PARTIAL_DATE_RE.match(v):
        return v
    try:
        datetime.fromisoformat(v)
    except ValueError:
        raise ValueError(f"Invalid date: {v!r}") from None
    return v


DateText = Annotated[str | None, BeforeValidator(_to_text), AfterValidator(_check_date)]


def normalize_sale_status(v: str | None) -> str | None:
    """Stored form of a sale status; legacy rows spell some with underscores."""
    if v is None:
        return None
    v = v.strip().lower().replace("_", "-")
    if v not in SALE_STATUSES:
        raise ValueError(
            f"sale_status must be one of: {', '.join(sorted(SALE_STATUSES))}"
        )
    return v


def _check_color(v: str | None) -> str | None:
    if v is not None and not _HEX_COLOR_RE.match(v):
        raise ValueError("Color must be a valid hex color (#RGB or #RRGGBB)")
    return v


# ---------------------------------------------------------------------------
# Row schemas: one per table, the exact column set of a snapshot row
# ---------------------------------------------------------------------------


class _Row(BaseModel):
    """Base for snapshot rows; unknown keys are dropped, never written."""

    model_config = ConfigDict(extra="ignore")

    id: int


class SeriesRow(_Row):
    name: str
    description: Text = None
    start_date: Text = None
    end_date: Text = None
    created_at: Text = None
    updated_at: Text = None


class TagRow(_Row):
    name: str
    color: Text = "#3498db"
    created_at: Text = None


class GalleryImageRow(_Row):
    filename: str
    original_name: Text = None
    mime_type: Text = None
    file_size: int | None = None
    file_path: str
    uploaded_at: Text = None


class ArtworkRow(_Row):
    inventory_number: Text = None
    title: str
    creation_date: Text = None
    medium: Text = None
    dimensions: Text = None
    series_id: int | None = None
    sale_status: str = "available"
    price: float | None = None
    location: Text = None
    notes: Text = None
    is_public: bool = False
    created_at: Text = None
    updated_at: Text = None

    status_must_be_known = field_validator("sale_status")(normalize_sale_status)


class DigitalWorkRow(_Row):
    inventory_number: Text = None
    title: str
    creation_date: Text = None
    file_format: Text = None
    file_size: Text = None
    dimensions: Text = None
    series_id: int | None = None
    sale_status: str = "available"
    price: float | None = None
    license_type: Text = None
    video_url: Text = None
    embed_url: Text = None
    platform: Text = None
    nft_token_id: Text = None
    nft_contract_address: Text = None
    nft_blockchain: Text = None
    notes: Text = None
    is_public: bool = False
    created_at: Text = None
    updated_at: Text = None

    status_must_be_known = field_validator("sale_status")(normalize_sale_status)


class ExhibitionRow(_Row):
    name: str
    venue: Text = None
    start_date: Text = None
    end_date: Text = None
    description: Text = None
    curator: Text = None
    website: Text = None
    created_at: Text = None
    updated_at: Text = None


class SaleRow(_Row):
    artwork_id: int | None = None
    digital_work_id: int | None = None
    sale_date: str
    sale_price: float | None = None
    buyer_name: Text = None
    buyer_email: Text = None
    platform: Text = None
    notes: Text = None
    created_at: Text = None
    updated_at: Text = None

    @model_validator(mode="after")
    def exactly_one_work(self) -> "SaleRow":
        if (self.artwork_id is None) == (self.digital_work_id is None):
            raise ValueError("exactly one of artwork_id or digital_work_id is required")
        return self


class ArtworkImageRow(_Row):
    artwork_id: int
    image_id: int
    is_primary: bool = False
    display_order: int = 0


class DigitalWorkImageRow(_Row):
    digital_work_id: int
    image_id: int
    is_primary: bool = False
    display_order: int = 0


class ArtworkTagRow(_Row):
    artwork_id: int
    tag_id: int


class DigitalWorkTagRow(_Row):
    digital_work_id: int
    tag_id: int


class ArtworkExhibitionRow(_Row):
    artwork_id: int
    exhibition_id: int


class DigitalWorkExhibitionRow(_Row):
    digital_work_id: int
    exhibition_id: int


class LocationHistoryRow(_Row):
    artwork_id: int
    location: str
    notes: Text = None
    moved_date: Text = None


TABLE_SCHEMAS: dict[str, type[_Row]] = {
    "series": SeriesRow,
    "tags": TagRow,
    "gallery_images": GalleryImageRow,
    "artworks": ArtworkRow,
    "digital_works": DigitalWorkRow,
    "exhibitions": ExhibitionRow,
    "sales": SaleRow,
    "artwork_images": ArtworkImageRow,
    "digital_work_images": DigitalWorkImageRow,
    "artwork_tags": ArtworkTagRow,
    "digital_work_tags": DigitalWorkTagRow,
    "artwork_exhibitions": ArtworkExhibitionRow,
    "digital_work_exhibitions": DigitalWorkExhibitionRow,
    "location_history": LocationHistoryRow,
}


def table_columns(table: str) -> list[str]:
    """Declared columns of *table*, ``id`` first."""
    return list(TABLE_SCHEMAS[table].model_fields)


# ---------------------------------------------------------------------------
# Work request schemas
# ---------------------------------------------------------------------------


class ImageLink(BaseModel):
    """A gallery image attached to a work; list position is the display order."""

    id: int
    is_primary: bool = False


class ArtworkCreate(BaseModel):
    """Schema for creating a physical artwork."""

    inventory_number: str | None = None
    title: str
    creation_date: DateText = None
    medium: str | None = None
    dimensions: str | None = None
    series_id: int | None = None
    sale_status: str = "available"
    price: float | None = None
    location: str | None = None
    notes: str | None = None
    is_public: bool = False
    images: list[ImageLink] = []

    status_must_be_known = field_validator("sale_status")(normalize_sale_status)

    @field_validator("title")
    @classmethod
    def title_must_not_be_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Title must not be empty or whitespace-only")
        return v


class ArtworkUpdate(BaseModel):
    """Schema for updating an artwork (partial update).

    ``images`` replaces the whole image list when present.
    """

    inventory_number: str | None = None
    title: str | None = None
    creation_date: DateText = None
    medium: str | None = None
    dimensions: str | None = None
    series_id: int | None = None
    sale_status: str | None = None
    price: float | None = None
    location: str | None = None
    notes: str | None = None
    is_public: bool | None = None
    images: list[ImageLink] | None = None

    status_must_be_known = field_validator("sale_status")(normalize_sale_status)


class DigitalWorkCreate(BaseModel):
    """Schema for creating a digital work."""

    inventory_number: str | None = None
    title: str
    creation_date: DateText = None
    file_format: str | None = None
    file_size: Text = None
    dimensions: str | None = None
    series_id: int | None = None
    sale_status: str = "available"
    price: float | None = None
    license_type: str | None = None
    video_url: str | None = None
    embed_url: str | None = None
    platform: str | None = None
    nft_token_id: str | None = None
    nft_contract_address: str | None = None
    nft_blockchain: str | None = None
    notes: str | None = None
    is_public: bool = False
    images: list[ImageLink] = []

    status_must_be_known = field_validator("sale_status")(normalize_sale_status)

    @field_validator("title")
    @classmethod
    def title_must_not_be_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Title must not be empty or whitespace-only")
        return v


class DigitalWorkUpdate(BaseModel):
    """Schema for updating a digital work (partial update)."""

    inventory_number: str | None = None
    title: str | None = None
    creation_date: DateText = None
    file_format: str | None = None
    file_size: Text = None
    dimensions: str | None = None
    series_id: int | None = None
    sale_status: str | None = None
    price: float | None = None
    license_type: str | None = None
    video_url: str | None = None
    embed_url: str | None = None
    platform: str | None = None
    nft_token_id: str | None = None
    nft_contract_address: str | None = None
    nft_blockchain: str | None = None
    notes: str | None = None
    is_public: bool | None = None
    images: list[ImageLink] | None = None

    status_must_be_known = field_validator("sale_status")(normalize_sale_status)


# ---------------------------------------------------------------------------
# Series / tag / exhibition schemas
# ---------------------------------------------------------------------------


class SeriesCreate(BaseModel):
    """Schema for creating or replacing a series."""

    name: str
    description: str | None = None
    start_date: DateText = None
    end_date: DateText = None

    @field_validator("name")
    @classmethod
    def name_must_not_be_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Series name must not be empty or whitespace-only")
        return v


class TagCreate(BaseModel):
    """Schema for creating a new tag."""

    name: str
    color: str = "#3498db"

    @field_validator("name")
    @classmethod
    def name_must_not_be_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Tag name must not be empty or whitespace-only")
        return v

    color_must_be_valid_hex = field_validator("color")(_check_color)


class TagUpdate(BaseModel):
    """Schema for updating a tag (partial update)."""

    name: str | None = None
    color: str | None = None

    color_must_be_valid_hex = field_validator("color")(_check_color)


class ExhibitionCreate(BaseModel):
    """Schema for creating an exhibition with its linked works."""

    name: str
    venue: str | None = None
    start_date: DateText = None
    end_date: DateText = None
    description: str | None = None
    curator: str | None = None
    website: str | None = None
    artworks: list[int] = []
    digital_works: list[int] = []

    @field_validator("name")
    @classmethod
    def name_must_not_be_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Exhibition name must not be empty or whitespace-only")
        return v


class ExhibitionUpdate(BaseModel):
    """Schema for updating an exhibition; link lists replace when present."""

    name: str | None = None
    venue: str | None = None
    start_date: DateText = None
    end_date: DateText = None
    description: str | None = None
    curator: str | None = None
    website: str | None = None
    artworks: list[int] | None = None
    digital_works: list[int] | None = None


# ---------------------------------------------------------------------------
# Sale schemas
# ---------------------------------------------------------------------------


class SaleCreate(BaseModel):
    """Schema for recording a sale of exactly one work.

    ``sale_price`` is free text (``"$1,200"``) and parsed by the store.
    """

    artwork_id: int | None = None
    digital_work_id: int | None = None
    sale_date: DateText
    sale_price: Text = None
    buyer_name: str | None = None
    buyer_email: str | None = None
    platform: str | None = None
    notes: str | None = None


class SaleUpdate(BaseModel):
    """Schema for updating a sale (partial update)."""

    sale_date: DateText = None
    sale_price: Text = None
    buyer_name: str | None = None
    buyer_email: str | None = None
    platform: str | None = None
    notes: str | None = None


class LocationCreate(BaseModel):
    """A move of a physical artwork to a new location."""

    location: str
    notes: str | None = None

    @field_validator("location")
    @classmethod
    def location_must_not_be_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Location must not be empty or whitespace-only")
        return v


class LocationEntry(LocationCreate):
    """A past move carried over with its original date."""

    notes: Text = None
    moved_date: Text = None


class WorkTagsRequest(BaseModel):
    """Replace the tag set of one work."""

    tagIds: list[int] = []


# ---------------------------------------------------------------------------
# Bulk operation schemas
# ---------------------------------------------------------------------------


class PriceAdjustment(BaseModel):
    """Shift prices by a percentage or a fixed amount (negative lowers)."""

    mode: str
    amount: float

    @field_validator("mode")
    @classmethod
    def mode_must_be_known(cls, v: str) -> str:
        if v not in PRICE_ADJUSTMENT_MODES:
            raise ValueError("mode must be 'percent' or 'fixed'")
        return v


class BulkWorkUpdate(BaseModel):
    """Bulk patch of several works of one kind."""

    ids: list[int]
    updates: dict = {}
    price_adjustment: PriceAdjustment | None = None

    @field_validator("ids")
    @classmethod
    def ids_must_not_be_empty(cls, v: list[int]) -> list[int]:
        if not v:
            raise ValueError("ids must be a non-empty list")
        return v
