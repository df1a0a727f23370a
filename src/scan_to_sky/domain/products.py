"""Product, override and scan history models."""

from dataclasses import dataclass
from datetime import datetime

UNKNOWN_PRODUCT_NAME = "Unknown Product"


@dataclass(frozen=True)
class Product:
    """Product data sourced from the lookup service."""

    barcode: str
    name: str
    brand: str | None = None
    image_url: str | None = None
    quantity: str | None = None
    categories: tuple[str, ...] | None = None


@dataclass(frozen=True)
class ProductLookup:
    """Result of a product lookup; ``found`` is False for unknown barcodes."""

    product: Product
    found: bool


@dataclass(frozen=True)
class ProductOverride:
    """User corrections for a product, keyed by barcode."""

    barcode: str
    updated_at: datetime
    name: str | None = None
    brand: str | None = None
    last_list_id: str | None = None


@dataclass(frozen=True)
class HistoryEntry:
    """A point-in-time record of a scanned product."""

    id: str
    product: Product
    scanned_at: datetime
    added_to_list: str | None = None
