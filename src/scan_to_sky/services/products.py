"""Barcode product lookups backed by Open Food Facts."""

import logging
from dataclasses import dataclass

from scan_to_sky.adapters.open_food_facts_client import ProductLookupClient
from scan_to_sky.domain.products import UNKNOWN_PRODUCT_NAME, Product, ProductLookup
from scan_to_sky.services.cache import Cache

_logger = logging.getLogger(__name__)

_FOUND_STATUS = 1


@dataclass
class ProductLookupService:
    """Looks up products by barcode with caching."""

    client: ProductLookupClient
    cache: Cache
    ttl_seconds: int = 3600

    async def lookup(self, barcode: str) -> ProductLookup:
        """Return the product for a barcode.

        Unknown barcodes are not an error: they yield a placeholder product
        with ``found=False``.
        """
        cache_key = f"off:product:{barcode}"
        cached = self.cache.get(cache_key)
        if isinstance(cached, Product):
            return ProductLookup(product=cached, found=True)

        payload = await self.client.fetch_product(barcode)
        product = _parse_product(barcode, payload)
        if product is None:
            _logger.info("Product not found: barcode=%s", barcode)
            return ProductLookup(
                product=Product(barcode=barcode, name=UNKNOWN_PRODUCT_NAME),
                found=False,
            )
        self.cache.set(cache_key, product, ttl_seconds=self.ttl_seconds)
        return ProductLookup(product=product, found=True)


def _parse_product(barcode: str, payload: dict[str, object]) -> Product | None:
    """Map an Open Food Facts payload onto a product, or None if not found."""
    raw = payload.get("product")
    if payload.get("status") != _FOUND_STATUS or not isinstance(raw, dict):
        return None
    categories = raw.get("categories_tags")
    return Product(
        barcode=barcode,
        name=_text(raw.get("product_name"))
        or _text(raw.get("product_name_en"))
        or UNKNOWN_PRODUCT_NAME,
        brand=_text(raw.get("brands")),
        image_url=_text(raw.get("image_front_url")) or _text(raw.get("image_url")),
        quantity=_text(raw.get("quantity")),
        categories=tuple(str(tag) for tag in categories)
        if isinstance(categories, list) and categories
        else None,
    )


def _text(value: object) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None
