"""Local product overrides and scan history."""

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from typing import TypeVar

from scan_to_sky.domain.products import HistoryEntry, Product, ProductOverride
from scan_to_sky.services.storage import (
    PRODUCT_OVERRIDES_KEY,
    SCAN_HISTORY_KEY,
    KeyValueStore,
)

_logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT")

DEFAULT_HISTORY_LIMIT = 100


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


def upsert_with_patch(
    existing: RecordT | None,
    default: Callable[[], RecordT],
    patch: Mapping[str, object | None],
    **stamps: object,
) -> RecordT:
    """Apply the non-``None`` fields of ``patch`` to a record.

    ``default`` builds the record when none exists; ``stamps`` are always
    written.
    """
    record = existing if existing is not None else default()
    changes = {key: value for key, value in patch.items() if value is not None}
    return replace(record, **changes, **stamps)


def merge_product(product: Product, override: ProductOverride | None) -> Product:
    """Return the product with non-empty override fields taking precedence."""
    if override is None:
        return product
    return replace(
        product,
        name=override.name or product.name,
        brand=override.brand or product.brand,
    )


@dataclass
class OverrideHistoryStore:
    """Persists per-barcode overrides and the bounded scan history."""

    store: KeyValueStore
    history_limit: int = DEFAULT_HISTORY_LIMIT
    clock: Callable[[], datetime] = _utc_now

    async def get_override(self, barcode: str) -> ProductOverride | None:
        """Return the override for a barcode, if any."""
        overrides = await self._load_overrides()
        raw = overrides.get(barcode)
        if not isinstance(raw, dict):
            return None
        return _override_from_json(barcode, raw)

    async def set_override(
        self,
        barcode: str,
        *,
        name: str | None = None,
        brand: str | None = None,
        last_list_id: str | None = None,
    ) -> ProductOverride:
        """Merge the given fields into the barcode's override."""
        overrides = await self._load_overrides()
        raw = overrides.get(barcode)
        now = self.clock()
        updated = upsert_with_patch(
            _override_from_json(barcode, raw) if isinstance(raw, dict) else None,
            lambda: ProductOverride(barcode=barcode, updated_at=now),
            {"name": name, "brand": brand, "last_list_id": last_list_id},
            updated_at=now,
        )
        overrides[barcode] = _override_to_json(updated)
        await self.store.set(PRODUCT_OVERRIDES_KEY, overrides)
        return updated

    async def clear_override(self, barcode: str) -> None:
        """Remove the override for a barcode."""
        overrides = await self._load_overrides()
        if overrides.pop(barcode, None) is not None:
            await self.store.set(PRODUCT_OVERRIDES_KEY, overrides)

    async def add_to_history(self, entry: HistoryEntry) -> None:
        """Prepend an entry, replacing any entry for the same barcode."""
        history = await self.get_history()
        barcode = entry.product.barcode
        updated = [entry, *(item for item in history if item.product.barcode != barcode)]
        await self.store.set(
            SCAN_HISTORY_KEY,
            [_history_to_json(item) for item in updated[: self.history_limit]],
        )

    async def get_history(self) -> list[HistoryEntry]:
        """Return the history, most recent first."""
        raw = await self.store.get(SCAN_HISTORY_KEY)
        if not isinstance(raw, list):
            return []
        entries = []
        for item in raw:
            try:
                entries.append(_history_from_json(item))
            except (AttributeError, KeyError, TypeError, ValueError):
                _logger.warning("Skipping malformed history entry: %r", item)
        return entries

    async def clear_history(self) -> None:
        """Erase the history."""
        await self.store.delete(SCAN_HISTORY_KEY)

    async def _load_overrides(self) -> dict[str, object]:
        raw = await self.store.get(PRODUCT_OVERRIDES_KEY)
        return dict(raw) if isinstance(raw, dict) else {}


def _override_to_json(override: ProductOverride) -> dict[str, object]:
    payload: dict[str, object] = {"updatedAt": override.updated_at.isoformat()}
    if override.name is not None:
        payload["name"] = override.name
    if override.brand is not None:
        payload["brand"] = override.brand
    if override.last_list_id is not None:
        payload["lastListId"] = override.last_list_id
    return payload


def _override_from_json(barcode: str, raw: dict[str, object]) -> ProductOverride:
    updated_at = raw.get("updatedAt")
    return ProductOverride(
        barcode=barcode,
        name=raw.get("name"),
        brand=raw.get("brand"),
        last_list_id=raw.get("lastListId"),
        updated_at=(
            datetime.fromisoformat(updated_at)
            if isinstance(updated_at, str)
            else datetime.min.replace(tzinfo=UTC)
        ),
    )


def product_to_json(product: Product) -> dict[str, object]:
    """Serialize a product with the persisted camelCase keys."""
    payload: dict[str, object] = {"barcode": product.barcode, "name": product.name}
    if product.brand is not None:
        payload["brand"] = product.brand
    if product.image_url is not None:
        payload["imageUrl"] = product.image_url
    if product.quantity is not None:
        payload["quantity"] = product.quantity
    if product.categories is not None:
        payload["categories"] = list(product.categories)
    return payload


def _product_from_json(raw: dict[str, object]) -> Product:
    categories = raw.get("categories")
    return Product(
        barcode=str(raw["barcode"]),
        name=str(raw.get("name") or ""),
        brand=raw.get("brand"),
        image_url=raw.get("imageUrl"),
        quantity=raw.get("quantity"),
        categories=tuple(categories) if isinstance(categories, list) else None,
    )


def _history_to_json(entry: HistoryEntry) -> dict[str, object]:
    payload: dict[str, object] = {
        "id": entry.id,
        "product": product_to_json(entry.product),
        "scannedAt": entry.scanned_at.isoformat(),
    }
    if entry.added_to_list is not None:
        payload["addedToList"] = entry.added_to_list
    return payload


def _history_from_json(raw: dict[str, object]) -> HistoryEntry:
    return HistoryEntry(
        id=str(raw["id"]),
        product=_product_from_json(raw["product"]),
        scanned_at=datetime.fromisoformat(raw["scannedAt"]),
        added_to_list=raw.get("addedToList"),
    )
