"""Product detail flow: merge scans with overrides and add them to lists."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import UTC, datetime

from scan_to_sky.domain.errors import AuthError
from scan_to_sky.domain.lists import ListSummary
from scan_to_sky.domain.products import (
    HistoryEntry,
    Product,
    ProductLookup,
    ProductOverride,
)
from scan_to_sky.services.lists import (
    ListSyncService,
    build_item_label,
    find_matching_item,
)
from scan_to_sky.services.overrides import OverrideHistoryStore, merge_product
from scan_to_sky.services.products import ProductLookupService

_logger = logging.getLogger(__name__)

ADDED = "added"
DUPLICATE = "duplicate"


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(frozen=True)
class ScanView:
    """What the product screen shows for a scanned barcode."""

    lookup: ProductLookup
    display: Product
    override: ProductOverride | None
    preselected_list: ListSummary | None

    @property
    def has_override(self) -> bool:
        """Return True when the user has corrected the name or brand."""
        return self.override is not None and bool(
            self.override.name or self.override.brand
        )


@dataclass(frozen=True)
class AddOutcome:
    """Result of adding a scanned product to a list."""

    status: str
    label: str
    target: ListSummary
    entry: HistoryEntry | None = None


@dataclass
class ScanService:
    """Composes product lookups, overrides and list sync for one scan."""

    products: ProductLookupService
    lists: ListSyncService
    overrides: OverrideHistoryStore
    clock: Callable[[], datetime] = _utc_now

    async def open_scan(self, barcode: str) -> ScanView:
        """Look up a barcode and apply the user's saved corrections."""
        override, lookup = await asyncio.gather(
            self.overrides.get_override(barcode),
            self.products.lookup(barcode),
        )
        preselected = None
        if override is not None and override.last_list_id:
            preselected = self.lists.find_list(override.last_list_id)
            if preselected is not None:
                await self.lists.select_list(preselected)
        return ScanView(
            lookup=lookup,
            display=merge_product(lookup.product, override),
            override=override,
            preselected_list=preselected,
        )

    async def remember_edits(
        self, product: Product, name: str | None, brand: str | None
    ) -> ProductOverride | None:
        """Persist the name/brand edits that differ from the looked-up product."""
        patch = _edited_fields(product, name, brand)
        if not patch:
            return None
        return await self.overrides.set_override(product.barcode, **patch)

    async def add_to_list(
        self, product: Product, name: str | None = None, brand: str | None = None
    ) -> AddOutcome:
        """Add the product to the selected list unless an equal label exists.

        ``name`` and ``brand`` default to the product merged with its saved
        override; edits are still compared against the looked-up ``product``.
        """
        self.lists.context.require()
        target = self.lists.selected_list
        if target is None:
            raise AuthError("no list selected")
        display = merge_product(
            product, await self.overrides.get_override(product.barcode)
        )
        name = (name if name is not None else display.name).strip()
        if not name:
            raise ValueError("Product name is required")
        brand = (brand if brand is not None else display.brand or "").strip()

        await self.remember_edits(product, name, brand)
        label = build_item_label(name, brand, product.quantity)
        items = await self.lists.get_list_items(target.id)
        if find_matching_item(items, label) is not None:
            _logger.info("Skipping duplicate item: list_id=%s", target.id)
            return AddOutcome(status=DUPLICATE, label=label, target=target)

        await self.lists.add_item(label, target.id)
        await self.overrides.set_override(product.barcode, last_list_id=target.id)
        scanned_at = self.clock()
        entry = HistoryEntry(
            id=f"{product.barcode}-{int(scanned_at.timestamp() * 1000)}",
            product=replace(product, name=name, brand=brand or None),
            scanned_at=scanned_at,
            added_to_list=target.label,
        )
        await self.overrides.add_to_history(entry)
        return AddOutcome(status=ADDED, label=label, target=target, entry=entry)


def _edited_fields(
    product: Product, name: str | None, brand: str | None
) -> dict[str, str]:
    patch: dict[str, str] = {}
    if name is not None and name.strip() and name.strip() != product.name:
        patch["name"] = name.strip()
    if brand is not None and brand.strip() != (product.brand or ""):
        patch["brand"] = brand.strip()
    return patch
