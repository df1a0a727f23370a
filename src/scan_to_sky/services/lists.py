"""Skylight list synchronization and item creation."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from scan_to_sky.adapters.skylight_client import GatewayResponse, SkylightClient
from scan_to_sky.domain.errors import ApiError, AuthError, NetworkError
from scan_to_sky.domain.lists import ListItem, ListSummary
from scan_to_sky.services.reporting import ErrorReporter
from scan_to_sky.services.sessions import SessionContext
from scan_to_sky.services.storage import SELECTED_LIST_ID_KEY, KeyValueStore

_logger = logging.getLogger(__name__)


@dataclass
class ListSyncService:
    """Caches the frame's lists and tracks the selected list."""

    client: SkylightClient
    context: SessionContext
    store: KeyValueStore
    reporter: ErrorReporter
    lists: list[ListSummary] = field(default_factory=list)
    selected_list: ListSummary | None = None

    async def fetch_lists(self) -> list[ListSummary]:
        """Fetch all lists, replacing the cached set."""
        session = self.context.require()
        self.lists = await self._fetch(session.frame_id, session.token)
        return list(self.lists)

    async def refresh_lists(self) -> None:
        """Re-fetch lists and drop the selection if its list disappeared.

        Failures are reported and leave the cached lists and selection as
        they were.
        """
        session = self.context.require()
        try:
            lists = await self._fetch(session.frame_id, session.token)
        except (ApiError, NetworkError) as exc:
            self.reporter.report("Failed to refresh lists", exc)
            return
        self.lists = lists
        if self.selected_list is not None:
            self.selected_list = self.find_list(self.selected_list.id)
            if self.selected_list is None:
                await self.store.delete(SELECTED_LIST_ID_KEY)

    async def select_list(self, summary: ListSummary) -> None:
        """Select a list and persist its id."""
        await self.store.set(SELECTED_LIST_ID_KEY, summary.id)
        self.selected_list = summary

    async def restore_selection(self) -> ListSummary | None:
        """Select the persisted list id if it is among the cached lists."""
        list_id = await self.store.get(SELECTED_LIST_ID_KEY)
        self.selected_list = self.find_list(list_id) if isinstance(list_id, str) else None
        return self.selected_list

    async def select_default_list(self) -> ListSummary | None:
        """Select the first shopping list, falling back to the first list."""
        default = next((item for item in self.lists if item.kind == "shopping"), None)
        if default is None and self.lists:
            default = self.lists[0]
        if default is not None:
            await self.select_list(default)
        return default

    def find_list(self, list_id: str) -> ListSummary | None:
        """Return a cached list by id."""
        return next((item for item in self.lists if item.id == list_id), None)

    def reset(self) -> None:
        """Forget cached lists and the in-memory selection."""
        self.lists = []
        self.selected_list = None

    async def get_list_items(self, list_id: str) -> list[ListItem]:
        """Fetch every item of a list."""
        session = self.context.require()
        response = await self.client.request(
            "GET",
            f"/api/frames/{session.frame_id}/lists/{list_id}",
            auth_token=session.token,
        )
        _raise_for_status(response, "Failed to fetch list items")
        included = response.body.get("included") if isinstance(response.body, dict) else None
        return [_parse_item(resource) for resource in _resources(included)]

    async def add_item(self, label: str, list_id: str | None = None) -> ListItem | None:
        """Add an item to a list, defaulting to the selected list.

        No duplicate check happens here; callers compare against
        ``get_list_items`` first.
        """
        session = self.context.require()
        target_id = list_id or (self.selected_list.id if self.selected_list else None)
        if not target_id:
            raise AuthError("no list selected")
        response = await self.client.request(
            "POST",
            f"/api/frames/{session.frame_id}/lists/{target_id}/list_items",
            auth_token=session.token,
            json={"label": label},
        )
        _raise_for_status(response, "Failed to add item")
        _logger.info("Added item to list_id=%s", target_id)
        data = response.body.get("data") if isinstance(response.body, dict) else None
        return _parse_item(data) if isinstance(data, dict) and data.get("id") else None

    async def _fetch(self, frame_id: str, token: str) -> list[ListSummary]:
        response = await self.client.request(
            "GET", f"/api/frames/{frame_id}/lists", auth_token=token
        )
        _raise_for_status(response, "Failed to fetch lists")
        data = response.body.get("data") if isinstance(response.body, dict) else None
        return [_parse_list(resource) for resource in _resources(data)]


def build_item_label(
    name: str, brand: str | None = None, quantity: str | None = None
) -> str:
    """Build a list item label such as ``"Milk (Acme) 1L"``.

    The brand is skipped when the name already mentions it.
    """
    label = name.strip()
    brand = (brand or "").strip()
    quantity = (quantity or "").strip()
    if brand and brand.lower() not in label.lower():
        label = f"{label} ({brand})"
    if quantity:
        label = f"{label} {quantity}"
    return label


def find_matching_item(items: Iterable[ListItem], label: str) -> ListItem | None:
    """Return the item whose label matches case-insensitively."""
    wanted = label.strip().lower()
    return next((item for item in items if item.label.strip().lower() == wanted), None)


def _raise_for_status(response: GatewayResponse, message: str) -> None:
    if not response.ok:
        raise ApiError(f"{message} ({response.status_code})", response.status_code)


def _resources(value: object) -> list[dict[str, object]]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict) and item.get("id")]


def _parse_list(resource: dict[str, object]) -> ListSummary:
    attributes = resource.get("attributes") or {}
    return ListSummary(
        id=str(resource["id"]),
        label=str(attributes.get("label") or ""),
        kind=str(attributes.get("kind") or "to_do"),
        color=attributes.get("color"),
    )


def _parse_item(resource: dict[str, object]) -> ListItem:
    attributes = resource.get("attributes") or {}
    return ListItem(
        id=str(resource["id"]),
        label=str(attributes.get("label") or ""),
        status=str(attributes.get("status") or "pending"),
    )
