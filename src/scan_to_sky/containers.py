"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from scan_to_sky.adapters.file_store import JsonFileStore
from scan_to_sky.adapters.open_food_facts_client import HttpxOpenFoodFactsClient
from scan_to_sky.adapters.skylight_client import HttpxSkylightClient
from scan_to_sky.config import Settings
from scan_to_sky.services.cache import InMemoryCache
from scan_to_sky.services.lists import ListSyncService
from scan_to_sky.services.overrides import OverrideHistoryStore
from scan_to_sky.services.products import ProductLookupService
from scan_to_sky.services.reporting import LoggingErrorReporter
from scan_to_sky.services.scans import ScanService
from scan_to_sky.services.sessions import SessionContext, SessionManager


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    session_manager: SessionManager
    list_service: ListSyncService
    override_store: OverrideHistoryStore
    product_service: ProductLookupService
    scan_service: ScanService
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    storage_dir = resolved_settings.resolved_storage_dir()
    secure_store = JsonFileStore(storage_dir / "credentials.json", private=True)
    general_store = JsonFileStore(storage_dir / "storage.json")
    skylight_client = HttpxSkylightClient.create(
        base_url=resolved_settings.skylight_base_url,
        timeout=resolved_settings.http_timeout_seconds,
    )
    lookup_client = HttpxOpenFoodFactsClient.create(
        base_url=resolved_settings.product_lookup_base_url,
        user_agent=resolved_settings.user_agent,
        timeout=resolved_settings.http_timeout_seconds,
    )
    context = SessionContext()
    session_manager = SessionManager(
        client=skylight_client,
        secure_store=secure_store,
        context=context,
    )
    list_service = ListSyncService(
        client=skylight_client,
        context=context,
        store=general_store,
        reporter=LoggingErrorReporter(),
    )
    override_store = OverrideHistoryStore(
        store=general_store,
        history_limit=resolved_settings.history_limit,
    )
    product_service = ProductLookupService(
        client=lookup_client,
        cache=InMemoryCache(),
        ttl_seconds=resolved_settings.product_cache_ttl_seconds,
    )
    scan_service = ScanService(
        products=product_service,
        lists=list_service,
        overrides=override_store,
    )

    async def close_resources() -> None:
        await skylight_client.close()
        await lookup_client.close()

    return AppContainer(
        settings=resolved_settings,
        session_manager=session_manager,
        list_service=list_service,
        override_store=override_store,
        product_service=product_service,
        scan_service=scan_service,
        close_resources=close_resources,
    )
