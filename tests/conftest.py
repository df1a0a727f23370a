"""Shared test fixtures."""

import copy
from dataclasses import dataclass, field
from datetime import UTC, datetime

import pytest

from scan_to_sky.adapters.open_food_facts_client import ProductLookupClient
from scan_to_sky.adapters.skylight_client import GatewayResponse, SkylightClient
from scan_to_sky.config import Settings
from scan_to_sky.containers import AppContainer
from scan_to_sky.domain.errors import StorageError
from scan_to_sky.domain.sessions import Session, authenticate
from scan_to_sky.services.cache import InMemoryCache
from scan_to_sky.services.lists import ListSyncService
from scan_to_sky.services.overrides import OverrideHistoryStore
from scan_to_sky.services.products import ProductLookupService
from scan_to_sky.services.scans import ScanService
from scan_to_sky.services.sessions import (
    SessionContext,
    SessionManager,
    encode_credentials,
)
from scan_to_sky.services.storage import KeyValueStore

USER_ID = "42"
OPAQUE_TOKEN = "opaque-token"
EMAIL = "shopper@example.com"
FRAME_ID = "frame-1"
AUTH_TOKEN = encode_credentials(USER_ID, OPAQUE_TOKEN)


class FixedClock:
    """Clock returning a settable time."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 5, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now


@dataclass
class InMemoryStore(KeyValueStore):
    """In-memory key-value store for tests."""

    values: dict[str, object] = field(default_factory=dict)
    failing_keys: set[str] = field(default_factory=set)
    fail_reads: bool = False
    fail_deletes: bool = False

    async def get(self, key: str) -> object | None:
        if self.fail_reads:
            raise StorageError("disk unavailable")
        return copy.deepcopy(self.values.get(key))

    async def set(self, key: str, value: object) -> None:
        if key in self.failing_keys:
            raise StorageError(f"cannot write {key}")
        self.values[key] = copy.deepcopy(value)

    async def delete(self, key: str) -> None:
        if self.fail_deletes:
            raise StorageError(f"cannot delete {key}")
        self.values.pop(key, None)


@dataclass
class FakeSkylightClient(SkylightClient):
    """Fake Skylight gateway answering from a route table."""

    routes: dict[tuple[str, str], GatewayResponse | Exception] = field(
        default_factory=dict
    )
    calls: list[tuple[str, str, str | None, dict[str, object] | None]] = field(
        default_factory=list
    )

    def add(self, method: str, path: str, status_code: int, body: object = None) -> None:
        self.routes[(method, path)] = GatewayResponse(status_code, body)

    def fail(self, method: str, path: str, exc: Exception) -> None:
        self.routes[(method, path)] = exc

    def paths(self) -> list[str]:
        return [path for _, path, _, _ in self.calls]

    async def request(
        self,
        method: str,
        path: str,
        *,
        auth_token: str | None = None,
        json: dict[str, object] | None = None,
    ) -> GatewayResponse:
        self.calls.append((method, path, auth_token, json))
        route = self.routes.get((method, path), GatewayResponse(404, None))
        if isinstance(route, Exception):
            raise route
        return route


@dataclass
class FakeProductLookupClient(ProductLookupClient):
    """Fake product lookup returning canned payloads."""

    payloads: dict[str, dict[str, object]] = field(default_factory=dict)
    calls: list[str] = field(default_factory=list)

    async def fetch_product(self, barcode: str) -> dict[str, object]:
        self.calls.append(barcode)
        return self.payloads.get(barcode, {"status": 0, "status_verbose": "not found"})


@dataclass
class RecordingErrorReporter:
    """Error reporter that keeps what it receives."""

    reports: list[tuple[str, Exception]] = field(default_factory=list)

    def report(self, message: str, exc: Exception) -> None:
        self.reports.append((message, exc))


def make_session(frame_id: str = FRAME_ID) -> Session:
    return Session(token=AUTH_TOKEN, user_id=USER_ID, frame_id=frame_id, email=EMAIL)


def login_body() -> dict[str, object]:
    return {
        "data": {
            "id": USER_ID,
            "type": "authenticated_user",
            "attributes": {
                "email": EMAIL,
                "token": OPAQUE_TOKEN,
                "subscription_status": "plus",
            },
        }
    }


def list_resource(list_id: str, label: str, kind: str = "shopping") -> dict[str, object]:
    return {
        "id": list_id,
        "type": "list",
        "attributes": {"label": label, "kind": kind, "color": "#00ff00"},
    }


def item_resource(item_id: str, label: str, status: str = "pending") -> dict[str, object]:
    return {
        "id": item_id,
        "type": "list_item",
        "attributes": {"label": label, "status": status},
    }


def off_payload(**product: object) -> dict[str, object]:
    return {"status": 1, "status_verbose": "product found", "product": product}


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        skylight_base_url="https://skylight.test",
        product_lookup_base_url="https://off.test/api/v0",
        storage_dir=tmp_path / "storage",
    )


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def secure_store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def general_store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def skylight_client() -> FakeSkylightClient:
    return FakeSkylightClient()


@pytest.fixture
def lookup_client() -> FakeProductLookupClient:
    return FakeProductLookupClient()


@pytest.fixture
def reporter() -> RecordingErrorReporter:
    return RecordingErrorReporter()


@pytest.fixture
def context() -> SessionContext:
    return SessionContext()


@pytest.fixture
def session_manager(
    skylight_client: FakeSkylightClient,
    secure_store: InMemoryStore,
    context: SessionContext,
) -> SessionManager:
    return SessionManager(
        client=skylight_client, secure_store=secure_store, context=context
    )


@pytest.fixture
def list_service(
    skylight_client: FakeSkylightClient,
    context: SessionContext,
    general_store: InMemoryStore,
    reporter: RecordingErrorReporter,
) -> ListSyncService:
    return ListSyncService(
        client=skylight_client,
        context=context,
        store=general_store,
        reporter=reporter,
    )


@pytest.fixture
def override_store(general_store: InMemoryStore, clock: FixedClock) -> OverrideHistoryStore:
    return OverrideHistoryStore(store=general_store, clock=clock)


@pytest.fixture
def product_service(lookup_client: FakeProductLookupClient) -> ProductLookupService:
    return ProductLookupService(client=lookup_client, cache=InMemoryCache())


@pytest.fixture
def scan_service(
    product_service: ProductLookupService,
    list_service: ListSyncService,
    override_store: OverrideHistoryStore,
    clock: FixedClock,
) -> ScanService:
    return ScanService(
        products=product_service,
        lists=list_service,
        overrides=override_store,
        clock=clock,
    )


@pytest.fixture
def container(
    settings: Settings,
    session_manager: SessionManager,
    list_service: ListSyncService,
    override_store: OverrideHistoryStore,
    product_service: ProductLookupService,
    scan_service: ScanService,
) -> AppContainer:
    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        session_manager=session_manager,
        list_service=list_service,
        override_store=override_store,
        product_service=product_service,
        scan_service=scan_service,
        close_resources=close_resources,
    )


@pytest.fixture
def signed_in(context: SessionContext) -> Session:
    session = make_session()
    context.state = authenticate(context.state, session)
    return session
