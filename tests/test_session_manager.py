"""Tests for login, frame discovery and session persistence."""

import asyncio
import base64
import json

import pytest

from scan_to_sky.adapters.file_store import JsonFileStore
from scan_to_sky.domain.errors import AuthError, NetworkError, StorageError
from scan_to_sky.domain.sessions import SessionStatus
from scan_to_sky.services.sessions import SessionContext, SessionManager
from scan_to_sky.services.storage import (
    AUTH_TOKEN_KEY,
    FRAME_ID_KEY,
    SESSION_KEYS,
    USER_EMAIL_KEY,
    USER_ID_KEY,
)
from tests.conftest import (
    AUTH_TOKEN,
    EMAIL,
    USER_ID,
    FakeSkylightClient,
    InMemoryStore,
    login_body,
)

FRAMES_PATH = "/api/frames"
ME_PATH = "/api/users/me?include=frames"
USER_PATH = f"/api/users/{USER_ID}?include=frames"


def test_login_uses_first_frame_from_index(
    session_manager: SessionManager,
    skylight_client: FakeSkylightClient,
    secure_store: InMemoryStore,
    context: SessionContext,
) -> None:
    skylight_client.add("POST", "/api/sessions", 200, login_body())
    skylight_client.add(
        "GET", FRAMES_PATH, 200, {"data": [{"id": "F1"}, {"id": "F2"}]}
    )

    session = asyncio.run(session_manager.login(EMAIL, "secret"))

    assert session.frame_id == "F1"
    assert session.user_id == USER_ID
    assert session.email == EMAIL
    assert base64.b64decode(session.token).decode() == f"{USER_ID}:opaque-token"
    assert secure_store.values == {
        AUTH_TOKEN_KEY: AUTH_TOKEN,
        USER_ID_KEY: USER_ID,
        FRAME_ID_KEY: "F1",
        USER_EMAIL_KEY: EMAIL,
    }
    assert context.state.status is SessionStatus.AUTHENTICATED
    assert context.session == session
    assert ME_PATH not in skylight_client.paths()


def test_login_sends_credentials_and_authorizes_probes(
    session_manager: SessionManager, skylight_client: FakeSkylightClient
) -> None:
    skylight_client.add("POST", "/api/sessions", 200, login_body())
    skylight_client.add("GET", FRAMES_PATH, 200, {"data": [{"id": "F1"}]})

    asyncio.run(session_manager.login(EMAIL, "secret"))

    login_call, probe_call = skylight_client.calls
    assert login_call == (
        "POST",
        "/api/sessions",
        None,
        {"email": EMAIL, "password": "secret"},
    )
    assert probe_call[2] == AUTH_TOKEN


def test_discovery_falls_back_to_current_user_relationship(
    session_manager: SessionManager, skylight_client: FakeSkylightClient
) -> None:
    skylight_client.add("POST", "/api/sessions", 200, login_body())
    skylight_client.add("GET", FRAMES_PATH, 500, {"errors": []})
    skylight_client.add(
        "GET",
        ME_PATH,
        200,
        {"data": {"id": USER_ID, "relationships": {"frames": {"data": [{"id": "F"}]}}}},
    )
    skylight_client.add("GET", USER_PATH, 200, {"included": [{"id": "X", "type": "frame"}]})

    session = asyncio.run(session_manager.login(EMAIL, "secret"))

    assert session.frame_id == "F"
    assert USER_PATH not in skylight_client.paths()


def test_discovery_swallows_network_errors_and_reads_included(
    session_manager: SessionManager, skylight_client: FakeSkylightClient
) -> None:
    skylight_client.add("POST", "/api/sessions", 200, login_body())
    skylight_client.fail("GET", FRAMES_PATH, NetworkError("connection reset"))
    skylight_client.add("GET", ME_PATH, 200, {"data": {"id": USER_ID}})
    skylight_client.add(
        "GET",
        USER_PATH,
        200,
        {
            "data": {"id": USER_ID},
            "included": [{"id": "u", "type": "user"}, {"id": 77, "type": "frames"}],
        },
    )

    session = asyncio.run(session_manager.login(EMAIL, "secret"))

    assert session.frame_id == "77"
    assert skylight_client.paths() == ["/api/sessions", FRAMES_PATH, ME_PATH, USER_PATH]


def test_discovery_exhaustion_creates_no_session(
    session_manager: SessionManager,
    skylight_client: FakeSkylightClient,
    secure_store: InMemoryStore,
    context: SessionContext,
) -> None:
    skylight_client.add("POST", "/api/sessions", 200, login_body())
    skylight_client.add("GET", FRAMES_PATH, 200, {"data": []})
    skylight_client.fail("GET", ME_PATH, NetworkError("timeout"))
    skylight_client.add("GET", USER_PATH, 403, None)

    with pytest.raises(AuthError, match="frame discovery failed"):
        asyncio.run(session_manager.login(EMAIL, "secret"))

    assert secure_store.values == {}
    assert context.session is None
    assert context.state.status is SessionStatus.UNINITIALIZED


@pytest.mark.parametrize(
    ("status_code", "message"),
    [
        (401, "Invalid email or password"),
        (422, "Invalid email format or missing fields"),
        (500, r"Login failed \(500\)"),
    ],
)
def test_login_rejections_raise_auth_error(
    session_manager: SessionManager,
    skylight_client: FakeSkylightClient,
    status_code: int,
    message: str,
) -> None:
    skylight_client.add("POST", "/api/sessions", status_code, {"errors": []})

    with pytest.raises(AuthError, match=message):
        asyncio.run(session_manager.login(EMAIL, "wrong"))

    assert skylight_client.paths() == ["/api/sessions"]


def test_login_with_malformed_body_raises_auth_error(
    session_manager: SessionManager, skylight_client: FakeSkylightClient
) -> None:
    skylight_client.add("POST", "/api/sessions", 200, {"data": {"id": USER_ID}})

    with pytest.raises(AuthError, match="Unexpected login response"):
        asyncio.run(session_manager.login(EMAIL, "secret"))


def test_login_network_failure_propagates(
    session_manager: SessionManager, skylight_client: FakeSkylightClient
) -> None:
    skylight_client.fail("POST", "/api/sessions", NetworkError("offline"))

    with pytest.raises(NetworkError):
        asyncio.run(session_manager.login(EMAIL, "secret"))


def test_failed_persistence_leaves_no_partial_session(
    session_manager: SessionManager,
    skylight_client: FakeSkylightClient,
    secure_store: InMemoryStore,
    context: SessionContext,
) -> None:
    skylight_client.add("POST", "/api/sessions", 200, login_body())
    skylight_client.add("GET", FRAMES_PATH, 200, {"data": [{"id": "F1"}]})
    secure_store.failing_keys.add(FRAME_ID_KEY)

    with pytest.raises(StorageError):
        asyncio.run(session_manager.login(EMAIL, "secret"))

    assert secure_store.values == {}
    assert context.session is None


def test_restore_requires_all_four_fields(
    session_manager: SessionManager,
    secure_store: InMemoryStore,
    context: SessionContext,
) -> None:
    secure_store.values.update({AUTH_TOKEN_KEY: AUTH_TOKEN, USER_ID_KEY: USER_ID})

    assert asyncio.run(session_manager.restore_session()) is None
    assert context.state.status is SessionStatus.UNAUTHENTICATED


def test_restore_publishes_persisted_session(
    session_manager: SessionManager,
    secure_store: InMemoryStore,
    context: SessionContext,
) -> None:
    secure_store.values.update(
        {
            AUTH_TOKEN_KEY: AUTH_TOKEN,
            USER_ID_KEY: USER_ID,
            FRAME_ID_KEY: "F1",
            USER_EMAIL_KEY: EMAIL,
        }
    )

    session = asyncio.run(session_manager.restore_session())

    assert session is not None
    assert session.frame_id == "F1"
    assert session.token == AUTH_TOKEN
    assert context.is_authenticated
    assert session_manager.require_session() == session


def test_restore_storage_failure_is_implicit_logout(
    session_manager: SessionManager,
    secure_store: InMemoryStore,
    context: SessionContext,
) -> None:
    secure_store.values.update({AUTH_TOKEN_KEY: AUTH_TOKEN, USER_ID_KEY: USER_ID})
    secure_store.fail_reads = True

    assert asyncio.run(session_manager.restore_session()) is None

    assert secure_store.values == {}
    assert context.state.status is SessionStatus.UNAUTHENTICATED


def test_logout_clears_everything_and_is_idempotent(
    session_manager: SessionManager,
    skylight_client: FakeSkylightClient,
    secure_store: InMemoryStore,
    context: SessionContext,
) -> None:
    skylight_client.add("POST", "/api/sessions", 200, login_body())
    skylight_client.add("GET", FRAMES_PATH, 200, {"data": [{"id": "F1"}]})
    asyncio.run(session_manager.login(EMAIL, "secret"))

    asyncio.run(session_manager.logout())
    asyncio.run(session_manager.logout())

    assert not any(key in secure_store.values for key in SESSION_KEYS)
    assert context.session is None
    assert context.state.status is SessionStatus.UNAUTHENTICATED
    with pytest.raises(AuthError, match="not authenticated"):
        session_manager.require_session()


def test_failed_rollback_keeps_original_write_error(
    session_manager: SessionManager,
    skylight_client: FakeSkylightClient,
    secure_store: InMemoryStore,
    context: SessionContext,
) -> None:
    skylight_client.add("POST", "/api/sessions", 200, login_body())
    skylight_client.add("GET", FRAMES_PATH, 200, {"data": [{"id": "F1"}]})
    secure_store.failing_keys.add(FRAME_ID_KEY)
    secure_store.fail_deletes = True

    with pytest.raises(StorageError, match=f"cannot write {FRAME_ID_KEY}"):
        asyncio.run(session_manager.login(EMAIL, "secret"))

    assert context.session is None


def test_restore_with_failing_cleanup_still_signs_out(
    session_manager: SessionManager,
    secure_store: InMemoryStore,
    context: SessionContext,
) -> None:
    secure_store.fail_reads = True
    secure_store.fail_deletes = True

    assert asyncio.run(session_manager.restore_session()) is None
    assert context.state.status is SessionStatus.UNAUTHENTICATED


def test_restore_discards_corrupt_credentials_file(
    tmp_path, skylight_client: FakeSkylightClient, context: SessionContext
) -> None:
    path = tmp_path / "credentials.json"
    path.write_text("{not json", encoding="utf-8")
    manager = SessionManager(
        client=skylight_client,
        secure_store=JsonFileStore(path, private=True),
        context=context,
    )

    assert asyncio.run(manager.restore_session()) is None

    assert context.state.status is SessionStatus.UNAUTHENTICATED
    assert json.loads(path.read_text(encoding="utf-8")) == {}
    assert asyncio.run(manager.restore_session()) is None
