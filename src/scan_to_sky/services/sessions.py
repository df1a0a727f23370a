"""Skylight authentication, frame discovery and session persistence."""

import asyncio
import base64
import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from scan_to_sky.adapters.skylight_client import SkylightClient
from scan_to_sky.domain.errors import AuthError, NetworkError, StorageError
from scan_to_sky.domain.sessions import (
    Session,
    SessionState,
    SessionStatus,
    authenticate,
    begin_restore,
    sign_out,
)
from scan_to_sky.services.storage import (
    AUTH_TOKEN_KEY,
    FRAME_ID_KEY,
    SESSION_KEYS,
    USER_EMAIL_KEY,
    USER_ID_KEY,
    KeyValueStore,
)

_logger = logging.getLogger(__name__)

_LOGIN_FAILURES = {
    401: "Invalid email or password",
    422: "Invalid email format or missing fields",
}

_FRAME_TYPES = {"frame", "frames"}


@dataclass
class SessionContext:
    """Owns the process-wide session state.

    Only ``SessionManager`` moves it between lifecycle states; other
    services read it.
    """

    state: SessionState = field(default_factory=SessionState)

    @property
    def session(self) -> Session | None:
        """Return the active session, if any."""
        return self.state.session

    @property
    def is_authenticated(self) -> bool:
        """Return True when a session is published."""
        return self.state.status is SessionStatus.AUTHENTICATED

    def require(self) -> Session:
        """Return the active session or raise ``AuthError``."""
        if self.state.session is None:
            raise AuthError("not authenticated")
        return self.state.session


def encode_credentials(user_id: str, token: str) -> str:
    """Build the Basic authorization credential for a user."""
    return base64.b64encode(f"{user_id}:{token}".encode()).decode("ascii")


@dataclass
class SessionManager:
    """Authenticates against Skylight and manages the persisted session."""

    client: SkylightClient
    secure_store: KeyValueStore
    context: SessionContext

    @property
    def current_session(self) -> Session | None:
        """Return the active session, if any."""
        return self.context.session

    def require_session(self) -> Session:
        """Return the active session or raise ``AuthError``."""
        return self.context.require()

    async def login(self, email: str, password: str) -> Session:
        """Authenticate, discover the frame and persist the session."""
        response = await self.client.request(
            "POST", "/api/sessions", json={"email": email, "password": password}
        )
        if not response.ok:
            message = _LOGIN_FAILURES.get(
                response.status_code, f"Login failed ({response.status_code})"
            )
            raise AuthError(message)

        user_id, account_email, opaque_token = _parse_login(response.body)
        auth_token = encode_credentials(user_id, opaque_token)
        frame_id = await self.discover_frame(auth_token, user_id)
        if frame_id is None:
            raise AuthError("frame discovery failed")

        session = Session(
            token=auth_token,
            user_id=user_id,
            frame_id=frame_id,
            email=account_email or email,
        )
        await self._persist(session)
        self.context.state = authenticate(self.context.state, session)
        _logger.info("Logged in: user_id=%s frame_id=%s", user_id, frame_id)
        return session

    async def discover_frame(self, auth_token: str, user_id: str) -> str | None:
        """Try each frame probe in order and return the first frame id."""
        for path_template, extract in _FRAME_PROBES:
            path = path_template.format(user_id=user_id)
            frame_id = await self._probe(auth_token, path, extract)
            if frame_id is not None:
                _logger.info("Found frame via %s", path)
                return frame_id
        _logger.warning("Frame discovery exhausted for user_id=%s", user_id)
        return None

    async def restore_session(self) -> Session | None:
        """Restore the persisted session; all four fields are required."""
        self.context.state = begin_restore(self.context.state)
        try:
            token, user_id, frame_id, email = await asyncio.gather(
                *(self.secure_store.get(key) for key in SESSION_KEYS)
            )
        except StorageError as exc:
            _logger.warning("Session restore failed, signing out: %s", exc)
            try:
                await self._clear_persisted()
            except StorageError:
                _logger.exception("Failed to clear unreadable session")
            finally:
                self.context.state = sign_out(self.context.state)
            return None

        values = (token, user_id, frame_id, email)
        if not all(isinstance(value, str) and value for value in values):
            self.context.state = sign_out(self.context.state)
            return None

        session = Session(token=token, user_id=user_id, frame_id=frame_id, email=email)
        self.context.state = authenticate(self.context.state, session)
        return session

    async def logout(self) -> None:
        """Clear the persisted and in-memory session."""
        try:
            await self._clear_persisted()
        finally:
            self.context.state = sign_out(self.context.state)

    async def _probe(
        self,
        auth_token: str,
        path: str,
        extract: Callable[[object], str | None],
    ) -> str | None:
        try:
            response = await self.client.request("GET", path, auth_token=auth_token)
        except NetworkError as exc:
            _logger.info("Frame probe %s failed: %s", path, exc)
            return None
        if not response.ok:
            _logger.info("Frame probe %s returned %s", path, response.status_code)
            return None
        return extract(response.body)

    async def _persist(self, session: Session) -> None:
        values = {
            AUTH_TOKEN_KEY: session.token,
            USER_ID_KEY: session.user_id,
            FRAME_ID_KEY: session.frame_id,
            USER_EMAIL_KEY: session.email,
        }
        results = await asyncio.gather(
            *(self.secure_store.set(key, value) for key, value in values.items()),
            return_exceptions=True,
        )
        failures = [result for result in results if isinstance(result, Exception)]
        if failures:
            try:
                await self._clear_persisted()
            except StorageError:
                _logger.exception("Failed to roll back partial session write")
            raise failures[0]

    async def _clear_persisted(self) -> None:
        await asyncio.gather(*(self.secure_store.delete(key) for key in SESSION_KEYS))


def _parse_login(body: object) -> tuple[str, str | None, str]:
    """Extract user id, email and opaque token from a login response."""
    data = body.get("data") if isinstance(body, dict) else None
    attributes = data.get("attributes") if isinstance(data, dict) else None
    if not isinstance(data, dict) or not isinstance(attributes, dict):
        raise AuthError("Unexpected login response")
    user_id = _as_id(data.get("id"))
    token = attributes.get("token")
    if user_id is None or not isinstance(token, str) or not token:
        raise AuthError("Unexpected login response")
    email = attributes.get("email")
    return user_id, email if isinstance(email, str) else None, token


def _as_id(value: object) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def _first_frame_in_index(body: object) -> str | None:
    data = body.get("data") if isinstance(body, dict) else None
    if isinstance(data, list) and data and isinstance(data[0], dict):
        return _as_id(data[0].get("id"))
    return None


def _frame_from_user(body: object) -> str | None:
    if not isinstance(body, dict):
        return None
    data = body.get("data")
    if isinstance(data, dict):
        relationships = data.get("relationships") or {}
        frames = relationships.get("frames") if isinstance(relationships, dict) else None
        linked = frames.get("data") if isinstance(frames, dict) else None
        if isinstance(linked, list) and linked and isinstance(linked[0], dict):
            frame_id = _as_id(linked[0].get("id"))
            if frame_id is not None:
                return frame_id
    included = body.get("included")
    if isinstance(included, list):
        for resource in included:
            if isinstance(resource, dict) and resource.get("type") in _FRAME_TYPES:
                return _as_id(resource.get("id"))
    return None


_FRAME_PROBES: tuple[tuple[str, Callable[[object], str | None]], ...] = (
    ("/api/frames", _first_frame_in_index),
    ("/api/users/me?include=frames", _frame_from_user),
    ("/api/users/{user_id}?include=frames", _frame_from_user),
)
