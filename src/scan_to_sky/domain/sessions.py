"""Domain models for the authenticated Skylight session."""

from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class Session:
    """Represents an authenticated session bound to a frame.

    ``token`` is the Basic authorization credential, base64 of
    ``"{user_id}:{opaque_token}"``.
    """

    token: str
    user_id: str
    frame_id: str
    email: str


class SessionStatus(str, Enum):
    """Lifecycle of the process-wide session."""

    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    AUTHENTICATED = "authenticated"
    UNAUTHENTICATED = "unauthenticated"


@dataclass(frozen=True)
class SessionState:
    """Snapshot of the session lifecycle."""

    status: SessionStatus = SessionStatus.UNINITIALIZED
    session: Session | None = None


def begin_restore(state: SessionState) -> SessionState:
    """Enter the loading state while a persisted session is read."""
    return SessionState(status=SessionStatus.LOADING, session=state.session)


def authenticate(state: SessionState, session: Session) -> SessionState:
    """Publish a fully resolved session."""
    return SessionState(status=SessionStatus.AUTHENTICATED, session=session)


def sign_out(state: SessionState) -> SessionState:
    """Drop the session."""
    return SessionState(status=SessionStatus.UNAUTHENTICATED, session=None)
