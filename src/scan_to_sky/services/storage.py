"""Local key-value storage interface and key names."""

from typing import Protocol

AUTH_TOKEN_KEY = "skylight_auth_token"
USER_ID_KEY = "skylight_user_id"
FRAME_ID_KEY = "skylight_frame_id"
USER_EMAIL_KEY = "skylight_user_email"

SESSION_KEYS = (AUTH_TOKEN_KEY, USER_ID_KEY, FRAME_ID_KEY, USER_EMAIL_KEY)

SCAN_HISTORY_KEY = "scan_history"
SELECTED_LIST_ID_KEY = "selected_list_id"
PRODUCT_OVERRIDES_KEY = "product_overrides"


class KeyValueStore(Protocol):
    """Durable key-value storage holding JSON-compatible values.

    Implementations raise ``StorageError`` on I/O failure.
    """

    async def get(self, key: str) -> object | None:
        """Return the value for a key, if present."""

    async def set(self, key: str, value: object) -> None:
        """Store a value under a key."""

    async def delete(self, key: str) -> None:
        """Remove a key; missing keys are ignored."""
