"""Error taxonomy shared by services and adapters."""


class ScanToSkyError(Exception):
    """Base class for application errors."""


class AuthError(ScanToSkyError):
    """Authentication failed or no usable session is available."""


class ApiError(ScanToSkyError):
    """The remote service rejected a request."""

    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


class NetworkError(ScanToSkyError):
    """Transport-level failure talking to a remote service."""


class StorageError(ScanToSkyError):
    """Local persistence failure."""
