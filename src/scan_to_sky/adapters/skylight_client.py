"""Skylight list service gateway."""

from dataclasses import dataclass
from typing import Protocol

import httpx

from scan_to_sky.domain.errors import NetworkError


@dataclass(frozen=True)
class GatewayResponse:
    """Status and decoded body of a Skylight response."""

    status_code: int
    body: object

    @property
    def ok(self) -> bool:
        """Return True for 2xx responses."""
        return 200 <= self.status_code < 300  # noqa: PLR2004


class SkylightClient(Protocol):
    """Interface for Skylight API interactions."""

    async def request(
        self,
        method: str,
        path: str,
        *,
        auth_token: str | None = None,
        json: dict[str, object] | None = None,
    ) -> GatewayResponse:
        """Send a request and return the status with the decoded body."""


@dataclass
class HttpxSkylightClient(SkylightClient):
    """HTTPX-backed Skylight client."""

    base_url: str
    http_client: httpx.AsyncClient
    timeout: float = 15.0

    @classmethod
    def create(cls, base_url: str, timeout: float = 15.0) -> "HttpxSkylightClient":
        """Create a Skylight client with a managed httpx session."""
        return cls(
            base_url=base_url.rstrip("/"),
            http_client=httpx.AsyncClient(),
            timeout=timeout,
        )

    async def request(
        self,
        method: str,
        path: str,
        *,
        auth_token: str | None = None,
        json: dict[str, object] | None = None,
    ) -> GatewayResponse:
        """Send a request; non-2xx statuses are returned, not raised."""
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        if auth_token is not None:
            headers["Authorization"] = f"Basic {auth_token}"
        try:
            response = await self.http_client.request(
                method,
                f"{self.base_url}{path}",
                headers=headers,
                json=json,
                timeout=self.timeout,
            )
        except httpx.RequestError as exc:
            raise NetworkError(f"{method} {path} failed: {exc}") from exc
        return GatewayResponse(
            status_code=response.status_code, body=_decode_body(response)
        )

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()


def _decode_body(response: httpx.Response) -> object:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text
