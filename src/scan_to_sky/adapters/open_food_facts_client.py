"""Open Food Facts product lookup client."""

from dataclasses import dataclass
from typing import Protocol

import httpx

from scan_to_sky.domain.errors import ApiError, NetworkError


class ProductLookupClient(Protocol):
    """Interface for barcode product lookups."""

    async def fetch_product(self, barcode: str) -> dict[str, object]:
        """Fetch raw product data for a barcode."""


@dataclass
class HttpxOpenFoodFactsClient(ProductLookupClient):
    """HTTPX-backed Open Food Facts client."""

    base_url: str
    user_agent: str
    http_client: httpx.AsyncClient
    timeout: float = 15.0

    @classmethod
    def create(
        cls, base_url: str, user_agent: str, timeout: float = 15.0
    ) -> "HttpxOpenFoodFactsClient":
        """Create a lookup client with a managed httpx session."""
        return cls(
            base_url=base_url.rstrip("/"),
            user_agent=user_agent,
            http_client=httpx.AsyncClient(),
            timeout=timeout,
        )

    async def fetch_product(self, barcode: str) -> dict[str, object]:
        """Fetch a product by barcode."""
        url = f"{self.base_url}/product/{barcode}.json"
        try:
            response = await self.http_client.get(
                url,
                headers={"User-Agent": self.user_agent},
                timeout=self.timeout,
            )
        except httpx.RequestError as exc:
            raise NetworkError(f"Product lookup failed: {exc}") from exc
        if not response.is_success:
            raise ApiError(
                f"Failed to fetch product: {response.status_code}",
                response.status_code,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise ApiError(
                "Product lookup returned invalid JSON", response.status_code
            ) from exc

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
