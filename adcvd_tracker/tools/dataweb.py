from __future__ import annotations

from typing import Any

import httpx

from adcvd_tracker.config import settings
from adcvd_tracker.services.errors import UpstreamError

CURRENT_TARIFF_DETAILS_PATH = "/api/v2/tariff/currentTariffDetails"


class DatawebClient:
    """Investigation feed backed by the USITC DataWeb tariff API."""

    def __init__(
        self,
        base_url: str | None = None,
        *,
        token: str | None = None,
        timeout: float | None = None,
    ):
        self.base_url = (base_url or settings.dataweb_base_url).rstrip("/")
        self.token = settings.dataweb_token if token is None else token
        self.timeout = timeout or settings.dataweb_timeout_seconds

    async def fetch_investigations(self, hts_code: str, year: str) -> list[dict[str, Any]]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
            response = await client.get(
                f"{self.base_url}{CURRENT_TARIFF_DETAILS_PATH}",
                params={"year": year, "hts8": hts_code},
                headers=headers,
            )

        if response.status_code == 404:
            return []
        if not response.is_success:
            raise UpstreamError(
                f"DataWeb call failed for hts8={hts_code} year={year}: {response.status_code}",
                status_code=502,
            )

        payload = response.json()
        investigations = payload.get("investigations") if isinstance(payload, dict) else None
        if not isinstance(investigations, list):
            return []
        return [item for item in investigations if isinstance(item, dict)]
