"""Nominatim postal code search used as the external lookup."""

from __future__ import annotations

import asyncio
from typing import Any, Protocol

from pincode_map.common.errors import GeocodeError
from pincode_map.common.geometry import Coordinates, make_coordinates
from pincode_map.common.http import HttpClient, RetryConfig, TimeoutConfig


class Geocoder(Protocol):
    async def lookup(self, postal_code: str) -> Coordinates | None: ...


def parse_search_payload(payload: Any) -> Coordinates | None:
    """Return the first result's coordinates, or None for an empty result."""
    if not isinstance(payload, list):
        raise GeocodeError("Search payload is not a list")
    if not payload:
        return None
    first = payload[0]
    if not isinstance(first, dict):
        raise GeocodeError("Search result is not an object")
    coords = make_coordinates(first.get("lat"), first.get("lon"))
    if coords is None:
        raise GeocodeError(f"Search result has no usable lat/lon: {first!r}")
    return coords


class NominatimGeocoder:
    def __init__(
        self,
        http_client: HttpClient,
        *,
        endpoint: str,
        country: str,
        result_limit: int = 1,
        timeout: TimeoutConfig | None = None,
    ) -> None:
        self.http_client = http_client
        self.endpoint = endpoint
        self.country = country
        self.result_limit = result_limit
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: dict) -> "NominatimGeocoder":
        geocoder_cfg = settings["geocoder"]
        client = HttpClient(
            timeout=TimeoutConfig(
                connect=float(geocoder_cfg["timeout"]["connect"]),
                read=float(geocoder_cfg["timeout"]["read"]),
            ),
            retry=RetryConfig(max_attempts=int(geocoder_cfg["max_attempts"])),
            user_agent=geocoder_cfg["user_agent"],
        )
        return cls(
            client,
            endpoint=geocoder_cfg["endpoint"],
            country=geocoder_cfg["country"],
            result_limit=int(geocoder_cfg["result_limit"]),
        )

    def build_params(self, postal_code: str) -> dict[str, Any]:
        return {
            "postalcode": postal_code,
            "country": self.country,
            "format": "json",
            "limit": self.result_limit,
        }

    def lookup_sync(self, postal_code: str) -> Coordinates | None:
        payload = self.http_client.get_json(
            self.endpoint,
            params=self.build_params(postal_code),
            timeout=self.timeout,
        )
        return parse_search_payload(payload)

    async def lookup(self, postal_code: str) -> Coordinates | None:
        # requests blocks; the worker thread is awaited so calls stay sequential.
        return await asyncio.to_thread(self.lookup_sync, postal_code)

    def close(self) -> None:
        self.http_client.close()
