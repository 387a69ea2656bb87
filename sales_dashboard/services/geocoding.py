import json
import logging
import os
from dataclasses import dataclass
from http.client import HTTPException as HTTPClientError
from typing import Any, Protocol
from urllib.error import URLError
from urllib.parse import urlencode
from urllib.request import Request as UrlRequest, urlopen

logger = logging.getLogger(__name__)

DEFAULT_GEOCODE_API_URL = "https://maps.googleapis.com/maps/api/geocode/json"
API_KEY_ENV_VARS = ("GOOGLE_MAP_API", "GOOGLE_GEOCODING_API")


@dataclass(frozen=True)
class Coordinates:
    latitude: float
    longitude: float


class Geocoder(Protocol):
    enabled: bool

    def resolve(self, address: str) -> Coordinates | None: ...


def get_maps_api_key() -> str | None:
    """Return the maps key from the primary variable, then the fallback one."""
    for name in API_KEY_ENV_VARS:
        value = (os.getenv(name) or "").strip()
        if value:
            return value
    return None


class GeocodingResolver:
    """
    Thin client for the Google Geocoding JSON API.

    `resolve` is best-effort and never raises: any failure (no key, network
    error, bad payload, non-OK status, zero results) comes back as None so the
    caller can fall back to coordinates from the spreadsheet.
    """

    def __init__(
        self,
        api_key: str | None,
        timeout: float = 5.0,
        api_url: str = DEFAULT_GEOCODE_API_URL,
    ):
        self.api_key = api_key
        self.timeout = timeout
        self.api_url = api_url

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def _build_url(self, address: str) -> str:
        return f"{self.api_url}?{urlencode({'address': address, 'key': self.api_key})}"

    def lookup(self, address: str) -> dict[str, Any]:
        """Return the raw service payload. Raises on transport or decode errors."""
        if not self.enabled:
            raise RuntimeError("Google Maps API key not configured")

        req = UrlRequest(
            self._build_url(address),
            headers={"Accept": "application/json"},
            method="GET",
        )
        with urlopen(req, timeout=self.timeout) as resp:
            payload = json.loads(resp.read().decode("utf-8"))
        if not isinstance(payload, dict):
            raise ValueError("Unexpected geocoding response.")
        return payload

    def resolve(self, address: str) -> Coordinates | None:
        if not self.enabled:
            return None

        try:
            payload = self.lookup(address)
        except (URLError, HTTPClientError, TimeoutError, ValueError, OSError) as exc:
            logger.warning("Geocoding error for %s: %s", address, exc)
            return None

        status = payload.get("status")
        results = payload.get("results") or []
        if status != "OK" or not results:
            logger.warning("Geocoding failed for %s: %s", address, status)
            return None

        try:
            location = results[0]["geometry"]["location"]
            return Coordinates(latitude=float(location["lat"]), longitude=float(location["lng"]))
        except (KeyError, IndexError, TypeError, ValueError):
            logger.warning("Geocoding returned no usable location for %s", address)
            return None


def build_geocoder_from_env() -> GeocodingResolver:
    return GeocodingResolver(
        api_key=get_maps_api_key(),
        timeout=float(os.getenv("GEOCODE_TIMEOUT_SECONDS", "5")),
        api_url=os.getenv("GEOCODE_API_URL", DEFAULT_GEOCODE_API_URL),
    )


def get_geocoder() -> GeocodingResolver:
    """FastAPI dependency; reads the environment per request so key changes apply."""
    return build_geocoder_from_env()
