"""Geocoding service — place name to coordinates with provider fallback.

Providers are tried in order: Google Maps (when a key is configured),
OpenStreetMap Nominatim, then Mapbox (when a token is configured).
Successful lookups are cached for 24 hours; place geometry rarely changes.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any
from urllib.parse import quote

import httpx

from app.core.cache import ExpiringKeyValueCache
from app.core.config import Settings, get_settings
from app.services.cache_keys import geocode_key

logger = logging.getLogger(__name__)

GEOCODE_TTL_MINUTES = 1440

GOOGLE_MAPS_URL = "https://maps.googleapis.com/maps/api/geocode/json"
NOMINATIM_URL = "https://nominatim.openstreetmap.org/search"
MAPBOX_URL = "https://api.mapbox.com/geocoding/v5/mapbox.places/{query}.json"

# Raised when a provider answers 200 with a body of an unexpected shape.
PARSE_ERRORS = (KeyError, IndexError, TypeError, ValueError, AttributeError)


@dataclass
class GeocodeResult:
    lat: float
    lng: float
    formatted_address: str
    source: str


class GeocodingService:
    def __init__(
        self,
        cache: ExpiringKeyValueCache,
        settings: Settings | None = None,
    ) -> None:
        self.cache = cache
        self.settings = settings or get_settings()

    async def geocode(self, location_name: str) -> GeocodeResult | None:
        """Resolve ``location_name``; None when no provider knows it."""
        key = geocode_key(location_name)
        cached = await self.cache.get(key)
        if cached is not None:
            return GeocodeResult(**cached)

        result = await self._lookup(location_name)
        if result is not None:
            await self.cache.set(key, asdict(result), GEOCODE_TTL_MINUTES)
            logger.info(
                "Geocoded %r -> %s, %s via %s",
                location_name, result.lat, result.lng, result.source,
            )
        return result

    async def _lookup(self, location_name: str) -> GeocodeResult | None:
        async with httpx.AsyncClient(timeout=self.settings.geocoding_timeout_seconds) as client:
            result = None
            if self.settings.google_maps_api_key:
                result = await self._google_maps(client, location_name)
            if result is None:
                result = await self._nominatim(client, location_name)
            if result is None and self.settings.mapbox_access_token:
                result = await self._mapbox(client, location_name)
            return result

    async def _google_maps(
        self, client: httpx.AsyncClient, location_name: str
    ) -> GeocodeResult | None:
        data = await _get_json(
            client,
            "google_maps",
            GOOGLE_MAPS_URL,
            params={"address": location_name, "key": self.settings.google_maps_api_key},
        )
        try:
            results = (data or {}).get("results") or []
            if not results:
                return None
            top = results[0]
            location = top["geometry"]["location"]
            return GeocodeResult(
                lat=float(location["lat"]),
                lng=float(location["lng"]),
                formatted_address=top.get("formatted_address", location_name),
                source="google_maps",
            )
        except PARSE_ERRORS as exc:
            logger.warning("google_maps returned an unexpected payload: %r", exc)
            return None

    async def _nominatim(
        self, client: httpx.AsyncClient, location_name: str
    ) -> GeocodeResult | None:
        data = await _get_json(
            client,
            "openstreetmap",
            NOMINATIM_URL,
            params={"q": location_name, "format": "json", "limit": 1},
            headers={"User-Agent": self.settings.nominatim_user_agent},
        )
        if not data:
            return None
        try:
            top = data[0]
            return GeocodeResult(
                lat=float(top["lat"]),
                lng=float(top["lon"]),
                formatted_address=top.get("display_name", location_name),
                source="openstreetmap",
            )
        except PARSE_ERRORS as exc:
            logger.warning("openstreetmap returned an unexpected payload: %r", exc)
            return None

    async def _mapbox(
        self, client: httpx.AsyncClient, location_name: str
    ) -> GeocodeResult | None:
        data = await _get_json(
            client,
            "mapbox",
            MAPBOX_URL.format(query=quote(location_name, safe="")),
            params={"access_token": self.settings.mapbox_access_token, "limit": 1},
        )
        try:
            features = (data or {}).get("features") or []
            if not features:
                return None
            lng, lat = features[0]["center"][:2]
            return GeocodeResult(
                lat=float(lat),
                lng=float(lng),
                formatted_address=features[0].get("place_name", location_name),
                source="mapbox",
            )
        except PARSE_ERRORS as exc:
            logger.warning("mapbox returned an unexpected payload: %r", exc)
            return None


async def _get_json(
    client: httpx.AsyncClient,
    provider: str,
    url: str,
    params: dict[str, Any],
    headers: dict[str, str] | None = None,
) -> Any:
    """GET ``url`` and decode JSON; provider failures are logged and yield None."""
    try:
        resp = await client.get(url, params=params, headers=headers)
        resp.raise_for_status()
        return resp.json()
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("%s geocoding error: %s", provider, exc)
        return None
