"""Geocoding service, location extraction and POST /v1/geocoding."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from httpx import AsyncClient

from app.core.config import Settings
from app.services.cache_keys import geocode_key, location_extract_key
from app.services.geocoding import GeocodingService
from app.services.location_extract import LocationExtractionError, LocationExtractor

HTTP_TARGET = "app.services.geocoding.httpx.AsyncClient"
LLM_TARGET = "app.services.location_extract.acompletion"

NOMINATIM_MANHATTAN = [{
    "lat": "40.7831",
    "lon": "-73.9712",
    "display_name": "Manhattan, New York County, New York, United States",
}]


def _resp(payload) -> MagicMock:
    resp = MagicMock()
    resp.raise_for_status = MagicMock()
    resp.json = MagicMock(return_value=payload)
    return resp


def _mock_http(*results) -> AsyncMock:
    """AsyncClient mock whose successive GETs return payloads or raise."""
    side_effect = [r if isinstance(r, Exception) else _resp(r) for r in results]
    mock_client_instance = AsyncMock()
    mock_client_instance.get = AsyncMock(side_effect=side_effect)
    mock_client_instance.__aenter__ = AsyncMock(return_value=mock_client_instance)
    mock_client_instance.__aexit__ = AsyncMock(return_value=False)
    return mock_client_instance


def _llm_answer(text: str) -> SimpleNamespace:
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=text))])


def _settings(**overrides) -> Settings:
    base = {"google_maps_api_key": "", "mapbox_access_token": "", "gemini_api_key": ""}
    base.update(overrides)
    return Settings(**base)


# ── GeocodingService ─────────────────────────────────────────


@pytest.mark.asyncio
async def test_geocode_uses_nominatim_and_caches(cache):
    service = GeocodingService(cache, settings=_settings())
    mock_http = _mock_http(NOMINATIM_MANHATTAN)

    with patch(HTTP_TARGET, return_value=mock_http):
        first = await service.geocode("Manhattan, NYC")
        second = await service.geocode("Manhattan, NYC")

    assert first == second
    assert first.source == "openstreetmap"
    assert first.lat == pytest.approx(40.7831)
    assert first.lng == pytest.approx(-73.9712)
    mock_http.get.assert_called_once()
    assert await cache.get(geocode_key("Manhattan, NYC")) == {
        "lat": 40.7831,
        "lng": -73.9712,
        "formatted_address": "Manhattan, New York County, New York, United States",
        "source": "openstreetmap",
    }


@pytest.mark.asyncio
async def test_geocode_regeocodes_after_expiry(cache, clock):
    service = GeocodingService(cache, settings=_settings())
    mock_http = _mock_http(NOMINATIM_MANHATTAN, NOMINATIM_MANHATTAN)

    with patch(HTTP_TARGET, return_value=mock_http):
        await service.geocode("Manhattan, NYC")
        clock.advance(minutes=1441)
        await service.geocode("Manhattan, NYC")

    assert mock_http.get.call_count == 2


@pytest.mark.asyncio
async def test_geocode_falls_back_through_providers(cache):
    service = GeocodingService(
        cache, settings=_settings(google_maps_api_key="g-key", mapbox_access_token="mb-token"),
    )
    mapbox = {"features": [{"center": [-95.3698, 29.7604], "place_name": "Houston, Texas"}]}
    mock_http = _mock_http({"results": []}, [], mapbox)

    with patch(HTTP_TARGET, return_value=mock_http):
        result = await service.geocode("Houston, Texas")

    assert result.source == "mapbox"
    assert result.lat == pytest.approx(29.7604)
    assert result.lng == pytest.approx(-95.3698)
    assert mock_http.get.call_count == 3


@pytest.mark.asyncio
async def test_geocode_prefers_google_when_configured(cache):
    service = GeocodingService(cache, settings=_settings(google_maps_api_key="g-key"))
    google = {"results": [{
        "geometry": {"location": {"lat": 40.78, "lng": -73.97}},
        "formatted_address": "Manhattan, NY, USA",
    }]}
    mock_http = _mock_http(google)

    with patch(HTTP_TARGET, return_value=mock_http):
        result = await service.geocode("Manhattan")

    assert result.source == "google_maps"
    assert mock_http.get.call_args.kwargs["params"]["key"] == "g-key"


@pytest.mark.asyncio
async def test_geocode_provider_error_falls_through(cache):
    service = GeocodingService(cache, settings=_settings(google_maps_api_key="g-key"))
    mock_http = _mock_http(httpx.ConnectError("boom"), NOMINATIM_MANHATTAN)

    with patch(HTTP_TARGET, return_value=mock_http):
        result = await service.geocode("Manhattan, NYC")

    assert result.source == "openstreetmap"


@pytest.mark.asyncio
async def test_geocode_malformed_provider_payload_falls_through(cache):
    service = GeocodingService(
        cache, settings=_settings(google_maps_api_key="g-key", mapbox_access_token="mb-token"),
    )
    mapbox = {"features": [{"center": [-73.9712, 40.7831], "place_name": "Manhattan"}]}
    mock_http = _mock_http(
        {"results": [{"formatted_address": "x"}]},  # no geometry
        [{"display_name": "Manhattan"}],  # no lat/lon
        mapbox,
    )

    with patch(HTTP_TARGET, return_value=mock_http):
        result = await service.geocode("Manhattan, NYC")

    assert result.source == "mapbox"
    assert result.lat == pytest.approx(40.7831)
    assert mock_http.get.call_count == 3


@pytest.mark.asyncio
async def test_geocode_malformed_google_payload_uses_nominatim(cache):
    service = GeocodingService(cache, settings=_settings(google_maps_api_key="g-key"))
    mock_http = _mock_http({"results": [{"formatted_address": "x"}]}, NOMINATIM_MANHATTAN)

    with patch(HTTP_TARGET, return_value=mock_http):
        result = await service.geocode("Manhattan, NYC")

    assert result.source == "openstreetmap"


@pytest.mark.asyncio
async def test_geocode_not_found_is_not_cached(cache):
    service = GeocodingService(cache, settings=_settings())
    mock_http = _mock_http([])

    with patch(HTTP_TARGET, return_value=mock_http):
        assert await service.geocode("Atlantis") is None

    assert await cache.get(geocode_key("Atlantis")) is None


# ── LocationExtractor ────────────────────────────────────────


@pytest.mark.asyncio
async def test_extract_location_caches_answer(cache):
    extractor = LocationExtractor(cache, settings=_settings())
    text = "Heavy flooding near Houston, Texas after the storm"
    mock_llm = AsyncMock(return_value=_llm_answer("Houston, Texas\n"))

    with patch(LLM_TARGET, mock_llm):
        assert await extractor.extract(text) == "Houston, Texas"
        assert await extractor.extract(text) == "Houston, Texas"

    mock_llm.assert_called_once()
    assert await cache.get(location_extract_key(text)) == "Houston, Texas"


@pytest.mark.asyncio
async def test_extract_location_none_found(cache):
    extractor = LocationExtractor(cache, settings=_settings())
    with patch(LLM_TARGET, AsyncMock(return_value=_llm_answer("NONE"))):
        assert await extractor.extract("Something bad happened somewhere") is None


@pytest.mark.asyncio
async def test_extract_location_llm_failure_raises(cache):
    extractor = LocationExtractor(cache, settings=_settings())
    with patch(LLM_TARGET, AsyncMock(side_effect=RuntimeError("quota exceeded"))):
        with pytest.raises(LocationExtractionError):
            await extractor.extract("Flooding in Brooklyn")


# ── POST /v1/geocoding ───────────────────────────────────────


@pytest.mark.asyncio
async def test_geocode_route_by_name(client: AsyncClient):
    with patch(HTTP_TARGET, return_value=_mock_http(NOMINATIM_MANHATTAN)):
        resp = await client.post("/v1/geocoding", json={"location_name": "Manhattan, NYC"})

    assert resp.status_code == 200
    data = resp.json()
    assert data["location_name"] == "Manhattan, NYC"
    assert data["extracted_from_text"] is False
    assert data["coordinates"]["source"] == "openstreetmap"
    assert data["coordinates"]["lat"] == pytest.approx(40.7831)


@pytest.mark.asyncio
async def test_geocode_route_extracts_from_text(client: AsyncClient):
    mock_llm = AsyncMock(return_value=_llm_answer("Manhattan, NYC"))
    with (
        patch(LLM_TARGET, mock_llm),
        patch(HTTP_TARGET, return_value=_mock_http(NOMINATIM_MANHATTAN)),
    ):
        resp = await client.post("/v1/geocoding", json={
            "text": "Subway stations in Manhattan are flooded",
        })

    assert resp.status_code == 200
    data = resp.json()
    assert data["location_name"] == "Manhattan, NYC"
    assert data["extracted_from_text"] is True


@pytest.mark.asyncio
async def test_geocode_route_requires_input(client: AsyncClient):
    resp = await client.post("/v1/geocoding", json={})
    assert resp.status_code == 400
    assert "required" in resp.json()["detail"]


@pytest.mark.asyncio
async def test_geocode_route_no_location_in_text(client: AsyncClient):
    with patch(LLM_TARGET, AsyncMock(return_value=_llm_answer("NONE"))):
        resp = await client.post("/v1/geocoding", json={"text": "It is raining"})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_geocode_route_llm_unavailable(client: AsyncClient):
    with patch(LLM_TARGET, AsyncMock(side_effect=RuntimeError("down"))):
        resp = await client.post("/v1/geocoding", json={"text": "Flooding in Queens"})
    assert resp.status_code == 502


@pytest.mark.asyncio
async def test_geocode_route_location_not_found(client: AsyncClient):
    with patch(HTTP_TARGET, return_value=_mock_http([])):
        resp = await client.post("/v1/geocoding", json={"location_name": "Atlantis"})
    assert resp.status_code == 404
