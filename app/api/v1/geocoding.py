"""Geocoding: extract a location from text and resolve it to coordinates."""

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field

from app.api.deps import Extractor, Geocoder
from app.services.geocoding import GeocodeResult
from app.services.location_extract import LocationExtractionError

router = APIRouter(prefix="/geocoding", tags=["geocoding"])


class GeocodeRequest(BaseModel):
    text: str | None = Field(default=None, max_length=10_000)
    location_name: str | None = Field(default=None, max_length=500)


class Coordinates(BaseModel):
    lat: float
    lng: float
    formatted_address: str
    source: str


class GeocodeResponse(BaseModel):
    location_name: str
    coordinates: Coordinates
    extracted_from_text: bool


@router.post("", response_model=GeocodeResponse)
async def geocode(
    body: GeocodeRequest,
    geocoder: Geocoder,
    extractor: Extractor,
) -> GeocodeResponse:
    text = (body.text or "").strip()
    location_name = (body.location_name or "").strip()
    if not text and not location_name:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Either text or location_name is required",
        )

    extracted = False
    if not location_name:
        try:
            found = await extractor.extract(text)
        except LocationExtractionError as exc:
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)
            ) from exc
        if found is None:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
                detail="No location found in the provided text",
            )
        location_name = found
        extracted = True

    result: GeocodeResult | None = await geocoder.geocode(location_name)
    if result is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Location not found")

    return GeocodeResponse(
        location_name=location_name,
        coordinates=Coordinates(
            lat=result.lat,
            lng=result.lng,
            formatted_address=result.formatted_address,
            source=result.source,
        ),
        extracted_from_text=extracted,
    )
