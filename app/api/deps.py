"""FastAPI dependencies for the cache, the notification bus and services.

The cache and the bus live on ``app.state``; every service receives the
cache explicitly through its constructor.
"""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.requests import HTTPConnection

from app.core.cache import ExpiringKeyValueCache
from app.core.database import get_session
from app.services.geocoding import GeocodingService
from app.services.image_verification import ImageVerifier
from app.services.location_extract import LocationExtractor
from app.services.notifications import NotificationBus
from app.services.official_updates import OfficialUpdatesService
from app.services.social_media import SocialMediaMonitor


def get_cache(conn: HTTPConnection) -> ExpiringKeyValueCache:
    return conn.app.state.cache


def get_bus(conn: HTTPConnection) -> NotificationBus:
    return conn.app.state.bus


# Typed shorthand for use in route signatures
Session = Annotated[AsyncSession, Depends(get_session)]
Cache = Annotated[ExpiringKeyValueCache, Depends(get_cache)]
Bus = Annotated[NotificationBus, Depends(get_bus)]


def get_geocoder(cache: Cache) -> GeocodingService:
    return GeocodingService(cache)


def get_location_extractor(cache: Cache) -> LocationExtractor:
    return LocationExtractor(cache)


def get_social_media_monitor(cache: Cache) -> SocialMediaMonitor:
    return SocialMediaMonitor(cache)


def get_official_updates(cache: Cache) -> OfficialUpdatesService:
    return OfficialUpdatesService(cache)


def get_image_verifier(cache: Cache) -> ImageVerifier:
    return ImageVerifier(cache)


Geocoder = Annotated[GeocodingService, Depends(get_geocoder)]
Extractor = Annotated[LocationExtractor, Depends(get_location_extractor)]
Monitor = Annotated[SocialMediaMonitor, Depends(get_social_media_monitor)]
Updates = Annotated[OfficialUpdatesService, Depends(get_official_updates)]
Verifier = Annotated[ImageVerifier, Depends(get_image_verifier)]
