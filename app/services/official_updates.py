"""Official updates from relief agencies (FEMA, Red Cross, NWS).

Agency pages are not scraped yet; each source returns a fixed sample
batch. Merged batches are cached for 30 minutes per disaster and source.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import timedelta
from enum import StrEnum

from pydantic import BaseModel

from app.core.cache import ExpiringKeyValueCache
from app.models.base import utcnow
from app.services.cache_keys import official_updates_key

logger = logging.getLogger(__name__)

OFFICIAL_UPDATES_TTL_MINUTES = 30


class UpdateSource(StrEnum):
    ALL = "all"
    FEMA = "fema"
    REDCROSS = "redcross"
    NWS = "nws"


class OfficialUpdate(BaseModel):
    id: str
    source: str
    title: str
    content: str
    url: str
    timestamp: str
    category: str
    priority: str


class OfficialUpdates(BaseModel):
    disaster_id: str
    updates: list[OfficialUpdate]
    sources: list[str]
    last_updated: str


def _update(
    update_id: str, source: str, title: str, content: str, url: str,
    minutes_ago: int, category: str, priority: str,
) -> OfficialUpdate:
    return OfficialUpdate(
        id=update_id,
        source=source,
        title=title,
        content=content,
        url=url,
        timestamp=(utcnow() - timedelta(minutes=minutes_ago)).isoformat(),
        category=category,
        priority=priority,
    )


async def fetch_fema_updates() -> list[OfficialUpdate]:
    return [
        _update(
            "fema_001", "FEMA", "Disaster Relief Centers Opened in Affected Areas",
            "FEMA has opened three disaster relief centers in Manhattan, Brooklyn, "
            "and Queens to provide immediate assistance to flood victims.",
            "https://www.fema.gov/disaster/current", 120, "relief_centers", "high",
        ),
        _update(
            "fema_002", "FEMA", "Individual Assistance Available for Flood Victims",
            "Residents affected by flooding can now apply for FEMA Individual "
            "Assistance online or by calling 1-800-621-3362.",
            "https://www.fema.gov/assistance/individual", 240, "assistance", "medium",
        ),
    ]


async def fetch_redcross_updates() -> list[OfficialUpdate]:
    return [
        _update(
            "redcross_001", "Red Cross", "Emergency Shelters Operating at Full Capacity",
            "All Red Cross emergency shelters in the NYC area are currently operating. "
            "Additional shelter space being arranged.",
            "https://www.redcross.org/local/new-york", 60, "shelters", "high",
        ),
        _update(
            "redcross_002", "Red Cross", "Volunteer Opportunities Available",
            "The Red Cross is seeking volunteers to help with disaster response "
            "efforts. Training provided on-site.",
            "https://www.redcross.org/volunteer", 180, "volunteers", "medium",
        ),
    ]


async def fetch_nws_updates() -> list[OfficialUpdate]:
    return [
        _update(
            "nws_001", "National Weather Service", "Flood Warning Extended Until Friday",
            "The flood warning for the NYC metropolitan area has been extended until "
            "Friday at 6 PM. Residents should continue to avoid flooded roads.",
            "https://www.weather.gov/nyc", 30, "weather", "critical",
        ),
        _update(
            "nws_002", "National Weather Service", "River Levels Stabilizing",
            "Water levels on major rivers in the area are beginning to stabilize, "
            "though flooding remains a concern in low-lying areas.",
            "https://www.weather.gov/nyc/rivers", 90, "conditions", "medium",
        ),
    ]


FETCHERS: dict[UpdateSource, Callable[[], Awaitable[list[OfficialUpdate]]]] = {
    UpdateSource.FEMA: fetch_fema_updates,
    UpdateSource.REDCROSS: fetch_redcross_updates,
    UpdateSource.NWS: fetch_nws_updates,
}


class OfficialUpdatesService:
    def __init__(self, cache: ExpiringKeyValueCache) -> None:
        self.cache = cache

    async def get_updates(
        self, disaster_id: str, source: UpdateSource = UpdateSource.ALL
    ) -> OfficialUpdates:
        key = official_updates_key(disaster_id, source.value)
        cached = await self.cache.get(key)
        if cached is not None:
            return OfficialUpdates.model_validate(cached)

        updates: list[OfficialUpdate] = []
        for name, fetch in FETCHERS.items():
            if source not in (UpdateSource.ALL, name):
                continue
            try:
                updates.extend(await fetch())
            except Exception:
                logger.exception("%s update fetch failed", name.value)

        updates.sort(key=lambda u: u.timestamp, reverse=True)
        result = OfficialUpdates(
            disaster_id=disaster_id,
            updates=updates,
            sources=[s.value for s in FETCHERS],
            last_updated=utcnow().isoformat(),
        )
        await self.cache.set(key, result.model_dump(), OFFICIAL_UPDATES_TTL_MINUTES)
        logger.info(
            "Official updates fetched for disaster %s: %d updates",
            disaster_id, len(updates),
        )
        return result
