"""Per-disaster feeds: social media, official updates, image verification.

Disaster ids are opaque here; they scope cache keys and notification rooms.
"""

from typing import Annotated

from fastapi import APIRouter, Query
from pydantic import BaseModel, Field

from app.api.deps import Bus, Monitor, Updates, Verifier
from app.services.image_verification import VerificationResult
from app.services.notifications import disaster_room
from app.services.official_updates import OfficialUpdates, UpdateSource
from app.services.social_media import SocialMediaFeed, parse_keywords

router = APIRouter(prefix="/disasters", tags=["disasters"])


class VerifyImageRequest(BaseModel):
    image_url: str = Field(min_length=1, max_length=2048)
    description: str | None = Field(default=None, max_length=2000)


@router.get("/{disaster_id}/social-media", response_model=SocialMediaFeed)
async def get_social_media(
    disaster_id: str,
    monitor: Monitor,
    bus: Bus,
    keywords: str | None = None,
    limit: Annotated[int, Query(ge=1, le=100)] = 10,
) -> SocialMediaFeed:
    feed, from_cache = await monitor.get_feed(disaster_id, parse_keywords(keywords), limit)
    if not from_cache:
        await bus.broadcast(
            "social_media_updated",
            {
                "disaster_id": disaster_id,
                "reports": [r.model_dump() for r in feed.reports],
            },
            room=disaster_room(disaster_id),
        )
    return feed


@router.get("/{disaster_id}/official-updates", response_model=OfficialUpdates)
async def get_official_updates(
    disaster_id: str,
    updates: Updates,
    source: UpdateSource = UpdateSource.ALL,
) -> OfficialUpdates:
    return await updates.get_updates(disaster_id, source)


@router.post("/{disaster_id}/verify-image", response_model=VerificationResult)
async def verify_image(
    disaster_id: str,
    body: VerifyImageRequest,
    verifier: Verifier,
) -> VerificationResult:
    return await verifier.verify(disaster_id, body.image_url, body.description)
