"""Social media monitoring for a disaster.

Platform APIs are not wired up; a fixed sample feed stands in for them.
Feeds are cached for 15 minutes because chatter changes quickly.
"""

from __future__ import annotations

import logging
from datetime import timedelta

from pydantic import BaseModel

from app.core.cache import ExpiringKeyValueCache
from app.models.base import utcnow
from app.services.cache_keys import social_media_key

logger = logging.getLogger(__name__)

SOCIAL_MEDIA_TTL_MINUTES = 15


class Engagement(BaseModel):
    likes: int = 0
    retweets: int = 0
    replies: int = 0


class SocialMediaReport(BaseModel):
    id: str
    platform: str
    username: str
    content: str
    timestamp: str
    urgency: str  # "critical", "high", "medium", "low"
    location: str
    verified: bool
    engagement: Engagement


class FeedSummary(BaseModel):
    total: int
    critical: int
    high: int
    medium: int
    verified: int


class SocialMediaFeed(BaseModel):
    disaster_id: str
    reports: list[SocialMediaReport]
    summary: FeedSummary
    last_updated: str


# (id, platform, username, content, minutes ago, urgency, location, verified, engagement)
_SAMPLE_POSTS = [
    ("1", "twitter", "citizen1",
     "#floodrelief Need food and water in Lower East Side Manhattan. "
     "Family of 4 trapped on 3rd floor.",
     30, "high", "Lower East Side, Manhattan", False, (45, 23, 12)),
    ("2", "twitter", "relief_worker",
     "Setting up temporary shelter at Brooklyn Community Center. "
     "Can accommodate 50 families. #disasterrelief",
     45, "medium", "Brooklyn, NYC", True, (78, 56, 8)),
    ("3", "bluesky", "emergency_nyc",
     "URGENT: Road closures on FDR Drive due to flooding. Seek alternate routes. "
     "Emergency vehicles only.",
     15, "high", "FDR Drive, NYC", True, (234, 189, 45)),
    ("4", "twitter", "volunteer_help",
     "Volunteers needed at Red Cross station. Bring boats if possible. "
     "Contact @redcross_nyc #volunteer",
     60, "medium", "Manhattan, NYC", False, (156, 89, 34)),
    ("5", "twitter", "sos_help",
     "SOS! Elderly couple stuck in basement apartment. Water rising fast. "
     "Address: 45 Delancey St. HELP!",
     10, "critical", "45 Delancey St, NYC", False, (267, 445, 78)),
]


def parse_keywords(raw: str | None) -> list[str]:
    """Split a comma-separated keyword query into lowercase terms."""
    if not raw:
        return []
    return [k.strip().lower() for k in raw.split(",") if k.strip()]


def sample_reports() -> list[SocialMediaReport]:
    now = utcnow()
    return [
        SocialMediaReport(
            id=post_id,
            platform=platform,
            username=username,
            content=content,
            timestamp=(now - timedelta(minutes=minutes_ago)).isoformat(),
            urgency=urgency,
            location=location,
            verified=verified,
            engagement=Engagement(likes=likes, retweets=retweets, replies=replies),
        )
        for (post_id, platform, username, content, minutes_ago, urgency,
             location, verified, (likes, retweets, replies)) in _SAMPLE_POSTS
    ]


def filter_reports(
    reports: list[SocialMediaReport], keywords: list[str], limit: int
) -> list[SocialMediaReport]:
    """Keep reports whose content or location mentions any keyword."""
    if keywords:
        reports = [
            r for r in reports
            if any(k in r.content.lower() or k in r.location.lower() for k in keywords)
        ]
    return reports[:limit]


def summarize(reports: list[SocialMediaReport]) -> FeedSummary:
    return FeedSummary(
        total=len(reports),
        critical=sum(1 for r in reports if r.urgency == "critical"),
        high=sum(1 for r in reports if r.urgency == "high"),
        medium=sum(1 for r in reports if r.urgency == "medium"),
        verified=sum(1 for r in reports if r.verified),
    )


class SocialMediaMonitor:
    def __init__(self, cache: ExpiringKeyValueCache) -> None:
        self.cache = cache

    async def get_feed(
        self, disaster_id: str, keywords: list[str], limit: int
    ) -> tuple[SocialMediaFeed, bool]:
        """Return ``(feed, from_cache)`` for a disaster."""
        key = social_media_key(disaster_id, keywords, limit)
        cached = await self.cache.get(key)
        if cached is not None:
            return SocialMediaFeed.model_validate(cached), True

        reports = filter_reports(await self._fetch(keywords), keywords, limit)
        feed = SocialMediaFeed(
            disaster_id=disaster_id,
            reports=reports,
            summary=summarize(reports),
            last_updated=utcnow().isoformat(),
        )
        await self.cache.set(key, feed.model_dump(), SOCIAL_MEDIA_TTL_MINUTES)
        logger.info(
            "Social media reports fetched for disaster %s: %d reports",
            disaster_id, len(reports),
        )
        return feed, False

    async def _fetch(self, keywords: list[str]) -> list[SocialMediaReport]:
        # Static sample feed; no live platform search is wired in.
        return sample_reports()
