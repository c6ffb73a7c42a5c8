"""Cache key builders. Single place for every caller's key format.

A key is ``<namespace>_<encoded argument>[_<encoded argument>...]``.
Place names are url-safe base64 encoded so keys stay readable when
decoded; unbounded free text (and overlong names) is reduced to a SHA-256
digest so keys fit the ``cache.key`` column.
"""

import base64
import hashlib

GEOCODE = "geocode"
LOCATION_EXTRACT = "location_extract"
SOCIAL_MEDIA = "social_media"
OFFICIAL_UPDATES = "official_updates"
IMAGE_VERIFY = "image_verify"

MAX_ENCODED_LENGTH = 256


def _encode(text: str) -> str:
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii").rstrip("=")


def _digest(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def geocode_key(location_name: str) -> str:
    """Key for coordinates of a normalized place name."""
    name = location_name.strip().lower()
    encoded = _encode(name)
    if len(encoded) > MAX_ENCODED_LENGTH:
        encoded = _digest(name)
    return f"{GEOCODE}_{encoded}"


def location_extract_key(text: str) -> str:
    return f"{LOCATION_EXTRACT}_{_digest(text)}"


def social_media_key(disaster_id: str, keywords: list[str], limit: int) -> str:
    """Key for one disaster's feed; keyword order does not matter."""
    kw = ",".join(sorted(keywords)) if keywords else "all"
    return f"{SOCIAL_MEDIA}_{_digest(disaster_id)}_{_digest(kw)}_{limit}"


def official_updates_key(disaster_id: str, source: str) -> str:
    return f"{OFFICIAL_UPDATES}_{_digest(disaster_id)}_{source}"


def image_verify_key(image_url: str) -> str:
    return f"{IMAGE_VERIFY}_{_digest(image_url)}"
