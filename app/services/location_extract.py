"""Location extraction: pull the most specific place name out of free text."""

from __future__ import annotations

import logging

from litellm import acompletion

from app.core.cache import ExpiringKeyValueCache
from app.core.config import Settings, get_settings
from app.services.cache_keys import location_extract_key

logger = logging.getLogger(__name__)

LOCATION_EXTRACT_TTL_MINUTES = 60
NO_LOCATION = "NONE"

EXTRACT_PROMPT = (
    "Extract the most specific location name from this disaster description. "
    'Return only the location name (e.g., "Manhattan, NYC" or "Houston, Texas"). '
    f'If no specific location is found, return "{NO_LOCATION}".\n\n'
    "Description: {text}"
)


class LocationExtractionError(Exception):
    """The LLM could not be reached or returned an unusable answer."""


class LocationExtractor:
    def __init__(
        self,
        cache: ExpiringKeyValueCache,
        settings: Settings | None = None,
    ) -> None:
        self.cache = cache
        self.settings = settings or get_settings()

    async def extract(self, text: str) -> str | None:
        """Return a location name, or None when the text names no place.

        Raises:
            LocationExtractionError: on LLM failure.
        """
        key = location_extract_key(text)
        cached = await self.cache.get(key)
        if cached is not None:
            return cached

        kwargs: dict = {
            "model": self.settings.text_llm_model,
            "messages": [{"role": "user", "content": EXTRACT_PROMPT.format(text=text)}],
            "temperature": 0,
        }
        if self.settings.gemini_api_key:
            kwargs["api_key"] = self.settings.gemini_api_key

        try:
            response = await acompletion(**kwargs)
            answer = (response.choices[0].message.content or "").strip().strip('"')
        except Exception as exc:
            logger.exception("Location extraction failed")
            raise LocationExtractionError("Failed to extract location from text") from exc

        if not answer or answer.upper() == NO_LOCATION:
            return None

        await self.cache.set(key, answer, LOCATION_EXTRACT_TTL_MINUTES)
        return answer
