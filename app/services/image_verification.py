"""Image verification — LLM vision check for manipulation and disaster evidence.

Verdicts are cached per image URL for 24 hours. When the model is
unavailable a fallback verdict is returned and nothing is cached, so the
next request retries the model.
"""

from __future__ import annotations

import json
import logging
import re

from litellm import acompletion
from pydantic import BaseModel, Field

from app.core.cache import ExpiringKeyValueCache
from app.core.config import Settings, get_settings
from app.models.base import utcnow
from app.services.cache_keys import image_verify_key

logger = logging.getLogger(__name__)

IMAGE_VERIFY_TTL_MINUTES = 1440

VERIFY_PROMPT = """Analyze this image for signs of disaster-related content and potential manipulation.

Please evaluate:
1. Is this image authentic or potentially manipulated/deepfaked?
2. Does it show evidence of a disaster (flooding, fire, earthquake damage, etc.)?
3. Are there any inconsistencies in lighting, shadows, or digital artifacts?
4. Rate the authenticity on a scale of 1-10 (10 being completely authentic)

Context: {context}

Respond only with JSON:
{{
  "authentic": boolean,
  "confidence": number (0-1),
  "disaster_evidence": boolean,
  "disaster_type": string or null,
  "manipulation_signs": string[],
  "authenticity_score": number (1-10),
  "analysis": string
}}"""

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


class Verification(BaseModel):
    authentic: bool | None = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    disaster_evidence: bool | None = None
    disaster_type: str | None = None
    manipulation_signs: list[str] = Field(default_factory=list)
    authenticity_score: float | None = None
    analysis: str = ""


class VerificationResult(BaseModel):
    image_url: str
    disaster_id: str
    verification: Verification
    verified_at: str
    verified_by: str
    error: str | None = None


class ImageVerifier:
    def __init__(
        self,
        cache: ExpiringKeyValueCache,
        settings: Settings | None = None,
    ) -> None:
        self.cache = cache
        self.settings = settings or get_settings()

    async def verify(
        self, disaster_id: str, image_url: str, description: str | None = None
    ) -> VerificationResult:
        key = image_verify_key(image_url)
        cached = await self.cache.get(key)
        if cached is not None:
            result = VerificationResult.model_validate(cached)
            # the verdict is per image; report it under the requesting disaster
            return result.model_copy(update={"disaster_id": disaster_id})

        try:
            raw = await self._ask_model(image_url, description)
        except Exception:
            logger.exception("Image verification model failed for %s", image_url)
            return VerificationResult(
                image_url=image_url,
                disaster_id=disaster_id,
                verification=Verification(
                    manipulation_signs=["AI verification unavailable"],
                    analysis="Unable to analyze image due to AI service error",
                ),
                verified_at=utcnow().isoformat(),
                verified_by="fallback",
                error="AI verification service unavailable",
            )

        result = VerificationResult(
            image_url=image_url,
            disaster_id=disaster_id,
            verification=parse_verification(raw),
            verified_at=utcnow().isoformat(),
            verified_by=self.settings.vision_llm_model,
        )
        await self.cache.set(key, result.model_dump(), IMAGE_VERIFY_TTL_MINUTES)
        logger.info(
            "Image verification for disaster %s: %s",
            disaster_id,
            "AUTHENTIC" if result.verification.authentic else "SUSPICIOUS",
        )
        return result

    async def _ask_model(self, image_url: str, description: str | None) -> str:
        prompt = VERIFY_PROMPT.format(
            context=description or "No additional context provided"
        )
        kwargs: dict = {
            "model": self.settings.vision_llm_model,
            "messages": [{
                "role": "user",
                "content": [
                    {"type": "text", "text": prompt},
                    {"type": "image_url", "image_url": {"url": image_url}},
                ],
            }],
            "temperature": 0,
        }
        if self.settings.gemini_api_key:
            kwargs["api_key"] = self.settings.gemini_api_key

        response = await acompletion(**kwargs)
        return response.choices[0].message.content or ""


def parse_verification(raw: str) -> Verification:
    """Parse the model's JSON answer; non-JSON answers yield a neutral verdict."""
    text = _FENCE_RE.sub("", raw.strip())
    try:
        return Verification.model_validate(json.loads(text))
    except ValueError:
        # json.JSONDecodeError and pydantic.ValidationError are both ValueErrors
        return Verification(
            authentic=False,
            confidence=0.5,
            disaster_evidence=False,
            manipulation_signs=["Unable to parse AI response"],
            authenticity_score=5,
            analysis=raw,
        )
