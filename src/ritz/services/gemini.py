"""Gemini image generation client."""

import base64
import logging
from typing import List, Optional

import httpx

from ..config import config
from ..errors import ProviderFailedError, ProviderSubmitError
from .base import ImageGenerator, ReferenceImage
from .http import HttpProvider

logger = logging.getLogger(__name__)

API_BASE = "https://generativelanguage.googleapis.com/v1beta/models"
REFERENCE_PREFIX = (
    "Using these reference images for visual consistency "
    "(same style, same characters, same atmosphere), create: "
)


class GeminiImageGenerator(HttpProvider, ImageGenerator):
    """Image generator backed by Gemini ``generateContent``."""

    name = "gemini"
    timeout = 120.0

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(transport)
        self._api_key = api_key or config.gemini_api_key
        if not self._api_key:
            raise ValueError("Gemini API key not provided. Set GEMINI_API_KEY env var.")
        self.model = model or config.image_model

    def _build_body(
        self, prompt: str, reference_images: List[ReferenceImage], aspect_ratio: str
    ) -> dict:
        # Reference images first, then the text prompt
        parts: list[dict] = [
            {
                "inlineData": {
                    "mimeType": ref.mime_type,
                    "data": base64.b64encode(ref.data).decode("ascii"),
                }
            }
            for ref in reference_images
        ]
        prefix = REFERENCE_PREFIX if reference_images else ""
        parts.append({"text": prefix + prompt})

        return {
            "contents": [{"parts": parts}],
            "generationConfig": {
                "responseModalities": ["IMAGE", "TEXT"],
                "imageConfig": {"aspectRatio": aspect_ratio},
            },
        }

    async def generate(
        self,
        prompt: str,
        reference_images: List[ReferenceImage],
        aspect_ratio: str,
    ) -> bytes:
        logger.info(
            f"Generating image ({aspect_ratio}, {len(reference_images)} refs): {prompt[:60]}..."
        )
        data = await self._request_json(
            "POST",
            f"{API_BASE}/{self.model}:generateContent",
            error_cls=ProviderSubmitError,
            params={"key": self._api_key},
            json=self._build_body(prompt, reference_images, aspect_ratio),
        )

        candidates = data.get("candidates") or [{}]
        parts = (candidates[0].get("content") or {}).get("parts") or []
        for part in parts:
            inline = part.get("inlineData")
            if inline and inline.get("data"):
                return base64.b64decode(inline["data"])

        raise ProviderFailedError("no image returned", provider=self.name)
