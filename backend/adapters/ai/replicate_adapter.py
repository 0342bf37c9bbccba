"""
Replicate adapter for AI book cover generation using Ideogram V3 Turbo.
"""

import asyncio
import logging
import random
from dataclasses import dataclass

import replicate

from infrastructure.config.settings import settings

logger = logging.getLogger(__name__)

# Substrings that mark an upstream error as worth retrying
_TRANSIENT_MARKERS = (
    "rate_limit",
    "429",
    "500",
    "502",
    "503",
    "504",
    "overloaded",
    "connection",
    "timeout",
)


async def _retry_with_backoff(coro_factory, max_retries=2, base_delay=1.0):
    """Retry an async operation with exponential backoff + jitter."""
    for attempt in range(max_retries + 1):
        try:
            return await coro_factory()
        except Exception as e:
            error_str = str(e).lower()
            is_transient = any(k in error_str for k in _TRANSIENT_MARKERS)
            if not is_transient or attempt == max_retries:
                raise
            delay = base_delay * (2**attempt) + random.uniform(0, 1)
            logger.warning(
                "Transient API error (attempt %d/%d), retrying in %.1fs: %s",
                attempt + 1,
                max_retries,
                delay,
                str(e),
            )
            await asyncio.sleep(delay)


@dataclass
class GeneratedImage:
    """Generated image result."""

    url: str
    prompt: str
    width: int
    height: int
    model: str
    style: str | None = None


# Ideogram native parameters for the cover style families we expose.
# Free-text styles fall through to the prompt only.
STYLE_CONFIG = {
    "professional and clean": {"style_type": "Design"},
    "artistic and creative": {"style_type": "General"},
    "bold and dramatic": {"style_type": "Realistic"},
    "elegant and sophisticated": {"style_type": "General", "style_preset": "Art Deco"},
    "modern and minimalist": {"style_type": "Design"},
    "photographic": {"style_type": "Realistic", "style_preset": "Photography"},
    "watercolor": {"style_type": "General", "style_preset": "Watercolor"},
    "vintage": {"style_type": "General", "style_preset": "Vintage"},
}

_ASPECT_RATIOS = {
    "1:1": 1.0,
    "2:3": 2 / 3,
    "3:4": 3 / 4,
    "9:16": 9 / 16,
    "16:9": 16 / 9,
}


def aspect_ratio_for(width: int, height: int) -> str:
    """Closest Ideogram aspect ratio for the requested dimensions."""
    ratio = width / height
    return min(_ASPECT_RATIOS, key=lambda k: abs(_ASPECT_RATIOS[k] - ratio))


class ReplicateCoverService:
    """Cover image generation via Replicate; mock mode without an API token."""

    def __init__(self, api_token: str | None = None, model: str | None = None):
        self._model = model or settings.replicate_model
        token = api_token or settings.replicate_api_token
        if not token:
            logger.warning("REPLICATE_API_TOKEN not set, cover generation will use mock mode")
            self._client = None
        else:
            self._client = replicate.Client(api_token=token)
            logger.info("Replicate client initialized with model: %s", self._model)

    @property
    def model(self) -> str:
        return self._model

    async def generate_image(
        self,
        prompt: str,
        width: int = 1024,
        height: int = 1024,
        style: str | None = None,
    ) -> GeneratedImage:
        """
        Generate one cover image.

        Args:
            prompt: Fully assembled cover prompt
            width: Image width in pixels
            height: Image height in pixels
            style: Style key; known keys map onto Ideogram parameters

        Returns:
            GeneratedImage with the provider URL and metadata

        Raises:
            Exception: Whatever the provider raised after retries are exhausted.
        """
        if not self._client:
            return self._mock_image(prompt, width, height, style)

        style_cfg = STYLE_CONFIG.get(style.lower() if style else "", {})
        output = await _retry_with_backoff(
            lambda: asyncio.wait_for(
                asyncio.to_thread(self._run_model, prompt, width, height, style_cfg),
                timeout=settings.cover_generation_timeout,
            )
        )

        # Replicate returns a URL string, a list of URLs, or a FileOutput
        if isinstance(output, list) and output:
            image_url = str(output[0])
        elif hasattr(output, "url"):
            image_url = output.url
        else:
            image_url = str(output)

        logger.info("Generated cover URL: %s", image_url)
        return GeneratedImage(
            url=image_url,
            prompt=prompt,
            width=width,
            height=height,
            model=self._model,
            style=style,
        )

    def _run_model(self, prompt: str, width: int, height: int, style_cfg: dict):
        """Run the Replicate model synchronously (called in a worker thread)."""
        input_params = {
            "prompt": prompt,
            "aspect_ratio": aspect_ratio_for(width, height),
        }
        if style_cfg.get("style_type"):
            input_params["style_type"] = style_cfg["style_type"]
        if style_cfg.get("style_preset"):
            input_params["style_preset"] = style_cfg["style_preset"]

        return self._client.run(self._model, input=input_params)

    def _mock_image(
        self,
        prompt: str,
        width: int,
        height: int,
        style: str | None = None,
    ) -> GeneratedImage:
        """Placeholder cover for development."""
        return GeneratedImage(
            url=f"https://picsum.photos/{width}/{height}",
            prompt=prompt,
            width=width,
            height=height,
            model=self._model,
            style=style,
        )


# Singleton instance
cover_ai_service = ReplicateCoverService()
