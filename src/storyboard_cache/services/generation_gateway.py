"""Generation gateway: image model + persistent upload.

Thin pass-through over the two providers that turns a prompt into a
stable image URL.
"""

import time

import structlog

from storyboard_cache.config import Settings, settings
from storyboard_cache.entities import QualityConfig, StoredImage, Tier
from storyboard_cache.errors import ProviderError
from storyboard_cache.protocols import ImageGenerator, ImageUploader
from storyboard_cache.utils import preview

logger = structlog.get_logger(__name__)


class GenerationGateway:
    """Generate an image and persist it.

    When the upload fails the ephemeral generation URL is returned flagged
    ``degraded`` rather than failing the request; the caller decides how
    long to trust it.
    """

    def __init__(
        self,
        generator: ImageGenerator,
        uploader: ImageUploader,
        config: Settings | None = None,
    ) -> None:
        self._generator = generator
        self._uploader = uploader
        self._config = config or settings

    def quality_for(self, tier: Tier) -> QualityConfig:
        """Model settings for a generation tier."""
        if tier is Tier.FAST:
            steps = self._config.fast_inference_steps
        elif tier is Tier.FINAL:
            steps = self._config.final_inference_steps
        else:
            raise ValueError("the instant tier never generates")
        return QualityConfig(tier=tier, inference_steps=steps, image_size=self._config.image_size)

    async def generate(self, prompt: str, tier: Tier) -> StoredImage:
        """Generate and persist an image for a prompt.

        Args:
            prompt: Prompt text as submitted
            tier: FAST or FINAL

        Returns:
            StoredImage with the stable (or degraded fallback) URL

        Raises:
            ProviderError: If image generation fails
        """
        start_time = time.time()
        image = await self._generator.generate(prompt, self.quality_for(tier))

        try:
            uploaded = await self._uploader.upload(image.url)
        except ProviderError as e:
            logger.warning(
                "upload_failed_using_ephemeral_url",
                prompt=preview(prompt),
                tier=tier.value,
                error=str(e),
            )
            if image.url.startswith("data:"):
                # a data URI is not deliverable to clients
                raise
            return StoredImage(url=image.url, image_id="", degraded=True)

        logger.info(
            "image_persisted",
            prompt=preview(prompt),
            tier=tier.value,
            image_id=uploaded.image_id,
            total_ms=round((time.time() - start_time) * 1000, 1),
        )
        return StoredImage(url=uploaded.url, image_id=uploaded.image_id)
