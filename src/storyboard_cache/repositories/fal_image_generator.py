"""fal.ai-based image generator.

Calls the synchronous fal.ai REST endpoint (``https://fal.run/<model>``)
for the FLUX schnell model. Every prompt is suffixed with the storyboard
house style so all tiers render in the same look.

Requirements:
    - ``FAL_KEY`` set in the environment

Key features:
- Single-shot, no retries (the caller decides what to do on failure)
- Tier-specific inference steps through ``QualityConfig``
- Async client shared across requests
"""

import time

import httpx
import structlog

from storyboard_cache.config import Settings, settings
from storyboard_cache.entities import GeneratedImage, QualityConfig
from storyboard_cache.errors import ProviderError

logger = structlog.get_logger(__name__)

STORYBOARD_STYLE = (
    '{"style_name": "DigitalStoryboard_Teal", '
    '"medium": "digital sketch (tablet, pressure-sensitive pen)", '
    '"brush_stroke": "loose teal linework ~2 pt, variable opacity, minimal cross-hatching", '
    '"edges": "crisp teal rectangular panel borders; internal arrows & notes in lighter teal", '
    '"color_palette": {"primary": ["#70A0A0", "#406C6C"], "accents": ["#DF7425"], '
    '"complementary": ["#E0E0E0", "#BDBDBD", "#FFFFFF"]}, '
    '"detail_level": "low-medium on characters & key props, very low on background", '
    '"background": "plain white (no texture)", '
    '"lighting": "flat fill with sparse gray shadow blocks"}'
)


class FalImageGenerator:
    """fal.ai implementation of ImageGenerator protocol.

    This class satisfies the ImageGenerator protocol through structural
    typing - no explicit inheritance needed.

    Example:
        ```python
        generator = FalImageGenerator.create()
        image = await generator.generate("man walking", quality)
        print(image.url)  # https://fal.media/files/...
        ```
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        seed: int = 42,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the fal.ai generator.

        Args:
            api_key: fal.ai key. Defaults to settings.fal_key.
            model: Model path. Defaults to settings.fal_model.
            base_url: REST base URL. Defaults to settings.fal_base_url.
            timeout: Request timeout in seconds.
            seed: Fixed seed so regenerations of a prompt stay stable.
            http_client: Client to reuse instead of a lazily created one.
        """
        self._api_key = api_key or settings.fal_key
        self._model = model or settings.fal_model
        self._base_url = base_url or settings.fal_base_url
        self._timeout = timeout or settings.generation_timeout
        self._seed = seed
        self._client: httpx.AsyncClient | None = http_client

    @classmethod
    def create(cls, config: Settings | None = None) -> "FalImageGenerator":
        """Factory method to create FalImageGenerator from settings."""
        config = config or settings
        return cls(
            api_key=config.fal_key,
            model=config.fal_model,
            base_url=config.fal_base_url,
            timeout=config.generation_timeout,
        )

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy-load the async HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def generate(self, prompt: str, quality: QualityConfig) -> GeneratedImage:
        """Generate a storyboard frame for a prompt.

        Raises:
            ProviderError: If the key is missing, the request fails or the
                response has no image
        """
        if not self._api_key:
            raise ProviderError("fal", "FAL_KEY is not configured")

        payload = {
            "prompt": f"{prompt} {STORYBOARD_STYLE}",
            "image_size": quality.image_size,
            "num_inference_steps": quality.inference_steps,
            "enable_safety_checker": True,
            "num_images": 1,
            "seed": self._seed,
        }

        start_time = time.time()
        try:
            response = await self.client.post(
                f"{self._base_url}/{self._model}",
                json=payload,
                headers={"Authorization": f"Key {self._api_key}"},
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            raise ProviderError("fal", f"generation request failed: {e}") from e
        except ValueError as e:
            raise ProviderError("fal", f"invalid JSON response: {e}") from e

        generation_ms = (time.time() - start_time) * 1000

        if not isinstance(data, dict):
            raise ProviderError("fal", "unexpected response shape")
        images = data.get("images")
        first = images[0] if isinstance(images, list) and images else None
        url = first.get("url") if isinstance(first, dict) else None
        if not url:
            raise ProviderError("fal", "response contained no image")

        logger.info(
            "image_generated",
            tier=quality.tier.value,
            steps=quality.inference_steps,
            generation_ms=round(generation_ms, 1),
        )
        return GeneratedImage(url=url, generation_ms=generation_ms)

    async def close(self) -> None:
        """Close the async HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
