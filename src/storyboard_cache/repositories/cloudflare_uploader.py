"""Cloudflare Images uploader.

Persists generated images so the cache can hand out stable delivery URLs
(``https://imagedelivery.net/<account hash>/<id>/public``) instead of the
generator's short-lived ones.
"""

import base64
import binascii

import httpx
import structlog

from storyboard_cache.config import Settings, settings
from storyboard_cache.entities import UploadedImage
from storyboard_cache.errors import ProviderError

logger = structlog.get_logger(__name__)

DELIVERY_BASE_URL = "https://imagedelivery.net"


class CloudflareImageUploader:
    """Cloudflare Images implementation of ImageUploader protocol.

    Remote images are handed to Cloudflare by URL; ``data:`` URIs are
    decoded and sent as a multipart file.
    """

    def __init__(
        self,
        account_id: str | None = None,
        api_token: str | None = None,
        account_hash: str | None = None,
        api_base: str | None = None,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._account_id = account_id or settings.cloudflare_account_id
        self._api_token = api_token or settings.cloudflare_api_token
        self._account_hash = account_hash or settings.cloudflare_image_account_hash
        self._api_base = api_base or settings.cloudflare_api_base
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = http_client

    @classmethod
    def create(cls, config: Settings | None = None) -> "CloudflareImageUploader":
        """Factory method to create CloudflareImageUploader from settings."""
        config = config or settings
        return cls(
            account_id=config.cloudflare_account_id,
            api_token=config.cloudflare_api_token,
            account_hash=config.cloudflare_image_account_hash,
            api_base=config.cloudflare_api_base,
        )

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy-load the async HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    def delivery_url(self, image_id: str) -> str:
        return f"{DELIVERY_BASE_URL}/{self._account_hash}/{image_id}/public"

    async def upload(self, image: str) -> UploadedImage:
        """Upload an image to Cloudflare Images.

        Raises:
            ProviderError: If credentials are missing or the upload fails
        """
        if not (self._account_id and self._api_token and self._account_hash):
            raise ProviderError("cloudflare", "Cloudflare Images credentials are not configured")

        url = f"{self._api_base}/accounts/{self._account_id}/images/v1"
        headers = {"Authorization": f"Bearer {self._api_token}"}

        try:
            if image.startswith("data:"):
                response = await self.client.post(
                    url, headers=headers, files={"file": ("frame.png", _decode_data_uri(image))}
                )
            else:
                response = await self.client.post(url, headers=headers, data={"url": image})
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            raise ProviderError("cloudflare", f"upload request failed: {e}") from e
        except ValueError as e:
            raise ProviderError("cloudflare", f"invalid upload response: {e}") from e

        if not isinstance(data, dict):
            raise ProviderError("cloudflare", "unexpected response shape")
        if not data.get("success"):
            raise ProviderError("cloudflare", f"upload unsuccessful: {data.get('errors')}")

        result = data.get("result")
        image_id = result.get("id") if isinstance(result, dict) else None
        if not image_id:
            raise ProviderError("cloudflare", "response contained no image id")
        logger.info("image_uploaded", image_id=image_id)
        return UploadedImage(image_id=image_id, url=self.delivery_url(image_id))

    async def close(self) -> None:
        """Close the async HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None


def _decode_data_uri(uri: str) -> bytes:
    try:
        _, encoded = uri.split(",", 1)
        return base64.b64decode(encoded)
    except (ValueError, binascii.Error) as e:
        raise ProviderError("cloudflare", f"invalid data URI: {e}") from e
