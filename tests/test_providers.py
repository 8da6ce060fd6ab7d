"""
Tests for the HTTP providers against canned responses.
"""

import httpx
import pytest

from storyboard_cache.entities import QualityConfig, Tier
from storyboard_cache.errors import ProviderError
from storyboard_cache.repositories import CloudflareImageUploader, FalImageGenerator

FINAL = QualityConfig(tier=Tier.FINAL, inference_steps=8, image_size="landscape_16_9")


def client_returning(body, status_code: int = 200) -> httpx.AsyncClient:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, json=body)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def fal(body, status_code: int = 200) -> FalImageGenerator:
    return FalImageGenerator(
        api_key="test-key",
        model="fal-ai/flux/schnell",
        base_url="https://fal.example",
        http_client=client_returning(body, status_code),
    )


def cloudflare(body) -> CloudflareImageUploader:
    return CloudflareImageUploader(
        account_id="acct",
        api_token="token",
        account_hash="hash",
        api_base="https://api.cloudflare.example/client/v4",
        http_client=client_returning(body),
    )


@pytest.mark.asyncio
async def test_fal_returns_first_image_url():
    generator = fal({"images": [{"url": "https://fal.media/files/frame.png"}]})

    image = await generator.generate("man walking", FINAL)

    assert image.url == "https://fal.media/files/frame.png"
    await generator.close()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [["not", "an", "object"], "just text", None, {"images": "frame.png"}, {"images": []}, {"images": [{}]}],
)
async def test_fal_unexpected_body_is_provider_error(body):
    generator = fal(body)

    with pytest.raises(ProviderError) as excinfo:
        await generator.generate("man walking", FINAL)

    assert excinfo.value.provider == "fal"
    await generator.close()


@pytest.mark.asyncio
async def test_fal_http_error_is_provider_error():
    generator = fal({"detail": "rate limited"}, status_code=429)

    with pytest.raises(ProviderError):
        await generator.generate("man walking", FINAL)
    await generator.close()


@pytest.mark.asyncio
async def test_cloudflare_returns_delivery_url():
    uploader = cloudflare({"success": True, "result": {"id": "abc123"}})

    uploaded = await uploader.upload("https://fal.media/files/frame.png")

    assert uploaded.image_id == "abc123"
    assert uploaded.url.endswith("/hash/abc123/public")
    await uploader.close()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [[1, 2], {"success": False, "errors": ["quota"]}, {"success": True}, {"success": True, "result": "abc"}],
)
async def test_cloudflare_unexpected_body_is_provider_error(body):
    uploader = cloudflare(body)

    with pytest.raises(ProviderError) as excinfo:
        await uploader.upload("https://fal.media/files/frame.png")

    assert excinfo.value.provider == "cloudflare"
    await uploader.close()
