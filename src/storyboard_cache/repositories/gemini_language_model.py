"""Gemini-based language model.

Uses the Gemini ``generateContent`` REST API for paraphrase generation,
prompt completion and duplicate detection. The model is asked for JSON but
its answer is returned verbatim; parsing is the caller's job.

Requirements:
    - ``GEMINI_API_KEY`` set in the environment
"""

import httpx
import structlog

from storyboard_cache.config import Settings, settings
from storyboard_cache.errors import ProviderError

logger = structlog.get_logger(__name__)


class GeminiLanguageModel:
    """Gemini implementation of LanguageModel protocol.

    This class satisfies the LanguageModel protocol through structural
    typing - no explicit inheritance needed.

    Example:
        ```python
        llm = GeminiLanguageModel.create()
        text = await llm.complete('Return ["a", "b"]')
        ```
    """

    def __init__(
        self,
        api_key: str | None = None,
        model_name: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
    ) -> None:
        """Initialize the Gemini client.

        Args:
            api_key: Gemini API key. Defaults to settings.gemini_api_key.
            model_name: Model id. Defaults to settings.gemini_model.
            base_url: API base URL. Defaults to settings.gemini_base_url.
            timeout: Request timeout in seconds.
        """
        self._api_key = api_key or settings.gemini_api_key
        self._model_name = model_name or settings.gemini_model
        self._base_url = base_url or settings.gemini_base_url
        self._timeout = timeout or settings.llm_timeout
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def create(cls, config: Settings | None = None) -> "GeminiLanguageModel":
        """Factory method to create GeminiLanguageModel from settings."""
        config = config or settings
        return cls(
            api_key=config.gemini_api_key,
            model_name=config.gemini_model,
            base_url=config.gemini_base_url,
            timeout=config.llm_timeout,
        )

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy-load the async HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
            )
        return self._client

    @property
    def model_name(self) -> str:
        """Get the model name/identifier."""
        return self._model_name

    async def complete(
        self,
        prompt: str,
        temperature: float = 0.2,
        max_output_tokens: int = 200,
    ) -> str:
        """Generate text for a prompt.

        Raises:
            ProviderError: If the key is missing, the request fails or the
                response carries no text
        """
        if not self._api_key:
            raise ProviderError("gemini", "GEMINI_API_KEY is not configured")

        url = f"{self._base_url}/models/{self._model_name}:generateContent"
        payload = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": temperature,
                "maxOutputTokens": max_output_tokens,
                "topP": 0.8,
            },
        }

        try:
            response = await self.client.post(url, params={"key": self._api_key}, json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            # never log the URL: it carries the API key
            raise ProviderError("gemini", f"request failed: {type(e).__name__}") from e
        except ValueError as e:
            raise ProviderError("gemini", f"invalid JSON response: {e}") from e

        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            text = None

        if not text:
            raise ProviderError("gemini", "empty response")
        return text

    async def close(self) -> None:
        """Close the async HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
