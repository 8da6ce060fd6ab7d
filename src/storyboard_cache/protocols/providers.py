"""External provider protocols.

The image model, the persistent object store and the paraphrase/completion
language model are black boxes with narrow contracts. Implementations raise
``ProviderError`` on any failure; none of them retries.
"""

from typing import Protocol, runtime_checkable

from storyboard_cache.entities import GeneratedImage, QualityConfig, UploadedImage


@runtime_checkable
class ImageGenerator(Protocol):
    """Protocol for image generation services."""

    async def generate(self, prompt: str, quality: QualityConfig) -> GeneratedImage:
        """Generate one image for a prompt.

        Args:
            prompt: The prompt text (style suffix is the implementation's concern)
            quality: Tier-specific model settings

        Returns:
            The generated image (ephemeral URL or data URI)
        """
        ...


@runtime_checkable
class ImageUploader(Protocol):
    """Protocol for persistent image storage."""

    async def upload(self, image: str) -> UploadedImage:
        """Persist an image.

        Args:
            image: Ephemeral https URL or base64 ``data:`` URI

        Returns:
            Object id and stable delivery URL
        """
        ...


@runtime_checkable
class LanguageModel(Protocol):
    """Protocol for the paraphrase/completion language model.

    The returned text is expected, but never guaranteed, to contain a JSON
    array. Callers must parse defensively.
    """

    @property
    def model_name(self) -> str:
        ...

    async def complete(
        self,
        prompt: str,
        temperature: float = 0.2,
        max_output_tokens: int = 200,
    ) -> str:
        """Complete a prompt.

        Args:
            prompt: Instruction text
            temperature: Sampling temperature
            max_output_tokens: Output token cap

        Returns:
            Free-form model output
        """
        ...
