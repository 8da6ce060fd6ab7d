"""Exception taxonomy shared by repositories, services and handlers."""


class StoryboardCacheError(Exception):
    """Base class for all service errors."""


class ProviderError(StoryboardCacheError):
    """An external provider (image model, uploader, language model) failed.

    Attributes:
        provider: Short provider label, e.g. "fal", "cloudflare", "gemini"
    """

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class ParseError(StoryboardCacheError):
    """Language model output could not be parsed as the expected JSON shape."""


class CacheUnavailable(StoryboardCacheError):
    """The backing key-value store could not be read or written."""
