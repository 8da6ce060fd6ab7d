"""Results returned by the external image providers."""

from dataclasses import dataclass


@dataclass(frozen=True)
class GeneratedImage:
    """Image produced by the generation provider.

    ``url`` is either an ephemeral https URL or a ``data:`` URI holding the
    base64-encoded image.
    """

    url: str
    generation_ms: float = 0.0


@dataclass(frozen=True)
class UploadedImage:
    """Image persisted in the object store."""

    image_id: str
    url: str


@dataclass(frozen=True)
class StoredImage:
    """What the generation gateway hands back to the tier resolver.

    Attributes:
        url: Stable URL, or the ephemeral URL when ``degraded``
        image_id: Object store id ("" when degraded)
        degraded: True if the upload failed and the fallback URL is used
    """

    url: str
    image_id: str
    degraded: bool = False
