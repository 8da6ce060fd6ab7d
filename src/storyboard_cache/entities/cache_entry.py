"""Cache entry domain entity."""

from dataclasses import dataclass
from datetime import datetime

from .tier import Tier

CACHE_ENTRY_SCHEMA_VERSION = 1


@dataclass(frozen=True)
class CacheEntryEntity:
    """Domain entity for a cached prompt-to-image mapping.

    The entity's identity is the normalized key it is stored under, which
    is not a field: a canonical entry and all of its paraphrase entries share
    the same ``original_prompt``, ``semantic_cluster`` and image.

    Attributes:
        original_prompt: The canonical (non-variation) prompt text
        persistent_url: Stable delivery URL of the generated image
        provider_image_id: Identifier in the persistent object store
        timestamp: When this entry was created
        is_semantic_variation: True if stored under a paraphrase key
        semantic_cluster: Normalized canonical prompt shared by the cluster
        quality_score: Confidence associated with a hit on this entry
        tier: Tier that produced the image (canonical entries only)
        variation_index: Position of the paraphrase in the model's answer
        degraded: True when the URL is the ephemeral generation URL
        schema_version: Record layout version
    """

    original_prompt: str
    persistent_url: str
    provider_image_id: str
    timestamp: datetime
    is_semantic_variation: bool = False
    semantic_cluster: str = ""
    quality_score: float | None = None
    tier: Tier | None = None
    variation_index: int | None = None
    degraded: bool = False
    schema_version: int = CACHE_ENTRY_SCHEMA_VERSION

    @property
    def confidence(self) -> float:
        """Confidence that a hit on this entry matches the user's intent."""
        if self.quality_score is not None:
            return self.quality_score
        return 1.0 if not self.is_semantic_variation else 0.0
