"""Delivery tiers and tier resolution results."""

from dataclasses import dataclass
from enum import Enum


class Tier(str, Enum):
    """Quality/latency class of a response, in priority order."""

    INSTANT = "instant"
    FAST = "fast"
    FINAL = "final"

    @property
    def priority(self) -> int:
        return _PRIORITY[self]

    @property
    def is_generation(self) -> bool:
        return self is not Tier.INSTANT


_PRIORITY = {Tier.INSTANT: 0, Tier.FAST: 1, Tier.FINAL: 2}


@dataclass(frozen=True)
class QualityConfig:
    """Image model settings for one generation tier."""

    tier: Tier
    inference_steps: int
    image_size: str


@dataclass(frozen=True)
class TierResult:
    """Outcome of resolving a request against the tiers.

    Attributes:
        url: Delivery URL of the image
        tier: The tier that answered
        confidence: [0, 1] confidence for this answer
        cached: True when no generation happened for this request
        semantic: True when the hit came from a paraphrase entry
        matched_prompt: Canonical prompt of the entry that answered
        degraded: True when the URL is an ephemeral fallback
        upgrade_scheduled: True when a better tier was queued in the background
    """

    url: str
    tier: Tier
    confidence: float
    cached: bool
    semantic: bool = False
    matched_prompt: str | None = None
    degraded: bool = False
    upgrade_scheduled: bool = False
