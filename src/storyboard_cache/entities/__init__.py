"""Domain entities for internal representation.

These are plain dataclasses used internally by services and repositories.
They are NOT used for API contracts - use DTOs from the dto package for
that. Serialization to stored records lives in ``repositories.records``.
"""

from .analytics import BehaviorInsight, UserAnalytics
from .cache_entry import CACHE_ENTRY_SCHEMA_VERSION, CacheEntryEntity
from .cluster import (
    ClusterAnalysis,
    ClusterGroup,
    ClusterStats,
    DuplicateGroup,
    OptimizationRecommendations,
)
from .generation import GeneratedImage, StoredImage, UploadedImage
from .metrics import TierMetrics
from .prediction import PredictionResult
from .session import SESSION_SCHEMA_VERSION, PredictionEvent, SessionEntity, TypingEvent
from .tier import QualityConfig, Tier, TierResult

__all__ = [
    "BehaviorInsight",
    "CACHE_ENTRY_SCHEMA_VERSION",
    "CacheEntryEntity",
    "ClusterAnalysis",
    "ClusterGroup",
    "ClusterStats",
    "DuplicateGroup",
    "GeneratedImage",
    "OptimizationRecommendations",
    "PredictionEvent",
    "PredictionResult",
    "QualityConfig",
    "SESSION_SCHEMA_VERSION",
    "SessionEntity",
    "StoredImage",
    "Tier",
    "TierMetrics",
    "TierResult",
    "TypingEvent",
    "UploadedImage",
    "UserAnalytics",
]
