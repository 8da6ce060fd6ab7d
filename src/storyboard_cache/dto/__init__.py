"""Data Transfer Objects for API contracts.

These Pydantic models define the external API contract.
They are used for request/response validation and serialization.

Internal domain logic should use entities from the entities package.
"""

from .requests import (
    BackgroundUpgradeRequest,
    CacheDeleteRequest,
    GenerateRequest,
    InstantLookupRequest,
    PredictionTrackRequest,
    SemanticCheckRequest,
    SessionTrackRequest,
    TypingPredictionRequest,
    TypingTrackRequest,
)
from .responses import (
    BackgroundUpgradeResponse,
    CacheBrowseItem,
    CacheBrowseResponse,
    CacheDeleteResponse,
    CacheStatsResponse,
    ClusterAnalysisItem,
    ClusterAnalysisResponse,
    ErrorResponse,
    GenerateResponse,
    HealthCheckResponse,
    InstantLookupResponse,
    SemanticCheckResponse,
    TrackResponse,
    TypingPredictionResponse,
    UserAnalyticsItem,
    UserAnalyticsResponse,
)

__all__ = [
    # Requests
    "BackgroundUpgradeRequest",
    "CacheDeleteRequest",
    "GenerateRequest",
    "InstantLookupRequest",
    "PredictionTrackRequest",
    "SemanticCheckRequest",
    "SessionTrackRequest",
    "TypingPredictionRequest",
    "TypingTrackRequest",
    # Responses
    "BackgroundUpgradeResponse",
    "CacheBrowseItem",
    "CacheBrowseResponse",
    "CacheDeleteResponse",
    "CacheStatsResponse",
    "ClusterAnalysisItem",
    "ClusterAnalysisResponse",
    "ErrorResponse",
    "GenerateResponse",
    "HealthCheckResponse",
    "InstantLookupResponse",
    "SemanticCheckResponse",
    "TrackResponse",
    "TypingPredictionResponse",
    "UserAnalyticsItem",
    "UserAnalyticsResponse",
]
