"""Response DTOs for API endpoints.

Every response carries the ``request_id`` of the request that produced it.
"""

from typing import Any

from pydantic import BaseModel, Field

from storyboard_cache.entities import Tier


class ErrorResponse(BaseModel):
    """Envelope for every failed request (400 / 404 / 500)."""

    success: bool = Field(False, description="Always false")
    error: str = Field(..., description="Human-readable error, no internal detail")
    request_id: str = Field(..., description="Request correlation id")


class InstantLookupResponse(BaseModel):
    """Response DTO for cache-only lookup."""

    success: bool = Field(..., description="Whether a cached image was found")
    url: str | None = Field(None, description="Image URL when found")
    tier: Tier = Field(Tier.INSTANT, description="Always 'instant'")
    confidence: float = Field(0.0, description="Confidence of the match (0-1)", ge=0.0, le=1.0)
    reason: str = Field(..., description="Why the lookup hit or missed")
    semantic: bool = Field(False, description="Whether the match is a paraphrase entry")
    matched_prompt: str | None = Field(None, description="Canonical prompt of the matched cluster")
    request_id: str = Field(..., description="Request correlation id")


class GenerateResponse(BaseModel):
    """Response DTO for multi-tier generation.

    ``success`` is false only when just the instant tier was requested and
    it missed; generation failures use the error envelope instead.
    """

    success: bool = Field(..., description="Whether an image is returned")
    url: str | None = Field(None, description="Image URL")
    tier: Tier = Field(..., description="Tier that answered")
    confidence: float = Field(0.0, description="Confidence of the answer (0-1)", ge=0.0, le=1.0)
    cached: bool = Field(..., description="Whether the answer came from the cache")
    semantic: bool = Field(False, description="Whether a paraphrase entry answered")
    degraded: bool = Field(False, description="URL is an ephemeral fallback, not persisted")
    upgrade_scheduled: bool = Field(False, description="A better tier is being generated in the background")
    request_id: str = Field(..., description="Request correlation id")


class BackgroundUpgradeResponse(BaseModel):
    """Response DTO for fire-and-forget generation."""

    success: bool = Field(..., description="Whether work was scheduled")
    message: str = Field(..., description="Human-readable status message")
    request_id: str = Field(..., description="Request correlation id")


class SemanticCheckResponse(BaseModel):
    """Response DTO for semantic check."""

    found: bool = Field(..., description="Whether the prompt is covered by the cache")
    url: str | None = Field(None, description="Image URL when found")
    confidence: float = Field(0.0, description="Confidence of the match (0-1)", ge=0.0, le=1.0)
    matched_prompt: str | None = Field(None, description="Canonical prompt of the matched cluster")
    request_id: str = Field(..., description="Request correlation id")


class TypingPredictionResponse(BaseModel):
    """Response DTO for typing prediction."""

    success: bool = Field(..., description="Always true; failures yield zero predictions")
    predictions: list[str] = Field(default_factory=list, description="Predicted completions")
    confidence: float = Field(0.0, description="Prediction confidence (0-1)", ge=0.0, le=1.0)
    warming: list[str] = Field(default_factory=list, description="Predictions queued for background generation")
    request_id: str = Field(..., description="Request correlation id")


class TrackResponse(BaseModel):
    """Response DTO for analytics tracking calls."""

    success: bool = Field(..., description="Whether the event was recorded")
    session_id: str | None = Field(None, description="Session the event was recorded under")
    request_id: str = Field(..., description="Request correlation id")


class ClusterGroupItem(BaseModel):
    id: str = Field(..., description="Cluster id (normalized canonical prompt)")
    original_prompt: str
    image_url: str
    variations: list[str] = Field(default_factory=list, description="Keys of paraphrase entries")
    size: int = Field(..., ge=0)
    efficiency: float = Field(..., description="Paraphrases per canonical entry", ge=0.0)


class DuplicateGroupItem(BaseModel):
    concepts: list[str]
    image_urls: list[str]
    recommended_merge: bool
    savings_estimate: int


class OptimizationItem(BaseModel):
    merge_groups: list[DuplicateGroupItem]
    cleanup_candidates: list[str]
    expansion_opportunities: list[str]
    total_savings_estimate: int


class ClusterStatsItem(BaseModel):
    total_clusters: int
    average_cluster_size: float
    efficiency: float
    storage_utilization: float
    duplicate_rate: float


class ClusterAnalysisItem(BaseModel):
    clusters: list[ClusterGroupItem]
    duplicates: list[DuplicateGroupItem]
    optimization: OptimizationItem
    stats: ClusterStatsItem


class ClusterAnalysisResponse(BaseModel):
    """Response DTO for cluster analysis."""

    success: bool = Field(..., description="Whether the analysis ran")
    analysis: ClusterAnalysisItem
    request_id: str = Field(..., description="Request correlation id")


class BehaviorInsightItem(BaseModel):
    pattern: str
    frequency: int
    confidence: float
    recommendation: str


class UserAnalyticsItem(BaseModel):
    total_sessions: int
    average_session_length: float
    common_patterns: list[str]
    prompt_frequency: dict[str, int]
    prediction_accuracy: float
    cache_hit_rate: float
    abandonment_rate: float
    improvement_opportunities: list[str]
    behavior_insights: list[BehaviorInsightItem]
    recommended_prediction_threshold: float | None = None


class UserAnalyticsResponse(BaseModel):
    """Response DTO for user analytics aggregation."""

    success: bool = Field(..., description="Whether the aggregation ran")
    analytics: UserAnalyticsItem
    request_id: str = Field(..., description="Request correlation id")


class CacheStatsResponse(BaseModel):
    """Response DTO for cache statistics."""

    success: bool = Field(True)
    total_entries: int = Field(..., description="Cache entries (canonical and paraphrase)", ge=0)
    variation_entries: int = Field(..., description="Paraphrase entries among the sampled entries", ge=0)
    sessions: int = Field(..., description="Live analytics sessions", ge=0)
    semantic_cache_enabled: bool = Field(..., description="Whether paraphrase expansion runs")
    expansion_count: int = Field(..., description="Paraphrases requested per generation", ge=0)
    prediction_threshold: float = Field(..., description="Warming threshold in effect", ge=0.0, le=1.0)
    metrics: dict[str, Any] = Field(default_factory=dict, description="In-process tier metrics")
    background: dict[str, int] = Field(default_factory=dict, description="Background task counters")
    request_id: str = Field(..., description="Request correlation id")


class CacheBrowseItem(BaseModel):
    key: str = Field(..., description="Normalized cache key")
    original_prompt: str
    url: str
    is_semantic_variation: bool
    semantic_cluster: str
    quality_score: float | None = None
    tier: Tier | None = None
    degraded: bool = False
    cached_at: float = Field(..., description="Unix timestamp of creation")


class CacheBrowseResponse(BaseModel):
    """Response DTO for browsing cache entries."""

    success: bool = Field(True)
    items: list[CacheBrowseItem] = Field(default_factory=list)
    offset: int = Field(..., ge=0)
    limit: int = Field(..., ge=1)
    total: int = Field(..., description="Keys matching the prefix", ge=0)
    request_id: str = Field(..., description="Request correlation id")


class CacheDeleteResponse(BaseModel):
    """Response DTO for deleting one entry or clearing the cache."""

    success: bool = Field(..., description="Whether anything was deleted")
    deleted_count: int = Field(..., ge=0)
    message: str
    request_id: str = Field(..., description="Request correlation id")


class HealthCheckResponse(BaseModel):
    """Response DTO for health check."""

    status: str = Field(..., description="Health status: 'healthy' or 'unhealthy'")
    cache_healthy: bool = Field(..., description="Whether the backing store is reachable")
    store_backend: str = Field(..., description="Backing store implementation")
    background_pending: int = Field(0, description="Background tasks still running", ge=0)
    request_id: str = Field(..., description="Request correlation id")
