"""HTTP handlers for administrative cache operations."""

from dataclasses import asdict

import structlog
from fastapi import HTTPException, status

from storyboard_cache.dto import (
    CacheBrowseItem,
    CacheBrowseResponse,
    CacheDeleteRequest,
    CacheDeleteResponse,
    CacheStatsResponse,
    ClusterAnalysisItem,
    ClusterAnalysisResponse,
    HealthCheckResponse,
)
from storyboard_cache.errors import CacheUnavailable
from storyboard_cache.services import (
    BackgroundTaskRunner,
    CacheService,
    ClusterAnalyzer,
    PredictiveEngine,
    SemanticExpander,
    TierResolver,
    UserAnalyticsService,
)

logger = structlog.get_logger(__name__)


def _store_unavailable(e: CacheUnavailable) -> HTTPException:
    logger.error("admin_store_unavailable", error=str(e))
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Cache store unavailable",
    )


class AdminHandler:
    """HTTP handlers for cluster analysis, stats, browsing and cleanup.

    Example:
        ```python
        handler = AdminHandler(cache, analyzer, analytics, resolver, engine, expander, runner)

        @app.get("/cache/stats", response_model=CacheStatsResponse)
        async def stats():
            return await handler.get_stats(request_id="ab12")
        ```
    """

    def __init__(
        self,
        cache: CacheService,
        analyzer: ClusterAnalyzer,
        analytics: UserAnalyticsService,
        resolver: TierResolver,
        engine: PredictiveEngine,
        expander: SemanticExpander,
        runner: BackgroundTaskRunner,
    ) -> None:
        self._cache = cache
        self._analyzer = analyzer
        self._analytics = analytics
        self._resolver = resolver
        self._engine = engine
        self._expander = expander
        self._runner = runner

    async def analyze_clusters(self, request_id: str) -> ClusterAnalysisResponse:
        """Handle GET /cache/clusters requests."""
        try:
            analysis = await self._analyzer.analyze(request_id)
        except CacheUnavailable as e:
            raise _store_unavailable(e) from e

        return ClusterAnalysisResponse(
            success=True,
            analysis=ClusterAnalysisItem.model_validate(asdict(analysis)),
            request_id=request_id,
        )

    async def get_stats(self, request_id: str) -> CacheStatsResponse:
        """Handle GET /cache/stats requests."""
        try:
            total_entries = self._cache.count()
            sessions = self._analytics.count_sessions()
            sample = await self._analyzer.load_entries()
        except CacheUnavailable as e:
            raise _store_unavailable(e) from e

        return CacheStatsResponse(
            total_entries=total_entries,
            variation_entries=sum(1 for entry in sample.values() if entry.is_semantic_variation),
            sessions=sessions,
            semantic_cache_enabled=self._expander.enabled,
            expansion_count=self._expander.expansion_count,
            prediction_threshold=self._engine.threshold(),
            metrics=self._resolver.metrics.to_dict(),
            background=self._runner.stats(),
            request_id=request_id,
        )

    async def browse(self, request_id: str, limit: int = 50, offset: int = 0, prefix: str = "") -> CacheBrowseResponse:
        """Handle GET /cache/browse requests (keys in sorted order)."""
        try:
            keys = sorted(self._cache.list_keys(prefix=prefix))
            page = keys[offset:offset + limit]
            entries = await self._cache.get_many(page)
        except CacheUnavailable as e:
            raise _store_unavailable(e) from e

        items = [
            CacheBrowseItem(
                key=key,
                original_prompt=entry.original_prompt,
                url=entry.persistent_url,
                is_semantic_variation=entry.is_semantic_variation,
                semantic_cluster=entry.semantic_cluster,
                quality_score=entry.quality_score,
                tier=entry.tier,
                degraded=entry.degraded,
                cached_at=entry.timestamp.timestamp(),
            )
            for key, entry in entries.items()
        ]
        return CacheBrowseResponse(items=items, offset=offset, limit=limit, total=len(keys), request_id=request_id)

    async def delete(self, request: CacheDeleteRequest, request_id: str) -> CacheDeleteResponse:
        """Handle POST /cache/delete requests."""
        try:
            deleted = self._cache.delete(request.prompt)
        except CacheUnavailable as e:
            raise _store_unavailable(e) from e

        logger.info("cache_entry_deleted", deleted=deleted)
        return CacheDeleteResponse(
            success=deleted,
            deleted_count=int(deleted),
            message="Entry deleted" if deleted else "No entry for prompt",
            request_id=request_id,
        )

    async def clear(self, request_id: str, include_sessions: bool = False) -> CacheDeleteResponse:
        """Handle DELETE /cache requests."""
        try:
            count = self._cache.clear()
            if include_sessions:
                count += self._analytics.clear_sessions()
        except CacheUnavailable as e:
            raise _store_unavailable(e) from e

        self._resolver.metrics.reset()
        return CacheDeleteResponse(
            success=True,
            deleted_count=count,
            message="Cache and sessions cleared" if include_sessions else "Cache cleared",
            request_id=request_id,
        )

    async def health_check(self, request_id: str) -> HealthCheckResponse:
        """Handle GET /health requests."""
        is_healthy = self._cache.is_healthy()
        return HealthCheckResponse(
            status="healthy" if is_healthy else "unhealthy",
            cache_healthy=is_healthy,
            store_backend=type(self._cache.store_backend).__name__,
            background_pending=self._runner.pending,
            request_id=request_id,
        )
