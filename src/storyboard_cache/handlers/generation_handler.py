"""HTTP handlers for image lookup and generation.

Handlers convert between DTOs (API contracts) and service calls.
They handle HTTP concerns like status codes and error translation, and
hand post-response bookkeeping to the background runner.
"""

import structlog
from fastapi import HTTPException, status

from storyboard_cache.config import Settings, settings
from storyboard_cache.dto import (
    BackgroundUpgradeRequest,
    BackgroundUpgradeResponse,
    GenerateRequest,
    GenerateResponse,
    InstantLookupRequest,
    InstantLookupResponse,
    SemanticCheckRequest,
    SemanticCheckResponse,
)
from storyboard_cache.entities import Tier
from storyboard_cache.errors import ProviderError
from storyboard_cache.services import BackgroundTaskRunner, TierResolver, UserAnalyticsService
from storyboard_cache.utils import preview

logger = structlog.get_logger(__name__)


class GenerationHandler:
    """HTTP handlers for the tiered image endpoints.

    Example:
        ```python
        handler = GenerationHandler(resolver, analytics, runner)

        @app.post("/generate", response_model=GenerateResponse)
        async def generate(request: GenerateRequest):
            return await handler.generate(request, request_id="ab12")
        ```
    """

    def __init__(
        self,
        resolver: TierResolver,
        analytics: UserAnalyticsService,
        runner: BackgroundTaskRunner,
        config: Settings | None = None,
    ) -> None:
        self._resolver = resolver
        self._analytics = analytics
        self._runner = runner
        self._config = config or settings

    async def instant(self, request: InstantLookupRequest, request_id: str) -> InstantLookupResponse:
        """Handle POST /generate/instant requests (quick-suggest floor)."""
        result = await self._resolver.instant(
            request.prompt,
            confidence_floor=self._config.quick_suggest_confidence_floor,
            request_id=request_id,
        )
        if result is None:
            return InstantLookupResponse(success=False, reason="not_cached", request_id=request_id)

        return InstantLookupResponse(
            success=True,
            url=result.url,
            confidence=result.confidence,
            reason="semantic_match" if result.semantic else "exact_match",
            semantic=result.semantic,
            matched_prompt=result.matched_prompt,
            request_id=request_id,
        )

    async def generate(self, request: GenerateRequest, request_id: str) -> GenerateResponse:
        """Handle POST /generate requests.

        Raises:
            HTTPException: 500 if a generation tier was reached and failed
        """
        try:
            result = await self._resolver.resolve(
                request.prompt,
                request.tiers,
                max_tiers=request.max_tiers,
                request_id=request_id,
            )
        except ProviderError as e:
            logger.exception("generation_failed", provider=e.provider, prompt=preview(request.prompt))
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Image generation failed",
            ) from e

        if request.session_id:
            self._runner.spawn(
                self._analytics.record_prompt(
                    request.session_id,
                    request.prompt,
                    cache_hit=result is not None and result.cached,
                    request_id=request_id,
                ),
                name="session_bookkeeping",
                request_id=request_id,
            )

        if result is None:
            return GenerateResponse(success=False, tier=Tier.INSTANT, cached=False, request_id=request_id)

        return GenerateResponse(
            success=True,
            url=result.url,
            tier=result.tier,
            confidence=result.confidence,
            cached=result.cached,
            semantic=result.semantic,
            degraded=result.degraded,
            upgrade_scheduled=result.upgrade_scheduled,
            request_id=request_id,
        )

    async def background(self, request: BackgroundUpgradeRequest, request_id: str) -> BackgroundUpgradeResponse:
        """Handle POST /generate/background requests; never waits for generation."""
        scheduled = self._resolver.schedule_upgrade(request.prompt, request.tiers, request_id)
        return BackgroundUpgradeResponse(
            success=scheduled,
            message="Generation scheduled" if scheduled else "No generation tier requested",
            request_id=request_id,
        )

    async def semantic_check(self, request: SemanticCheckRequest, request_id: str) -> SemanticCheckResponse:
        """Handle POST /cache/semantic-check requests (default floor)."""
        result = await self._resolver.instant(request.prompt, request_id=request_id)
        if result is None:
            return SemanticCheckResponse(found=False, request_id=request_id)

        return SemanticCheckResponse(
            found=True,
            url=result.url,
            confidence=result.confidence,
            matched_prompt=result.matched_prompt,
            request_id=request_id,
        )
