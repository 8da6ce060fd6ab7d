"""HTTP handlers for typing prediction and session analytics."""

from dataclasses import asdict

import structlog
from fastapi import HTTPException, status

from storyboard_cache.dto import (
    PredictionTrackRequest,
    SessionTrackRequest,
    TrackResponse,
    TypingPredictionRequest,
    TypingPredictionResponse,
    TypingTrackRequest,
    UserAnalyticsItem,
    UserAnalyticsResponse,
)
from storyboard_cache.entities import PredictionEvent, TypingEvent
from storyboard_cache.errors import CacheUnavailable
from storyboard_cache.services import BackgroundTaskRunner, PredictiveEngine, UserAnalyticsService

logger = structlog.get_logger(__name__)


class AnalyticsHandler:
    """HTTP handlers for prediction and analytics endpoints.

    Tracking endpoints report ``success: false`` instead of failing when the
    store rejects a write.
    """

    def __init__(
        self,
        engine: PredictiveEngine,
        analytics: UserAnalyticsService,
        runner: BackgroundTaskRunner,
    ) -> None:
        self._engine = engine
        self._analytics = analytics
        self._runner = runner

    async def predict_typing(self, request: TypingPredictionRequest, request_id: str) -> TypingPredictionResponse:
        """Handle POST /predict/typing requests."""
        result = await self._engine.predict(
            request.partial,
            recent_prompts=request.recent_prompts,
            session_id=request.session_id,
            request_id=request_id,
        )

        if request.session_id and result.predictions:
            self._runner.spawn(
                self._analytics.record_prediction(
                    request.session_id,
                    request.partial,
                    result.predictions,
                    result.confidence,
                    user_agent=request.user_agent,
                    request_id=request_id,
                ),
                name="prediction_bookkeeping",
                request_id=request_id,
            )

        return TypingPredictionResponse(
            success=True,
            predictions=result.predictions,
            confidence=result.confidence,
            warming=result.warming,
            request_id=request_id,
        )

    async def track_typing(self, request: TypingTrackRequest, request_id: str) -> TrackResponse:
        """Handle POST /analytics/typing requests."""
        event = TypingEvent(
            partial=request.partial,
            duration=request.duration,
            final_prompt=request.final_prompt,
            abandoned=request.abandoned,
        )
        recorded = await self._analytics.track_typing_pattern(request.session_id, event, request_id)
        return TrackResponse(success=recorded, session_id=request.session_id, request_id=request_id)

    async def track_prediction(self, request: PredictionTrackRequest, request_id: str) -> TrackResponse:
        """Handle POST /analytics/prediction requests."""
        event = PredictionEvent(
            partial=request.partial,
            predictions=request.predictions,
            confidence=request.confidence,
            accuracy=request.accuracy,
            actual_choice=request.actual_choice,
        )
        recorded = await self._analytics.track_prediction_accuracy(request.session_id, event, request_id)
        return TrackResponse(success=recorded, session_id=request.session_id, request_id=request_id)

    async def track_session(self, request: SessionTrackRequest, request_id: str) -> TrackResponse:
        """Handle POST /analytics/session requests."""
        session_id = await self._analytics.track_session(
            session_id=request.session_id,
            prompts=request.prompts,
            cache_hits=request.cache_hits,
            cache_misses=request.cache_misses,
            user_agent=request.user_agent,
            request_id=request_id,
        )
        return TrackResponse(success=session_id is not None, session_id=session_id, request_id=request_id)

    async def user_analytics(self, request_id: str) -> UserAnalyticsResponse:
        """Handle GET /analytics/users requests.

        Raises:
            HTTPException: 500 if the session store cannot be read
        """
        try:
            analytics = await self._analytics.analyze_user_behavior(request_id)
        except CacheUnavailable as e:
            logger.exception("user_analysis_failed")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Analytics store unavailable",
            ) from e

        return UserAnalyticsResponse(
            success=True,
            analytics=UserAnalyticsItem.model_validate(asdict(analytics)),
            request_id=request_id,
        )
