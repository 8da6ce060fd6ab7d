"""FastAPI application for the storyboard image cache."""

import time
import uuid
from typing import Any

import structlog
from fastapi import FastAPI, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from storyboard_cache.api.dependencies import (
    AdminHandlerDep,
    AnalyticsHandlerDep,
    GenerationHandlerDep,
    RequestIdDep,
    Services,
    ServicesDep,
    lifespan_for,
)
from storyboard_cache.config import Settings, get_settings
from storyboard_cache.dto import (
    BackgroundUpgradeRequest,
    BackgroundUpgradeResponse,
    CacheBrowseResponse,
    CacheDeleteRequest,
    CacheDeleteResponse,
    CacheStatsResponse,
    ClusterAnalysisResponse,
    ErrorResponse,
    GenerateRequest,
    GenerateResponse,
    HealthCheckResponse,
    InstantLookupRequest,
    InstantLookupResponse,
    PredictionTrackRequest,
    SemanticCheckRequest,
    SemanticCheckResponse,
    SessionTrackRequest,
    TrackResponse,
    TypingPredictionRequest,
    TypingPredictionResponse,
    TypingTrackRequest,
    UserAnalyticsResponse,
)
from storyboard_cache.logging_config import configure_logging

logger = structlog.get_logger(__name__)

API_TITLE = "Storyboard Cache API"
API_VERSION = "0.1.0"
API_DESCRIPTION = "Tiered prompt-to-image cache with paraphrase expansion and predictive warming"
REQUEST_ID_HEADER = "X-Request-ID"


def _error(request: Request, status_code: int, message: str) -> JSONResponse:
    request_id = getattr(request.state, "request_id", "")
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=message, request_id=request_id).model_dump(),
        headers={REQUEST_ID_HEADER: request_id},
    )


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    return f"Invalid request: {location}: {first.get('msg', 'invalid value')}" if location else "Invalid request"


def create_app(config: Settings | None = None, services: Services | None = None) -> FastAPI:
    """Build the FastAPI application.

    Args:
        config: Settings for logging and middleware (defaults to environment)
        services: Prebuilt services; built from settings at startup when omitted

    Returns:
        The configured application
    """
    config = services.config if services is not None else (config or get_settings())
    configure_logging(config)

    app = FastAPI(
        title=API_TITLE,
        description=API_DESCRIPTION,
        version=API_VERSION,
        lifespan=lifespan_for(services),
    )

    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
    )

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        request_id = uuid.uuid4().hex[:12]
        request.state.request_id = request_id
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        start_time = time.time()
        if config.enable_request_logging:
            logger.info("request_started", method=request.method, path=request.url.path)

        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id

        if config.enable_request_logging:
            logger.info(
                "request_completed",
                method=request.method,
                path=request.url.path,
                status=response.status_code,
                duration_ms=round((time.time() - start_time) * 1000, 1),
            )
        return response

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return _error(request, exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return _error(request, status.HTTP_400_BAD_REQUEST, _validation_message(exc))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("unhandled_error", path=request.url.path, exc_info=exc)
        return _error(request, status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")

    _register_routes(app)
    return app


def _register_routes(app: FastAPI) -> None:
    @app.get("/")
    async def root(services: ServicesDep, request_id: RequestIdDep) -> dict[str, Any]:
        """Root endpoint with API information."""
        return {
            "name": API_TITLE,
            "version": API_VERSION,
            "description": API_DESCRIPTION,
            "semantic_cache": services.config.enable_semantic_cache,
            "endpoints": {
                "generate": "/generate",
                "instant": "/generate/instant",
                "background": "/generate/background",
                "semantic_check": "/cache/semantic-check",
                "predict": "/predict/typing",
                "analytics": "/analytics/users",
                "clusters": "/cache/clusters",
                "stats": "/cache/stats",
                "health": "/health",
                "docs": "/docs",
            },
            "request_id": request_id,
        }

    @app.get("/health", response_model=HealthCheckResponse)
    async def health(handler: AdminHandlerDep, request_id: RequestIdDep) -> HealthCheckResponse:
        """Health check endpoint (backing store ping)."""
        return await handler.health_check(request_id)

    @app.post("/generate/instant", response_model=InstantLookupResponse)
    async def generate_instant(
        request: InstantLookupRequest, handler: GenerationHandlerDep, request_id: RequestIdDep
    ) -> InstantLookupResponse:
        """Answer from the cache only, never generating."""
        return await handler.instant(request, request_id)

    @app.post("/generate", response_model=GenerateResponse)
    async def generate(
        request: GenerateRequest, handler: GenerationHandlerDep, request_id: RequestIdDep
    ) -> GenerateResponse:
        """Answer from the first available requested tier."""
        return await handler.generate(request, request_id)

    @app.post("/generate/background", response_model=BackgroundUpgradeResponse)
    async def generate_background(
        request: BackgroundUpgradeRequest, handler: GenerationHandlerDep, request_id: RequestIdDep
    ) -> BackgroundUpgradeResponse:
        """Schedule generation and return immediately."""
        return await handler.background(request, request_id)

    @app.post("/cache/semantic-check", response_model=SemanticCheckResponse)
    async def semantic_check(
        request: SemanticCheckRequest, handler: GenerationHandlerDep, request_id: RequestIdDep
    ) -> SemanticCheckResponse:
        """Check whether a prompt (or a paraphrase of it) is cached."""
        return await handler.semantic_check(request, request_id)

    @app.post("/predict/typing", response_model=TypingPredictionResponse)
    async def predict_typing(
        request: TypingPredictionRequest, handler: AnalyticsHandlerDep, request_id: RequestIdDep
    ) -> TypingPredictionResponse:
        """Predict completions for partial input and warm the cache."""
        return await handler.predict_typing(request, request_id)

    @app.post("/analytics/typing", response_model=TrackResponse)
    async def track_typing(
        request: TypingTrackRequest, handler: AnalyticsHandlerDep, request_id: RequestIdDep
    ) -> TrackResponse:
        return await handler.track_typing(request, request_id)

    @app.post("/analytics/prediction", response_model=TrackResponse)
    async def track_prediction(
        request: PredictionTrackRequest, handler: AnalyticsHandlerDep, request_id: RequestIdDep
    ) -> TrackResponse:
        return await handler.track_prediction(request, request_id)

    @app.post("/analytics/session", response_model=TrackResponse)
    async def track_session(
        request: SessionTrackRequest, handler: AnalyticsHandlerDep, request_id: RequestIdDep
    ) -> TrackResponse:
        return await handler.track_session(request, request_id)

    @app.get("/analytics/users", response_model=UserAnalyticsResponse)
    async def user_analytics(handler: AnalyticsHandlerDep, request_id: RequestIdDep) -> UserAnalyticsResponse:
        """Aggregate anonymized sessions into behavior insights."""
        return await handler.user_analytics(request_id)

    @app.get("/cache/clusters", response_model=ClusterAnalysisResponse)
    async def cache_clusters(handler: AdminHandlerDep, request_id: RequestIdDep) -> ClusterAnalysisResponse:
        """Analyze clusters, duplicates and optimization opportunities."""
        return await handler.analyze_clusters(request_id)

    @app.get("/cache/stats", response_model=CacheStatsResponse)
    async def cache_stats(handler: AdminHandlerDep, request_id: RequestIdDep) -> CacheStatsResponse:
        return await handler.get_stats(request_id)

    @app.get("/cache/browse", response_model=CacheBrowseResponse)
    async def cache_browse(
        handler: AdminHandlerDep,
        request_id: RequestIdDep,
        limit: int = Query(50, ge=1, le=500),
        offset: int = Query(0, ge=0),
        prefix: str = Query(""),
    ) -> CacheBrowseResponse:
        return await handler.browse(request_id, limit=limit, offset=offset, prefix=prefix)

    @app.post("/cache/delete", response_model=CacheDeleteResponse)
    async def cache_delete(
        request: CacheDeleteRequest, handler: AdminHandlerDep, request_id: RequestIdDep
    ) -> CacheDeleteResponse:
        return await handler.delete(request, request_id)

    @app.delete("/cache", response_model=CacheDeleteResponse)
    async def cache_clear(
        handler: AdminHandlerDep,
        request_id: RequestIdDep,
        include_sessions: bool = Query(False),
    ) -> CacheDeleteResponse:
        """Clear all cache entries (and optionally sessions)."""
        return await handler.clear(request_id, include_sessions=include_sessions)


app = create_app()


def main() -> None:
    import uvicorn

    config = get_settings()
    uvicorn.run(
        "storyboard_cache.api.app:app",
        host=config.api_host,
        port=config.api_port,
        reload=config.api_reload,
    )


if __name__ == "__main__":
    main()
