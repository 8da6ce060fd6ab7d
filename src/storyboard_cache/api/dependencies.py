"""Dependency injection configuration for FastAPI app.

Uses FastAPI's app.state pattern for storing service instances.

Pattern:
    - Services built once by ``build_services`` and stored in app.state
      during lifespan
    - Dependency functions retrieve from request.app.state
    - Clean separation, no global mutable state
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Annotated

import structlog
from fastapi import Depends, FastAPI, Request

from storyboard_cache.config import Settings, get_settings
from storyboard_cache.handlers import AdminHandler, AnalyticsHandler, GenerationHandler
from storyboard_cache.protocols import ImageGenerator, ImageUploader, KeyValueStore, LanguageModel
from storyboard_cache.repositories import (
    CloudflareImageUploader,
    FalImageGenerator,
    GeminiLanguageModel,
    InMemoryKeyValueStore,
    RedisKeyValueStore,
)
from storyboard_cache.services import (
    BackgroundTaskRunner,
    CacheService,
    ClusterAnalyzer,
    GenerationGateway,
    PredictiveEngine,
    SemanticExpander,
    TierResolver,
    UserAnalyticsService,
)

logger = structlog.get_logger(__name__)

MEMORY_STORE_URL = "memory://"


@dataclass
class Services:
    """Every component of the service, wired once per process."""

    config: Settings
    store: KeyValueStore
    generator: ImageGenerator
    uploader: ImageUploader
    language_model: LanguageModel
    runner: BackgroundTaskRunner
    cache: CacheService
    resolver: TierResolver
    engine: PredictiveEngine
    analyzer: ClusterAnalyzer
    analytics: UserAnalyticsService
    generation_handler: GenerationHandler
    analytics_handler: AnalyticsHandler
    admin_handler: AdminHandler

    async def close(self) -> None:
        """Drain background work, then release provider connections."""
        await self.runner.shutdown(self.config.shutdown_drain_seconds)
        for provider in (self.generator, self.uploader, self.language_model):
            close = getattr(provider, "close", None)
            if close is not None:
                await close()


def build_store(config: Settings) -> KeyValueStore:
    """Redis in normal operation; ``REDIS_URL=memory://`` selects the in-memory store."""
    if config.redis_url.startswith(MEMORY_STORE_URL):
        logger.warning("using_in_memory_store")
        return InMemoryKeyValueStore()
    return RedisKeyValueStore.create(config)


def build_services(
    config: Settings | None = None,
    store: KeyValueStore | None = None,
    generator: ImageGenerator | None = None,
    uploader: ImageUploader | None = None,
    language_model: LanguageModel | None = None,
) -> Services:
    """Wire every layer with explicit constructor injection.

    Args:
        config: Settings (defaults to the cached environment settings)
        store: Key-value backend (defaults from ``config.redis_url``)
        generator: Image model (defaults to fal.ai)
        uploader: Persistent object store (defaults to Cloudflare Images)
        language_model: Paraphrase/completion model (defaults to Gemini)

    Returns:
        Services with handlers ready to serve
    """
    config = config or get_settings()
    store = store or build_store(config)
    generator = generator or FalImageGenerator.create(config)
    uploader = uploader or CloudflareImageUploader.create(config)
    language_model = language_model or GeminiLanguageModel.create(config)

    runner = BackgroundTaskRunner()
    cache = CacheService.create(store=store, config=config)
    gateway = GenerationGateway(generator, uploader, config)
    expander = SemanticExpander(cache, language_model, config)
    resolver = TierResolver(cache, gateway, expander, runner, config)
    analytics = UserAnalyticsService(store, config)
    engine = PredictiveEngine(cache, language_model, resolver, runner, analytics, config)
    analyzer = ClusterAnalyzer(cache, language_model, config)

    return Services(
        config=config,
        store=store,
        generator=generator,
        uploader=uploader,
        language_model=language_model,
        runner=runner,
        cache=cache,
        resolver=resolver,
        engine=engine,
        analyzer=analyzer,
        analytics=analytics,
        generation_handler=GenerationHandler(resolver, analytics, runner, config),
        analytics_handler=AnalyticsHandler(engine, analytics, runner),
        admin_handler=AdminHandler(cache, analyzer, analytics, resolver, engine, expander, runner),
    )


def get_services(request: Request) -> Services:
    """Dependency injection for Services from app.state.

    Raises:
        RuntimeError: If services are not initialized
    """
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise RuntimeError("Services not initialized. Check lifespan setup.")
    return services


def get_generation_handler(request: Request) -> GenerationHandler:
    return get_services(request).generation_handler


def get_analytics_handler(request: Request) -> AnalyticsHandler:
    return get_services(request).analytics_handler


def get_admin_handler(request: Request) -> AdminHandler:
    return get_services(request).admin_handler


def get_request_id(request: Request) -> str:
    """Correlation id assigned by the request middleware."""
    return getattr(request.state, "request_id", "")


def lifespan_for(prebuilt: Services | None = None):
    """Build a lifespan that wires services into app.state.

    Args:
        prebuilt: Use these services instead of building from settings
            (tests inject fakes this way)
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        services = prebuilt or build_services()
        app.state.services = services

        config = services.config
        logger.info(
            "service_started",
            store=type(services.store).__name__,
            cache_healthy=services.cache.is_healthy(),
            semantic_cache=config.enable_semantic_cache,
            expansion_count=config.semantic_expansion_count,
            persistent_store=config.has_persistent_store,
        )
        if not config.has_persistent_store:
            logger.warning("persistent_store_not_configured")

        yield

        await services.close()
        del app.state.services
        logger.info("service_stopped")

    return lifespan


# Type aliases for cleaner dependency injection
ServicesDep = Annotated[Services, Depends(get_services)]
GenerationHandlerDep = Annotated[GenerationHandler, Depends(get_generation_handler)]
AnalyticsHandlerDep = Annotated[AnalyticsHandler, Depends(get_analytics_handler)]
AdminHandlerDep = Annotated[AdminHandler, Depends(get_admin_handler)]
RequestIdDep = Annotated[str, Depends(get_request_id)]
