"""Storyboard Cache - tiered prompt-to-image caching for storyboard frames.

This package provides a layered architecture:

Layers:
    - protocols: Interface contracts (KeyValueStore, ImageGenerator, ImageUploader, LanguageModel)
    - repositories: Redis / in-memory stores and the fal.ai, Cloudflare and Gemini clients
    - services: Business logic (cache, tiers, expansion, prediction, clusters, analytics)
    - handlers: HTTP endpoint handlers
    - dto: Data transfer objects (API contracts)
    - entities: Domain models (internal)

Usage:
    ```python
    from storyboard_cache.repositories import InMemoryKeyValueStore
    from storyboard_cache.services import CacheService

    cache = CacheService.create(store=InMemoryKeyValueStore())
    entry = await cache.lookup("A Lion Wearing Sunglasses ")
    ```

For HTTP API:
    ```python
    from storyboard_cache.api.app import app
    ```
"""

from storyboard_cache.config import get_redis_client, get_settings, settings
from storyboard_cache.entities import CacheEntryEntity, SessionEntity, Tier, TierResult
from storyboard_cache.errors import CacheUnavailable, ParseError, ProviderError, StoryboardCacheError
from storyboard_cache.protocols import ImageGenerator, ImageUploader, KeyValueStore, LanguageModel
from storyboard_cache.repositories import InMemoryKeyValueStore, RedisKeyValueStore
from storyboard_cache.services import (
    BackgroundTaskRunner,
    CacheService,
    ClusterAnalyzer,
    PredictiveEngine,
    SemanticExpander,
    TierResolver,
    UserAnalyticsService,
)

__all__ = [
    # Configuration
    "settings",
    "get_settings",
    "get_redis_client",
    # Errors
    "StoryboardCacheError",
    "ProviderError",
    "ParseError",
    "CacheUnavailable",
    # Protocols (interfaces)
    "KeyValueStore",
    "ImageGenerator",
    "ImageUploader",
    "LanguageModel",
    # Services (business logic)
    "BackgroundTaskRunner",
    "CacheService",
    "TierResolver",
    "SemanticExpander",
    "PredictiveEngine",
    "ClusterAnalyzer",
    "UserAnalyticsService",
    # Repositories (data access)
    "RedisKeyValueStore",
    "InMemoryKeyValueStore",
    # Entities (domain models)
    "CacheEntryEntity",
    "SessionEntity",
    "Tier",
    "TierResult",
]
