"""Service layer for business logic.

One service per component. Services depend on protocols (interfaces), not
concrete implementations, and receive their settings at construction.

Architecture:
    Handler -> Service -> Repository
    (HTTP)  -> (Business) -> (Data Access / Providers)

Usage:
    ```python
    from storyboard_cache.repositories import InMemoryKeyValueStore
    from storyboard_cache.services import CacheService, TierResolver

    cache = CacheService.create(store=InMemoryKeyValueStore())
    resolver = TierResolver(cache, gateway, expander, runner)
    ```
"""

from .background import BackgroundTaskRunner
from .cache_service import ENTRY_PREFIX, CacheService
from .cluster_analyzer import ClusterAnalyzer
from .generation_gateway import GenerationGateway
from .predictive_engine import PredictiveEngine, prediction_confidence
from .semantic_expander import CLUSTER_META_PREFIX, SemanticExpander
from .tier_resolver import TierResolver
from .user_analytics import SESSION_PREFIX, TUNING_KEY, UserAnalyticsService

__all__ = [
    "BackgroundTaskRunner",
    "CLUSTER_META_PREFIX",
    "CacheService",
    "ClusterAnalyzer",
    "ENTRY_PREFIX",
    "GenerationGateway",
    "PredictiveEngine",
    "SESSION_PREFIX",
    "SemanticExpander",
    "TUNING_KEY",
    "TierResolver",
    "UserAnalyticsService",
    "prediction_confidence",
]
