"""
Shared fixtures: in-memory store and fake providers.

No network or Redis is needed to run the suite.
"""

from dataclasses import replace

import pytest

from storyboard_cache.config import Settings
from storyboard_cache.repositories import InMemoryKeyValueStore
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
from tests.fakes import FakeImageGenerator, FakeLanguageModel, FakeUploader


@pytest.fixture
def settings():
    """Settings with no start delay for warming."""
    return replace(Settings(), warm_stagger_seconds=0.0, log_json=False, enable_request_logging=False)


@pytest.fixture
def store():
    return InMemoryKeyValueStore()


@pytest.fixture
def generator():
    return FakeImageGenerator()


@pytest.fixture
def uploader():
    return FakeUploader()


@pytest.fixture
def llm():
    return FakeLanguageModel()


@pytest.fixture
def runner():
    return BackgroundTaskRunner()


@pytest.fixture
def cache(store, settings):
    return CacheService.create(store=store, config=settings)


@pytest.fixture
def gateway(generator, uploader, settings):
    return GenerationGateway(generator, uploader, settings)


@pytest.fixture
def expander(cache, llm, settings):
    return SemanticExpander(cache, llm, settings)


@pytest.fixture
def resolver(cache, gateway, expander, runner, settings):
    return TierResolver(cache, gateway, expander, runner, settings)


@pytest.fixture
def analytics(store, settings):
    return UserAnalyticsService(store, settings)


@pytest.fixture
def engine(cache, llm, resolver, runner, analytics, settings):
    return PredictiveEngine(cache, llm, resolver, runner, analytics, settings)


@pytest.fixture
def analyzer(cache, llm, settings):
    return ClusterAnalyzer(cache, llm, settings)
