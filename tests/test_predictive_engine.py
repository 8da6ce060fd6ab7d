"""
Tests for completion prediction and predictive cache warming.
"""

import json

import pytest

from storyboard_cache.entities import Tier
from storyboard_cache.errors import ProviderError
from storyboard_cache.services import TUNING_KEY, PredictiveEngine, prediction_confidence
from tests.fakes import FakeLanguageModel

COMPLETIONS = '["man walking down street", "man walking through door", "man walking up stairs"]'


@pytest.fixture
def completions():
    return FakeLanguageModel([COMPLETIONS])


@pytest.fixture
def warming_engine(cache, completions, resolver, runner, analytics, settings):
    return PredictiveEngine(cache, completions, resolver, runner, analytics, settings)


def test_confidence_of_nothing_is_zero():
    assert prediction_confidence("man walk", [], 3) == 0.0


def test_confidence_saturates_at_one():
    predictions = ["a" * 30, "b" * 40, "c" * 35]
    assert prediction_confidence("x" * 25, predictions, 3) == pytest.approx(1.0)


def test_confidence_weights():
    # 2 of 3 returned, 10 char partial, 15 char average completion
    confidence = prediction_confidence("x" * 10, ["a" * 10, "b" * 20], 3)
    assert confidence == pytest.approx(2 / 3 * 0.3 + 0.5 * 0.3 + 0.5 * 0.4)


def test_confidence_grows_with_partial_length():
    predictions = ["man walking down street"]
    assert prediction_confidence("man", predictions, 3) < prediction_confidence("man walking", predictions, 3)


@pytest.mark.asyncio
async def test_short_input_is_not_sent_to_language_model(engine, llm):
    result = await engine.predict("  ab  ")

    assert result.predictions == []
    assert result.confidence == 0.0
    assert llm.prompts == []


@pytest.mark.asyncio
async def test_confident_predictions_warm_uncached_prompts(warming_engine, cache, resolver, generator, runner):
    await resolver.generate("man walking through door", Tier.FINAL)
    await runner.drain()
    generator.calls.clear()

    result = await warming_engine.predict("man walking", recent_prompts=[])

    assert len(result.predictions) == 3
    assert result.confidence > result.threshold
    assert result.warming == ["man walking down street", "man walking up stairs"]

    await runner.drain()
    assert sorted(prompt for prompt, _ in generator.calls) == ["man walking down street", "man walking up stairs"]
    assert all(quality.tier is Tier.FINAL for _, quality in generator.calls)
    assert await cache.exists("man walking up stairs")


@pytest.mark.asyncio
async def test_tuned_threshold_suppresses_warming(warming_engine, store, generator, runner):
    store.put(TUNING_KEY, json.dumps({"threshold": 0.95}))

    result = await warming_engine.predict("man walking", recent_prompts=[])

    assert warming_engine.threshold() == 0.95
    assert result.threshold == 0.95
    assert len(result.predictions) == 3
    assert result.warming == []
    await runner.drain()
    assert generator.calls == []


@pytest.mark.asyncio
async def test_language_model_failure_yields_empty_result(cache, resolver, runner, analytics, settings):
    llm = FakeLanguageModel(error=ProviderError("gemini", "timeout"))
    engine = PredictiveEngine(cache, llm, resolver, runner, analytics, settings)

    result = await engine.predict("man walk", recent_prompts=[])

    assert result.predictions == []
    assert result.confidence == 0.0
    assert result.warming == []


@pytest.mark.asyncio
async def test_session_prompts_are_used_as_context(warming_engine, completions, analytics):
    await analytics.record_prompt("s-1", "lion in a forest", cache_hit=False)

    await warming_engine.predict("lion wal", session_id="s-1")

    assert '["lion in a forest"]' in completions.prompts[0]


@pytest.mark.asyncio
async def test_cached_prompts_are_context_without_session(warming_engine, completions, resolver, runner):
    await resolver.generate("Pizza on ice", Tier.FINAL)
    await runner.drain()

    await warming_engine.predict("pizza on")

    assert '"Pizza on ice"' in completions.prompts[0]


@pytest.mark.asyncio
async def test_explicit_context_is_trimmed(warming_engine, completions):
    history = [f"shot {i}" for i in range(8)]

    await warming_engine.predict("shot 9", recent_prompts=history)

    assert '"shot 2"' not in completions.prompts[0]
    assert '["shot 3", "shot 4", "shot 5", "shot 6", "shot 7"]' in completions.prompts[0]


def test_threshold_without_analytics_is_configured(cache, llm, resolver, runner, settings):
    engine = PredictiveEngine(cache, llm, resolver, runner, config=settings)
    assert engine.threshold() == settings.prediction_accuracy_threshold
