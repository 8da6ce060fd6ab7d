"""
Tests for session tracking, behavior aggregation and threshold tuning.
"""

import json
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from storyboard_cache.entities import PredictionEvent, SessionEntity, TypingEvent
from storyboard_cache.errors import CacheUnavailable
from storyboard_cache.repositories import InMemoryKeyValueStore
from storyboard_cache.services import TUNING_KEY, UserAnalyticsService

FIREFOX = "Mozilla/5.0 (X11; Linux x86_64; rv:121.0) Gecko/20100101 Firefox/121.0"


class DownStore(InMemoryKeyValueStore):
    def get(self, key):
        raise CacheUnavailable("connection refused")

    def put(self, key, value, ttl=None):
        raise CacheUnavailable("connection refused")


@pytest.mark.asyncio
async def test_track_session_issues_id_and_anonymizes(analytics):
    session_id = await analytics.track_session(prompts=["man walking"], cache_hits=1, user_agent=FIREFOX)

    assert session_id
    session = analytics.get_session(session_id)
    assert session.prompts == ["man walking"]
    assert session.cache_hits == 1
    assert session.user_agent == "Firefox"


@pytest.mark.asyncio
async def test_track_session_merges_into_existing(analytics):
    await analytics.track_session("s-1", prompts=["a"], cache_misses=1)
    await analytics.track_session("s-1", prompts=["b"], cache_hits=2)

    session = analytics.get_session("s-1")
    assert session.prompts == ["a", "b"]
    assert (session.cache_hits, session.cache_misses) == (2, 1)


@pytest.mark.asyncio
async def test_sessions_expire(settings):
    now = [0.0]
    analytics = UserAnalyticsService(InMemoryKeyValueStore(clock=lambda: now[0]), settings)
    await analytics.track_typing_pattern("s-1", TypingEvent(partial="a li", duration=400))

    now[0] = settings.session_ttl - 1
    assert analytics.get_session("s-1") is not None
    now[0] = settings.session_ttl + 1
    assert analytics.get_session("s-1") is None


@pytest.mark.asyncio
async def test_tracking_never_raises_when_store_is_down(settings):
    analytics = UserAnalyticsService(DownStore(), settings)

    assert await analytics.track_session("s-1") is None
    assert await analytics.track_typing_pattern("s-1", TypingEvent(partial="x", duration=1)) is False
    assert await analytics.record_prompt("s-1", "x", cache_hit=True) is False
    assert analytics.prediction_threshold() == settings.prediction_accuracy_threshold


@pytest.mark.asyncio
async def test_submitted_prompt_scores_open_prediction(analytics):
    await analytics.record_prediction("s-1", "man wal", ["man walking down street", "man walking up stairs"], 0.7)
    await analytics.record_prompt("s-1", " Man Walking Up Stairs", cache_hit=True)

    event = analytics.get_session("s-1").predictions[0]
    assert event.actual_choice == "Man Walking Up Stairs"
    assert event.accuracy == 1.0


@pytest.mark.asyncio
async def test_unpredicted_prompt_scores_zero_and_closes_event(analytics):
    await analytics.record_prediction("s-1", "man wal", ["man walking down street"], 0.7)
    await analytics.record_prompt("s-1", "a dog barking", cache_hit=False)
    await analytics.record_prompt("s-1", "man walking down street", cache_hit=False)

    session = analytics.get_session("s-1")
    assert session.predictions[0].actual_choice == "a dog barking"
    assert session.predictions[0].accuracy == 0.0
    assert session.cache_misses == 2
    assert analytics.recent_prompts("s-1", limit=1) == ["man walking down street"]


def test_calculate_aggregates_sessions(analytics):
    sessions = [
        SessionEntity(
            id="s-1",
            prompts=["Man walking"] * 3 + ["pizza on ice"] * 4,
            cache_hits=6,
            cache_misses=2,
            typing_patterns=[
                TypingEvent(partial="man", duration=1000, abandoned=True),
                TypingEvent(partial="man w", duration=2000),
            ],
            predictions=[PredictionEvent(partial="man", predictions=["man running"], confidence=0.6, accuracy=0.0)],
        ),
        SessionEntity(
            id="s-2",
            prompts=["man walking"] * 5,
            cache_hits=2,
            typing_patterns=[TypingEvent(partial="piz", duration=3000)],
            predictions=[
                PredictionEvent(partial="piz", predictions=["pizza slice"], confidence=0.5, accuracy=0.0),
                PredictionEvent(partial="pi", predictions=["pizza slice"], confidence=0.3),
            ],
        ),
    ]

    result = analytics.calculate(sessions)

    assert result.total_sessions == 2
    assert result.average_session_length == 6.0
    assert result.common_patterns == ["man walking", "pizza on ice"]
    assert result.prompt_frequency == {"man walking": 8, "pizza on ice": 4}
    assert result.prediction_accuracy == 0.0
    assert result.cache_hit_rate == 0.8
    assert result.abandonment_rate == pytest.approx(1 / 3)
    assert result.recommended_prediction_threshold == 0.5
    assert result.improvement_opportunities == [
        "Improve prediction algorithms with more context",
        "High typing abandonment rate - improve user experience",
    ]
    assert [insight.pattern for insight in result.behavior_insights] == [
        'Top prompt: "man walking"',
        "Long user sessions detected",
        "Low prediction accuracy detected",
        "High typing abandonment",
    ]


def test_stale_sessions_do_not_flag_low_accuracy(analytics):
    now = datetime.now(timezone.utc)
    stale = SessionEntity(
        id="old",
        timestamp=now - timedelta(days=30),
        prompts=["man walking"],
        predictions=[PredictionEvent(partial="man", predictions=["man running"], confidence=0.6, accuracy=0.0)],
    )

    result = analytics.calculate([stale], now=now)

    patterns = [insight.pattern for insight in result.behavior_insights]
    assert "Low prediction accuracy detected" not in patterns


@pytest.mark.asyncio
async def test_analyze_without_sessions(analytics, store):
    result = await analytics.analyze_user_behavior()

    assert result.total_sessions == 0
    assert result.behavior_insights == []
    assert store.get(TUNING_KEY) is None


@pytest.mark.asyncio
async def test_accurate_predictions_lower_threshold_once(analytics):
    await analytics.track_prediction_accuracy(
        "s-1",
        PredictionEvent(partial="man", predictions=["man walking"], confidence=0.8, accuracy=1.0, actual_choice="man walking"),
    )

    first = await analytics.analyze_user_behavior()
    assert first.recommended_prediction_threshold == 0.35
    assert analytics.prediction_threshold() == 0.35

    for _ in range(3):
        again = await analytics.analyze_user_behavior()
        assert again.recommended_prediction_threshold == 0.35
    assert analytics.prediction_threshold() == 0.35


@pytest.mark.asyncio
async def test_threshold_follows_current_evidence(analytics):
    await analytics.track_prediction_accuracy(
        "s-1", PredictionEvent(partial="man", predictions=["man walking"], confidence=0.8, accuracy=0.0)
    )
    assert (await analytics.analyze_user_behavior()).recommended_prediction_threshold == 0.5

    for _ in range(3):
        await analytics.track_prediction_accuracy(
            "s-1", PredictionEvent(partial="man", predictions=["man walking"], confidence=0.8, accuracy=1.0)
        )
    assert (await analytics.analyze_user_behavior()).recommended_prediction_threshold == 0.35
    assert analytics.prediction_threshold() == 0.35


@pytest.mark.asyncio
@pytest.mark.parametrize("base, accuracy, expected", [(0.75, 0.0, 0.8), (0.22, 1.0, 0.2), (0.5, 0.5, 0.5)])
async def test_threshold_stays_within_bounds(store, settings, base, accuracy, expected):
    analytics = UserAnalyticsService(store, replace(settings, prediction_accuracy_threshold=base))
    await analytics.track_prediction_accuracy(
        "s-1", PredictionEvent(partial="man", predictions=["man walking"], confidence=0.8, accuracy=accuracy)
    )

    result = await analytics.analyze_user_behavior()

    assert result.recommended_prediction_threshold == expected


@pytest.mark.asyncio
async def test_submission_closes_every_open_prediction(analytics):
    for partial in ["man", "man wal", "man walking d"]:
        await analytics.record_prediction("s-1", partial, ["man walking down street", "man walking up stairs"], 0.7)
    await analytics.record_prompt("s-1", "man walking down street", cache_hit=True)

    session = analytics.get_session("s-1")
    assert [event.accuracy for event in session.predictions] == [1.0, 1.0, 1.0]

    result = await analytics.analyze_user_behavior()
    assert result.prediction_accuracy == 1.0
    assert result.recommended_prediction_threshold == 0.35
    assert "Low prediction accuracy detected" not in [insight.pattern for insight in result.behavior_insights]


@pytest.mark.asyncio
async def test_open_predictions_do_not_count_as_misses(analytics):
    await analytics.track_prediction_accuracy(
        "s-1", PredictionEvent(partial="man", predictions=["man walking"], confidence=0.8, accuracy=1.0)
    )
    await analytics.record_prediction("s-1", "pizz", ["pizza on ice"], 0.6)
    await analytics.record_prediction("s-1", "pizza o", ["pizza on ice"], 0.6)

    result = await analytics.analyze_user_behavior()

    assert result.prediction_accuracy == 1.0
    assert "Low prediction accuracy detected" not in [insight.pattern for insight in result.behavior_insights]


@pytest.mark.asyncio
async def test_only_open_predictions_keep_threshold(analytics, store):
    await analytics.record_prediction("s-1", "pizz", ["pizza on ice"], 0.6)

    result = await analytics.analyze_user_behavior()

    assert result.recommended_prediction_threshold is None
    assert store.get(TUNING_KEY) is None


@pytest.mark.asyncio
async def test_sessions_without_predictions_keep_threshold(analytics, store):
    await analytics.track_session("s-1", prompts=["man walking"])

    result = await analytics.analyze_user_behavior()

    assert result.recommended_prediction_threshold is None
    assert store.get(TUNING_KEY) is None


@pytest.mark.parametrize("raw", ["garbage", json.dumps({"threshold": 3}), json.dumps({"other": 1})])
def test_unusable_tuning_record_falls_back(analytics, store, settings, raw):
    store.put(TUNING_KEY, raw)
    assert analytics.prediction_threshold() == settings.prediction_accuracy_threshold


@pytest.mark.asyncio
async def test_clear_sessions(analytics, store):
    await analytics.track_session("s-1")
    await analytics.track_session("s-2")
    store.put("entry:keep me", "{}")

    assert analytics.count_sessions() == 2
    assert analytics.clear_sessions() == 2
    assert analytics.count_sessions() == 0
    assert store.get("entry:keep me") == "{}"
