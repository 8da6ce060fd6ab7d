"""
Tests for the versioned cache entry and session records.
"""

import json
from datetime import datetime, timezone

import pytest

from storyboard_cache.entities import (
    CACHE_ENTRY_SCHEMA_VERSION,
    CacheEntryEntity,
    PredictionEvent,
    SessionEntity,
    Tier,
    TypingEvent,
)
from storyboard_cache.errors import ParseError
from storyboard_cache.repositories.records import (
    decode_entry,
    decode_session,
    encode_entry,
    encode_session,
)


def test_entry_record_is_versioned_snake_case():
    entry = CacheEntryEntity(
        original_prompt="A lion wearing sunglasses",
        persistent_url="https://imagedelivery.example/img-1/public",
        provider_image_id="img-1",
        timestamp=datetime(2024, 5, 1, tzinfo=timezone.utc),
        semantic_cluster="a lion wearing sunglasses",
        quality_score=1.0,
        tier=Tier.FINAL,
    )
    record = json.loads(encode_entry(entry))

    assert record["schema_version"] == CACHE_ENTRY_SCHEMA_VERSION
    assert record["original_prompt"] == "A lion wearing sunglasses"
    assert record["tier"] == "final"
    assert decode_entry(encode_entry(entry)) == entry


def test_legacy_entry_is_readable():
    """Records from the previous worker: camelCase, millisecond timestamps, opaque cluster ids."""
    legacy = json.dumps(
        {
            "originalPrompt": "Pizza on ice",
            "persistentUrl": "https://imagedelivery.net/hash/abc/public",
            "cloudflareImageId": "abc",
            "timestamp": 1714521600000,
            "isSemanticVariation": True,
            "semanticCluster": "cluster_1714521600000",
            "qualityScore": 0.9,
        }
    )
    entry = decode_entry(legacy)

    assert entry.provider_image_id == "abc"
    assert entry.is_semantic_variation is True
    assert entry.semantic_cluster == "pizza on ice"
    assert entry.quality_score == 0.9
    assert entry.timestamp == datetime(2024, 5, 1, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "raw",
    [
        "not json",
        "[1, 2, 3]",
        json.dumps({"schema_version": 1, "persistent_url": "https://x"}),
        json.dumps({"schema_version": "one", "original_prompt": "p", "persistent_url": "u"}),
    ],
)
def test_malformed_entry_raises_parse_error(raw):
    with pytest.raises(ParseError):
        decode_entry(raw)


def test_session_record_keeps_events():
    session = SessionEntity(
        id="s-1",
        prompts=["a lion"],
        typing_patterns=[TypingEvent(partial="a li", duration=850.0, abandoned=True)],
        predictions=[
            PredictionEvent(partial="a li", predictions=["a lion"], confidence=0.6, accuracy=1.0),
            PredictionEvent(partial="a lio", predictions=["a lion"], confidence=0.7),
        ],
        cache_hits=1,
        user_agent="Firefox",
    )
    decoded = decode_session(encode_session(session))

    assert decoded.id == "s-1"
    assert decoded.prompts == ["a lion"]
    assert decoded.typing_patterns[0].abandoned is True
    assert decoded.predictions[0].predictions == ["a lion"]
    assert [event.accuracy for event in decoded.predictions] == [1.0, None]
    assert decoded.cache_hits == 1
    assert decoded.user_agent == "Firefox"


def test_legacy_session_is_readable():
    legacy = json.dumps(
        {
            "id": "old",
            "timestamp": 1714521600000,
            "prompts": ["man walking"],
            "typingPatterns": [{"partial": "man", "duration": 1200, "finalPrompt": "man walking", "timestamp": 1714521600000}],
            "predictions": [],
            "cacheHits": 2,
            "cacheMisses": 1,
            "userAgent": "Chrome",
        }
    )
    session = decode_session(legacy)

    assert session.cache_hits == 2
    assert session.cache_misses == 1
    assert session.typing_patterns[0].final_prompt == "man walking"
    assert session.timestamp == datetime(2024, 5, 1, tzinfo=timezone.utc)
