"""Versioned JSON records for cache entries and sessions.

Current layout is ``schema_version`` 1 (snake_case fields). Records without
a version were written by the previous worker in camelCase and are read as
version 0.
"""

import json
from datetime import datetime, timezone
from typing import Any

from storyboard_cache.entities import (
    CACHE_ENTRY_SCHEMA_VERSION,
    SESSION_SCHEMA_VERSION,
    CacheEntryEntity,
    PredictionEvent,
    SessionEntity,
    Tier,
    TypingEvent,
)
from storyboard_cache.errors import ParseError
from storyboard_cache.utils import normalize_prompt

# version 0 field name -> version 1 field name
_LEGACY_ENTRY_FIELDS = {
    "originalPrompt": "original_prompt",
    "persistentUrl": "persistent_url",
    "cloudflareImageId": "provider_image_id",
    "isSemanticVariation": "is_semantic_variation",
    "semanticCluster": "semantic_cluster",
    "qualityScore": "quality_score",
    "variationIndex": "variation_index",
}

_LEGACY_SESSION_FIELDS = {
    "typingPatterns": "typing_patterns",
    "cacheHits": "cache_hits",
    "cacheMisses": "cache_misses",
    "userAgent": "user_agent",
    "finalPrompt": "final_prompt",
    "actualChoice": "actual_choice",
}


def _to_timestamp(value: datetime) -> float:
    return value.timestamp()


def _from_timestamp(value: Any, legacy: bool) -> datetime:
    if value is None:
        return datetime.now(timezone.utc)
    seconds = float(value)
    # the previous worker stored Date.now() milliseconds
    if legacy:
        seconds /= 1000
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def _load(raw: str) -> dict[str, Any]:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ParseError(f"record is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ParseError("record is not a JSON object")
    return data


def _version(data: dict[str, Any]) -> int:
    try:
        return int(data.get("schema_version", 0))
    except (TypeError, ValueError) as e:
        raise ParseError(f"bad schema_version: {e}") from e


def _rename(data: dict[str, Any], mapping: dict[str, str]) -> dict[str, Any]:
    return {mapping.get(key, key): value for key, value in data.items()}


def encode_entry(entry: CacheEntryEntity) -> str:
    """Serialize a cache entry to its stored JSON form."""
    record = {
        "schema_version": CACHE_ENTRY_SCHEMA_VERSION,
        "original_prompt": entry.original_prompt,
        "persistent_url": entry.persistent_url,
        "provider_image_id": entry.provider_image_id,
        "timestamp": _to_timestamp(entry.timestamp),
        "is_semantic_variation": entry.is_semantic_variation,
        "semantic_cluster": entry.semantic_cluster,
        "quality_score": entry.quality_score,
        "tier": entry.tier.value if entry.tier else None,
        "variation_index": entry.variation_index,
        "degraded": entry.degraded,
    }
    return json.dumps(record)


def decode_entry(raw: str) -> CacheEntryEntity:
    """Deserialize a stored cache entry.

    Raises:
        ParseError: If the record is malformed
    """
    data = _load(raw)
    legacy = _version(data) == 0
    if legacy:
        data = _rename(data, _LEGACY_ENTRY_FIELDS)

    tier = data.get("tier")
    quality_score = data.get("quality_score")
    try:
        original_prompt = data["original_prompt"]
        cluster = data.get("semantic_cluster")
        # version 0 used opaque "cluster_<millis>" ids
        if legacy or not cluster:
            cluster = normalize_prompt(original_prompt)
        return CacheEntryEntity(
            original_prompt=original_prompt,
            persistent_url=data["persistent_url"],
            provider_image_id=data.get("provider_image_id") or "",
            timestamp=_from_timestamp(data.get("timestamp"), legacy),
            is_semantic_variation=bool(data.get("is_semantic_variation", False)),
            semantic_cluster=cluster,
            quality_score=float(quality_score) if quality_score is not None else None,
            tier=Tier(tier) if tier in {t.value for t in Tier} else None,
            variation_index=data.get("variation_index"),
            degraded=bool(data.get("degraded", False)),
            schema_version=CACHE_ENTRY_SCHEMA_VERSION,
        )
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise ParseError(f"malformed cache entry: {e}") from e


def encode_session(session: SessionEntity) -> str:
    """Serialize a session to its stored JSON form."""
    record = {
        "schema_version": SESSION_SCHEMA_VERSION,
        "id": session.id,
        "timestamp": _to_timestamp(session.timestamp),
        "prompts": session.prompts,
        "typing_patterns": [
            {
                "partial": event.partial,
                "duration": event.duration,
                "final_prompt": event.final_prompt,
                "abandoned": event.abandoned,
                "timestamp": _to_timestamp(event.timestamp),
            }
            for event in session.typing_patterns
        ],
        "predictions": [
            {
                "partial": event.partial,
                "predictions": event.predictions,
                "confidence": event.confidence,
                "accuracy": event.accuracy,
                "actual_choice": event.actual_choice,
                "timestamp": _to_timestamp(event.timestamp),
            }
            for event in session.predictions
        ],
        "cache_hits": session.cache_hits,
        "cache_misses": session.cache_misses,
        "user_agent": session.user_agent,
    }
    return json.dumps(record)


def decode_session(raw: str) -> SessionEntity:
    """Deserialize a stored session.

    Raises:
        ParseError: If the record is malformed
    """
    data = _load(raw)
    legacy = _version(data) == 0
    if legacy:
        data = _rename(data, _LEGACY_SESSION_FIELDS)

    try:
        typing_patterns = [
            TypingEvent(
                partial=item["partial"],
                duration=float(item.get("duration", 0)),
                final_prompt=_rename(item, _LEGACY_SESSION_FIELDS).get("final_prompt"),
                abandoned=bool(item.get("abandoned", False)),
                timestamp=_from_timestamp(item.get("timestamp"), legacy),
            )
            for item in data.get("typing_patterns", [])
        ]
        predictions = [
            PredictionEvent(
                partial=item["partial"],
                predictions=list(item.get("predictions", [])),
                confidence=float(item.get("confidence", 0.0)),
                accuracy=None if item.get("accuracy") is None else float(item["accuracy"]),
                actual_choice=_rename(item, _LEGACY_SESSION_FIELDS).get("actual_choice"),
                timestamp=_from_timestamp(item.get("timestamp"), legacy),
            )
            for item in data.get("predictions", [])
        ]
        return SessionEntity(
            id=data["id"],
            timestamp=_from_timestamp(data.get("timestamp"), legacy),
            prompts=list(data.get("prompts", [])),
            typing_patterns=typing_patterns,
            predictions=predictions,
            cache_hits=int(data.get("cache_hits", 0)),
            cache_misses=int(data.get("cache_misses", 0)),
            user_agent=data.get("user_agent"),
            schema_version=SESSION_SCHEMA_VERSION,
        )
    except (KeyError, TypeError, ValueError) as e:
        raise ParseError(f"malformed session record: {e}") from e
