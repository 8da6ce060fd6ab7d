"""Anonymized user session entities."""

from dataclasses import dataclass, field
from datetime import datetime, timezone

SESSION_SCHEMA_VERSION = 1


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class TypingEvent:
    """One partial-input observation.

    Attributes:
        partial: Text typed so far
        duration: Milliseconds spent typing it
        final_prompt: Prompt eventually submitted, if known
        abandoned: True if the user gave up on this input
        timestamp: When the event was recorded
    """

    partial: str
    duration: float
    final_prompt: str | None = None
    abandoned: bool = False
    timestamp: datetime = field(default_factory=_utcnow)


@dataclass
class PredictionEvent:
    """Predictions offered for a partial input and how they fared.

    ``accuracy`` stays None while the event is open; it is scored when the
    session next submits a prompt.
    """

    partial: str
    predictions: list[str]
    confidence: float
    accuracy: float | None = None
    actual_choice: str | None = None
    timestamp: datetime = field(default_factory=_utcnow)


@dataclass
class SessionEntity:
    """Anonymized per-session record.

    Mutated by read-modify-write on every tracked event and expired by the
    backing store's TTL.
    """

    id: str
    timestamp: datetime = field(default_factory=_utcnow)
    prompts: list[str] = field(default_factory=list)
    typing_patterns: list[TypingEvent] = field(default_factory=list)
    predictions: list[PredictionEvent] = field(default_factory=list)
    cache_hits: int = 0
    cache_misses: int = 0
    user_agent: str | None = None
    schema_version: int = SESSION_SCHEMA_VERSION
