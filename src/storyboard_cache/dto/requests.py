"""Request DTOs for API endpoints."""

from pydantic import BaseModel, Field, field_validator

from storyboard_cache.entities import Tier


class PromptRequest(BaseModel):
    """Base for requests carrying a prompt; blank prompts are rejected."""

    prompt: str = Field(..., description="Storyboard prompt as typed by the user", min_length=1)

    @field_validator("prompt")
    @classmethod
    def prompt_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("prompt must not be blank")
        return value


class InstantLookupRequest(PromptRequest):
    """Request DTO for cache-only lookup.

    Exact matching yields at most one option, so ``max_options`` only bounds
    the answer.
    """

    max_options: int = Field(3, description="Maximum number of cached options to return", ge=1, le=10)


class GenerateRequest(PromptRequest):
    """Request DTO for multi-tier generation."""

    tiers: list[Tier] = Field(
        default_factory=lambda: [Tier.INSTANT, Tier.FINAL],
        description="Tiers to consider, tried in priority order (instant, fast, final)",
        min_length=1,
    )
    max_tiers: int = Field(3, description="Consider at most this many of the requested tiers", ge=1, le=3)
    session_id: str | None = Field(None, description="Anonymous session id for analytics", max_length=128)


class BackgroundUpgradeRequest(PromptRequest):
    """Request DTO for fire-and-forget generation."""

    tiers: list[Tier] = Field(
        default_factory=lambda: [Tier.FINAL],
        description="Tiers to generate; the best generation tier is used",
        min_length=1,
    )


class SemanticCheckRequest(PromptRequest):
    """Request DTO for checking whether a prompt is already covered."""


class TypingPredictionRequest(BaseModel):
    """Request DTO for predicting completions of partial input."""

    partial: str = Field(..., description="Text typed so far")
    session_id: str | None = Field(None, description="Anonymous session id", max_length=128)
    user_agent: str | None = Field(None, description="Client user agent (reduced to browser family)")
    recent_prompts: list[str] | None = Field(
        None,
        description="Recent prompts for context (defaults to session or cache history)",
    )


class TypingTrackRequest(BaseModel):
    """Request DTO for recording a typing observation."""

    partial: str = Field(..., description="Text typed so far")
    session_id: str = Field(..., description="Anonymous session id", min_length=1, max_length=128)
    duration: float = Field(..., description="Milliseconds spent typing", ge=0.0)
    final_prompt: str | None = Field(None, description="Prompt eventually submitted")
    abandoned: bool = Field(False, description="Whether the input was abandoned")


class PredictionTrackRequest(BaseModel):
    """Request DTO for recording how a prediction fared."""

    session_id: str = Field(..., description="Anonymous session id", min_length=1, max_length=128)
    partial: str = Field(..., description="Partial input the predictions were made for")
    predictions: list[str] = Field(default_factory=list, description="Predictions offered")
    actual_choice: str | None = Field(None, description="Prompt the user actually submitted")
    accuracy: float = Field(0.0, description="Accuracy of the prediction (0-1)", ge=0.0, le=1.0)
    confidence: float = Field(0.0, description="Confidence reported with the prediction", ge=0.0, le=1.0)


class SessionTrackRequest(BaseModel):
    """Request DTO for merging session-level data."""

    session_id: str | None = Field(None, description="Session id; issued when omitted", max_length=128)
    prompts: list[str] = Field(default_factory=list, description="Prompts to append")
    cache_hits: int = Field(0, description="Cache hits to add", ge=0)
    cache_misses: int = Field(0, description="Cache misses to add", ge=0)
    user_agent: str | None = Field(None, description="Client user agent (reduced to browser family)")


class CacheDeleteRequest(PromptRequest):
    """Request DTO for deleting one prompt's entry."""
