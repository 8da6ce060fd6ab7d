"""User behavior analytics results."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class BehaviorInsight:
    pattern: str
    frequency: int
    confidence: float
    recommendation: str


@dataclass(frozen=True)
class UserAnalytics:
    """Aggregate view over all live sessions.

    Attributes:
        total_sessions: Sessions analysed
        average_session_length: Mean prompts per session
        common_patterns: Most frequent normalized prompts, most frequent first
        prompt_frequency: Top prompts with their counts
        prediction_accuracy: Mean accuracy over scored prediction events
        cache_hit_rate: hits / (hits + misses) across sessions
        abandonment_rate: Abandoned typing events / all typing events
        improvement_opportunities: Free-text recommendations
        behavior_insights: Rule-based insights
        recommended_prediction_threshold: Threshold the predictive engine
            should use next, or None to keep the configured one
    """

    total_sessions: int
    average_session_length: float
    common_patterns: list[str]
    prompt_frequency: dict[str, int]
    prediction_accuracy: float
    cache_hit_rate: float
    abandonment_rate: float
    improvement_opportunities: list[str] = field(default_factory=list)
    behavior_insights: list[BehaviorInsight] = field(default_factory=list)
    recommended_prediction_threshold: float | None = None
