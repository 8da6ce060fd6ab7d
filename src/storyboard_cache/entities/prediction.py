"""Predictive engine results."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class PredictionResult:
    """Completions predicted for a partial prompt.

    Attributes:
        predictions: Predicted full prompts
        confidence: [0, 1] confidence score
        threshold: Warming threshold in effect for this call
        warming: Predictions queued for background generation
    """

    predictions: list[str]
    confidence: float
    threshold: float = 0.0
    warming: list[str] = field(default_factory=list)

    @classmethod
    def empty(cls, threshold: float = 0.0) -> "PredictionResult":
        return cls(predictions=[], confidence=0.0, threshold=threshold)
