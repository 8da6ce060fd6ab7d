"""Predictive engine: warm the cache from partial input.

A partial prompt plus recent history is turned into a few likely
completions. When the heuristic confidence clears the warming threshold,
each completion that is not cached yet is generated in the background,
staggered so the image provider sees a trickle rather than a burst.
"""

import structlog

from storyboard_cache.config import Settings, settings
from storyboard_cache.entities import PredictionResult
from storyboard_cache.errors import CacheUnavailable, ProviderError
from storyboard_cache.protocols import LanguageModel
from storyboard_cache.utils import parse_string_array, preview

from .background import BackgroundTaskRunner
from .cache_service import CacheService
from .tier_resolver import TierResolver
from .user_analytics import UserAnalyticsService

logger = structlog.get_logger(__name__)

# prompts sampled from the cache when no session history is available
_SAMPLE_KEYS = 20
_SAMPLE_PROMPTS = 10

COMPLETION_PROMPT = """Complete this storyboard prompt based on the partial user input and recent context.

Current partial input: "{partial}"

Recent user prompts for context: {context}

Generate {count} most likely completions for the storyboard prompt.

Requirements:
- Complete the partial input logically
- Suitable for film/video storyboard generation
- Consider the context of recent prompts
- Keep completions concise and specific
- Return ONLY a JSON array of {count} completion strings

Examples:
Input: "man walk"
Output: ["man walking down street", "man walking through door", "man walking up stairs"]

Input: "close up"
Output: ["close up of face", "close up of hands", "close up of object"]

Generate {count} completions for: "{partial}\""""


def prediction_confidence(partial: str, predictions: list[str], requested: int) -> float:
    """Heuristic [0, 1] confidence for a set of completions.

    Weighted sum of three capped factors:
    - share of the requested completions actually returned (0.3)
    - partial input length, saturating at 20 characters (0.3)
    - mean completion length, saturating at 30 characters (0.4)
    """
    if not predictions:
        return 0.0

    confidence = min(len(predictions) / max(1, requested), 1.0) * 0.3
    confidence += min(len(partial) / 20, 1.0) * 0.3
    average_length = sum(len(p) for p in predictions) / len(predictions)
    confidence += min(average_length / 30, 1.0) * 0.4
    return min(confidence, 1.0)


class PredictiveEngine:
    """Predict completions of partial prompts and pre-generate them.

    Example:
        ```python
        engine = PredictiveEngine(cache, llm, resolver, runner, analytics)
        result = await engine.predict("a lion wea", session_id="s-1")
        print(result.predictions, result.confidence, result.warming)
        ```
    """

    def __init__(
        self,
        cache: CacheService,
        language_model: LanguageModel,
        resolver: TierResolver,
        runner: BackgroundTaskRunner,
        analytics: UserAnalyticsService | None = None,
        config: Settings | None = None,
    ) -> None:
        self._cache = cache
        self._llm = language_model
        self._resolver = resolver
        self._runner = runner
        self._analytics = analytics
        self._config = config or settings

    def threshold(self) -> float:
        """Warming threshold in effect, tuned by analytics when available."""
        if self._analytics is None:
            return self._config.prediction_accuracy_threshold
        return self._analytics.prediction_threshold()

    async def predict(
        self,
        partial: str,
        recent_prompts: list[str] | None = None,
        session_id: str | None = None,
        request_id: str | None = None,
    ) -> PredictionResult:
        """Predict completions and schedule warming for confident ones.

        Never raises: provider failures yield an empty result.

        Args:
            partial: Text typed so far
            recent_prompts: Explicit history; looked up when omitted
            session_id: Session whose prompts are used as history
            request_id: Correlation id for logs

        Returns:
            PredictionResult with the predictions that were queued for warming
        """
        log = logger.bind(request_id=request_id, partial=preview(partial))
        threshold = self.threshold()

        if len(partial.strip()) < self._config.prediction_min_length:
            log.debug("prediction_skipped_short_input")
            return PredictionResult.empty(threshold)

        if recent_prompts is None:
            recent_prompts = await self.recent_prompts(session_id, request_id)

        predictions = await self.generate_predictions(partial, recent_prompts, request_id)
        confidence = prediction_confidence(partial, predictions, self._config.prediction_count)

        warming: list[str] = []
        if confidence > threshold:
            warming = await self.warm(predictions, request_id)

        log.info(
            "prediction_completed",
            predictions=len(predictions),
            confidence=round(confidence, 3),
            threshold=threshold,
            warming=len(warming),
        )
        return PredictionResult(
            predictions=predictions,
            confidence=confidence,
            threshold=threshold,
            warming=warming,
        )

    async def generate_predictions(
        self, partial: str, recent_prompts: list[str], request_id: str | None = None
    ) -> list[str]:
        """Ask the language model for likely completions of a partial prompt."""
        count = self._config.prediction_count
        context = recent_prompts[-self._config.prediction_context_size:]
        try:
            text = await self._llm.complete(
                COMPLETION_PROMPT.format(
                    partial=partial,
                    context="[" + ", ".join(f'"{p}"' for p in context) + "]",
                    count=count,
                ),
                temperature=0.3,
                max_output_tokens=150,
            )
        except ProviderError as e:
            logger.error("prediction_generation_failed", request_id=request_id, error=str(e))
            return []

        return parse_string_array(text, limit=count)

    async def recent_prompts(self, session_id: str | None, request_id: str | None = None) -> list[str]:
        """History used as prediction context.

        The session's own prompts when a session id is given, otherwise a
        small sample of canonical prompts from the cache.
        """
        limit = self._config.prediction_context_size
        try:
            if session_id and self._analytics is not None:
                return self._analytics.recent_prompts(session_id, limit=limit)

            keys = self._cache.list_keys(limit=_SAMPLE_KEYS)
            entries = await self._cache.get_many(keys[:_SAMPLE_PROMPTS])
        except CacheUnavailable as e:
            logger.warning("recent_prompts_unavailable", request_id=request_id, error=str(e))
            return []

        return [entry.original_prompt for entry in entries.values() if not entry.is_semantic_variation]

    async def warm(self, predictions: list[str], request_id: str | None = None) -> list[str]:
        """Schedule staggered background generation for uncached predictions.

        Returns:
            Predictions that were scheduled
        """
        scheduled: list[str] = []
        for index, prediction in enumerate(predictions):
            if await self._cache.exists(prediction):
                logger.debug("warm_skipped_already_cached", request_id=request_id, prediction=preview(prediction))
                continue
            self._runner.spawn(
                self._resolver.warm(prediction, request_id),
                name="predictive_warm",
                request_id=request_id,
                delay=index * self._config.warm_stagger_seconds,
            )
            scheduled.append(prediction)
        return scheduled
