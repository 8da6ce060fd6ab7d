"""User analytics: anonymized session tracking and behavior insights.

Sessions live in the same key-value store as the cache under
``session:<id>`` and expire after ``session_ttl``; every write refreshes the
expiry. Aggregation feeds a recommended prediction threshold back to the
predictive engine through the ``tuning:prediction`` record.
"""

import asyncio
import json
import uuid
from collections import Counter
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

import structlog

from storyboard_cache.config import Settings, settings
from storyboard_cache.entities import (
    BehaviorInsight,
    PredictionEvent,
    SessionEntity,
    TypingEvent,
    UserAnalytics,
)
from storyboard_cache.errors import CacheUnavailable, ParseError
from storyboard_cache.protocols import KeyValueStore
from storyboard_cache.repositories.records import decode_session, encode_session
from storyboard_cache.utils import anonymize_user_agent, normalize_prompt

logger = structlog.get_logger(__name__)

SESSION_PREFIX = "session:"
TUNING_KEY = "tuning:prediction"

LONG_SESSION_PROMPTS = 5
LOW_ACCURACY = 0.4
HIGH_ACCURACY = 0.7
LOW_HIT_RATE = 0.5
SLOW_TYPING_MS = 5000
HIGH_ABANDONMENT = 0.2
RECENT_WINDOW = timedelta(days=7)
TOP_PROMPTS = 10
MIN_THRESHOLD = 0.2
MAX_THRESHOLD = 0.8


def _scored(sessions: list[SessionEntity]) -> list[PredictionEvent]:
    """Prediction events that already have an outcome."""
    return [p for s in sessions for p in s.predictions if p.accuracy is not None]


class UserAnalyticsService:
    """Track anonymized sessions and aggregate them into insights.

    Tracking calls never raise: a failing store is logged and reported as
    ``False`` so that analytics can never break a user-facing request.

    Example:
        ```python
        analytics = UserAnalyticsService(store)
        await analytics.track_typing_pattern("s-1", TypingEvent(partial="a li", duration=800))
        report = await analytics.analyze_user_behavior()
        print(report.cache_hit_rate, report.recommended_prediction_threshold)
        ```
    """

    def __init__(self, store: KeyValueStore, config: Settings | None = None) -> None:
        self._store = store
        self._config = config or settings

    @staticmethod
    def session_key(session_id: str) -> str:
        return f"{SESSION_PREFIX}{session_id}"

    def get_session(self, session_id: str) -> SessionEntity | None:
        """Read a session, treating unreadable records as absent.

        Raises:
            CacheUnavailable: If the store cannot be read
        """
        raw = self._store.get(self.session_key(session_id))
        if raw is None:
            return None
        try:
            return decode_session(raw)
        except ParseError as e:
            logger.warning("session_unreadable", session_id=session_id, error=str(e))
            return None

    def _save(self, session: SessionEntity) -> None:
        self._store.put(
            self.session_key(session.id),
            encode_session(session),
            ttl=self._config.session_ttl,
        )

    def _update(
        self,
        session_id: str,
        mutate: Callable[[SessionEntity], None],
        event: str,
        request_id: str | None,
    ) -> bool:
        """Read-modify-write one session, creating it when missing."""
        log = logger.bind(request_id=request_id, session_id=session_id)
        try:
            session = self.get_session(session_id) or SessionEntity(id=session_id)
            mutate(session)
            self._save(session)
        except CacheUnavailable as e:
            log.error(f"{event}_failed", error=str(e))
            return False

        log.info(
            event,
            prompts=len(session.prompts),
            typing_events=len(session.typing_patterns),
            predictions=len(session.predictions),
        )
        return True

    async def track_session(
        self,
        session_id: str | None = None,
        prompts: list[str] | None = None,
        cache_hits: int = 0,
        cache_misses: int = 0,
        user_agent: str | None = None,
        request_id: str | None = None,
    ) -> str | None:
        """Merge session-level data into a session record.

        Args:
            session_id: Session to update; a random id is issued when omitted
            prompts: Prompts to append
            cache_hits: Hits to add
            cache_misses: Misses to add
            user_agent: Raw user agent, reduced to its browser family
            request_id: Correlation id for logs

        Returns:
            The session id, or None if the store rejected the write
        """
        session_id = session_id or uuid.uuid4().hex
        browser = anonymize_user_agent(user_agent)

        def mutate(session: SessionEntity) -> None:
            session.prompts.extend(prompts or [])
            session.cache_hits += cache_hits
            session.cache_misses += cache_misses
            if browser is not None:
                session.user_agent = browser

        if not self._update(session_id, mutate, "session_tracked", request_id):
            return None
        return session_id

    async def track_typing_pattern(
        self, session_id: str, event: TypingEvent, request_id: str | None = None
    ) -> bool:
        """Append one typing observation to a session."""
        return self._update(
            session_id,
            lambda session: session.typing_patterns.append(event),
            "typing_pattern_tracked",
            request_id,
        )

    async def track_prediction_accuracy(
        self, session_id: str, event: PredictionEvent, request_id: str | None = None
    ) -> bool:
        """Append one prediction outcome to a session."""
        return self._update(
            session_id,
            lambda session: session.predictions.append(event),
            "prediction_tracked",
            request_id,
        )

    async def record_prediction(
        self,
        session_id: str,
        partial: str,
        predictions: list[str],
        confidence: float,
        user_agent: str | None = None,
        request_id: str | None = None,
    ) -> bool:
        """Store an open prediction event, resolved by the next submitted prompt."""
        browser = anonymize_user_agent(user_agent)
        event = PredictionEvent(partial=partial, predictions=list(predictions), confidence=confidence)

        def mutate(session: SessionEntity) -> None:
            session.predictions.append(event)
            if browser is not None:
                session.user_agent = browser

        return self._update(session_id, mutate, "prediction_recorded", request_id)

    async def record_prompt(
        self,
        session_id: str,
        prompt: str,
        cache_hit: bool,
        request_id: str | None = None,
    ) -> bool:
        """Record a submitted prompt and score every open prediction.

        Each prediction event still waiting for an outcome gets accuracy 1.0
        when the prompt was among its predictions, else 0.0. Keystroke
        predictions leading up to one submission are all closed by it.
        """
        submitted = normalize_prompt(prompt)

        def mutate(session: SessionEntity) -> None:
            session.prompts.append(prompt.strip())
            if cache_hit:
                session.cache_hits += 1
            else:
                session.cache_misses += 1

            for event in session.predictions:
                if event.accuracy is not None:
                    continue
                predicted = {normalize_prompt(p) for p in event.predictions}
                event.accuracy = 1.0 if submitted in predicted else 0.0
                if event.actual_choice is None:
                    event.actual_choice = prompt.strip()

        return self._update(session_id, mutate, "prompt_recorded", request_id)

    def recent_prompts(self, session_id: str, limit: int | None = None) -> list[str]:
        """Prompts submitted in a session, oldest first.

        Raises:
            CacheUnavailable: If the store cannot be read
        """
        session = self.get_session(session_id)
        if session is None:
            return []
        return session.prompts[-limit:] if limit else list(session.prompts)

    def prediction_threshold(self) -> float:
        """Warming threshold: the tuned value if one is stored, else the configured one."""
        default = self._config.prediction_accuracy_threshold
        try:
            raw = self._store.get(TUNING_KEY)
        except CacheUnavailable as e:
            logger.warning("tuning_read_failed", error=str(e))
            return default
        if raw is None:
            return default

        try:
            threshold = float(json.loads(raw)["threshold"])
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("tuning_record_unreadable", error=str(e))
            return default
        if not 0.0 <= threshold <= 1.0:
            return default
        return threshold

    async def load_sessions(self) -> list[SessionEntity]:
        """Read every live session in fixed-size batches.

        Raises:
            CacheUnavailable: If the store cannot be listed or read
        """
        keys = self._store.list_keys(prefix=SESSION_PREFIX)
        batch_size = self._config.session_batch_size
        sessions: list[SessionEntity] = []

        for start in range(0, len(keys), batch_size):
            for key in keys[start:start + batch_size]:
                session = self.get_session(key[len(SESSION_PREFIX):])
                if session is not None:
                    sessions.append(session)
            # let request handlers run between batches
            await asyncio.sleep(0)

        return sessions

    async def analyze_user_behavior(self, request_id: str | None = None) -> UserAnalytics:
        """Aggregate all live sessions into analytics and insights.

        When prediction outcomes exist, the recommended threshold is also
        persisted for the predictive engine.

        Raises:
            CacheUnavailable: If the store cannot be read
        """
        log = logger.bind(request_id=request_id)
        log.info("user_analysis_started")

        sessions = await self.load_sessions()
        if not sessions:
            return UserAnalytics(
                total_sessions=0,
                average_session_length=0.0,
                common_patterns=[],
                prompt_frequency={},
                prediction_accuracy=0.0,
                cache_hit_rate=0.0,
                abandonment_rate=0.0,
            )

        analytics = self.calculate(sessions)
        if analytics.recommended_prediction_threshold is not None:
            self._store_threshold(analytics.recommended_prediction_threshold, analytics.prediction_accuracy, request_id)

        log.info(
            "user_analysis_completed",
            sessions=analytics.total_sessions,
            prediction_accuracy=round(analytics.prediction_accuracy, 3),
            cache_hit_rate=round(analytics.cache_hit_rate, 3),
            insights=len(analytics.behavior_insights),
        )
        return analytics

    def calculate(self, sessions: list[SessionEntity], now: datetime | None = None) -> UserAnalytics:
        """Pure aggregation over already-loaded sessions."""
        now = now or datetime.now(timezone.utc)
        total = len(sessions)
        average_length = sum(len(s.prompts) for s in sessions) / total

        frequency = Counter(normalize_prompt(p) for s in sessions for p in s.prompts if p.strip())
        top = frequency.most_common(TOP_PROMPTS)

        scored = _scored(sessions)
        accuracy = sum(p.accuracy for p in scored) / len(scored) if scored else 0.0

        hits = sum(s.cache_hits for s in sessions)
        attempts = hits + sum(s.cache_misses for s in sessions)
        hit_rate = hits / attempts if attempts else 0.0

        typing = [t for s in sessions for t in s.typing_patterns]
        abandonment = sum(1 for t in typing if t.abandoned) / len(typing) if typing else 0.0
        average_typing_ms = sum(t.duration for t in typing) / len(typing) if typing else 0.0

        return UserAnalytics(
            total_sessions=total,
            average_session_length=average_length,
            common_patterns=[prompt for prompt, _ in top],
            prompt_frequency=dict(top),
            prediction_accuracy=accuracy,
            cache_hit_rate=hit_rate,
            abandonment_rate=abandonment,
            improvement_opportunities=self._opportunities(accuracy, hit_rate, average_typing_ms, abandonment),
            behavior_insights=self._insights(sessions, top, average_length, abandonment, now),
            recommended_prediction_threshold=self._recommend_threshold(accuracy) if scored else None,
        )

    def _insights(
        self,
        sessions: list[SessionEntity],
        top: list[tuple[str, int]],
        average_length: float,
        abandonment: float,
        now: datetime,
    ) -> list[BehaviorInsight]:
        insights: list[BehaviorInsight] = []

        if top:
            prompt, count = top[0]
            insights.append(
                BehaviorInsight(
                    pattern=f'Top prompt: "{prompt}"',
                    frequency=count,
                    confidence=0.9,
                    recommendation="Consider expanding semantic variations for this popular prompt",
                )
            )

        if average_length > LONG_SESSION_PROMPTS:
            insights.append(
                BehaviorInsight(
                    pattern="Long user sessions detected",
                    frequency=sum(1 for s in sessions if len(s.prompts) > LONG_SESSION_PROMPTS),
                    confidence=0.8,
                    recommendation="Users are engaged - consider predictive cache warming for multi-prompt sessions",
                )
            )

        recent = [s for s in sessions if now - s.timestamp < RECENT_WINDOW]
        recent_scored = _scored(recent)
        if recent_scored:
            recent_accuracy = sum(p.accuracy for p in recent_scored) / len(recent_scored)
            if recent_accuracy < LOW_ACCURACY:
                insights.append(
                    BehaviorInsight(
                        pattern="Low prediction accuracy detected",
                        frequency=len(recent),
                        confidence=0.7,
                        recommendation="Adjust prediction context or tune the warming threshold",
                    )
                )

        if abandonment > HIGH_ABANDONMENT:
            insights.append(
                BehaviorInsight(
                    pattern="High typing abandonment",
                    frequency=sum(1 for s in sessions for t in s.typing_patterns if t.abandoned),
                    confidence=0.7,
                    recommendation="Simplify the prompt input experience",
                )
            )

        return insights

    @staticmethod
    def _opportunities(
        accuracy: float, hit_rate: float, average_typing_ms: float, abandonment: float
    ) -> list[str]:
        opportunities: list[str] = []
        if hit_rate < LOW_HIT_RATE:
            opportunities.append("Expand semantic cache variations to improve hit rate")
        if accuracy < LOW_ACCURACY:
            opportunities.append("Improve prediction algorithms with more context")
        if average_typing_ms > SLOW_TYPING_MS:
            opportunities.append("Users spend long time typing - implement auto-complete suggestions")
        if abandonment > HIGH_ABANDONMENT:
            opportunities.append("High typing abandonment rate - improve user experience")
        return opportunities

    def _recommend_threshold(self, accuracy: float) -> float:
        # offset from the configured base, never from the stored tuning
        base = self._config.prediction_accuracy_threshold
        if accuracy < LOW_ACCURACY:
            return round(min(MAX_THRESHOLD, base + 0.1), 3)
        if accuracy > HIGH_ACCURACY:
            return round(max(MIN_THRESHOLD, base - 0.05), 3)
        return base

    def _store_threshold(self, threshold: float, accuracy: float, request_id: str | None) -> None:
        log = logger.bind(request_id=request_id)
        record = {
            "threshold": threshold,
            "prediction_accuracy": accuracy,
            "updated_at": datetime.now(timezone.utc).timestamp(),
        }
        try:
            self._store.put(TUNING_KEY, json.dumps(record))
        except CacheUnavailable as e:
            log.warning("tuning_write_failed", error=str(e))
            return
        log.info("prediction_threshold_tuned", threshold=threshold, accuracy=round(accuracy, 3))

    def clear_sessions(self) -> int:
        """Delete every session record.

        Returns:
            Number of sessions deleted
        """
        count = 0
        for key in self._store.list_keys(prefix=SESSION_PREFIX):
            if self._store.delete(key):
                count += 1
        logger.info("sessions_cleared", deleted=count)
        return count

    def count_sessions(self) -> int:
        return len(self._store.list_keys(prefix=SESSION_PREFIX))
