"""Tier resolver: instant / fast / final response selection.

Tiers are tried in priority order and only the tiers the caller asked for
are considered:

1. instant - exact normalized-key hit, or a paraphrase entry whose quality
   score clears the confidence floor. Never calls the image model.
2. fast - low-step generation, cached as a normal entry.
3. final - full-quality generation, cached, then semantic expansion is
   scheduled in the background.

When a generation tier answers and a better tier was also requested, the
better tier is generated in the background and overwrites the entry.
"""

import time
from dataclasses import replace
from datetime import datetime, timezone

import structlog

from storyboard_cache.config import Settings, settings
from storyboard_cache.entities import CacheEntryEntity, Tier, TierMetrics, TierResult
from storyboard_cache.errors import ProviderError
from storyboard_cache.utils import normalize_prompt, preview

from .background import BackgroundTaskRunner
from .cache_service import CacheService
from .generation_gateway import GenerationGateway
from .semantic_expander import SemanticExpander

logger = structlog.get_logger(__name__)


class TierResolver:
    """Decide which tier answers a prompt and produce the answer.

    Example:
        ```python
        resolver = TierResolver(cache, gateway, expander, runner)
        result = await resolver.resolve("a lion wearing sunglasses", [Tier.INSTANT, Tier.FINAL])
        print(result.tier, result.url)
        ```
    """

    def __init__(
        self,
        cache: CacheService,
        gateway: GenerationGateway,
        expander: SemanticExpander,
        runner: BackgroundTaskRunner,
        config: Settings | None = None,
    ) -> None:
        self._cache = cache
        self._gateway = gateway
        self._expander = expander
        self._runner = runner
        self._config = config or settings
        self._metrics = TierMetrics()

    async def instant(
        self,
        prompt: str,
        confidence_floor: float | None = None,
        request_id: str | None = None,
    ) -> TierResult | None:
        """Answer from the cache only.

        Args:
            prompt: Prompt as submitted
            confidence_floor: Minimum quality score for paraphrase hits.
                Defaults to settings.instant_confidence_floor.
            request_id: Correlation id for logs

        Returns:
            TierResult for the instant tier, or None on a miss
        """
        floor = self._config.instant_confidence_floor if confidence_floor is None else confidence_floor
        start_time = time.time()
        entry = await self._cache.lookup(prompt)
        lookup_ms = (time.time() - start_time) * 1000

        if entry is None:
            self._metrics.record_lookup(lookup_ms, hit=False)
            return None

        confidence = entry.confidence
        if entry.is_semantic_variation and confidence < floor:
            self._metrics.record_lookup(lookup_ms, hit=False)
            logger.info(
                "semantic_hit_below_floor",
                request_id=request_id,
                prompt=preview(prompt),
                confidence=confidence,
                floor=floor,
            )
            return None

        self._metrics.record_lookup(lookup_ms, hit=True, semantic=entry.is_semantic_variation)
        logger.info(
            "instant_hit",
            request_id=request_id,
            prompt=preview(prompt),
            semantic=entry.is_semantic_variation,
            confidence=confidence,
            lookup_ms=round(lookup_ms, 2),
        )
        return TierResult(
            url=entry.persistent_url,
            tier=Tier.INSTANT,
            confidence=confidence,
            cached=True,
            semantic=entry.is_semantic_variation,
            matched_prompt=entry.original_prompt,
            degraded=entry.degraded,
        )

    async def generate(self, prompt: str, tier: Tier, request_id: str | None = None) -> TierResult:
        """Generate, cache and (for final) schedule expansion.

        Nothing is written to the cache unless generation succeeded.

        Raises:
            ProviderError: If the image model fails
        """
        start_time = time.time()
        try:
            image = await self._gateway.generate(prompt, tier)
        except ProviderError:
            self._metrics.record_failure()
            raise
        self._metrics.record_generation(fast=tier is Tier.FAST, duration_ms=(time.time() - start_time) * 1000)

        entry = CacheEntryEntity(
            original_prompt=prompt.strip(),
            persistent_url=image.url,
            provider_image_id=image.image_id,
            timestamp=datetime.now(timezone.utc),
            is_semantic_variation=False,
            semantic_cluster=normalize_prompt(prompt),
            quality_score=1.0 if tier is Tier.FINAL else self._config.fast_tier_confidence,
            tier=tier,
            degraded=image.degraded,
        )
        await self._cache.store(prompt, entry, ttl=self._config.degraded_entry_ttl if image.degraded else None)

        # degraded entries are not expanded
        if tier is Tier.FINAL and not image.degraded:
            self._runner.spawn(
                self._expander.expand(entry, request_id),
                name="semantic_expansion",
                request_id=request_id,
            )

        return TierResult(
            url=image.url,
            tier=tier,
            confidence=1.0 if tier is Tier.FINAL else self._config.fast_tier_confidence,
            cached=False,
            matched_prompt=entry.original_prompt,
            degraded=image.degraded,
        )

    async def resolve(
        self,
        prompt: str,
        tiers: list[Tier],
        max_tiers: int = 3,
        confidence_floor: float | None = None,
        request_id: str | None = None,
    ) -> TierResult | None:
        """Answer a prompt from the first available requested tier.

        Args:
            prompt: Prompt as submitted
            tiers: Requested tiers, any order
            max_tiers: Consider at most this many tiers (in priority order)
            confidence_floor: Instant-tier floor for paraphrase hits
            request_id: Correlation id for logs

        Returns:
            The answer, or None when only the instant tier was requested
            and it missed

        Raises:
            ProviderError: If a generation tier was reached and failed
        """
        ordered = sorted(set(tiers), key=lambda t: t.priority)[: max(1, max_tiers)]

        for position, tier in enumerate(ordered):
            if tier is Tier.INSTANT:
                hit = await self.instant(prompt, confidence_floor, request_id)
                if hit is not None:
                    return hit
                continue

            result = await self.generate(prompt, tier, request_id)
            better = ordered[position + 1:]
            if better:
                self.schedule_upgrade(prompt, better, request_id)
                result = replace(result, upgrade_scheduled=True)
            return result

        logger.info("instant_only_miss", request_id=request_id, prompt=preview(prompt))
        return None

    def schedule_upgrade(self, prompt: str, tiers: list[Tier], request_id: str | None = None) -> bool:
        """Queue background generation of the best requested tier.

        Returns:
            True if something was scheduled
        """
        generation_tiers = [tier for tier in tiers if tier.is_generation]
        if not generation_tiers:
            return False

        best = max(generation_tiers, key=lambda t: t.priority)
        self._runner.spawn(
            self.generate(prompt, best, request_id),
            name=f"tier_upgrade_{best.value}",
            request_id=request_id,
        )
        return True

    async def warm(self, prompt: str, request_id: str | None = None) -> bool:
        """Generate a final-tier entry for a prompt unless one exists.

        Returns:
            True if an image was generated
        """
        if await self._cache.exists(prompt):
            logger.info("warm_skipped_already_cached", request_id=request_id, prompt=preview(prompt))
            return False
        await self.generate(prompt, Tier.FINAL, request_id)
        logger.info("cache_warmed", request_id=request_id, prompt=preview(prompt))
        return True

    @property
    def metrics(self) -> TierMetrics:
        return self._metrics
