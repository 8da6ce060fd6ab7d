"""Semantic expander: paraphrase-based cache expansion.

After a full-quality generation, the language model is asked for
meaning-preserving rewordings of the prompt and one cache entry is written
per rewording, all pointing at the same image. Later submissions of any of
those wordings are then answered from the instant tier.

This is exact matching on pre-generated strings, not vector search.
"""

import asyncio
import json
from dataclasses import replace
from datetime import datetime, timezone

import structlog

from storyboard_cache.config import Settings, settings
from storyboard_cache.entities import CacheEntryEntity
from storyboard_cache.errors import CacheUnavailable, ProviderError
from storyboard_cache.protocols import LanguageModel
from storyboard_cache.utils import (
    ACTION_TERMS,
    VISUAL_TERMS,
    normalize_prompt,
    parse_string_array,
    preview,
    prompt_similarity,
    shares_terms,
)

from .cache_service import CacheService

logger = structlog.get_logger(__name__)

CLUSTER_META_PREFIX = "cluster_meta:"

PARAPHRASE_PROMPT = """You are an expert storyboard artist and filmmaker. \
Generate semantic variations for visual scene descriptions that maintain the same \
cinematic intent and visual elements.

Original prompt: "{prompt}"

Generate exactly {count} semantic variations that:
1. Preserve the exact same visual meaning
2. Vary only wording, word order and articles
3. Keep the same level of detail and specificity
4. Would logically produce the same storyboard frame

Examples:
- "pizza on ice" -> "pizza placed on ice", "a pizza sitting on ice", "the pizza on top of ice"
- "man walking" -> "a man walking", "walking man", "the man walks"

Return ONLY a JSON array of {count} variation strings, no other text:
["variation1", "variation2", ...]"""


class SemanticExpander:
    """Multiply cache coverage with paraphrase entries.

    Example:
        ```python
        expander = SemanticExpander(cache=cache, language_model=llm)
        written = await expander.expand(canonical_entry, request_id="ab12")
        ```
    """

    def __init__(
        self,
        cache: CacheService,
        language_model: LanguageModel,
        config: Settings | None = None,
    ) -> None:
        self._cache = cache
        self._llm = language_model
        self._config = config or settings

    @property
    def enabled(self) -> bool:
        return self._config.enable_semantic_cache and self._config.semantic_expansion_count > 0

    @property
    def expansion_count(self) -> int:
        return self._config.semantic_expansion_count

    async def generate_variations(self, original_prompt: str, request_id: str | None = None) -> list[str]:
        """Ask the language model for paraphrases of a prompt.

        Never raises: provider failures and unparseable output yield [].

        Args:
            original_prompt: Canonical prompt text
            request_id: Correlation id for logs

        Returns:
            Filtered paraphrases, at most ``semantic_expansion_count``
        """
        count = self._config.semantic_expansion_count
        log = logger.bind(request_id=request_id, prompt=preview(original_prompt))

        try:
            text = await self._llm.complete(
                PARAPHRASE_PROMPT.format(prompt=original_prompt, count=count),
                temperature=0.2,
                max_output_tokens=300,
            )
        except ProviderError as e:
            log.error("paraphrase_generation_failed", error=str(e))
            return []

        candidates = parse_string_array(text)
        original_key = normalize_prompt(original_prompt)
        max_length = len(original_prompt) * 3

        variations: list[str] = []
        seen = {original_key}
        for candidate in candidates:
            key = normalize_prompt(candidate)
            if not key or key in seen or len(candidate) > max_length:
                continue
            seen.add(key)
            variations.append(candidate)

        variations = variations[:count]
        log.info(
            "paraphrases_generated",
            requested=count,
            received=len(candidates),
            kept=len(variations),
        )
        return variations

    def quality_score(self, original_prompt: str, variation: str) -> float:
        """Confidence that a paraphrase still means the original.

        Starts from the prompts' lexical similarity, adds 0.05 each when both
        keep a spatial term and when both keep an action term, and takes off
        0.1 when the paraphrase loses more than a fifth of the original's
        words.

        Args:
            original_prompt: Canonical prompt text
            variation: Paraphrase to score

        Returns:
            Score in [0, 1], rounded to 3 decimals
        """
        score = prompt_similarity(original_prompt, variation)
        if shares_terms(original_prompt, variation, VISUAL_TERMS):
            score += 0.05
        if shares_terms(original_prompt, variation, ACTION_TERMS):
            score += 0.05
        if len(variation.split()) < len(original_prompt.split()) * 0.8:
            score -= 0.1
        return round(min(1.0, max(0.0, score)), 3)

    async def expand(self, canonical: CacheEntryEntity, request_id: str | None = None) -> int:
        """Write one cache entry per paraphrase of the canonical prompt.

        Writes run concurrently; each failure is logged on its own and does
        not undo the writes that succeeded. Paraphrases scoring below
        ``variation_quality_threshold`` are dropped. Keys held by another
        cluster are left untouched, while this cluster's own keys are
        rewritten so a regenerated image reaches every paraphrase.

        Args:
            canonical: The entry just written for the submitted prompt
            request_id: Correlation id for logs

        Returns:
            Number of paraphrase entries written
        """
        log = logger.bind(request_id=request_id, prompt=preview(canonical.original_prompt))
        if not self.enabled:
            log.info("semantic_expansion_disabled")
            return 0

        variations = await self.generate_variations(canonical.original_prompt, request_id)
        if not variations:
            log.warning("semantic_expansion_no_variations")
            return 0

        cluster = normalize_prompt(canonical.original_prompt)
        results = await asyncio.gather(
            *(
                self._store_variation(canonical, cluster, variation, index, request_id)
                for index, variation in enumerate(variations)
            ),
            return_exceptions=True,
        )

        written = 0
        for variation, result in zip(variations, results):
            if isinstance(result, BaseException):
                log.error("variation_write_failed", variation=preview(variation), error=str(result))
            elif result:
                written += 1

        self._store_cluster_metadata(cluster, canonical.original_prompt, variations, written, request_id)
        log.info(
            "semantic_expansion_completed",
            cluster=preview(cluster),
            variations=len(variations),
            written=written,
        )
        return written

    async def _store_variation(
        self,
        canonical: CacheEntryEntity,
        cluster: str,
        variation: str,
        index: int,
        request_id: str | None,
    ) -> bool:
        log = logger.bind(request_id=request_id, variation=preview(variation))
        score = self.quality_score(canonical.original_prompt, variation)
        if score < self._config.variation_quality_threshold:
            log.info("variation_below_quality_threshold", quality_score=score)
            return False

        existing = await self._cache.lookup(variation)
        if existing is not None and existing.semantic_cluster != cluster:
            log.debug("variation_owned_by_other_cluster", owner=preview(existing.semantic_cluster))
            return False

        entry = replace(
            canonical,
            is_semantic_variation=True,
            semantic_cluster=cluster,
            quality_score=score,
            tier=None,
            variation_index=index,
            timestamp=datetime.now(timezone.utc),
        )
        await self._cache.put_strict(variation, entry)
        return True

    def _store_cluster_metadata(
        self,
        cluster: str,
        original_prompt: str,
        variations: list[str],
        written: int,
        request_id: str | None,
    ) -> None:
        tokens = set(original_prompt.split())
        for variation in variations:
            tokens.update(variation.split())

        metadata = {
            "cluster_id": cluster,
            "original_prompt": original_prompt[:100],
            "total_variations": len(variations),
            "successful_expansions": written,
            "expansion_rate": written / len(variations),
            "average_variation_length": sum(len(v) for v in variations) / len(variations),
            "unique_tokens": len(tokens),
            "created_at": datetime.now(timezone.utc).timestamp(),
            "request_id": request_id,
        }
        try:
            self._cache.store_backend.put(
                f"{CLUSTER_META_PREFIX}{cluster}",
                json.dumps(metadata),
                ttl=self._config.cluster_meta_ttl,
            )
        except CacheUnavailable as e:
            logger.warning("cluster_metadata_write_failed", request_id=request_id, error=str(e))
