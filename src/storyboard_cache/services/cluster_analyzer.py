"""Cluster analyzer: offline insight into cache redundancy and gaps.

Read-only over the cache. Entries are grouped by their semantic cluster,
the language model is asked which clusters depict the same scene, and the
result is turned into merge, cleanup and expansion recommendations.
"""

import asyncio

import structlog

from storyboard_cache.config import Settings, settings
from storyboard_cache.entities import (
    CacheEntryEntity,
    ClusterAnalysis,
    ClusterGroup,
    ClusterStats,
    DuplicateGroup,
    OptimizationRecommendations,
)
from storyboard_cache.errors import ProviderError
from storyboard_cache.protocols import LanguageModel
from storyboard_cache.utils import normalize_prompt, parse_index_groups

from .cache_service import CacheService

logger = structlog.get_logger(__name__)

MAX_CLEANUP_CANDIDATES = 10
MAX_EXPANSION_OPPORTUNITIES = 5
LOW_EFFICIENCY = 0.5
# rough storage saved per merged entry, in bytes
MERGE_SAVINGS_PER_ENTRY = 100

DUPLICATE_PROMPT = """Analyze these storyboard prompts and identify semantic duplicates - \
prompts that would result in very similar or identical visual images.

Prompts to analyze:
{numbered}

Return ONLY a JSON array of duplicate groups. Each group should contain prompt numbers \
that are semantically equivalent:

Example format:
[
  [1, 3, 7],
  [2, 5]
]

Only include groups with 2 or more prompts. If no duplicates found, return []."""


def group_clusters(entries: dict[str, CacheEntryEntity]) -> list[ClusterGroup]:
    """Group cache entries by semantic cluster.

    Args:
        entries: Normalized key -> entry

    Returns:
        One ClusterGroup per cluster, with efficiency computed
    """
    clusters: dict[str, ClusterGroup] = {}
    for key, entry in entries.items():
        cluster_id = entry.semantic_cluster or normalize_prompt(entry.original_prompt)
        cluster = clusters.get(cluster_id)
        if cluster is None:
            cluster = clusters[cluster_id] = ClusterGroup(
                id=cluster_id,
                original_prompt=entry.original_prompt,
                image_url=entry.persistent_url,
            )
        if entry.is_semantic_variation:
            cluster.variations.append(key)
        cluster.size += 1

    for cluster in clusters.values():
        cluster.compute_efficiency()
    return list(clusters.values())


def recommend(clusters: list[ClusterGroup], duplicates: list[DuplicateGroup]) -> OptimizationRecommendations:
    expansion = [c.original_prompt for c in clusters if c.efficiency < LOW_EFFICIENCY and c.size > 1]
    cleanup = [c.original_prompt for c in clusters if c.size == 1]
    return OptimizationRecommendations(
        merge_groups=[d for d in duplicates if d.recommended_merge],
        cleanup_candidates=cleanup[:MAX_CLEANUP_CANDIDATES],
        expansion_opportunities=expansion[:MAX_EXPANSION_OPPORTUNITIES],
        total_savings_estimate=sum(d.savings_estimate for d in duplicates),
    )


def cluster_stats(
    clusters: list[ClusterGroup],
    entries: dict[str, CacheEntryEntity],
    duplicates: list[DuplicateGroup],
) -> ClusterStats:
    total_clusters = len(clusters)
    variations = sum(1 for e in entries.values() if e.is_semantic_variation)
    originals = len(entries) - variations
    duplicate_entries = sum(len(d.concepts) for d in duplicates)

    return ClusterStats(
        total_clusters=total_clusters,
        average_cluster_size=sum(c.size for c in clusters) / total_clusters if total_clusters else 0.0,
        efficiency=sum(c.efficiency for c in clusters) / total_clusters if total_clusters else 0.0,
        storage_utilization=variations / originals if originals else 0.0,
        duplicate_rate=duplicate_entries / len(entries) if entries else 0.0,
    )


class ClusterAnalyzer:
    """Batch analysis over a bounded sample of the cache.

    Example:
        ```python
        analyzer = ClusterAnalyzer(cache, llm)
        analysis = await analyzer.analyze(request_id="ab12")
        for group in analysis.duplicates:
            print(group.concepts, group.savings_estimate)
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

    async def analyze(self, request_id: str | None = None) -> ClusterAnalysis:
        """Run the full analysis.

        Raises:
            CacheUnavailable: If the cache cannot be listed or read
        """
        log = logger.bind(request_id=request_id)
        log.info("cluster_analysis_started", sample_size=self._config.cluster_sample_size)

        entries = await self.load_entries()
        clusters = group_clusters(entries)
        duplicates = await self.find_duplicates(clusters, request_id)
        optimization = recommend(clusters, duplicates)
        stats = cluster_stats(clusters, entries, duplicates)

        log.info(
            "cluster_analysis_completed",
            entries=len(entries),
            clusters=stats.total_clusters,
            duplicate_groups=len(duplicates),
            efficiency=round(stats.efficiency, 3),
            savings_estimate=optimization.total_savings_estimate,
        )
        return ClusterAnalysis(clusters=clusters, duplicates=duplicates, optimization=optimization, stats=stats)

    async def load_entries(self) -> dict[str, CacheEntryEntity]:
        """Fetch a bounded sample of entries in fixed-size batches."""
        keys = self._cache.list_keys(limit=self._config.cluster_sample_size)
        batch_size = self._config.cluster_batch_size

        entries: dict[str, CacheEntryEntity] = {}
        for start in range(0, len(keys), batch_size):
            entries.update(await self._cache.get_many(keys[start:start + batch_size]))
            await asyncio.sleep(0)

        logger.debug(
            "cluster_entries_loaded",
            keys=len(keys),
            entries=len(entries),
            variations=sum(1 for e in entries.values() if e.is_semantic_variation),
        )
        return entries

    async def find_duplicates(
        self, clusters: list[ClusterGroup], request_id: str | None = None
    ) -> list[DuplicateGroup]:
        """Ask the language model which sampled clusters depict the same scene.

        Never raises: provider failures and malformed output yield [].
        Indices outside the numbered sample are ignored.
        """
        if len(clusters) < 2:
            return []

        sample = clusters[: self._config.duplicate_sample_size]
        numbered = "\n".join(f'{i}. "{c.original_prompt}"' for i, c in enumerate(sample, start=1))
        try:
            text = await self._llm.complete(
                DUPLICATE_PROMPT.format(numbered=numbered),
                temperature=0.1,
                max_output_tokens=300,
            )
        except ProviderError as e:
            logger.error("duplicate_detection_failed", request_id=request_id, error=str(e))
            return []

        duplicates = []
        for group in parse_index_groups(text, upper_bound=len(sample)):
            members = [sample[i] for i in group]
            duplicates.append(
                DuplicateGroup(
                    concepts=[c.original_prompt for c in members],
                    image_urls=[c.image_url for c in members],
                    recommended_merge=True,
                    savings_estimate=(len(members) - 1) * MERGE_SAVINGS_PER_ENTRY,
                )
            )

        logger.info("duplicate_detection_completed", request_id=request_id, groups=len(duplicates))
        return duplicates
