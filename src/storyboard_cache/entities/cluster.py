"""Cluster analysis results."""

from dataclasses import dataclass, field


@dataclass
class ClusterGroup:
    """Cache entries resolving to the same image.

    Attributes:
        id: Cluster id (normalized canonical prompt)
        original_prompt: Canonical prompt text
        variations: Keys of paraphrase entries in the cluster
        image_url: Shared delivery URL
        size: Total entries in the cluster (canonical + paraphrases)
        efficiency: Paraphrases per canonical entry
    """

    id: str
    original_prompt: str
    image_url: str
    variations: list[str] = field(default_factory=list)
    size: int = 0
    efficiency: float = 0.0

    def compute_efficiency(self) -> float:
        """Recompute ``efficiency = variations / max(1, size - variations)``."""
        variation_count = len(self.variations)
        self.efficiency = variation_count / max(1, self.size - variation_count)
        return self.efficiency


@dataclass(frozen=True)
class DuplicateGroup:
    """Distinct clusters the language model judged semantically equivalent."""

    concepts: list[str]
    image_urls: list[str]
    recommended_merge: bool
    savings_estimate: int


@dataclass(frozen=True)
class OptimizationRecommendations:
    merge_groups: list[DuplicateGroup]
    cleanup_candidates: list[str]
    expansion_opportunities: list[str]
    total_savings_estimate: int


@dataclass(frozen=True)
class ClusterStats:
    total_clusters: int
    average_cluster_size: float
    efficiency: float
    storage_utilization: float
    duplicate_rate: float


@dataclass(frozen=True)
class ClusterAnalysis:
    clusters: list[ClusterGroup]
    duplicates: list[DuplicateGroup]
    optimization: OptimizationRecommendations
    stats: ClusterStats
