"""In-process request metrics for the tier resolver."""

from dataclasses import dataclass, fields


@dataclass
class TierMetrics:
    """Track how requests were answered by this process."""

    total_requests: int = 0
    instant_hits: int = 0
    semantic_hits: int = 0
    fast_generations: int = 0
    final_generations: int = 0
    generation_failures: int = 0
    total_lookup_time_ms: float = 0.0
    total_generation_time_ms: float = 0.0

    @property
    def generations(self) -> int:
        return self.fast_generations + self.final_generations

    @property
    def hit_rate(self) -> float:
        """Calculate instant-tier hit rate."""
        if self.total_requests == 0:
            return 0.0
        return self.instant_hits / self.total_requests

    @property
    def avg_lookup_time_ms(self) -> float:
        """Calculate average cache lookup time."""
        if self.total_requests == 0:
            return 0.0
        return self.total_lookup_time_ms / self.total_requests

    @property
    def avg_generation_time_ms(self) -> float:
        """Calculate average generation time."""
        if self.generations == 0:
            return 0.0
        return self.total_generation_time_ms / self.generations

    def record_lookup(self, lookup_time_ms: float, hit: bool, semantic: bool = False) -> None:
        """Record a cache lookup made on behalf of a request."""
        self.total_requests += 1
        self.total_lookup_time_ms += lookup_time_ms
        if hit:
            self.instant_hits += 1
            if semantic:
                self.semantic_hits += 1

    def record_generation(self, fast: bool, duration_ms: float) -> None:
        """Record a successful generation."""
        if fast:
            self.fast_generations += 1
        else:
            self.final_generations += 1
        self.total_generation_time_ms += duration_ms

    def record_failure(self) -> None:
        self.generation_failures += 1

    def reset(self) -> None:
        """Zero every counter."""
        for f in fields(self):
            setattr(self, f.name, f.default)

    def to_dict(self) -> dict[str, float | int]:
        """Convert metrics to dictionary."""
        return {
            "total_requests": self.total_requests,
            "instant_hits": self.instant_hits,
            "semantic_hits": self.semantic_hits,
            "fast_generations": self.fast_generations,
            "final_generations": self.final_generations,
            "generation_failures": self.generation_failures,
            "hit_rate": self.hit_rate,
            "avg_lookup_time_ms": self.avg_lookup_time_ms,
            "avg_generation_time_ms": self.avg_generation_time_ms,
        }
