import os
from dataclasses import dataclass
from functools import lru_cache

import redis
from dotenv import load_dotenv

load_dotenv()


def _optional_ttl(value: str | None) -> int | None:
    """Parse a TTL env var; empty or zero means no expiry."""
    if not value:
        return None
    ttl = int(value)
    return ttl if ttl > 0 else None


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment variables."""

    # Redis
    redis_url: str = os.getenv("REDIS_URL", "redis://localhost:6379")
    redis_password: str | None = os.getenv("REDIS_PASSWORD")
    cache_namespace: str = os.getenv("CACHE_NAMESPACE", "storyboard")

    # Expiry (seconds)
    cache_ttl: int | None = _optional_ttl(os.getenv("CACHE_TTL"))  # entries never expire by default
    session_ttl: int = int(os.getenv("SESSION_TTL", str(30 * 24 * 60 * 60)))
    cluster_meta_ttl: int = int(os.getenv("CLUSTER_META_TTL", str(7 * 24 * 60 * 60)))
    degraded_entry_ttl: int = int(os.getenv("DEGRADED_ENTRY_TTL", "3600"))

    # Image generation (fal.ai)
    fal_key: str | None = os.getenv("FAL_KEY")
    fal_base_url: str = os.getenv("FAL_BASE_URL", "https://fal.run")
    fal_model: str = os.getenv("FAL_MODEL", "fal-ai/flux-1/schnell")
    image_size: str = os.getenv("IMAGE_SIZE", "landscape_4_3")
    fast_inference_steps: int = int(os.getenv("FAST_INFERENCE_STEPS", "4"))
    final_inference_steps: int = int(os.getenv("FINAL_INFERENCE_STEPS", "8"))
    generation_timeout: float = float(os.getenv("GENERATION_TIMEOUT", "60"))

    # Persistent image store (Cloudflare Images)
    cloudflare_account_id: str | None = os.getenv("CLOUDFLARE_ACCOUNT_ID")
    cloudflare_api_token: str | None = os.getenv("CLOUDFLARE_API_TOKEN")
    cloudflare_image_account_hash: str | None = os.getenv("CLOUDFLARE_IMAGE_ACCOUNT_HASH")
    cloudflare_api_base: str = os.getenv("CLOUDFLARE_API_BASE", "https://api.cloudflare.com/client/v4")

    # Paraphrase / completion model (Gemini)
    gemini_api_key: str | None = os.getenv("GEMINI_API_KEY")
    gemini_model: str = os.getenv("GEMINI_MODEL", "gemini-1.5-flash")
    gemini_base_url: str = os.getenv(
        "GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta"
    )
    llm_timeout: float = float(os.getenv("LLM_TIMEOUT", "20"))

    # Semantic expansion
    enable_semantic_cache: bool = os.getenv("ENABLE_SEMANTIC_CACHE", "true").lower() == "true"
    semantic_expansion_count: int = int(os.getenv("SEMANTIC_EXPANSION_COUNT", "6"))
    variation_quality_threshold: float = float(os.getenv("VARIATION_QUALITY_THRESHOLD", "0.70"))

    # Tiers
    instant_confidence_floor: float = float(os.getenv("INSTANT_CONFIDENCE_FLOOR", "0.85"))
    quick_suggest_confidence_floor: float = float(os.getenv("QUICK_SUGGEST_CONFIDENCE_FLOOR", "0.70"))
    fast_tier_confidence: float = float(os.getenv("FAST_TIER_CONFIDENCE", "0.75"))

    # Prediction
    prediction_count: int = int(os.getenv("PREDICTION_COUNT", "3"))
    prediction_min_length: int = int(os.getenv("PREDICTION_MIN_LENGTH", "3"))
    prediction_context_size: int = int(os.getenv("PREDICTION_CONTEXT_SIZE", "5"))
    prediction_accuracy_threshold: float = float(os.getenv("PREDICTION_ACCURACY_THRESHOLD", "0.4"))
    warm_stagger_seconds: float = float(os.getenv("WARM_STAGGER_SECONDS", "2.0"))

    # Batch jobs
    cluster_sample_size: int = int(os.getenv("CLUSTER_SAMPLE_SIZE", "1000"))
    cluster_batch_size: int = int(os.getenv("CLUSTER_BATCH_SIZE", "50"))
    duplicate_sample_size: int = int(os.getenv("DUPLICATE_SAMPLE_SIZE", "20"))
    session_batch_size: int = int(os.getenv("SESSION_BATCH_SIZE", "20"))

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_json: bool = os.getenv("LOG_JSON", "true").lower() == "true"
    enable_request_logging: bool = os.getenv("ENABLE_REQUEST_LOGGING", "true").lower() == "true"

    # API
    api_host: str = os.getenv("API_HOST", "0.0.0.0")
    api_port: int = int(os.getenv("API_PORT", "8000"))
    api_reload: bool = os.getenv("API_RELOAD", "true").lower() == "true"
    shutdown_drain_seconds: float = float(os.getenv("SHUTDOWN_DRAIN_SECONDS", "10"))

    @property
    def has_persistent_store(self) -> bool:
        """Check if Cloudflare Images credentials are configured."""
        return bool(
            self.cloudflare_account_id
            and self.cloudflare_api_token
            and self.cloudflare_image_account_hash
        )

    def __post_init__(self) -> None:
        """Validate settings after initialization."""
        for name in (
            "instant_confidence_floor",
            "quick_suggest_confidence_floor",
            "fast_tier_confidence",
            "variation_quality_threshold",
            "prediction_accuracy_threshold",
        ):
            value = getattr(self, name)
            if not 0 <= value <= 1:
                raise ValueError(f"{name.upper()} must be between 0 and 1, got {value}")

        if self.semantic_expansion_count < 0:
            raise ValueError("SEMANTIC_EXPANSION_COUNT must not be negative")

        if self.prediction_count < 1:
            raise ValueError("PREDICTION_COUNT must be at least 1")

        if self.cluster_batch_size < 1 or self.session_batch_size < 1:
            raise ValueError("Batch sizes must be at least 1")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


def get_redis_client(config: Settings | None = None) -> redis.Redis:
    """Create a Redis client instance."""
    config = config or settings
    return redis.from_url(
        config.redis_url,
        password=config.redis_password,
        decode_responses=True,
    )
