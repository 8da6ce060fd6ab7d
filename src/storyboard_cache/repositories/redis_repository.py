"""Redis implementation of KeyValueStore.

Every key is stored under ``<namespace>:`` so the cache can share a Redis
database with other applications. It's the default implementation and
satisfies the KeyValueStore protocol.
"""

import re

import redis
import structlog

from storyboard_cache.config import Settings, get_redis_client, settings
from storyboard_cache.errors import CacheUnavailable

logger = structlog.get_logger(__name__)

_GLOB_SPECIAL = re.compile(r"([*?\[\]\\])")


class RedisKeyValueStore:
    """Redis implementation using plain string keys.

    This class satisfies the KeyValueStore protocol through structural
    typing - no explicit inheritance needed.

    Uses:
    - ``SET key value [EX ttl]`` for writes with optional expiry
    - ``SCAN MATCH <namespace>:<prefix>*`` for listing
    """

    def __init__(
        self,
        redis_client: redis.Redis | None = None,
        namespace: str | None = None,
        scan_count: int = 500,
    ) -> None:
        """Initialize the Redis store.

        Args:
            redis_client: Redis client instance (decode_responses=True). If None, creates default.
            namespace: Key namespace. Defaults to settings.
            scan_count: SCAN batch hint.
        """
        self._client = redis_client or get_redis_client()
        self._namespace = namespace or settings.cache_namespace
        self._scan_count = scan_count

    @classmethod
    def create(cls, config: Settings | None = None) -> "RedisKeyValueStore":
        """Factory method to create RedisKeyValueStore from settings.

        Args:
            config: Settings to read the Redis URL and namespace from.

        Returns:
            Configured RedisKeyValueStore
        """
        config = config or settings
        return cls(redis_client=get_redis_client(config), namespace=config.cache_namespace)

    def _key(self, key: str) -> str:
        return f"{self._namespace}:{key}"

    def get(self, key: str) -> str | None:
        """Read a value from Redis."""
        try:
            value = self._client.get(self._key(key))
        except redis.RedisError as e:
            raise CacheUnavailable(f"get failed: {e}") from e

        if isinstance(value, bytes):
            return value.decode()
        return value  # type: ignore[return-value]

    def put(self, key: str, value: str, ttl: int | None = None) -> None:
        """Write a value to Redis, with expiry when ttl is given."""
        try:
            self._client.set(self._key(key), value, ex=ttl)
        except redis.RedisError as e:
            raise CacheUnavailable(f"put failed: {e}") from e

    def delete(self, key: str) -> bool:
        """Delete a key from Redis."""
        try:
            result: int = self._client.delete(self._key(key))  # type: ignore[assignment]
        except redis.RedisError as e:
            raise CacheUnavailable(f"delete failed: {e}") from e
        return result > 0

    def list_keys(self, prefix: str = "", limit: int | None = None) -> list[str]:
        """List keys under the namespace with SCAN.

        Returns keys with the namespace stripped.
        """
        strip = len(self._namespace) + 1
        keys: list[str] = []
        try:
            pattern = _GLOB_SPECIAL.sub(r"\\\1", self._key(prefix)) + "*"
            for raw in self._client.scan_iter(match=pattern, count=self._scan_count):
                key = raw.decode() if isinstance(raw, bytes) else raw
                keys.append(key[strip:])
                if limit is not None and len(keys) >= limit:
                    break
        except redis.RedisError as e:
            raise CacheUnavailable(f"list failed: {e}") from e
        return keys

    def ping(self) -> bool:
        """Check if Redis is accessible.

        Returns:
            True if healthy, False otherwise
        """
        try:
            return bool(self._client.ping())
        except redis.RedisError as e:
            logger.warning("redis_ping_failed", error=str(e))
            return False

    @property
    def client(self) -> redis.Redis:
        """Get the Redis client."""
        return self._client
