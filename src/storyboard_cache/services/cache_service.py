"""Cache service for prompt-to-image entries.

This service owns key normalization and the record format, and sits
between the business services and the key-value store. Reads on the
request path treat a failing store as a miss; writes are best-effort.
"""

import time

import structlog

from storyboard_cache.config import Settings, settings
from storyboard_cache.entities import CacheEntryEntity
from storyboard_cache.errors import CacheUnavailable, ParseError
from storyboard_cache.protocols import KeyValueStore
from storyboard_cache.repositories.records import decode_entry, encode_entry
from storyboard_cache.utils import normalize_prompt, preview

logger = structlog.get_logger(__name__)

ENTRY_PREFIX = "entry:"


class CacheService:
    """Normalized-key cache of generated images.

    This service depends on the KeyValueStore PROTOCOL, not a concrete
    implementation, so Redis and the in-memory store are interchangeable.

    Example:
        ```python
        from storyboard_cache.repositories import InMemoryKeyValueStore
        from storyboard_cache.services import CacheService

        cache = CacheService.create(store=InMemoryKeyValueStore())
        await cache.store("Cat on table", entry)
        hit = await cache.lookup("  cat ON table ")
        ```
    """

    def __init__(self, store: KeyValueStore, config: Settings | None = None) -> None:
        """Initialize the cache service.

        Args:
            store: Key-value backend (required).
            config: Settings for default TTLs. Defaults to global settings.
        """
        self._store = store
        self._config = config or settings

    @classmethod
    def create(cls, store: KeyValueStore, config: Settings | None = None) -> "CacheService":
        """Factory method to create CacheService with sensible defaults."""
        return cls(store=store, config=config)

    @staticmethod
    def normalize(prompt: str) -> str:
        """Derive the cache key for a prompt."""
        return normalize_prompt(prompt)

    @staticmethod
    def storage_key(key: str) -> str:
        return f"{ENTRY_PREFIX}{key}"

    async def lookup(self, prompt: str) -> CacheEntryEntity | None:
        """Find the entry for a prompt.

        Business logic:
        1. Normalize the prompt
        2. Read the record from the store
        3. Decode it; unreadable records count as a miss

        Args:
            prompt: Raw or normalized prompt

        Returns:
            CacheEntryEntity if found, None otherwise (including when the
            store is unavailable)
        """
        key = self.normalize(prompt)
        start_time = time.time()
        try:
            raw = self._store.get(self.storage_key(key))
        except CacheUnavailable as e:
            logger.warning("cache_read_failed", key=preview(key), error=str(e))
            return None

        if raw is None:
            logger.debug("cache_miss", key=preview(key))
            return None

        try:
            entry = decode_entry(raw)
        except ParseError as e:
            logger.warning("cache_entry_unreadable", key=preview(key), error=str(e))
            return None

        logger.debug(
            "cache_hit",
            key=preview(key),
            semantic=entry.is_semantic_variation,
            cluster=preview(entry.semantic_cluster),
            lookup_ms=round((time.time() - start_time) * 1000, 2),
        )
        return entry

    async def exists(self, prompt: str) -> bool:
        """Check if a prompt already has an entry."""
        return await self.lookup(prompt) is not None

    async def store(self, key: str, entry: CacheEntryEntity, ttl: int | None = None) -> bool:
        """Write an entry under a key (best-effort).

        Args:
            key: Prompt or key; normalized before writing
            entry: The entry to store
            ttl: Expiry in seconds. Defaults to settings.cache_ttl.

        Returns:
            True if written, False if the store rejected the write
        """
        normalized = self.normalize(key)
        try:
            self._store.put(
                self.storage_key(normalized),
                encode_entry(entry),
                ttl=ttl if ttl is not None else self._config.cache_ttl,
            )
        except CacheUnavailable as e:
            logger.warning("cache_write_failed", key=preview(normalized), error=str(e))
            return False
        return True

    async def put_strict(self, key: str, entry: CacheEntryEntity, ttl: int | None = None) -> None:
        """Write an entry, propagating store failures.

        Used where the caller reports per-item failures itself.

        Raises:
            CacheUnavailable: If the store rejects the write
        """
        self._store.put(
            self.storage_key(self.normalize(key)),
            encode_entry(entry),
            ttl=ttl if ttl is not None else self._config.cache_ttl,
        )

    def list_keys(self, limit: int | None = None, prefix: str = "") -> list[str]:
        """List normalized keys of cached entries.

        Args:
            limit: Maximum number of keys (None = all)
            prefix: Only keys whose normalized prompt starts with this

        Returns:
            Normalized keys

        Raises:
            CacheUnavailable: If the store cannot be listed
        """
        raw_keys = self._store.list_keys(prefix=self.storage_key(self.normalize(prefix)), limit=limit)
        return [key[len(ENTRY_PREFIX):] for key in raw_keys]

    async def get_many(self, keys: list[str]) -> dict[str, CacheEntryEntity]:
        """Fetch and decode several entries, skipping missing or unreadable ones.

        Raises:
            CacheUnavailable: If the store cannot be read
        """
        entries: dict[str, CacheEntryEntity] = {}
        for key in keys:
            raw = self._store.get(self.storage_key(key))
            if raw is None:
                continue
            try:
                entries[key] = decode_entry(raw)
            except ParseError as e:
                logger.warning("cache_entry_unreadable", key=preview(key), error=str(e))
        return entries

    def delete(self, prompt: str) -> bool:
        """Delete the entry for a prompt.

        Returns:
            True if deleted, False otherwise
        """
        return self._store.delete(self.storage_key(self.normalize(prompt)))

    def clear(self) -> int:
        """Delete every cache entry.

        Returns:
            Number of entries deleted
        """
        count = 0
        for key in self._store.list_keys(prefix=ENTRY_PREFIX):
            if self._store.delete(key):
                count += 1
        logger.info("cache_cleared", deleted=count)
        return count

    def count(self) -> int:
        return len(self._store.list_keys(prefix=ENTRY_PREFIX))

    def is_healthy(self) -> bool:
        return self._store.ping()

    @property
    def store_backend(self) -> KeyValueStore:
        """Get the underlying store (for services sharing it)."""
        return self._store
