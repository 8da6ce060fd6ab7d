"""Key-value storage protocol.

Defines the interface for the backing store behind the image cache,
session analytics and cluster metadata. The store is assumed to be
eventually consistent: no transactions, no compare-and-swap, last write
wins.

Implementations can include:
- Redis (default)
- In-process dictionary (development and tests)
- Any other KV service offering get/put/delete/list with expiry
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class KeyValueStore(Protocol):
    """Protocol for key-value storage backends.

    Any type implementing these methods satisfies the protocol, no explicit
    inheritance needed. Implementations raise ``CacheUnavailable`` when the
    backend cannot be reached.

    Example:
        ```python
        from storyboard_cache.protocols import KeyValueStore

        store: KeyValueStore = RedisKeyValueStore.create()
        store: KeyValueStore = InMemoryKeyValueStore()
        ```
    """

    def get(self, key: str) -> str | None:
        """Read a value.

        Args:
            key: The key to read

        Returns:
            The stored value, or None if absent or expired
        """
        ...

    def put(self, key: str, value: str, ttl: int | None = None) -> None:
        """Write a value, replacing any previous one.

        Args:
            key: The key to write
            value: Serialized value
            ttl: Optional time-to-live in seconds (None = no expiry)
        """
        ...

    def delete(self, key: str) -> bool:
        """Delete a key.

        Args:
            key: The key to delete

        Returns:
            True if a value was deleted, False otherwise
        """
        ...

    def list_keys(self, prefix: str = "", limit: int | None = None) -> list[str]:
        """List keys, optionally filtered by prefix.

        Args:
            prefix: Only return keys starting with this prefix
            limit: Maximum number of keys to return (None = all)

        Returns:
            Matching keys in no guaranteed order
        """
        ...

    def ping(self) -> bool:
        """Check if the store is reachable.

        Returns:
            True if healthy, False otherwise
        """
        ...
