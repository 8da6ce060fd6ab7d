"""In-process implementation of KeyValueStore.

Used for local development without Redis and as the store behind the test
suite. Expiry is evaluated lazily on access.
"""

import threading
import time
from collections.abc import Callable


class InMemoryKeyValueStore:
    """Dictionary-backed store with per-key expiry.

    Satisfies the KeyValueStore protocol. Thread-safe, since writes may
    come from worker threads.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        """Initialize the store.

        Args:
            clock: Monotonic time source, injectable for expiry tests.
        """
        self._data: dict[str, tuple[str, float | None]] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def _live(self, key: str) -> str | None:
        item = self._data.get(key)
        if item is None:
            return None
        value, expires_at = item
        if expires_at is not None and self._clock() >= expires_at:
            del self._data[key]
            return None
        return value

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._live(key)

    def put(self, key: str, value: str, ttl: int | None = None) -> None:
        expires_at = self._clock() + ttl if ttl else None
        with self._lock:
            self._data[key] = (value, expires_at)

    def delete(self, key: str) -> bool:
        with self._lock:
            present = self._live(key) is not None
            self._data.pop(key, None)
            return present

    def list_keys(self, prefix: str = "", limit: int | None = None) -> list[str]:
        with self._lock:
            keys = [key for key in list(self._data) if key.startswith(prefix) and self._live(key) is not None]
        return keys[:limit] if limit is not None else keys

    def ping(self) -> bool:
        return True

    def __len__(self) -> int:
        return len(self.list_keys())
