"""Keyed in-memory stores with an explicit get/put/evict interface.

Architectural role:
    Replaces hidden module-level maps with injectable collaborators:
    - `InMemoryStore`: plain keyed store (user histories).
    - `BoundedExpiringStore`: keyed store with a capacity bound and a TTL
      (offline cache collections).

Eviction policy (`BoundedExpiringStore`):
    - Capacity: after an insert that overflows the bound, entries are ordered by
      their timestamp ascending and only the newest `capacity` are kept.
    - Expiry: an entry is stale once its timestamp is older than `ttl` from
      `clock()`. Stale entries are hidden from `get`/`values` and removed by
      `purge_expired`.

Thread safety:
    Mutations and read snapshots are guarded by a `threading.Lock`, so stores can
    be shared between request handlers running in worker threads.
"""

import threading
from datetime import datetime, timedelta
from typing import Callable, Generic, Iterable, Protocol, TypeVar

from whyforge.core.types import utcnow


K = TypeVar("K")
V = TypeVar("V")


class KeyValueStore(Protocol[K, V]):
    def get(self, key: K) -> V | None:
        ...

    def put(self, key: K, value: V) -> None:
        ...

    def evict(self, key: K) -> V | None:
        ...


class InMemoryStore(Generic[K, V]):
    def __init__(self) -> None:
        self._items: dict = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, key) -> bool:
        return key in self._items

    def get(self, key: K) -> V | None:
        return self._items.get(key)

    def put(self, key: K, value: V) -> None:
        with self._lock:
            self._items[key] = value

    def evict(self, key: K) -> V | None:
        with self._lock:
            return self._items.pop(key, None)

    def values(self) -> list[V]:
        with self._lock:
            return list(self._items.values())


class BoundedExpiringStore(Generic[K, V]):
    """Keyed store with newest-N capacity and timestamp-based expiry.

    Args:
        capacity: Maximum number of entries retained.
        ttl: Lifetime of an entry measured from its timestamp.
        timestamp_of: Extracts the timestamp (e.g. `cached_at`) from a value.
        clock: Returns the current time; injectable for tests.
    """

    def __init__(
        self,
        capacity: int,
        ttl: timedelta,
        timestamp_of: Callable[[V], datetime],
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self.ttl = ttl
        self._timestamp_of = timestamp_of
        self._clock = clock
        self._items: dict = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._items)

    def is_expired(self, value: V) -> bool:
        return self._timestamp_of(value) < self._clock() - self.ttl

    def get(self, key: K) -> V | None:
        with self._lock:
            value = self._items.get(key)
        if value is None or self.is_expired(value):
            return None
        return value

    def put(self, key: K, value: V) -> None:
        with self._lock:
            self._items[key] = value
            self._enforce_capacity()

    def put_many(self, items: Iterable[tuple[K, V]]) -> None:
        with self._lock:
            for key, value in items:
                self._items[key] = value
            self._enforce_capacity()

    def evict(self, key: K) -> V | None:
        with self._lock:
            return self._items.pop(key, None)

    def values(self) -> list[V]:
        """Non-expired values in insertion order."""
        return [value for value in self._snapshot() if not self.is_expired(value)]

    def all_values(self) -> list[V]:
        """Every stored value, including stale ones."""
        return self._snapshot()

    def expired_count(self) -> int:
        return sum(1 for value in self._snapshot() if self.is_expired(value))

    def purge_expired(self) -> int:
        with self._lock:
            stale = [key for key, value in self._items.items() if self.is_expired(value)]
            for key in stale:
                del self._items[key]
        return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def _snapshot(self) -> list[V]:
        with self._lock:
            return list(self._items.values())

    def _enforce_capacity(self) -> None:
        if len(self._items) <= self.capacity:
            return
        ordered = sorted(self._items.items(), key=lambda item: self._timestamp_of(item[1]))
        self._items = dict(ordered[-self.capacity:])
