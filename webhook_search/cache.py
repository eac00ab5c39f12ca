"""
Bounded memoization caches.

Both the JSONPath cache and the result cache evict the oldest-inserted
key when full. Reading a key does not refresh its position, so a hot key
can be evicted while colder ones remain.
"""

from collections import OrderedDict
from typing import Any, FrozenSet, Generic, Hashable, Optional, Tuple, TypeVar

from .models import FilterSpec


V = TypeVar('V')


class FifoCache(Generic[V]):
    """Size-bounded mapping with first-in, first-out eviction."""

    def __init__(self, max_size: int):
        if max_size < 1:
            raise ValueError(f"Cache size must be positive, got {max_size}")
        self.max_size = max_size
        self._data: 'OrderedDict[Hashable, V]' = OrderedDict()
        self.hits = 0
        self.misses = 0
        self.evictions = 0

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._data

    def lookup(self, key: Hashable) -> Tuple[bool, Optional[V]]:
        """Return (found, value); distinguishes a cached None from a miss."""
        if key in self._data:
            self.hits += 1
            return True, self._data[key]
        self.misses += 1
        return False, None

    def get(self, key: Hashable) -> Optional[V]:
        return self.lookup(key)[1]

    def put(self, key: Hashable, value: V) -> None:
        """Store a value, evicting the oldest key once over capacity.

        Re-putting an existing key replaces the value in place.
        """
        self._data[key] = value
        while len(self._data) > self.max_size:
            self._data.popitem(last=False)
            self.evictions += 1

    def clear(self) -> None:
        self._data.clear()

    def stats(self) -> dict:
        return {
            'size': len(self._data),
            'max_size': self.max_size,
            'hits': self.hits,
            'misses': self.misses,
            'evictions': self.evictions,
        }


class ResultCache:
    """Memoizes query results keyed by the serialized filter.

    The key also carries the number of entries known at evaluation time so
    that a result computed before new entries arrived is never reused.
    """

    def __init__(self, max_size: int = 100):
        self._cache: FifoCache[FrozenSet[int]] = FifoCache(max_size)

    def __len__(self) -> int:
        return len(self._cache)

    @staticmethod
    def _key(spec: FilterSpec, entry_count: int) -> Any:
        return (entry_count, spec.cache_key())

    def get(self, spec: FilterSpec, entry_count: int) -> Optional[FrozenSet[int]]:
        return self._cache.get(self._key(spec, entry_count))

    def put(self, spec: FilterSpec, entry_count: int, ids: FrozenSet[int]) -> None:
        self._cache.put(self._key(spec, entry_count), ids)

    def clear(self) -> None:
        self._cache.clear()

    def stats(self) -> dict:
        return self._cache.stats()
