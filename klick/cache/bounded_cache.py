import threading
from collections import OrderedDict
from typing import Generic, Hashable, List, Optional, Tuple, TypeVar

from ..utils.exceptions import CacheError

V = TypeVar("V")


class BoundedCache(Generic[V]):
    """Least-recently-used cache bounded by item count and total cost.

    All methods are thread-safe. ``set`` reports which keys left the cache
    so owners can keep secondary indexes in sync.
    """

    def __init__(self, name: str, count_limit: int, cost_limit: int):
        if count_limit < 1 or cost_limit < 1:
            raise CacheError(
                "count_limit and cost_limit must be positive",
                details={'name': name, 'count_limit': count_limit, 'cost_limit': cost_limit},
            )

        self.name = name
        self.count_limit = count_limit
        self.cost_limit = cost_limit

        self._entries: "OrderedDict[Hashable, Tuple[V, int]]" = OrderedDict()
        self._total_cost = 0
        self._lock = threading.Lock()

        self.hits = 0
        self.misses = 0
        self.evictions = 0

    def get(self, key: Hashable) -> Optional[V]:
        """Value for ``key`` (marking it most recently used) or None"""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return None
            self._entries.move_to_end(key)
            self.hits += 1
            return entry[0]

    def set(self, key: Hashable, value: V, cost: int) -> List[Hashable]:
        """
        Insert or replace ``key``.

        Returns:
            Keys no longer cached because of this call, oldest first. An
            entry costlier than the whole budget is rejected, so ``key``
            itself is returned.
        """
        cost = max(0, int(cost))
        removed: List[Hashable] = []

        with self._lock:
            previous = self._entries.pop(key, None)
            if previous is not None:
                self._total_cost -= previous[1]

            if cost > self.cost_limit:
                return [key]

            self._entries[key] = (value, cost)
            self._total_cost += cost

            while len(self._entries) > self.count_limit or self._total_cost > self.cost_limit:
                old_key, (_, old_cost) = self._entries.popitem(last=False)
                self._total_cost -= old_cost
                self.evictions += 1
                removed.append(old_key)

        return removed

    def delete(self, key: Hashable) -> bool:
        with self._lock:
            entry = self._entries.pop(key, None)
            if entry is None:
                return False
            self._total_cost -= entry[1]
            return True

    def clear(self) -> int:
        """Drop every entry and return how many there were"""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            self._total_cost = 0
            return count

    def keys(self) -> List[Hashable]:
        """Snapshot of keys, least recently used first"""
        with self._lock:
            return list(self._entries.keys())

    def __contains__(self, key: Hashable) -> bool:
        # membership does not refresh recency
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    @property
    def total_cost(self) -> int:
        with self._lock:
            return self._total_cost

    def stats(self) -> dict:
        with self._lock:
            return {
                'name': self.name,
                'count': len(self._entries),
                'cost_bytes': self._total_cost,
                'count_limit': self.count_limit,
                'cost_limit_bytes': self.cost_limit,
                'hits': self.hits,
                'misses': self.misses,
                'evictions': self.evictions,
            }
