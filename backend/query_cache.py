"""
Query result cache

Keyed by tuples whose first element names the bucket, e.g.
("incidents", employer_id, page). Invalidating a bucket drops every key in
it, so list and count views reload on their next read.
"""

import logging
import threading
from typing import Any, Awaitable, Callable, Dict, Hashable, Iterable, Tuple

logger = logging.getLogger(__name__)

# Buckets that list or count incidents
INCIDENT_LIST_BUCKETS = ("incidents", "incidents-count", "dashboard")

_MISSING = object()


class QueryCache:
    def __init__(self):
        self._entries: Dict[Tuple[Hashable, ...], Any] = {}
        self._lock = threading.Lock()

    def get(self, key: Tuple[Hashable, ...], default: Any = None) -> Any:
        with self._lock:
            return self._entries.get(key, default)

    def set(self, key: Tuple[Hashable, ...], value: Any) -> None:
        with self._lock:
            self._entries[key] = value

    def __contains__(self, key) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    async def get_or_load(self, key: Tuple[Hashable, ...], loader: Callable[[], Awaitable[Any]]) -> Any:
        value = self.get(key, _MISSING)
        if value is _MISSING:
            value = await loader()
            self.set(key, value)
        return value

    def invalidate(self, bucket: str) -> int:
        """Drop every entry in one bucket; returns how many were dropped"""
        with self._lock:
            stale = [key for key in self._entries if key and key[0] == bucket]
            for key in stale:
                del self._entries[key]
        if stale:
            logger.debug(f"Invalidated {len(stale)} cached queries in '{bucket}'")
        return len(stale)

    def invalidate_many(self, buckets: Iterable[str]) -> int:
        return sum(self.invalidate(bucket) for bucket in buckets)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


# Process-wide cache shared by the HTTP routes
query_cache = QueryCache()
