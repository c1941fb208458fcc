"""
In-process memory cache.

Per-process LRU cache with a TTL on every entry, for values that are read
on most requests and change rarely, such as restaurant loyalty
configuration. Writers delete the entry; other processes see the change
once their copy expires.
"""

import time
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Hashable, Optional, Tuple
from collections import OrderedDict

logger = logging.getLogger(__name__)


class LRUCache:
    """LRU cache with TTL expiry, shared by the coroutines of one event loop."""

    def __init__(self, max_size: int = 1000, ttl_seconds: int = 60):
        self.max_size = max_size
        self.ttl_seconds = ttl_seconds
        self._entries: "OrderedDict[Hashable, Tuple[Any, float]]" = OrderedDict()
        self._lock = asyncio.Lock()
        self.stats = {"hits": 0, "misses": 0, "evictions": 0, "expirations": 0}

    async def get(self, key: Hashable) -> Optional[Any]:
        """Cached value, or None when missing or expired."""
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.stats["misses"] += 1
                return None

            value, expires_at = entry
            if time.monotonic() > expires_at:
                del self._entries[key]
                self.stats["expirations"] += 1
                self.stats["misses"] += 1
                return None

            self._entries.move_to_end(key)
            self.stats["hits"] += 1
            return value

    async def set(self, key: Hashable, value: Any, ttl: Optional[int] = None) -> None:
        async with self._lock:
            self._entries.pop(key, None)
            while len(self._entries) >= self.max_size:
                evicted, _ = self._entries.popitem(last=False)
                self.stats["evictions"] += 1
                logger.debug(f"Evicted cache entry {evicted!r}")

            self._entries[key] = (value, time.monotonic() + (ttl or self.ttl_seconds))

    async def get_or_load(self, key: Hashable, loader: Callable[[], Awaitable[Any]]) -> Any:
        """
        Cached value for ``key``, calling ``loader`` on a miss.

        The lock is not held while loading, so two coroutines missing at
        once may both load; the later result wins.
        """
        value = await self.get(key)
        if value is None:
            value = await loader()
            await self.set(key, value)
        return value

    async def delete(self, key: Hashable) -> bool:
        async with self._lock:
            return self._entries.pop(key, None) is not None

    async def clear(self) -> None:
        async with self._lock:
            self._entries.clear()

    def get_stats(self) -> Dict[str, Any]:
        lookups = self.stats["hits"] + self.stats["misses"]
        hit_rate = self.stats["hits"] / lookups * 100 if lookups else 0

        return {
            **self.stats,
            "size": len(self._entries),
            "max_size": self.max_size,
            "hit_rate": f"{hit_rate:.2f}%",
        }
