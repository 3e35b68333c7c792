"""In-process TTL cache with oldest-entry eviction."""

import time
from collections import OrderedDict
from typing import Callable

from xcard.cache.base import CacheProvider
from xcard.models.profile import Profile


class MemoryCache(CacheProvider):
    """Dict-backed cache; single-threaded use only, so no locking."""

    def __init__(
        self,
        default_ttl: int = 300,
        max_entries: int = 100,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            default_ttl: Default TTL in seconds (5 minutes)
            max_entries: Capacity; the oldest insertion is evicted beyond it
            clock: Time source, injectable for tests
        """
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.default_ttl = default_ttl
        self.max_entries = max_entries
        self._clock = clock
        # key -> (expires_at, profile), in insertion order
        self._entries: OrderedDict[str, tuple[float, Profile]] = OrderedDict()

    def _purge_expired(self) -> None:
        now = self._clock()
        for key in [k for k, (expires_at, _) in self._entries.items() if expires_at <= now]:
            del self._entries[key]

    async def get(self, key: str) -> Profile | None:
        entry = self._entries.get(key.lower())
        if entry is None:
            return None
        expires_at, profile = entry
        if expires_at <= self._clock():
            del self._entries[key.lower()]
            return None
        return profile

    async def set(self, key: str, profile: Profile, ttl_seconds: int | None = None) -> None:
        ttl = ttl_seconds if ttl_seconds is not None else self.default_ttl
        key = key.lower()
        self._entries.pop(key, None)
        self._purge_expired()
        while len(self._entries) >= self.max_entries:
            self._entries.popitem(last=False)
        self._entries[key] = (self._clock() + ttl, profile)

    async def invalidate(self, key: str) -> None:
        self._entries.pop(key.lower(), None)

    async def clear(self) -> None:
        self._entries.clear()

    async def size(self) -> int:
        self._purge_expired()
        return len(self._entries)
