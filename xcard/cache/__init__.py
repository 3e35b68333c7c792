"""Profile cache backends."""

from xcard.cache.base import CacheProvider
from xcard.cache.memory_cache import MemoryCache
from xcard.cache.sqlite_cache import SQLiteCache
from xcard.config import CacheBackend, CardConfig


def create_cache(config: CardConfig) -> CacheProvider | None:
    """Build the cache backend selected in config, or None when caching is off."""
    if config.cache_backend == CacheBackend.NONE:
        return None
    if config.cache_backend == CacheBackend.SQLITE:
        return SQLiteCache(config.sqlite_path, config.cache_ttl_seconds, config.cache_max_entries)
    return MemoryCache(config.cache_ttl_seconds, config.cache_max_entries)


__all__ = ["CacheProvider", "MemoryCache", "SQLiteCache", "create_cache"]
