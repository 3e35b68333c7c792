"""Unit tests for cache implementations - no internet."""

from datetime import datetime

import pytest

from xcard.cache import MemoryCache, SQLiteCache, create_cache
from xcard.config import CacheBackend, CardConfig
from xcard.exceptions import CacheError
from xcard.models.profile import Profile


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def make_profile(username: str = "alice", **overrides) -> Profile:
    data = {
        "username": username,
        "display_name": username.title(),
        "bio": "Builds things.",
        "avatar_url": f"https://pbs.twimg.com/profile_images/1/{username}_400x400.jpg",
        "verified": True,
        "follower_count": 1200,
        "following_count": 321,
        "profile_url": f"https://x.com/{username}",
        "extracted_at": datetime(2024, 1, 1, 12, 0),
    }
    data.update(overrides)
    return Profile(**data)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def memory_cache(clock):
    return MemoryCache(default_ttl=60, max_entries=3, clock=clock)


@pytest.fixture
def sqlite_cache(tmp_path):
    """Create a temporary SQLite cache for testing."""
    return SQLiteCache(str(tmp_path / "test_cache.db"), default_ttl=60, max_entries=3)


class TestMemoryCache:
    @pytest.mark.asyncio
    async def test_miss_returns_none(self, memory_cache):
        assert await memory_cache.get("https://x.com/nobody") is None

    @pytest.mark.asyncio
    async def test_set_and_get(self, memory_cache):
        profile = make_profile()
        await memory_cache.set("https://x.com/alice", profile)
        assert await memory_cache.get("https://x.com/alice") == profile

    @pytest.mark.asyncio
    async def test_keys_case_insensitive(self, memory_cache):
        await memory_cache.set("https://x.com/Alice", make_profile())
        assert await memory_cache.get("https://x.com/alice") is not None

    @pytest.mark.asyncio
    async def test_entry_expires(self, memory_cache, clock):
        await memory_cache.set("https://x.com/alice", make_profile())
        clock.now += 59
        assert await memory_cache.get("https://x.com/alice") is not None
        clock.now += 1
        assert await memory_cache.get("https://x.com/alice") is None

    @pytest.mark.asyncio
    async def test_ttl_override(self, memory_cache, clock):
        await memory_cache.set("https://x.com/alice", make_profile(), ttl_seconds=5)
        clock.now += 6
        assert await memory_cache.get("https://x.com/alice") is None

    @pytest.mark.asyncio
    async def test_oldest_evicted_at_capacity(self, memory_cache):
        for name in ("a1", "b2", "c3", "d4"):
            await memory_cache.set(f"https://x.com/{name}", make_profile(name))
        assert await memory_cache.get("https://x.com/a1") is None
        assert await memory_cache.get("https://x.com/d4") is not None
        assert await memory_cache.size() == 3

    @pytest.mark.asyncio
    async def test_expired_purged_before_evicting(self, memory_cache, clock):
        await memory_cache.set("https://x.com/old", make_profile("old"), ttl_seconds=1)
        await memory_cache.set("https://x.com/b2", make_profile("b2"))
        await memory_cache.set("https://x.com/c3", make_profile("c3"))
        clock.now += 2
        await memory_cache.set("https://x.com/d4", make_profile("d4"))
        # The expired entry made room, so nothing live was evicted
        assert await memory_cache.get("https://x.com/b2") is not None
        assert await memory_cache.size() == 3

    @pytest.mark.asyncio
    async def test_invalidate_and_clear(self, memory_cache):
        await memory_cache.set("https://x.com/alice", make_profile())
        await memory_cache.set("https://x.com/bob", make_profile("bob"))
        await memory_cache.invalidate("https://x.com/ALICE")
        assert await memory_cache.get("https://x.com/alice") is None
        await memory_cache.clear()
        assert await memory_cache.size() == 0

    def test_capacity_must_be_positive(self):
        with pytest.raises(ValueError):
            MemoryCache(max_entries=0)


class TestSQLiteCache:
    @pytest.mark.asyncio
    async def test_cache_miss_returns_none(self, sqlite_cache):
        async with sqlite_cache:
            assert await sqlite_cache.get("https://x.com/nobody") is None

    @pytest.mark.asyncio
    async def test_roundtrip_preserves_fields(self, sqlite_cache):
        profile = make_profile()
        async with sqlite_cache:
            await sqlite_cache.set("https://x.com/Alice", profile)
            retrieved = await sqlite_cache.get("https://x.com/alice")
        assert retrieved == profile

    @pytest.mark.asyncio
    async def test_expired_entry_is_miss(self, sqlite_cache):
        async with sqlite_cache:
            await sqlite_cache.set("https://x.com/alice", make_profile(), ttl_seconds=-1)
            assert await sqlite_cache.get("https://x.com/alice") is None
            assert await sqlite_cache.size() == 0

    @pytest.mark.asyncio
    async def test_capacity_bounded(self, sqlite_cache):
        async with sqlite_cache:
            for name in ("a1", "b2", "c3", "d4", "e5"):
                await sqlite_cache.set(f"https://x.com/{name}", make_profile(name))
            assert await sqlite_cache.size() == 3

    @pytest.mark.asyncio
    async def test_persists_across_connections(self, tmp_path):
        path = str(tmp_path / "persist.db")
        async with SQLiteCache(path) as cache:
            await cache.set("https://x.com/alice", make_profile())
        async with SQLiteCache(path) as cache:
            assert (await cache.get("https://x.com/alice")).username == "alice"

    @pytest.mark.asyncio
    async def test_invalidate_and_clear(self, sqlite_cache):
        async with sqlite_cache:
            await sqlite_cache.set("https://x.com/alice", make_profile())
            await sqlite_cache.set("https://x.com/bob", make_profile("bob"))
            await sqlite_cache.invalidate("https://x.com/alice")
            assert await sqlite_cache.size() == 1
            await sqlite_cache.clear()
            assert await sqlite_cache.size() == 0

    @pytest.mark.asyncio
    async def test_unopenable_path_raises_cache_error(self, tmp_path):
        cache = SQLiteCache(str(tmp_path / "missing" / "dir" / "cache.db"))
        with pytest.raises(CacheError):
            await cache.get("https://x.com/alice")


class TestCreateCache:
    def test_memory_default(self):
        assert isinstance(create_cache(CardConfig()), MemoryCache)

    def test_sqlite(self, tmp_path):
        config = CardConfig(cache_backend=CacheBackend.SQLITE, sqlite_path=str(tmp_path / "c.db"))
        cache = create_cache(config)
        assert isinstance(cache, SQLiteCache)
        assert cache.db_path == tmp_path / "c.db"

    def test_disabled(self):
        assert create_cache(CardConfig(cache_backend=CacheBackend.NONE)) is None
