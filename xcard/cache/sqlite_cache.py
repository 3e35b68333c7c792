"""SQLite-based cache implementation."""

import time
from pathlib import Path

import aiosqlite

from xcard.cache.base import CacheProvider
from xcard.exceptions import CacheError
from xcard.models.profile import Profile


class SQLiteCache(CacheProvider):
    """Persistent profile cache using aiosqlite; survives CLI invocations."""

    def __init__(self, db_path: str = ".xcard_cache.db", default_ttl: int = 300, max_entries: int = 100):
        """
        Initialize SQLite cache.

        Args:
            db_path: Path to SQLite database file
            default_ttl: Default TTL in seconds (5 minutes)
            max_entries: Capacity; oldest rows are evicted beyond it
        """
        self.db_path = Path(db_path)
        self.default_ttl = default_ttl
        self.max_entries = max_entries
        self._db: aiosqlite.Connection | None = None

    async def _ensure_db(self) -> aiosqlite.Connection:
        """Ensure database connection and schema exist."""
        if self._db is None:
            try:
                self._db = await aiosqlite.connect(self.db_path)
            except (aiosqlite.Error, OSError) as e:
                raise CacheError(f"Cannot open cache database {self.db_path}: {e}") from e
            await self._db.execute("""
                CREATE TABLE IF NOT EXISTS profiles (
                    cache_key TEXT PRIMARY KEY,
                    profile_json TEXT NOT NULL,
                    created_at REAL NOT NULL,
                    expires_at REAL NOT NULL
                )
            """)
            await self._db.execute(
                "CREATE INDEX IF NOT EXISTS idx_profiles_created ON profiles(created_at)"
            )
            await self._db.commit()
        return self._db

    async def get(self, key: str) -> Profile | None:
        """Retrieve cached profile, None if miss or expired."""
        db = await self._ensure_db()
        async with db.execute(
            "SELECT profile_json FROM profiles WHERE cache_key = ? AND expires_at > ?",
            (key.lower(), time.time()),
        ) as cursor:
            row = await cursor.fetchone()

        if row is None:
            return None
        return Profile.model_validate_json(row[0])

    async def set(self, key: str, profile: Profile, ttl_seconds: int | None = None) -> None:
        """Store profile, then trim expired rows and anything beyond capacity."""
        db = await self._ensure_db()
        now = time.time()
        ttl = ttl_seconds if ttl_seconds is not None else self.default_ttl

        await db.execute(
            """
            INSERT OR REPLACE INTO profiles (cache_key, profile_json, created_at, expires_at)
            VALUES (?, ?, ?, ?)
            """,
            (key.lower(), profile.model_dump_json(), now, now + ttl),
        )
        await db.execute("DELETE FROM profiles WHERE expires_at <= ?", (now,))
        await db.execute(
            """
            DELETE FROM profiles WHERE cache_key NOT IN (
                SELECT cache_key FROM profiles ORDER BY created_at DESC LIMIT ?
            )
            """,
            (self.max_entries,),
        )
        await db.commit()

    async def invalidate(self, key: str) -> None:
        db = await self._ensure_db()
        await db.execute("DELETE FROM profiles WHERE cache_key = ?", (key.lower(),))
        await db.commit()

    async def clear(self) -> None:
        db = await self._ensure_db()
        await db.execute("DELETE FROM profiles")
        await db.commit()

    async def size(self) -> int:
        db = await self._ensure_db()
        async with db.execute(
            "SELECT COUNT(*) FROM profiles WHERE expires_at > ?", (time.time(),)
        ) as cursor:
            row = await cursor.fetchone()
        return row[0]

    async def close(self) -> None:
        """Close database connection."""
        if self._db is not None:
            await self._db.close()
            self._db = None
