"""Profile cache interface."""

from abc import ABC, abstractmethod

from xcard.models.profile import Profile


class CacheProvider(ABC):
    """
    Bounded cache of assembled profiles, keyed by canonical profile URL.

    Keys are lowercased before use, so x.com/Alice and x.com/alice share
    an entry.
    """

    @abstractmethod
    async def get(self, key: str) -> Profile | None:
        """
        Retrieve a cached profile.

        Args:
            key: Canonical profile URL

        Returns:
            Cached Profile or None if miss/expired
        """
        ...

    @abstractmethod
    async def set(self, key: str, profile: Profile, ttl_seconds: int | None = None) -> None:
        """
        Store a profile, evicting the oldest entry when at capacity.

        Args:
            key: Canonical profile URL
            profile: Profile to cache
            ttl_seconds: Optional TTL override
        """
        ...

    @abstractmethod
    async def invalidate(self, key: str) -> None:
        """Remove one entry."""
        ...

    @abstractmethod
    async def clear(self) -> None:
        """Clear all cached entries."""
        ...

    @abstractmethod
    async def size(self) -> int:
        """Number of live (unexpired) entries."""
        ...

    async def close(self) -> None:
        """Release connections and resources."""

    async def __aenter__(self) -> "CacheProvider":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
