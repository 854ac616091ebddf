"""Key-value store abstraction for rate limit counters and cached responses."""

from abc import ABC, abstractmethod


class KeyValueStore(ABC):
    """String-keyed store with per-key expiry.

    All times are epoch seconds supplied by the caller, so a store never
    reads the clock itself. An entry with `now >= expires_at` is absent.
    """

    @abstractmethod
    async def get(self, key: str, now: float) -> str | None:
        """Return the live value for key, or None if missing or expired."""
        ...

    @abstractmethod
    async def set(self, key: str, value: str, ttl: float, now: float) -> None:
        """Store value under key, overwriting any existing entry."""
        ...

    @abstractmethod
    async def incr(self, key: str, ttl: float, now: float) -> tuple[int, float]:
        """Atomically increment a counter, starting a new one if expired.

        A fresh counter starts at 1 and expires at `now + ttl`. An existing
        live counter keeps its expiry.

        Returns:
            (count after increment, expires_at)
        """
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...

    async def close(self) -> None:
        """Cleanup resources. Override if the store holds connections."""
        pass
