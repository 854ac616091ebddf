"""Process-local key-value store with a bounded entry count."""

from chatgate.state.base import KeyValueStore

DEFAULT_MAX_ENTRIES = 1000


class InMemoryKeyValueStore(KeyValueStore):
    """Dict-backed store. One instance per process, shared by all requests.

    Updates never suspend, so under the event loop each operation is
    atomic with respect to other requests.
    """

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self._max_entries = max_entries
        # key -> (value, expires_at); insertion order doubles as eviction order
        self._entries: dict[str, tuple[str | int, float]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def _live(self, key: str, now: float) -> tuple[str | int, float] | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if now >= entry[1]:
            del self._entries[key]
            return None
        return entry

    def _make_room(self, now: float) -> None:
        """Sweep expired entries, then drop the oldest until a new key fits."""
        if len(self._entries) < self._max_entries:
            return
        expired = [k for k, (_, expires_at) in self._entries.items() if now >= expires_at]
        for k in expired:
            del self._entries[k]
        while len(self._entries) >= self._max_entries:
            del self._entries[next(iter(self._entries))]

    def _put(self, key: str, value: str | int, expires_at: float, now: float) -> None:
        if key in self._entries:
            # Re-insert so the key moves to the young end of the eviction order
            del self._entries[key]
        else:
            self._make_room(now)
        self._entries[key] = (value, expires_at)

    async def get(self, key: str, now: float) -> str | None:
        entry = self._live(key, now)
        if entry is None:
            return None
        return str(entry[0])

    async def set(self, key: str, value: str, ttl: float, now: float) -> None:
        self._put(key, value, now + ttl, now)

    async def incr(self, key: str, ttl: float, now: float) -> tuple[int, float]:
        entry = self._live(key, now)
        if entry is None:
            expires_at = now + ttl
            self._put(key, 1, expires_at, now)
            return 1, expires_at

        count, expires_at = int(entry[0]) + 1, entry[1]
        self._entries[key] = (count, expires_at)
        return count, expires_at

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def close(self) -> None:
        self._entries.clear()
