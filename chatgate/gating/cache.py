"""Response cache keyed by normalized message text.

Messages that normalize to the same text ("Hello" and "  hello  " under
the default rule) share one entry, so a repeated question is answered
without calling the completion provider.
"""

import hashlib
from dataclasses import dataclass

from chatgate.state.base import KeyValueStore

DEFAULT_TTL_SECONDS = 300.0

NORMALIZATION_RULES = ("trim_casefold", "trim", "exact")


def normalize_message(message: str, rule: str = "trim_casefold") -> str:
    if rule == "trim_casefold":
        return message.strip().casefold()
    if rule == "trim":
        return message.strip()
    if rule == "exact":
        return message
    raise ValueError(f"Unknown cache key normalization: {rule}")


def cache_key(message: str, rule: str = "trim_casefold") -> str:
    """Fixed-length store key for a message.

    Hashing keeps keys within backend size limits and keeps raw user text
    out of the key space.
    """
    digest = hashlib.sha256(normalize_message(message, rule).encode("utf-8")).hexdigest()
    return f"chat:{digest}"


@dataclass
class CacheLookup:
    hit: bool
    value: str | None = None


class ResponseCache:
    """Read-through cache for completed responses."""

    def __init__(
        self,
        store: KeyValueStore,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        normalization: str = "trim_casefold",
        enabled: bool = True,
    ):
        if normalization not in NORMALIZATION_RULES:
            raise ValueError(f"Unknown cache key normalization: {normalization}")
        self._store = store
        self.ttl_seconds = ttl_seconds
        self.normalization = normalization
        self.enabled = enabled

    def key_for(self, message: str) -> str:
        return cache_key(message, self.normalization)

    async def lookup(self, message: str, now: float) -> CacheLookup:
        if not self.enabled:
            return CacheLookup(hit=False)

        value = await self._store.get(self.key_for(message), now)
        if value is None:
            return CacheLookup(hit=False)
        return CacheLookup(hit=True, value=value)

    async def store(self, message: str, value: str, now: float) -> None:
        """Cache a completed response, overwriting any previous entry."""
        if not self.enabled:
            return
        await self._store.set(self.key_for(message), value, self.ttl_seconds, now)

    async def close(self) -> None:
        await self._store.close()
