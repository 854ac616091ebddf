"""Per-client rate limiting.

Two policies, picked by RATE_LIMIT_POLICY:

- sliding (default): timestamps of recent requests are kept in a deque per
  client and entries older than the window are pruned on each check. No
  W-length interval ever admits more than N requests. Process-local.
- fixed: a counter per client that starts with the client's first request
  and resets when its window expires. Built on the key-value store's atomic
  increment, so it works across instances, but a burst that straddles a
  reset can admit up to 2N requests within one window length.

Denial is a normal result (`allowed=False`), not an exception. The result
carries the metadata for the X-RateLimit-* response headers.
"""

from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass

from chatgate.config.settings import Settings
from chatgate.state.base import KeyValueStore
from chatgate.state.memory import InMemoryKeyValueStore

DEFAULT_MAX_REQUESTS = 10
DEFAULT_WINDOW_SECONDS = 60.0
DEFAULT_MAX_CLIENTS = 10_000


@dataclass
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_seconds: float


class RateLimiter(ABC):
    """Decides whether a client's next request may proceed."""

    def __init__(self, limit: int = DEFAULT_MAX_REQUESTS, window_seconds: float = DEFAULT_WINDOW_SECONDS):
        if limit < 1:
            raise ValueError("limit must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.limit = limit
        self.window_seconds = window_seconds

    @abstractmethod
    async def allow(self, client_id: str, now: float) -> RateLimitResult:
        """Check the client's quota and record the request if admitted."""
        ...

    @abstractmethod
    async def reset(self, client_id: str) -> None:
        """Clear rate limit state for a client."""
        ...

    async def close(self) -> None:
        pass


class SlidingWindowRateLimiter(RateLimiter):
    """In-memory sliding window over per-client timestamp deques.

    At most `max_clients` clients are tracked. When a new client would
    exceed that, clients whose timestamps have all left the window are
    swept first, then the least recently seen clients are dropped.
    """

    def __init__(
        self,
        limit: int = DEFAULT_MAX_REQUESTS,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        max_clients: int = DEFAULT_MAX_CLIENTS,
    ):
        super().__init__(limit, window_seconds)
        if max_clients < 1:
            raise ValueError("max_clients must be at least 1")
        self.max_clients = max_clients
        # Key: client_id, Value: deque of admitted request timestamps.
        # Ordered by most recent request.
        self._client_windows: dict[str, deque[float]] = {}

    async def allow(self, client_id: str, now: float) -> RateLimitResult:
        window_start = now - self.window_seconds
        window = self._client_windows.pop(client_id, None)
        if window is None:
            window = deque()

        # Prune expired timestamps from the left
        while window and window[0] < window_start:
            window.popleft()

        if len(window) >= self.limit:
            self._client_windows[client_id] = window
            # Calculate when the oldest request in the window expires
            reset = window[0] + self.window_seconds - now
            return RateLimitResult(
                allowed=False,
                limit=self.limit,
                remaining=0,
                reset_seconds=round(reset, 1),
            )

        if len(self._client_windows) >= self.max_clients:
            self._make_room(window_start)

        window.append(now)
        self._client_windows[client_id] = window
        reset = window[0] + self.window_seconds - now

        return RateLimitResult(
            allowed=True,
            limit=self.limit,
            remaining=max(0, self.limit - len(window)),
            reset_seconds=round(reset, 1),
        )

    def _make_room(self, window_start: float) -> None:
        stale = [cid for cid, w in self._client_windows.items() if not w or w[-1] < window_start]
        for cid in stale:
            del self._client_windows[cid]
        while len(self._client_windows) >= self.max_clients:
            del self._client_windows[next(iter(self._client_windows))]

    async def reset(self, client_id: str) -> None:
        self._client_windows.pop(client_id, None)


class FixedWindowRateLimiter(RateLimiter):
    """Counter-per-window limiter over a KeyValueStore."""

    KEY_PREFIX = "ratelimit:"

    def __init__(
        self,
        store: KeyValueStore,
        limit: int = DEFAULT_MAX_REQUESTS,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
    ):
        super().__init__(limit, window_seconds)
        self._store = store

    async def allow(self, client_id: str, now: float) -> RateLimitResult:
        count, expires_at = await self._store.incr(
            self.KEY_PREFIX + client_id, self.window_seconds, now
        )
        reset = round(max(0.0, expires_at - now), 1)

        # Denied requests still bump the counter; it is discarded at reset anyway
        if count > self.limit:
            return RateLimitResult(allowed=False, limit=self.limit, remaining=0, reset_seconds=reset)

        return RateLimitResult(
            allowed=True,
            limit=self.limit,
            remaining=self.limit - count,
            reset_seconds=reset,
        )

    async def reset(self, client_id: str) -> None:
        await self._store.delete(self.KEY_PREFIX + client_id)

    async def close(self) -> None:
        await self._store.close()


def build_rate_limiter(
    settings: Settings, store: KeyValueStore, max_clients: int = DEFAULT_MAX_CLIENTS
) -> RateLimiter:
    """Pick the limiter for the configured policy and backing store.

    The sliding window keeps its own process-local state, so a shared
    (non in-memory) store always gets the fixed window.
    """
    policy = settings.rate_limit_policy.lower()
    limit = settings.rate_limit_max_requests
    window = settings.rate_limit_window_seconds

    if policy not in ("sliding", "fixed"):
        raise ValueError(f"Unknown rate limit policy: {settings.rate_limit_policy}")

    if policy == "sliding" and isinstance(store, InMemoryKeyValueStore):
        return SlidingWindowRateLimiter(limit=limit, window_seconds=window, max_clients=max_clients)

    return FixedWindowRateLimiter(store, limit=limit, window_seconds=window)
