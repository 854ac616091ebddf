"""Chat request orchestration.

Pipeline: Validate -> Rate Limit -> Cache Lookup -> Complete (with timeout) -> Cache Fill -> Persist

The rate limit is checked before the cache, so cache hits are charged
against the client's quota. A failed cache lookup is logged and treated as
a miss. Cache fills and persistence run as background tasks; their
failures are logged and never reach the caller.
"""

import asyncio
import time
from collections.abc import Callable, Coroutine
from dataclasses import dataclass

from chatgate.chat.errors import ChatError, ErrorKind
from chatgate.config.settings import Settings
from chatgate.gating.cache import CacheLookup, ResponseCache
from chatgate.gating.ratelimit import RateLimiter, RateLimitResult, build_rate_limiter
from chatgate.logging.audit import RequestTimer, get_audit_logger
from chatgate.persistence.base import ChatRecorder
from chatgate.persistence.factory import build_recorder
from chatgate.providers.base import CompletionProvider, UpstreamError, UpstreamReason
from chatgate.providers.registry import get_provider
from chatgate.state.factory import build_kv_store

Clock = Callable[[], float]

DEFAULT_TIMEOUT_SECONDS = 30.0

# In-memory bound on tracked rate limit clients, for either policy
RATE_LIMIT_MAX_CLIENTS = 10_000


@dataclass
class ChatReply:
    response: str
    cached: bool
    rate_limit: RateLimitResult


class ChatOrchestrator:
    """Runs one chat message through the gating pipeline.

    Created once per process and shared by all requests; tests build
    fresh instances.
    """

    def __init__(
        self,
        rate_limiter: RateLimiter,
        cache: ResponseCache,
        provider: CompletionProvider,
        recorder: ChatRecorder,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        clock: Clock = time.time,
        await_persistence: bool = False,
    ):
        self.rate_limiter = rate_limiter
        self.cache = cache
        self.provider = provider
        self.recorder = recorder
        self.timeout_seconds = timeout_seconds
        self.await_persistence = await_persistence
        self._clock = clock
        # Strong refs so pending tasks aren't garbage collected mid-flight
        self._background: set[asyncio.Task] = set()

    @property
    def pending_tasks(self) -> int:
        return len(self._background)

    async def handle(self, message, client_id: str = "unknown", metadata: dict | None = None) -> ChatReply:
        """Answer a message or raise ChatError describing why not."""
        logger = get_audit_logger()

        if not isinstance(message, str) or not message.strip():
            raise ChatError(ErrorKind.INVALID_INPUT, "Message must be a non-empty string")

        now = self._clock()

        rate_result = await self.rate_limiter.allow(client_id, now)
        if not rate_result.allowed:
            logger.warning(
                "Rate limit exceeded",
                extra={"audit_data": {
                    "client_id": client_id,
                    "rate_limit": rate_result.limit,
                    "retry_after": rate_result.reset_seconds,
                }},
            )
            raise ChatError(ErrorKind.RATE_LIMITED, rate_limit=rate_result)

        try:
            lookup = await self.cache.lookup(message, now)
        except Exception as e:
            # Treated as a miss
            logger.error(
                "Cache lookup failed",
                extra={"audit_data": {"client_id": client_id, "error": str(e)}},
                exc_info=e,
            )
            lookup = CacheLookup(hit=False)
        if lookup.hit:
            logger.info(
                "Cache hit",
                extra={"audit_data": {"client_id": client_id, "message_preview": message[:30]}},
            )
            return ChatReply(response=lookup.value, cached=True, rate_limit=rate_result)
        logger.debug("Cache miss", extra={"audit_data": {"client_id": client_id}})

        with RequestTimer() as timer:
            text = await self._complete(message)

        logger.info(
            "Completion succeeded",
            extra={"audit_data": {
                "client_id": client_id,
                "latency_ms": timer.elapsed_ms,
                "response_chars": len(text),
                "rate_limit_remaining": rate_result.remaining,
            }},
        )

        self._spawn(self.cache.store(message, text, self._clock()), "cache_store")

        if self.recorder.enabled:
            record_metadata = {**(metadata or {}), "clientId": client_id, "cached": False}
            if self.await_persistence:
                await self._persist(message, text, record_metadata)
            else:
                self._spawn(self.recorder.record(message, text, record_metadata), "persistence")

        return ChatReply(response=text, cached=False, rate_limit=rate_result)

    async def _complete(self, message: str) -> str:
        """Race the provider call against the timeout."""
        task = asyncio.create_task(self.provider.generate(message))
        try:
            done, _ = await asyncio.wait({task}, timeout=self.timeout_seconds)
        except asyncio.CancelledError:
            self._abandon(task)
            raise

        if task not in done:
            # Not force-cancelled: let it finish in the background and discard the result
            self._abandon(task)
            get_audit_logger().warning(
                "Upstream timeout",
                extra={"audit_data": {"timeout_seconds": self.timeout_seconds}},
            )
            raise ChatError(
                ErrorKind.UPSTREAM_TIMEOUT,
                f"Completion did not finish within {self.timeout_seconds}s",
            )

        try:
            text = task.result()
        except UpstreamError as e:
            self._log_upstream_error(e.reason, e.detail)
            raise ChatError(ErrorKind.UPSTREAM_ERROR, e.detail, reason=e.reason) from e
        except Exception as e:
            self._log_upstream_error(UpstreamReason.UNKNOWN, str(e), exc=e)
            raise ChatError(ErrorKind.UPSTREAM_ERROR, str(e), reason=UpstreamReason.UNKNOWN) from e

        if not isinstance(text, str) or not text.strip():
            self._log_upstream_error(UpstreamReason.EMPTY, "Provider returned no text")
            raise ChatError(ErrorKind.UPSTREAM_ERROR, "Provider returned no text", reason=UpstreamReason.EMPTY)
        return text

    async def _persist(self, message: str, text: str, metadata: dict) -> None:
        try:
            await self.recorder.record(message, text, metadata)
        except Exception as e:
            get_audit_logger().error(
                "Persistence failed",
                extra={"audit_data": {"task": "persistence", "error": str(e)}},
                exc_info=e,
            )

    def _spawn(self, coro: Coroutine, label: str) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(lambda t: self._on_background_done(t, label))
        return task

    def _abandon(self, task: asyncio.Task) -> None:
        self._background.add(task)
        task.add_done_callback(self._on_late_completion)

    def _on_background_done(self, task: asyncio.Task, label: str) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            get_audit_logger().error(
                f"Background {label} failed",
                extra={"audit_data": {"task": label, "error": str(exc)}},
                exc_info=exc,
            )

    def _on_late_completion(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if task.cancelled():
            outcome = "cancelled"
        elif task.exception() is not None:
            outcome = f"failed: {task.exception()}"
        else:
            outcome = "succeeded"
        get_audit_logger().info(
            "Completion finished after timeout; result discarded",
            extra={"audit_data": {"outcome": outcome}},
        )

    @staticmethod
    def _log_upstream_error(reason: UpstreamReason, detail: str, exc: Exception | None = None) -> None:
        get_audit_logger().error(
            "Upstream error",
            extra={"audit_data": {"reason": reason.value, "detail": detail}},
            exc_info=exc,
        )

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for background work; cancel whatever is left after timeout."""
        if not self._background:
            return
        pending = set(self._background)
        _, still_pending = await asyncio.wait(pending, timeout=timeout)
        for task in still_pending:
            task.cancel()
        if still_pending:
            await asyncio.wait(still_pending)

    async def aclose(self, timeout: float | None = 5.0) -> None:
        await self.drain(timeout)
        await self.rate_limiter.close()
        await self.cache.close()
        await self.recorder.close()


def build_orchestrator(settings: Settings, clock: Clock = time.time) -> ChatOrchestrator:
    """Wire an orchestrator from settings.

    Rate limit counters and cached responses get separate stores so cache
    churn can never evict a client's window.
    """
    limiter_store = build_kv_store(settings, max_entries=RATE_LIMIT_MAX_CLIENTS)
    cache_store = build_kv_store(settings, max_entries=settings.cache_max_entries)

    return ChatOrchestrator(
        rate_limiter=build_rate_limiter(settings, limiter_store, max_clients=RATE_LIMIT_MAX_CLIENTS),
        cache=ResponseCache(
            cache_store,
            ttl_seconds=settings.cache_ttl_seconds,
            normalization=settings.cache_key_normalization,
            enabled=settings.cache_enabled,
        ),
        provider=get_provider(settings.provider),
        recorder=build_recorder(settings),
        timeout_seconds=settings.completion_timeout_seconds,
        clock=clock,
        await_persistence=settings.await_persistence,
    )
