"""Shared fixtures for the chat gateway test suite."""

from unittest.mock import AsyncMock

import pytest

from chatgate.chat.orchestrator import ChatOrchestrator
from chatgate.config.settings import get_settings
from chatgate.gating.cache import ResponseCache
from chatgate.gating.ratelimit import SlidingWindowRateLimiter
from chatgate.persistence.base import ChatRecorder
from chatgate.state.memory import InMemoryKeyValueStore


class FakeClock:
    """Manually advanced clock (epoch seconds)."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def override_settings(monkeypatch):
    """Factory fixture: set env vars and clear settings cache.

    Usage:
        override_settings(RATE_LIMIT_MAX_REQUESTS="5", ENVIRONMENT="development")
    """
    def _override(**kwargs):
        for key, value in kwargs.items():
            monkeypatch.setenv(key.upper(), str(value))
        # Clear lru_cache so Settings re-reads env
        get_settings.cache_clear()

    yield _override

    # Always clear cache on teardown so other tests get fresh settings
    get_settings.cache_clear()


@pytest.fixture
def mock_provider():
    """Provider that answers every message with a fixed reply."""
    provider = AsyncMock()
    provider.generate.return_value = "Hello! How can I help?"
    return provider


@pytest.fixture
def mock_recorder():
    recorder = AsyncMock(spec=ChatRecorder)
    recorder.enabled = True
    recorder.ping.return_value = True
    return recorder


@pytest.fixture
def orchestrator_factory(clock, mock_provider, mock_recorder):
    """Build an orchestrator over fresh in-memory state.

    Usage:
        orch = orchestrator_factory(limit=2, timeout_seconds=0.05)
    """
    def _build(limit: int = 10, window_seconds: float = 60.0, ttl_seconds: float = 300.0,
               timeout_seconds: float = 5.0, provider=None, recorder=None, **kwargs):
        return ChatOrchestrator(
            rate_limiter=SlidingWindowRateLimiter(limit=limit, window_seconds=window_seconds),
            cache=ResponseCache(InMemoryKeyValueStore(), ttl_seconds=ttl_seconds),
            provider=provider or mock_provider,
            recorder=recorder or mock_recorder,
            timeout_seconds=timeout_seconds,
            clock=clock,
            **kwargs,
        )

    return _build
