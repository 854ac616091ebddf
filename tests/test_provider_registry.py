"""Tests for chatgate/providers/registry.py — provider singleton registry."""

import pytest

import chatgate.providers.registry as registry_mod
from chatgate.providers.bedrock import BedrockProvider
from chatgate.providers.gemini import GeminiProvider
from chatgate.providers.openai import OpenAIProvider


@pytest.fixture(autouse=True)
def reset_registry(monkeypatch):
    """Clear the provider registry between tests."""
    monkeypatch.setattr(registry_mod, "_providers", {})
    yield
    monkeypatch.setattr(registry_mod, "_providers", {})


class TestGetProvider:

    @pytest.mark.parametrize("name, cls", [
        ("gemini", GeminiProvider),
        ("openai", OpenAIProvider),
        ("bedrock", BedrockProvider),
    ])
    def test_creates_provider(self, name, cls):
        assert isinstance(registry_mod.get_provider(name), cls)

    def test_singleton_behavior(self):
        p1 = registry_mod.get_provider("gemini")
        p2 = registry_mod.get_provider("gemini")
        assert p1 is p2

    def test_unknown_provider_raises(self):
        with pytest.raises(ValueError, match="Unknown provider"):
            registry_mod.get_provider("fake-provider")


class TestCloseAllProviders:

    async def test_close_all(self):
        registry_mod.get_provider("openai")
        registry_mod.get_provider("gemini")
        await registry_mod.close_all_providers()
        assert registry_mod._providers == {}
