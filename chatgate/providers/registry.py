"""Provider registry: one cached instance per provider name."""

from chatgate.providers.base import CompletionProvider

_providers: dict[str, CompletionProvider] = {}


def get_provider(name: str) -> CompletionProvider:
    """Get or create a provider instance by name."""
    if name in _providers:
        return _providers[name]

    # Lazy imports keep each SDK out of deployments that don't use it
    if name == "gemini":
        from chatgate.providers.gemini import GeminiProvider
        _providers[name] = GeminiProvider()
    elif name == "openai":
        from chatgate.providers.openai import OpenAIProvider
        _providers[name] = OpenAIProvider()
    elif name == "bedrock":
        from chatgate.providers.bedrock import BedrockProvider
        _providers[name] = BedrockProvider()
    else:
        raise ValueError(f"Unknown provider: {name}")

    return _providers[name]


async def close_all_providers() -> None:
    """Gracefully shut down all provider connections."""
    for provider in _providers.values():
        await provider.close()
    _providers.clear()
