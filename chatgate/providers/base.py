"""Abstract base for completion providers."""

from abc import ABC, abstractmethod
from enum import Enum


class UpstreamReason(str, Enum):
    AUTH = "auth"                # bad or missing upstream credentials
    QUOTA = "quota"              # upstream rate limit / quota exhausted
    BLOCKED = "blocked"          # refused by the provider's content policy
    EMPTY = "empty"              # call succeeded but produced no text
    UNAVAILABLE = "unavailable"  # unreachable, upstream timeout, 5xx
    UNKNOWN = "unknown"


class UpstreamError(Exception):
    """A completion call failed. `detail` is for server-side logs only."""

    def __init__(self, reason: UpstreamReason, detail: str = ""):
        super().__init__(detail or reason.value)
        self.reason = reason
        self.detail = detail


def require_text(text: str | None) -> str:
    """Strip provider output, rejecting empty results."""
    text = (text or "").strip()
    if not text:
        raise UpstreamError(UpstreamReason.EMPTY, "Received empty response from AI model")
    return text


class CompletionProvider(ABC):
    """Base class for text-generation backends."""

    @abstractmethod
    async def generate(self, prompt: str) -> str:
        """Generate a reply to a single user message.

        The configured system prompt is applied by each provider in its
        native form.

        Returns:
            Non-empty reply text.

        Raises:
            UpstreamError: classified failure, including empty output.
        """
        ...

    async def close(self) -> None:
        """Cleanup resources. Override if provider holds connections."""
        pass
