"""Chat history persistence abstraction."""

from abc import ABC, abstractmethod


class ChatRecorder(ABC):
    """Records completed exchanges. Failures propagate to the caller."""

    enabled: bool = True

    @abstractmethod
    async def record(self, user_message: str, ai_response: str, metadata: dict) -> None:
        ...

    async def ping(self) -> bool:
        """Report whether the backing store is reachable."""
        return True

    async def close(self) -> None:
        pass


class NullChatRecorder(ChatRecorder):
    """Used when no document store is configured."""

    enabled = False

    async def record(self, user_message: str, ai_response: str, metadata: dict) -> None:
        return None

    async def ping(self) -> bool:
        return False
