"""Factory for chat history backends."""

from chatgate.config.settings import Settings
from chatgate.persistence.base import ChatRecorder, NullChatRecorder


def build_recorder(settings: Settings) -> ChatRecorder:
    """MongoDB when MONGODB_URI is set, otherwise a no-op recorder."""
    if not settings.mongodb_uri:
        return NullChatRecorder()

    # Lazy import to avoid the Motor dependency when persistence is off
    from chatgate.persistence.mongodb import MongoChatRecorder
    return MongoChatRecorder(
        uri=settings.mongodb_uri,
        db_name=settings.mongodb_db,
        collection=settings.mongodb_collection,
    )
