"""MongoDB chat history store using Motor (async driver)."""

import re
from datetime import datetime, timezone

from motor.motor_asyncio import AsyncIOMotorClient

from chatgate.logging.audit import get_audit_logger
from chatgate.persistence.base import ChatRecorder


class MongoChatRecorder(ChatRecorder):
    """Inserts one document per exchange into a collection.

    Field names are camelCase (userMessage, aiResponse, timestamp, metadata)
    to line up with existing documents in the widget's chats collection.

    The Motor client is created lazily on first use; Motor itself only
    connects when the first operation runs.
    """

    def __init__(self, uri: str, db_name: str = "chatbot", collection: str = "chats"):
        self._uri = uri
        self._db_name = db_name
        self._collection_name = collection
        self._client: AsyncIOMotorClient | None = None

    def _get_client(self) -> AsyncIOMotorClient:
        if self._client is None:
            # Fail fast when the cluster is unreachable; the default is 30s
            self._client = AsyncIOMotorClient(self._uri, serverSelectionTimeoutMS=5000)
            get_audit_logger().info(
                "MongoDB client created",
                extra={"audit_data": {"mongodb_uri": redact_uri(self._uri), "db": self._db_name}},
            )
        return self._client

    def _get_collection(self):
        return self._get_client()[self._db_name][self._collection_name]

    async def record(self, user_message: str, ai_response: str, metadata: dict) -> None:
        await self._get_collection().insert_one({
            "userMessage": user_message,
            "aiResponse": ai_response,
            "timestamp": datetime.now(timezone.utc),
            "metadata": metadata,
        })

    async def ping(self) -> bool:
        try:
            await self._get_client().admin.command("ping")
            return True
        except Exception as e:
            get_audit_logger().warning(
                "MongoDB ping failed",
                extra={"audit_data": {"error": str(e)}},
            )
            return False

    async def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None


def redact_uri(uri: str) -> str:
    """Strip credentials from URI before logging."""
    return re.sub(r"://[^:/@]+:[^@]+@", "://<redacted>@", uri)
