"""Factory for key-value store backends."""

from chatgate.config.settings import Settings
from chatgate.state.base import KeyValueStore
from chatgate.state.memory import DEFAULT_MAX_ENTRIES, InMemoryKeyValueStore


def build_kv_store(settings: Settings, max_entries: int = DEFAULT_MAX_ENTRIES) -> KeyValueStore:
    """Create a new store for the configured backend.

    `max_entries` only bounds the in-memory backing; DynamoDB relies on
    its native TTL instead.
    """
    backend = settings.kv_backend.lower()

    if backend == "memory":
        return InMemoryKeyValueStore(max_entries=max_entries)

    if backend == "dynamodb":
        # Lazy import to avoid boto3 dependency when not needed
        from chatgate.state.dynamodb import DynamoDBKeyValueStore
        return DynamoDBKeyValueStore(
            table_name=settings.dynamodb_table_name,
            region=settings.aws_region,
        )

    raise ValueError(f"Unknown KV backend: {settings.kv_backend}")
