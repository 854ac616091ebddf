"""DynamoDB-backed key-value store for multi-instance deployments.

Table layout: partition key `pk` (string). Items carry `expires_at`
(precise epoch seconds, used for reads) and `ttl` (whole epoch seconds,
configured as the table's native TTL attribute so DynamoDB deletes old
items on its own). Native TTL deletion is lazy, so reads always compare
`expires_at` against the caller's clock.
"""

import asyncio
from decimal import Decimal

from chatgate.state.base import KeyValueStore


def _num(value: float) -> Decimal:
    # boto3 rejects floats; go through str to keep the decimal digits
    return Decimal(str(value))


class DynamoDBKeyValueStore(KeyValueStore):
    """Stores values and counters in a single DynamoDB table."""

    def __init__(self, table_name: str, region: str = "us-east-1"):
        self._table_name = table_name
        self._region = region
        self._table = None

    def _get_table(self):
        """Lazy-init boto3 Table resource."""
        if self._table is None:
            import boto3

            dynamodb = boto3.resource("dynamodb", region_name=self._region)
            self._table = dynamodb.Table(self._table_name)
        return self._table

    @staticmethod
    def _expiry_attrs(expires_at: float) -> dict:
        return {"expires_at": _num(expires_at), "ttl": int(expires_at) + 1}

    async def get(self, key: str, now: float) -> str | None:
        return await asyncio.to_thread(self._get_sync, key, now)

    def _get_sync(self, key: str, now: float) -> str | None:
        resp = self._get_table().get_item(Key={"pk": key}, ConsistentRead=True)
        item = resp.get("Item")
        if not item or "value" not in item:
            return None
        if float(item.get("expires_at", 0)) <= now:
            return None
        return item["value"]

    async def set(self, key: str, value: str, ttl: float, now: float) -> None:
        item = {"pk": key, "value": value, **self._expiry_attrs(now + ttl)}
        await asyncio.to_thread(self._get_table().put_item, Item=item)

    async def incr(self, key: str, ttl: float, now: float) -> tuple[int, float]:
        return await asyncio.to_thread(self._incr_sync, key, ttl, now)

    def _incr_sync(self, key: str, ttl: float, now: float) -> tuple[int, float]:
        from botocore.exceptions import ClientError

        table = self._get_table()

        # Two attempts: if another writer restarts the window between our
        # failed increment and our restart, their counter is live and the
        # second increment lands on it.
        for _ in range(2):
            try:
                resp = table.update_item(
                    Key={"pk": key},
                    UpdateExpression="ADD #count :one",
                    ConditionExpression="expires_at > :now",
                    ExpressionAttributeNames={"#count": "count"},
                    ExpressionAttributeValues={":one": 1, ":now": _num(now)},
                    ReturnValues="ALL_NEW",
                )
                attrs = resp["Attributes"]
                return int(attrs["count"]), float(attrs["expires_at"])
            except ClientError as e:
                if not _is_condition_failure(e):
                    raise

            # Missing or expired: start a new window
            expires_at = now + ttl
            try:
                table.put_item(
                    Item={"pk": key, "count": 1, **self._expiry_attrs(expires_at)},
                    ConditionExpression="attribute_not_exists(pk) OR expires_at <= :now",
                    ExpressionAttributeValues={":now": _num(now)},
                )
                return 1, expires_at
            except ClientError as e:
                if not _is_condition_failure(e):
                    raise

        raise RuntimeError(f"Could not increment counter {key!r} after concurrent restarts")

    async def delete(self, key: str) -> None:
        await asyncio.to_thread(self._get_table().delete_item, Key={"pk": key})

    async def close(self) -> None:
        # boto3 resources don't need explicit cleanup
        self._table = None


def _is_condition_failure(error: Exception) -> bool:
    response = getattr(error, "response", None)
    if not isinstance(response, dict):
        return False
    return response.get("Error", {}).get("Code") == "ConditionalCheckFailedException"
