"""DynamoDB backend implementing ICostArchive."""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from typing import Any
from uuid import uuid4

import boto3
from botocore.exceptions import ClientError

from escalade.core.exceptions import CostArchiveError
from escalade.models.cost import CostEntry

TABLE_BASE = "escalade-cost-ledger"


def to_item(entry: CostEntry) -> dict[str, Any]:
    """Table item for one entry, partitioned by its UTC day."""
    ts = entry.timestamp.isoformat()
    return {
        "PK": f"DATE#{entry.day.isoformat()}",
        "SK": f"ENTRY#{ts}#{uuid4().hex}",
        "taskId": entry.task_id,
        "handlerId": entry.handler_id,
        "amount": Decimal(str(entry.amount)),
        "description": entry.description,
        "timestamp": ts,
    }


def from_item(item: dict[str, Any]) -> CostEntry:
    amount = item.get("amount", Decimal("0"))
    return CostEntry(
        task_id=item["taskId"],
        handler_id=item["handlerId"],
        amount=float(amount) if isinstance(amount, Decimal) else amount,
        description=item.get("description", ""),
        timestamp=item["timestamp"],
    )


class DynamoDBCostArchive:
    """ICostArchive backed by a DynamoDB table partitioned by UTC day.

    Pass it to ``CostLedger(archive=...)`` to write spend through and to
    restore the current day after a restart.
    """

    def __init__(self, table_suffix: str = "", region: str = "us-east-1",
                 endpoint_url: str | None = None) -> None:
        self._table_suffix = table_suffix
        self._region = region
        self._endpoint_url = endpoint_url
        kwargs: dict = {"region_name": region}
        if endpoint_url:
            kwargs["endpoint_url"] = endpoint_url
        self._ddb = boto3.resource("dynamodb", **kwargs)
        self._table = self._ddb.Table(f"{TABLE_BASE}{table_suffix}")

    def save(self, entries: list[CostEntry]) -> int:
        try:
            with self._table.batch_writer() as batch:
                for entry in entries:
                    batch.put_item(Item=to_item(entry))
        except ClientError as exc:
            raise CostArchiveError(f"DynamoDB write of {len(entries)} cost entries failed: {exc}") from exc
        return len(entries)

    def load_day(self, day: date) -> list[CostEntry]:
        items: list[dict[str, Any]] = []
        kwargs: dict[str, Any] = {
            "KeyConditionExpression": "PK = :pk",
            "ExpressionAttributeValues": {":pk": f"DATE#{day.isoformat()}"},
        }
        try:
            while True:
                resp = self._table.query(**kwargs)
                items.extend(resp.get("Items", []))
                last_key = resp.get("LastEvaluatedKey")
                if not last_key:
                    break
                kwargs["ExclusiveStartKey"] = last_key
        except ClientError as exc:
            raise CostArchiveError(f"DynamoDB query failed for day={day.isoformat()}: {exc}") from exc
        return [from_item(item) for item in items]

    def load_range(self, start: date, end: date) -> list[CostEntry]:
        entries: list[CostEntry] = []
        current = start
        while current <= end:
            entries.extend(self.load_day(current))
            current += timedelta(days=1)
        return entries
