"""Create the DynamoDB cost-archive table, optionally importing an exported ledger.

Usage:
    python scripts/create_tables.py --endpoint-url http://localhost:4566
    python scripts/create_tables.py --import-file ledger.json --table-suffix -dev
"""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Any

import boto3

from escalade.models.cost import CostEntry
from escalade.persistence.dynamodb_backend import TABLE_BASE, to_item

TABLE_DEFINITIONS: list[dict[str, Any]] = [
    {"name": TABLE_BASE},
]


def create_tables(ddb: Any, suffix: str = "") -> None:
    """Create the archive tables. Skips any that already exist."""
    client = ddb.meta.client
    existing = client.list_tables().get("TableNames", [])

    for defn in TABLE_DEFINITIONS:
        table_name = f"{defn['name']}{suffix}"
        if table_name in existing:
            print(f"  Table {table_name} already exists, skipping")
            continue
        client.create_table(
            TableName=table_name,
            KeySchema=[
                {"AttributeName": "PK", "KeyType": "HASH"},
                {"AttributeName": "SK", "KeyType": "RANGE"},
            ],
            AttributeDefinitions=[
                {"AttributeName": "PK", "AttributeType": "S"},
                {"AttributeName": "SK", "AttributeType": "S"},
            ],
            BillingMode="PAY_PER_REQUEST",
        )
        print(f"  Created table {table_name}")


def import_ledger_export(ddb: Any, path: Path, suffix: str = "") -> int:
    """Load a CostLedger.export() JSON file into the archive table."""
    entries = [CostEntry.model_validate(raw) for raw in json.loads(path.read_text())]
    tbl = ddb.Table(f"{TABLE_BASE}{suffix}")
    with tbl.batch_writer() as batch:
        for entry in entries:
            batch.put_item(Item=to_item(entry))
    print(f"  Imported {len(entries)} cost entries")
    return len(entries)


def main() -> None:
    parser = argparse.ArgumentParser(description="Create DynamoDB tables for Escalade")
    parser.add_argument("--endpoint-url", default=None, help="DynamoDB endpoint (e.g. http://localhost:4566)")
    parser.add_argument("--table-suffix", default="", help="Table name suffix (e.g. -dev)")
    parser.add_argument("--region", default="us-east-1", help="AWS region")
    parser.add_argument("--import-file", type=Path, default=None, help="CostLedger export to load")
    args = parser.parse_args()

    kwargs: dict[str, Any] = {"region_name": args.region}
    if args.endpoint_url:
        kwargs["endpoint_url"] = args.endpoint_url

    ddb = boto3.resource("dynamodb", **kwargs)

    print("Creating tables...")
    create_tables(ddb, suffix=args.table_suffix)

    if args.import_file:
        print("Importing ledger export...")
        import_ledger_export(ddb, args.import_file, suffix=args.table_suffix)

    print("Done!")


if __name__ == "__main__":
    main()
