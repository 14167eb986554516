"""Create the contactflow DynamoDB tables and seed reference data.

Usage:
    python scripts/create_tables.py --endpoint-url http://localhost:4566 --suffix -dev
"""

from __future__ import annotations

import argparse
from typing import Any

import boto3

TABLE_DEFINITIONS: list[dict[str, Any]] = [
    {"name": "contactflow-contacts"},
    {"name": "contactflow-reference-data"},
]

REFERENCE_ENUMS: dict[str, dict[int, str]] = {
    "access_modifier": {1: "Public", 2: "Protected", 3: "Private"},
    "privilege": {1: "Owner", 2: "Admin", 3: "Main"},
}


def create_tables(ddb: Any, suffix: str = "") -> None:
    """Create the contact and reference-data tables. Skips existing ones."""
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


def seed_reference_data(ddb: Any, suffix: str = "") -> None:
    """Write the access-modifier and privilege choices."""
    tbl = ddb.Table(f"contactflow-reference-data{suffix}")
    count = 0
    with tbl.batch_writer() as batch:
        for enum_name, choices in REFERENCE_ENUMS.items():
            for value, label in choices.items():
                batch.put_item(Item={
                    "PK": f"ENUM#{enum_name}",
                    "SK": f"CHOICE#{value}",
                    "value": value,
                    "label": label,
                })
                count += 1
    print(f"  Seeded {count} reference choices")


def main() -> None:
    parser = argparse.ArgumentParser(description="Create contactflow DynamoDB tables")
    parser.add_argument("--endpoint-url", default=None, help="DynamoDB endpoint (LocalStack)")
    parser.add_argument("--region", default="us-east-1")
    parser.add_argument("--suffix", default="", help="Table name suffix, e.g. -dev")
    parser.add_argument("--skip-seed", action="store_true", help="Only create tables")
    args = parser.parse_args()

    kwargs: dict[str, Any] = {"region_name": args.region}
    if args.endpoint_url:
        kwargs["endpoint_url"] = args.endpoint_url
    ddb = boto3.resource("dynamodb", **kwargs)

    print("Creating tables...")
    create_tables(ddb, suffix=args.suffix)
    if not args.skip_seed:
        print("Seeding reference data...")
        seed_reference_data(ddb, suffix=args.suffix)
    print("Done.")


if __name__ == "__main__":
    main()
