#!/usr/bin/env python3
"""
Create (or recreate) the DynamoDB idempotency table.

Run: python scripts/setup_dynamodb_table.py [--table idempotency] [--recreate]

Defaults come from settings (DYNAMODB_TABLE_NAME, AWS_REGION,
DYNAMODB_ENDPOINT_URL). Native TTL is enabled on the `ttl` attribute.

Exit codes:
  0 - Table ready
  1 - AWS call failed
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from idempotency_guard.config import settings


def delete_table(client, table_name: str) -> None:
    try:
        client.delete_table(TableName=table_name)
    except ClientError as e:
        if e.response.get("Error", {}).get("Code") != "ResourceNotFoundException":
            raise
        print(f"Table {table_name} does not exist, nothing to delete")
        return

    client.get_waiter("table_not_exists").wait(TableName=table_name)
    print(f"Table {table_name} deleted")


def create_table(client, table_name: str) -> None:
    client.create_table(
        TableName=table_name,
        AttributeDefinitions=[
            {"AttributeName": "PK", "AttributeType": "S"},
            {"AttributeName": "SK", "AttributeType": "S"},
        ],
        KeySchema=[
            {"AttributeName": "PK", "KeyType": "HASH"},
            {"AttributeName": "SK", "KeyType": "RANGE"},
        ],
        BillingMode="PAY_PER_REQUEST",
    )
    client.get_waiter("table_exists").wait(TableName=table_name)
    print(f"Table {table_name} created")

    client.update_time_to_live(
        TableName=table_name,
        TimeToLiveSpecification={"Enabled": True, "AttributeName": "ttl"},
    )
    print(f"TTL enabled on {table_name}.ttl")


def main() -> int:
    parser = argparse.ArgumentParser(description="Provision the DynamoDB idempotency table")
    parser.add_argument("--table", default=settings.dynamodb_table_name, help="Table name")
    parser.add_argument("--region", default=settings.aws_region, help="AWS region")
    parser.add_argument("--endpoint-url", default=settings.dynamodb_endpoint_url, help="e.g. http://localhost:8000")
    parser.add_argument("--recreate", action="store_true", help="Drop the table first if it exists")
    args = parser.parse_args()

    client = boto3.client("dynamodb", region_name=args.region, endpoint_url=args.endpoint_url)

    try:
        if args.recreate:
            delete_table(client, args.table)
        create_table(client, args.table)
    except (BotoCoreError, ClientError) as e:
        print(f"ERROR: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
