from __future__ import annotations

import logging
import os
import uuid

import boto3

from tablebatch_py import BatchEngine, QueryDescriptor
from tablebatch_py.dynamodb import DynamoDBBulkExecutor, DynamoDBQueryExecutor


def _client():
    return boto3.client(
        "dynamodb",
        endpoint_url=os.environ.get("DYNAMODB_ENDPOINT", "http://localhost:8000"),
        region_name=os.environ.get("AWS_REGION", "us-east-1"),
        aws_access_key_id=os.environ.get("AWS_ACCESS_KEY_ID", "dummy"),
        aws_secret_access_key=os.environ.get("AWS_SECRET_ACCESS_KEY", "dummy"),
    )


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    client = _client()
    table_name = f"tablebatch_py_example_{uuid.uuid4().hex[:12]}"
    client.create_table(
        TableName=table_name,
        KeySchema=[{"AttributeName": "pk", "KeyType": "HASH"}, {"AttributeName": "sk", "KeyType": "RANGE"}],
        AttributeDefinitions=[
            {"AttributeName": "pk", "AttributeType": "S"},
            {"AttributeName": "sk", "AttributeType": "S"},
        ],
        BillingMode="PAY_PER_REQUEST",
    )
    client.get_waiter("table_exists").wait(TableName=table_name)

    try:
        engine = BatchEngine(
            query_executor=DynamoDBQueryExecutor(client=client),
            bulk_executor=DynamoDBBulkExecutor(client=client),
        )

        engine.write_all(table_name, [{"pk": "A", "sk": f"{i:03d}", "value": i} for i in range(60)])

        found = engine.read_all(table_name, [{"pk": "A", "sk": f"{i:03d}"} for i in range(0, 80, 10)])
        print("read_all:", [item["sk"] for item in found])

        result = engine.fetch_all(
            QueryDescriptor(
                query={"TableName": table_name, "KeyConditionExpression": "pk = :pk"},
                variables={"pk": "A"},
            ),
            page_size=25,
        )
        print("fetch_all:", len(result.items), "items over", result.pages, "pages")
    finally:
        client.delete_table(TableName=table_name)


if __name__ == "__main__":
    main()
