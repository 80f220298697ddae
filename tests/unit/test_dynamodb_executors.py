from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal
from typing import Any

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from tablebatch_py import (
    ChunkedWriter,
    DeleteRequest,
    MutationBatch,
    Paginator,
    PutRequest,
    QueryDescriptor,
    RequestRejectedError,
    RetryingReader,
    ThrottledError,
    TransportError,
    UnprocessedItemsError,
    ValidationError,
)
from tablebatch_py.dynamodb import DynamoDBBulkExecutor, DynamoDBQueryExecutor
from tablebatch_py.mocks import ANY, FakeDynamoDBClient
from tablebatch_py.query import encode_cursor


def _throttled() -> ClientError:
    return ClientError(
        {"Error": {"Code": "ProvisionedThroughputExceededException", "Message": "slow down"}},
        "BatchWriteItem",
    )


def test_mutate_marshals_puts_and_deletes() -> None:
    client = FakeDynamoDBClient()
    client.expect(
        "batch_write_item",
        {
            "RequestItems": {
                "notes": [
                    {"PutRequest": {"Item": {"pk": {"S": "A"}, "value": {"N": "1"}}}},
                    {"DeleteRequest": {"Key": {"pk": {"S": "B"}}}},
                ]
            }
        },
        response={"UnprocessedItems": {}},
    )

    DynamoDBBulkExecutor(client=client).mutate(
        MutationBatch(
            target="notes",
            operations=(PutRequest({"pk": "A", "value": 1}), DeleteRequest({"pk": "B"})),
        )
    )
    client.assert_no_pending()


def test_mutate_raises_when_items_left_unprocessed() -> None:
    client = FakeDynamoDBClient()
    client.expect(
        "batch_write_item",
        response={
            "UnprocessedItems": {
                "notes": [
                    {"PutRequest": {"Item": {"pk": {"S": "A"}, "n": {"N": "2"}}}},
                    {"DeleteRequest": {"Key": {"pk": {"S": "C"}}}},
                ]
            }
        },
    )

    with pytest.raises(UnprocessedItemsError) as excinfo:
        DynamoDBBulkExecutor(client=client).mutate(
            MutationBatch(
                target="notes",
                operations=(PutRequest({"pk": "A", "n": 2}), PutRequest({"pk": "B"}), DeleteRequest({"pk": "C"})),
            )
        )
    assert excinfo.value.unprocessed_count == 2
    assert excinfo.value.target == "notes"
    assert excinfo.value.requests == (
        PutRequest({"pk": "A", "n": Decimal("2")}),
        DeleteRequest({"pk": "C"}),
    )
    assert isinstance(excinfo.value, TransportError)


def test_mutate_stores_floats_as_decimals() -> None:
    client = FakeDynamoDBClient()
    client.expect(
        "batch_write_item",
        {
            "RequestItems": {
                "notes": [
                    {
                        "PutRequest": {
                            "Item": {
                                "pk": {"S": "x"},
                                "score": {"N": "1.5"},
                                "nested": {"M": {"ratio": {"N": "0.25"}}},
                                "history": {"L": [{"N": "2.75"}]},
                            }
                        }
                    }
                ]
            }
        },
        response={},
    )

    DynamoDBBulkExecutor(client=client).mutate(
        MutationBatch(
            target="notes",
            operations=(PutRequest({"pk": "x", "score": 1.5, "nested": {"ratio": 0.25}, "history": [2.75]}),),
        )
    )
    client.assert_no_pending()


def test_writer_over_dynamodb_writes_float_items_in_every_chunk() -> None:
    client = FakeDynamoDBClient()
    client.expect("batch_write_item", response={})
    client.expect("batch_write_item", response={})

    items: list[dict[str, Any]] = [{"pk": f"i{i}"} for i in range(25)] + [{"pk": "x", "score": 1.5}]
    ChunkedWriter(DynamoDBBulkExecutor(client=client)).write_all("notes", items)

    assert client.calls[1][1]["RequestItems"]["notes"] == [
        {"PutRequest": {"Item": {"pk": {"S": "x"}, "score": {"N": "1.5"}}}}
    ]
    client.assert_no_pending()


def test_unserializable_values_raise_validation_error_before_any_call() -> None:
    client = FakeDynamoDBClient()
    executor = DynamoDBBulkExecutor(client=client)

    with pytest.raises(ValidationError):
        executor.mutate(MutationBatch(target="notes", operations=(PutRequest({"pk": "x", "when": object()}),)))
    with pytest.raises(ValidationError, match="non-finite"):
        executor.mutate(MutationBatch(target="notes", operations=(PutRequest({"pk": "x", "n": float("nan")}),)))
    with pytest.raises(ValidationError):
        executor.read("notes", [{"pk": object()}])
    assert client.calls == []


def test_mutate_rejects_oversized_batch() -> None:
    batch = MutationBatch(target="notes", operations=tuple(PutRequest({"pk": str(i)}) for i in range(26)))
    with pytest.raises(ValidationError):
        DynamoDBBulkExecutor(client=FakeDynamoDBClient()).mutate(batch)


def test_writer_over_dynamodb_stops_after_throttled_chunk() -> None:
    client = FakeDynamoDBClient()
    client.expect("batch_write_item", lambda req: None, response={})
    client.expect("batch_write_item", error=_throttled())

    items = [{"pk": f"p{i}"} for i in range(60)]
    with pytest.raises(ThrottledError) as excinfo:
        ChunkedWriter(DynamoDBBulkExecutor(client=client)).write_all("notes", items)

    assert excinfo.value.code == "ProvisionedThroughputExceededException"
    assert isinstance(excinfo.value.__cause__, ClientError)
    assert len(client.calls) == 2
    assert len(client.calls[0][1]["RequestItems"]["notes"]) == 25
    client.assert_no_pending()


def test_read_unmarshals_items_and_unprocessed_keys() -> None:
    client = FakeDynamoDBClient()
    client.expect(
        "batch_get_item",
        {"RequestItems": {"notes": {"Keys": [{"pk": {"S": "A"}}, {"pk": {"S": "B"}}], "ConsistentRead": True}}},
        response={
            "Responses": {"notes": [{"pk": {"S": "A"}, "value": {"N": "7"}}]},
            "UnprocessedKeys": {"notes": {"Keys": [{"pk": {"S": "B"}}]}},
        },
    )

    result = DynamoDBBulkExecutor(client=client, consistent_read=True).read("notes", [{"pk": "A"}, {"pk": "B"}])

    assert result.items == [{"pk": "A", "value": Decimal("7")}]
    assert result.unprocessed_keys == [{"pk": "B"}]


def test_reader_over_dynamodb_requeues_unprocessed_keys() -> None:
    client = FakeDynamoDBClient()
    client.expect(
        "batch_get_item",
        response={
            "Responses": {"notes": [{"pk": {"S": "A"}}]},
            "UnprocessedKeys": {"notes": {"Keys": [{"pk": {"S": "B"}}]}},
        },
    )

    def only_b(req: Mapping[str, Any]) -> None:
        assert req["RequestItems"]["notes"]["Keys"] == [{"pk": {"S": "B"}}]

    client.expect(
        "batch_get_item",
        only_b,
        response={"Responses": {"notes": [{"pk": {"S": "B"}}]}, "UnprocessedKeys": {}},
    )

    reader = RetryingReader(DynamoDBBulkExecutor(client=client))
    items = reader.read_all("notes", [{"pk": "A"}, {"pk": "B"}, {"pk": "C"}])

    assert items == [{"pk": "A"}, {"pk": "B"}]
    client.assert_no_pending()


def test_read_maps_transport_failures() -> None:
    client = FakeDynamoDBClient()
    client.expect("batch_get_item", error=EndpointConnectionError(endpoint_url="http://localhost:1"))

    with pytest.raises(TransportError, match="EndpointConnectionError"):
        DynamoDBBulkExecutor(client=client).read("notes", [{"pk": "A"}])


def test_query_executor_binds_variables_and_paging() -> None:
    client = FakeDynamoDBClient()
    last = {"pk": {"S": "A"}, "sk": {"S": "002"}}
    client.expect(
        "query",
        {
            "TableName": "notes",
            "KeyConditionExpression": "pk = :pk",
            "ExpressionAttributeValues": {":pk": {"S": "A"}},
            "Limit": 2,
        },
        response={
            "Items": [{"pk": {"S": "A"}, "sk": {"S": "001"}}, {"pk": {"S": "A"}, "sk": {"S": "002"}}],
            "LastEvaluatedKey": last,
            "Count": 2,
            "ScannedCount": 2,
        },
    )

    def second(req: Mapping[str, Any]) -> None:
        assert req["ExclusiveStartKey"] == last
        assert "operation" not in req

    client.expect("query", second, response={"Items": [{"pk": {"S": "A"}, "sk": {"S": "003"}}], "Count": 1})

    descriptor = QueryDescriptor(
        query={"TableName": "notes", "KeyConditionExpression": "pk = :pk"},
        variables={"pk": "A"},
    )
    result = Paginator(DynamoDBQueryExecutor(client=client)).fetch_all(descriptor, page_size=2)

    assert [i["sk"] for i in result.items] == ["001", "002", "003"]
    assert result.metadata == {"Count": 1, "ScannedCount": 0}
    client.assert_no_pending()


def test_scan_operation_and_index_cursor_check() -> None:
    client = FakeDynamoDBClient()
    client.expect("scan", {"TableName": "notes", "IndexName": "by-owner", "Limit": 100}, response={"Items": []})

    executor = DynamoDBQueryExecutor(client=client)
    descriptor = QueryDescriptor(query={"operation": "scan", "TableName": "notes", "IndexName": "by-owner"})
    page = executor.run(descriptor, descriptor.paged_variables(limit=100, cursor=None))
    assert page.items == []
    assert page.next_cursor is None

    foreign = encode_cursor({"pk": {"S": "A"}}, table="notes", index="other")
    with pytest.raises(ValidationError, match="cursor index does not match"):
        executor.run(descriptor, descriptor.paged_variables(limit=100, cursor=foreign))


def test_query_executor_rejects_bad_descriptors() -> None:
    executor = DynamoDBQueryExecutor(client=FakeDynamoDBClient())
    variables = {"limit": 1, "cursor": None}

    with pytest.raises(ValidationError, match="mapping"):
        executor.run(QueryDescriptor(query="select *"), variables)
    with pytest.raises(ValidationError, match="unsupported operation"):
        executor.run(QueryDescriptor(query={"operation": "put", "TableName": "t"}), variables)
    with pytest.raises(ValidationError, match="TableName"):
        executor.run(QueryDescriptor(query={}), variables)
    with pytest.raises(ValidationError, match="invalid cursor"):
        executor.run(QueryDescriptor(query={"TableName": "t"}), {"limit": 1, "cursor": "%%%"})


def test_fake_client_records_request_shape() -> None:
    client = FakeDynamoDBClient()
    client.expect("batch_write_item", {"RequestItems": ANY})
    DynamoDBBulkExecutor(client=client).mutate(MutationBatch(target="t", operations=(PutRequest({"pk": "x"}),)))
    assert client.calls[0][0] == "batch_write_item"


def test_reader_over_dynamodb_surfaces_rejected_request_as_transport_error() -> None:
    client = FakeDynamoDBClient()
    client.expect(
        "batch_get_item",
        {"RequestItems": ANY},
        error=ClientError(
            {"Error": {"Code": "ValidationException", "Message": "Provided list of item keys contains duplicates"}},
            "BatchGetItem",
        ),
    )

    with pytest.raises(TransportError) as excinfo:
        RetryingReader(DynamoDBBulkExecutor(client=client)).read_all("notes", [{"pk": "A"}, {"pk": "A"}])

    assert isinstance(excinfo.value, RequestRejectedError)
    assert excinfo.value.code == "ValidationException"
    assert isinstance(excinfo.value.__cause__, ClientError)
    client.assert_no_pending()
