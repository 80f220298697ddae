from __future__ import annotations

import logging
import math
from collections.abc import Mapping, Sequence
from decimal import Decimal
from typing import Any

import boto3
from boto3.dynamodb.types import TypeDeserializer, TypeSerializer
from botocore.exceptions import BotoCoreError, ClientError

from .aws_errors import map_botocore_error as _map_botocore_error
from .aws_errors import map_client_error as _map_client_error
from .chunking import MAX_MUTATION_BATCH, MAX_READ_BATCH
from .errors import UnprocessedItemsError, ValidationError
from .protocols import BulkReadResult, DeleteRequest, Item, Key, MutationBatch, PutRequest
from .query import Page, QueryDescriptor, decode_cursor, encode_cursor

logger = logging.getLogger(__name__)

_PAGING_VARIABLES = frozenset({"limit", "cursor"})


def _normalize(value: Any) -> Any:
    # TypeSerializer rejects float; numbers travel as Decimal.
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValidationError(f"non-finite number is not storable: {value!r}")
        return Decimal(str(value))
    if isinstance(value, Mapping):
        return {k: _normalize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_normalize(v) for v in value]
    if isinstance(value, (set, frozenset)):
        return {_normalize(v) for v in value}
    return value


class _Marshaller:
    def __init__(self) -> None:
        self._serializer = TypeSerializer()
        self._deserializer = TypeDeserializer()

    def value_to_wire(self, value: Any) -> dict[str, Any]:
        try:
            return self._serializer.serialize(_normalize(value))
        except TypeError as err:
            raise ValidationError(str(err)) from err

    def to_wire(self, item: Mapping[str, Any]) -> dict[str, Any]:
        return {str(k): self.value_to_wire(v) for k, v in item.items()}

    def from_wire(self, item: Mapping[str, Any]) -> dict[str, Any]:
        return {str(k): self._deserializer.deserialize(v) for k, v in item.items()}


class DynamoDBBulkExecutor:
    """Bulk executor over ``BatchWriteItem`` / ``BatchGetItem``.

    Items and keys are plain Python mappings; values are marshalled with boto3's
    type serializer on the way out and unmarshalled on the way back.
    """

    def __init__(self, *, client: Any | None = None, consistent_read: bool = False) -> None:
        self._client: Any = client or boto3.client("dynamodb")
        self._consistent_read = consistent_read
        self._marshaller = _Marshaller()

    def mutate(self, batch: MutationBatch) -> None:
        if len(batch) > MAX_MUTATION_BATCH:
            raise ValidationError(f"a mutation batch holds at most {MAX_MUTATION_BATCH} operations")
        if not batch.operations:
            return

        requests: list[dict[str, Any]] = []
        for op in batch.operations:
            if isinstance(op, PutRequest):
                requests.append({"PutRequest": {"Item": self._marshaller.to_wire(op.item)}})
            elif isinstance(op, DeleteRequest):
                requests.append({"DeleteRequest": {"Key": self._marshaller.to_wire(op.key)}})
            else:
                raise ValidationError(f"unsupported mutation: {op!r}")

        try:
            resp = self._client.batch_write_item(RequestItems={batch.target: requests})
        except ClientError as err:
            raise _map_client_error(err) from err
        except BotoCoreError as err:
            raise _map_botocore_error(err) from err

        unprocessed = resp.get("UnprocessedItems", {}).get(batch.target) or []
        if unprocessed:
            raise UnprocessedItemsError(target=batch.target, requests=[self._from_wire_request(r) for r in unprocessed])

    def _from_wire_request(self, request: Mapping[str, Any]) -> PutRequest | DeleteRequest:
        if "PutRequest" in request:
            return PutRequest(self._marshaller.from_wire(request["PutRequest"]["Item"]))
        return DeleteRequest(self._marshaller.from_wire(request["DeleteRequest"]["Key"]))

    def read(self, target: str, keys: Sequence[Key]) -> BulkReadResult:
        if len(keys) > MAX_READ_BATCH:
            raise ValidationError(f"a bulk read holds at most {MAX_READ_BATCH} keys")
        if not keys:
            return BulkReadResult()

        req = {
            target: {
                "Keys": [self._marshaller.to_wire(k) for k in keys],
                "ConsistentRead": self._consistent_read,
            }
        }
        try:
            resp = self._client.batch_get_item(RequestItems=req)
        except ClientError as err:
            raise _map_client_error(err) from err
        except BotoCoreError as err:
            raise _map_botocore_error(err) from err

        found = resp.get("Responses", {}).get(target, [])
        unprocessed = resp.get("UnprocessedKeys", {}).get(target, {}).get("Keys") or []
        return BulkReadResult(
            items=[self._marshaller.from_wire(item) for item in found],
            unprocessed_keys=[self._marshaller.from_wire(key) for key in unprocessed],
        )


class DynamoDBQueryExecutor:
    """Query executor running a DynamoDB ``Query`` or ``Scan`` one page at a time.

    ``descriptor.query`` holds the request parameters plus an ``operation`` of
    ``"query"`` (default) or ``"scan"``. Every variable other than ``limit`` and
    ``cursor`` is bound as the expression value ``:<name>``.
    """

    def __init__(self, *, client: Any | None = None) -> None:
        self._client: Any = client or boto3.client("dynamodb")
        self._marshaller = _Marshaller()

    def run(self, descriptor: QueryDescriptor, variables: Mapping[str, Any]) -> Page[Item]:
        if not isinstance(descriptor.query, Mapping):
            raise ValidationError("descriptor.query must be a mapping of request parameters")

        params = dict(descriptor.query)
        operation = str(params.pop("operation", "query"))
        if operation not in {"query", "scan"}:
            raise ValidationError(f"unsupported operation: {operation}")

        table = params.get("TableName")
        if not table:
            raise ValidationError("TableName is required")
        index = params.get("IndexName")

        values = dict(params.get("ExpressionAttributeValues") or {})
        for name, value in variables.items():
            if name in _PAGING_VARIABLES:
                continue
            values[f":{name}"] = self._marshaller.value_to_wire(value)
        if values:
            params["ExpressionAttributeValues"] = values

        limit = variables.get("limit")
        if limit is not None:
            params["Limit"] = int(limit)

        cursor = variables.get("cursor")
        if cursor is not None:
            try:
                decoded = decode_cursor(cursor)
            except Exception as err:
                raise ValidationError("invalid cursor") from err
            if decoded.table is not None and decoded.table != table:
                raise ValidationError("cursor table does not match request")
            if decoded.index is not None and decoded.index != index:
                raise ValidationError("cursor index does not match request")
            params["ExclusiveStartKey"] = decoded.last_key

        logger.debug("%s %s (index=%s, limit=%s)", operation, table, index, limit)
        try:
            resp = getattr(self._client, operation)(**params)
        except ClientError as err:
            raise _map_client_error(err) from err
        except BotoCoreError as err:
            raise _map_botocore_error(err) from err

        return Page(
            items=[self._marshaller.from_wire(item) for item in resp.get("Items", [])],
            next_cursor=encode_cursor(resp.get("LastEvaluatedKey"), table=table, index=index),
            metadata={
                "Count": resp.get("Count", 0),
                "ScannedCount": resp.get("ScannedCount", 0),
            },
        )
