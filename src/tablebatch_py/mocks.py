from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from .protocols import BulkReadResult, DeleteRequest, Item, Key, MutationBatch, PutRequest
from .query import Page, QueryDescriptor


class _AnySentinel:
    def __repr__(self) -> str:  # pragma: no cover
        return "ANY"


ANY: Any = _AnySentinel()


def _assert_match(expected: Any, actual: Any, *, path: str) -> None:
    if expected is ANY:
        return

    if isinstance(expected, dict):
        if not isinstance(actual, dict):
            raise AssertionError(f"{path}: expected dict, got {type(actual).__name__}")
        for k, v in expected.items():
            if k not in actual:
                raise AssertionError(f"{path}: missing key {k!r}")
            _assert_match(v, actual[k], path=f"{path}.{k}")
        return

    if isinstance(expected, list):
        if not isinstance(actual, list):
            raise AssertionError(f"{path}: expected list, got {type(actual).__name__}")
        if len(expected) != len(actual):
            raise AssertionError(f"{path}: expected {len(expected)} items, got {len(actual)}")
        for i, (e, a) in enumerate(zip(expected, actual, strict=True)):
            _assert_match(e, a, path=f"{path}[{i}]")
        return

    if expected != actual:
        raise AssertionError(f"{path}: expected {expected!r}, got {actual!r}")


@dataclass(frozen=True)
class ExpectedCall:
    method: str
    expected: Mapping[str, Any] | Callable[[Mapping[str, Any]], None] | None = None
    response: Mapping[str, Any] | None = None
    error: Exception | None = None


class FakeDynamoDBClient:
    """Scripted stand-in for a boto3 DynamoDB client.

    Calls must arrive in the order they were registered with :meth:`expect`;
    each one is recorded in ``calls`` before being matched.
    """

    def __init__(self) -> None:
        self._expected: list[ExpectedCall] = []
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def expect(
        self,
        method: str,
        expected: Mapping[str, Any] | Callable[[Mapping[str, Any]], None] | None = None,
        *,
        response: Mapping[str, Any] | None = None,
        error: Exception | None = None,
    ) -> None:
        self._expected.append(ExpectedCall(method=method, expected=expected, response=response, error=error))

    def assert_no_pending(self) -> None:
        if self._expected:
            raise AssertionError(f"pending expected calls: {self._expected!r}")

    def _handle(self, method: str, req: dict[str, Any]) -> Mapping[str, Any]:
        self.calls.append((method, dict(req)))
        if not self._expected:
            raise AssertionError(f"unexpected call: {method}")

        call = self._expected.pop(0)
        if call.method != method:
            raise AssertionError(f"expected {call.method}, got {method}")

        if callable(call.expected):
            call.expected(req)
        elif call.expected is not None:
            _assert_match(dict(call.expected), req, path=method)

        if call.error is not None:
            raise call.error

        return dict(call.response or {})

    def query(self, **kwargs: Any) -> Mapping[str, Any]:
        return self._handle("query", kwargs)

    def scan(self, **kwargs: Any) -> Mapping[str, Any]:
        return self._handle("scan", kwargs)

    def batch_get_item(self, **kwargs: Any) -> Mapping[str, Any]:
        return self._handle("batch_get_item", kwargs)

    def batch_write_item(self, **kwargs: Any) -> Mapping[str, Any]:
        return self._handle("batch_write_item", kwargs)


class ScriptedQueryExecutor:
    """Query executor returning pre-built pages in order, or raising a scripted error."""

    def __init__(self, pages: Sequence[Page[Any] | Exception]) -> None:
        self._pages = list(pages)
        self.calls: list[dict[str, Any]] = []

    def run(self, descriptor: QueryDescriptor, variables: Mapping[str, Any]) -> Page[Any]:
        self.calls.append(dict(variables))
        if not self._pages:
            raise AssertionError("unexpected query: no scripted pages left")
        page = self._pages.pop(0)
        if isinstance(page, Exception):
            raise page
        return page


def _key_of(item: Mapping[str, Any], key_fields: Sequence[str]) -> tuple[Any, ...]:
    return tuple(item.get(f) for f in key_fields)


@dataclass
class RecordingBulkExecutor:
    """In-memory bulk executor that records every call it receives.

    ``fail_on_call`` makes the n-th call (1-based, counting mutations and reads
    together) raise ``error``. ``unprocessed`` decides, per read call, which of
    the requested keys to report back as unprocessed instead of serving them.
    """

    key_fields: tuple[str, ...] = ("pk",)
    store: dict[str, dict[tuple[Any, ...], Item]] = field(default_factory=dict)
    fail_on_call: int | None = None
    error: Exception | None = None
    unprocessed: Callable[[int, Sequence[Key]], Sequence[Key]] | None = None
    mutations: list[MutationBatch] = field(default_factory=list)
    reads: list[tuple[str, list[Key]]] = field(default_factory=list)
    calls: int = 0

    def _tick(self) -> None:
        self.calls += 1
        if self.fail_on_call is not None and self.calls == self.fail_on_call:
            raise self.error or RuntimeError(f"scripted failure on call {self.calls}")

    def mutate(self, batch: MutationBatch) -> None:
        self._tick()
        self.mutations.append(batch)
        table = self.store.setdefault(batch.target, {})
        for op in batch.operations:
            if isinstance(op, PutRequest):
                table[_key_of(op.item, self.key_fields)] = dict(op.item)
            elif isinstance(op, DeleteRequest):
                table.pop(_key_of(op.key, self.key_fields), None)

    def read(self, target: str, keys: Sequence[Key]) -> BulkReadResult:
        self._tick()
        self.reads.append((target, list(keys)))
        skipped = list(self.unprocessed(len(self.reads), keys)) if self.unprocessed else []
        skipped_ids = {_key_of(k, self.key_fields) for k in skipped}

        table = self.store.get(target, {})
        items: list[Item] = []
        for key in keys:
            key_id = _key_of(key, self.key_fields)
            if key_id in skipped_ids:
                continue
            found = table.get(key_id)
            if found is not None:
                items.append(dict(found))
        return BulkReadResult(items=items, unprocessed_keys=skipped)
