from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Literal, Protocol

from .query import Page, QueryDescriptor

type Item = Mapping[str, Any]
type Key = Mapping[str, Any]


@dataclass(frozen=True)
class PutRequest:
    item: Item
    kind: Literal["put"] = "put"


@dataclass(frozen=True)
class DeleteRequest:
    key: Key
    kind: Literal["delete"] = "delete"


type MutationOp = PutRequest | DeleteRequest


@dataclass(frozen=True)
class MutationBatch:
    target: str
    operations: tuple[MutationOp, ...]

    def __len__(self) -> int:
        return len(self.operations)


@dataclass(frozen=True)
class BulkReadResult:
    items: list[Item] = field(default_factory=list)
    unprocessed_keys: list[Key] = field(default_factory=list)


class QueryExecutor(Protocol):
    def run(self, descriptor: QueryDescriptor, variables: Mapping[str, Any]) -> Page[Any]: ...


class BulkExecutor(Protocol):
    def mutate(self, batch: MutationBatch) -> None: ...

    def read(self, target: str, keys: Sequence[Key]) -> BulkReadResult: ...
