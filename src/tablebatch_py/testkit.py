from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from .mocks import ANY, FakeDynamoDBClient, RecordingBulkExecutor, ScriptedQueryExecutor
from .query import Page


def pages_from(chunks: Sequence[Sequence[Any]], *, metadata: dict[str, Any] | None = None) -> list[Page[Any]]:
    """Build a page chain where every page but the last carries a cursor."""
    if not chunks:
        raise ValueError("chunks must be non-empty")

    out: list[Page[Any]] = []
    for i, chunk in enumerate(chunks):
        last = i == len(chunks) - 1
        cursor = None if last else f"cursor-{i + 1}"
        out.append(Page(items=list(chunk), next_cursor=cursor, metadata={**(metadata or {}), "nextToken": cursor}))
    return out


def keys_for(count: int, *, field: str = "pk", prefix: str = "k") -> list[dict[str, Any]]:
    if count < 0:
        raise ValueError("count must be >= 0")
    return [{field: f"{prefix}{i:04d}"} for i in range(count)]


__all__ = [
    "ANY",
    "FakeDynamoDBClient",
    "RecordingBulkExecutor",
    "ScriptedQueryExecutor",
    "keys_for",
    "pages_from",
]
