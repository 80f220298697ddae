from __future__ import annotations

import base64
import json
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any


@dataclass(frozen=True)
class QueryDescriptor:
    """A query definition plus its named variables.

    Descriptors are immutable; paging fields are merged into a fresh mapping per
    request by :meth:`paged_variables`.
    """

    query: Any
    variables: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "variables", MappingProxyType(dict(self.variables)))

    def paged_variables(self, *, limit: int, cursor: str | None) -> dict[str, Any]:
        return {**self.variables, "limit": limit, "cursor": cursor}


@dataclass(frozen=True)
class Page[T]:
    items: list[T]
    next_cursor: str | None
    metadata: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class AccumulatedResult[T]:
    items: list[T]
    metadata: Mapping[str, Any] = field(default_factory=dict)
    pages: int = 0
    next_cursor: None = None

    def as_page(self) -> dict[str, Any]:
        """Return the last page's fields with ``items`` replaced by the full accumulation."""
        return {**self.metadata, "items": list(self.items)}


@dataclass(frozen=True)
class Cursor:
    last_key: dict[str, Any]
    table: str | None = None
    index: str | None = None


def _single_key_map(value: Any) -> tuple[str, Any]:
    if not isinstance(value, dict) or len(value) != 1:
        raise ValueError("attribute value must be a single-key map")
    (kind, inner), *_ = value.items()
    return str(kind), inner


def _require(ok: bool, message: str) -> None:
    if not ok:
        raise ValueError(message)


def _convert_av(av: Any, *, binary: Callable[[Any], Any], binary_type: type | tuple[type, ...]) -> dict[str, Any]:
    # Walks one DynamoDB attribute value, swapping binary payloads through `binary`.
    kind, value = _single_key_map(av)

    if kind in {"S", "N"}:
        _require(isinstance(value, str), f"{kind} value must be a string")
        return {kind: value}
    if kind == "BOOL":
        _require(isinstance(value, bool), "BOOL value must be a boolean")
        return {kind: value}
    if kind == "NULL":
        _require(value is True, "NULL value must be true")
        return {kind: True}
    if kind in {"SS", "NS"}:
        _require(
            isinstance(value, list) and all(isinstance(v, str) for v in value),
            f"{kind} value must be a list of strings",
        )
        return {kind: list(value)}
    if kind == "B":
        _require(isinstance(value, binary_type), "B value has the wrong type")
        return {kind: binary(value)}
    if kind == "BS":
        _require(
            isinstance(value, list) and all(isinstance(v, binary_type) for v in value),
            "BS value has the wrong element type",
        )
        return {kind: [binary(v) for v in value]}
    if kind == "L":
        _require(isinstance(value, list), "L value must be a list")
        return {kind: [_convert_av(v, binary=binary, binary_type=binary_type) for v in value]}
    if kind == "M":
        _require(isinstance(value, dict), "M value must be a map")
        return {
            kind: {
                str(k): _convert_av(value[k], binary=binary, binary_type=binary_type)
                for k in sorted(value.keys())
            }
        }

    raise ValueError(f"unsupported attribute value type: {kind}")


def _av_to_json(av: Any) -> dict[str, Any]:
    return _convert_av(
        av,
        binary=lambda b: base64.b64encode(bytes(b)).decode("ascii"),
        binary_type=(bytes, bytearray),
    )


def _av_from_json(enc: Any) -> dict[str, Any]:
    return _convert_av(enc, binary=base64.b64decode, binary_type=str)


def encode_cursor(last_key: Any, *, table: str | None = None, index: str | None = None) -> str | None:
    """Encode a DynamoDB ``LastEvaluatedKey`` as an opaque URL-safe token.

    An empty or missing key means there is nothing left to read, so ``None`` is
    returned and pagination stops.
    """
    if not last_key:
        return None
    if not isinstance(last_key, dict):
        raise ValueError("last_key must be a map")

    payload: dict[str, Any] = {"lastKey": {str(k): _av_to_json(last_key[k]) for k in sorted(last_key)}}
    if table is not None:
        payload["table"] = table
    if index is not None:
        payload["index"] = index

    raw = json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def decode_cursor(cursor: str) -> Cursor:
    raw = str(cursor or "").strip()
    if not raw:
        raise ValueError("cursor is empty")

    padding = "=" * (-len(raw) % 4)
    parsed = json.loads(base64.urlsafe_b64decode(raw + padding).decode("utf-8"))
    if not isinstance(parsed, dict):
        raise ValueError("cursor must decode to an object")

    last_key_raw = parsed.get("lastKey")
    if not isinstance(last_key_raw, dict) or not last_key_raw:
        raise ValueError("cursor lastKey is invalid")

    table = parsed.get("table")
    index = parsed.get("index")
    return Cursor(
        last_key={str(k): _av_from_json(last_key_raw[k]) for k in sorted(last_key_raw)},
        table=table if isinstance(table, str) else None,
        index=index if isinstance(index, str) else None,
    )
